"""
Result Entities - Source-agnostic records and the aggregated bundle.

Every source adapter normalizes its native payload into a NormalizedResult.
The ranker extends each one into a RankedResult, and the aggregator reduces a
ranked list into a GatherContextResult.

Architecture Decision:
    Plain dataclasses, as elsewhere in the package. The wire format of the
    bundle uses camelCase keys (``elapsedMs``, ``sourceCounts``...) because
    it is consumed by MCP clients, so serialization goes through explicit
    ``to_dict()`` methods instead of ``dataclasses.asdict``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from devscope.shared.exceptions import ParseError


class SourceName(str, Enum):
    """Supported content sources."""
    STACKOVERFLOW = "stackoverflow"
    GITHUB = "github"
    REDDIT = "reddit"

    @classmethod
    def parse(cls, value: str | SourceName) -> SourceName:
        """Coerce a string to a SourceName, raising ParseError if unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ParseError(f"unknown source {value!r}") from None


ALL_SOURCES: tuple[SourceName, ...] = tuple(SourceName)


@dataclass
class CodeSnippet:
    """A code block extracted from a post, issue or thread."""
    language: str
    code: str

    def to_dict(self) -> dict[str, str]:
        return {"language": self.language, "code": self.code}


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


@dataclass
class NormalizedResult:
    """
    One result from any source, in a common shape.

    ``score`` is the source's own number (votes, computed issue score,
    upvotes) and is NOT comparable across sources; the ranker normalizes it
    into a 0-100 community score before any comparison.
    """
    title: str
    url: str
    source: SourceName
    author: str
    created_at: datetime
    content: str
    score: float = 0.0
    updated_at: datetime | None = None
    code_snippets: list[CodeSnippet] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    version: str | None = None
    is_accepted: bool | None = None
    vote_count: int | None = None

    def __post_init__(self) -> None:
        self.source = SourceName.parse(self.source)
        if self.content is None:
            raise ParseError("content must not be None", source=self.source.value)
        if not isinstance(self.created_at, datetime):
            raise ParseError("created_at must be a datetime", source=self.source.value)
        self.created_at = _as_utc(self.created_at)
        if self.updated_at is not None:
            self.updated_at = _as_utc(self.updated_at)

    @property
    def last_activity(self) -> datetime:
        """The later of creation and last update."""
        if self.updated_at is None:
            return self.created_at
        return max(self.created_at, self.updated_at)


@dataclass
class RankedResult(NormalizedResult):
    """A NormalizedResult with scores attached by the ranker."""
    relevance_score: float = 0.0
    recency_score: float = 0.0
    community_score: float = 0.0
    final_score: float = 0.0

    @classmethod
    def from_result(
        cls,
        result: NormalizedResult,
        *,
        relevance_score: float,
        recency_score: float,
        community_score: float,
        final_score: float,
    ) -> RankedResult:
        """Copy ``result`` and attach its scores."""
        values = {f.name: getattr(result, f.name) for f in fields(NormalizedResult)}
        return cls(
            **values,
            relevance_score=relevance_score,
            recency_score=recency_score,
            community_score=community_score,
            final_score=final_score,
        )


@dataclass
class Citation:
    """A compact reference to one ranked result."""
    title: str
    url: str
    source: str
    author: str
    created_at: str
    score: int
    snippet: str
    version: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "title": self.title,
            "url": self.url,
            "source": self.source,
            "author": self.author,
            "createdAt": self.created_at,
            "score": self.score,
            "snippet": self.snippet,
        }
        if self.version is not None:
            data["version"] = self.version
        return data


@dataclass
class GatherStats:
    """Counters reported alongside every bundle."""
    elapsed_ms: int = 0
    source_counts: dict[str, int] = field(default_factory=dict)
    cache_hits: int = 0
    incomplete_sources: list[str] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "elapsedMs": self.elapsed_ms,
            "sourceCounts": dict(self.source_counts),
            "cacheHits": self.cache_hits,
        }
        if self.incomplete_sources:
            data["incompleteSources"] = list(self.incomplete_sources)
        return data


@dataclass
class GatherContextResult:
    """The terminal bundle returned to the caller."""
    summary: str
    highlights: list[str] = field(default_factory=list)
    citations: list[Citation] = field(default_factory=list)
    snippets: list[CodeSnippet] = field(default_factory=list)
    stats: GatherStats = field(default_factory=GatherStats)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON payload shape."""
        return {
            "summary": self.summary,
            "highlights": list(self.highlights),
            "citations": [c.to_dict() for c in self.citations],
            "snippets": [s.to_dict() for s in self.snippets],
            "stats": self.stats.to_dict(),
        }
