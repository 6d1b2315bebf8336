"""Builders for result objects used across the test suite."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from devscope.domain.entities import CodeSnippet, NormalizedResult, RankedResult, SourceName

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


def make_result(
    title: str = "How to fix a thing",
    *,
    source: SourceName | str = SourceName.STACKOVERFLOW,
    url: str | None = None,
    content: str = "",
    days_old: float = 10,
    score: float = 0,
    vote_count: int | None = None,
    is_accepted: bool | None = None,
    tags: list[str] | None = None,
    version: str | None = None,
    code: list[str] | None = None,
) -> NormalizedResult:
    """Build a NormalizedResult with sensible defaults."""
    return NormalizedResult(
        title=title,
        url=url or f"https://example.com/{SourceName.parse(source).value}/{title.lower().replace(' ', '-')}",
        source=source,
        author="tester",
        created_at=NOW - timedelta(days=days_old),
        content=content,
        score=score,
        vote_count=vote_count,
        is_accepted=is_accepted,
        tags=tags or [],
        version=version,
        code_snippets=[CodeSnippet(language="js", code=c) for c in code or []],
    )


def make_ranked(
    title: str = "Ranked result",
    *,
    final_score: float = 50.0,
    **kwargs,
) -> RankedResult:
    """Build a RankedResult with a given final score."""
    return RankedResult.from_result(
        make_result(title, **kwargs),
        relevance_score=0.0,
        recency_score=0.0,
        community_score=0.0,
        final_score=final_score,
    )
