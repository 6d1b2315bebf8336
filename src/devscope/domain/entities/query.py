"""
Query Entities - Problem categories, per-source strategies, analysis result.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from .result import SourceName


class ProblemCategory(Enum):
    """
    Problem type of a developer query.

    Drives both the per-source search strategies and the ranking weights.

    CONFIGURATION: setup, install, settings, environment
        Example: "configure webpack aliases"
    BUG: crashes, errors, things not working
        Example: "useEffect infinite loop error"
    PERFORMANCE: slowness, memory, optimization
        Example: "react performance slow rendering"
    COMPATIBILITY: versions, upgrades, deprecations
        Example: "upgrade next.js 13 to 14 breaking change"
    BEST_PRACTICE: how-to and recommended approaches
        Example: "best practice for state management"
    UNKNOWN: nothing matched
    """
    CONFIGURATION = "configuration"
    BUG = "bug"
    PERFORMANCE = "performance"
    COMPATIBILITY = "compatibility"
    BEST_PRACTICE = "best-practice"
    UNKNOWN = "unknown"


Specificity = Literal["generic", "specific", "edge-case"]


@dataclass(frozen=True)
class GitHubSearchStrategy:
    """Advisory search hints for the issue tracker."""
    query: str
    exclude_patterns: tuple[str, ...] = ()
    prioritize_types: tuple[str, ...] = ()
    quality_threshold: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "exclude_patterns": list(self.exclude_patterns),
            "prioritize_types": list(self.prioritize_types),
            "quality_threshold": self.quality_threshold,
        }


@dataclass(frozen=True)
class StackOverflowSearchStrategy:
    """Advisory search hints for the Q&A site."""
    query: str
    tags: tuple[str, ...] = ()
    require_answered: bool = False
    sort_by: str = "relevance"

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "tags": list(self.tags),
            "require_answered": self.require_answered,
            "sort_by": self.sort_by,
        }


@dataclass(frozen=True)
class RedditSearchStrategy:
    """Advisory search hints for the discussion forum."""
    query: str
    subreddits: tuple[str, ...] = ()
    exclude_flairs: tuple[str, ...] = ()
    min_engagement: int = 10

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "subreddits": list(self.subreddits),
            "exclude_flairs": list(self.exclude_flairs),
            "min_engagement": self.min_engagement,
        }


SearchStrategy = GitHubSearchStrategy | StackOverflowSearchStrategy | RedditSearchStrategy


@dataclass(frozen=True)
class SearchStrategies:
    """One strategy per source."""
    github: GitHubSearchStrategy
    stackoverflow: StackOverflowSearchStrategy
    reddit: RedditSearchStrategy

    def for_source(self, source: SourceName) -> SearchStrategy:
        """Strategy for the given source."""
        return getattr(self, SourceName.parse(source).value)

    def to_dict(self) -> dict[str, Any]:
        return {
            "github": self.github.to_dict(),
            "stackoverflow": self.stackoverflow.to_dict(),
            "reddit": self.reddit.to_dict(),
        }


@dataclass(frozen=True)
class QueryAnalysis:
    """
    Result of query analysis.

    Immutable and computed once per request; two analyses of the same query
    compare equal.
    """
    original_query: str
    category: ProblemCategory
    technologies: tuple[str, ...] = field(default_factory=tuple)
    versions: tuple[str, ...] = field(default_factory=tuple)
    error_patterns: tuple[str, ...] = field(default_factory=tuple)
    specificity: Specificity = "generic"
    strategies: SearchStrategies | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "original_query": self.original_query,
            "category": self.category.value,
            "technologies": list(self.technologies),
            "versions": list(self.versions),
            "error_patterns": list(self.error_patterns),
            "specificity": self.specificity,
            "strategies": self.strategies.to_dict() if self.strategies else None,
        }
