"""Domain entities."""

from .query import (
    GitHubSearchStrategy,
    ProblemCategory,
    QueryAnalysis,
    RedditSearchStrategy,
    SearchStrategies,
    SearchStrategy,
    Specificity,
    StackOverflowSearchStrategy,
)
from .request import Depth, GatherRequest
from .result import (
    ALL_SOURCES,
    Citation,
    CodeSnippet,
    GatherContextResult,
    GatherStats,
    NormalizedResult,
    RankedResult,
    SourceName,
)

__all__ = [
    "ALL_SOURCES",
    "Citation",
    "CodeSnippet",
    "Depth",
    "GatherContextResult",
    "GatherRequest",
    "GatherStats",
    "GitHubSearchStrategy",
    "NormalizedResult",
    "ProblemCategory",
    "QueryAnalysis",
    "RankedResult",
    "RedditSearchStrategy",
    "SearchStrategies",
    "SearchStrategy",
    "SourceName",
    "Specificity",
    "StackOverflowSearchStrategy",
]
