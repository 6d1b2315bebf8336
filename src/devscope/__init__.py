"""
DevScope - Developer Context Gathering for MCP Clients

Collects Q&A posts, issues and forum threads from Stack Overflow, GitHub and
Reddit, ranks them on one comparable scale and returns a compact bundle of
citations and code snippets.

Usage:
    from devscope import GatherRequest, Settings
    from devscope.container import ApplicationContainer

    container = ApplicationContainer()
    container.config.from_dict(Settings.from_env().to_dict())
    bundle = await container.gatherer().gather(GatherRequest(query="vite hmr broken"))

Features:
    - Query classification (bug, configuration, performance, ...)
    - Per-source search strategies
    - Category-aware cross-source ranking
    - TTL + LRU result cache
    - Per-source rate limiting with backoff
"""

from devscope.application.search import (
    ContextGatherer,
    QueryAnalyzer,
    RankingConfig,
    ResultAggregator,
    ResultRanker,
)
from devscope.domain.entities import (
    GatherContextResult,
    GatherRequest,
    NormalizedResult,
    ProblemCategory,
    QueryAnalysis,
    RankedResult,
    SourceName,
)
from devscope.shared import Settings

__version__ = "1.0.0"

__all__ = [
    "ContextGatherer",
    "GatherContextResult",
    "GatherRequest",
    "NormalizedResult",
    "ProblemCategory",
    "QueryAnalysis",
    "QueryAnalyzer",
    "RankedResult",
    "RankingConfig",
    "ResultAggregator",
    "ResultRanker",
    "Settings",
    "SourceName",
    "__version__",
]
