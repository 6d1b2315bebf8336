"""
Search Application Layer

Query understanding, cross-source ranking, aggregation and the pipeline
that ties them to the sources.
"""

from .orchestrator import NO_RESULTS_SUMMARY, ContextGatherer, SourceClient, per_source_limit
from .query_analyzer import CATEGORY_ORDER, QueryAnalyzer, analyze_query
from .ranker import RankingConfig, ResultRanker, ScoreWeights, rank_results
from .result_aggregator import ResultAggregator

__all__ = [
    # Query understanding
    "CATEGORY_ORDER",
    "QueryAnalyzer",
    "analyze_query",
    # Ranking
    "RankingConfig",
    "ResultRanker",
    "ScoreWeights",
    "rank_results",
    # Aggregation
    "ResultAggregator",
    # Pipeline
    "ContextGatherer",
    "NO_RESULTS_SUMMARY",
    "SourceClient",
    "per_source_limit",
]
