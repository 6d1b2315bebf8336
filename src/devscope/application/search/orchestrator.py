"""
ContextGatherer - End-to-end pipeline for one context request.

Flow:
    request -> fingerprint -> cache lookup
            -> QueryAnalyzer -> per-source strategies
            -> concurrent source searches (failures downgraded)
            -> ResultRanker -> ResultAggregator -> cache store

Architecture Decision:
    A failing source never fails the request. Its error is logged, the
    source contributes zero results and is listed in
    ``stats.incomplete_sources``. Even when every source fails the caller
    gets a well-formed (empty) bundle.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import TYPE_CHECKING, Protocol

from devscope.domain.entities import (
    GatherContextResult,
    GatherRequest,
    GatherStats,
    NormalizedResult,
    ProblemCategory,
    SearchStrategy,
    SourceName,
)
from devscope.infrastructure.cache import fingerprint
from devscope.shared.async_utils import gather_settled
from devscope.shared.config import MAX_RESULTS_CAP
from devscope.shared.exceptions import DevScopeError

from .query_analyzer import QueryAnalyzer
from .ranker import ResultRanker
from .result_aggregator import ResultAggregator

if TYPE_CHECKING:
    from devscope.domain.entities import QueryAnalysis
    from devscope.infrastructure.cache import ResultCache

logger = logging.getLogger(__name__)

NO_RESULTS_SUMMARY = (
    "No results found. All data sources may be unavailable or the query returned no matches."
)
THOROUGH_MULTIPLIER = 2


class SourceClient(Protocol):
    """What the gatherer needs from a source client."""

    async def search(
        self,
        query: str,
        max_results: int,
        strategy: SearchStrategy | None = None,
        category: ProblemCategory | None = None,
    ) -> list[NormalizedResult]: ...


def per_source_limit(max_results: int, depth: str) -> int:
    """Results to request from each source for the given depth."""
    if depth == "thorough":
        return min(max_results * THOROUGH_MULTIPLIER, MAX_RESULTS_CAP)
    return max_results


class ContextGatherer:
    """
    Runs the gather pipeline against a set of source clients.

    Usage:
        gatherer = ContextGatherer(
            clients={SourceName.GITHUB: github, SourceName.STACKOVERFLOW: so},
            cache=ResultCache(),
        )
        bundle = await gatherer.gather(GatherRequest(query="vite hmr broken"))
    """

    def __init__(
        self,
        clients: Mapping[SourceName, SourceClient],
        *,
        analyzer: QueryAnalyzer | None = None,
        ranker: ResultRanker | None = None,
        aggregator: ResultAggregator | None = None,
        cache: ResultCache | None = None,
        default_max_results: int = 5,
    ) -> None:
        self._clients = dict(clients)
        self._analyzer = analyzer or QueryAnalyzer()
        self._ranker = ranker or ResultRanker()
        self._aggregator = aggregator or ResultAggregator()
        self._cache = cache
        self._default_max_results = default_max_results

    async def gather(self, request: GatherRequest) -> GatherContextResult:
        """
        Gather, rank and aggregate context for a request.

        Never raises for source failures; see module docstring.
        """
        started = time.perf_counter()
        max_results = request.max_results or self._default_max_results
        key = fingerprint(request.query, request.sources, max_results, request.depth)

        if self._cache is not None:
            cached = await self._cache.get(key)
            if cached is not None:
                cached.stats.elapsed_ms = _elapsed_ms(started)
                logger.info(f"Cache hit for query: {request.query!r}")
                return cached

        logger.info(f"Gathering context for query: {request.query!r}")
        analysis = self._analyzer.analyze(request.query)
        logger.debug(
            f"Query analysis: category={analysis.category.value}, "
            f"technologies={list(analysis.technologies)}, specificity={analysis.specificity}"
        )

        limit = per_source_limit(max_results, request.depth)
        results, incomplete = await self._search_sources(request.sources, analysis, limit)

        if not results:
            return GatherContextResult(
                summary=NO_RESULTS_SUMMARY,
                stats=GatherStats(
                    elapsed_ms=_elapsed_ms(started),
                    incomplete_sources=incomplete or None,
                ),
            )

        ranked = self._ranker.rank(request.query, analysis.category, results)
        bundle = self._aggregator.aggregate(
            ranked,
            elapsed_ms=_elapsed_ms(started),
            cache_hits=0,
            incomplete_sources=incomplete or None,
        )

        if self._cache is not None:
            await self._cache.set(key, bundle)
        return bundle

    async def _search_sources(
        self,
        sources: tuple[SourceName, ...],
        analysis: QueryAnalysis,
        limit: int,
    ) -> tuple[list[NormalizedResult], list[str]]:
        """Search every source concurrently; returns (results, failed sources)."""
        incomplete: list[str] = []
        active: list[SourceName] = []
        for source in sources:
            if source in self._clients:
                active.append(source)
            else:
                logger.warning(f"No client configured for source {source.value}")
                incomplete.append(source.value)

        outcomes = await gather_settled(
            *(self._search_one(source, analysis, limit) for source in active)
        )

        results: list[NormalizedResult] = []
        for source, outcome in zip(active, outcomes, strict=True):
            if isinstance(outcome, DevScopeError):
                logger.warning(f"{source.value} search failed: {outcome}")
                incomplete.append(source.value)
            elif isinstance(outcome, Exception):
                logger.error(f"{source.value} search failed unexpectedly: {outcome!r}", exc_info=outcome)
                incomplete.append(source.value)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                logger.info(f"{source.value} returned {len(outcome)} results")
                results.extend(outcome)

        return results, incomplete

    async def _search_one(
        self,
        source: SourceName,
        analysis: QueryAnalysis,
        limit: int,
    ) -> list[NormalizedResult]:
        strategy = analysis.strategies.for_source(source) if analysis.strategies else None
        return await self._clients[source].search(
            analysis.original_query,
            limit,
            strategy=strategy,
            category=analysis.category,
        )


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
