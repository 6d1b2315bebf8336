"""
ResultRanker - Cross-Source Scoring for Developer Content

Puts Stack Overflow questions, GitHub issues and Reddit threads onto one
comparable scale:
1. Relevance   - query words in title/content, exact phrase, tag overlap
2. Recency     - category-aware step curve over days since last activity
3. Community   - votes, native score and acceptance folded into 0-100
4. Acceptance  - flat bonus for accepted answers / closed issues
5. Affinity    - how well the source suits the problem category

Architecture Decision:
    Source-native scores (votes vs. computed issue score vs. upvotes) are
    never compared directly. Each is first normalized into the bounded
    community score, and only that enters the weighted sum.

    Every constant lives in RankingConfig so callers can tune the ranking
    without touching the algorithm.

Example:
    >>> ranker = ResultRanker()
    >>> ranked = ranker.rank("useEffect infinite loop", ProblemCategory.BUG, results)
    >>> ranked[0].final_score >= ranked[-1].final_score
    True
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from devscope.domain.entities import ProblemCategory, RankedResult, SourceName

if TYPE_CHECKING:
    from collections.abc import Sequence

    from devscope.domain.entities import NormalizedResult


# =============================================================================
# Constants
# =============================================================================

# (max_days_exclusive, score) steps, evaluated in order
RecencyCurve = tuple[tuple[int, float], ...]

FAST_DECAY_CURVE: RecencyCurve = ((7, 100), (30, 85), (90, 60), (180, 30), (365, 15))
SLOW_DECAY_CURVE: RecencyCurve = ((30, 100), (180, 90), (365, 80), (730, 65), (1095, 50))
DEFAULT_CURVE: RecencyCurve = ((7, 100), (30, 80), (90, 60), (365, 40), (730, 20))

SECONDS_PER_DAY = 86_400

BUG_QUERY_PATTERN = re.compile(r"bug|issue|error|fix|problem", re.IGNORECASE)
HOW_TO_QUERY_PATTERN = re.compile(r"how to|how do|what is|explain", re.IGNORECASE)


@dataclass(frozen=True)
class ScoreWeights:
    """Weights of the three normalized scores in the final sum."""

    relevance: float
    recency: float
    community: float


def _default_category_weights() -> dict[ProblemCategory, ScoreWeights]:
    return {
        ProblemCategory.BUG: ScoreWeights(0.35, 0.30, 0.20),
        ProblemCategory.CONFIGURATION: ScoreWeights(0.40, 0.15, 0.25),
        ProblemCategory.PERFORMANCE: ScoreWeights(0.35, 0.25, 0.25),
        ProblemCategory.COMPATIBILITY: ScoreWeights(0.30, 0.35, 0.20),
        ProblemCategory.BEST_PRACTICE: ScoreWeights(0.35, 0.10, 0.35),
    }


def _default_source_affinity() -> dict[ProblemCategory, dict[SourceName, float]]:
    return {
        ProblemCategory.BUG: {
            SourceName.GITHUB: 1.0,
            SourceName.STACKOVERFLOW: 0.7,
            SourceName.REDDIT: 0.4,
        },
        ProblemCategory.CONFIGURATION: {
            SourceName.STACKOVERFLOW: 1.0,
            SourceName.GITHUB: 0.6,
            SourceName.REDDIT: 0.5,
        },
        ProblemCategory.PERFORMANCE: {
            SourceName.STACKOVERFLOW: 0.8,
            SourceName.GITHUB: 0.8,
            SourceName.REDDIT: 0.6,
        },
        ProblemCategory.COMPATIBILITY: {
            SourceName.GITHUB: 1.0,
            SourceName.STACKOVERFLOW: 0.7,
            SourceName.REDDIT: 0.5,
        },
        ProblemCategory.BEST_PRACTICE: {
            SourceName.STACKOVERFLOW: 0.9,
            SourceName.REDDIT: 0.8,
            SourceName.GITHUB: 0.4,
        },
    }


def _default_recency_curves() -> dict[ProblemCategory, RecencyCurve]:
    return {
        ProblemCategory.BUG: FAST_DECAY_CURVE,
        ProblemCategory.COMPATIBILITY: FAST_DECAY_CURVE,
        ProblemCategory.BEST_PRACTICE: SLOW_DECAY_CURVE,
    }


def _default_accepted_bonus() -> dict[ProblemCategory, float]:
    return {
        ProblemCategory.CONFIGURATION: 20.0,
        ProblemCategory.BEST_PRACTICE: 20.0,
        ProblemCategory.BUG: 15.0,
    }


@dataclass
class RankingConfig:
    """
    Tunable ranking constants.

    The defaults are empirically chosen values; override any field to
    experiment without touching ResultRanker.

    Categories missing from a table fall back to the matching ``default_*``
    field (or, for source affinity, to the query-shape heuristic).
    """

    # Final score weights
    default_weights: ScoreWeights = field(default_factory=lambda: ScoreWeights(0.35, 0.25, 0.20))
    category_weights: dict[ProblemCategory, ScoreWeights] = field(default_factory=_default_category_weights)
    source_affinity_weight: float = 0.05

    # Source affinity (0-1, scaled to 0-100)
    source_affinity: dict[ProblemCategory, dict[SourceName, float]] = field(
        default_factory=_default_source_affinity
    )
    heuristic_match_affinity: float = 100.0
    heuristic_default_affinity: float = 50.0

    # Recency
    default_recency_curve: RecencyCurve = DEFAULT_CURVE
    recency_curves: dict[ProblemCategory, RecencyCurve] = field(default_factory=_default_recency_curves)
    default_recency_floor: float = 10.0
    recency_floors: dict[ProblemCategory, float] = field(
        default_factory=lambda: {
            ProblemCategory.BUG: 5.0,
            ProblemCategory.COMPATIBILITY: 5.0,
            ProblemCategory.BEST_PRACTICE: 30.0,
        }
    )

    # Relevance
    title_word_points: float = 10.0
    content_word_points: float = 2.0
    exact_title_points: float = 20.0
    tag_points: float = 5.0

    # Community
    vote_cap: float = 50.0
    native_score_cap: float = 25.0
    accepted_community_points: float = 25.0

    # Acceptance bonus in the final sum
    default_accepted_bonus: float = 12.0
    accepted_bonus: dict[ProblemCategory, float] = field(default_factory=_default_accepted_bonus)

    max_score: float = 100.0

    @classmethod
    def default(cls) -> RankingConfig:
        """Get the default configuration."""
        return cls()

    def weights_for(self, category: ProblemCategory | None) -> ScoreWeights:
        if category is None:
            return self.default_weights
        return self.category_weights.get(category, self.default_weights)

    def accepted_bonus_for(self, category: ProblemCategory | None) -> float:
        if category is None:
            return self.default_accepted_bonus
        return self.accepted_bonus.get(category, self.default_accepted_bonus)

    def recency_curve_for(self, category: ProblemCategory | None) -> tuple[RecencyCurve, float]:
        if category is None:
            return self.default_recency_curve, self.default_recency_floor
        return (
            self.recency_curves.get(category, self.default_recency_curve),
            self.recency_floors.get(category, self.default_recency_floor),
        )


class ResultRanker:
    """
    Scores and orders normalized results from any mix of sources.

    Usage:
        ranker = ResultRanker()
        ranked = ranker.rank(query, analysis.category, results)

    The ranker holds no per-call state and is safe to share.
    """

    def __init__(self, config: RankingConfig | None = None):
        self._config = config or RankingConfig.default()

    @property
    def config(self) -> RankingConfig:
        return self._config

    def rank(
        self,
        query: str,
        category: ProblemCategory | None,
        results: Sequence[NormalizedResult],
        now: datetime | None = None,
    ) -> list[RankedResult]:
        """
        Score every result and sort descending by final score.

        Args:
            query: Original query text
            category: Classified problem category (None behaves like unknown)
            results: Normalized results from any sources
            now: Reference time for recency (defaults to current UTC time)

        Returns:
            One RankedResult per input, ties keeping input order
        """
        reference = now or datetime.now(UTC)
        query_lower = query.lower()

        ranked = [self._score(query_lower, category, result, reference) for result in results]
        # sorted() is stable
        return sorted(ranked, key=lambda r: r.final_score, reverse=True)

    def _score(
        self,
        query_lower: str,
        category: ProblemCategory | None,
        result: NormalizedResult,
        now: datetime,
    ) -> RankedResult:
        cfg = self._config

        relevance = self.relevance_score(query_lower, result)
        recency = self.recency_score(result, category, now)
        community = self.community_score(result)
        affinity = self.source_affinity_score(query_lower, category, result.source)

        weights = cfg.weights_for(category)
        accepted_bonus = cfg.accepted_bonus_for(category) if result.is_accepted else 0.0

        final = (
            relevance * weights.relevance
            + recency * weights.recency
            + community * weights.community
            + accepted_bonus
            + affinity * cfg.source_affinity_weight
        )

        return RankedResult.from_result(
            result,
            relevance_score=relevance,
            recency_score=recency,
            community_score=community,
            final_score=final,
        )

    # =========================================================================
    # Individual scores
    # =========================================================================

    def relevance_score(self, query_lower: str, result: NormalizedResult) -> float:
        """Keyword overlap between query and result, capped at max_score."""
        cfg = self._config
        title = result.title.lower()
        content = result.content.lower()

        score = 0.0
        for word in query_lower.split():
            if word in title:
                score += cfg.title_word_points
            if word in content:
                score += cfg.content_word_points

        if query_lower and query_lower in title:
            score += cfg.exact_title_points

        for tag in result.tags:
            tag_lower = tag.lower()
            if not tag_lower:
                continue
            if tag_lower in query_lower or (query_lower and query_lower in tag_lower):
                score += cfg.tag_points

        return min(score, cfg.max_score)

    def recency_score(
        self,
        result: NormalizedResult,
        category: ProblemCategory | None,
        now: datetime,
    ) -> float:
        """Step-function freshness of the result's last activity."""
        curve, floor = self._config.recency_curve_for(category)
        days_since = (now - result.last_activity).total_seconds() / SECONDS_PER_DAY

        for max_days, score in curve:
            if days_since < max_days:
                return float(score)
        return floor

    def community_score(self, result: NormalizedResult) -> float:
        """Votes, native score and acceptance folded into 0..max_score."""
        cfg = self._config
        score = min(result.vote_count or 0, cfg.vote_cap)
        score += min(result.score / 2, cfg.native_score_cap)
        if result.is_accepted:
            score += cfg.accepted_community_points
        return max(0.0, min(float(score), cfg.max_score))

    def source_affinity_score(
        self,
        query_lower: str,
        category: ProblemCategory | None,
        source: SourceName,
    ) -> float:
        """How well a source suits the category, 0-100."""
        cfg = self._config
        table = cfg.source_affinity.get(category) if category is not None else None
        if table and source in table:
            return table[source] * 100

        if source == SourceName.STACKOVERFLOW and HOW_TO_QUERY_PATTERN.search(query_lower):
            return cfg.heuristic_match_affinity
        if source == SourceName.GITHUB and BUG_QUERY_PATTERN.search(query_lower):
            return cfg.heuristic_match_affinity
        return cfg.heuristic_default_affinity


# Convenience function
def rank_results(
    query: str,
    category: ProblemCategory | None,
    results: Sequence[NormalizedResult],
    now: datetime | None = None,
) -> list[RankedResult]:
    """Rank results with the default configuration."""
    return ResultRanker().rank(query, category, results, now=now)
