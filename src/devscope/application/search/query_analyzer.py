"""
QueryAnalyzer - Query Understanding for Multi-Source Developer Search

This module analyzes a free-text developer question to determine:
1. Problem category (configuration, bug, performance, compatibility, best-practice)
2. Technologies and versions mentioned
3. Error keywords
4. Specificity (generic / specific / edge-case)
5. Per-source search strategies (GitHub, Stack Overflow, Reddit)

Architecture Decision:
    QueryAnalyzer is stateless and uses regex heuristics only.
    It does NOT call any external APIs. All pattern tables are compiled once
    at class definition and never mutated, so one instance can serve
    concurrent requests.

Example:
    >>> analyzer = QueryAnalyzer()
    >>> result = analyzer.analyze("react performance slow rendering")
    >>> result.category
    <ProblemCategory.PERFORMANCE: 'performance'>
    >>> result.technologies
    ('react',)
"""

from __future__ import annotations

import re
from types import MappingProxyType

from devscope.domain.entities import (
    GitHubSearchStrategy,
    ProblemCategory,
    QueryAnalysis,
    RedditSearchStrategy,
    SearchStrategies,
    Specificity,
    StackOverflowSearchStrategy,
)


def _compile(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


# Evaluation order for classification. Ties at the top score go to the
# category listed first.
CATEGORY_ORDER: tuple[ProblemCategory, ...] = (
    ProblemCategory.CONFIGURATION,
    ProblemCategory.BUG,
    ProblemCategory.PERFORMANCE,
    ProblemCategory.COMPATIBILITY,
    ProblemCategory.BEST_PRACTICE,
)


class QueryAnalyzer:
    """
    Heuristic analyzer for developer-support queries.

    Usage:
        analyzer = QueryAnalyzer()
        analysis = analyzer.analyze("next.js 14 build fails with docker")

        print(analysis.category)       # ProblemCategory.BUG
        print(analysis.technologies)   # ('next.js', 'docker')
        print(analysis.specificity)    # 'edge-case'
        analysis.strategies.github.query

    Note:
        QueryAnalyzer is purely local - no API calls.
    """

    # Canonical technology -> surface aliases (substring match)
    TECHNOLOGY_ALIASES: MappingProxyType[str, tuple[str, ...]] = MappingProxyType({
        "react": ("react", "reactjs", "jsx", "tsx"),
        "next.js": ("next.js", "nextjs", "next", "vercel"),
        "vue": ("vue", "vuejs", "vue.js"),
        "angular": ("angular", "angularjs"),
        "node.js": ("node.js", "nodejs", "node"),
        "typescript": ("typescript", "ts"),
        "javascript": ("javascript", "js"),
        "vite": ("vite", "vitejs"),
        "webpack": ("webpack",),
        "docker": ("docker", "dockerfile"),
        "prisma": ("prisma",),
        "mongodb": ("mongodb", "mongo"),
        "postgresql": ("postgresql", "postgres"),
        "redis": ("redis",),
        "aws": ("aws", "amazon web services"),
        "kubernetes": ("kubernetes", "k8s"),
        "python": ("python",),
        "django": ("django",),
        "flask": ("flask",),
        "git": ("git", "github", "gitlab"),
    })

    VERSION_PATTERNS = _compile(
        r"v?(\d+\.\d+(?:\.\d+)?)",
        r"(?:version|ver)\s*(\d+\.\d+(?:\.\d+)?)",
        r"(react\s+\d+)",
        r"(node\s+\d+)",
        r"(next\.?js\s+\d+)",
    )

    ERROR_PATTERNS = _compile(
        r"error",
        r"exception",
        r"failed",
        r"crash",
        r"memory\s+leak",
        r"not\s+working",
        r"broken",
        r"issue",
        r"problem",
        r"bug",
    )

    CATEGORY_PATTERNS: MappingProxyType[ProblemCategory, tuple[re.Pattern[str], ...]] = MappingProxyType({
        ProblemCategory.CONFIGURATION: _compile(
            r"config",
            r"setup",
            r"install",
            r"configure",
            r"settings",
            r"\.config\.",
            r"environment",
        ),
        ProblemCategory.BUG: _compile(
            r"bug",
            r"error",
            r"crash",
            r"exception",
            r"broken",
            r"not\s+working",
            r"fails?",
            r"infinite\s+loop",
            r"hanging",
            r"freeze",
            r"stuck",
        ),
        ProblemCategory.PERFORMANCE: _compile(
            r"performance",
            r"slow",
            r"speed",
            r"memory\s+leak",
            r"optimization",
            r"lag",
            r"benchmark",
        ),
        ProblemCategory.COMPATIBILITY: _compile(
            r"compatibility",
            r"version",
            r"upgrade",
            r"migration",
            r"deprecated",
            r"breaking\s+change",
        ),
        ProblemCategory.BEST_PRACTICE: _compile(
            r"how\s+to",
            r"best\s+practice",
            r"recommended",
            r"should\s+i",
            r"proper\s+way",
            r"correct\s+way",
        ),
    })

    # Tie-breaking boosts applied when the category already scored
    PERFORMANCE_BOOST_PATTERN = re.compile(
        r"memory|leak|performance|slow|speed|optimization", re.IGNORECASE
    )
    CONFIGURATION_BOOST_PATTERN = re.compile(
        r"setup|configure|config|install|environment", re.IGNORECASE
    )

    # GitHub
    GITHUB_BASE_EXCLUDES = (
        "-author:dependabot",
        "-author:renovate[bot]",
        "-author:github-actions[bot]",
        "-label:dependencies",
    )
    REPOSITORY_HINTS: MappingProxyType[str, str] = MappingProxyType({
        "react": "repo:facebook/react",
        "next.js": "repo:vercel/next.js",
        "vite": "repo:vitejs/vite",
        "vue": "repo:vuejs/vue",
        "angular": "repo:angular/angular",
        "typescript": "repo:microsoft/TypeScript",
        "prisma": "repo:prisma/prisma",
    })

    # Stack Overflow
    STACKOVERFLOW_TAGS = frozenset({
        "javascript", "typescript", "react", "node.js", "python", "java",
    })

    # Reddit
    TECH_SUBREDDITS: MappingProxyType[str, tuple[str, ...]] = MappingProxyType({
        "react": ("reactjs", "reactnative"),
        "next.js": ("nextjs", "reactjs"),
        "vue": ("vuejs",),
        "angular": ("angular", "angularjs"),
        "node.js": ("node", "nodejs"),
        "javascript": ("javascript", "webdev"),
        "typescript": ("typescript",),
        "python": ("python", "learnpython"),
        "docker": ("docker", "devops"),
    })
    FALLBACK_SUBREDDITS = ("programming", "webdev", "askprogramming")
    REDDIT_BASE_EXCLUDED_FLAIRS = (
        "Showcase",
        "Career",
        "Show and Tell",
        "Beginner Question",
    )
    MAX_SUBREDDITS = 5

    def analyze(self, query: str) -> QueryAnalysis:
        """
        Analyze a developer query.

        Args:
            query: Raw query text

        Returns:
            QueryAnalysis with category, signals and per-source strategies
        """
        category = self._classify_category(query)
        technologies = self._extract_technologies(query)
        versions = self._extract_versions(query)
        error_patterns = self._extract_error_patterns(query)
        specificity = self._assess_specificity(query, technologies, versions)

        return QueryAnalysis(
            original_query=query,
            category=category,
            technologies=technologies,
            versions=versions,
            error_patterns=error_patterns,
            specificity=specificity,
            strategies=self._generate_strategies(query, category, technologies),
        )

    # ------------------------------------------------------------------
    # Signals
    # ------------------------------------------------------------------

    def _category_scores(self, query: str) -> dict[ProblemCategory, int]:
        """Raw match counts per category, boosts included."""
        scores = {
            category: sum(len(p.findall(query)) for p in self.CATEGORY_PATTERNS[category])
            for category in CATEGORY_ORDER
        }

        if scores[ProblemCategory.PERFORMANCE] > 0 and self.PERFORMANCE_BOOST_PATTERN.search(query):
            scores[ProblemCategory.PERFORMANCE] += 2

        if scores[ProblemCategory.CONFIGURATION] > 0 and self.CONFIGURATION_BOOST_PATTERN.search(query):
            scores[ProblemCategory.CONFIGURATION] += 1

        return scores

    def _classify_category(self, query: str) -> ProblemCategory:
        """Pick the strictly highest-scoring category, or UNKNOWN."""
        scores = self._category_scores(query)

        best_category = ProblemCategory.UNKNOWN
        best_score = 0
        for category in CATEGORY_ORDER:
            if scores[category] > best_score:
                best_score = scores[category]
                best_category = category

        return best_category

    def _extract_technologies(self, query: str) -> tuple[str, ...]:
        query_lower = query.lower()
        return tuple(
            tech
            for tech, aliases in self.TECHNOLOGY_ALIASES.items()
            if any(alias in query_lower for alias in aliases)
        )

    def _extract_versions(self, query: str) -> tuple[str, ...]:
        versions: list[str] = []
        for pattern in self.VERSION_PATTERNS:
            for match in pattern.finditer(query):
                value = match.group(1) or match.group(0)
                if value not in versions:
                    versions.append(value)
        return tuple(versions)

    def _extract_error_patterns(self, query: str) -> tuple[str, ...]:
        found: list[str] = []
        for pattern in self.ERROR_PATTERNS:
            for match in pattern.findall(query):
                if match not in found:
                    found.append(match)
        return tuple(found)

    @staticmethod
    def _assess_specificity(
        query: str,
        technologies: tuple[str, ...],
        versions: tuple[str, ...],
    ) -> Specificity:
        word_count = len(query.split())

        if word_count < 4 and len(technologies) <= 1:
            return "generic"

        if len(technologies) >= 2 or len(versions) >= 1 or word_count > 8:
            return "edge-case"

        return "specific"

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    def _generate_strategies(
        self,
        query: str,
        category: ProblemCategory,
        technologies: tuple[str, ...],
    ) -> SearchStrategies:
        return SearchStrategies(
            github=self._github_strategy(query, category, technologies),
            stackoverflow=self._stackoverflow_strategy(query, category, technologies),
            reddit=self._reddit_strategy(query, category, technologies),
        )

    def _github_strategy(
        self,
        query: str,
        category: ProblemCategory,
        technologies: tuple[str, ...],
    ) -> GitHubSearchStrategy:
        exclude = list(self.GITHUB_BASE_EXCLUDES)
        prioritize = ["type:issue"]

        if category == ProblemCategory.BUG:
            prioritize.append("label:bug")
            exclude.append("-label:enhancement")
        elif category == ProblemCategory.CONFIGURATION:
            prioritize.extend(["label:question", "label:help"])

        search_query = query
        repo_hints = [self.REPOSITORY_HINTS[t] for t in technologies if t in self.REPOSITORY_HINTS]
        if repo_hints:
            search_query = f"{query} {' OR '.join(repo_hints)}"

        return GitHubSearchStrategy(
            query=search_query,
            exclude_patterns=tuple(exclude),
            prioritize_types=tuple(prioritize),
            quality_threshold=2 if category == ProblemCategory.BUG else 1,
        )

    def _stackoverflow_strategy(
        self,
        query: str,
        category: ProblemCategory,
        technologies: tuple[str, ...],
    ) -> StackOverflowSearchStrategy:
        return StackOverflowSearchStrategy(
            query=query,
            tags=tuple(t for t in technologies if t in self.STACKOVERFLOW_TAGS),
            require_answered=category in (ProblemCategory.CONFIGURATION, ProblemCategory.BEST_PRACTICE),
            sort_by="activity" if category == ProblemCategory.BUG else "relevance",
        )

    def _reddit_strategy(
        self,
        query: str,
        category: ProblemCategory,
        technologies: tuple[str, ...],
    ) -> RedditSearchStrategy:
        excluded_flairs = list(self.REDDIT_BASE_EXCLUDED_FLAIRS)
        if category == ProblemCategory.BEST_PRACTICE:
            excluded_flairs.append("Rant")

        return RedditSearchStrategy(
            query=query,
            subreddits=self._relevant_subreddits(category, technologies),
            exclude_flairs=tuple(excluded_flairs),
            min_engagement=5 if category == ProblemCategory.BUG else 10,
        )

    def _relevant_subreddits(
        self,
        category: ProblemCategory,
        technologies: tuple[str, ...],
    ) -> tuple[str, ...]:
        # dict keeps insertion order and drops duplicates
        subreddits: dict[str, None] = {}

        for tech in technologies:
            for sub in self.TECH_SUBREDDITS.get(tech, ()):
                subreddits[sub] = None

        if category in (ProblemCategory.BUG, ProblemCategory.CONFIGURATION):
            subreddits["programming"] = None
            subreddits["askprogramming"] = None

        if category == ProblemCategory.BEST_PRACTICE:
            subreddits["codereview"] = None
            subreddits["programming"] = None

        if not subreddits:
            for sub in self.FALLBACK_SUBREDDITS:
                subreddits[sub] = None

        return tuple(subreddits)[: self.MAX_SUBREDDITS]


# Convenience function
def analyze_query(query: str) -> QueryAnalysis:
    """
    Analyze a developer query (convenience function).

    Args:
        query: Raw query text

    Returns:
        QueryAnalysis with analysis results
    """
    return QueryAnalyzer().analyze(query)
