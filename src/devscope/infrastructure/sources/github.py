"""
GitHub Client - Issue search via the REST API

Searches public issues with ``/search/issues`` sorted by reactions, then looks
up the star count of each distinct repository once per search.

API Documentation: https://docs.github.com/en/rest/search
Rate Limits: 10 search requests/min unauthenticated, 30/min with a token
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any

import httpx

from devscope.domain.entities import (
    GitHubSearchStrategy,
    NormalizedResult,
    ProblemCategory,
    SearchStrategy,
    SourceName,
)
from devscope.shared.async_utils import SourceLimiter
from devscope.shared.config import DEFAULT_USER_AGENT
from devscope.shared.exceptions import RateLimitError, SourceError

from .base_client import BaseSourceClient
from .markup import extract_code_blocks

logger = logging.getLogger(__name__)

GITHUB_API_BASE = "https://api.github.com"
NO_DESCRIPTION = "No description provided."

_TITLE_VERSION = re.compile(r"v?(\d+\.\d+(?:\.\d+)?)", re.IGNORECASE)
_LABEL_VERSION = re.compile(r"^v?\d+\.\d+")


def _parse_timestamp(value: str) -> datetime:
    # fromisoformat accepts the trailing "Z" on Python 3.11+
    return datetime.fromisoformat(value)


class GitHubClient(BaseSourceClient):
    """
    GitHub issue search.

    Usage:
        client = GitHubClient(token=os.environ.get("GITHUB_TOKEN"))
        results = await client.search("vite hmr not working", max_results=5)

    Closed issues count as accepted. Issues carrying a prioritized label
    (``label:bug`` in the strategy) are moved ahead of the rest.
    """

    source = SourceName.GITHUB

    def __init__(
        self,
        token: str | None = None,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 30.0,
        limiter: SourceLimiter | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        **retry_options: Any,
    ) -> None:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": user_agent,
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        super().__init__(
            base_url=GITHUB_API_BASE,
            timeout=timeout,
            headers=headers,
            limiter=limiter,
            transport=transport,
            **retry_options,
        )

    def _is_rate_limited(self, response: httpx.Response) -> bool:
        # GitHub reports exhausted quota as 403 with a zero remaining header
        if response.status_code == 403 and response.headers.get("x-ratelimit-remaining") == "0":
            return True
        return super()._is_rate_limited(response)

    @staticmethod
    def build_search_query(query: str, strategy: GitHubSearchStrategy | None) -> str:
        """Search string with scope qualifiers and strategy exclusions."""
        parts = [strategy.query if strategy else query, "in:title,body", "is:public"]
        if strategy:
            parts.extend(strategy.exclude_patterns)
            if "type:issue" in strategy.prioritize_types:
                parts.append("is:issue")
        return " ".join(parts)

    async def _search(
        self,
        query: str,
        max_results: int,
        strategy: SearchStrategy | None,
        category: ProblemCategory | None,
    ) -> list[NormalizedResult]:
        gh_strategy = strategy if isinstance(strategy, GitHubSearchStrategy) else None

        data = await self._get_json(
            "/search/issues",
            params={
                "q": self.build_search_query(query, gh_strategy),
                "sort": "reactions",
                "order": "desc",
                "per_page": max_results,
            },
        )
        issues = self._records(data.get("items"))

        if gh_strategy:
            issues = self._apply_strategy(issues, gh_strategy)

        repos = await self._fetch_repositories(issues)
        return self._normalize_all(
            issues,
            lambda issue: self._normalize(issue, repos.get(issue.get("repository_url", ""))),
            limit=max_results,
        )

    def _apply_strategy(self, issues: list[dict[str, Any]], strategy: GitHubSearchStrategy) -> list[dict[str, Any]]:
        """Drop low-engagement issues, then move prioritized labels first."""
        kept = []
        for issue in issues:
            try:
                engagement = (issue.get("comments") or 0) + ((issue.get("reactions") or {}).get("total_count") or 0)
                if engagement >= strategy.quality_threshold:
                    kept.append(issue)
            except (AttributeError, TypeError) as e:
                logger.warning(f"{self.name}: skipping malformed record: {e}")

        wanted = {p.split(":", 1)[1].lower() for p in strategy.prioritize_types if p.startswith("label:")}
        if not wanted:
            return kept

        def has_priority_label(issue: dict[str, Any]) -> bool:
            labels = issue.get("labels")
            if not isinstance(labels, list):
                return False
            return any(
                isinstance(label, dict) and str(label.get("name") or "").lower() in wanted
                for label in labels
            )

        # stable sort keeps the reactions order within each group
        return sorted(kept, key=lambda issue: not has_priority_label(issue))

    async def _fetch_repositories(self, issues: list[dict[str, Any]]) -> dict[str, dict[str, Any]]:
        """Repository details per repository_url, looked up once each."""
        repos: dict[str, dict[str, Any]] = {}
        for issue in issues:
            url = issue.get("repository_url")
            if not isinstance(url, str) or not url or url in repos:
                continue
            try:
                repos[url] = await self._get_json(url)
            except RateLimitError:
                raise
            except SourceError as e:
                logger.warning(f"github: failed to fetch repository {url}: {e}")
                repos[url] = {}
        return repos

    def _normalize(self, issue: dict[str, Any], repo: dict[str, Any] | None) -> NormalizedResult:
        labels = [label["name"] for label in issue.get("labels") or [] if label.get("name")]
        reactions = (issue.get("reactions") or {}).get("total_count") or 0

        content = ""
        if repo and repo.get("full_name"):
            content += f"Repository: {repo['full_name']} (⭐ {repo.get('stargazers_count', 0)})\n\n"
        content += issue.get("body") or NO_DESCRIPTION

        updated = issue.get("updated_at")
        return NormalizedResult(
            title=issue["title"],
            url=issue["html_url"],
            source=self.source,
            author=(issue.get("user") or {}).get("login") or "Unknown",
            created_at=_parse_timestamp(issue["created_at"]),
            updated_at=_parse_timestamp(updated) if updated else None,
            score=self.calculate_score(issue, repo),
            content=content,
            code_snippets=extract_code_blocks(content),
            tags=labels,
            version=self.extract_version(issue["title"], labels),
            is_accepted=issue.get("state") == "closed",
            vote_count=reactions,
        )

    @staticmethod
    def extract_version(title: str, labels: list[str]) -> str | None:
        """Version from the title, else from a version-like label."""
        match = _TITLE_VERSION.search(title)
        if match:
            return match.group(1)
        for label in labels:
            if _LABEL_VERSION.match(label) or "version" in label.lower():
                return label
        return None

    @staticmethod
    def calculate_score(issue: dict[str, Any], repo: dict[str, Any] | None) -> int:
        """Native issue score from stars, comments, reactions and state."""
        score = 0.0
        if repo:
            score += min((repo.get("stargazers_count") or 0) / 100, 50)
        score += min((issue.get("comments") or 0) * 2, 20)
        score += (issue.get("reactions") or {}).get("total_count") or 0
        if issue.get("state") == "closed":
            score += 10
        return round(score)
