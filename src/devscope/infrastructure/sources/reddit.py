"""
Reddit Client - Subreddit search via the public JSON endpoints

Searches ``/r/{sub1+sub2}/search.json`` restricted to the chosen subreddits
over the past year, over-fetches, and filters out low-signal posts (NSFW,
low engagement, excluded flairs, promotional titles).

No authentication is used; Reddit only requires a descriptive User-Agent.
"""

from __future__ import annotations

import logging
import re
from datetime import UTC, datetime
from typing import Any

import httpx

from devscope.domain.entities import (
    NormalizedResult,
    ProblemCategory,
    RedditSearchStrategy,
    SearchStrategy,
    SourceName,
)
from devscope.shared.async_utils import SourceLimiter
from devscope.shared.config import DEFAULT_USER_AGENT

from .base_client import BaseSourceClient
from .markup import extract_code_blocks, extract_indented_blocks

logger = logging.getLogger(__name__)

REDDIT_BASE = "https://www.reddit.com"

DEFAULT_SUBREDDITS = ("programming", "webdev", "askprogramming")
DEFAULT_EXCLUDED_FLAIRS = ("Showcase", "Career", "Show and Tell", "Beginner Question")
DEFAULT_MIN_SCORE = 10
MIN_COMMENTS = 2
MIN_UPVOTE_RATIO = 0.6
MAX_FETCH = 25
MAX_SNIPPETS = 5

# Best-practice threads need an actual discussion
BEST_PRACTICE_MIN_SCORE = 15
BEST_PRACTICE_MIN_COMMENTS = 8

TITLE_EXCLUDE_PATTERNS = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\bhiring\b",
        r"\bfor hire\b",
        r"\bi (?:made|built)\b",
        r"\bcheck out my\b",
        r"\bmeme\b",
    )
)

TECH_KEYWORDS = (
    "react", "next.js", "vue", "angular", "node", "typescript",
    "javascript", "python", "docker",
)


class RedditClient(BaseSourceClient):
    """
    Reddit thread search.

    Usage:
        client = RedditClient(user_agent="my-app/1.0")
        results = await client.search("state management best practice", 5, strategy)

    ``is_accepted`` marks high-quality threads (well upvoted with a good
    ratio, or an active discussion).
    """

    source = SourceName.REDDIT

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        *,
        timeout: float = 30.0,
        limiter: SourceLimiter | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        **retry_options: Any,
    ) -> None:
        super().__init__(
            base_url=REDDIT_BASE,
            timeout=timeout,
            headers={"User-Agent": user_agent},
            limiter=limiter,
            transport=transport,
            **retry_options,
        )

    async def _search(
        self,
        query: str,
        max_results: int,
        strategy: SearchStrategy | None,
        category: ProblemCategory | None,
    ) -> list[NormalizedResult]:
        rd_strategy = strategy if isinstance(strategy, RedditSearchStrategy) else None
        subreddits = (rd_strategy.subreddits if rd_strategy else ()) or DEFAULT_SUBREDDITS

        data = await self._get_json(
            f"/r/{'+'.join(subreddits)}/search.json",
            params={
                "q": rd_strategy.query if rd_strategy else query,
                "restrict_sr": "on",
                "sort": "relevance",
                "t": "year",
                "limit": min(max_results * 2, MAX_FETCH),
            },
        )
        listing = (data or {}).get("data") or {}
        children = self._records(listing.get("children") if isinstance(listing, dict) else None)
        posts = self._records([child.get("data") or {} for child in children])

        now = datetime.now(UTC)
        return self._normalize_all(
            posts,
            lambda post: (
                self._normalize(post, now) if self.passes_filters(post, rd_strategy, category) else None
            ),
            limit=max_results,
        )

    # =========================================================================
    # Filters
    # =========================================================================

    @staticmethod
    def passes_filters(
        post: dict[str, Any],
        strategy: RedditSearchStrategy | None,
        category: ProblemCategory | None = None,
    ) -> bool:
        """Quality, flair and title filters combined."""
        if post.get("over_18"):
            return False

        score = post.get("score") or 0
        comments = post.get("num_comments") or 0
        min_score = strategy.min_engagement if strategy else DEFAULT_MIN_SCORE
        if score < min_score or comments < MIN_COMMENTS:
            return False

        ratio = post.get("upvote_ratio")
        if ratio and ratio < MIN_UPVOTE_RATIO:
            return False

        if category == ProblemCategory.BEST_PRACTICE and (
            score < BEST_PRACTICE_MIN_SCORE or comments < BEST_PRACTICE_MIN_COMMENTS
        ):
            return False

        flair = (post.get("link_flair_text") or "").lower()
        if flair:
            excluded = strategy.exclude_flairs if strategy else DEFAULT_EXCLUDED_FLAIRS
            if any(f.lower() in flair for f in excluded):
                return False

        title = post.get("title") or ""
        return not any(p.search(title) for p in TITLE_EXCLUDE_PATTERNS)

    @staticmethod
    def is_high_quality(post: dict[str, Any]) -> bool:
        score = post.get("score") or 0
        ratio = post.get("upvote_ratio") or 0
        comments = post.get("num_comments") or 0
        return (score > 50 and ratio > 0.9) or (comments > 10 and score > 20 and ratio > 0.8)

    # =========================================================================
    # Normalization
    # =========================================================================

    def _normalize(self, post: dict[str, Any], now: datetime) -> NormalizedResult:
        content = self._build_content(post)
        snippets = extract_code_blocks(content, min_length=10) + extract_indented_blocks(content)
        edited = post.get("edited")

        return NormalizedResult(
            title=post["title"],
            url=f"https://reddit.com{post['permalink']}",
            source=self.source,
            author=post.get("author") or "deleted",
            created_at=datetime.fromtimestamp(post["created_utc"], UTC),
            # "edited" is False or an epoch timestamp
            updated_at=(
                datetime.fromtimestamp(edited, UTC)
                if isinstance(edited, (int, float)) and not isinstance(edited, bool)
                else None
            ),
            score=self.calculate_score(post, now),
            content=content,
            code_snippets=snippets[:MAX_SNIPPETS],
            tags=self._extract_tags(post),
            is_accepted=self.is_high_quality(post),
            vote_count=post.get("score") or 0,
        )

    @staticmethod
    def _build_content(post: dict[str, Any]) -> str:
        header = f"Subreddit: r/{post.get('subreddit', '')}\n"
        header += f"Score: {post.get('score') or 0} | Comments: {post.get('num_comments') or 0}"
        if post.get("upvote_ratio"):
            header += f" | Upvote Ratio: {post['upvote_ratio'] * 100:.0f}%"
        header += "\n\n"

        selftext = post.get("selftext") or ""
        if post.get("is_self", True):
            return header + selftext

        body = f"Link post: {post.get('url', '')}\n"
        if selftext:
            body += f"\nDescription: {selftext}"
        return header + body

    @staticmethod
    def _extract_tags(post: dict[str, Any]) -> list[str]:
        tags: list[str] = []
        if post.get("subreddit"):
            tags.append(post["subreddit"])
        if post.get("link_flair_text"):
            tags.append(post["link_flair_text"].lower())
        title = (post.get("title") or "").lower()
        tags.extend(tech for tech in TECH_KEYWORDS if tech in title)
        return list(dict.fromkeys(tags))

    @staticmethod
    def calculate_score(post: dict[str, Any], now: datetime) -> int:
        """Native thread score from upvotes, comments, ratio and freshness."""
        score = min(post.get("score") or 0, 100)
        score += min((post.get("num_comments") or 0) * 2, 50)
        if post.get("upvote_ratio"):
            score += round(post["upvote_ratio"] * 30)

        age_days = (now.timestamp() - (post.get("created_utc") or 0)) / 86_400
        if age_days < 90:
            score += round((90 - age_days) / 3)
        return round(score)
