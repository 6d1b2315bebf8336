"""
Stack Overflow Client - Stack Exchange API 2.3

Searches questions via ``/search/advanced`` with bodies included, then
fetches the accepted answers of the hits in one ``/answers/{ids}`` call.

API Documentation: https://api.stackexchange.com/docs
Rate Limits: 300 requests/day without key, 10,000/day with key
"""

from __future__ import annotations

import html
import logging
from datetime import UTC, datetime
from typing import Any

import httpx

from devscope.domain.entities import (
    NormalizedResult,
    ProblemCategory,
    SearchStrategy,
    SourceName,
    StackOverflowSearchStrategy,
)
from devscope.shared.async_utils import SourceLimiter
from devscope.shared.exceptions import RateLimitError, SourceError

from .base_client import BaseSourceClient
from .markup import extract_code_blocks, strip_html

logger = logging.getLogger(__name__)

STACKEXCHANGE_API_BASE = "https://api.stackexchange.com/2.3"
SITE = "stackoverflow"
ACCEPTED_ANSWER_SEPARATOR = "\n\n--- ACCEPTED ANSWER ---\n\n"


class StackOverflowClient(BaseSourceClient):
    """
    Stack Overflow question search.

    Usage:
        client = StackOverflowClient(api_key="...")
        results = await client.search("webpack alias not resolving", max_results=5)

    A question counts as accepted when its accepted answer could be fetched
    and is flagged as accepted.
    """

    source = SourceName.STACKOVERFLOW

    def __init__(
        self,
        api_key: str | None = None,
        *,
        timeout: float = 30.0,
        limiter: SourceLimiter | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        **retry_options: Any,
    ) -> None:
        super().__init__(
            base_url=STACKEXCHANGE_API_BASE,
            timeout=timeout,
            headers={"Accept": "application/json"},
            limiter=limiter,
            transport=transport,
            **retry_options,
        )
        self._api_key = api_key

    def _base_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {"site": SITE, "filter": "withbody"}
        if self._api_key:
            params["key"] = self._api_key
        return params

    async def _search(
        self,
        query: str,
        max_results: int,
        strategy: SearchStrategy | None,
        category: ProblemCategory | None,
    ) -> list[NormalizedResult]:
        so_strategy = strategy if isinstance(strategy, StackOverflowSearchStrategy) else None

        params = self._base_params()
        params.update({
            "q": so_strategy.query if so_strategy else query,
            "order": "desc",
            "sort": so_strategy.sort_by if so_strategy else "relevance",
            "pagesize": max_results,
        })
        if so_strategy and so_strategy.tags:
            params["tagged"] = ";".join(so_strategy.tags)
        if so_strategy and so_strategy.require_answered:
            params["accepted"] = "True"

        data = await self._get_json("/search/advanced", params=params)
        questions = self._records(data.get("items"))
        self._log_quota(data)

        answers = await self._fetch_accepted_answers(questions)
        return self._normalize_all(
            questions,
            lambda q: self._normalize(q, answers),
            limit=max_results,
        )

    async def _fetch_accepted_answers(self, questions: list[dict[str, Any]]) -> dict[int, dict[str, Any]]:
        """Accepted answers keyed by answer id; empty on failure."""
        answer_ids = [str(q["accepted_answer_id"]) for q in questions if q.get("accepted_answer_id")]
        if not answer_ids:
            return {}

        try:
            data = await self._get_json(f"/answers/{';'.join(answer_ids)}", params=self._base_params())
        except RateLimitError:
            raise
        except SourceError as e:
            logger.warning(f"stackoverflow: failed to fetch accepted answers: {e}")
            return {}

        return {a["answer_id"]: a for a in self._records(data.get("items")) if "answer_id" in a}

    def _normalize(self, question: dict[str, Any], answers: dict[int, dict[str, Any]]) -> NormalizedResult:
        answer = answers.get(question.get("accepted_answer_id") or -1)

        content = strip_html(question.get("body") or "")
        if answer and answer.get("body"):
            content += ACCEPTED_ANSWER_SEPARATOR + strip_html(answer["body"])

        owner = question.get("owner") or {}
        question_score = int(question.get("score") or 0)
        last_activity = question.get("last_activity_date")

        return NormalizedResult(
            title=html.unescape(question["title"]),
            url=question["link"],
            source=self.source,
            author=html.unescape(owner.get("display_name") or "Anonymous"),
            created_at=datetime.fromtimestamp(question["creation_date"], UTC),
            updated_at=datetime.fromtimestamp(last_activity, UTC) if last_activity else None,
            score=question_score,
            content=content,
            code_snippets=extract_code_blocks(content),
            tags=list(question.get("tags") or []),
            is_accepted=bool(answer and answer.get("is_accepted")),
            vote_count=question_score + int((answer or {}).get("score") or 0),
        )

    @staticmethod
    def _log_quota(data: dict[str, Any]) -> None:
        remaining = data.get("quota_remaining")
        if remaining is not None:
            logger.debug(f"stackoverflow: quota remaining {remaining}")
        if data.get("backoff"):
            logger.warning(f"stackoverflow: API requested backoff of {data['backoff']}s")
