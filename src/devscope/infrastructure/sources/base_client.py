"""
Base Source Client - Common HTTP request pattern for every content source.

Provides the plumbing the three clients share:
- httpx.AsyncClient management (injectable transport for tests)
- Per-source limiter (concurrency, spacing, request budget)
- Retry on rate limiting with exponential backoff and jitter
- Mapping of HTTP failures onto the SourceError hierarchy
- Skip-and-log normalization of individual records

Subclasses set ``source`` and implement ``_search()``; callers only use
``search()``.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any, TypeVar

import httpx
from typing_extensions import Self

from devscope.shared.async_utils import SourceLimiter, get_source_limiter, retry_on_rate_limit
from devscope.shared.exceptions import (
    AuthenticationError,
    DataError,
    NetworkError,
    RateLimitError,
    ServiceUnavailableError,
    SourceError,
)

if TYPE_CHECKING:
    from devscope.domain.entities import NormalizedResult, ProblemCategory, SearchStrategy, SourceName

logger = logging.getLogger(__name__)

R = TypeVar("R")


class BaseSourceClient(ABC):
    """
    Base class for source clients.

    Example:
        class MyClient(BaseSourceClient):
            source = SourceName.GITHUB

            async def _search(self, query, max_results, strategy, category):
                data = await self._get_json("/search", params={"q": query})
                return self._normalize_all(data["items"], self._normalize)

    Every HTTP call goes through ``retry_on_rate_limit(limiter.schedule(...))``
    so each attempt consumes one unit of the source's request budget.
    """

    source: SourceName

    def __init__(
        self,
        *,
        base_url: str,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
        limiter: SourceLimiter | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        max_attempts: int = 3,
        retry_delay: float = 1.0,
        retry_jitter: float = 1.0,
    ) -> None:
        """
        Initialize base client.

        Args:
            base_url: Base URL for the API
            timeout: Request timeout in seconds
            headers: Default headers for all requests
            limiter: Limiter to use (defaults to the shared one for the source)
            transport: Optional httpx transport (tests use httpx.MockTransport)
            max_attempts: Attempts per request when rate limited
            retry_delay: Initial backoff delay in seconds
            retry_jitter: Maximum random jitter added to each backoff
        """
        self._client_options: dict[str, Any] = {
            "base_url": base_url,
            "timeout": timeout,
            "headers": headers or {},
            "transport": transport,
        }
        self._client: httpx.AsyncClient | None = None
        self._limiter = limiter or get_source_limiter(self.source.value)
        self._max_attempts = max_attempts
        self._retry_delay = retry_delay
        self._retry_jitter = retry_jitter

    def _get_client(self) -> httpx.AsyncClient:
        """HTTP client, created on first use and again after close()."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                **self._client_options,
                limits=httpx.Limits(
                    max_connections=20,
                    max_keepalive_connections=10,
                    keepalive_expiry=30.0,
                ),
            )
        return self._client

    @property
    def name(self) -> str:
        return self.source.value

    async def search(
        self,
        query: str,
        max_results: int,
        strategy: SearchStrategy | None = None,
        category: ProblemCategory | None = None,
    ) -> list[NormalizedResult]:
        """
        Search the source and return normalized results.

        Args:
            query: Query text
            max_results: Upper bound on returned results
            strategy: Optional source-specific hints
            category: Optional problem category

        Returns:
            At most ``max_results`` normalized results

        Raises:
            SourceError: When the source cannot be queried
        """
        if max_results <= 0:
            return []
        results = await self._search(query, max_results, strategy, category)
        logger.info(f"{self.name}: {len(results)} results for {query!r}")
        return results[:max_results]

    @abstractmethod
    async def _search(
        self,
        query: str,
        max_results: int,
        strategy: SearchStrategy | None,
        category: ProblemCategory | None,
    ) -> list[NormalizedResult]:
        """Source-specific search."""

    # =========================================================================
    # HTTP
    # =========================================================================

    async def _get_json(self, url: str, *, params: dict[str, Any] | None = None) -> Any:
        """GET ``url`` (path or absolute) and return decoded JSON."""

        async def attempt() -> Any:
            return await self._limiter.schedule(lambda: self._request(url, params))

        return await retry_on_rate_limit(
            attempt,
            max_attempts=self._max_attempts,
            initial_delay=self._retry_delay,
            max_jitter=self._retry_jitter,
        )

    async def _request(self, url: str, params: dict[str, Any] | None) -> Any:
        try:
            response = await self._get_client().get(url, params=params)
        except httpx.RequestError as e:
            raise NetworkError(f"{self.name} request failed: {e}", source=self.name) from e

        self._raise_for_status(response)

        try:
            return response.json()
        except ValueError as e:
            raise SourceError(
                f"{self.name} returned invalid JSON",
                source=self.name,
                status_code=response.status_code,
                retryable=False,
            ) from e

    def _raise_for_status(self, response: httpx.Response) -> None:
        """Map non-2xx responses onto the SourceError hierarchy."""
        status = response.status_code
        if status < 400:
            return

        if self._is_rate_limited(response):
            raise RateLimitError(
                f"{self.name} rate limit exceeded",
                source=self.name,
                retry_after=self._retry_after(response),
            )
        if status >= 500:
            raise ServiceUnavailableError(
                f"HTTP {status} {response.reason_phrase}",
                source=self.name,
                status_code=status,
            )
        if status in (401, 403):
            raise AuthenticationError(self.name, status_code=status)
        raise SourceError(
            f"{self.name} HTTP error {status}: {response.reason_phrase}",
            source=self.name,
            status_code=status,
            retryable=False,
        )

    def _is_rate_limited(self, response: httpx.Response) -> bool:
        """Override for sources that signal rate limiting other than by 429."""
        return response.status_code == 429

    @staticmethod
    def _retry_after(response: httpx.Response) -> float | None:
        raw = response.headers.get("Retry-After")
        if raw is not None:
            try:
                return float(raw)
            except ValueError:
                pass
        reset = response.headers.get("x-ratelimit-reset")
        if reset is not None:
            try:
                return max(float(reset) - time.time(), 0.0)
            except ValueError:
                pass
        return None

    # =========================================================================
    # Normalization
    # =========================================================================

    def _records(self, items: Any) -> list[dict[str, Any]]:
        """JSON objects from a list payload; other entries are skipped and logged."""
        if not isinstance(items, list):
            if items:
                logger.warning(f"{self.name}: expected a list of records, got {type(items).__name__}")
            return []
        records = [item for item in items if isinstance(item, dict)]
        if len(records) < len(items):
            logger.warning(f"{self.name}: skipping {len(items) - len(records)} non-object record(s)")
        return records

    def _normalize_all(
        self,
        records: Iterable[R],
        normalize: Callable[[R], NormalizedResult | None],
        limit: int | None = None,
    ) -> list[NormalizedResult]:
        """
        Normalize records one by one, skipping (and logging) malformed ones.

        ``normalize`` may return None to drop a record on purpose.
        """
        results: list[NormalizedResult] = []
        for record in records:
            try:
                normalized = normalize(record)
            except (DataError, AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"{self.name}: skipping malformed record: {e}")
                continue
            if normalized is None:
                continue
            results.append(normalized)
            if limit is not None and len(results) >= limit:
                break
        return results

    async def close(self) -> None:
        """Close the HTTP client; the next request opens a new one."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
