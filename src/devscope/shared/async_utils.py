"""
Async Utilities for Source Calls.

Provides:
- Per-source limiter (concurrency cap, call spacing, refilling request budget)
- Rate-limit retry with exponential backoff and jitter (tenacity)
- Settled gather: await every task, keep failures as values
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from .exceptions import RateLimitError

logger = logging.getLogger(__name__)

T = TypeVar('T')


# =============================================================================
# Source Limiter
# =============================================================================

@dataclass
class SourceLimiter:
    """
    Per-source call limiter.

    Combines three rules:
    - at most ``max_concurrent`` calls in flight
    - at least ``min_interval`` seconds between call starts
    - a budget of ``reservoir`` calls, refilled every ``refresh_interval``

    Example:
        limiter = SourceLimiter(name="github", max_concurrent=3, min_interval=0.1)
        results = await limiter.schedule(lambda: client.fetch(...))
    """
    name: str
    max_concurrent: int = 1
    min_interval: float = 0.0   # seconds between call starts
    reservoir: int = 60         # calls per refresh window
    refresh_interval: float = 60.0
    _semaphore: asyncio.Semaphore = field(init=False)
    _lock: asyncio.Lock = field(init=False, default_factory=asyncio.Lock)
    _tokens: int = field(init=False)
    _window_start: float = field(init=False)
    _last_start: float = field(init=False, default=0.0)

    def __post_init__(self) -> None:
        self._semaphore = asyncio.Semaphore(self.max_concurrent)
        self._tokens = self.reservoir
        self._window_start = time.monotonic()

    @property
    def remaining(self) -> int:
        """Calls left in the current budget window."""
        return self._tokens

    async def _acquire_slot(self) -> None:
        """Wait for spacing and budget, then consume one call."""
        async with self._lock:
            now = time.monotonic()
            if now - self._window_start >= self.refresh_interval:
                self._tokens = self.reservoir
                self._window_start = now

            if self._tokens <= 0:
                wait_time = self.refresh_interval - (now - self._window_start)
                logger.debug(f"{self.name}: request budget spent, waiting {wait_time:.2f}s")
                await asyncio.sleep(max(wait_time, 0.0))
                self._tokens = self.reservoir
                self._window_start = time.monotonic()

            gap = time.monotonic() - self._last_start
            if gap < self.min_interval:
                await asyncio.sleep(self.min_interval - gap)

            self._tokens -= 1
            self._last_start = time.monotonic()

    async def schedule(self, func: Callable[[], Awaitable[T]]) -> T:
        """Run ``func`` once a concurrency slot and a budget token are free."""
        async with self._semaphore:
            await self._acquire_slot()
            return await func()


# Default limits per source
SOURCE_LIMITS: dict[str, dict[str, float]] = {
    "stackoverflow": {
        "max_concurrent": 2,
        "min_interval": 0.6,          # 100 requests per minute
        "reservoir": 100,
        "refresh_interval": 60.0,
    },
    "github": {
        "max_concurrent": 3,
        "min_interval": 0.1,
        "reservoir": 5000,            # 5000 points per hour
        "refresh_interval": 3600.0,
    },
    "reddit": {
        "max_concurrent": 1,
        "min_interval": 1.0,          # 60 requests per minute
        "reservoir": 60,
        "refresh_interval": 60.0,
    },
}

_limiters: dict[str, SourceLimiter] = {}


def get_source_limiter(source: str) -> SourceLimiter:
    """Get or create the shared limiter for a source."""
    if source not in _limiters:
        limits = SOURCE_LIMITS.get(source, {})
        _limiters[source] = SourceLimiter(
            name=source,
            max_concurrent=int(limits.get("max_concurrent", 1)),
            min_interval=float(limits.get("min_interval", 0.0)),
            reservoir=int(limits.get("reservoir", 60)),
            refresh_interval=float(limits.get("refresh_interval", 60.0)),
        )
    return _limiters[source]


def reset_source_limiters() -> None:
    """Drop all shared limiters (for testing)."""
    _limiters.clear()


# =============================================================================
# Rate-limit Retry
# =============================================================================

def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
    logger.warning(
        f"Rate limited (attempt {retry_state.attempt_number}), "
        f"retrying in {delay:.1f}s: {error}"
    )


async def retry_on_rate_limit(
    func: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    max_jitter: float = 1.0,
) -> T:
    """
    Call ``func``, retrying only when it raises :class:`RateLimitError`.

    Waits grow exponentially from ``initial_delay`` plus a random jitter of up
    to ``max_jitter`` seconds. Once attempts run out the last error is
    re-raised unchanged.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=initial_delay, max=30.0) + wait_random(0, max_jitter),
        retry=retry_if_exception_type(RateLimitError),
        before_sleep=_log_retry,
        reraise=True,
    )
    return await retrying(func)


# =============================================================================
# Settled Gather
# =============================================================================

async def gather_settled(
    *coros: Awaitable[Any],
) -> list[Any | BaseException]:
    """
    Await every coroutine concurrently and return results in input order.

    Failures do not cancel sibling tasks; the raised exception takes the
    failed task's slot in the returned list.
    """
    return list(await asyncio.gather(*coros, return_exceptions=True))
