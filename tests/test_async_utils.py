"""Tests for async utilities - limiter, rate-limit retry, settled gather."""

from __future__ import annotations

import asyncio

import pytest

from devscope.shared.async_utils import (
    SourceLimiter,
    gather_settled,
    get_source_limiter,
    reset_source_limiters,
    retry_on_rate_limit,
)
from devscope.shared.exceptions import NetworkError, RateLimitError

# ============================================================
# SourceLimiter
# ============================================================


class TestSourceLimiter:
    async def test_schedule_returns_value(self, fast_limiter):
        async def work():
            return 42

        assert await fast_limiter.schedule(work) == 42
        assert fast_limiter.remaining == 999

    async def test_concurrency_cap(self):
        limiter = SourceLimiter(name="cap", max_concurrent=2, reservoir=100)
        in_flight = 0
        peak = 0

        async def work():
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1

        await asyncio.gather(*(limiter.schedule(work) for _ in range(6)))
        assert peak == 2

    async def test_budget_refills_after_window(self):
        limiter = SourceLimiter(name="budget", max_concurrent=5, reservoir=2, refresh_interval=0.05)

        async def work():
            return None

        loop = asyncio.get_running_loop()
        started = loop.time()
        for _ in range(3):
            await limiter.schedule(work)
        assert loop.time() - started >= 0.04

    async def test_min_interval_spacing(self):
        limiter = SourceLimiter(name="spaced", max_concurrent=5, min_interval=0.03, reservoir=100)

        async def work():
            return None

        loop = asyncio.get_running_loop()
        started = loop.time()
        await asyncio.gather(*(limiter.schedule(work) for _ in range(3)))
        assert loop.time() - started >= 0.05


class TestLimiterRegistry:
    def test_shared_per_source(self):
        assert get_source_limiter("github") is get_source_limiter("github")
        assert get_source_limiter("github") is not get_source_limiter("reddit")

    def test_known_limits(self):
        reddit = get_source_limiter("reddit")
        assert reddit.max_concurrent == 1
        assert reddit.min_interval == 1.0
        assert get_source_limiter("stackoverflow").reservoir == 100

    def test_reset(self):
        first = get_source_limiter("github")
        reset_source_limiters()
        assert get_source_limiter("github") is not first


# ============================================================
# Retry
# ============================================================


class TestRetryOnRateLimit:
    async def test_retries_then_succeeds(self):
        calls = 0

        async def flaky():
            nonlocal calls
            calls += 1
            if calls < 3:
                raise RateLimitError(source="github")
            return "ok"

        result = await retry_on_rate_limit(flaky, max_attempts=3, initial_delay=0, max_jitter=0)
        assert result == "ok"
        assert calls == 3

    async def test_reraises_after_attempts(self):
        calls = 0

        async def always_limited():
            nonlocal calls
            calls += 1
            raise RateLimitError(source="reddit", retry_after=5)

        with pytest.raises(RateLimitError) as exc_info:
            await retry_on_rate_limit(always_limited, max_attempts=3, initial_delay=0, max_jitter=0)
        assert calls == 3
        assert exc_info.value.context.retry_after == 5

    async def test_other_errors_not_retried(self):
        calls = 0

        async def broken():
            nonlocal calls
            calls += 1
            raise NetworkError(source="github")

        with pytest.raises(NetworkError):
            await retry_on_rate_limit(broken, initial_delay=0, max_jitter=0)
        assert calls == 1


# ============================================================
# Settled Gather
# ============================================================


class TestGatherSettled:
    async def test_failures_kept_in_place(self):
        async def ok(value):
            await asyncio.sleep(0)
            return value

        async def fail():
            raise ValueError("boom")

        outcomes = await gather_settled(ok(1), fail(), ok(3))

        assert outcomes[0] == 1
        assert isinstance(outcomes[1], ValueError)
        assert outcomes[2] == 3

    async def test_empty(self):
        assert await gather_settled() == []
