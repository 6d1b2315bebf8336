"""
Pytest configuration and shared fixtures.
"""

from __future__ import annotations

from datetime import datetime

import pytest
from factories import NOW

from devscope.shared.async_utils import SourceLimiter, reset_source_limiters

# ============================================================
# Environment Fixtures
# ============================================================


@pytest.fixture(autouse=True)
def _fresh_limiters():
    """Shared limiters must not leak budget between tests."""
    reset_source_limiters()
    yield
    reset_source_limiters()


@pytest.fixture
def now() -> datetime:
    """Fixed reference time for recency scoring."""
    return NOW


@pytest.fixture
def fast_limiter() -> SourceLimiter:
    """Limiter that never waits."""
    return SourceLimiter(name="test", max_concurrent=10, min_interval=0.0, reservoir=1000)


@pytest.fixture
def no_retry_delay() -> dict[str, float]:
    """Client options that make rate-limit retries instant."""
    return {"retry_delay": 0.0, "retry_jitter": 0.0}
