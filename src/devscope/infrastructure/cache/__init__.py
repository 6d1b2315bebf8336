"""
Cache Infrastructure

Caches finished context bundles so repeated requests skip the sources.
"""

from __future__ import annotations

from devscope.infrastructure.cache.result_cache import (
    CacheStats,
    ResultCache,
    fingerprint,
)

__all__ = [
    "CacheStats",
    "ResultCache",
    "fingerprint",
]
