"""
In-memory cache of finished context bundles.

Entries are keyed by a SHA-256 fingerprint of the request and live in a
cachetools.TTLCache, so they expire after ``ttl`` seconds and the least
recently used one is dropped once ``max_size`` is reached. Each entry counts
how often it was served; that count comes back as ``stats.cacheHits``.
"""

from __future__ import annotations

import asyncio
import copy
import hashlib
import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from cachetools import TTLCache

if TYPE_CHECKING:
    from collections.abc import Iterable

    from devscope.domain.entities import GatherContextResult, SourceName


logger = logging.getLogger(__name__)


def fingerprint(
    query: str,
    sources: Iterable[SourceName | str],
    max_results: int,
    depth: str,
) -> str:
    """
    Stable cache key for a request.

    Sources are sorted so that the same set in a different order hits the
    same entry.
    """
    payload = {
        "query": query,
        "sources": sorted(getattr(s, "value", s) for s in sources),
        "maxResults": max_results,
        "depth": depth,
    }
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


@dataclass
class _Entry:
    result: GatherContextResult
    hits: int = 0


@dataclass
class CacheStats:
    """Hit and miss counters for one cache instance."""

    hits: int = 0
    misses: int = 0
    stores: int = 0

    @property
    def total_requests(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        """Fraction of lookups that were hits."""
        total = self.total_requests
        return self.hits / total if total > 0 else 0.0

    def reset(self) -> None:
        self.hits = 0
        self.misses = 0
        self.stores = 0


class ResultCache:
    """
    Async-safe store of GatherContextResult bundles.

    Example:
        cache = ResultCache(max_size=100, ttl=900)
        key = fingerprint(query, sources, 5, "quick")

        cached = await cache.get(key)
        if cached is None:
            result = await build()
            await cache.set(key, result)

    ``get`` returns a deep copy, so callers may mutate it (for example to
    refresh ``elapsed_ms``) without touching the stored entry.
    """

    def __init__(self, max_size: int = 100, ttl: float = 900.0):
        self._cache: TTLCache[str, _Entry] = TTLCache(maxsize=max_size, ttl=ttl)
        self._lock = asyncio.Lock()
        self._stats = CacheStats()

    @property
    def stats(self) -> CacheStats:
        return self._stats

    async def get(self, key: str) -> GatherContextResult | None:
        """
        Look up a bundle and count the hit against its entry.

        Returns:
            Copy of the cached bundle with ``stats.cache_hits`` set to the
            entry's hit count, or None if absent/expired
        """
        async with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self._stats.misses += 1
                return None

            entry.hits += 1
            self._stats.hits += 1
            result = copy.deepcopy(entry.result)
            result.stats.cache_hits = entry.hits

        logger.debug(f"Cache hit: {key[:12]} (hits={entry.hits})")
        return result

    async def set(self, key: str, result: GatherContextResult) -> None:
        """Store a bundle, resetting its hit counter."""
        async with self._lock:
            self._cache[key] = _Entry(result=copy.deepcopy(result))
            self._stats.stores += 1

    async def invalidate(self, key: str) -> bool:
        async with self._lock:
            return self._cache.pop(key, None) is not None

    def clear(self) -> int:
        """Drop every entry and return how many there were."""
        count = len(self._cache)
        self._cache.clear()
        return count

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, key: str) -> bool:
        return key in self._cache
