"""Read-through caching on top of a cache store.

``get_or_compute`` serves a cached payload when there is one and otherwise
computes it from the source of truth, then stores it best-effort. The cache
is an optimization, never a correctness boundary: a cache that is down, slow
or raising behaves like a cache that always misses.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Awaitable, Callable

from app.adapters.cache.base import AbstractCacheStore

logger = logging.getLogger(__name__)

Compute = Callable[[], Awaitable[Any]]


class ReadThroughCache:
    """Cache-aside helper with hit/miss instrumentation.

    ``stats()["failures"]`` counts exceptions raised by the store's ``get`` and
    ``set``; a miss or a rejected write reported by return value is not one.

    Attributes:
        store: Backing cache store.
        default_ttl: TTL in seconds used when a call does not pass one.
    """

    def __init__(self, store: AbstractCacheStore, default_ttl: int = 3600) -> None:
        self.store = store
        self.default_ttl = default_ttl
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._failures = 0

    def _count(self, attr: str) -> None:
        with self._lock:
            setattr(self, attr, getattr(self, attr) + 1)

    async def _lookup(self, key: str) -> Any | None:
        try:
            return await self.store.get(key)
        except Exception as exc:
            self._count("_failures")
            logger.warning("cache.get_failed", extra={"cache_key": key, "error": str(exc)})
            return None

    async def _populate(self, key: str, value: Any, ttl: int) -> None:
        try:
            await self.store.set(key, value, ttl)
        except Exception as exc:
            self._count("_failures")
            logger.warning("cache.set_failed", extra={"cache_key": key, "error": str(exc)})

    async def get_or_compute(self, key: str, compute: Compute, ttl: int | None = None) -> Any:
        """Return the cached value for ``key``, computing and caching it on a miss.

        Args:
            key: Deterministic cache key.
            compute: Coroutine function producing the value from the source
                of truth. Its exceptions propagate unchanged and nothing is
                cached.
            ttl: Entry lifetime in seconds (defaults to ``default_ttl``).

        Returns:
            The cached or freshly computed value.
        """
        cached = await self._lookup(key)
        if cached is not None:
            self._count("_hits")
            logger.debug("cache.hit", extra={"cache_key": key})
            return cached

        self._count("_misses")
        logger.debug("cache.miss", extra={"cache_key": key})

        result = await compute()
        await self._populate(key, result, ttl or self.default_ttl)
        return result

    async def invalidate(self, pattern: str) -> int:
        """Delete every entry matching ``pattern``; failures are logged only.

        Returns:
            Number of entries removed.
        """
        try:
            removed = await self.store.delete_pattern(pattern)
        except Exception as exc:
            logger.error("cache.invalidate_failed", extra={"pattern": pattern, "error": str(exc)})
            return 0
        logger.info("cache.invalidated", extra={"pattern": pattern, "removed": removed})
        return removed

    async def clear(self) -> bool:
        try:
            return await self.store.clear()
        except Exception as exc:
            logger.error("cache.clear_failed", extra={"error": str(exc)})
            return False

    def stats(self) -> dict[str, int]:
        """Hit/miss/failure counters since process start."""
        with self._lock:
            return {
                "hits": self._hits,
                "misses": self._misses,
                "failures": self._failures,
            }
