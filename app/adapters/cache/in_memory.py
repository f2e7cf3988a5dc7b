"""In-memory TTL cache store.

Process-local, thread-safe, with LRU eviction. Values are kept as JSON text,
exactly as they would be in Redis, so a cached payload can never be mutated
through a reference handed out earlier.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from fnmatch import fnmatchcase
from typing import Any

from app.adapters.cache.base import AbstractCacheStore

logger = logging.getLogger(__name__)


@dataclass
class CacheItem:
    """Container for cached values with expiration metadata."""

    value: str
    expires_at: float


class InMemoryCacheStore(AbstractCacheStore):
    """Thread-safe, in-memory TTL cache with LRU eviction.

    Attributes:
        max_entries: Maximum number of cached items (None for unlimited).
    """

    def __init__(self, max_entries: int | None = 4096) -> None:
        self._max_entries = max_entries
        self._store: OrderedDict[str, CacheItem] = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"InMemoryCacheStore(max_entries={self._max_entries}, "
            f"size={len(self._store)}, hits={self._hits}, misses={self._misses}, "
            f"evictions={self._evictions})"
        )

    async def get(self, key: str) -> Any | None:
        with self._lock:
            item = self._store.get(key)
            if not item:
                self._misses += 1
                return None

            if self._is_expired(item):
                self._evict_single(key)
                self._misses += 1
                logger.debug("cache.expired", extra={"cache_key": key})
                return None

            self._hits += 1
            self._store.move_to_end(key)  # mark as recently used
            raw = item.value

        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl_seconds: int) -> bool:
        try:
            raw = json.dumps(value)
        except (TypeError, ValueError) as exc:
            logger.warning(
                "cache.serialize_failed",
                extra={"cache_key": key, "error": str(exc)},
            )
            return False

        with self._lock:
            self._evict_expired_locked()
            self._store[key] = CacheItem(value=raw, expires_at=time.time() + ttl_seconds)
            self._store.move_to_end(key)
            self._evict_if_over_capacity_locked()
        return True

    async def delete(self, key: str) -> bool:
        with self._lock:
            return self._store.pop(key, None) is not None

    async def delete_pattern(self, pattern: str) -> int:
        with self._lock:
            matching = [k for k in self._store if fnmatchcase(k, pattern)]
            for key in matching:
                del self._store[key]
        return len(matching)

    async def clear(self) -> bool:
        """Remove all cached entries and reset counters."""

        with self._lock:
            self._store.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0
        return True

    def stats(self) -> dict[str, int | None]:
        """Return lightweight cache metrics without exposing values."""

        with self._lock:
            return {
                "max_entries": self._max_entries,
                "entries": len(self._store),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

    def _evict_single(self, key: str) -> None:
        if key in self._store:
            self._store.pop(key, None)
            self._evictions += 1

    def _evict_expired_locked(self) -> None:
        now = time.time()
        expired_keys = [k for k, item in self._store.items() if item.expires_at <= now]
        for key in expired_keys:
            self._evict_single(key)

    def _evict_if_over_capacity_locked(self) -> None:
        if self._max_entries is None:
            return

        while len(self._store) > self._max_entries:
            # popitem(last=False) removes the least recently used entry
            self._store.popitem(last=False)
            self._evictions += 1

    def _is_expired(self, item: CacheItem) -> bool:
        return time.time() > item.expires_at
