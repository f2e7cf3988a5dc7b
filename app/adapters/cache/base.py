"""Cache store interfaces.

Every operation is best-effort: implementations catch their own backend
failures, log them, and report a miss / no-op. Callers never need a
try/except around a cache call.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class AbstractCacheStore(ABC):
    """Interface for key/value stores with expiration."""

    @property
    def available(self) -> bool:
        """Whether the backing store is currently reachable."""
        return True

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the cached value, or None on miss or failure."""
        raise NotImplementedError

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: int) -> bool:
        """Store ``value`` under ``key`` for ``ttl_seconds``.

        Returns:
            True if the value was stored.
        """
        raise NotImplementedError

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a single key. Returns True if something was removed."""
        raise NotImplementedError

    @abstractmethod
    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching the glob ``pattern``.

        Returns:
            Number of keys removed (0 on failure).
        """
        raise NotImplementedError

    @abstractmethod
    async def clear(self) -> bool:
        """Remove every entry. Returns True on success."""
        raise NotImplementedError


class NullCacheStore(AbstractCacheStore):
    """Cache that stores nothing; used when caching is disabled."""

    @property
    def available(self) -> bool:
        return False

    async def get(self, key: str) -> Any | None:
        return None

    async def set(self, key: str, value: Any, ttl_seconds: int) -> bool:
        return False

    async def delete(self, key: str) -> bool:
        return False

    async def delete_pattern(self, pattern: str) -> int:
        return 0

    async def clear(self) -> bool:
        return False
