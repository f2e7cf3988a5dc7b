"""Redis-backed cache store.

Values are stored as JSON text with a per-key expiry. Any backend failure
(store unreachable, timeout, undecodable payload) is logged and reported as a
miss / no-op, so the caller simply falls through to the source of truth.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from app.adapters.cache.base import AbstractCacheStore
from app.adapters.redis_connection import RedisConnection

logger = logging.getLogger(__name__)

_SCAN_BATCH = 500


class RedisCacheStore(AbstractCacheStore):
    """Cache store on top of a shared ``RedisConnection``.

    Attributes:
        namespace: Key prefix owned by this cache. ``clear`` only removes keys
            under it, so other data in the same database (rate-limit counters)
            survives. An empty namespace means the whole database is ours.
    """

    def __init__(self, connection: RedisConnection, namespace: str = "") -> None:
        self._connection = connection
        self.namespace = namespace

    @property
    def available(self) -> bool:
        return self._connection.available

    async def _handle_failure(self, operation: str, key: str, exc: Exception) -> None:
        logger.warning(
            f"cache.{operation}_failed",
            extra={"cache_key": key, "error": str(exc), "error_type": type(exc).__name__},
        )
        if isinstance(exc, (RedisConnectionError, RedisTimeoutError, OSError)):
            await self._connection.mark_unavailable(exc)

    async def get(self, key: str) -> Any | None:
        client = await self._connection.get_client()
        if client is None:
            return None
        try:
            raw = await client.get(key)
            if raw is None:
                return None
            return json.loads(raw)
        except (RedisError, OSError, ValueError) as exc:
            await self._handle_failure("get", key, exc)
            return None

    async def set(self, key: str, value: Any, ttl_seconds: int) -> bool:
        client = await self._connection.get_client()
        if client is None:
            return False
        try:
            await client.set(key, json.dumps(value), ex=ttl_seconds)
            return True
        except (RedisError, OSError, TypeError, ValueError) as exc:
            await self._handle_failure("set", key, exc)
            return False

    async def delete(self, key: str) -> bool:
        client = await self._connection.get_client()
        if client is None:
            return False
        try:
            return bool(await client.delete(key))
        except (RedisError, OSError) as exc:
            await self._handle_failure("delete", key, exc)
            return False

    async def delete_pattern(self, pattern: str) -> int:
        client = await self._connection.get_client()
        if client is None:
            return 0
        try:
            # SCAN instead of KEYS so large namespaces don't block the server
            keys = [key async for key in client.scan_iter(match=pattern, count=_SCAN_BATCH)]
            if not keys:
                return 0
            deleted = 0
            for start in range(0, len(keys), _SCAN_BATCH):
                deleted += await client.delete(*keys[start:start + _SCAN_BATCH])
            return deleted
        except (RedisError, OSError) as exc:
            await self._handle_failure("delete_pattern", pattern, exc)
            return 0

    async def clear(self) -> bool:
        if self.namespace:
            removed = await self.delete_pattern(f"{self.namespace}*")
            logger.info("cache.cleared", extra={"namespace": self.namespace, "removed": removed})
            return self.available

        client = await self._connection.get_client()
        if client is None:
            return False
        try:
            await client.flushdb()
            return True
        except (RedisError, OSError) as exc:
            await self._handle_failure("clear", "*", exc)
            return False
