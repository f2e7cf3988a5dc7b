"""Process-scoped connection to the shared key/value store.

One ``RedisConnection`` is built by the composition root and shared by the
cache store and the rate limiters. The connection is established lazily, at
most once: a failed attempt leaves the client unavailable and every caller
short-circuits instead of reconnecting per call. A new attempt happens only
after ``reconnect_interval`` or when ``probe()`` is called explicitly.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable

from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.core.config import RedisSettings

logger = logging.getLogger(__name__)

ClientFactory = Callable[[], Redis]


def build_client_factory(redis_settings: RedisSettings) -> ClientFactory:
    """Return a factory creating ``redis.asyncio.Redis`` clients from settings."""

    def _factory() -> Redis:
        return Redis.from_url(
            redis_settings.connection_url(),
            password=redis_settings.password,
            decode_responses=True,
            socket_timeout=redis_settings.socket_timeout_seconds,
            socket_connect_timeout=redis_settings.connect_timeout_seconds,
        )

    return _factory


class RedisConnection:
    """Lazily connected, memoized Redis client.

    Attributes:
        reconnect_interval: Seconds to wait after a failure before the next
            lazy connection attempt.
    """

    def __init__(
        self,
        client_factory: ClientFactory,
        *,
        reconnect_interval: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client_factory = client_factory
        self.reconnect_interval = reconnect_interval
        self._clock = clock
        self._client: Redis | None = None
        self._attempted = False
        self._failed_at: float | None = None
        self._connect_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, redis_settings: RedisSettings) -> "RedisConnection":
        return cls(
            build_client_factory(redis_settings),
            reconnect_interval=redis_settings.reconnect_interval_seconds,
        )

    @property
    def available(self) -> bool:
        return self._client is not None

    def _retry_due(self) -> bool:
        if not self._attempted:
            return True
        if self._failed_at is None:
            return False
        return self._clock() - self._failed_at >= self.reconnect_interval

    async def get_client(self) -> Redis | None:
        """Return the connected client, or None while the store is unavailable."""
        if self._client is not None:
            return self._client
        if self._retry_due():
            await self._connect(force=False)
        return self._client

    async def probe(self) -> bool:
        """Check connectivity now, reconnecting if needed.

        Returns:
            True when the store answered a PING.
        """
        client = self._client
        if client is not None:
            try:
                await client.ping()
                return True
            except (RedisError, OSError) as exc:
                await self.mark_unavailable(exc)
        await self._connect(force=True)
        return self._client is not None

    async def mark_unavailable(self, exc: BaseException | None = None) -> None:
        """Drop the current client after a connection-level failure."""
        client, self._client = self._client, None
        self._attempted = True
        self._failed_at = self._clock()
        if client is not None:
            logger.warning(
                "redis.unavailable",
                extra={"error": str(exc) if exc else None},
            )
            await _close_quietly(client)

    async def _connect(self, *, force: bool) -> None:
        async with self._connect_lock:
            # Another coroutine may have connected while we waited
            if self._client is not None or (not force and not self._retry_due()):
                return

            self._attempted = True
            client = self._client_factory()
            try:
                await client.ping()
            except (RedisError, OSError) as exc:
                self._failed_at = self._clock()
                logger.warning(
                    "redis.connect_failed",
                    extra={"error": str(exc), "retry_in_s": self.reconnect_interval},
                )
                await _close_quietly(client)
                return

            self._client = client
            self._failed_at = None
            logger.info("redis.connected")

    async def close(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            await _close_quietly(client)
            logger.info("redis.closed")


async def _close_quietly(client: Redis) -> None:
    try:
        await client.aclose()
    except (RedisError, OSError) as exc:
        logger.debug("redis.close_failed", extra={"error": str(exc)})
