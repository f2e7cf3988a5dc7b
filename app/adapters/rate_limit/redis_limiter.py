"""Shared-store rate limiter backed by Redis.

Each identity has one counter key ``{key_prefix}{identity}``. A single
MULTI/EXEC transaction creates the key with the window expiry if absent,
increments it and reads its remaining TTL, so "check and consume" is atomic
across every API process sharing the store.

When a request pushes the counter past the allowance, the key's TTL is
stretched to the block duration: every process then sees the identity as
blocked until the key expires. The process that observed the block also
remembers ``blocked_until`` locally and rejects further requests without a
store round-trip.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from typing import Callable

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from app.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitResult,
    RateLimiterUnavailableError,
    validate_consume_args,
    validate_limiter_args,
)
from app.adapters.redis_connection import RedisConnection

logger = logging.getLogger(__name__)


class RedisRateLimiter(AbstractRateLimiter):
    """Points-per-window limiter whose counters live in Redis."""

    def __init__(
        self,
        connection: RedisConnection,
        *,
        key_prefix: str,
        points: int,
        duration_seconds: int,
        block_duration_seconds: int = 0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        validate_limiter_args(points, duration_seconds, block_duration_seconds)

        self._connection = connection
        self.key_prefix = key_prefix
        self._points = points
        self._duration = duration_seconds
        self._block_duration = block_duration_seconds
        self._clock = clock
        self._blocked_until: dict[str, float] = {}
        self._memo_lock = threading.Lock()

    @property
    def points(self) -> int:
        return self._points

    def _locally_blocked_until(self, key: str, now: float) -> float | None:
        with self._memo_lock:
            until = self._blocked_until.get(key)
            if until is None:
                return None
            if now >= until:
                del self._blocked_until[key]
                return None
            return until

    def _remember_block(self, key: str, until: float) -> None:
        with self._memo_lock:
            self._blocked_until[key] = until
            if len(self._blocked_until) > 10_000:
                now = self._clock()
                for stale in [k for k, v in self._blocked_until.items() if v <= now]:
                    del self._blocked_until[stale]

    def _blocked_result(self, now: float, until: float) -> RateLimitResult:
        return RateLimitResult(
            allowed=False,
            limit=self._points,
            remaining=0,
            reset_at=until,
            retry_after_seconds=max(1, int(math.ceil(until - now))),
        )

    async def consume(self, key: str, *, cost: int = 1) -> RateLimitResult:
        validate_consume_args(key, cost)

        now = self._clock()
        until = self._locally_blocked_until(key, now)
        if until is not None:
            return self._blocked_result(now, until)

        client = await self._connection.get_client()
        if client is None:
            raise RateLimiterUnavailableError("shared rate limit store unavailable")

        store_key = f"{self.key_prefix}{key}"
        try:
            async with client.pipeline(transaction=True) as pipe:
                pipe.set(store_key, 0, ex=self._duration, nx=True)
                pipe.incrby(store_key, cost)
                pipe.pttl(store_key)
                _, consumed, ttl_ms = await pipe.execute()

            consumed = int(consumed)
            ttl_ms = int(ttl_ms)
            if ttl_ms < 0:
                # Key lost its expiry (e.g. restored from a snapshot); re-arm it
                await client.expire(store_key, self._duration)
                ttl_ms = self._duration * 1000

            if consumed <= self._points:
                return RateLimitResult(
                    allowed=True,
                    limit=self._points,
                    remaining=self._points - consumed,
                    reset_at=now + ttl_ms / 1000,
                    retry_after_seconds=None,
                )

            if self._block_duration > 0 and consumed - cost <= self._points:
                # This request crossed the threshold: start the shared block
                ttl_ms = self._block_duration * 1000
                await client.pexpire(store_key, ttl_ms)
        except (RedisError, OSError) as exc:
            if isinstance(exc, (RedisConnectionError, RedisTimeoutError, OSError)):
                await self._connection.mark_unavailable(exc)
            raise RateLimiterUnavailableError(str(exc)) from exc

        until = now + ttl_ms / 1000
        self._remember_block(key, until)
        return self._blocked_result(now, until)
