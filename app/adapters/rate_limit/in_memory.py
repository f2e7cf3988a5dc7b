"""In-memory points/window rate limiter with block duration.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
  This is the limiter used while the shared store is unreachable.
- Thread-safe: uses a lock around shared state.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from app.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitResult,
    validate_consume_args,
    validate_limiter_args,
)

# Expired states are swept after this many consume calls
_PRUNE_EVERY = 1024


@dataclass
class _BucketState:
    window_start: float
    consumed: int
    blocked_until: float | None = None


class InMemoryRateLimiter(AbstractRateLimiter):
    """Rate limiter granting ``points`` per ``duration_seconds`` per key.

    A window starts with the first request from a key. Once a key asks for
    more than its allowance it is blocked for ``block_duration_seconds``
    (when non-zero), regardless of the window rolling over in the meantime.
    After the block ends the key starts over with a fresh allowance.
    """

    def __init__(
        self,
        *,
        points: int,
        duration_seconds: int,
        block_duration_seconds: int = 0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            points: Maximum number of allowed units per window.
            duration_seconds: Size of the window in seconds.
            block_duration_seconds: How long a key stays blocked once it
                exceeds its allowance (0 means until the window ends).
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If any argument is invalid.
        """
        validate_limiter_args(points, duration_seconds, block_duration_seconds)

        self._points = points
        self._duration = duration_seconds
        self._block_duration = block_duration_seconds
        self._clock = clock
        self._lock = threading.RLock()
        self._state_by_key: dict[str, _BucketState] = {}
        self._calls = 0

    @property
    def points(self) -> int:
        return self._points

    def _is_stale(self, state: _BucketState, now: float) -> bool:
        if state.blocked_until is not None:
            return now >= state.blocked_until
        return now >= state.window_start + self._duration

    def _prune_locked(self, now: float) -> None:
        stale = [k for k, s in self._state_by_key.items() if self._is_stale(s, now)]
        for key in stale:
            del self._state_by_key[key]

    def _blocked_result(self, *, now: float, until: float) -> RateLimitResult:
        return RateLimitResult(
            allowed=False,
            limit=self._points,
            remaining=0,
            reset_at=until,
            retry_after_seconds=max(1, int(math.ceil(until - now))),
        )

    async def consume(self, key: str, *, cost: int = 1) -> RateLimitResult:
        """Consume rate limit budget for the provided key.

        Args:
            key: Unique identifier for rate limiting (e.g., client IP).
            cost: Units to consume (default 1).

        Returns:
            RateLimitResult with allowance decision and metadata.

        Raises:
            ValueError: If key is empty or cost is invalid.
        """
        validate_consume_args(key, cost)

        now = self._clock()

        with self._lock:
            self._calls += 1
            if self._calls % _PRUNE_EVERY == 0:
                self._prune_locked(now)

            state = self._state_by_key.get(key)
            if state is not None and state.blocked_until is not None and now < state.blocked_until:
                return self._blocked_result(now=now, until=state.blocked_until)

            if state is None or self._is_stale(state, now):
                state = _BucketState(window_start=now, consumed=0)
                self._state_by_key[key] = state

            window_end = state.window_start + self._duration

            if state.consumed + cost <= self._points:
                state.consumed += cost
                return RateLimitResult(
                    allowed=True,
                    limit=self._points,
                    remaining=self._points - state.consumed,
                    reset_at=window_end,
                    retry_after_seconds=None,
                )

            if self._block_duration > 0:
                state.blocked_until = now + self._block_duration
                return self._blocked_result(now=now, until=state.blocked_until)

            return self._blocked_result(now=now, until=window_end)
