"""Supervising limiter that swaps to an in-process fallback on store outages.

The primary (shared-store) limiter is used while the store is reachable.
When it reports the store unavailable, the wrapper switches to the fallback
limiter, which has a smaller, fixed allowance and is not shared across
processes. While degraded it re-probes the store at most once per
``probe_interval`` and swaps back once the probe succeeds.
"""

from __future__ import annotations

import logging
import time
from typing import Awaitable, Callable

from app.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitResult,
    RateLimiterUnavailableError,
)

logger = logging.getLogger(__name__)

Probe = Callable[[], Awaitable[bool]]


class ResilientRateLimiter(AbstractRateLimiter):
    """Route consumes to the primary limiter, or to the fallback while degraded.

    Attributes:
        name: Tier name used in logs (e.g. ``"general"``, ``"api"``).
    """

    def __init__(
        self,
        primary: AbstractRateLimiter,
        fallback: AbstractRateLimiter,
        *,
        name: str,
        probe: Probe | None = None,
        probe_interval: float = 30.0,
        primary_available: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self._primary = primary
        self._fallback = fallback
        self._probe = probe
        self._probe_interval = probe_interval
        self._clock = clock
        self._degraded = not primary_available
        self._degraded_since: float | None = None if primary_available else clock()

        if self._degraded:
            logger.warning(
                "rate_limit.fallback_selected",
                extra={"tier": self.name, "fallback_points": fallback.points},
            )

    @property
    def using_fallback(self) -> bool:
        return self._degraded

    @property
    def points(self) -> int:
        return self._fallback.points if self._degraded else self._primary.points

    def _activate_fallback(self, exc: Exception) -> None:
        self._degraded = True
        self._degraded_since = self._clock()
        logger.warning(
            "rate_limit.fallback_activated",
            extra={
                "tier": self.name,
                "error": str(exc),
                "fallback_points": self._fallback.points,
            },
        )

    async def _maybe_restore(self) -> None:
        if self._degraded_since is not None and self._clock() - self._degraded_since < self._probe_interval:
            return

        try:
            restored = True if self._probe is None else await self._probe()
        except Exception as exc:  # probe failures only keep us on the fallback
            logger.warning("rate_limit.probe_error", extra={"tier": self.name, "error": str(exc)})
            restored = False

        if not restored:
            self._degraded_since = self._clock()
            logger.debug("rate_limit.probe_failed", extra={"tier": self.name})
            return

        self._degraded = False
        self._degraded_since = None
        logger.info("rate_limit.primary_restored", extra={"tier": self.name})

    async def consume(self, key: str, *, cost: int = 1) -> RateLimitResult:
        if self._degraded:
            await self._maybe_restore()

        if not self._degraded:
            try:
                return await self._primary.consume(key, cost=cost)
            except RateLimiterUnavailableError as exc:
                self._activate_fallback(exc)

        return await self._fallback.consume(key, cost=cost)
