"""Rate limiter interfaces.

The API depends on this abstraction (not a concrete implementation) so the
shared-store limiter and the in-process limiter are interchangeable, and a
supervising wrapper can swap between them at runtime.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit consume operation.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window.
        remaining: Remaining requests in the current window (0 when blocked).
        reset_at: UNIX epoch seconds when the allowance resets (end of the
            window, or end of the block when blocked).
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after_seconds: int | None


class RateLimiterUnavailableError(Exception):
    """Raised when a limiter's backing store cannot be reached."""


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @property
    @abstractmethod
    def points(self) -> int:
        """Allowance per window."""

    @abstractmethod
    async def consume(self, key: str, *, cost: int = 1) -> RateLimitResult:
        """Consume rate limit budget for a given key.

        Args:
            key: Unique identifier (e.g., client IP address).
            cost: Units to consume (default 1).

        Returns:
            RateLimitResult describing whether it was allowed.

        Raises:
            RateLimiterUnavailableError: If the backing store is unreachable.
        """
        raise NotImplementedError


def validate_limiter_args(points: int, duration_seconds: int, block_duration_seconds: int) -> None:
    """Shared constructor validation for limiter implementations.

    Raises:
        ValueError: If any argument is out of range.
    """
    if points < 1:
        raise ValueError("points must be >= 1")
    if duration_seconds < 1:
        raise ValueError("duration_seconds must be >= 1")
    if block_duration_seconds < 0:
        raise ValueError("block_duration_seconds must be >= 0")


def validate_consume_args(key: str, cost: int) -> None:
    if cost < 1:
        raise ValueError("cost must be >= 1")
    if not key:
        raise ValueError("key must be a non-empty string")
