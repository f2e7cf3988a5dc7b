"""Rate limiting dependencies for FastAPI routes.

This module wires the limiter tiers built by the container into the HTTP
layer. Two tiers exist:
- general: guards the root route.
- api: guards ``/api/v1/chapters*`` with a larger allowance.

Each tier keeps its own per-identity state, so spending the general allowance
never affects the API allowance. Requests are identified by client IP,
falling back to the first ``X-Forwarded-For`` entry and then to a sentinel.
"""

from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timezone

from fastapi import Request, Response

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from app.core.errors import RateLimitExceededError

logger = logging.getLogger(__name__)

UNKNOWN_IDENTITY = "0.0.0.0"

GENERAL_LIMIT_MESSAGE = "Too many requests. Please try again later."
API_LIMIT_MESSAGE = "API rate limit exceeded. Please try again later."


def client_identity(request: Request) -> str:
    """Return the rate-limit identity for ``request``."""
    if request.client and request.client.host:
        return request.client.host

    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    return UNKNOWN_IDENTITY


def _hash_identity(identity: str) -> str:
    """Hash the identity for logging without exposing client addresses."""
    return hashlib.sha256(identity.encode()).hexdigest()[:16]


def format_reset(reset_at: float) -> str:
    """Render a UNIX timestamp as ISO-8601 UTC."""
    return datetime.fromtimestamp(reset_at, tz=timezone.utc).isoformat()


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": format_reset(result.reset_at),
    }
    if not result.allowed:
        headers["Retry-After"] = str(result.retry_after_seconds or 0)
    return headers


async def _enforce(
    request: Request,
    response: Response,
    *,
    tier: str,
    limiter: AbstractRateLimiter | None,
    message: str,
) -> None:
    if limiter is None:
        return

    container = request.app.state.container
    include_headers = container.settings.rate_limit.include_headers

    identity = client_identity(request)
    result = await limiter.consume(identity)
    headers = rate_limit_headers(result) if include_headers else {}

    if result.allowed:
        logger.info(
            "rate_limit.allowed",
            extra={
                "tier": tier,
                "key_hash": _hash_identity(identity),
                "limit": result.limit,
                "remaining": result.remaining,
            },
        )
        response.headers.update(headers)
        # Error responses are built by the exception handlers, which re-apply these
        request.state.rate_limit_headers = headers
        return

    retry_after = result.retry_after_seconds or 0
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "tier": tier,
            "key_hash": _hash_identity(identity),
            "limit": result.limit,
            "retry_after_s": retry_after,
        },
    )
    raise RateLimitExceededError(
        code="rate_limit_exceeded",
        message=message,
        retry_after=retry_after,
        headers=headers,
    )


async def enforce_general_rate_limit(request: Request, response: Response) -> None:
    """FastAPI dependency consuming one unit of the general allowance.

    Raises:
        RateLimitExceededError: When the identity is over its allowance.
    """
    await _enforce(
        request,
        response,
        tier="general",
        limiter=request.app.state.container.general_limiter,
        message=GENERAL_LIMIT_MESSAGE,
    )


async def enforce_api_rate_limit(request: Request, response: Response) -> None:
    """FastAPI dependency consuming one unit of the API allowance.

    Raises:
        RateLimitExceededError: When the identity is over its allowance.
    """
    await _enforce(
        request,
        response,
        tier="api",
        limiter=request.app.state.container.api_limiter,
        message=API_LIMIT_MESSAGE,
    )
