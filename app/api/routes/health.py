from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from app.api.dependencies import get_container
from app.core.container import AppContainer
from app.core.rate_limit import enforce_general_rate_limit

router = APIRouter(tags=["Health"])

WELCOME_MESSAGE = "Welcome to Chapter Performance Dashboard API"


@router.get("/", dependencies=[Depends(enforce_general_rate_limit)])
async def root() -> dict:
    return {"success": True, "message": WELCOME_MESSAGE}


@router.get("/health")
async def health_check(container: Annotated[AppContainer, Depends(get_container)]) -> dict:
    """Health check endpoint.

    Used by load balancers and monitoring systems to determine service health.
    The API stays up when the shared store is down, so degraded cache or
    rate-limiter backends are reported but never fail the check.

    Returns:
        dict: ``status`` plus the current cache and rate limiter modes.
    """

    return {
        "status": "ok",
        "cache": container.cache_status(),
        "rateLimiter": container.rate_limiter_status(),
    }
