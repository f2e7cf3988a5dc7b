"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers and
the collaborator container) to keep tests able to build isolated apps.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api.routes import chapters_router, health_router
from app.core.config import Settings, settings
from app.core.container import AppContainer, build_container
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.openapi import apply_openapi_customizations
from app.services.seeding import seed_store

logger = logging.getLogger(__name__)


def _build_lifespan(app_settings: Settings, container: AppContainer | None):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if container is not None:
            # Caller owns an injected container and its lifecycle
            yield
            return

        built = await build_container(app_settings)
        app.state.container = built
        await seed_store(built.chapter_service, app_settings.store)
        logger.info("app.started", extra={"app_env": app_settings.app_env})
        try:
            yield
        finally:
            await built.aclose()
            logger.info("app.stopped")

    return lifespan


def create_app(container: AppContainer | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        container: Prebuilt collaborators. When omitted, the container is
            built from settings at startup and closed at shutdown.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    app_settings = container.settings if container is not None else settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(app_settings.log)

    app = FastAPI(
        title="Chapter Performance Dashboard API",
        description=(
            "Paginated, filterable read access to a catalog of chapters, served "
            "through a read-through cache and guarded by per-IP rate limits, plus "
            "an admin-only bulk upload that invalidates cached listings."
        ),
        version="0.1.0",
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
        lifespan=_build_lifespan(app_settings, container),
    )

    app.state.settings = app_settings
    if container is not None:
        app.state.container = container

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(health_router)
    app.include_router(chapters_router)

    # OpenAPI customizations (security scheme, tags)
    apply_openapi_customizations(app)

    return app
