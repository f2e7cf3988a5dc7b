from __future__ import annotations

from app.api.routes.chapters import router as chapters_router
from app.api.routes.health import router as health_router

__all__ = ["chapters_router", "health_router"]
