"""FastAPI dependencies resolving collaborators from the application container."""

from __future__ import annotations

from fastapi import Request

from app.core.config import Settings
from app.core.container import AppContainer
from app.services.chapter_service import ChapterService


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_container(request: Request) -> AppContainer:
    return request.app.state.container


def get_chapter_service(request: Request) -> ChapterService:
    return get_container(request).chapter_service
