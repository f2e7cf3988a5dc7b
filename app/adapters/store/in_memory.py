"""In-memory chapter store.

Process-local and thread-safe. Used for single-process deployments seeded
from a JSON file, and in tests.
"""

from __future__ import annotations

import logging
import secrets
import threading
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from app.adapters.store.base import (
    DEFAULT_SORT,
    AbstractChapterRepository,
    ChapterFilters,
    SortSpec,
)
from app.core.errors import DuplicateChapterError, StoreAppError
from app.schemas.chapter import Chapter, ChapterCreate

logger = logging.getLogger(__name__)


def _new_id() -> str:
    # 24 hex chars, same shape as a document-store ObjectId
    return secrets.token_hex(12)


def _sort_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _matches(chapter: Chapter, filters: ChapterFilters) -> bool:
    for field_name, expected in filters.items():
        actual = getattr(chapter, field_name)
        if _sort_value(actual) != _sort_value(expected):
            return False
    return True


def _query_failed(operation: str, exc: Exception) -> StoreAppError:
    logger.error("store.query_failed", extra={"operation": operation, "error": str(exc)})
    return StoreAppError(
        code="store_query_failed",
        message="The chapter store could not run the query",
        details={"context": {"operation": operation}},
    )


class InMemoryChapterRepository(AbstractChapterRepository):
    """Chapter store held in a dict, keyed by id, with a unique name index."""

    def __init__(self) -> None:
        self._by_id: dict[str, Chapter] = {}
        self._ids_by_name: dict[str, str] = {}
        self._lock = threading.RLock()

    def _select(self, filters: ChapterFilters) -> list[Chapter]:
        with self._lock:
            try:
                return [c for c in self._by_id.values() if _matches(c, filters)]
            except AttributeError as exc:
                raise _query_failed("filter", exc) from exc

    async def find(
        self,
        filters: ChapterFilters,
        *,
        skip: int = 0,
        limit: int | None = None,
        sort: SortSpec = DEFAULT_SORT,
    ) -> list[Chapter]:
        chapters = self._select(filters)
        # Stable sorts applied from the least to the most significant key
        try:
            for field_name, direction in reversed(list(sort)):
                chapters.sort(
                    key=lambda c: _sort_value(getattr(c, field_name)),
                    reverse=direction < 0,
                )
        except (AttributeError, TypeError) as exc:
            raise _query_failed("sort", exc) from exc
        end = None if limit is None else skip + limit
        return chapters[skip:end]

    async def count(self, filters: ChapterFilters) -> int:
        return len(self._select(filters))

    async def get(self, chapter_id: str) -> Chapter | None:
        with self._lock:
            return self._by_id.get(chapter_id)

    async def insert_one(self, data: ChapterCreate) -> Chapter:
        now = datetime.now(timezone.utc)
        with self._lock:
            if data.chapter in self._ids_by_name:
                raise DuplicateChapterError(
                    code="duplicate_chapter",
                    message=f"A chapter named '{data.chapter}' already exists",
                    details={"chapter": data.chapter},
                )
            chapter = Chapter(
                **data.model_dump(),
                id=_new_id(),
                created_at=now,
                updated_at=now,
            )
            self._by_id[chapter.id] = chapter
            self._ids_by_name[chapter.chapter] = chapter.id
        return chapter

    async def delete_many(self, filters: ChapterFilters) -> int:
        with self._lock:
            doomed = [c for c in self._by_id.values() if _matches(c, filters)]
            for chapter in doomed:
                del self._by_id[chapter.id]
                self._ids_by_name.pop(chapter.chapter, None)
        if doomed:
            logger.info("store.deleted", extra={"deleted": len(doomed)})
        return len(doomed)
