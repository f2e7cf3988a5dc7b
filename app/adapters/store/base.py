"""Chapter store interfaces.

The store is the source of truth. Unlike cache failures, store failures are
not recovered: implementations raise ``StoreAppError`` and the request fails.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Sequence

from app.schemas.chapter import Chapter, ChapterCreate

# Exact-match filters keyed by Chapter attribute name (e.g. {"class_name": ...})
ChapterFilters = dict[str, Any]
# (attribute name, 1 for ascending / -1 for descending)
SortSpec = Sequence[tuple[str, int]]

DEFAULT_SORT: SortSpec = (("subject", 1), ("unit", 1), ("chapter", 1))


class AbstractChapterRepository(ABC):
    """Interface for chapter persistence."""

    @abstractmethod
    async def find(
        self,
        filters: ChapterFilters,
        *,
        skip: int = 0,
        limit: int | None = None,
        sort: SortSpec = DEFAULT_SORT,
    ) -> list[Chapter]:
        """Return chapters matching ``filters``, sorted, then paginated."""
        raise NotImplementedError

    @abstractmethod
    async def count(self, filters: ChapterFilters) -> int:
        raise NotImplementedError

    @abstractmethod
    async def get(self, chapter_id: str) -> Chapter | None:
        raise NotImplementedError

    @abstractmethod
    async def insert_one(self, data: ChapterCreate) -> Chapter:
        """Persist a new chapter.

        Raises:
            DuplicateChapterError: If a chapter with the same name exists.
            StoreAppError: If the store is unavailable.
        """
        raise NotImplementedError

    @abstractmethod
    async def delete_many(self, filters: ChapterFilters) -> int:
        """Delete chapters matching ``filters`` (all when empty)."""
        raise NotImplementedError
