"""Chapter catalog service: cached reads, bulk imports and cache invalidation.

This service is the core business logic behind the chapter routes. It handles:
- Query normalization (filters and lenient pagination parsing)
- Read-through caching of listings and single chapters
- Bulk imports with per-record validation
- Invalidation of the listing namespace after every mutation
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Mapping

from pydantic import ValidationError

from app.adapters.store.base import DEFAULT_SORT, AbstractChapterRepository, ChapterFilters
from app.core.cache_keys import CHAPTER_LIST_RESOURCE, CacheKeyBuilder
from app.core.errors import DuplicateChapterError, NotFoundAppError
from app.schemas.chapter import Chapter, ChapterCreate
from app.services.read_through import ReadThroughCache

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10


def _parse_positive_int(raw: str | None, default: int) -> int:
    """Parse a pagination value, falling back to ``default`` instead of failing."""
    if raw is None:
        return default
    try:
        value = int(str(raw).strip())
    except ValueError:
        return default
    return value if value >= 1 else default


def _clean(raw: str | None) -> str | None:
    if raw is None:
        return None
    value = raw.strip()
    return value or None


@dataclass(frozen=True)
class ChapterListQuery:
    """Normalized listing query.

    Attributes:
        class_name: Exact class filter (``"Class 11"``), or None.
        unit: Exact unit filter, or None.
        status: Exact status filter, or None.
        subject: Exact subject filter, or None.
        weak_chapters: Only weak chapters when True.
        page: 1-based page number.
        limit: Page size.
    """

    class_name: str | None = None
    unit: str | None = None
    status: str | None = None
    subject: str | None = None
    weak_chapters: bool = False
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @classmethod
    def from_params(cls, params: Mapping[str, str]) -> "ChapterListQuery":
        """Build a query from raw query-string parameters.

        Unknown parameters are ignored; ``weakChapters`` is only enabled by the
        exact string ``"true"``; bad pagination values become defaults.
        """
        return cls(
            class_name=_clean(params.get("class")),
            unit=_clean(params.get("unit")),
            status=_clean(params.get("status")),
            subject=_clean(params.get("subject")),
            weak_chapters=params.get("weakChapters") == "true",
            page=_parse_positive_int(params.get("page"), DEFAULT_PAGE),
            limit=_parse_positive_int(params.get("limit"), DEFAULT_LIMIT),
        )

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    def key_params(self) -> dict[str, Any]:
        return {
            "class": self.class_name,
            "unit": self.unit,
            "status": self.status,
            "subject": self.subject,
            "weakChapters": self.weak_chapters,
            "page": self.page,
            "limit": self.limit,
        }

    def filters(self) -> ChapterFilters:
        filters: ChapterFilters = {}
        if self.class_name:
            filters["class_name"] = self.class_name
        if self.unit:
            filters["unit"] = self.unit
        if self.status:
            filters["status"] = self.status
        if self.subject:
            filters["subject"] = self.subject
        if self.weak_chapters:
            filters["is_weak_chapter"] = True
        return filters


def total_pages(total_records: int, limit: int) -> int:
    """Number of pages needed for ``total_records`` (0 when there are none)."""
    if total_records <= 0:
        return 0
    return math.ceil(total_records / limit)


def build_listing_envelope(
    chapters: list[Chapter],
    *,
    total_records: int,
    page: int,
    limit: int,
) -> dict[str, Any]:
    return {
        "success": True,
        "count": len(chapters),
        "totalRecords": total_records,
        "totalPages": total_pages(total_records, limit),
        "currentPage": page,
        "data": [chapter.to_payload() for chapter in chapters],
    }


def _record_name(record: Any) -> str | None:
    """Chapter name for a failure report; non-string names are stringified."""
    if not isinstance(record, dict) or record.get("chapter") is None:
        return None
    name = record["chapter"]
    return name if isinstance(name, str) else str(name)


def _describe_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts)


@dataclass
class ImportReport:
    """Outcome of a bulk import."""

    imported: list[Chapter] = field(default_factory=list)
    failed: list[dict[str, Any]] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.imported)

    @property
    def fail_count(self) -> int:
        return len(self.failed)


class ChapterService:
    """Chapter reads through the cache, and mutations that invalidate it.

    Attributes:
        repository: Source-of-truth chapter store.
        cache: Read-through cache shared by every chapter read.
        keys: Cache key builder.
    """

    def __init__(
        self,
        repository: AbstractChapterRepository,
        cache: ReadThroughCache,
        keys: CacheKeyBuilder,
    ) -> None:
        self.repository = repository
        self.cache = cache
        self.keys = keys

    async def list_chapters(self, query: ChapterListQuery) -> dict[str, Any]:
        """Return a paginated listing envelope, served from cache when possible.

        Raises:
            StoreAppError: If the store fails on a cache miss.
        """
        cache_key = self.keys.chapter_list_key(query.key_params())

        async def compute() -> dict[str, Any]:
            filters = query.filters()
            total = await self.repository.count(filters)
            chapters = await self.repository.find(
                filters,
                skip=query.skip,
                limit=query.limit,
                sort=DEFAULT_SORT,
            )
            return build_listing_envelope(
                chapters,
                total_records=total,
                page=query.page,
                limit=query.limit,
            )

        return await self.cache.get_or_compute(cache_key, compute)

    async def get_chapter(self, chapter_id: str) -> dict[str, Any]:
        """Return a single chapter payload, served from cache when possible.

        Raises:
            NotFoundAppError: If no chapter has this id (not cached).
        """

        async def compute() -> dict[str, Any]:
            chapter = await self.repository.get(chapter_id)
            if chapter is None:
                raise NotFoundAppError(
                    code="chapter_not_found",
                    message="Chapter not found",
                    details={"chapter_id": chapter_id},
                )
            return chapter.to_payload()

        return await self.cache.get_or_compute(self.keys.chapter_key(chapter_id), compute)

    async def import_chapters(self, records: list[Any]) -> ImportReport:
        """Validate and insert each record independently, then invalidate listings.

        Invalid or duplicate records are reported, not raised. Single-chapter
        cache entries are left alone: ids of existing chapters do not change
        on insert.

        Raises:
            StoreAppError: If the store itself fails.
        """
        report = ImportReport()

        for record in records:
            name = _record_name(record)
            try:
                data = ChapterCreate.model_validate(record)
                report.imported.append(await self.repository.insert_one(data))
            except ValidationError as exc:
                report.failed.append({"chapter": name, "error": _describe_validation_error(exc)})
            except DuplicateChapterError as exc:
                report.failed.append({"chapter": name, "error": exc.message})

        await self.invalidate_listings()

        logger.info(
            "chapters.import_completed",
            extra={"imported": report.success_count, "failed": report.fail_count},
        )
        return report

    async def delete_all(self) -> int:
        deleted = await self.repository.delete_many({})
        await self.invalidate_listings()
        return deleted

    async def invalidate_listings(self) -> int:
        """Drop every cached listing page. Never raises."""
        return await self.cache.invalidate(self.keys.namespace_pattern(CHAPTER_LIST_RESOURCE))
