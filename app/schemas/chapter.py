"""Pydantic schemas for chapter records and API responses.

JSON uses camelCase field names (``yearWiseQuestionCount``, ``isWeakChapter``)
and the reserved word ``class`` for the class level; Python code uses
snake_case attributes.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt
from pydantic.alias_generators import to_camel


class ChapterClass(str, Enum):
    CLASS_11 = "Class 11"
    CLASS_12 = "Class 12"


class ChapterStatus(str, Enum):
    NOT_STARTED = "Not Started"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"


class CamelModel(BaseModel):
    """Base model reading and writing camelCase JSON."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class ChapterCreate(CamelModel):
    """A chapter as submitted through the bulk upload or the seed file."""

    subject: str = Field(..., min_length=1, description="Subject, e.g. 'Physics'.")
    chapter: str = Field(..., min_length=1, description="Chapter name, unique across the catalog.")
    class_name: ChapterClass = Field(..., alias="class", description="Class level.")
    unit: str = Field(..., min_length=1, description="Unit the chapter belongs to.")
    year_wise_question_count: dict[str, NonNegativeInt] = Field(
        default_factory=dict,
        description="Number of questions asked per year, keyed by year.",
    )
    question_solved: NonNegativeInt = Field(0, description="Questions solved so far.")
    status: ChapterStatus = Field(ChapterStatus.NOT_STARTED, description="Progress status.")
    is_weak_chapter: bool = Field(False, description="Whether the chapter is flagged as weak.")


class Chapter(ChapterCreate):
    """A stored chapter, including store-assigned fields."""

    id: str = Field(..., description="Store-assigned identifier.")
    created_at: datetime
    updated_at: datetime

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict in the public camelCase shape."""
        return self.model_dump(mode="json", by_alias=True)


class ChapterListResponse(CamelModel):
    """Paginated chapter listing envelope."""

    success: bool = True
    count: int = Field(..., description="Number of chapters on this page.")
    total_records: int = Field(..., description="Chapters matching the filters.")
    total_pages: int = Field(..., description="ceil(totalRecords / limit); 0 when empty.")
    current_page: int
    data: list[dict[str, Any]]


class ChapterResponse(CamelModel):
    success: bool = True
    data: dict[str, Any]


class FailedChapter(CamelModel):
    chapter: str | None = Field(None, description="Chapter name from the rejected record, if any.")
    error: str


class UploadResponse(CamelModel):
    """Outcome of a bulk upload; individual records may fail independently."""

    success: bool = True
    message: str
    success_count: int
    fail_count: int
    failed_chapters: list[FailedChapter] = Field(default_factory=list)
