from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, File, Request, UploadFile

from app.api.dependencies import get_chapter_service, get_settings
from app.core.auth import verify_admin_token
from app.core.config import Settings
from app.core.errors import ValidationAppError
from app.core.file_validation import (
    ensure_json_content_type,
    parse_chapter_array,
    read_upload_file_limited,
)
from app.core.rate_limit import enforce_api_rate_limit
from app.schemas.chapter import ChapterListResponse, ChapterResponse, UploadResponse
from app.services.chapter_service import ChapterListQuery, ChapterService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/chapters",
    tags=["Chapters"],
    dependencies=[Depends(enforce_api_rate_limit)],
)


def build_upload_message(success_count: int, fail_count: int) -> str:
    return f"Successfully uploaded {success_count} chapters. {fail_count} chapters failed."


@router.get("", response_model=ChapterListResponse, response_model_by_alias=True)
async def list_chapters(
    request: Request,
    service: Annotated[ChapterService, Depends(get_chapter_service)],
) -> dict[str, Any]:
    """List chapters with optional filters and pagination.

    Query parameters: ``class``, ``unit``, ``status``, ``subject``,
    ``weakChapters=true``, ``page`` (default 1) and ``limit`` (default 10).
    Unparseable pagination values fall back to their defaults.
    """
    query = ChapterListQuery.from_params(request.query_params)
    return await service.list_chapters(query)


@router.get("/{chapter_id}", response_model=ChapterResponse)
async def get_chapter(
    chapter_id: str,
    service: Annotated[ChapterService, Depends(get_chapter_service)],
) -> dict[str, Any]:
    """Return a single chapter by id (404 when unknown)."""
    return {"success": True, "data": await service.get_chapter(chapter_id)}


@router.post(
    "",
    response_model=UploadResponse,
    response_model_by_alias=True,
    dependencies=[Depends(verify_admin_token)],
)
async def upload_chapters(
    service: Annotated[ChapterService, Depends(get_chapter_service)],
    app_settings: Annotated[Settings, Depends(get_settings)],
    chapters_file: UploadFile | None = File(
        None,
        alias="chaptersFile",
        description="JSON file containing an array of chapters",
    ),
) -> dict[str, Any]:
    """Bulk-import chapters from an uploaded JSON array (admin only).

    Each record is validated and inserted independently; rejected records are
    reported in ``failedChapters``. Every cached listing is invalidated
    afterwards.
    """
    if chapters_file is None:
        raise ValidationAppError(code="missing_file", message="Please upload a JSON file")

    ensure_json_content_type(chapters_file)
    records = parse_chapter_array(
        await read_upload_file_limited(chapters_file, app_settings.app.max_upload_size_mb)
    )

    report = await service.import_chapters(records)
    return {
        "success": True,
        "message": build_upload_message(report.success_count, report.fail_count),
        "successCount": report.success_count,
        "failCount": report.fail_count,
        "failedChapters": report.failed,
    }
