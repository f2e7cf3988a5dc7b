"""Upload validation for the bulk chapter import."""
from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import UploadFile

from app.core.errors import PayloadTooLargeAppError, ValidationAppError

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"
_CHUNK_SIZE = 64 * 1024


def _too_large(max_size_mb: int, max_bytes: int) -> PayloadTooLargeAppError:
    return PayloadTooLargeAppError(
        code="file_too_large",
        message=f"File too large. Maximum size: {max_size_mb}MB",
        details={"max_bytes": max_bytes},
    )


def ensure_json_content_type(file: UploadFile) -> None:
    """Reject uploads whose declared media type is not JSON.

    Raises:
        ValidationAppError: For any other content type.
    """
    content_type = (file.content_type or "").split(";", 1)[0].strip().lower()
    if content_type != JSON_CONTENT_TYPE:
        logger.warning(
            "file_validation.rejected_content_type",
            extra={"content_type": content_type, "upload_filename": file.filename},
        )
        raise ValidationAppError(
            code="unsupported_file_type",
            message="Only JSON files are allowed",
            details={"content_type": content_type},
        )


async def read_upload_file_limited(file: UploadFile, max_size_mb: int) -> bytes:
    """Read an uploaded file enforcing the configured size limit.

    The multipart-declared size is checked first; the chunked read enforces
    the limit again so an oversized body is never fully buffered.

    Raises:
        PayloadTooLargeAppError: If the file exceeds the limit.
    """
    max_bytes = max_size_mb * 1024 * 1024

    declared = getattr(file, "size", None)
    if declared is not None and declared > max_bytes:
        logger.warning(
            "file_validation.rejected_by_header",
            extra={"file_size": declared, "max_bytes": max_bytes},
        )
        raise _too_large(max_size_mb, max_bytes)

    buffer = bytearray()
    while chunk := await file.read(_CHUNK_SIZE):
        buffer.extend(chunk)
        if len(buffer) > max_bytes:
            logger.warning(
                "file_validation.rejected_by_chunked_read",
                extra={"size": len(buffer), "max_bytes": max_bytes},
            )
            raise _too_large(max_size_mb, max_bytes)

    return bytes(buffer)


def parse_chapter_array(raw: bytes) -> list[Any]:
    """Decode an upload body into a list of raw chapter records.

    Raises:
        ValidationAppError: If the body is not JSON, or not a JSON array.
    """
    try:
        records = json.loads(raw)
    except (UnicodeDecodeError, ValueError) as exc:
        raise ValidationAppError(code="invalid_json", message="Invalid JSON format") from exc

    if not isinstance(records, list):
        raise ValidationAppError(
            code="invalid_payload",
            message="JSON content must be an array of chapters",
        )
    return records
