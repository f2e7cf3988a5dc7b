"""Startup import of chapters from a JSON seed file."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from app.core.config import StoreSettings
from app.core.errors import AppError
from app.services.chapter_service import ChapterService, ImportReport

logger = logging.getLogger(__name__)


def load_seed_records(path: Path) -> list:
    """Read a JSON array of chapter records.

    Raises:
        OSError: If the file cannot be read.
        ValueError: If the content is not a JSON array.
    """
    with path.open("r", encoding="utf-8") as fh:
        records = json.load(fh)
    if not isinstance(records, list):
        raise ValueError("seed file must contain a JSON array of chapters")
    return records


async def seed_store(service: ChapterService, store_settings: StoreSettings) -> ImportReport | None:
    """Import ``store_settings.seed_file`` into the store, if configured.

    Seeding problems never stop the application: they are logged and the
    service starts with whatever the store already holds.

    Returns:
        The import report, or None when nothing was imported.
    """
    if not store_settings.seed_file:
        return None

    path = Path(store_settings.seed_file)
    try:
        records = load_seed_records(path)
    except (OSError, ValueError) as exc:
        logger.error("seed.load_failed", extra={"seed_file": str(path), "error": str(exc)})
        return None

    try:
        if store_settings.seed_delete_existing:
            deleted = await service.delete_all()
            logger.info("seed.deleted_existing", extra={"deleted": deleted})

        report = await service.import_chapters(records)
    except AppError as exc:
        logger.error("seed.import_failed", extra={"code": exc.code, "error": exc.message})
        return None

    await service.cache.clear()

    logger.info(
        "seed.completed",
        extra={
            "seed_file": str(path),
            "imported": report.success_count,
            "failed": report.fail_count,
        },
    )
    for failure in report.failed:
        logger.warning("seed.record_rejected", extra=failure)
    return report
