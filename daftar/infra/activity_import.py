"""سرویس ورود دسته‌ای فعالیت‌ها از فایل Excel برای یک معلم.

جریان: خواندن فایل ← تراکنش ``BEGIN IMMEDIATE`` ← تصویر فهرست معلم ←
پردازش ترتیبی ردیف‌ها ← جمع‌بندی. خطاهای سطح ردیف در خلاصه جمع می‌شوند؛
خطاهای سطح دسته به‌صورت :class:`ActivityImportError` بالا می‌روند و
:func:`error_payload` آن‌ها را به پاسخ یکتا تبدیل می‌کند.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from os import PathLike
from pathlib import Path
from typing import Any, Mapping

from daftar.core.common.errors import ActivityImportError
from daftar.core.common.logging_ext import log_step
from daftar.core.config_loader import ExcelOptions
from daftar.core.pipeline import process_rows
from daftar.core.reporting import BatchSummary, summarize
from daftar.infra.errors import DatabaseOperationError
from daftar.infra.local_database import LocalDatabase
from daftar.infra.session import Identity, TEACHER_ROLE, require_role
from daftar.infra.workbook import read_activity_rows, write_template

__all__ = [
    "IMPORT_FAILED_MESSAGE",
    "error_payload",
    "export_template",
    "import_activities",
    "run_import",
]

logger = logging.getLogger(__name__)

IMPORT_FAILED_MESSAGE = "خطا در ورود اطلاعات. لطفاً مجدداً تلاش کنید."


def run_import(
    db: LocalDatabase,
    identity: Identity,
    path: Path | str | PathLike[str] | None,
    *,
    now: datetime | None = None,
) -> BatchSummary:
    """اجرای ورود و بازگرداندن :class:`BatchSummary`."""

    require_role(identity, TEACHER_ROLE)
    rows = read_activity_rows(path)
    stamp = now or datetime.now(timezone.utc)
    with log_step(logger, "import-activities", teacher=identity.user_id, rows=len(rows)):
        try:
            with db.batch() as store:
                roster = db.load_roster(identity.user_id, identity.school_id, conn=store.conn)
                outcomes, total = process_rows(rows, roster, store, stamp)
        except DatabaseOperationError as exc:
            raise DatabaseOperationError(IMPORT_FAILED_MESSAGE, detail=exc.detail or str(exc)) from exc
    summary = summarize(outcomes, total)
    logger.info(
        "import finished: total=%d added=%d updated=%d failed=%d",
        summary.total,
        summary.added,
        summary.updated,
        summary.failed,
    )
    for message in summary.errors:
        logger.debug("rejected %s", message)
    return summary


def import_activities(
    db: LocalDatabase,
    identity: Identity,
    path: Path | str | PathLike[str] | None,
    *,
    now: datetime | None = None,
) -> Mapping[str, Any]:
    """ورود فایل و بازگرداندن پاسخ JSON-مانند ``{success, message, summary, results, errors}``."""

    return run_import(db, identity, path, now=now).to_payload()


def error_payload(exc: ActivityImportError) -> Mapping[str, Any]:
    """پاسخ یکتای خطای سطح دسته؛ جزئیات فنی فقط در لاگ می‌ماند."""

    if exc.detail:
        logger.warning("%s: %s (%s)", type(exc).__name__, exc.message, exc.detail)
    return {"success": False, "error": exc.message}


def export_template(
    db: LocalDatabase,
    identity: Identity,
    path: Path | str | PathLike[str],
    *,
    options: ExcelOptions | None = None,
) -> Path:
    """ساخت فایل نمونهٔ ورود با فهرست دانش‌آموزان و درس‌های همین معلم."""

    require_role(identity, TEACHER_ROLE)
    with log_step(logger, "export-template", teacher=identity.user_id):
        roster = db.load_roster(identity.user_id, identity.school_id)
        return write_template(path, roster, options=options)
