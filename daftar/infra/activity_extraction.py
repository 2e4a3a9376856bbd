"""سرویس استخراج یک فعالیت از متن آزاد معلم با کمک مدل زبانی.

خروجی فقط پیش‌نویس است و چیزی در پایگاه داده نوشته نمی‌شود.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Mapping

from daftar.core.common.errors import ExtractionError
from daftar.core.common.logging_ext import log_step
from daftar.core.config_loader import Settings, load_settings
from daftar.core.extraction import assemble_record, build_system_prompt, coerce_model_payload
from daftar.core.jalali import today_context
from daftar.infra.language_model import LanguageModelClient
from daftar.infra.local_database import LocalDatabase
from daftar.infra.session import Identity, TEACHER_ROLE, require_role

__all__ = ["EMPTY_TEXT_MESSAGE", "extract_activity"]

logger = logging.getLogger(__name__)

EMPTY_TEXT_MESSAGE = "متن ورودی الزامی است"


def extract_activity(
    db: LocalDatabase,
    identity: Identity,
    text: str,
    *,
    model_source: str | None = None,
    client: Any = None,
    settings: Settings | None = None,
    today: date | None = None,
) -> Mapping[str, Any]:
    """استخراج فعالیت از ``text`` و بازگرداندن پاسخ JSON-مانند.

    منبع مدل به ترتیب: ``model_source`` صریح، ترجیح ذخیره‌شده در پروفایل
    معلم، و در نهایت مقدار پیش‌فرض تنظیمات.

    Raises:
        ExtractionError: متن خالی، خطای سرویس مدل یا خروجی نامفهوم.
    """

    require_role(identity, TEACHER_ROLE)
    if not text or not str(text).strip():
        raise ExtractionError(EMPTY_TEXT_MESSAGE)
    config = settings or load_settings()
    source = model_source or identity.language_model
    if source not in ("cloud", "local"):
        source = None
    current = today or date.today()

    with log_step(logger, "extract-activity", teacher=identity.user_id, source=source or "default"):
        roster = db.load_roster(identity.user_id, identity.school_id)
        model = LanguageModelClient.from_settings(config.language_model, source, client=client)
        raw = model.complete_json(
            build_system_prompt(today_context(current), roster.activity_types),
            str(text).strip(),
        )
        fields = coerce_model_payload(raw, activity_types=roster.activity_types, today=current)
        result = assemble_record(fields, roster)
    payload = result.to_payload()
    if not payload.get("success"):
        logger.info("extraction found no matching student for '%s'", fields.student_name)
    return payload
