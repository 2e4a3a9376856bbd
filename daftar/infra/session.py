"""نگهبان هویت: تبدیل payload نشست به :class:`Identity` تأییدشده.

سازوکار کوکی و نشست خارج از این بسته است؛ ورودی این ماژول فقط متن JSON
نشست (یا dict معادل آن) است. نگهبان یک‌بار اجرا می‌شود و سرویس‌ها فقط
هویت تایپ‌شده را دریافت می‌کنند.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping

from daftar.core.common.errors import AccessDeniedError
from daftar.infra.local_database import LocalDatabase

__all__ = ["Identity", "authenticate", "require_role", "TEACHER_ROLE"]

logger = logging.getLogger(__name__)

TEACHER_ROLE = "teacher"
UNAUTHORIZED_MESSAGE = "غیر مجاز"
FORBIDDEN_MESSAGE = "دسترسی محدود"


@dataclass(frozen=True)
class Identity:
    user_id: str
    role: str
    school_id: str
    name: str = ""
    profile: Mapping[str, Any] | None = None

    @property
    def language_model(self) -> str | None:
        """منبع مدل ترجیحی ذخیره‌شده در پروفایل کاربر (``cloud`` یا ``local``)."""

        if not self.profile:
            return None
        value = self.profile.get("language_model")
        return str(value).strip().lower() if value else None


def _parse_payload(session: str | Mapping[str, Any] | None) -> Mapping[str, Any]:
    if session is None:
        raise AccessDeniedError(UNAUTHORIZED_MESSAGE, detail="missing session")
    if isinstance(session, Mapping):
        return session
    try:
        data = json.loads(session)
    except (TypeError, ValueError) as exc:
        raise AccessDeniedError(UNAUTHORIZED_MESSAGE, detail="malformed session payload") from exc
    if not isinstance(data, Mapping):
        raise AccessDeniedError(UNAUTHORIZED_MESSAGE, detail="session payload is not an object")
    return data


def _parse_profile(raw: object) -> Mapping[str, Any] | None:
    if not raw:
        return None
    try:
        data = json.loads(str(raw))
    except ValueError:
        logger.warning("ignoring malformed user profile JSON")
        return None
    return data if isinstance(data, Mapping) else None


def authenticate(
    db: LocalDatabase,
    session: str | Mapping[str, Any] | None,
    *,
    role: str = TEACHER_ROLE,
) -> Identity:
    """اعتبارسنجی نشست در برابر پایگاه داده.

    کاربر باید وجود داشته باشد، فعال باشد، به مدرسه‌ای تعلق داشته باشد و نقش
    ذخیره‌شده‌اش با ``role`` برابر باشد. نقش ادعاشده در payload به‌تنهایی
    کافی نیست.

    Raises:
        AccessDeniedError: در هر یک از حالت‌های بالا.
    """

    payload = _parse_payload(session)
    user_id = str(payload.get("id") or payload.get("user_id") or "").strip()
    if not user_id:
        raise AccessDeniedError(UNAUTHORIZED_MESSAGE, detail="session has no user id")
    claimed = str(payload.get("role") or "").strip()
    if claimed and claimed != role:
        raise AccessDeniedError(FORBIDDEN_MESSAGE, detail=f"claimed role '{claimed}'")

    row = db.fetch_user(user_id)
    if row is None or not row["is_active"]:
        raise AccessDeniedError(UNAUTHORIZED_MESSAGE, detail=f"unknown or inactive user {user_id}")
    identity = Identity(
        user_id=str(row["id"]),
        role=str(row["role"]),
        school_id=str(row["school_id"] or ""),
        name=str(row["name"] or ""),
        profile=_parse_profile(row["profile"]),
    )
    require_role(identity, role)
    if not identity.school_id:
        raise AccessDeniedError(FORBIDDEN_MESSAGE, detail="user has no school")
    return identity


def require_role(identity: Identity, role: str) -> Identity:
    if identity.role != role:
        raise AccessDeniedError(FORBIDDEN_MESSAGE, detail=f"role '{identity.role}' != '{role}'")
    return identity
