"""سیستم مرکزی کد/متن دلایل رد ردیف‌های ورودی (Core-only).

هر ردیف ردشده یک :class:`ReasonCode` و یک پیام فارسی قابل نمایش به معلم
دارد؛ پیام‌ها فقط از همین ماژول ساخته می‌شوند.

مثال::

    >>> build_reason(ReasonCode.INVALID_SCORE).message_fa
    'نمره کمی باید عددی بین 0 تا 20 باشد'
    >>> format_row_error(5, build_reason(ReasonCode.INVALID_DATE))
    'ردیف 5: فرمت تاریخ صحیح نیست (باید YYYY/MM/DD شمسی باشد، مانند: 1404/01/07)'
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Mapping

__all__ = [
    "ReasonCode",
    "LocalizedReason",
    "build_reason",
    "reason_message",
    "format_row_error",
]


class ReasonCode(StrEnum):
    """کدهای یکتای دلایل رد یک ردیف."""

    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    INVALID_DATE = "INVALID_DATE"
    INVALID_SCORE = "INVALID_SCORE"
    SCORE_REQUIRED = "SCORE_REQUIRED"
    SCORE_NOT_ALLOWED = "SCORE_NOT_ALLOWED"
    QUALITATIVE_NOT_ALLOWED = "QUALITATIVE_NOT_ALLOWED"
    STUDENT_NOT_FOUND = "STUDENT_NOT_FOUND"
    LESSON_NOT_FOUND = "LESSON_NOT_FOUND"
    UNKNOWN_ACTIVITY_TYPE = "UNKNOWN_ACTIVITY_TYPE"
    WRITE_FAILED = "WRITE_FAILED"


@dataclass(frozen=True, slots=True)
class LocalizedReason:
    """متن بومی‌شدهٔ دلیل رد برای گزارش به کاربر."""

    code: ReasonCode
    message_fa: str


_REASON_MESSAGES_FA: Mapping[ReasonCode, str] = {
    ReasonCode.MISSING_REQUIRED_FIELD: "فیلدهای الزامی کامل نیست",
    ReasonCode.INVALID_DATE: "فرمت تاریخ صحیح نیست (باید YYYY/MM/DD شمسی باشد، مانند: 1404/01/07)",
    ReasonCode.INVALID_SCORE: "نمره کمی باید عددی بین 0 تا 20 باشد",
    ReasonCode.SCORE_REQUIRED: "نمره عددی برای نوع فعالیت «{activity_type}» الزامی است",
    ReasonCode.SCORE_NOT_ALLOWED: "نوع فعالیت «{activity_type}» نمره عددی ندارد",
    ReasonCode.QUALITATIVE_NOT_ALLOWED: "نوع فعالیت «{activity_type}» ارزیابی کیفی ندارد",
    ReasonCode.STUDENT_NOT_FOUND: "دانش‌آموز '{student}' در کلاس '{class_name}' یافت نشد",
    ReasonCode.LESSON_NOT_FOUND: "درس '{lesson}' برای کلاس '{class_name}' یافت نشد",
    ReasonCode.UNKNOWN_ACTIVITY_TYPE: "نوع فعالیت '{activity_type}' نامعتبر است",
    ReasonCode.WRITE_FAILED: "خطا در ثبت - {detail}",
}


def reason_message(code: ReasonCode, **context: object) -> str:
    """برگرداندن متن فارسی یک کد دلیل با جای‌گذاری مقادیر ردیف."""

    try:
        template = _REASON_MESSAGES_FA[code]
    except KeyError as exc:  # pragma: no cover - نگهبان نسخه‌های آینده
        raise ValueError(f"Reason code '{code}' تعریف نشده است") from exc
    if not context:
        return template
    safe = {key: "" if value is None else value for key, value in context.items()}
    try:
        return template.format(**safe)
    except KeyError:
        return template


def build_reason(code: ReasonCode, **context: object) -> LocalizedReason:
    """ساخت شیء :class:`LocalizedReason` با پیام فارسی پایدار."""

    return LocalizedReason(code=code, message_fa=reason_message(code, **context))


def format_row_error(row_number: int, reason: LocalizedReason) -> str:
    """پیام خطای قابل نمایش با شمارهٔ ردیف Excel."""

    return f"ردیف {row_number}: {reason.message_fa}"
