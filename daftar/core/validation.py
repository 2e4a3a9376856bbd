"""اعتبارسنجی ردیف‌های ورودی: فیلدهای الزامی، بازهٔ نمره و جدول کاربرد فیلدها.

رد شدن یک ردیف با :class:`RowRejected` اعلام می‌شود؛ خط لولهٔ ردیف این
استثنا را می‌گیرد و به پیامد ``rejected`` تبدیل می‌کند، پس هیچ ردیفی
ردیف‌های بعدی را متوقف نمی‌کند.
"""

from __future__ import annotations

import re
from typing import Any

from daftar.core.activity_types import field_rule_for
from daftar.core.common.normalization import cell_text, is_blank, to_ascii_digits
from daftar.core.common.reasons import LocalizedReason, ReasonCode, build_reason
from daftar.core.models import ImportRow, ValidRow

__all__ = [
    "REQUIRED_FIELDS",
    "SAMPLE_MARKER",
    "SCORE_RANGE",
    "RowRejected",
    "check_field_applicability",
    "clean_qualitative",
    "is_sample_row",
    "parse_score",
    "validate_row",
]

SCORE_RANGE: tuple[float, float] = (0.0, 20.0)
SAMPLE_MARKER = "نمونه"

REQUIRED_FIELDS: tuple[str, ...] = (
    "student_name",
    "class_name",
    "lesson_name",
    "activity_type_label",
    "date_text",
)

_RE_NUMBER = re.compile(r"^-?\d+(\.\d+)?$")


class RowRejected(Exception):
    """ردیف به دلیل مشخص‌شده در ``reason`` پذیرفته نشد."""

    def __init__(self, reason: LocalizedReason) -> None:
        super().__init__(reason.message_fa)
        self.reason = reason


def is_sample_row(row: ImportRow) -> bool:
    """ردیف‌های نمونهٔ قالب (نام یا عنوان شامل «نمونه») بی‌صدا نادیده گرفته می‌شوند."""

    return SAMPLE_MARKER in cell_text(row.student_name) or SAMPLE_MARKER in cell_text(
        row.activity_title
    )


def parse_score(value: Any) -> float | None:
    """تبدیل نمرهٔ خام به عدد در بازهٔ ``[0, 20]``.

    خانهٔ خالی ``None`` برمی‌گرداند. مقدار غیرعددی یا خارج از بازه
    :class:`RowRejected` با کد ``INVALID_SCORE`` می‌دهد.

    >>> parse_score("۱۸")
    18.0
    >>> parse_score("")
    """

    if is_blank(value):
        return None
    if isinstance(value, bool):
        raise RowRejected(build_reason(ReasonCode.INVALID_SCORE))
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = to_ascii_digits(value)
        if not _RE_NUMBER.match(text):
            raise RowRejected(build_reason(ReasonCode.INVALID_SCORE))
        number = float(text)
    low, high = SCORE_RANGE
    if not low <= number <= high:
        raise RowRejected(build_reason(ReasonCode.INVALID_SCORE))
    return number


def clean_qualitative(value: Any) -> str | None:
    text = cell_text(value)
    return text or None


def validate_row(row: ImportRow) -> ValidRow:
    """بررسی فیلدهای الزامی و نمره؛ حل موجودیت‌ها بعداً انجام می‌شود."""

    if any(not cell_text(getattr(row, name)) for name in REQUIRED_FIELDS):
        raise RowRejected(build_reason(ReasonCode.MISSING_REQUIRED_FIELD))
    score = parse_score(row.score)
    return ValidRow(row=row, score=score, qualitative=clean_qualitative(row.qualitative))


def check_field_applicability(
    type_key: str,
    score: float | None,
    qualitative: str | None,
    *,
    label: str | None = None,
) -> None:
    """اعمال جدول ثابت کاربرد فیلدها برای نوع فعالیت.

    ترتیب بررسی: نمرهٔ الزامیِ غایب، نمرهٔ غیرمجاز، سپس ارزیابی کیفی غیرمجاز.
    """

    rule = field_rule_for(type_key)
    shown = label or type_key
    if rule.requires_score and score is None:
        raise RowRejected(build_reason(ReasonCode.SCORE_REQUIRED, activity_type=shown))
    if not rule.allows_score and score is not None:
        raise RowRejected(build_reason(ReasonCode.SCORE_NOT_ALLOWED, activity_type=shown))
    if not rule.allows_qualitative and qualitative is not None:
        raise RowRejected(build_reason(ReasonCode.QUALITATIVE_NOT_ALLOWED, activity_type=shown))
