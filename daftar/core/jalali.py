"""تبدیل تاریخ شمسی (جلالی) به تاریخ میلادی ISO و برعکس.

ورودی‌ها از Excel یا خروجی مدل زبانی می‌آیند؛ بنابراین تابع اصلی هرگز
استثنا بیرون نمی‌دهد و برای هر ورودی نامعتبر ``None`` برمی‌گرداند تا
فراخواننده آن را به‌عنوان ردِ همان ردیف ثبت کند.

مثال::

    >>> normalize_jalali_date("1404/01/07")
    '2025-03-27'
    >>> normalize_jalali_date("1404/13/01") is None
    True
    >>> gregorian_to_jalali("2025-03-27")
    '1404/01/07'
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date

import jdatetime

from daftar.core.common.normalization import to_ascii_digits

__all__ = [
    "JALALI_YEAR_RANGE",
    "TodayContext",
    "gregorian_to_jalali",
    "is_iso_date",
    "normalize_jalali_date",
    "today_context",
]

JALALI_YEAR_RANGE: tuple[int, int] = (1300, 1500)

_RE_SEPARATORS = re.compile(r"[/\-]")
_RE_FIELD = re.compile(r"^\d{1,4}$")
_RE_ISO = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# date.weekday(): Monday == 0
_WEEKDAY_NAMES_FA: tuple[str, ...] = (
    "دوشنبه",
    "سه‌شنبه",
    "چهارشنبه",
    "پنجشنبه",
    "جمعه",
    "شنبه",
    "یکشنبه",
)


@dataclass(frozen=True, slots=True)
class TodayContext:
    """تاریخ امروز به دو تقویم به همراه نام روز هفته."""

    jalali: str
    gregorian: str
    weekday_fa: str


def _split_fields(text: str) -> tuple[int, int, int] | None:
    parts = [part.strip() for part in _RE_SEPARATORS.split(text)]
    if len(parts) != 3:
        return None
    if not all(_RE_FIELD.match(part) for part in parts):
        return None
    year, month, day = (int(part) for part in parts)
    return year, month, day


def normalize_jalali_date(value: object) -> str | None:
    """تبدیل رشتهٔ تاریخ شمسی به ``YYYY-MM-DD`` میلادی.

    جداکننده‌های ``/`` و ``-`` و ارقام فارسی پذیرفته می‌شوند. رشتهٔ خالی،
    تعداد بخش نادرست، ماه/روز خارج از بازه، سال خارج از
    :data:`JALALI_YEAR_RANGE` و تاریخ ناموجود در تقویم (مثل ۳۰ اسفند سال
    غیرکبیسه) همگی ``None`` برمی‌گردانند.
    """

    text = to_ascii_digits(value)
    if not text:
        return None
    fields = _split_fields(text)
    if fields is None:
        return None
    year, month, day = fields
    low, high = JALALI_YEAR_RANGE
    if not low <= year <= high:
        return None
    if not 1 <= month <= 12 or not 1 <= day <= 31:
        return None
    try:
        gregorian = jdatetime.date(year, month, day).togregorian()
    except (ValueError, OverflowError):
        return None
    return gregorian.isoformat()


def is_iso_date(value: object) -> bool:
    """بررسی اینکه مقدار یک تاریخ میلادی معتبر ``YYYY-MM-DD`` است."""

    text = to_ascii_digits(value)
    if not _RE_ISO.match(text):
        return False
    try:
        date.fromisoformat(text)
    except ValueError:
        return False
    return True


def gregorian_to_jalali(iso_date: str | date) -> str:
    """تبدیل معکوس: تاریخ میلادی به رشتهٔ شمسی ``YYYY/MM/DD``."""

    value = iso_date if isinstance(iso_date, date) else date.fromisoformat(str(iso_date))
    return jdatetime.date.fromgregorian(date=value).strftime("%Y/%m/%d")


def today_context(today: date | None = None) -> TodayContext:
    current = today or date.today()
    return TodayContext(
        jalali=gregorian_to_jalali(current),
        gregorian=current.isoformat(),
        weekday_fa=_WEEKDAY_NAMES_FA[current.weekday()],
    )
