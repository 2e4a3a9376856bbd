# -*- coding: utf-8 -*-
"""
Fail-safe Persian text helpers for names, labels and numeric cells.

Public API:
- fold_name(text: Any) -> str
- normalize_label(text: Any) -> str
- to_ascii_digits(text: Any) -> str
- is_blank(value: Any) -> bool
- cell_text(value: Any) -> str

Design notes:
- Side-effect free on import and on inputs.
- Deterministic; no exceptions escape to callers.
- Latin letters are kept (names may be typed in English).
"""
from __future__ import annotations

import math
import re
import unicodedata
from functools import lru_cache
from typing import Any, Dict

# ---------------------------------------------------------------------------
# Constants & Regex Patterns (internal)
# ---------------------------------------------------------------------------

# Explicit BIDI control code points only.
_RE_BIDI = re.compile(r"[\u200e\u200f\u202a-\u202e\u2066-\u2069]")

# ZWNJ / ZWJ separate word parts visually; for matching they act as a space.
_RE_JOINERS = re.compile(r"[\u200c\u200d]")

_RE_WHITESPACE = re.compile(r"\s+")

_KASHIDA = "\u0640"

_AR2FA_MAP: Dict[str, str] = {
    "ي": "ی",
    "ى": "ی",
    "ك": "ک",
    "ة": "ه",
    "ۀ": "ه",
}
_AR2FA_TRANSLATION = str.maketrans(_AR2FA_MAP)

# Arabic-Indic (0660–0669) and Extended Arabic-Indic (06F0–06F9) → ASCII digits
_DIGIT_TRANSLATION: Dict[int, int] = {
    **{ord(chr(0x0660 + i)): ord(str(i)) for i in range(10)},
    **{ord(chr(0x06F0 + i)): ord(str(i)) for i in range(10)},
    ord("٫"): ord("."),  # ARABIC DECIMAL SEPARATOR
    ord("−"): ord("-"),  # MINUS SIGN
}

_NAN_TOKENS = frozenset({"", "nan", "none", "null", "nat", "n/a"})


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def is_blank(value: Any) -> bool:
    """Return True for None/empty/NaN-like cells coming out of pandas."""
    if value is None:
        return True
    if isinstance(value, float):
        return math.isnan(value) or not math.isfinite(value)
    try:
        text = str(value)
    except Exception:
        return True
    return text.strip().lower() in _NAN_TOKENS


def cell_text(value: Any) -> str:
    """تبدیل امن مقدار یک خانهٔ Excel به رشتهٔ trim‌شده.

    مقادیر float صحیح (مثل ``1234567890.0`` برای کد ملی) بدون «.0» برگردانده
    می‌شوند.

    مثال::

        >>> cell_text(18.0)
        '18'
        >>> cell_text(None)
        ''
    """
    if is_blank(value):
        return ""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def to_ascii_digits(text: Any) -> str:
    """Persian/Arabic digits → ASCII; BIDI marks removed; surrounding spaces trimmed.

    >>> to_ascii_digits("۱۴۰۴/۰۱/۰۷")
    '1404/01/07'
    """
    try:
        raw = cell_text(text)
        if not raw:
            return ""
        return _RE_BIDI.sub("", raw.translate(_DIGIT_TRANSLATION)).strip()
    except Exception:
        return ""


@lru_cache(maxsize=4096)
def _fold_core(s: str) -> str:
    """
    Cached folding pipeline.

    Steps:
    1) NFKC (presentation forms → base letters)
    2) Arabic→Persian letter variants
    3) BIDI controls removed, ZWNJ/ZWJ → space, kashida dropped
    4) Persian/Arabic digits → ASCII
    5) Collapse whitespace, strip, casefold
    """
    try:
        s = unicodedata.normalize("NFKC", s)
        s = s.translate(_AR2FA_TRANSLATION)
        s = _RE_BIDI.sub("", s)
        s = _RE_JOINERS.sub(" ", s)
        s = s.replace(_KASHIDA, "")
        s = s.translate(_DIGIT_TRANSLATION)
        return _RE_WHITESPACE.sub(" ", s).strip().casefold()
    except Exception:
        return ""


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def collapse_whitespace(text: str) -> str:
    """Collapse whitespace runs to a single space and strip."""
    return _RE_WHITESPACE.sub(" ", text).strip()


def fold_name(text: Any) -> str:
    """
    Normalize a person name for comparison.
    Returns empty string on any error.

    >>> fold_name("  علي   رضايي ") == "علی رضایی"
    True
    >>> fold_name("Ali REZAEI") == "ali rezaei"
    True
    """
    try:
        s = cell_text(text)
        if not s:
            return ""
        return _fold_core(s)
    except Exception:
        return ""


def normalize_label(text: Any) -> str:
    """برچسب‌های نمایشی (کلاس، درس، نوع فعالیت) را برای مقایسهٔ دقیق یکسان می‌کند.

    مقایسه همچنان «دقیق» است؛ فقط تفاوت‌های املایی بی‌اثر (ی/ي، نیم‌فاصله،
    فاصلهٔ اضافه) حذف می‌شوند.

    >>> normalize_label("آزمون میان‌ترم") == normalize_label("آزمون  ميان ترم")
    True
    """
    return fold_name(text)


__all__ = [
    "cell_text",
    "collapse_whitespace",
    "fold_name",
    "is_blank",
    "normalize_label",
    "to_ascii_digits",
]
