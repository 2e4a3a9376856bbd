from __future__ import annotations

from datetime import date

import pytest

from daftar.core.jalali import (
    gregorian_to_jalali,
    is_iso_date,
    normalize_jalali_date,
    today_context,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1404/01/07", "2025-03-27"),
        ("1404-01-07", "2025-03-27"),
        ("۱۴۰۴/۰۱/۰۷", "2025-03-27"),
        ("1404/1/7", "2025-03-27"),
        (" 1404/01/01 ", "2025-03-21"),
        ("1403/12/30", "2025-03-20"),
    ],
)
def test_normalize_jalali_date_accepts_valid_dates(raw, expected):
    assert normalize_jalali_date(raw) == expected


@pytest.mark.parametrize(
    "raw",
    [
        "",
        None,
        "1404/01",
        "1404/01/07/01",
        "فردا",
        "1404/13/01",
        "1404/00/10",
        "1404/01/32",
        "1404/12/30",
        "1299/01/01",
        "1501/01/01",
        "2025-03-27",
    ],
)
def test_normalize_jalali_date_rejects_invalid_input(raw):
    assert normalize_jalali_date(raw) is None


def test_gregorian_to_jalali_is_inverse_of_normalize():
    assert gregorian_to_jalali("2025-03-27") == "1404/01/07"
    assert gregorian_to_jalali(date(2025, 3, 21)) == "1404/01/01"


def test_is_iso_date():
    assert is_iso_date("2025-03-27")
    assert is_iso_date("۲۰۲۵-۰۳-۲۷")
    assert not is_iso_date("2025-02-30")
    assert not is_iso_date("1404/01/07")
    assert not is_iso_date(None)


def test_today_context_reports_both_calendars_and_weekday():
    ctx = today_context(date(2025, 3, 27))
    assert ctx.gregorian == "2025-03-27"
    assert ctx.jalali == "1404/01/07"
    assert ctx.weekday_fa == "پنجشنبه"
