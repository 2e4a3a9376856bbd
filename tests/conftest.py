from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Mapping, Sequence

import pandas as pd
import pytest

from daftar.core.roster import RosterSnapshot, build_roster
from daftar.infra.local_database import LocalDatabase
from daftar.infra.session import Identity, authenticate
from daftar.infra.workbook import IMPORT_HEADERS


SCHOOL_SEED: Mapping[str, Sequence[Mapping[str, Any]]] = {
    "schools": [{"id": "s1", "name": "دبیرستان فردوسی"}, {"id": "s2", "name": "دبیرستان سعدی"}],
    "users": [
        {"id": "t1", "name": "مریم کاظمی", "role": "teacher", "school_id": "s1"},
        {
            "id": "t2",
            "name": "حسن نوری",
            "role": "teacher",
            "school_id": "s1",
            "profile": {"language_model": "local"},
        },
        {"id": "t3", "name": "معلم غیرفعال", "role": "teacher", "school_id": "s1", "is_active": False},
        {"id": "a1", "name": "مدیر مدرسه", "role": "admin", "school_id": "s1"},
        {"id": "st1", "name": "علی رضایی", "national_id": "0012345678", "role": "student", "school_id": "s1"},
        {"id": "st2", "name": "علی رضایی‌نژاد", "national_id": "0012345679", "role": "student", "school_id": "s1"},
        {"id": "st3", "name": "زهرا محمدی", "role": "student", "school_id": "s1"},
        {"id": "st4", "name": "سارا احمدی", "role": "student", "school_id": "s1"},
        {"id": "st5", "name": "رضا قاسمی", "role": "student", "school_id": "s1", "is_active": False},
    ],
    "classes": [
        {"id": "c1", "school_id": "s1", "name": "هفتم", "section": "الف", "grade_level": "هفتم"},
        {"id": "c2", "school_id": "s1", "name": "هشتم", "section": "ب", "grade_level": "هشتم"},
        {"id": "c3", "school_id": "s1", "name": "نهم", "section": "ج", "grade_level": "نهم"},
    ],
    "lessons": [
        {"id": "l1", "school_id": "s1", "title": "ریاضی"},
        {"id": "l2", "school_id": "s1", "title": "علوم"},
        {"id": "l3", "school_id": "s1", "title": "ادبیات"},
    ],
    "class_memberships": [
        {"class_id": "c1", "user_id": "st1", "role": "student"},
        {"class_id": "c1", "user_id": "st2", "role": "student"},
        {"class_id": "c1", "user_id": "st3", "role": "student"},
        {"class_id": "c1", "user_id": "st5", "role": "student"},
        {"class_id": "c2", "user_id": "st4", "role": "student"},
        {"class_id": "c3", "user_id": "st3", "role": "student"},
    ],
    "teacher_assignments": [
        {"id": "ta1", "teacher_id": "t1", "class_id": "c1", "subject_id": "l1"},
        {"id": "ta2", "teacher_id": "t1", "class_id": "c1", "subject_id": "l2"},
        {"id": "ta3", "teacher_id": "t2", "class_id": "c2", "subject_id": "l3"},
        {
            "id": "ta4",
            "teacher_id": "t1",
            "class_id": "c3",
            "subject_id": "l1",
            "removed_at": "2024-09-01T00:00:00Z",
        },
    ],
}


@pytest.fixture
def school_seed() -> Mapping[str, Sequence[Mapping[str, Any]]]:
    return SCHOOL_SEED


@pytest.fixture
def school_db(tmp_path: Path) -> LocalDatabase:
    """پایگاه دادهٔ SQLite مقداردهی‌شده با یک مدرسه، دو معلم و سه کلاس.

    معلم ``t1`` کلاس «هفتم-الف» را با درس‌های ریاضی و علوم دارد؛ تخصیص او
    به «نهم-ج» حذف شده است. معلم ``t2`` فقط «هشتم-ب» را دارد.
    """

    db = LocalDatabase(tmp_path / "school.sqlite3")
    db.initialize()
    db.seed(SCHOOL_SEED)
    return db


@pytest.fixture
def teacher(school_db: LocalDatabase) -> Identity:
    return authenticate(school_db, {"id": "t1", "role": "teacher"})


@pytest.fixture
def other_teacher(school_db: LocalDatabase) -> Identity:
    return authenticate(school_db, {"id": "t2"})


@pytest.fixture
def roster() -> RosterSnapshot:
    """فهرست درون‌حافظه‌ای معادل فهرست معلم ``t1`` برای تست‌های هسته."""

    assignments = [
        {"class_id": "c1", "class_name": "هفتم", "section": "الف", "grade_level": "هفتم",
         "lesson_id": "l1", "lesson_title": "ریاضی"},
        {"class_id": "c1", "class_name": "هفتم", "section": "الف", "grade_level": "هفتم",
         "lesson_id": "l2", "lesson_title": "علوم"},
    ]
    memberships = [
        {"student_id": "st1", "name": "علی رضایی", "national_id": "0012345678", "class_id": "c1"},
        {"student_id": "st2", "name": "علی رضایی‌نژاد", "class_id": "c1"},
        {"student_id": "st3", "name": "زهرا محمدی", "class_id": "c1"},
        {"student_id": "st4", "name": "سارا احمدی", "class_id": "c2"},
    ]
    return build_roster("t1", "s1", assignments, memberships)


def activity_row(**overrides: Any) -> dict[str, Any]:
    row: dict[str, Any] = {
        "ردیف": 1,
        "نام دانش‌آموز": "علی رضایی",
        "کد ملی": "0012345678",
        "کلاس": "هفتم-الف",
        "پایه": "هفتم",
        "درس": "ریاضی",
        "نوع فعالیت": "آزمون میان‌ترم",
        "عنوان فعالیت": "آزمون فصل اول",
        "تاریخ": "1404/01/07",
        "نمره کمی (0-20)": 18,
        "ارزیابی کیفی": None,
    }
    row.update(overrides)
    return row


@pytest.fixture
def make_row() -> Callable[..., dict[str, Any]]:
    """سازندهٔ یک ردیف معتبر با سرستون‌های فارسی؛ هر ستون قابل بازنویسی است."""

    return activity_row


@pytest.fixture
def write_workbook(tmp_path: Path) -> Callable[..., Path]:
    """نوشتن ردیف‌ها در یک فایل Excel موقت با سرستون‌های قالب ورود."""

    def _write(rows: Sequence[Mapping[str, Any]], name: str = "activities.xlsx") -> Path:
        path = tmp_path / name
        frame = pd.DataFrame(list(rows), columns=list(IMPORT_HEADERS))
        frame.to_excel(path, index=False, sheet_name="فعالیت‌ها")
        return path

    return _write
