"""تست خط لولهٔ ردیف با ذخیره‌ساز درون‌حافظه‌ای."""
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone

from daftar.core.common.errors import StoreWriteError
from daftar.core.common.reasons import ReasonCode
from daftar.core.models import ImportRow, ResolvedActivity, RowStatus
from daftar.core.pipeline import process_row, process_rows
from daftar.core.reporting import summarize

NOW = datetime(2025, 3, 27, 8, 30, tzinfo=timezone.utc)


class MemoryStore:
    def __init__(self, *, fail_on_insert: bool = False) -> None:
        self.records: dict[str, ResolvedActivity] = {}
        self.fail_on_insert = fail_on_insert
        self.savepoints = 0

    def find_activity_id(self, student_id, activity_date, activity_type, teacher_id):
        for key, record in self.records.items():
            if (record.student_id, record.activity_date, record.activity_type, record.teacher_id) == (
                student_id,
                activity_date,
                activity_type,
                teacher_id,
            ):
                return key
        return None

    def insert_activity(self, activity, now):
        if self.fail_on_insert:
            raise StoreWriteError("disk full")
        key = f"r{len(self.records) + 1}"
        self.records[key] = activity
        return key

    def update_activity(self, activity_id, activity, now):
        self.records[activity_id] = activity

    @contextmanager
    def savepoint(self):
        self.savepoints += 1
        yield f"sp{self.savepoints}"


def _row(row_number: int = 2, **overrides) -> ImportRow:
    values = dict(
        row_number=row_number,
        student_name="علی رضایی",
        class_name="هفتم-الف",
        lesson_name="ریاضی",
        activity_type_label="آزمون میان‌ترم",
        activity_title="آزمون فصل اول",
        date_text="1404/01/07",
        score=18,
    )
    values.update(overrides)
    return ImportRow(**values)


def test_valid_row_is_added_with_gregorian_date(roster):
    store = MemoryStore()
    outcome = process_row(_row(), roster, store, NOW)
    assert outcome.status is RowStatus.ADDED
    assert outcome.student == "علی رضایی"
    (record,) = store.records.values()
    assert record.activity_date == "2025-03-27"
    assert record.score == 18.0
    assert record.student_id == "st1"
    assert record.lesson_id == "l1"
    assert record.teacher_id == "t1"
    assert store.savepoints == 1


def test_same_key_updates_existing_record(roster):
    store = MemoryStore()
    process_row(_row(), roster, store, NOW)
    outcome = process_row(_row(score=19, lesson_name="علوم"), roster, store, NOW)
    assert outcome.status is RowStatus.UPDATED
    (record,) = store.records.values()
    assert record.score == 19.0
    assert record.lesson_id == "l2"


def test_rejection_order_reports_first_failing_check(roster):
    store = MemoryStore()
    cases = {
        ReasonCode.MISSING_REQUIRED_FIELD: _row(class_name=""),
        ReasonCode.INVALID_SCORE: _row(score=25, date_text="bad"),
        ReasonCode.INVALID_DATE: _row(date_text="1404/13/01", student_name="ناشناس"),
        ReasonCode.STUDENT_NOT_FOUND: _row(student_name="ناشناس", lesson_name="شیمی"),
        ReasonCode.LESSON_NOT_FOUND: _row(lesson_name="شیمی", activity_type_label="نامعلوم"),
        ReasonCode.UNKNOWN_ACTIVITY_TYPE: _row(activity_type_label="نامعلوم"),
        ReasonCode.SCORE_REQUIRED: _row(score=None),
    }
    for code, row in cases.items():
        outcome = process_row(row, roster, store, NOW)
        assert outcome.status is RowStatus.REJECTED
        assert outcome.reason_code is code, code
    assert store.records == {}


def test_student_lookup_is_limited_to_named_class(roster):
    outcome = process_row(_row(student_name="سارا احمدی"), roster, MemoryStore(), NOW)
    assert outcome.reason_code is ReasonCode.STUDENT_NOT_FOUND
    assert outcome.reason.message_fa == "دانش‌آموز 'سارا احمدی' در کلاس 'هفتم-الف' یافت نشد"


def test_unknown_class_is_reported_as_student_not_found(roster):
    outcome = process_row(_row(class_name="دهم-د"), roster, MemoryStore(), NOW)
    assert outcome.reason_code is ReasonCode.STUDENT_NOT_FOUND


def test_store_failure_rejects_only_that_row(roster):
    store = MemoryStore(fail_on_insert=True)
    outcome = process_row(_row(), roster, store, NOW)
    assert outcome.status is RowStatus.REJECTED
    assert outcome.reason_code is ReasonCode.WRITE_FAILED
    assert outcome.reason.message_fa == "خطا در ثبت - disk full"


def test_process_rows_skips_sample_rows_but_counts_them(roster):
    rows = [
        _row(2, student_name="نمونه: علی احمدی"),
        _row(3),
        _row(4, student_name="زهرا محمدی", score=30),
        replace(_row(5), student_name="علی رضایی‌نژاد", activity_type_label="فعالیت کلاسی", qualitative="فعال"),
    ]
    outcomes, total = process_rows(rows, roster, MemoryStore(), NOW)
    assert total == 4
    assert [o.row_number for o in outcomes] == [3, 4, 5]

    summary = summarize(outcomes, total)
    assert (summary.total, summary.added, summary.updated, summary.failed) == (4, 2, 0, 1)
    assert summary.errors == ("ردیف 4: نمره کمی باید عددی بین 0 تا 20 باشد",)
    payload = summary.to_payload()
    assert payload["success"] is True
    assert payload["summary"]["success"] == 2
    assert payload["message"] == "2 فعالیت جدید اضافه و 0 فعالیت به‌روزرسانی شد"
    assert [r["student"] for r in payload["results"]] == ["علی رضایی", "علی رضایی‌نژاد"]
