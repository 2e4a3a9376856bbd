"""پردازش ترتیبی ردیف‌های ورودی در یک دسته.

برای هر ردیف: اعتبارسنجی ← تبدیل تاریخ ← حل موجودیت‌ها ← upsert. تنها
حالت مشترک بین ردیف‌ها تصویر فهرست معلم است. ردیف‌های نمونه بدون پیامد
کنار گذاشته می‌شوند ولی در ``total`` شمرده می‌شوند.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Sequence

from daftar.core.common.errors import StoreWriteError
from daftar.core.common.normalization import cell_text
from daftar.core.common.reasons import ReasonCode, build_reason
from daftar.core.jalali import normalize_jalali_date
from daftar.core.matching import find_student
from daftar.core.models import ImportRow, ResolvedActivity, RowOutcome, RowStatus
from daftar.core.roster import RosterSnapshot
from daftar.core.upsert import ActivityStore, apply_activity
from daftar.core.validation import (
    RowRejected,
    check_field_applicability,
    is_sample_row,
    validate_row,
)

__all__ = ["process_row", "process_rows", "resolve_row"]


def resolve_row(row: ImportRow, roster: RosterSnapshot) -> ResolvedActivity:
    """تبدیل یک ردیف خام به :class:`ResolvedActivity` یا :class:`RowRejected`."""

    valid = validate_row(row)

    activity_date = normalize_jalali_date(row.date_text)
    if activity_date is None:
        raise RowRejected(build_reason(ReasonCode.INVALID_DATE))

    student_label = cell_text(row.student_name)
    class_label = cell_text(row.class_name)
    class_ref = roster.find_class(class_label)
    match = find_student(student_label, roster.students_in(class_ref.id)) if class_ref else None
    if match is None:
        raise RowRejected(
            build_reason(ReasonCode.STUDENT_NOT_FOUND, student=student_label, class_name=class_label)
        )

    lesson = roster.find_lesson(row.lesson_name, class_ref.id)
    if lesson is None:
        raise RowRejected(
            build_reason(
                ReasonCode.LESSON_NOT_FOUND,
                lesson=cell_text(row.lesson_name),
                class_name=class_label,
            )
        )

    type_label = cell_text(row.activity_type_label)
    type_key = roster.activity_types.resolve(type_label)
    if type_key is None:
        raise RowRejected(build_reason(ReasonCode.UNKNOWN_ACTIVITY_TYPE, activity_type=type_label))

    check_field_applicability(type_key, valid.score, valid.qualitative, label=type_label)

    return ResolvedActivity(
        student_id=match.candidate.id,
        class_id=class_ref.id,
        lesson_id=lesson.id,
        activity_type=type_key,
        title=cell_text(row.activity_title),
        activity_date=activity_date,
        score=valid.score,
        qualitative=valid.qualitative,
        teacher_id=roster.teacher_id,
    )


def process_row(
    row: ImportRow, roster: RosterSnapshot, store: ActivityStore, now: datetime
) -> RowOutcome:
    try:
        resolved = resolve_row(row, roster)
    except RowRejected as rejection:
        return RowOutcome(
            row_number=row.row_number,
            status=RowStatus.REJECTED,
            student=cell_text(row.student_name) or None,
            activity=cell_text(row.activity_title) or None,
            reason=rejection.reason,
        )

    student_name = next(
        (s.name for s in roster.students_in(resolved.class_id) if s.id == resolved.student_id),
        cell_text(row.student_name),
    )
    try:
        with store.savepoint():
            status = apply_activity(store, resolved, now)
    except StoreWriteError as exc:
        return RowOutcome(
            row_number=row.row_number,
            status=RowStatus.REJECTED,
            student=student_name,
            activity=resolved.title,
            reason=build_reason(ReasonCode.WRITE_FAILED, detail=str(exc)),
        )
    return RowOutcome(
        row_number=row.row_number,
        status=status,
        student=student_name,
        activity=resolved.title,
    )


def process_rows(
    rows: Iterable[ImportRow],
    roster: RosterSnapshot,
    store: ActivityStore,
    now: datetime,
) -> tuple[list[RowOutcome], int]:
    """پردازش همهٔ ردیف‌ها؛ خروجی: پیامدها و تعداد کل ردیف‌های خوانده‌شده."""

    materialized: Sequence[ImportRow] = list(rows)
    outcomes: list[RowOutcome] = []
    for row in materialized:
        if is_sample_row(row):
            continue
        outcomes.append(process_row(row, roster, store, now))
    return outcomes, len(materialized)
