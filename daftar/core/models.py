"""مدل‌های دادهٔ مسیر ورود فعالیت (بدون وابستگی به ذخیره‌ساز)."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Mapping

from daftar.core.common.reasons import LocalizedReason, ReasonCode

__all__ = [
    "ImportRow",
    "ValidRow",
    "ResolvedActivity",
    "RowStatus",
    "RowOutcome",
    "StudentCandidate",
    "LessonRef",
    "ActivityRecordView",
]


@dataclass(frozen=True)
class ImportRow:
    """یک ردیف خام ورودی؛ فقط در طول یک فراخوانی ورود زنده است.

    ``row_number`` شمارهٔ ردیف در Excel (۱-پایه، با احتساب سطر سرستون) است.
    """

    row_number: int
    student_name: str = ""
    national_id: str = ""
    class_name: str = ""
    grade: str = ""
    lesson_name: str = ""
    activity_type_label: str = ""
    activity_title: str = ""
    date_text: str = ""
    score: Any = None
    qualitative: Any = None


@dataclass(frozen=True)
class ValidRow:
    """ردیف پس از بررسی فیلدهای الزامی و تبدیل نمره."""

    row: ImportRow
    score: float | None
    qualitative: str | None


@dataclass(frozen=True)
class StudentCandidate:
    """یک دانش‌آموز از فهرست معلم در یک کلاس مشخص."""

    id: str
    name: str
    national_id: str | None = None
    class_id: str | None = None
    class_name: str | None = None
    grade_level: str | None = None


@dataclass(frozen=True)
class LessonRef:
    id: str
    title: str
    class_id: str


@dataclass(frozen=True)
class ResolvedActivity:
    """فعالیت معتبر و متصل به شناسه‌ها، آمادهٔ upsert."""

    student_id: str
    class_id: str
    lesson_id: str
    activity_type: str
    title: str
    activity_date: str
    score: float | None
    qualitative: str | None
    teacher_id: str


class RowStatus(StrEnum):
    ADDED = "added"
    UPDATED = "updated"
    REJECTED = "rejected"


@dataclass(frozen=True)
class RowOutcome:
    """نتیجهٔ پردازش یک ردیف."""

    row_number: int
    status: RowStatus
    student: str | None = None
    activity: str | None = None
    reason: LocalizedReason | None = None

    @property
    def reason_code(self) -> ReasonCode | None:
        return self.reason.code if self.reason is not None else None

    def to_payload(self) -> Mapping[str, Any]:
        payload: dict[str, Any] = {
            "row": self.row_number,
            "student": self.student,
            "activity": self.activity,
            "status": self.status.value,
        }
        if self.reason is not None:
            payload["reason_code"] = self.reason.code.value
            payload["reason"] = self.reason.message_fa
        return payload


@dataclass(frozen=True)
class ActivityRecordView:
    """نمای فقط‌خواندنی یک رکورد ذخیره‌شده (برای تست و گزارش)."""

    id: str
    student_id: str
    teacher_id: str
    activity_type: str
    activity_date: str
    title: str
    score: float | None
    qualitative: str | None
    class_id: str
    lesson_id: str
    created_at: str
    updated_at: str
