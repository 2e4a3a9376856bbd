"""تفسیر خروجی مدل زبانی و ساخت پیش‌نویس رکورد فعالیت.

خروجی مدل قابل اعتماد نیست؛ هر فیلد جداگانه به نوع درست تبدیل می‌شود و
مقادیر نامعتبر به ``None`` برمی‌گردند:

- نوع فعالیت ناشناخته ← ``None``
- نمرهٔ غیرعددی یا خارج از ``[0, 20]`` ← ``None``
- تاریخ شمسی ← میلادی؛ تاریخ غایب یا نامفهوم ← امروز
- عنوان غایب ← برچسب فارسی نوع، و در نبود آن «فعالیت»

پس از یافتن دانش‌آموز، کلاس و درس بر اساس نام درس ذکرشده (زیررشته) یا
اولین تخصیص انتخاب می‌شوند.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Mapping

from daftar.core.activity_types import ActivityTypeMap, field_rule_for
from daftar.core.common.normalization import cell_text, fold_name, to_ascii_digits
from daftar.core.jalali import TodayContext, is_iso_date, normalize_jalali_date
from daftar.core.matching import StudentMatch, find_student
from daftar.core.models import LessonRef
from daftar.core.roster import ClassRef, RosterSnapshot
from daftar.core.validation import RowRejected, parse_score

__all__ = [
    "DEFAULT_TITLE",
    "AVAILABLE_STUDENTS_LIMIT",
    "ExtractedFields",
    "ExtractedActivity",
    "StudentNotFound",
    "coerce_model_payload",
    "coerce_activity_date",
    "assemble_record",
    "build_system_prompt",
]

DEFAULT_TITLE = "فعالیت"
AVAILABLE_STUDENTS_LIMIT = 10


@dataclass(frozen=True)
class ExtractedFields:
    student_name: str
    activity_type: str | None
    quantitative_score: float | None
    qualitative_evaluation: str | None
    subject_name: str | None
    activity_title: str
    activity_date: str


@dataclass(frozen=True)
class ClassOption:
    class_id: str
    class_name: str
    grade_level: str | None
    subject_id: str | None
    subject_name: str | None

    def to_payload(self) -> dict[str, Any]:
        return {
            "class_id": self.class_id,
            "class_name": self.class_name,
            "grade_level": self.grade_level,
            "subject_id": self.subject_id,
            "subject_name": self.subject_name,
        }


@dataclass(frozen=True)
class ExtractedActivity:
    """پیش‌نویس رکورد برای تأیید معلم؛ هیچ چیزی ذخیره نشده است."""

    student_id: str
    student_name: str
    selected: ClassOption
    fields: ExtractedFields
    missing_fields: tuple[str, ...] = ()
    all_classes: tuple[ClassOption, ...] = field(default_factory=tuple)
    match_tier: str | None = None

    @property
    def message(self) -> str:
        return f'اطلاعات دانش‌آموز "{self.student_name}" با موفقیت استخراج شد'

    def to_payload(self) -> dict[str, Any]:
        return {
            "success": True,
            "data": {
                "student_id": self.student_id,
                "student_name": self.student_name,
                "class_id": self.selected.class_id,
                "class_name": self.selected.class_name,
                "grade_level": self.selected.grade_level,
                "subject_id": self.selected.subject_id,
                "subject_name": self.selected.subject_name,
                "activity_type": self.fields.activity_type,
                "activity_title": self.fields.activity_title,
                "activity_date": self.fields.activity_date,
                "quantitative_score": self.fields.quantitative_score,
                "qualitative_evaluation": self.fields.qualitative_evaluation,
                "missing_fields": list(self.missing_fields),
                "all_classes": [option.to_payload() for option in self.all_classes],
            },
            "message": self.message,
        }


@dataclass(frozen=True)
class StudentNotFound:
    extracted_name: str
    available_students: tuple[str, ...]
    roster_empty: bool = False

    def to_payload(self) -> dict[str, Any]:
        if self.roster_empty:
            return {
                "success": False,
                "error": "هیچ دانش‌آموزی برای این معلم یافت نشد",
                "hint": "ابتدا باید کلاس‌ها و دانش‌آموزان را به معلم اختصاص دهید",
            }
        return {
            "success": False,
            "error": "دانش‌آموزی با این نام در لیست شما یافت نشد",
            "hint": (
                f'نام وارد شده: "{self.extracted_name}". لطفاً نام را بررسی کنید '
                "یا از لیست دانش‌آموزان خود انتخاب کنید."
            ),
            "extracted_name": self.extracted_name,
            "available_students": list(self.available_students),
        }


def _coerce_score(value: Any) -> float | None:
    try:
        return parse_score(value)
    except RowRejected:
        return None


def coerce_activity_date(value: Any, today: date) -> str:
    text = to_ascii_digits(value)
    if text and is_iso_date(text):
        return text
    converted = normalize_jalali_date(text) if text else None
    return converted or today.isoformat()


def coerce_model_payload(
    payload: Mapping[str, Any],
    *,
    activity_types: ActivityTypeMap,
    today: date,
) -> ExtractedFields:
    """تبدیل امن JSON مدل به :class:`ExtractedFields`."""

    type_key = activity_types.resolve(payload.get("activity_type"))
    title = cell_text(payload.get("activity_title"))
    if not title:
        title = (activity_types.label_for(type_key) if type_key else "") or DEFAULT_TITLE
    return ExtractedFields(
        student_name=cell_text(payload.get("student_name")),
        activity_type=type_key,
        quantitative_score=_coerce_score(payload.get("quantitative_score")),
        qualitative_evaluation=cell_text(payload.get("qualitative_evaluation")) or None,
        subject_name=cell_text(payload.get("subject_name")) or None,
        activity_title=title,
        activity_date=coerce_activity_date(payload.get("activity_date"), today),
    )


def _class_options(roster: RosterSnapshot, student_id: str) -> list[ClassOption]:
    options: list[ClassOption] = []
    for ref in roster.classes_of_student(student_id):
        lessons = roster.lessons_in(ref.id) or (None,)
        for lesson in lessons:
            options.append(_option(ref, lesson))
    return options


def _option(ref: ClassRef, lesson: LessonRef | None) -> ClassOption:
    return ClassOption(
        class_id=ref.id,
        class_name=ref.display_name,
        grade_level=ref.grade_level,
        subject_id=lesson.id if lesson else None,
        subject_name=lesson.title if lesson else None,
    )


def _select_option(options: list[ClassOption], subject_name: str | None) -> ClassOption:
    wanted = fold_name(subject_name)
    if wanted:
        for option in options:
            if wanted in fold_name(option.subject_name):
                return option
    return options[0]


def _applicable_fields(fields: ExtractedFields) -> tuple[ExtractedFields, tuple[str, ...]]:
    if fields.activity_type is None:
        return fields, ("activity_type",)
    rule = field_rule_for(fields.activity_type)
    missing: list[str] = []
    score = fields.quantitative_score if rule.allows_score else None
    qualitative = fields.qualitative_evaluation if rule.allows_qualitative else None
    if rule.requires_score and score is None:
        missing.append("quantitative_score")
    adjusted = replace(fields, quantitative_score=score, qualitative_evaluation=qualitative)
    return adjusted, tuple(missing)


def assemble_record(
    fields: ExtractedFields, roster: RosterSnapshot
) -> ExtractedActivity | StudentNotFound:
    """یافتن دانش‌آموز در فهرست معلم و ساخت پیش‌نویس نهایی."""

    students = sorted(roster.all_students(), key=lambda s: (fold_name(s.name), s.id))
    if not students:
        return StudentNotFound(extracted_name=fields.student_name, available_students=(), roster_empty=True)

    match: StudentMatch | None = find_student(fields.student_name, students)
    if match is None:
        return StudentNotFound(
            extracted_name=fields.student_name,
            available_students=tuple(s.name for s in students[:AVAILABLE_STUDENTS_LIMIT]),
        )

    student = match.candidate
    options = _class_options(roster, student.id)
    selected = _select_option(options, fields.subject_name)
    adjusted, missing = _applicable_fields(fields)
    return ExtractedActivity(
        student_id=student.id,
        student_name=student.name,
        selected=selected,
        fields=adjusted,
        missing_fields=missing,
        all_classes=tuple(options),
        match_tier=match.tier.value,
    )


def build_system_prompt(today: TodayContext, activity_types: ActivityTypeMap) -> str:
    """متن دستور سیستمی مدل با تاریخ امروز و فهرست انواع فعالیت مدرسه."""

    type_lines = "\n".join(
        f"   - {key}: {label}" for key, label in activity_types.labels.items()
    )
    return f"""شما یک دستیار هوشمند برای استخراج اطلاعات فعالیت‌های دانش‌آموزی هستید.

اطلاعات تاریخ فعلی:
- امروز: {today.weekday_fa} {today.jalali} (میلادی: {today.gregorian})

از متن ورودی فارسی معلم، فقط اطلاعات زیر را استخراج کنید:

1. student_name: نام و نام خانوادگی دانش‌آموز (یا فقط یکی از آنها)
2. activity_type: نوع فعالیت (یکی از موارد زیر):
{type_lines}
3. quantitative_score: نمره عددی (بین 0 تا 20)
4. qualitative_evaluation: ارزیابی کیفی و توضیحی (اختیاری)
5. subject_name: نام درس (اختیاری - اگر ذکر شده باشد)
6. activity_title: عنوان فعالیت (اختیاری)
7. activity_date: تاریخ فعالیت به فرمت YYYY-MM-DD (میلادی)
   - اگر "امروز" گفته شد: {today.gregorian}
   - اگر "دیروز" گفته شد: تاریخ یک روز قبل را محاسبه کن
   - اگر "X روز پیش/قبل" گفته شد: تاریخ X روز قبل را محاسبه کن
   - اگر "هفته گذشته/پیش" گفته شد: تاریخ 7 روز قبل را محاسبه کن
   - اگر تاریخ شمسی مشخص گفته شد (مثل 1403/10/13): همان را به فرمت YYYY/MM/DD برگردان
   - اگر فقط روز هفته گفته شد: نزدیک‌ترین همان روز گذشته را پیدا کن
   - اگر هیچ تاریخی ذکر نشد: null

توجه:
- فقط اطلاعاتی که در متن موجود است را استخراج کنید
- برای موارد اختیاری که وجود ندارد، null بگذارید

فقط JSON برگردانید، بدون توضیح اضافی."""
