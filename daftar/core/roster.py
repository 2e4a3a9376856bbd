"""تصویر لحظه‌ای فهرست کلاس‌ها، درس‌ها و دانش‌آموزان یک معلم.

تصویر یک‌بار برای هر دسته ساخته می‌شود و در طول پردازش ردیف‌ها فقط خوانده
می‌شود. ورودی‌ها ردیف‌های خام پایگاه داده‌اند؛ عضویت‌هایی که به کلاس‌های
تخصیص‌یافتهٔ همین معلم تعلق ندارند کنار گذاشته می‌شوند تا تطبیق هرگز از
فهرست معلم بیرون نرود.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping, Sequence

from daftar.core.activity_types import ActivityTypeMap, build_activity_type_map
from daftar.core.common.normalization import cell_text, normalize_label
from daftar.core.models import LessonRef, StudentCandidate

__all__ = ["ClassRef", "RosterSnapshot", "build_roster", "class_display_name"]


def class_display_name(name: object, section: object = None) -> str:
    """نام نمایشی کلاس به شکل ``نام-بخش``؛ بدون بخش فقط نام.

    >>> class_display_name("هفتم", "الف")
    'هفتم-الف'
    """

    base = cell_text(name)
    suffix = cell_text(section)
    return f"{base}-{suffix}" if suffix else base


@dataclass(frozen=True)
class ClassRef:
    id: str
    name: str
    section: str | None = None
    grade_level: str | None = None

    @property
    def display_name(self) -> str:
        return class_display_name(self.name, self.section)


@dataclass(frozen=True)
class RosterSnapshot:
    teacher_id: str
    school_id: str
    classes: Mapping[str, ClassRef] = field(default_factory=dict)
    students_by_class: Mapping[str, tuple[StudentCandidate, ...]] = field(default_factory=dict)
    lessons_by_class: Mapping[str, tuple[LessonRef, ...]] = field(default_factory=dict)
    activity_types: ActivityTypeMap = field(default_factory=lambda: build_activity_type_map(()))

    def find_class(self, label: object) -> ClassRef | None:
        target = normalize_label(label)
        if not target:
            return None
        hits = [
            ref
            for ref in self.classes.values()
            if normalize_label(ref.display_name) == target
        ]
        if not hits:
            return None
        return min(hits, key=lambda ref: ref.id)

    def students_in(self, class_id: str) -> tuple[StudentCandidate, ...]:
        return self.students_by_class.get(class_id, ())

    def all_students(self) -> list[StudentCandidate]:
        seen: dict[str, StudentCandidate] = {}
        for class_id in sorted(self.students_by_class):
            for student in self.students_by_class[class_id]:
                seen.setdefault(student.id, student)
        return list(seen.values())

    def classes_of_student(self, student_id: str) -> list[ClassRef]:
        return [
            self.classes[class_id]
            for class_id in sorted(self.students_by_class)
            if any(s.id == student_id for s in self.students_by_class[class_id])
        ]

    def lessons_in(self, class_id: str) -> tuple[LessonRef, ...]:
        return self.lessons_by_class.get(class_id, ())

    def find_lesson(self, title: object, class_id: str) -> LessonRef | None:
        """جست‌وجوی دقیق درس (پس از یکسان‌سازی املایی) در کلاس داده‌شده."""

        target = normalize_label(title)
        if not target:
            return None
        hits = [ref for ref in self.lessons_in(class_id) if normalize_label(ref.title) == target]
        if not hits:
            return None
        return min(hits, key=lambda ref: ref.id)

    def all_lessons(self) -> list[LessonRef]:
        return [lesson for class_id in sorted(self.lessons_by_class) for lesson in self.lessons_by_class[class_id]]


def build_roster(
    teacher_id: str,
    school_id: str,
    assignments: Iterable[Mapping[str, object]],
    memberships: Iterable[Mapping[str, object]],
    activity_type_rows: Iterable[tuple[str, str]] = (),
) -> RosterSnapshot:
    """ساخت :class:`RosterSnapshot` از ردیف‌های خام.

    Args:
        assignments: ردیف‌هایی با کلیدهای ``class_id, class_name, section,
            grade_level, lesson_id, lesson_title``.
        memberships: ردیف‌هایی با کلیدهای ``student_id, name, national_id,
            class_id``.
        activity_type_rows: جفت‌های ``(type_key, persian_name)`` فعال مدرسه.
    """

    classes: dict[str, ClassRef] = {}
    lessons: dict[str, dict[str, LessonRef]] = {}
    for row in assignments:
        class_id = cell_text(row.get("class_id"))
        if not class_id:
            continue
        if class_id not in classes:
            classes[class_id] = ClassRef(
                id=class_id,
                name=cell_text(row.get("class_name")),
                section=cell_text(row.get("section")) or None,
                grade_level=cell_text(row.get("grade_level")) or None,
            )
        lesson_id = cell_text(row.get("lesson_id"))
        if lesson_id:
            lessons.setdefault(class_id, {})[lesson_id] = LessonRef(
                id=lesson_id,
                title=cell_text(row.get("lesson_title")),
                class_id=class_id,
            )

    students: dict[str, dict[str, StudentCandidate]] = {}
    for row in memberships:
        class_id = cell_text(row.get("class_id"))
        ref = classes.get(class_id)
        if ref is None:
            continue
        student_id = cell_text(row.get("student_id"))
        if not student_id:
            continue
        students.setdefault(class_id, {})[student_id] = StudentCandidate(
            id=student_id,
            name=cell_text(row.get("name")),
            national_id=cell_text(row.get("national_id")) or None,
            class_id=class_id,
            class_name=ref.display_name,
            grade_level=ref.grade_level,
        )

    return RosterSnapshot(
        teacher_id=teacher_id,
        school_id=school_id,
        classes=classes,
        students_by_class={key: _sorted_by_id(value.values()) for key, value in students.items()},
        lessons_by_class={key: _sorted_by_id(value.values()) for key, value in lessons.items()},
        activity_types=build_activity_type_map(activity_type_rows),
    )


def _sorted_by_id(items: Iterable) -> tuple:
    ordered: Sequence = sorted(items, key=lambda item: item.id)
    return tuple(ordered)
