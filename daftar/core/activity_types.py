"""واژگان ثابت انواع فعالیت و جدول کاربرد فیلدها.

- :class:`ActivityTypeKey`: هفت کلید کانونی.
- :data:`DEFAULT_ACTIVITY_TYPE_LABELS`: نگاشت پیش‌فرض نام فارسی ← کلید، برای
  مدارسی که نوع فعالیت سفارشی تعریف نکرده‌اند.
- :data:`FIELD_RULES`: جدول ثابت (غیرقابل تنظیم برای مدرسه) که مشخص می‌کند
  هر نوع، نمرهٔ کمی لازم دارد و آیا ارزیابی کیفی می‌پذیرد.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Iterable, Mapping

from daftar.core.common.normalization import normalize_label

__all__ = [
    "ActivityTypeKey",
    "ActivityTypeMap",
    "DEFAULT_ACTIVITY_TYPE_LABELS",
    "FIELD_RULES",
    "FieldRule",
    "build_activity_type_map",
    "field_rule_for",
    "persian_label_for",
]


class ActivityTypeKey(StrEnum):
    MIDTERM_EXAM = "midterm_exam"
    FINAL_EXAM = "final_exam"
    MONTHLY_EXAM = "monthly_exam"
    WEEKLY_EXAM = "weekly_exam"
    CLASS_ACTIVITY = "class_activity"
    CLASS_HOMEWORK = "class_homework"
    HOME_HOMEWORK = "home_homework"


DEFAULT_ACTIVITY_TYPE_LABELS: Mapping[str, str] = {
    "آزمون میان‌ترم": ActivityTypeKey.MIDTERM_EXAM.value,
    "آزمون پایان ترم": ActivityTypeKey.FINAL_EXAM.value,
    "آزمون ماهیانه": ActivityTypeKey.MONTHLY_EXAM.value,
    "آزمون هفتگی": ActivityTypeKey.WEEKLY_EXAM.value,
    "فعالیت کلاسی": ActivityTypeKey.CLASS_ACTIVITY.value,
    "تکلیف کلاسی": ActivityTypeKey.CLASS_HOMEWORK.value,
    "تکلیف منزل": ActivityTypeKey.HOME_HOMEWORK.value,
}

_DEFAULT_LABEL_BY_KEY: Mapping[str, str] = {
    key: label for label, key in DEFAULT_ACTIVITY_TYPE_LABELS.items()
}


@dataclass(frozen=True, slots=True)
class FieldRule:
    """قواعد کاربرد فیلد برای یک نوع فعالیت."""

    requires_score: bool
    allows_score: bool
    allows_qualitative: bool


FIELD_RULES: Mapping[str, FieldRule] = {
    ActivityTypeKey.MIDTERM_EXAM: FieldRule(True, True, False),
    ActivityTypeKey.FINAL_EXAM: FieldRule(True, True, False),
    ActivityTypeKey.MONTHLY_EXAM: FieldRule(True, True, False),
    ActivityTypeKey.WEEKLY_EXAM: FieldRule(True, True, False),
    ActivityTypeKey.CLASS_ACTIVITY: FieldRule(True, True, True),
    ActivityTypeKey.CLASS_HOMEWORK: FieldRule(True, True, True),
    ActivityTypeKey.HOME_HOMEWORK: FieldRule(True, True, False),
}

# school-defined keys outside the fixed vocabulary
_PERMISSIVE_RULE = FieldRule(requires_score=False, allows_score=True, allows_qualitative=True)


def field_rule_for(type_key: str) -> FieldRule:
    return FIELD_RULES.get(type_key, _PERMISSIVE_RULE)


def persian_label_for(type_key: str | None) -> str | None:
    if not type_key:
        return None
    return _DEFAULT_LABEL_BY_KEY.get(type_key)


@dataclass(frozen=True)
class ActivityTypeMap:
    """نگاشت برچسب نمایشی ← کلید کانونی برای یک مدرسه.

    جست‌وجو دقیق است (پس از یکسان‌سازی املایی)؛ خود کلید کانونی نیز
    پذیرفته می‌شود.
    """

    by_label: Mapping[str, str]
    labels: Mapping[str, str]
    is_default: bool = False

    def resolve(self, label: object) -> str | None:
        normalized = normalize_label(label)
        if not normalized:
            return None
        found = self.by_label.get(normalized)
        if found is not None:
            return found
        if normalized in self.labels:
            return normalized
        return None

    def label_for(self, type_key: str) -> str:
        return self.labels.get(type_key) or persian_label_for(type_key) or type_key


def build_activity_type_map(school_rows: Iterable[tuple[str, str]]) -> ActivityTypeMap:
    """ساخت نگاشت از ردیف‌های ``(type_key, persian_name)`` فعال مدرسه.

    اگر مدرسه هیچ نوع فعالی نداشته باشد، نگاشت پیش‌فرض ثابت استفاده می‌شود.

    >>> build_activity_type_map([]).resolve("تکلیف منزل")
    'home_homework'
    """

    pairs = [(str(key).strip(), str(name).strip()) for key, name in school_rows if key and name]
    is_default = not pairs
    if is_default:
        pairs = [(key, label) for label, key in DEFAULT_ACTIVITY_TYPE_LABELS.items()]
    by_label: dict[str, str] = {}
    labels: dict[str, str] = {}
    for key, name in pairs:
        by_label.setdefault(normalize_label(name), key)
        labels.setdefault(key, name)
    return ActivityTypeMap(by_label=by_label, labels=labels, is_default=is_default)
