"""ثبت یا به‌روزرسانی فعالیت بر اساس کلید (دانش‌آموز، تاریخ، نوع، معلم).

کلید شامل کلاس و درس نیست؛ ورود دوبارهٔ همان ردیف با درس دیگر، رکورد
موجود را بازنویسی می‌کند.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from datetime import datetime
from typing import Protocol

from daftar.core.models import ResolvedActivity, RowStatus

__all__ = ["ActivityStore", "apply_activity"]


class ActivityStore(Protocol):
    """قرارداد ذخیره‌سازی که هسته از آن استفاده می‌کند.

    خطای نوشتن باید به‌صورت :class:`daftar.core.common.errors.StoreWriteError`
    اعلام شود تا فقط همان ردیف رد شود.
    """

    def find_activity_id(
        self, student_id: str, activity_date: str, activity_type: str, teacher_id: str
    ) -> str | None: ...

    def insert_activity(self, activity: ResolvedActivity, now: datetime) -> str: ...

    def update_activity(self, activity_id: str, activity: ResolvedActivity, now: datetime) -> None: ...

    def savepoint(self) -> AbstractContextManager[object]: ...


def apply_activity(store: ActivityStore, activity: ResolvedActivity, now: datetime) -> RowStatus:
    existing = store.find_activity_id(
        activity.student_id,
        activity.activity_date,
        activity.activity_type,
        activity.teacher_id,
    )
    if existing is None:
        store.insert_activity(activity, now)
        return RowStatus.ADDED
    store.update_activity(existing, activity, now)
    return RowStatus.UPDATED
