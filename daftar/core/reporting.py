"""جمع‌بندی پیامدهای ردیف‌ها به خلاصهٔ قابل نمایش."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from daftar.core.common.reasons import format_row_error
from daftar.core.models import RowOutcome, RowStatus

__all__ = ["BatchSummary", "summarize", "summary_message"]


def summary_message(added: int, updated: int) -> str:
    return f"{added} فعالیت جدید اضافه و {updated} فعالیت به‌روزرسانی شد"


@dataclass(frozen=True)
class BatchSummary:
    total: int
    added: int
    updated: int
    failed: int
    results: tuple[RowOutcome, ...] = field(default_factory=tuple)
    errors: tuple[str, ...] = field(default_factory=tuple)

    @property
    def success(self) -> int:
        return self.added + self.updated

    @property
    def message(self) -> str:
        return summary_message(self.added, self.updated)

    def to_payload(self) -> Mapping[str, Any]:
        return {
            "success": True,
            "message": self.message,
            "summary": {
                "total": self.total,
                "added": self.added,
                "updated": self.updated,
                "success": self.success,
                "failed": self.failed,
            },
            "results": [outcome.to_payload() for outcome in self.results],
            "errors": list(self.errors),
        }


def summarize(outcomes: Iterable[RowOutcome], total: int) -> BatchSummary:
    """ساخت :class:`BatchSummary`؛ حتی اگر همهٔ ردیف‌ها رد شده باشند.

    >>> summarize([], 0).message
    '0 فعالیت جدید اضافه و 0 فعالیت به‌روزرسانی شد'
    """

    added = updated = 0
    accepted: list[RowOutcome] = []
    errors: list[str] = []
    for outcome in outcomes:
        if outcome.status is RowStatus.ADDED:
            added += 1
        elif outcome.status is RowStatus.UPDATED:
            updated += 1
        if outcome.status is RowStatus.REJECTED:
            if outcome.reason is not None:
                errors.append(format_row_error(outcome.row_number, outcome.reason))
            else:
                errors.append(f"ردیف {outcome.row_number}: خطای نامشخص")
        else:
            accepted.append(outcome)
    return BatchSummary(
        total=total,
        added=added,
        updated=updated,
        failed=len(errors),
        results=tuple(accepted),
        errors=tuple(errors),
    )
