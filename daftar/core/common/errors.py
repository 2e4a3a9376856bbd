"""تعریف خطاهای دامنه برای هستهٔ ورود و استخراج فعالیت‌ها."""
from __future__ import annotations

from dataclasses import dataclass


class DomainError(Exception):
    """پایهٔ تمام خطاهای دامنه‌ای."""


@dataclass(eq=False)
class ActivityImportError(DomainError):
    """خطای سطح دسته که کل درخواست ورود را متوقف می‌کند.

    Attributes:
        message: پیام فارسی قابل نمایش به معلم.
        detail: جزئیات فنی برای لاگ (به کاربر نمایش داده نمی‌شود).
    """

    message: str
    detail: str | None = None

    def __str__(self) -> str:
        return self.message


class WorkbookMissingError(ActivityImportError):
    """فایل ورودی انتخاب نشده یا روی دیسک وجود ندارد."""


class WorkbookFormatError(ActivityImportError):
    """فایل خالی است یا قابل خواندن به‌عنوان Excel نیست."""


class AccessDeniedError(ActivityImportError):
    """هویت نشست نامعتبر است یا نقش لازم را ندارد."""


class ExtractionError(ActivityImportError):
    """فراخوانی مدل زبانی شکست خورد یا خروجی آن قابل تفسیر نبود."""


class ConfigError(DomainError):
    """ساختار فایل تنظیمات معتبر نیست."""


class StoreWriteError(DomainError):
    """نوشتن یک ردیف در ذخیره‌ساز شکست خورد (فقط همان ردیف رد می‌شود)."""


__all__ = [
    "AccessDeniedError",
    "ActivityImportError",
    "ConfigError",
    "DomainError",
    "ExtractionError",
    "StoreWriteError",
    "WorkbookFormatError",
    "WorkbookMissingError",
]
