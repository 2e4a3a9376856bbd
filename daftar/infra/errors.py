"""مدل خطای لایهٔ Infra برای پایگاه داده و سرویس‌های بیرونی."""
from __future__ import annotations

from dataclasses import dataclass

from daftar.core.common.errors import ActivityImportError


class InfraError(RuntimeError):
    """پایهٔ همهٔ خطاهای لایهٔ زیرساخت."""


@dataclass(eq=True)
class SchemaVersionMismatchError(InfraError):
    """عدم تطابق نسخهٔ Schema پایگاه داده با نسخهٔ مورد انتظار."""

    expected_version: int
    actual_version: int
    message: str

    def __str__(self) -> str:
        return f"{self.message} (expected={self.expected_version}, actual={self.actual_version})"


@dataclass(eq=False)
class DatabaseOperationError(InfraError, ActivityImportError):
    """خطای کلی عملیات SQLite با پیام خوانا؛ کل دسته را متوقف می‌کند."""

    message: str
    detail: str | None = None

    def __str__(self) -> str:
        return self.message


__all__ = [
    "DatabaseOperationError",
    "InfraError",
    "SchemaVersionMismatchError",
]
