"""PRAGMAهای یکسان برای همهٔ اتصال‌های SQLite برنامه."""
from __future__ import annotations

import sqlite3

# فقط این PRAGMAها از این ماژول قابل تنظیم‌اند
_ALLOWED_PRAGMAS = frozenset({"foreign_keys", "journal_mode", "synchronous", "busy_timeout"})


def _set_pragma(conn: sqlite3.Connection, name: str, value: str | int) -> None:
    """اجرای یک PRAGMA مجاز؛ نام ناشناخته ``ValueError`` می‌دهد.

    >>> _set_pragma(sqlite3.connect(":memory:"), "synchronous", "NORMAL")
    """
    if name not in _ALLOWED_PRAGMAS:
        raise ValueError(f"PRAGMA not allowed: {name}")
    conn.execute(f"PRAGMA {name} = {value};")


def configure_connection(conn: sqlite3.Connection, *, busy_timeout_ms: int = 5000) -> sqlite3.Connection:
    """کلید خارجی، WAL و مهلت انتظار قفل را روی ``conn`` تنظیم می‌کند.

    ورودهای هم‌زمان روی یک فایل با ``BEGIN IMMEDIATE`` صف می‌شوند و
    ``busy_timeout`` مدت انتظار هر کدام را تعیین می‌کند.

    >>> sqlite3_conn = configure_connection(sqlite3.connect(":memory:"), busy_timeout_ms=250)
    >>> sqlite3_conn.execute("PRAGMA busy_timeout;").fetchone()[0]
    250
    """

    conn.row_factory = sqlite3.Row
    for name, value in (
        ("foreign_keys", "ON"),
        ("journal_mode", "WAL"),
        ("synchronous", "NORMAL"),
        ("busy_timeout", int(busy_timeout_ms)),
    ):
        _set_pragma(conn, name, value)
    return conn


__all__ = ["configure_connection"]
