# file: daftar/infra/local_database.py
"""پایگاه دادهٔ محلی SQLite برای مدرسه، فهرست معلم و فعالیت‌های آموزشی.

این ماژول یک لایهٔ نازک روی :mod:`sqlite3` است. Schema به‌صورت
دترمینیستیک ساخته می‌شود و نسخهٔ آن در ``schema_meta`` ثبت و در هر بار
مقداردهی اولیه اعتبارسنجی می‌شود.

ورود دسته‌ای در یک تراکنش ``BEGIN IMMEDIATE`` اجرا می‌شود؛ هر ردیف در یک
SAVEPOINT جدا نوشته می‌شود تا خطای نوشتن فقط همان ردیف را برگرداند.

نمونهٔ استفادهٔ سریع:

>>> db = LocalDatabase(Path("daftar.sqlite3"))
>>> db.initialize()
>>> with db.batch() as store:
...     roster = db.load_roster("t1", "s1", conn=store.conn)
"""
from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, List, Mapping, Sequence

from daftar.core.common.errors import StoreWriteError
from daftar.core.models import ActivityRecordView, ResolvedActivity
from daftar.core.roster import RosterSnapshot, build_roster
from daftar.infra.errors import DatabaseOperationError, SchemaVersionMismatchError
from daftar.infra.sqlite_config import configure_connection

_SCHEMA_VERSION = 1
_ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

logger = logging.getLogger(__name__)

_SCHEMA_STATEMENTS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS schools (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        national_id TEXT,
        role TEXT NOT NULL,
        school_id TEXT REFERENCES schools(id),
        is_active INTEGER NOT NULL DEFAULT 1,
        profile TEXT
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS classes (
        id TEXT PRIMARY KEY,
        school_id TEXT NOT NULL REFERENCES schools(id),
        name TEXT NOT NULL,
        section TEXT,
        grade_level TEXT
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS class_memberships (
        class_id TEXT NOT NULL REFERENCES classes(id),
        user_id TEXT NOT NULL REFERENCES users(id),
        role TEXT NOT NULL,
        PRIMARY KEY (class_id, user_id, role)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS lessons (
        id TEXT PRIMARY KEY,
        school_id TEXT REFERENCES schools(id),
        title TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS teacher_assignments (
        id TEXT PRIMARY KEY,
        teacher_id TEXT NOT NULL REFERENCES users(id),
        class_id TEXT NOT NULL REFERENCES classes(id),
        subject_id TEXT REFERENCES lessons(id),
        removed_at TEXT
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS activity_types (
        id TEXT PRIMARY KEY,
        school_id TEXT NOT NULL REFERENCES schools(id),
        type_key TEXT NOT NULL,
        persian_name TEXT NOT NULL,
        is_active INTEGER NOT NULL DEFAULT 1
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS educational_activities (
        id TEXT PRIMARY KEY,
        class_id TEXT NOT NULL REFERENCES classes(id),
        subject_id TEXT NOT NULL REFERENCES lessons(id),
        student_id TEXT NOT NULL REFERENCES users(id),
        teacher_id TEXT NOT NULL REFERENCES users(id),
        activity_type TEXT NOT NULL,
        activity_title TEXT NOT NULL DEFAULT '',
        activity_date TEXT NOT NULL,
        quantitative_score REAL,
        qualitative_evaluation TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_activities_upsert_key
        ON educational_activities (student_id, activity_date, activity_type, teacher_id);
    """,
)

# columns accepted by :meth:`LocalDatabase.seed`
_SEED_COLUMNS: Mapping[str, tuple[str, ...]] = {
    "schools": ("id", "name"),
    "users": ("id", "name", "national_id", "role", "school_id", "is_active", "profile"),
    "classes": ("id", "school_id", "name", "section", "grade_level"),
    "lessons": ("id", "school_id", "title"),
    "class_memberships": ("class_id", "user_id", "role"),
    "teacher_assignments": ("id", "teacher_id", "class_id", "subject_id", "removed_at"),
    "activity_types": ("id", "school_id", "type_key", "persian_name", "is_active"),
}


class SqliteActivityStore:
    """پیاده‌سازی ذخیره‌ساز فعالیت روی یک اتصال باز داخل تراکنش دسته.

    خطاهای SQLite در سطح ردیف به :class:`StoreWriteError` تبدیل می‌شوند.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        self._savepoint_seq = 0

    def find_activity_id(
        self, student_id: str, activity_date: str, activity_type: str, teacher_id: str
    ) -> str | None:
        try:
            row = self.conn.execute(
                """
                SELECT id FROM educational_activities
                WHERE student_id = ? AND activity_date = ? AND activity_type = ? AND teacher_id = ?
                ORDER BY created_at ASC, id ASC
                LIMIT 1
                """,
                (student_id, activity_date, activity_type, teacher_id),
            ).fetchone()
        except sqlite3.Error as exc:
            raise StoreWriteError(str(exc)) from exc
        return None if row is None else str(row["id"])

    def insert_activity(self, activity: ResolvedActivity, now: datetime) -> str:
        activity_id = uuid.uuid4().hex
        stamp = _to_iso(now)
        try:
            self.conn.execute(
                """
                INSERT INTO educational_activities (
                    id, class_id, subject_id, student_id, teacher_id, activity_type,
                    activity_title, activity_date, quantitative_score,
                    qualitative_evaluation, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    activity_id,
                    activity.class_id,
                    activity.lesson_id,
                    activity.student_id,
                    activity.teacher_id,
                    activity.activity_type,
                    activity.title,
                    activity.activity_date,
                    activity.score,
                    activity.qualitative,
                    stamp,
                    stamp,
                ),
            )
        except sqlite3.Error as exc:
            raise StoreWriteError(str(exc)) from exc
        return activity_id

    def update_activity(self, activity_id: str, activity: ResolvedActivity, now: datetime) -> None:
        try:
            self.conn.execute(
                """
                UPDATE educational_activities
                SET activity_title = ?,
                    quantitative_score = ?,
                    qualitative_evaluation = ?,
                    class_id = ?,
                    subject_id = ?,
                    updated_at = ?
                WHERE id = ?
                """,
                (
                    activity.title,
                    activity.score,
                    activity.qualitative,
                    activity.class_id,
                    activity.lesson_id,
                    _to_iso(now),
                    activity_id,
                ),
            )
        except sqlite3.Error as exc:
            raise StoreWriteError(str(exc)) from exc

    @contextmanager
    def savepoint(self) -> Iterator[str]:
        self._savepoint_seq += 1
        name = f"row_{self._savepoint_seq}"
        self.conn.execute(f"SAVEPOINT {name}")
        try:
            yield name
        except BaseException:
            self.conn.execute(f"ROLLBACK TO SAVEPOINT {name}")
            self.conn.execute(f"RELEASE SAVEPOINT {name}")
            raise
        else:
            self.conn.execute(f"RELEASE SAVEPOINT {name}")


class LocalDatabase:
    """مدیریت اتصال، Schema و پرس‌وجوهای پایگاه دادهٔ محلی."""

    def __init__(self, path: Path, *, busy_timeout_ms: int = 5000) -> None:
        self.path = Path(path)
        self.busy_timeout_ms = busy_timeout_ms

    def _open_connection(self) -> sqlite3.Connection:
        """ایجاد اتصال پیکربندی‌شده با PRAGMAهای یکسان."""

        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            conn = sqlite3.connect(self.path, isolation_level=None)
            return configure_connection(conn, busy_timeout_ms=self.busy_timeout_ms)
        except sqlite3.Error as exc:
            raise DatabaseOperationError("اتصال به پایگاه داده ممکن نشد.", detail=str(exc)) from exc

    def connect(self) -> sqlite3.Connection:
        return self._open_connection()

    @contextmanager
    def _transaction(self, begin: str = "BEGIN") -> Iterator[sqlite3.Connection]:
        conn = self._open_connection()
        try:
            conn.execute(begin)
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        except sqlite3.Error as exc:
            raise DatabaseOperationError("عملیات پایگاه داده با خطا روبه‌رو شد.", detail=str(exc)) from exc
        finally:
            conn.close()

    def initialize(self) -> None:
        """ایجاد Schema و اعتبارسنجی نسخه به‌صورت idempotent."""

        with self._transaction() as conn:
            self._ensure_schema_meta_table(conn)
            existing_version = self._get_schema_version(conn)
            if existing_version is not None and existing_version > _SCHEMA_VERSION:
                raise SchemaVersionMismatchError(
                    expected_version=_SCHEMA_VERSION,
                    actual_version=existing_version,
                    message="نسخهٔ Schema پایگاه داده از نسخهٔ برنامه جدیدتر است.",
                )
            for statement in _SCHEMA_STATEMENTS:
                conn.execute(statement)
            if existing_version is None:
                self._ensure_schema_meta_row(conn, version=_SCHEMA_VERSION)
            self._validate_schema_version(conn)
        logger.debug("Local DB schema ensured at %s", self.path)

    @staticmethod
    def _ensure_schema_meta_table(conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_meta (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                schema_version INTEGER NOT NULL,
                created_at TEXT NOT NULL
            );
            """
        )

    @staticmethod
    def _ensure_schema_meta_row(conn: sqlite3.Connection, *, version: int) -> None:
        conn.execute(
            "INSERT OR IGNORE INTO schema_meta (id, schema_version, created_at) VALUES (1, ?, ?)",
            (version, _to_iso(datetime.now(timezone.utc))),
        )

    @staticmethod
    def _get_schema_version(conn: sqlite3.Connection) -> int | None:
        row = conn.execute("SELECT schema_version FROM schema_meta WHERE id = 1").fetchone()
        return int(row[0]) if row is not None else None

    @staticmethod
    def _validate_schema_version(conn: sqlite3.Connection) -> None:
        actual = LocalDatabase._get_schema_version(conn)
        if actual != _SCHEMA_VERSION:
            raise SchemaVersionMismatchError(
                expected_version=_SCHEMA_VERSION,
                actual_version=-1 if actual is None else actual,
                message="نسخهٔ Schema پایگاه داده با نسخهٔ برنامه هم‌خوان نیست.",
            )

    # ------------------------------------------------------------------
    # داده‌های پایه
    # ------------------------------------------------------------------
    def seed(self, data: Mapping[str, Sequence[Mapping[str, Any]]]) -> None:
        """درج داده‌های پایه (مدرسه، کاربر، کلاس، ...) از یک ساختار dict.

        کلیدهای ناشناخته خطا هستند؛ ``profile`` اگر dict باشد به JSON تبدیل می‌شود.
        """

        unknown = sorted(set(data) - set(_SEED_COLUMNS))
        if unknown:
            raise ValueError(f"Unknown seed tables: {unknown}")
        with self._transaction() as conn:
            for table, columns in _SEED_COLUMNS.items():
                rows = data.get(table) or ()
                for row in rows:
                    present = [col for col in columns if col in row]
                    values = [_seed_value(col, row[col]) for col in present]
                    placeholders = ", ".join("?" for _ in present)
                    conn.execute(
                        f"INSERT OR REPLACE INTO {table} ({', '.join(present)}) VALUES ({placeholders})",
                        values,
                    )

    def fetch_user(self, user_id: str) -> sqlite3.Row | None:
        conn = self._open_connection()
        try:
            return conn.execute(
                "SELECT id, name, role, school_id, is_active, profile FROM users WHERE id = ?",
                (user_id,),
            ).fetchone()
        except sqlite3.Error as exc:
            raise DatabaseOperationError("خواندن اطلاعات کاربر ناکام ماند.", detail=str(exc)) from exc
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # فهرست معلم
    # ------------------------------------------------------------------
    def load_roster(
        self, teacher_id: str, school_id: str, *, conn: sqlite3.Connection | None = None
    ) -> RosterSnapshot:
        """ساخت تصویر فهرست معلم فقط از تخصیص‌های فعال همان مدرسه."""

        own = conn is None
        connection = self._open_connection() if own else conn
        try:
            assignments = connection.execute(
                """
                SELECT c.id AS class_id, c.name AS class_name, c.section, c.grade_level,
                       l.id AS lesson_id, l.title AS lesson_title
                FROM teacher_assignments ta
                JOIN classes c ON c.id = ta.class_id
                LEFT JOIN lessons l ON l.id = ta.subject_id
                WHERE ta.teacher_id = ? AND ta.removed_at IS NULL AND c.school_id = ?
                ORDER BY c.id, l.id
                """,
                (teacher_id, school_id),
            ).fetchall()
            memberships = connection.execute(
                """
                SELECT u.id AS student_id, u.name, u.national_id, cm.class_id
                FROM class_memberships cm
                JOIN users u ON u.id = cm.user_id
                JOIN classes c ON c.id = cm.class_id
                WHERE cm.role = 'student'
                  AND u.role = 'student'
                  AND u.is_active = 1
                  AND u.school_id = ?
                  AND c.school_id = ?
                  AND cm.class_id IN (
                      SELECT class_id FROM teacher_assignments
                      WHERE teacher_id = ? AND removed_at IS NULL
                  )
                ORDER BY u.id
                """,
                (school_id, school_id, teacher_id),
            ).fetchall()
            type_rows = connection.execute(
                """
                SELECT type_key, persian_name FROM activity_types
                WHERE school_id = ? AND is_active = 1
                ORDER BY type_key
                """,
                (school_id,),
            ).fetchall()
        except sqlite3.Error as exc:
            raise DatabaseOperationError("خواندن فهرست معلم ناکام ماند.", detail=str(exc)) from exc
        finally:
            if own:
                connection.close()
        return build_roster(
            teacher_id,
            school_id,
            [dict(row) for row in assignments],
            [dict(row) for row in memberships],
            [(row["type_key"], row["persian_name"]) for row in type_rows],
        )

    # ------------------------------------------------------------------
    # فعالیت‌ها
    # ------------------------------------------------------------------
    @contextmanager
    def batch(self) -> Iterator[SqliteActivityStore]:
        """تراکنش دسته با ``BEGIN IMMEDIATE``؛ خطای مهلک کل دسته را برمی‌گرداند."""

        with self._transaction("BEGIN IMMEDIATE") as conn:
            yield SqliteActivityStore(conn)

    def fetch_activities(self, teacher_id: str | None = None) -> List[ActivityRecordView]:
        """بازیابی فعالیت‌ها (برای تست و گزارش)."""

        query = "SELECT * FROM educational_activities"
        params: tuple[Any, ...] = ()
        if teacher_id is not None:
            query += " WHERE teacher_id = ?"
            params = (teacher_id,)
        query += " ORDER BY created_at ASC, id ASC"
        conn = self._open_connection()
        try:
            rows = conn.execute(query, params).fetchall()
        except sqlite3.Error as exc:
            raise DatabaseOperationError("خواندن فعالیت‌ها ناکام ماند.", detail=str(exc)) from exc
        finally:
            conn.close()
        return [
            ActivityRecordView(
                id=row["id"],
                student_id=row["student_id"],
                teacher_id=row["teacher_id"],
                activity_type=row["activity_type"],
                activity_date=row["activity_date"],
                title=row["activity_title"],
                score=row["quantitative_score"],
                qualitative=row["qualitative_evaluation"],
                class_id=row["class_id"],
                lesson_id=row["subject_id"],
                created_at=row["created_at"],
                updated_at=row["updated_at"],
            )
            for row in rows
        ]


def _seed_value(column: str, value: Any) -> Any:
    if column == "profile" and isinstance(value, Mapping):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, bool):
        return int(value)
    return value


def _to_iso(dt: datetime) -> str:
    """تبدیل datetime به رشتهٔ ISO8601 با پسوند Z (بر حسب UTC)."""

    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.strftime(_ISO_FORMAT)


__all__ = ["LocalDatabase", "SqliteActivityStore"]
