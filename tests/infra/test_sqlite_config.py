import sqlite3

import pytest

from daftar.infra.sqlite_config import _set_pragma, configure_connection


def test_configure_connection_applies_pragmas(tmp_path):
    db_path = tmp_path / "configured.sqlite"
    conn = configure_connection(sqlite3.connect(db_path), busy_timeout_ms=1234)
    try:
        assert conn.row_factory is sqlite3.Row
        assert conn.execute("PRAGMA foreign_keys;").fetchone()[0] == 1
        journal_mode = str(conn.execute("PRAGMA journal_mode;").fetchone()[0]).lower()
        assert journal_mode == "wal"
        synchronous = conn.execute("PRAGMA synchronous;").fetchone()[0]
        assert str(synchronous).lower() in {"1", "normal"}
        assert conn.execute("PRAGMA busy_timeout;").fetchone()[0] == 1234
    finally:
        conn.close()


def test_unknown_pragma_is_refused():
    conn = sqlite3.connect(":memory:")
    try:
        with pytest.raises(ValueError):
            _set_pragma(conn, "writable_schema", "ON")
    finally:
        conn.close()
