"""تست زیرفرمان‌های CLI با پایگاه داده و فایل‌های موقت."""
from __future__ import annotations

import json
from pathlib import Path
from types import SimpleNamespace

import pytest

from daftar.infra import cli
from daftar.infra.local_database import LocalDatabase

SESSION = json.dumps({"id": "t1", "role": "teacher"})


@pytest.fixture
def cli_db(tmp_path: Path, capsys, school_seed) -> Path:
    seed = tmp_path / "seed.json"
    seed.write_text(json.dumps(school_seed, ensure_ascii=False), encoding="utf-8")
    db_path = tmp_path / "cli.sqlite3"
    code = cli.main(["init-db", "--db", str(db_path), "--seed", str(seed)], setup_logs=False)
    assert code == 0
    assert json.loads(capsys.readouterr().out)["seeded"] is True
    return db_path


def _run(capsys, argv, **kwargs) -> tuple[int, dict]:
    code = cli.main(argv, setup_logs=False, **kwargs)
    return code, json.loads(capsys.readouterr().out)


def test_import_command_prints_summary(cli_db, capsys, write_workbook, make_row):
    path = write_workbook([make_row()])
    code, payload = _run(
        capsys, ["import-activities", "--db", str(cli_db), "--session", SESSION, "--file", str(path)]
    )
    assert code == 0
    assert payload["summary"]["added"] == 1
    assert LocalDatabase(cli_db).fetch_activities("t1")[0].activity_date == "2025-03-27"


def test_import_command_reads_session_file(cli_db, capsys, tmp_path, write_workbook, make_row):
    session_file = tmp_path / "session.json"
    session_file.write_text(SESSION, encoding="utf-8")
    path = write_workbook([make_row(**{"نمره کمی (0-20)": 25})])
    code, payload = _run(
        capsys,
        ["import-activities", "--db", str(cli_db), "--session-file", str(session_file), "--file", str(path)],
    )
    assert code == 0
    assert payload["summary"]["failed"] == 1


def test_missing_file_exits_with_error_payload(cli_db, capsys, tmp_path):
    code, payload = _run(
        capsys,
        ["import-activities", "--db", str(cli_db), "--session", SESSION, "--file", str(tmp_path / "nope.xlsx")],
    )
    assert code == 2
    assert payload == {"success": False, "error": "فایلی انتخاب نشده است"}


def test_bad_session_exits_with_unauthorized(cli_db, capsys, tmp_path):
    code, payload = _run(
        capsys,
        ["import-activities", "--db", str(cli_db), "--session", "{}", "--file", str(tmp_path / "x.xlsx")],
    )
    assert code == 2
    assert payload == {"success": False, "error": "غیر مجاز"}


def test_extract_command_with_injected_client(cli_db, capsys):
    content = json.dumps({"student_name": "زهرا محمدی", "activity_type": "آزمون هفتگی", "quantitative_score": 16})

    def create(**_kwargs):
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])

    client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    code, payload = _run(
        capsys,
        ["extract-activity", "--db", str(cli_db), "--session", SESSION, "--text", "زهرا محمدی ۱۶"],
        client=client,
    )
    assert code == 0
    assert payload["data"]["student_id"] == "st3"
    assert payload["data"]["activity_type"] == "weekly_exam"


def test_extract_command_soft_failure_exit_code(cli_db, capsys):
    content = json.dumps({"student_name": "کسی دیگر"})

    def create(**_kwargs):
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])

    client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    code, payload = _run(
        capsys,
        ["extract-activity", "--db", str(cli_db), "--session", SESSION, "--text", "کسی دیگر"],
        client=client,
    )
    assert code == 1
    assert payload["success"] is False


def test_export_template_command(cli_db, capsys, tmp_path):
    target = tmp_path / "exports" / "template.xlsx"
    code, payload = _run(
        capsys, ["export-template", "--db", str(cli_db), "--session", SESSION, "--output", str(target)]
    )
    assert code == 0
    assert payload == {"success": True, "path": str(target)}
    assert target.exists()


def test_missing_settings_file_is_reported(cli_db, capsys, tmp_path):
    code, payload = _run(
        capsys,
        [
            "--settings",
            str(tmp_path / "missing.json"),
            "export-template",
            "--db",
            str(cli_db),
            "--session",
            SESSION,
            "--output",
            str(tmp_path / "t.xlsx"),
        ],
    )
    assert code == 2
    assert payload["success"] is False
