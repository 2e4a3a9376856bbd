"""رابط خط فرمان headless برای ورود و استخراج فعالیت‌های آموزشی.

همهٔ زیرفرمان‌ها پاسخ JSON را روی stdout چاپ می‌کنند. کد خروج ۰ یعنی
موفقیت، ۱ یعنی پاسخ ناموفق قابل نمایش (مثلاً دانش‌آموز یافت نشد) و ۲ یعنی
خطای سطح دسته (فایل، نشست، پایگاه داده یا مدل زبانی).

مثال::

    >>> from daftar.infra import cli
    >>> cli.main(["import-activities", "--session", '{"id": "t1", "role": "teacher"}',
    ...           "--file", "activities.xlsx"])  # doctest: +SKIP
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Mapping, Sequence

from daftar import __version__
from daftar.core.common.errors import ActivityImportError, ConfigError
from daftar.core.config_loader import DEFAULT_SETTINGS_PATH, Settings, load_settings
from daftar.infra.activity_extraction import extract_activity
from daftar.infra.activity_import import error_payload, export_template, import_activities
from daftar.infra.errors import SchemaVersionMismatchError
from daftar.infra.local_database import LocalDatabase
from daftar.infra.logging import (
    DEFAULT_LOGGING_CONFIG,
    bind_teacher,
    configure_logging,
    install_exception_hook,
)
from daftar.infra.session import Identity, authenticate

logger = logging.getLogger("daftar.cli")

EXIT_OK = 0
EXIT_SOFT_FAILURE = 1
EXIT_BATCH_ERROR = 2


def _print_json(payload: Mapping[str, Any]) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _add_local_db_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="مسیر فایل SQLite (پیش‌فرض از settings.json یا DAFTAR_DB_PATH)",
    )


def _add_session_args(parser: argparse.ArgumentParser) -> None:
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--session", help="payload نشست به‌صورت JSON، مثل {\"id\": \"...\"}")
    group.add_argument("--session-file", help="مسیر فایل JSON نشست")


def _read_session(args: argparse.Namespace) -> str:
    if args.session is not None:
        return args.session
    return Path(args.session_file).read_text(encoding="utf-8")


def _resolve_db(args: argparse.Namespace, settings: Settings) -> LocalDatabase:
    path = Path(args.db_path) if args.db_path else settings.database.path
    return LocalDatabase(path, busy_timeout_ms=settings.database.busy_timeout_ms)


def _run_init_db(args: argparse.Namespace, settings: Settings, **_: Any) -> int:
    db = _resolve_db(args, settings)
    db.initialize()
    seeded = False
    if args.seed:
        data = json.loads(Path(args.seed).read_text(encoding="utf-8"))
        db.seed(data)
        seeded = True
    _print_json({"success": True, "database": str(db.path), "seeded": seeded})
    return EXIT_OK


def _authenticated(args: argparse.Namespace, settings: Settings) -> tuple[LocalDatabase, Identity]:
    db = _resolve_db(args, settings)
    db.initialize()
    return db, authenticate(db, _read_session(args))


def _run_import(args: argparse.Namespace, settings: Settings, **_: Any) -> int:
    db, identity = _authenticated(args, settings)
    with bind_teacher(identity.user_id):
        payload = import_activities(db, identity, args.file)
    _print_json(payload)
    return EXIT_OK


def _run_extract(args: argparse.Namespace, settings: Settings, *, client: Any = None) -> int:
    db, identity = _authenticated(args, settings)
    text = args.text if args.text is not None else sys.stdin.read()
    with bind_teacher(identity.user_id):
        payload = extract_activity(
            db,
            identity,
            text,
            model_source=args.model,
            client=client,
            settings=settings,
        )
    _print_json(payload)
    return EXIT_OK if payload.get("success") else EXIT_SOFT_FAILURE


def _run_export_template(args: argparse.Namespace, settings: Settings, **_: Any) -> int:
    db, identity = _authenticated(args, settings)
    with bind_teacher(identity.user_id):
        target = export_template(db, identity, args.output, options=settings.excel)
    _print_json({"success": True, "path": str(target)})
    return EXIT_OK


_RUNNERS: Mapping[str, Callable[..., int]] = {
    "init-db": _run_init_db,
    "import-activities": _run_import,
    "extract-activity": _run_extract,
    "export-template": _run_export_template,
}


def _build_parser() -> argparse.ArgumentParser:
    """ایجاد پارسر با زیرفرمان‌های init-db، import-activities، extract-activity و export-template."""

    parser = argparse.ArgumentParser(prog="daftar", description="ورود و استخراج فعالیت‌های آموزشی")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--settings", default=None, help="مسیر settings.json")
    parser.add_argument("--log-config", default=str(DEFAULT_LOGGING_CONFIG), help="مسیر logging.yaml")
    parser.add_argument("--log-dir", default=None, help="پوشهٔ فایل‌های لاگ")
    sub = parser.add_subparsers(dest="command", required=True)

    init_cmd = sub.add_parser("init-db", help="ساخت Schema پایگاه داده")
    init_cmd.add_argument("--seed", default=None, help="فایل JSON داده‌های پایه (مدرسه، کاربران، کلاس‌ها)")
    _add_local_db_args(init_cmd)

    import_cmd = sub.add_parser("import-activities", help="ورود فعالیت‌ها از فایل Excel")
    import_cmd.add_argument("--file", required=True, help="مسیر فایل Excel")
    _add_session_args(import_cmd)
    _add_local_db_args(import_cmd)

    extract_cmd = sub.add_parser("extract-activity", help="استخراج فعالیت از متن آزاد")
    extract_cmd.add_argument("--text", default=None, help="متن معلم؛ اگر داده نشود از stdin خوانده می‌شود")
    extract_cmd.add_argument("--model", choices=("cloud", "local"), default=None, help="منبع مدل زبانی")
    _add_session_args(extract_cmd)
    _add_local_db_args(extract_cmd)

    template_cmd = sub.add_parser("export-template", help="ساخت فایل نمونهٔ ورود")
    template_cmd.add_argument("--output", required=True, help="مسیر فایل Excel خروجی")
    _add_session_args(template_cmd)
    _add_local_db_args(template_cmd)
    return parser


def _bootstrap_logging(args: argparse.Namespace) -> Callable[[], None] | None:
    if not Path(args.log_config).exists():
        return None
    context = configure_logging(
        app_name="daftar",
        app_version=__version__,
        logger_name="daftar",
        config_path=args.log_config,
        log_dir=args.log_dir,
    )
    return install_exception_hook(logger, context)


def main(
    argv: Sequence[str] | None = None,
    *,
    client: Any = None,
    setup_logs: bool = True,
) -> int:
    """نقطهٔ ورود CLI؛ ``client`` برای تزریق کلاینت مدل زبانی در تست‌هاست."""

    parser = _build_parser()
    args = parser.parse_args(argv)
    restore_hook = _bootstrap_logging(args) if setup_logs else None
    try:
        settings_path = args.settings or (DEFAULT_SETTINGS_PATH if DEFAULT_SETTINGS_PATH.exists() else None)
        settings = load_settings(settings_path)
        runner = _RUNNERS[args.command]
        return runner(args, settings, client=client)
    except ActivityImportError as exc:
        _print_json(error_payload(exc))
        return EXIT_BATCH_ERROR
    except (ConfigError, SchemaVersionMismatchError, FileNotFoundError, json.JSONDecodeError) as exc:
        logger.error("%s", exc)
        _print_json({"success": False, "error": str(exc)})
        return EXIT_BATCH_ERROR
    finally:
        if restore_hook is not None:
            restore_hook()


if __name__ == "__main__":
    raise SystemExit(main())
