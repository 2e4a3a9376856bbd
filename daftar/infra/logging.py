"""راه‌اندازی لاگ از فایل YAML و ثبت گزارش خطاهای پیش‌بینی‌نشده.

هر رکورد لاگ با شناسهٔ اجرا (``session_id``) و شناسهٔ معلمِ درخواست جاری
غنی می‌شود تا ردیابی یک ورود دسته‌ای در فایل لاگ ساده باشد. شناسهٔ معلم با
:func:`bind_teacher` در یک ``ContextVar`` نگه داشته می‌شود.
"""
from __future__ import annotations

import contextvars
import getpass
import logging
import logging.config
import os
import sys
import traceback
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from types import TracebackType
from typing import Any, Callable, Iterator, Mapping

import yaml

DEFAULT_LOGGING_CONFIG = Path("config/logging.yaml")
DEFAULT_LOG_DIR = Path("logs")

_TEACHER_ID: contextvars.ContextVar[str] = contextvars.ContextVar("daftar_teacher_id", default="")

ExcInfo = tuple[type[BaseException], BaseException, TracebackType | None]


@dataclass(slots=True, frozen=True)
class RunContext:
    """مشخصات یک اجرای برنامه برای غنی‌سازی لاگ و گزارش خطا.

    >>> ctx = RunContext("daftar", "0.1", "abc", "tester", 1, Path("logs"))
    >>> ctx.error_dir
    PosixPath('logs/errors')
    >>> ctx.new_error_id().startswith("abc-")
    True
    """

    application: str
    version: str
    session_id: str
    user: str
    pid: int
    log_dir: Path

    @property
    def error_dir(self) -> Path:
        return self.log_dir / "errors"

    def new_error_id(self) -> str:
        return f"{self.session_id}-{uuid.uuid4().hex[:8]}"

    def write_error_report(self, error_id: str, summary: str, exc_info: ExcInfo) -> Path:
        """نوشتن گزارش متنی خطا؛ سرآیند ``key=value`` و سپس traceback."""

        now = datetime.now(timezone.utc)
        header: Mapping[str, object] = {
            "application": self.application,
            "version": self.version,
            "session_id": self.session_id,
            "error_id": error_id,
            "user": self.user,
            "teacher_id": _TEACHER_ID.get() or "-",
            "pid": self.pid,
            "timestamp": now.isoformat(timespec="seconds").replace("+00:00", "Z"),
        }
        body = "".join(traceback.format_exception(*exc_info))
        text = "\n".join(f"{key}={value}" for key, value in header.items())
        text += f"\n\n{summary.strip()}\n\n{body.strip()}\n"
        self.error_dir.mkdir(parents=True, exist_ok=True)
        target = self.error_dir / f"{error_id}-{now:%Y%m%dT%H%M%SZ}.log"
        target.write_text(text, encoding="utf-8")
        return target


class SessionContextFilter(logging.Filter):
    """افزودن فیلدهای اجرا و معلم جاری به رکوردهایی که آن‌ها را ندارند."""

    def __init__(self, context: RunContext) -> None:
        super().__init__()
        self.context = context

    def filter(self, record: logging.LogRecord) -> bool:
        defaults = {
            "session_id": self.context.session_id,
            "user": self.context.user,
            "application": self.context.application,
            "app_version": self.context.version,
            "teacher_id": _TEACHER_ID.get() or "-",
            "error_id": "",
            "report_path": "",
        }
        for name, value in defaults.items():
            if not hasattr(record, name):
                setattr(record, name, value)
        return True


@contextmanager
def bind_teacher(teacher_id: str) -> Iterator[None]:
    """ثبت شناسهٔ معلم برای رکوردهای لاگ داخل این بلوک."""

    token = _TEACHER_ID.set(teacher_id)
    try:
        yield
    finally:
        _TEACHER_ID.reset(token)


def _install_filter(target: logging.Filterer, new: SessionContextFilter) -> None:
    for old in [f for f in target.filters if isinstance(f, SessionContextFilter)]:
        target.removeFilter(old)
    target.addFilter(new)


def _relocate_log_files(config: dict[str, Any], log_dir: Path | None) -> None:
    """مسیر نسبی فایل هندلرها زیر ``log_dir`` قرار می‌گیرد."""

    handlers = config.get("handlers")
    if not isinstance(handlers, dict):
        return
    for handler in handlers.values():
        if not isinstance(handler, dict) or not handler.get("filename"):
            continue
        filename = Path(str(handler["filename"])).expanduser()
        if log_dir is not None and not filename.is_absolute():
            filename = log_dir / filename.name
        filename = filename.resolve()
        filename.parent.mkdir(parents=True, exist_ok=True)
        handler["filename"] = str(filename)


def apply_logging_config(
    config_path: str | Path = DEFAULT_LOGGING_CONFIG,
    log_dir: str | Path | None = None,
) -> None:
    """خواندن YAML پیکربندی و اعمال آن با ``dictConfig``.

    Raises:
        FileNotFoundError: فایل پیکربندی وجود ندارد.
        ValueError: ریشهٔ YAML یک نگاشت نیست.
    """

    path = Path(config_path)
    if not path.is_file():
        raise FileNotFoundError(f"logging config not found: {path}")
    config = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(config, dict):
        raise ValueError(f"logging config must be a mapping: {path}")
    _relocate_log_files(config, Path(log_dir).expanduser().resolve() if log_dir else None)
    logging.config.dictConfig(config)


def configure_logging(
    *,
    app_name: str,
    app_version: str,
    logger_name: str,
    config_path: str | Path = DEFAULT_LOGGING_CONFIG,
    log_dir: str | Path | None = None,
) -> RunContext:
    """اعمال پیکربندی، نصب فیلتر روی logger برنامه و ریشه، و بازگرداندن :class:`RunContext`."""

    directory = Path(log_dir or DEFAULT_LOG_DIR).expanduser().resolve()
    directory.mkdir(parents=True, exist_ok=True)
    apply_logging_config(config_path, directory)

    context = RunContext(
        application=app_name,
        version=app_version,
        session_id=uuid.uuid4().hex,
        user=getpass.getuser(),
        pid=os.getpid(),
        log_dir=directory,
    )
    context.error_dir.mkdir(parents=True, exist_ok=True)
    context_filter = SessionContextFilter(context)
    for logger in (logging.getLogger(), logging.getLogger(logger_name)):
        _install_filter(logger, context_filter)
        for handler in logger.handlers:
            _install_filter(handler, context_filter)
    logging.captureWarnings(True)
    return context


def install_exception_hook(logger: logging.Logger, context: RunContext) -> Callable[[], None]:
    """جایگزینی ``sys.excepthook`` با هندلری که گزارش خطا می‌نویسد.

    Returns:
        تابعی که هندلر قبلی را بازمی‌گرداند.
    """

    previous = sys.excepthook

    def _hook(exc_type: type[BaseException], exc: BaseException, tb: TracebackType | None) -> None:
        if not issubclass(exc_type, KeyboardInterrupt):
            error_id = context.new_error_id()
            report = context.write_error_report(error_id, f"main-thread: {exc}", (exc_type, exc, tb))
            logger.critical(
                "Unhandled exception",
                exc_info=(exc_type, exc, tb),
                extra={"error_id": error_id, "report_path": str(report)},
            )
        previous(exc_type, exc, tb)

    sys.excepthook = _hook

    def restore() -> None:
        sys.excepthook = previous

    return restore


__all__ = [
    "DEFAULT_LOGGING_CONFIG",
    "RunContext",
    "SessionContextFilter",
    "apply_logging_config",
    "bind_teacher",
    "configure_logging",
    "install_exception_hook",
]
