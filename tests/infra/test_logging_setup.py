"""تست‌های واحد برای سیستم لاگ زیرساختی."""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from textwrap import dedent

import pytest

from daftar.core.common.logging_ext import log_step
from daftar.infra.logging import (
    apply_logging_config,
    bind_teacher,
    configure_logging,
    install_exception_hook,
)


def _create_logging_config(tmp_path: Path) -> Path:
    """ساخت فایل پیکربندی موقت برای آزمون‌ها."""

    config_path = tmp_path / "logging.yaml"
    config_path.write_text(
        dedent(
            """
            version: 1
            disable_existing_loggers: false
            formatters:
              detailed:
                format: "%(levelname)s %(name)s | session=%(session_id)s teacher=%(teacher_id)s error=%(error_id)s | %(message)s"
            handlers:
              file:
                class: logging.FileHandler
                level: DEBUG
                formatter: detailed
                filename: "daftar-test.log"
                encoding: utf-8
            loggers:
              daftar.test:
                level: DEBUG
                handlers: [file]
                propagate: false
            root:
              level: WARNING
              handlers: []
            """
        ).strip(),
        encoding="utf-8",
    )
    return config_path


def _flush(name: str) -> None:
    for handler in logging.getLogger(name).handlers:
        handler.flush()


def test_configure_logging_enriches_records_with_teacher(tmp_path: Path) -> None:
    """اطمینان از اینکه شناسهٔ نشست و معلم در خروجی فایل درج می‌شود."""

    log_dir = tmp_path / "logs"
    context = configure_logging(
        app_name="daftar",
        app_version="0.1",
        logger_name="daftar.test",
        config_path=_create_logging_config(tmp_path),
        log_dir=log_dir,
    )
    logger = logging.getLogger("daftar.test")
    logger.info("outside")
    with bind_teacher("t1"):
        logger.info("inside")
    _flush("daftar.test")

    content = (log_dir / "daftar-test.log").read_text(encoding="utf-8")
    assert context.session_id in content
    assert "teacher=- error= | outside" in content
    assert "teacher=t1 error= | inside" in content


def test_log_step_reports_start_and_failure(tmp_path: Path) -> None:
    log_dir = tmp_path / "logs"
    configure_logging(
        app_name="daftar",
        app_version="0.1",
        logger_name="daftar.test",
        config_path=_create_logging_config(tmp_path),
        log_dir=log_dir,
    )
    logger = logging.getLogger("daftar.test")
    with log_step(logger, "import", rows=3):
        pass
    with pytest.raises(ValueError):
        with log_step(logger, "export"):
            raise ValueError("boom")
    _flush("daftar.test")

    content = (log_dir / "daftar-test.log").read_text(encoding="utf-8")
    assert "شروع مرحلهٔ import rows=3" in content
    assert "مرحلهٔ import تکمیل شد" in content
    assert "مرحلهٔ export با خطا پایان یافت" in content


def test_apply_logging_config_requires_existing_mapping(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        apply_logging_config(tmp_path / "missing.yaml")
    bad = tmp_path / "bad.yaml"
    bad.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ValueError):
        apply_logging_config(bad)


def test_exception_hook_writes_report_and_restores(tmp_path: Path) -> None:
    context = configure_logging(
        app_name="daftar",
        app_version="0.1",
        logger_name="daftar.test",
        config_path=_create_logging_config(tmp_path),
        log_dir=tmp_path / "logs",
    )
    original = sys.excepthook
    seen: list[type[BaseException]] = []
    sys.excepthook = lambda exc_type, exc, tb: seen.append(exc_type)
    try:
        restore = install_exception_hook(logging.getLogger("daftar.test"), context)
        try:
            raise RuntimeError("unhandled")
        except RuntimeError as exc:
            sys.excepthook(type(exc), exc, exc.__traceback__)
        restore()
        reports = list(context.error_dir.glob("*.log"))
        assert len(reports) == 1
        text = reports[0].read_text(encoding="utf-8")
        assert "main-thread: unhandled" in text
        assert seen == [RuntimeError]
    finally:
        sys.excepthook = original
