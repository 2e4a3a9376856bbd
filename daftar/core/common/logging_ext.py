"""ابزارک‌های لاگ مرحله‌ای که لایهٔ Infra برای سرویس‌ها استفاده می‌کند."""

from __future__ import annotations

from contextlib import contextmanager
from logging import Logger
from time import perf_counter
from typing import Iterator

__all__ = ["log_step"]


@contextmanager
def log_step(logger: Logger, step: str, **fields: object) -> Iterator[None]:
    """ثبت شروع و پایان یک مرحله همراه با زمان اجرا.

    ``fields`` به‌صورت ``key=value`` به انتهای پیام شروع افزوده می‌شود.
    """

    suffix = " ".join(f"{key}={value}" for key, value in fields.items())
    start = perf_counter()
    logger.info("شروع مرحلهٔ %s %s", step, suffix)
    try:
        yield
    except Exception:
        logger.exception("مرحلهٔ %s با خطا پایان یافت", step)
        raise
    else:
        logger.info("مرحلهٔ %s تکمیل شد (%.2fs)", step, perf_counter() - start)
