"""Settings Loader (Core): تنظیمات کش‌شونده و نسخه‌دار برنامه.

ساختار فایل ``config/settings.json``::

    {
      "version": "1.0.0",
      "database": {"path": "data/daftar.sqlite3", "busy_timeout_ms": 5000},
      "language_model": {
        "default_source": "cloud",
        "timeout_seconds": 30,
        "cloud": {"model": "gpt-4o-mini", "temperature": 0.3, "json_response": true},
        "local": {"base_url": "http://127.0.0.1:8080/v1", "model": "openai/gpt-oss-20b"}
      },
      "excel": {"rtl": true, "font_name": "Tahoma", "font_size": 8}
    }

کلیدهای دسترسی هرگز در فایل نگهداری نمی‌شوند؛ از متغیرهای محیطی
``OPENAI_API_KEY`` و ``LOCAL_AI_API_KEY`` خوانده می‌شوند. ``LOCAL_AI_BASE_URL``،
``LOCAL_AI_MODEL`` و ``DAFTAR_DB_PATH`` مقادیر فایل را بازنویسی می‌کنند.

اگر فایل پیش‌فرض وجود نداشته باشد، مقادیر داخلی استفاده می‌شوند؛ مسیر
صریحِ ناموجود خطاست.
"""

from __future__ import annotations

import json
import os
import warnings
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Mapping, Optional

from daftar.core.common.errors import ConfigError

__all__ = [
    "DEFAULT_SETTINGS_PATH",
    "DEFAULT_SETTINGS_VERSION",
    "DatabaseSettings",
    "ExcelOptions",
    "LanguageModelSettings",
    "ModelEndpoint",
    "Settings",
    "load_settings",
    "parse_settings_dict",
]

VersionMismatchMode = Literal["raise", "warn"]
ModelSource = Literal["cloud", "local"]

DEFAULT_SETTINGS_PATH = Path("config/settings.json")
DEFAULT_SETTINGS_VERSION = "1.0.0"

_DEFAULTS: Mapping[str, Any] = {
    "version": DEFAULT_SETTINGS_VERSION,
    "database": {"path": "data/daftar.sqlite3", "busy_timeout_ms": 5000},
    "language_model": {
        "default_source": "cloud",
        "timeout_seconds": 30.0,
        "cloud": {
            "base_url": None,
            "model": "gpt-4o-mini",
            "temperature": 0.3,
            "json_response": True,
            "api_key_env": "OPENAI_API_KEY",
        },
        "local": {
            "base_url": "http://127.0.0.1:8080/v1",
            "model": "openai/gpt-oss-20b",
            "temperature": 0.3,
            "json_response": False,
            "api_key_env": "LOCAL_AI_API_KEY",
            "api_key_default": "local-ai",
        },
    },
    "excel": {"rtl": True, "font_name": "Tahoma", "font_size": 8},
}

_VALID_SOURCES: tuple[str, ...] = ("cloud", "local")


@dataclass(frozen=True)
class DatabaseSettings:
    path: Path
    busy_timeout_ms: int


@dataclass(frozen=True)
class ModelEndpoint:
    """یک مقصد سازگار با OpenAI Chat Completions."""

    source: ModelSource
    model: str
    base_url: str | None
    api_key: str | None
    temperature: float
    json_response: bool


@dataclass(frozen=True)
class LanguageModelSettings:
    default_source: ModelSource
    timeout_seconds: float
    cloud: ModelEndpoint
    local: ModelEndpoint

    def endpoint(self, source: str | None) -> ModelEndpoint:
        chosen = (source or self.default_source).strip().lower()
        if chosen not in _VALID_SOURCES:
            raise ConfigError(f"منبع مدل نامعتبر است: '{source}' (cloud|local)")
        return self.cloud if chosen == "cloud" else self.local


@dataclass(frozen=True)
class ExcelOptions:
    rtl: bool = True
    font_name: str = "Tahoma"
    font_size: int = 8


@dataclass(frozen=True)
class Settings:
    version: str
    database: DatabaseSettings
    language_model: LanguageModelSettings
    excel: ExcelOptions


def _merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    merged: dict[str, Any] = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _parse_semver(value: str) -> tuple[int, int, int]:
    try:
        major, minor, patch = value.split(".")
        return int(major), int(minor), int(patch)
    except (ValueError, TypeError) as exc:
        raise ConfigError(f"Invalid semantic version: '{value}'") from exc


def _version_gate(
    loaded_version: str,
    expected_version: Optional[str],
    on_version_mismatch: VersionMismatchMode,
) -> None:
    if expected_version is None or loaded_version == expected_version:
        return
    message = f"Settings version mismatch: loaded='{loaded_version}' expected='{expected_version}'"
    if _parse_semver(loaded_version)[0] != _parse_semver(expected_version)[0]:
        raise ConfigError(message + " (major incompatible)")
    if on_version_mismatch == "raise":
        raise ConfigError(message)
    warnings.warn(message, RuntimeWarning, stacklevel=3)


def _to_endpoint(source: ModelSource, data: Mapping[str, Any], env: Mapping[str, str]) -> ModelEndpoint:
    prefix = "LOCAL_AI" if source == "local" else None
    base_url = data.get("base_url")
    model = str(data.get("model") or "")
    if prefix:
        base_url = env.get(f"{prefix}_BASE_URL") or base_url
        model = env.get(f"{prefix}_MODEL") or model
    if not model:
        raise ConfigError(f"language_model.{source}.model خالی است")
    api_key_env = str(data.get("api_key_env") or "")
    api_key = env.get(api_key_env) if api_key_env else None
    return ModelEndpoint(
        source=source,
        model=model,
        base_url=str(base_url) if base_url else None,
        api_key=api_key or data.get("api_key_default"),
        temperature=float(data.get("temperature", 0.3)),
        json_response=bool(data.get("json_response", source == "cloud")),
    )


def _to_settings(data: Mapping[str, Any], env: Mapping[str, str]) -> Settings:
    try:
        database = data["database"]
        lm = data["language_model"]
        excel = data["excel"]
        default_source = str(lm["default_source"]).strip().lower()
        if default_source not in _VALID_SOURCES:
            raise ConfigError(f"language_model.default_source نامعتبر است: '{default_source}'")
        return Settings(
            version=str(data["version"]),
            database=DatabaseSettings(
                path=Path(env.get("DAFTAR_DB_PATH") or str(database["path"])),
                busy_timeout_ms=int(database["busy_timeout_ms"]),
            ),
            language_model=LanguageModelSettings(
                default_source=default_source,  # type: ignore[arg-type]
                timeout_seconds=float(lm["timeout_seconds"]),
                cloud=_to_endpoint("cloud", lm["cloud"], env),
                local=_to_endpoint("local", lm["local"], env),
            ),
            excel=ExcelOptions(
                rtl=bool(excel["rtl"]),
                font_name=str(excel["font_name"]),
                font_size=int(excel["font_size"]),
            ),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigError(f"ساختار تنظیمات نامعتبر است: {exc}") from exc


def parse_settings_dict(
    data: Mapping[str, Any],
    *,
    environ: Mapping[str, str] | None = None,
    expected_version: Optional[str] = DEFAULT_SETTINGS_VERSION,
    on_version_mismatch: VersionMismatchMode = "raise",
) -> Settings:
    """مسیر خالص تبدیل dict به :class:`Settings` (بدون خواندن فایل)."""

    merged = _merge(_DEFAULTS, data)
    settings = _to_settings(merged, os.environ if environ is None else environ)
    _version_gate(settings.version, expected_version, on_version_mismatch)
    return settings


@lru_cache(maxsize=8)
def _load_settings_cached(
    resolved_path: str,
    raw: str,
    mtime_ns: int,
    env_items: tuple[tuple[str, str], ...],
    expected_version: Optional[str],
    on_version_mismatch: VersionMismatchMode,
) -> Settings:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in settings file: {resolved_path}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Settings root must be an object: {resolved_path}")
    return parse_settings_dict(
        data,
        environ=dict(env_items),
        expected_version=expected_version,
        on_version_mismatch=on_version_mismatch,
    )


_ENV_KEYS: tuple[str, ...] = (
    "OPENAI_API_KEY",
    "LOCAL_AI_API_KEY",
    "LOCAL_AI_BASE_URL",
    "LOCAL_AI_MODEL",
    "DAFTAR_DB_PATH",
)


def load_settings(
    path: str | Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    expected_version: Optional[str] = DEFAULT_SETTINGS_VERSION,
    on_version_mismatch: VersionMismatchMode = "raise",
) -> Settings:
    """بارگذاری تنظیمات از JSON با کش بر اساس مسیر، محتوا و متغیرهای محیطی."""

    env = os.environ if environ is None else environ
    env_items = tuple((key, env[key]) for key in _ENV_KEYS if env.get(key))
    settings_path = Path(path) if path is not None else DEFAULT_SETTINGS_PATH
    if not settings_path.exists():
        if path is not None:
            raise FileNotFoundError(f"Settings file not found: {settings_path}")
        return parse_settings_dict(
            {}, environ=dict(env_items), expected_version=expected_version,
            on_version_mismatch=on_version_mismatch,
        )
    raw = settings_path.read_text(encoding="utf-8")
    return _load_settings_cached(
        str(settings_path.resolve()),
        raw,
        settings_path.stat().st_mtime_ns,
        env_items,
        expected_version,
        on_version_mismatch,
    )


load_settings.cache_clear = _load_settings_cached.cache_clear  # type: ignore[attr-defined]
