"""Dynaconf-backed configuration helpers for propdx."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

from dynaconf import Dynaconf

from propdx.config.constants import (
    DEFAULT_BASE_URL,
    DEFAULT_CONFIG_FILENAME,
    DEFAULT_TIME_BUDGET_SECONDS,
    LOCAL_CONFIG_FILENAME,
    coerce_bool,
    coerce_positive_float,
)

_REPO_ROOT = Path(__file__).resolve().parents[3]

LOG_FORMAT_TEXT = "text"
LOG_FORMAT_JSON = "json"
DEFAULT_LOG_FORMAT = LOG_FORMAT_TEXT
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_MAX_BYTES = 10_000_000
DEFAULT_BACKUP_COUNT = 5

_LOGFILE_DISABLED_VALUES = {"-", "none", "stderr", "off"}

# Dynaconf keys used throughout the module. Using constants keeps environment
# and configuration lookups consistent.
TARGET_BASE_URL_KEY = "target.base_url"
TARGET_CATALOG_KEY = "target.catalog"

RUNTIME_TIME_BUDGET_KEY = "runtime.time_budget"
RUNTIME_DEBUG_KEY = "runtime.debug"

LOGGING_LEVEL_KEY = "logging.level"
LOGGING_FORMAT_KEY = "logging.format"
LOGGING_FILE_KEY = "logging.file"
LOGGING_MAX_BYTES_KEY = "logging.max_bytes"
LOGGING_BACKUP_COUNT_KEY = "logging.backup_count"

_ENVIRONMENT_MAP = {
    "PROPDX_BASE_URL": TARGET_BASE_URL_KEY,
    "PROPDX_CATALOG": TARGET_CATALOG_KEY,
    "PROPDX_TIME_BUDGET": RUNTIME_TIME_BUDGET_KEY,
    "PROPDX_DEBUG": RUNTIME_DEBUG_KEY,
    "PROPDX_LOG_LEVEL": LOGGING_LEVEL_KEY,
    "PROPDX_LOG_FORMAT": LOGGING_FORMAT_KEY,
    "PROPDX_LOG_FILE": LOGGING_FILE_KEY,
    "PROPDX_LOG_MAX_BYTES": LOGGING_MAX_BYTES_KEY,
    "PROPDX_LOG_BACKUP_COUNT": LOGGING_BACKUP_COUNT_KEY,
}


@dataclass(frozen=True)
class RuntimeInputs:
    base_url: str | None = None
    catalog_path: str | None = None
    time_budget: float | None = None
    debug: bool | None = None


@dataclass(frozen=True)
class LoggingInputs:
    level: str | None = None
    format: str | None = None
    file_path: str | None = None
    max_bytes: int | None = None
    backup_count: int | None = None


@dataclass(frozen=True)
class RuntimeSettings:
    base_url: str = DEFAULT_BASE_URL
    catalog_path: str | None = None
    time_budget_seconds: float = DEFAULT_TIME_BUDGET_SECONDS
    debug: bool = False
    warnings: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class LoggingSettings:
    level: int
    format: str
    file_path: str | None
    max_bytes: int
    backup_count: int

    @property
    def level_name(self) -> str:
        return logging.getLevelName(self.level)


def is_logfile_disabled_value(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in _LOGFILE_DISABLED_VALUES


def _default_settings_files(config_path: str | None) -> tuple[Sequence[str], str | None]:
    if config_path:
        config_file = Path(config_path)
        local_file = config_file.with_name(f"{config_file.stem}.local{config_file.suffix}")
        files: list[str] = []
        if config_file.exists():
            files.append(str(config_file))
        if local_file.exists():
            files.append(str(local_file))
        return files or [str(config_file)], None
    return [DEFAULT_CONFIG_FILENAME, LOCAL_CONFIG_FILENAME], str(_REPO_ROOT)


def _coerce_str(value: Any | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        candidate = value.strip()
        return candidate or None
    return str(value)


def _coerce_int(value: Any | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _apply_environment_overrides(settings: Dynaconf) -> None:
    for env_var, key in _ENVIRONMENT_MAP.items():
        raw = os.getenv(env_var)
        if raw is None or not raw.strip():
            continue
        settings.set(key, raw)


def _apply_runtime_inputs(settings: Dynaconf, runtime_inputs: RuntimeInputs | None) -> None:
    if runtime_inputs is None:
        return

    if runtime_inputs.base_url is not None:
        settings.set(TARGET_BASE_URL_KEY, runtime_inputs.base_url.strip())
    if runtime_inputs.catalog_path is not None:
        settings.set(TARGET_CATALOG_KEY, runtime_inputs.catalog_path.strip())
    if runtime_inputs.time_budget is not None:
        settings.set(RUNTIME_TIME_BUDGET_KEY, runtime_inputs.time_budget)
    if runtime_inputs.debug is not None:
        settings.set(RUNTIME_DEBUG_KEY, runtime_inputs.debug)


def _apply_logging_inputs(settings: Dynaconf, logging_inputs: LoggingInputs | None) -> None:
    if logging_inputs is None:
        return

    if logging_inputs.level is not None:
        settings.set(LOGGING_LEVEL_KEY, logging_inputs.level.strip())
    if logging_inputs.format is not None:
        settings.set(LOGGING_FORMAT_KEY, logging_inputs.format.strip())
    if logging_inputs.file_path is not None:
        settings.set(LOGGING_FILE_KEY, logging_inputs.file_path.strip())
    if logging_inputs.max_bytes is not None:
        settings.set(LOGGING_MAX_BYTES_KEY, logging_inputs.max_bytes)
    if logging_inputs.backup_count is not None:
        settings.set(LOGGING_BACKUP_COUNT_KEY, logging_inputs.backup_count)


def load_settings(config_path: str | None = None) -> Dynaconf:
    """Create a Dynaconf instance configured for the supplied path."""

    files, root_path = _default_settings_files(config_path)
    settings = Dynaconf(
        settings_files=list(files),
        envvar_prefix="PROPDX",
        environments=False,
        load_dotenv=True,
        merge_enabled=True,
        root_path=root_path,
    )
    _apply_environment_overrides(settings)
    return settings


def apply_cli_overrides(
    settings: Dynaconf,
    *,
    runtime_inputs: RuntimeInputs | None = None,
    logging_inputs: LoggingInputs | None = None,
) -> None:
    """Apply CLI overrides to the provided settings instance."""

    _apply_runtime_inputs(settings, runtime_inputs)
    _apply_logging_inputs(settings, logging_inputs)


def _resolve_base_url(settings: Dynaconf, warnings: list[str]) -> str:
    raw = _coerce_str(settings.get(TARGET_BASE_URL_KEY))
    if raw is None:
        return DEFAULT_BASE_URL
    if not raw.startswith(("http://", "https://")):
        warnings.append(f"Ignoring base_url '{raw}' without http(s) scheme; using {DEFAULT_BASE_URL}")
        return DEFAULT_BASE_URL
    return raw.rstrip("/")


def _resolve_time_budget(settings: Dynaconf, warnings: list[str]) -> float:
    candidate = settings.get(RUNTIME_TIME_BUDGET_KEY)
    if candidate is None:
        return DEFAULT_TIME_BUDGET_SECONDS
    try:
        return coerce_positive_float(candidate)
    except ValueError:
        warnings.append("Invalid time_budget override; using default configuration")
        return DEFAULT_TIME_BUDGET_SECONDS


def runtime_from_settings(settings: Dynaconf) -> RuntimeSettings:
    """Extract runtime settings and validation messages from Dynaconf."""

    warnings: list[str] = []
    base_url = _resolve_base_url(settings, warnings)
    time_budget = _resolve_time_budget(settings, warnings)
    return RuntimeSettings(
        base_url=base_url,
        catalog_path=_coerce_str(settings.get(TARGET_CATALOG_KEY)),
        time_budget_seconds=time_budget,
        debug=coerce_bool(settings.get(RUNTIME_DEBUG_KEY), default=False),
        warnings=tuple(warnings),
    )


def logging_from_settings(settings: Dynaconf) -> LoggingSettings:
    """Extract logging configuration from Dynaconf."""

    level_value = _coerce_str(settings.get(LOGGING_LEVEL_KEY)) or DEFAULT_LOG_LEVEL
    format_value = (_coerce_str(settings.get(LOGGING_FORMAT_KEY)) or DEFAULT_LOG_FORMAT).lower()
    if format_value not in {LOG_FORMAT_TEXT, LOG_FORMAT_JSON}:
        raise ValueError(f"Unsupported log format: {format_value}")

    file_path = _coerce_str(settings.get(LOGGING_FILE_KEY))
    if is_logfile_disabled_value(file_path):
        file_path = None

    max_bytes_value = _coerce_int(settings.get(LOGGING_MAX_BYTES_KEY))
    if max_bytes_value is None or max_bytes_value <= 0:
        max_bytes_value = DEFAULT_MAX_BYTES

    backup_count_value = _coerce_int(settings.get(LOGGING_BACKUP_COUNT_KEY))
    if backup_count_value is None or backup_count_value <= 0:
        backup_count_value = DEFAULT_BACKUP_COUNT

    mapping = logging.getLevelNamesMapping()
    level_upper = level_value.upper()
    if level_upper.isdigit():
        resolved_level = int(level_upper)
    else:
        resolved_level = mapping.get(level_upper, logging.INFO)

    return LoggingSettings(
        level=resolved_level,
        format=format_value,
        file_path=file_path,
        max_bytes=max_bytes_value,
        backup_count=backup_count_value,
    )


def resolve_application_settings(
    *,
    config_path: str | None = None,
    runtime_inputs: RuntimeInputs | None = None,
    logging_inputs: LoggingInputs | None = None,
) -> tuple[RuntimeSettings, LoggingSettings]:
    settings = load_settings(config_path)
    apply_cli_overrides(
        settings,
        runtime_inputs=runtime_inputs,
        logging_inputs=logging_inputs,
    )
    runtime_settings = runtime_from_settings(settings)
    logging_settings = logging_from_settings(settings)

    if runtime_settings.debug and logging_settings.level > logging.DEBUG:
        logging_settings = LoggingSettings(
            level=logging.DEBUG,
            format=logging_settings.format,
            file_path=logging_settings.file_path,
            max_bytes=logging_settings.max_bytes,
            backup_count=logging_settings.backup_count,
        )

    return runtime_settings, logging_settings


__all__ = [
    "DEFAULT_LOG_FORMAT",
    "DEFAULT_LOG_LEVEL",
    "DEFAULT_MAX_BYTES",
    "DEFAULT_BACKUP_COUNT",
    "LOG_FORMAT_TEXT",
    "LOG_FORMAT_JSON",
    "load_settings",
    "apply_cli_overrides",
    "runtime_from_settings",
    "logging_from_settings",
    "is_logfile_disabled_value",
    "RuntimeInputs",
    "LoggingInputs",
    "RuntimeSettings",
    "LoggingSettings",
    "resolve_application_settings",
]
