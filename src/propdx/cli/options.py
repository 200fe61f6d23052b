"""Typer option declarations and normalization helpers."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated, Final

import typer

LOG_FORMAT_CHOICES: Final[set[str]] = {"text", "json"}
LOG_LEVEL_CHOICES: Final[list[str]] = sorted(
    name
    for name, value in logging.getLevelNamesMapping().items()
    if isinstance(name, str) and not name.isdigit()
)
LOG_LEVEL_SET: Final[set[str]] = {choice.upper() for choice in LOG_LEVEL_CHOICES}

ConfigPathOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        help="Path to a propdx configuration TOML file to load",
        envvar="PROPDX_CONFIG",
        show_envvar=True,
        rich_help_panel="Configuration",
    ),
]

BaseUrlOption = Annotated[
    str | None,
    typer.Option(
        "--base-url",
        help="Base URL of the service under diagnosis",
        envvar="PROPDX_BASE_URL",
        show_envvar=True,
        rich_help_panel="Target",
    ),
]

CatalogOption = Annotated[
    str | None,
    typer.Option(
        "--catalog",
        help="Path to a check catalog JSON file (defaults to the packaged catalog)",
        envvar="PROPDX_CATALOG",
        show_envvar=True,
        rich_help_panel="Target",
    ),
]

TimeBudgetOption = Annotated[
    float | None,
    typer.Option(
        "--time-budget",
        help="Overall time budget in seconds; remaining probes are cancelled once spent",
        envvar="PROPDX_TIME_BUDGET",
        show_envvar=True,
        rich_help_panel="Runtime",
    ),
]

DebugOption = Annotated[
    bool | None,
    typer.Option(
        "--debug/--no-debug",
        help="Enable verbose diagnostics",
        envvar="PROPDX_DEBUG",
        show_envvar=True,
        rich_help_panel="Runtime",
    ),
]

JsonOutputOption = Annotated[
    bool,
    typer.Option(
        "--json/--table",
        help="Print the structured result as JSON instead of tables",
        rich_help_panel="Output",
    ),
]

LogLevelOption = Annotated[
    str | None,
    typer.Option(
        "--log-level",
        help="Logging level (e.g. INFO, DEBUG)",
        envvar="PROPDX_LOG_LEVEL",
        show_envvar=True,
        rich_help_panel="Logging",
    ),
]

LogFormatOption = Annotated[
    str | None,
    typer.Option(
        "--log-format",
        help="Logging format (text or json)",
        envvar="PROPDX_LOG_FORMAT",
        show_envvar=True,
        rich_help_panel="Logging",
    ),
]

LogFileOption = Annotated[
    str | None,
    typer.Option(
        "--log-file",
        help="Path to a log file (use '-', none, stderr to disable)",
        envvar="PROPDX_LOG_FILE",
        show_envvar=True,
        rich_help_panel="Logging",
    ),
]

LogMaxBytesOption = Annotated[
    int | None,
    typer.Option(
        "--log-max-bytes",
        min=1,
        help="Maximum size in bytes for rotating log files",
        envvar="PROPDX_LOG_MAX_BYTES",
        show_envvar=True,
        rich_help_panel="Logging",
    ),
]

LogBackupCountOption = Annotated[
    int | None,
    typer.Option(
        "--log-backup-count",
        min=1,
        help="Number of rotating log file backups to retain",
        envvar="PROPDX_LOG_BACKUP_COUNT",
        show_envvar=True,
        rich_help_panel="Logging",
    ),
]


def clean_string(value: str | None) -> str | None:
    """Normalize optional string input."""

    if value is None:
        return None
    candidate = value.strip()
    return candidate or None


def validate_positive(name: str, value: int | float | None) -> int | float | None:
    """Validate that a numeric option is positive when provided."""

    if value is None:
        return None
    if value <= 0:
        raise typer.BadParameter(
            f"{name} must be a positive number",
            param_hint=f"--{name.replace('_', '-')}",
        )
    return value


def normalize_base_url(value: str | None) -> str | None:
    """Strip trailing slashes and require an http(s) scheme."""

    candidate = clean_string(value)
    if candidate is None:
        return None
    if not candidate.startswith(("http://", "https://")):
        raise typer.BadParameter(
            "Base URL must start with http:// or https://",
            param_hint="--base-url",
        )
    return candidate.rstrip("/")


def normalize_log_format(value: str | None) -> str | None:
    """Normalize the log format option."""

    if value is None:
        return None
    candidate = value.strip().lower()
    if not candidate:
        return None
    if candidate not in LOG_FORMAT_CHOICES:
        raise typer.BadParameter(
            "Log format must be either 'text' or 'json'",
            param_hint="--log-format",
        )
    return candidate


def normalize_log_level(value: str | None) -> str | None:
    """Normalize the log level option."""

    if value is None:
        return None
    candidate = value.strip().upper()
    if not candidate:
        return None
    if candidate not in LOG_LEVEL_SET:
        raise typer.BadParameter(
            f"Log level must be one of: {', '.join(LOG_LEVEL_CHOICES)}",
            param_hint="--log-level",
        )
    return candidate


__all__ = [
    "BaseUrlOption",
    "CatalogOption",
    "ConfigPathOption",
    "DebugOption",
    "JsonOutputOption",
    "LOG_FORMAT_CHOICES",
    "LOG_LEVEL_CHOICES",
    "LogBackupCountOption",
    "LogFileOption",
    "LogFormatOption",
    "LogLevelOption",
    "LogMaxBytesOption",
    "TimeBudgetOption",
    "clean_string",
    "normalize_base_url",
    "normalize_log_format",
    "normalize_log_level",
    "validate_positive",
]
