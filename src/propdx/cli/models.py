"""Dataclasses describing a normalized CLI invocation."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class RuntimeOverrides:
    base_url: str | None = None
    catalog_path: str | None = None
    time_budget: float | None = None
    debug: bool | None = None


@dataclass(frozen=True)
class LoggingOverrides:
    level: str | None = None
    format: str | None = None
    file_path: str | None = None
    max_bytes: int | None = None
    backup_count: int | None = None


@dataclass(frozen=True)
class CliInvocation:
    """Everything a command needs to resolve settings and build a runner."""

    config_path: str | None = None
    runtime: RuntimeOverrides = field(default_factory=RuntimeOverrides)
    logging: LoggingOverrides = field(default_factory=LoggingOverrides)
    json_output: bool = False


__all__ = ["CliInvocation", "LoggingOverrides", "RuntimeOverrides"]
