"""Reusable helper utilities for the propdx CLI."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any, Final

import typer
from rich.console import Console

from propdx.application.runner import DiagnosticRunner, RunResult, SyncRunner
from propdx.cli import options as cli_options
from propdx.cli.models import CliInvocation, LoggingOverrides, RuntimeOverrides
from propdx.cli.sync_bridge import await_sync
from propdx.config.catalog import load_catalog
from propdx.config.settings import (
    LoggingInputs,
    LoggingSettings,
    RuntimeInputs,
    RuntimeSettings,
    is_logfile_disabled_value,
    resolve_application_settings,
)
from propdx.infrastructure.errors import ConfigError
from propdx.infrastructure.logging import BoundLogger, configure_logging, get_logger

CONFIG_ERROR_EXIT_CODE: Final = 2

Renderer = Callable[[Any, Console], None]


def build_invocation(
    *,
    config_path: Path | str | None,
    base_url: str | None,
    catalog: str | None,
    time_budget: float | None,
    debug: bool | None,
    log_level: str | None,
    log_format: str | None,
    log_file: str | None,
    log_max_bytes: int | None = None,
    log_backup_count: int | None = None,
    json_output: bool = False,
) -> CliInvocation:
    """Construct a :class:`CliInvocation` with normalized CLI parameters."""

    return CliInvocation(
        config_path=str(config_path) if config_path is not None else None,
        runtime=RuntimeOverrides(
            base_url=cli_options.normalize_base_url(base_url),
            catalog_path=cli_options.clean_string(catalog),
            time_budget=cli_options.validate_positive("time_budget", time_budget),
            debug=debug,
        ),
        logging=LoggingOverrides(
            level=cli_options.normalize_log_level(log_level),
            format=cli_options.normalize_log_format(log_format),
            file_path=cli_options.clean_string(log_file),
            max_bytes=cli_options.validate_positive("log_max_bytes", log_max_bytes),
            backup_count=cli_options.validate_positive("log_backup_count", log_backup_count),
        ),
        json_output=json_output,
    )


def runtime_inputs(overrides: RuntimeOverrides) -> RuntimeInputs | None:
    """Convert CLI runtime overrides to :class:`RuntimeInputs`."""

    if (
        overrides.base_url is None
        and overrides.catalog_path is None
        and overrides.time_budget is None
        and overrides.debug is None
    ):
        return None
    return RuntimeInputs(
        base_url=overrides.base_url,
        catalog_path=overrides.catalog_path,
        time_budget=overrides.time_budget,
        debug=overrides.debug,
    )


def logging_inputs(overrides: LoggingOverrides) -> LoggingInputs | None:
    """Convert CLI logging overrides to :class:`LoggingInputs`."""

    if (
        overrides.level is None
        and overrides.format is None
        and overrides.file_path is None
        and overrides.max_bytes is None
        and overrides.backup_count is None
    ):
        return None

    file_override: str | None
    if overrides.file_path is None:
        file_override = None
    elif is_logfile_disabled_value(overrides.file_path):
        file_override = ""
    else:
        file_override = overrides.file_path

    return LoggingInputs(
        level=overrides.level,
        format=overrides.format,
        file_path=file_override,
        max_bytes=overrides.max_bytes,
        backup_count=overrides.backup_count,
    )


def resolve_runtime_and_logging(
    invocation: CliInvocation,
) -> tuple[RuntimeSettings, LoggingSettings]:
    """Resolve runtime and logging settings from a CLI invocation.

    Raises:
        ConfigError: the configured log format is not supported.
    """

    try:
        return resolve_application_settings(
            config_path=invocation.config_path,
            runtime_inputs=runtime_inputs(invocation.runtime),
            logging_inputs=logging_inputs(invocation.logging),
        )
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc


def emit_runtime_messages(runtime_settings: RuntimeSettings, logger: BoundLogger) -> None:
    for message in runtime_settings.warnings:
        logger.warning(message)


def initialize_logging(
    runtime_settings: RuntimeSettings, logging_settings: LoggingSettings
) -> BoundLogger:
    """Configure logging and emit runtime messages."""

    configure_logging(logging_settings)
    logger = get_logger("propdx")
    emit_runtime_messages(runtime_settings, logger)
    return logger


def build_runner(
    invocation: CliInvocation, *, run_sync: SyncRunner | None = await_sync
) -> DiagnosticRunner:
    """Resolve settings, configure logging and load the catalog for one command."""

    runtime_settings, logging_settings = resolve_runtime_and_logging(invocation)
    logger = initialize_logging(runtime_settings, logging_settings)
    catalog = load_catalog(runtime_settings.catalog_path)
    logger.debug(
        "runner.ready",
        base_url=runtime_settings.base_url,
        time_budget=runtime_settings.time_budget_seconds,
        suites=len(catalog.feature_tests),
    )
    return DiagnosticRunner(
        catalog=catalog,
        base_url=runtime_settings.base_url,
        logger=logger,
        time_budget_seconds=runtime_settings.time_budget_seconds,
        run_sync=run_sync,
    )


def emit_result(
    result: RunResult,
    *,
    json_output: bool,
    console: Console,
    renderer: Renderer,
) -> None:
    """Print ``result`` and exit with the code derived from its verdict."""

    if json_output:
        console.print_json(data=result.to_payload())
    else:
        renderer(result.report, console)
    raise typer.Exit(code=result.exit_code())


def run_command(
    invocation: CliInvocation,
    action: Callable[[DiagnosticRunner], RunResult],
    *,
    renderer: Renderer,
    stdout_console: Console,
    stderr_console: Console,
) -> None:
    """Build a runner, execute ``action`` and render its result.

    Configuration problems (malformed catalog, unknown feature or category)
    are printed to stderr and end the command with exit code 2.
    """

    try:
        runner = build_runner(invocation)
        result = action(runner)
    except ConfigError as exc:
        stderr_console.print(f"[red]Configuration error:[/red] {exc.user_message}")
        raise typer.Exit(code=CONFIG_ERROR_EXIT_CODE) from exc
    emit_result(
        result,
        json_output=invocation.json_output,
        console=stdout_console,
        renderer=renderer,
    )


__all__ = [
    "CONFIG_ERROR_EXIT_CODE",
    "Renderer",
    "build_invocation",
    "build_runner",
    "emit_result",
    "emit_runtime_messages",
    "initialize_logging",
    "logging_inputs",
    "resolve_runtime_and_logging",
    "run_command",
    "runtime_inputs",
]
