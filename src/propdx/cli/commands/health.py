"""Health commands: ``deps``, ``env`` and ``diagnose``."""

from __future__ import annotations

import typer
from rich.console import Console

from propdx.cli import options as cli_options
from propdx.cli.formatting import render_dependencies, render_diagnosis, render_environment
from propdx.cli.helpers import build_invocation, run_command


def register(
    app: typer.Typer,
    *,
    stdout_console: Console,
    stderr_console: Console,
) -> None:
    @app.command(help="Check reachability of external APIs and storage.")
    def deps(
        config: cli_options.ConfigPathOption = None,
        base_url: cli_options.BaseUrlOption = None,
        catalog: cli_options.CatalogOption = None,
        time_budget: cli_options.TimeBudgetOption = None,
        debug: cli_options.DebugOption = None,
        json_output: cli_options.JsonOutputOption = False,
        log_level: cli_options.LogLevelOption = None,
        log_format: cli_options.LogFormatOption = None,
        log_file: cli_options.LogFileOption = None,
    ) -> None:
        invocation = build_invocation(
            config_path=config,
            base_url=base_url,
            catalog=catalog,
            time_budget=time_budget,
            debug=debug,
            log_level=log_level,
            log_format=log_format,
            log_file=log_file,
            json_output=json_output,
        )
        run_command(
            invocation,
            lambda runner: runner.check_dependencies(),
            renderer=render_dependencies,
            stdout_console=stdout_console,
            stderr_console=stderr_console,
        )

    @app.command(help="Validate required and optional environment variables.")
    def env(
        config: cli_options.ConfigPathOption = None,
        catalog: cli_options.CatalogOption = None,
        debug: cli_options.DebugOption = None,
        json_output: cli_options.JsonOutputOption = False,
        log_level: cli_options.LogLevelOption = None,
        log_format: cli_options.LogFormatOption = None,
        log_file: cli_options.LogFileOption = None,
    ) -> None:
        invocation = build_invocation(
            config_path=config,
            base_url=None,
            catalog=catalog,
            time_budget=None,
            debug=debug,
            log_level=log_level,
            log_format=log_format,
            log_file=log_file,
            json_output=json_output,
        )
        run_command(
            invocation,
            lambda runner: runner.validate_environment(),
            renderer=render_environment,
            stdout_console=stdout_console,
            stderr_console=stderr_console,
        )

    @app.command(help="Run the comprehensive diagnosis and print a health score.")
    def diagnose(
        config: cli_options.ConfigPathOption = None,
        base_url: cli_options.BaseUrlOption = None,
        catalog: cli_options.CatalogOption = None,
        time_budget: cli_options.TimeBudgetOption = None,
        debug: cli_options.DebugOption = None,
        json_output: cli_options.JsonOutputOption = False,
        log_level: cli_options.LogLevelOption = None,
        log_format: cli_options.LogFormatOption = None,
        log_file: cli_options.LogFileOption = None,
        log_max_bytes: cli_options.LogMaxBytesOption = None,
        log_backup_count: cli_options.LogBackupCountOption = None,
    ) -> None:
        invocation = build_invocation(
            config_path=config,
            base_url=base_url,
            catalog=catalog,
            time_budget=time_budget,
            debug=debug,
            log_level=log_level,
            log_format=log_format,
            log_file=log_file,
            log_max_bytes=log_max_bytes,
            log_backup_count=log_backup_count,
            json_output=json_output,
        )
        run_command(
            invocation,
            lambda runner: runner.diagnose(),
            renderer=render_diagnosis,
            stdout_console=stdout_console,
            stderr_console=stderr_console,
        )


__all__ = ["register"]
