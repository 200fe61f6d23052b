"""Feature test suite commands: ``test`` and ``full``."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console

from propdx.application.runner import ALL_SUITES
from propdx.cli import options as cli_options
from propdx.cli.formatting import render_full, render_suites
from propdx.cli.helpers import build_invocation, run_command

DEFAULT_FEATURE = "propertyIntelligence"

FeatureArgument = Annotated[
    str,
    typer.Argument(
        help=f"Feature suite to run, or '{ALL_SUITES}' for every suite in the catalog",
        show_default=True,
    ),
]


def register(
    app: typer.Typer,
    *,
    stdout_console: Console,
    stderr_console: Console,
) -> None:
    @app.command(help="Run the probes of one feature suite (or all of them).")
    def test(
        feature: FeatureArgument = DEFAULT_FEATURE,
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
            lambda runner: runner.run_suite(feature.strip()),
            renderer=render_suites,
            stdout_console=stdout_console,
            stderr_console=stderr_console,
        )

    @app.command(help="Validate the environment, check dependencies and run every suite.")
    def full(
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
            lambda runner: runner.full(),
            renderer=render_full,
            stdout_console=stdout_console,
            stderr_console=stderr_console,
        )


__all__ = ["DEFAULT_FEATURE", "register"]
