"""Advisory command: ``fix``.

The command diagnoses and recommends. It never repairs anything on the target
service, whatever the category.
"""

from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console

from propdx.application.advisor import ALL_CATEGORIES, CATEGORY_ORDER
from propdx.cli import options as cli_options
from propdx.cli.formatting import render_advisory
from propdx.cli.helpers import build_invocation, run_command

DEFAULT_CATEGORY = CATEGORY_ORDER[0]

CategoryArgument = Annotated[
    str,
    typer.Argument(
        help=(
            "Issue category: "
            + ", ".join(CATEGORY_ORDER)
            + f", or '{ALL_CATEGORIES}' to run every category"
        ),
        show_default=True,
    ),
]


def register(
    app: typer.Typer,
    *,
    stdout_console: Console,
    stderr_console: Console,
) -> None:
    @app.command(help="Run read-only advisory checks for an issue category.")
    def fix(
        category: CategoryArgument = DEFAULT_CATEGORY,
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
            lambda runner: runner.advise(category.strip()),
            renderer=render_advisory,
            stdout_console=stdout_console,
            stderr_console=stderr_console,
        )


__all__ = ["DEFAULT_CATEGORY", "register"]
