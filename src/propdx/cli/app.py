"""propdx Typer CLI application."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from propdx.cli.commands import advise as advise_command
from propdx.cli.commands import health as health_command
from propdx.cli.commands import probes as probes_command

PROJECT_ROOT = Path(__file__).resolve().parents[3]

stderr_console = Console(stderr=True)
stdout_console = Console(stderr=False)

app = typer.Typer(
    help="Diagnostics and smoke tests for a running property-platform service",
    rich_markup_mode="rich",
)

probes_command.register(app, stdout_console=stdout_console, stderr_console=stderr_console)
health_command.register(app, stdout_console=stdout_console, stderr_console=stderr_console)
advise_command.register(app, stdout_console=stdout_console, stderr_console=stderr_console)


@app.command(name="help", help="Show the available commands and their options.")
def help_command(ctx: typer.Context) -> None:
    """Print the top-level help text."""
    typer.echo((ctx.parent or ctx).get_help())


@app.command(help="Show the installed propdx package version.")
def version() -> None:
    """Print the propdx version discovered from the package metadata."""
    from importlib import metadata

    try:
        resolved_version = metadata.version("propdx")
    except metadata.PackageNotFoundError:
        pyproject = PROJECT_ROOT / "pyproject.toml"
        if not pyproject.exists():
            stdout_console.print("Version information unavailable")
            return
        import tomllib

        data = tomllib.loads(pyproject.read_text(encoding="utf-8"))
        resolved_version = data.get("project", {}).get("version", "unknown")
    stdout_console.print(resolved_version)


__all__ = ["PROJECT_ROOT", "app", "stderr_console", "stdout_console"]
