"""Console script entry point.

Without arguments propdx runs the ``full`` command; leading options with no
subcommand are forwarded to ``full`` as well.
"""

from __future__ import annotations

import sys
from typing import Final

from typer.main import get_command

from propdx.cli.app import app

PROG_NAME: Final = "propdx"
DEFAULT_COMMAND: Final = "full"
_TOP_LEVEL_FLAGS: Final = frozenset({"--help", "--install-completion", "--show-completion"})


def _route(args: list[str]) -> list[str]:
    if not args:
        return [DEFAULT_COMMAND]
    first = args[0]
    if first.startswith("-") and first not in _TOP_LEVEL_FLAGS:
        return [DEFAULT_COMMAND, *args]
    return args


def main(argv: list[str] | None = None) -> None:
    """Invoke the Typer application.

    Parameters
    ----------
    argv:
        Optional list of arguments to pass to Typer. When ``None`` the
        process arguments are used.
    """

    args = _route(list(sys.argv[1:] if argv is None else argv))
    command = get_command(app)
    command.main(args=args, prog_name=PROG_NAME)


__all__ = ["DEFAULT_COMMAND", "main"]
