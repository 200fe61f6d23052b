"""Subcommand registration modules for the propdx CLI."""
