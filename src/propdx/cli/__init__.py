"""Command-line interface for propdx."""
