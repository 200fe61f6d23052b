"""Logging and error types shared across propdx."""
