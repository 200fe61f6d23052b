"""Top-level propdx package: diagnostics for a property-platform web service."""

__version__ = "0.1.0"

__all__ = ["__version__"]
