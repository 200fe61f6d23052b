"""Packaged catalog data for propdx."""

from importlib import resources as _resources

__all__ = ["read_resource_text"]


def read_resource_text(name: str) -> str:
    """Return the text of a packaged resource file."""
    return _resources.files(__name__).joinpath(name).read_text(encoding="utf-8")
