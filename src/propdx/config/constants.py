"""Common coercion helpers and configuration constants."""

from __future__ import annotations

from typing import Final

TRUTHY_STRINGS = {"1", "true", "yes", "on"}
FALSY_STRINGS = {"0", "false", "no", "off"}


CONFIG_BASENAME = "config"
DEFAULT_CONFIG_FILENAME = f"{CONFIG_BASENAME}.toml"
LOCAL_CONFIG_FILENAME = f"{CONFIG_BASENAME}.local.toml"

DEFAULT_BASE_URL: Final = "http://localhost:5000"
DEFAULT_HEALTH_ENDPOINT: Final = "/api/v3/debug/health"
DEFAULT_TIME_BUDGET_SECONDS: Final = 300.0
DEFAULT_PROBE_TIMEOUT_MS: Final = 10_000


def coerce_bool(value: object | None, *, default: bool = False) -> bool:
    """Convert common truthy/falsey string markers into booleans.

    Falls back to ``default`` when the value is ``None`` or ambiguous.
    Passing a non-string/non-bool value relies on Python's ``bool`` constructor.
    """

    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if not normalized:
            return default
        if normalized in TRUTHY_STRINGS:
            return True
        if normalized in FALSY_STRINGS:
            return False
        return default
    return bool(value)


def coerce_positive_float(
    candidate: object | None, *, default: float | None = None
) -> float:
    """Coerce ``candidate`` into a positive float, enforcing strict validation."""

    if candidate is None:
        if default is None:
            raise ValueError("No numeric value provided and no default specified")
        return default

    try:
        value = float(candidate)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid numeric value: {candidate}") from exc

    if value <= 0:
        raise ValueError(f"Value must be positive: {candidate}")

    return value


__all__ = [
    "coerce_bool",
    "coerce_positive_float",
    "TRUTHY_STRINGS",
    "FALSY_STRINGS",
    "CONFIG_BASENAME",
    "DEFAULT_CONFIG_FILENAME",
    "LOCAL_CONFIG_FILENAME",
    "DEFAULT_BASE_URL",
    "DEFAULT_HEALTH_ENDPOINT",
    "DEFAULT_TIME_BUDGET_SECONDS",
    "DEFAULT_PROBE_TIMEOUT_MS",
]
