"""Environment variable validation and the production readiness verdict."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Final

from propdx.config.catalog import EnvEntry, EnvValidation, SecurityConfig
from propdx.domain.models import EnvironmentReport, EnvVarRecord, PerformanceSetting, SecurityCheck

MIN_VALID_LENGTH: Final = 10
PLACEHOLDER_MARKERS: Final = ("test", "placeholder")
MASK_PREFIX_LENGTH: Final = 8
MIN_PASSING_SECURITY_CHECKS: Final = 2

NOT_SET: Final = "not_set"
CONFIGURED: Final = "configured"


def mask_value(value: str | None) -> str:
    if value is None:
        return NOT_SET
    return f"{value[:MASK_PREFIX_LENGTH]}..."


def is_plausible_value(value: str | None) -> bool:
    """Heuristic validity: long enough and not an obvious placeholder."""

    if value is None or len(value) <= MIN_VALID_LENGTH:
        return False
    return not any(marker in value for marker in PLACEHOLDER_MARKERS)


def _required_record(entry: EnvEntry, environ: Mapping[str, str]) -> EnvVarRecord:
    value = environ.get(entry.name)
    return EnvVarRecord(
        name=entry.name,
        required=True,
        present=value is not None,
        valid=is_plausible_value(value),
        masked_value=mask_value(value),
        critical=entry.critical,
        description=entry.description,
    )


def _optional_record(entry: EnvEntry, environ: Mapping[str, str]) -> EnvVarRecord:
    value = environ.get(entry.name)
    if entry.sensitive:
        shown = CONFIGURED if value is not None else NOT_SET
    else:
        shown = value if value is not None else NOT_SET

    note = None
    if entry.expected is not None and value is not None and value != entry.expected:
        note = f"expected '{entry.expected}'"
    return EnvVarRecord(
        name=entry.name,
        required=False,
        present=value is not None,
        valid=value is not None,
        masked_value=shown,
        critical=entry.critical,
        description=entry.description,
        note=note,
    )


def security_checks(
    security: SecurityConfig,
    environ: Mapping[str, str],
) -> tuple[SecurityCheck, ...]:
    minimum = security.api_key_min_length
    keys_ok = bool(security.api_key_variables) and all(
        len(environ.get(name) or "") >= minimum for name in security.api_key_variables
    )
    connection_string = environ.get(security.connection_string_variable) or ""
    mode = environ.get(security.mode_variable)
    return (
        SecurityCheck(
            name="api_key_length",
            passed=keys_ok,
            description=f"API keys are at least {minimum} characters",
        ),
        SecurityCheck(
            name="database_ssl",
            passed=any(marker in connection_string for marker in security.ssl_markers),
            description="Database connection string requires SSL",
        ),
        SecurityCheck(
            name="runtime_mode",
            passed=mode in security.mode_values,
            description=f"{security.mode_variable} is one of: {', '.join(security.mode_values)}",
        ),
    )


def is_ready(
    required: tuple[EnvVarRecord, ...],
    security: tuple[SecurityCheck, ...],
) -> bool:
    critical_ok = all(record.present and record.valid for record in required if record.critical)
    passing = sum(1 for check in security if check.passed)
    return critical_ok and passing >= MIN_PASSING_SECURITY_CHECKS


def validate_environment(
    validation: EnvValidation,
    environ: Mapping[str, str] | None = None,
) -> EnvironmentReport:
    """Validate a captured environment mapping.

    Reads nothing but ``environ`` (the process environment by default) and
    has no side effects, so repeated calls on the same mapping return equal
    reports.
    """

    source = os.environ if environ is None else environ
    snapshot = dict(source)

    required = tuple(_required_record(entry, snapshot) for entry in validation.required_variables)
    optional = tuple(_optional_record(entry, snapshot) for entry in validation.optional_variables)
    security = security_checks(validation.security, snapshot)
    performance = tuple(
        PerformanceSetting(
            name=item.name,
            value=snapshot.get(item.variable or item.name) or NOT_SET,
            optimal=item.optimal,
        )
        for item in validation.performance
    )
    return EnvironmentReport(
        required=required,
        optional=optional,
        security=security,
        performance=performance,
        ready=is_ready(required, security),
    )


__all__ = [
    "is_plausible_value",
    "is_ready",
    "mask_value",
    "security_checks",
    "validate_environment",
]
