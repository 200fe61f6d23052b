"""Dependency health checks: external APIs, storage and command status checks."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Final

import httpx

from propdx.application.health import lookup_field
from propdx.application.probes import Deadline, execute_command_probe, execute_http_probe
from propdx.config.catalog import DependencyChecks, DependencyEntry
from propdx.domain.models import (
    DEPENDENCY_FAILED,
    DEPENDENCY_HEALTHY,
    DEPENDENCY_UNHEALTHY,
    DependencyCategory,
    DependencyRecord,
    DependencyReport,
    Outcome,
    ProbeKind,
    ProbeSpec,
)
from propdx.infrastructure.errors import FailureCategory
from propdx.infrastructure.logging import BoundLogger, get_logger, log_event

_LOGGER = get_logger("propdx.dependencies")

DEFAULT_EXPECTED_STATUS: Final = "connected"
_UNREACHABLE: Final = frozenset(
    {FailureCategory.CONNECTION, FailureCategory.TIMEOUT, FailureCategory.CANCELLED}
)


def _configured(entry: DependencyEntry, environ: Mapping[str, str]) -> bool | None:
    if not entry.credential_env:
        return None
    return bool(environ.get(entry.credential_env))


def _unreachable_record(
    entry: DependencyEntry,
    category: DependencyCategory,
    outcome: Outcome,
    configured: bool | None,
) -> DependencyRecord:
    return DependencyRecord(
        name=entry.name,
        category=category,
        status=DEPENDENCY_FAILED,
        detail=outcome.failure_reason or "Connection failed",
        configured=configured,
    )


async def _check_url(
    entry: DependencyEntry,
    category: DependencyCategory,
    client: httpx.AsyncClient,
    environ: Mapping[str, str],
    deadline: Deadline | None,
    logger: BoundLogger,
) -> DependencyRecord:
    headers = dict(entry.headers)
    credential = environ.get(entry.credential_env) if entry.credential_env else None
    if entry.credential_header and credential:
        headers[entry.credential_header] = credential

    spec = ProbeSpec(
        name=entry.name,
        kind=ProbeKind.HTTP,
        target=str(entry.url),
        timeout_ms=entry.timeout_ms,
        headers=headers,
    )
    outcome = await execute_http_probe(spec, client, deadline=deadline, logger=logger)
    configured = _configured(entry, environ)
    if outcome.failure_category in _UNREACHABLE:
        return _unreachable_record(entry, category, outcome, configured)
    if outcome.passed:
        status, detail = DEPENDENCY_HEALTHY, f"Operational ({outcome.status_code})"
    else:
        status, detail = DEPENDENCY_UNHEALTHY, f"Error ({outcome.status_code})"
    return DependencyRecord(
        name=entry.name,
        category=category,
        status=status,
        detail=detail,
        configured=configured,
        status_code=outcome.status_code,
    )


async def _check_health_field(
    entry: DependencyEntry,
    category: DependencyCategory,
    client: httpx.AsyncClient,
    health_endpoint: str,
    environ: Mapping[str, str],
    deadline: Deadline | None,
    logger: BoundLogger,
) -> DependencyRecord:
    spec = ProbeSpec(
        name=entry.name,
        kind=ProbeKind.HTTP,
        target=health_endpoint,
        timeout_ms=entry.timeout_ms,
    )
    outcome = await execute_http_probe(spec, client, deadline=deadline, logger=logger)
    configured = _configured(entry, environ)
    if outcome.failure_category in _UNREACHABLE:
        return _unreachable_record(entry, category, outcome, configured)

    expected = entry.expected_status or DEFAULT_EXPECTED_STATUS
    value = lookup_field(outcome.observed_value, str(entry.health_field))
    if outcome.passed and value == expected:
        status = DEPENDENCY_HEALTHY
    else:
        status = DEPENDENCY_UNHEALTHY
    return DependencyRecord(
        name=entry.name,
        category=category,
        status=status,
        detail=str(value) if value is not None else "unknown",
        configured=configured,
        status_code=outcome.status_code,
    )


async def _check_command(
    entry: DependencyEntry,
    category: DependencyCategory,
    environ: Mapping[str, str],
    deadline: Deadline | None,
    logger: BoundLogger,
) -> DependencyRecord:
    spec = ProbeSpec(
        name=entry.name,
        kind=ProbeKind.COMMAND,
        target=str(entry.shell_command),
        method="EXEC",
        timeout_ms=entry.timeout_ms,
    )
    outcome = await execute_command_probe(spec, deadline=deadline, logger=logger)
    configured = _configured(entry, environ)
    if not outcome.passed:
        return _unreachable_record(entry, category, outcome, configured)

    output = str(outcome.observed_value or "").strip()
    expected = entry.expected_status or DEFAULT_EXPECTED_STATUS
    return DependencyRecord(
        name=entry.name,
        category=category,
        status=DEPENDENCY_HEALTHY if output == expected else DEPENDENCY_UNHEALTHY,
        detail=output or "no output",
        configured=configured,
    )


async def check_dependency(
    entry: DependencyEntry,
    category: DependencyCategory,
    client: httpx.AsyncClient,
    *,
    health_endpoint: str,
    environ: Mapping[str, str],
    deadline: Deadline | None = None,
    logger: BoundLogger | None = None,
) -> DependencyRecord:
    log = logger or _LOGGER
    if entry.url:
        record = await _check_url(entry, category, client, environ, deadline, log)
    elif entry.health_field:
        record = await _check_health_field(
            entry, category, client, health_endpoint, environ, deadline, log
        )
    else:
        record = await _check_command(entry, category, environ, deadline, log)
    log_event(
        log,
        "dependency.checked",
        dependency=record.name,
        category=record.category.value,
        status=record.status,
    )
    return record


async def check_dependencies(
    checks: DependencyChecks,
    client: httpx.AsyncClient,
    *,
    health_endpoint: str,
    environ: Mapping[str, str] | None = None,
    deadline: Deadline | None = None,
    logger: BoundLogger | None = None,
) -> DependencyReport:
    """Evaluate every configured dependency, one after another.

    A failing check never prevents the following ones from running.
    """

    source = dict(os.environ if environ is None else environ)
    entries = [(entry, DependencyCategory.API) for entry in checks.api_services]
    entries.extend((entry, DependencyCategory.DATABASE) for entry in checks.database_checks)

    records: list[DependencyRecord] = []
    for entry, category in entries:
        records.append(
            await check_dependency(
                entry,
                category,
                client,
                health_endpoint=health_endpoint,
                environ=source,
                deadline=deadline,
                logger=logger,
            )
        )
    return DependencyReport(records=tuple(records))


__all__ = [
    "check_dependencies",
    "check_dependency",
]
