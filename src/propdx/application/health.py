"""Helpers for the target service's own health endpoint."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Final

from propdx.config.constants import DEFAULT_HEALTH_ENDPOINT
from propdx.domain.models import PerformanceSnapshot, ProbeKind, ProbeSpec

HEALTH_TIMEOUT_MS: Final = 3_000
_BYTES_PER_MB: Final = 1024 * 1024


def lookup_field(payload: Any, dotted: str) -> Any:
    """Resolve ``a.b.c`` inside nested mappings; missing keys yield ``None``."""

    current = payload
    for part in dotted.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
    return current


def health_probe(
    endpoint: str = DEFAULT_HEALTH_ENDPOINT,
    *,
    name: str = "Health endpoint",
    timeout_ms: int = HEALTH_TIMEOUT_MS,
) -> ProbeSpec:
    return ProbeSpec(name=name, kind=ProbeKind.HTTP, target=endpoint, timeout_ms=timeout_ms)


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def memory_mb(payload: Any) -> int | None:
    heap_used = _as_number(lookup_field(payload, "performance.memoryUsage.heapUsed"))
    if heap_used is None:
        return None
    return round(heap_used / _BYTES_PER_MB)


def uptime_seconds(payload: Any) -> int | None:
    uptime = _as_number(lookup_field(payload, "performance.uptime"))
    if uptime is None:
        return None
    return round(uptime)


def runtime_version(payload: Any) -> str | None:
    version = lookup_field(payload, "performance.nodeVersion") or lookup_field(
        payload, "performance.runtimeVersion"
    )
    return str(version) if version else None


def performance_snapshot(payload: Any) -> PerformanceSnapshot | None:
    """Build a snapshot from a health payload; ``None`` without a performance block."""

    if not isinstance(lookup_field(payload, "performance"), Mapping):
        return None
    status = lookup_field(payload, "status")
    return PerformanceSnapshot(
        uptime_seconds=uptime_seconds(payload) or 0,
        memory_mb=memory_mb(payload) or 0,
        runtime_version=runtime_version(payload),
        status=str(status) if status is not None else None,
    )


__all__ = [
    "HEALTH_TIMEOUT_MS",
    "health_probe",
    "lookup_field",
    "memory_mb",
    "performance_snapshot",
    "runtime_version",
    "uptime_seconds",
]
