"""Value types produced and consumed by the diagnostic engine.

Probe definitions are immutable and loaded once per process. Every other type
is created fresh for a run and never mutated afterwards; runners build new
instances instead of updating existing ones.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass
from enum import Enum
from typing import Any, Final, Mapping

from propdx.infrastructure.errors import FailureCategory

STATUS_APPLIED: Final = "applied"
STATUS_FAILED: Final = "failed"
STATUS_RECOMMENDED: Final = "recommended"

DEPENDENCY_HEALTHY: Final = "healthy"
DEPENDENCY_UNHEALTHY: Final = "unhealthy"
DEPENDENCY_FAILED: Final = "failed"

FEATURE_OPERATIONAL: Final = "operational"
FEATURE_FAILED: Final = "failed"

PRIORITY_HIGH: Final = "high"
PRIORITY_MEDIUM: Final = "medium"
PRIORITY_LOW: Final = "low"


class ProbeKind(str, Enum):
    HTTP = "http"
    COMMAND = "command"


class AssertionKind(str, Enum):
    STATUS_EQUALS = "status_equals"
    MIN_COUNT = "min_count"
    FIELDS_PRESENT = "fields_present"
    FIELDS_STRUCTURAL = "fields_structural"
    MAX_DURATION = "max_duration"
    OUTPUT_CONTAINS = "output_contains"
    OUTPUT_ABOVE = "output_above"


class DependencyCategory(str, Enum):
    API = "API"
    DATABASE = "DATABASE"


def to_payload(value: Any) -> Any:
    """Convert report values into JSON-compatible structures."""

    if isinstance(value, Enum):
        return value.value
    if is_dataclass(value) and not isinstance(value, type):
        return {item.name: to_payload(getattr(value, item.name)) for item in fields(value)}
    if isinstance(value, Mapping):
        return {str(key): to_payload(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_payload(item) for item in value]
    return value


@dataclass(frozen=True)
class Assertion:
    kind: AssertionKind
    expected: Any = None
    source: str | None = None


@dataclass(frozen=True)
class ProbeSpec:
    name: str
    kind: ProbeKind
    target: str
    method: str = "GET"
    payload: Any | None = None
    timeout_ms: int = 10_000
    assertions: tuple[Assertion, ...] = ()
    headers: Mapping[str, str] = field(default_factory=dict)

    def assertions_of(self, kind: AssertionKind) -> tuple[Assertion, ...]:
        return tuple(assertion for assertion in self.assertions if assertion.kind is kind)


@dataclass(frozen=True)
class Outcome:
    probe_name: str
    passed: bool
    duration_ms: int
    observed_value: Any = None
    failure_reason: str | None = None
    failure_category: FailureCategory | None = None
    suggestion: str | None = None
    status_code: int | None = None
    result_count: int | None = None
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class DependencyRecord:
    name: str
    category: DependencyCategory
    status: str
    detail: str
    configured: bool | None = None
    status_code: int | None = None


@dataclass(frozen=True)
class DependencyReport:
    records: tuple[DependencyRecord, ...]

    @property
    def healthy(self) -> int:
        return sum(1 for record in self.records if record.status == DEPENDENCY_HEALTHY)

    @property
    def total(self) -> int:
        return len(self.records)

    @property
    def all_healthy(self) -> bool:
        return self.healthy == self.total

    def to_payload(self) -> dict[str, Any]:
        return {
            "records": to_payload(self.records),
            "healthy": self.healthy,
            "total": self.total,
        }


@dataclass(frozen=True)
class EnvVarRecord:
    name: str
    required: bool
    present: bool
    valid: bool
    masked_value: str
    critical: bool = False
    description: str = ""
    note: str | None = None


@dataclass(frozen=True)
class SecurityCheck:
    name: str
    passed: bool
    description: str


@dataclass(frozen=True)
class PerformanceSetting:
    name: str
    value: str
    optimal: str


@dataclass(frozen=True)
class EnvironmentReport:
    required: tuple[EnvVarRecord, ...]
    optional: tuple[EnvVarRecord, ...]
    security: tuple[SecurityCheck, ...]
    performance: tuple[PerformanceSetting, ...]
    ready: bool

    @property
    def invalid_required(self) -> tuple[EnvVarRecord, ...]:
        return tuple(record for record in self.required if not (record.present and record.valid))

    @property
    def invalid_critical(self) -> tuple[EnvVarRecord, ...]:
        return tuple(record for record in self.invalid_required if record.critical)


@dataclass(frozen=True)
class FixAction:
    category: str
    issue: str
    status: str
    detail: str
    recommendation: str | None = None
    current: str | None = None
    target: str | None = None


@dataclass(frozen=True)
class AdvisoryReport:
    """Result of a read-only advisory run; nothing on the target is changed."""

    categories: tuple[str, ...]
    actions: tuple[FixAction, ...]
    manual_steps: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    advisory_only: bool = True

    def _count(self, status: str) -> int:
        return sum(1 for action in self.actions if action.status == status)

    @property
    def applied(self) -> int:
        return self._count(STATUS_APPLIED)

    @property
    def failed(self) -> int:
        return self._count(STATUS_FAILED)

    @property
    def recommended(self) -> int:
        return self._count(STATUS_RECOMMENDED)

    @property
    def healthy(self) -> bool:
        return self.applied > self.failed

    def to_payload(self) -> dict[str, Any]:
        payload = to_payload(self)
        payload.update(
            applied=self.applied,
            failed=self.failed,
            recommended=self.recommended,
            healthy=self.healthy,
        )
        return payload


@dataclass(frozen=True)
class Recommendation:
    category: str
    priority: str
    issue: str
    action: str
    current: str | None = None
    target: str | None = None


@dataclass(frozen=True)
class FeatureResult:
    name: str
    status: str
    outcome: Outcome

    @property
    def operational(self) -> bool:
        return self.status == FEATURE_OPERATIONAL

    @property
    def response_time_ms(self) -> int:
        return self.outcome.duration_ms


@dataclass(frozen=True)
class PerformanceSnapshot:
    uptime_seconds: int
    memory_mb: int
    runtime_version: str | None
    status: str | None


@dataclass(frozen=True)
class DiagnosisReport:
    timestamp: str
    environment: EnvironmentReport
    dependencies: DependencyReport
    feature_results: Mapping[str, FeatureResult]
    performance: PerformanceSnapshot | None
    recommendations: tuple[Recommendation, ...]
    health_score: int
    health_level: str
    duration_ms: int = 0
    cancelled: bool = False

    def to_payload(self) -> dict[str, Any]:
        payload = to_payload(self)
        payload["dependencies"] = self.dependencies.to_payload()
        payload["working_features"] = sum(
            1 for result in self.feature_results.values() if result.operational
        )
        return payload


@dataclass(frozen=True)
class SuiteReport:
    feature: str
    outcomes: tuple[Outcome, ...]
    verdict: str

    @property
    def passed(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.passed)

    @property
    def failed(self) -> int:
        return len(self.outcomes) - self.passed

    @property
    def success_rate(self) -> int:
        if not self.outcomes:
            return 0
        return round(self.passed / len(self.outcomes) * 100)

    def to_payload(self) -> dict[str, Any]:
        payload = to_payload(self)
        payload.update(
            passed=self.passed,
            failed=self.failed,
            success_rate=self.success_rate,
        )
        return payload


@dataclass(frozen=True)
class FullReport:
    timestamp: str
    environment: EnvironmentReport
    dependencies: DependencyReport
    suites: tuple[SuiteReport, ...]
    cancelled: bool = False

    @property
    def success(self) -> bool:
        return all(suite.failed == 0 for suite in self.suites)

    def to_payload(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "environment": to_payload(self.environment),
            "dependencies": self.dependencies.to_payload(),
            "suites": [suite.to_payload() for suite in self.suites],
            "cancelled": self.cancelled,
            "success": self.success,
        }


__all__ = [
    "AdvisoryReport",
    "Assertion",
    "AssertionKind",
    "DependencyCategory",
    "DependencyRecord",
    "DependencyReport",
    "DiagnosisReport",
    "EnvVarRecord",
    "EnvironmentReport",
    "FeatureResult",
    "FixAction",
    "FullReport",
    "Outcome",
    "PerformanceSetting",
    "PerformanceSnapshot",
    "ProbeKind",
    "ProbeSpec",
    "Recommendation",
    "SecurityCheck",
    "SuiteReport",
    "to_payload",
]
