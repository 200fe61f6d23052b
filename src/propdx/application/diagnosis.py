"""Comprehensive diagnosis: environment, dependencies, features and performance.

Phases run in a fixed order and none of them aborts the run. The score and
recommendations are pure functions of the captured state.
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any, Final

import httpx

from propdx.application.dependencies import check_dependencies
from propdx.application.environment import validate_environment
from propdx.application.health import health_probe, lookup_field, performance_snapshot
from propdx.application.probes import Clock, Deadline, execute_http_probe
from propdx.config.catalog import Catalog, DiagnosisFeature
from propdx.domain.models import (
    DEPENDENCY_HEALTHY,
    FEATURE_FAILED,
    FEATURE_OPERATIONAL,
    PRIORITY_HIGH,
    PRIORITY_LOW,
    PRIORITY_MEDIUM,
    DependencyReport,
    DiagnosisReport,
    EnvironmentReport,
    FeatureResult,
    Outcome,
    PerformanceSnapshot,
    Recommendation,
)
from propdx.infrastructure.errors import FailureCategory
from propdx.infrastructure.logging import BoundLogger, attach_run_context, get_logger, log_event

_LOGGER = get_logger("propdx.diagnosis")

MEMORY_THRESHOLD_MB: Final = 200
SLOW_FEATURE_MS: Final = 5_000

HEALTH_LEVELS: Final = ((90, "excellent"), (75, "good"), (50, "fair"))
LEVEL_POOR: Final = "poor"


def compute_health_score(feature_results: Mapping[str, FeatureResult]) -> int:
    """Percentage of operational features, rounded; 0 when nothing was probed."""

    total = len(feature_results)
    if total == 0:
        return 0
    operational = sum(1 for result in feature_results.values() if result.operational)
    return round(operational / total * 100)


def health_level(score: int) -> str:
    for threshold, level in HEALTH_LEVELS:
        if score >= threshold:
            return level
    return LEVEL_POOR


def has_result_field(body: Any, result_fields: tuple[str, ...]) -> bool:
    return any(lookup_field(body, name) is not None for name in result_fields)


def classify_feature(outcome: Outcome, result_fields: tuple[str, ...]) -> str:
    if outcome.passed and has_result_field(outcome.observed_value, result_fields):
        return FEATURE_OPERATIONAL
    return FEATURE_FAILED


def _environment_recommendations(environment: EnvironmentReport) -> list[Recommendation]:
    invalid = environment.invalid_required
    if not invalid:
        return []
    names = ", ".join(record.name for record in invalid)
    return [
        Recommendation(
            category="Environment",
            priority=PRIORITY_HIGH,
            issue=f"Missing or invalid credentials: {names}",
            action=f"Configure {names} in the deployment secrets",
        )
    ]


def _performance_recommendations(
    performance: PerformanceSnapshot | None,
) -> list[Recommendation]:
    if performance is None or performance.memory_mb <= MEMORY_THRESHOLD_MB:
        return []
    return [
        Recommendation(
            category="Performance",
            priority=PRIORITY_MEDIUM,
            issue=f"High memory usage: {performance.memory_mb}MB",
            action="Consider restarting application to clear memory",
            current=str(performance.memory_mb),
            target=str(MEMORY_THRESHOLD_MB),
        )
    ]


def _feature_recommendations(
    feature_results: Mapping[str, FeatureResult],
) -> list[Recommendation]:
    recommendations: list[Recommendation] = []
    for name, result in feature_results.items():
        if not result.operational:
            recommendations.append(
                Recommendation(
                    category="Features",
                    priority=PRIORITY_HIGH,
                    issue=f"{name} not working",
                    action=f"Check {name} configuration and API connectivity",
                    current=result.outcome.failure_reason,
                )
            )
        elif result.response_time_ms > SLOW_FEATURE_MS:
            recommendations.append(
                Recommendation(
                    category="Performance",
                    priority=PRIORITY_MEDIUM,
                    issue=f"{name} slow response: {result.response_time_ms}ms",
                    action="Investigate API performance or network connectivity",
                    current=str(result.response_time_ms),
                    target=str(SLOW_FEATURE_MS),
                )
            )
    return recommendations


def _dependency_recommendations(dependencies: DependencyReport) -> list[Recommendation]:
    return [
        Recommendation(
            category="Dependencies",
            priority=PRIORITY_LOW,
            issue=f"{record.name} is {record.status}",
            action="Check the service credentials and outbound connectivity",
            current=record.detail,
        )
        for record in dependencies.records
        if record.status != DEPENDENCY_HEALTHY
    ]


def _security_recommendations(environment: EnvironmentReport) -> list[Recommendation]:
    return [
        Recommendation(
            category="Security",
            priority=PRIORITY_LOW,
            issue=f"Security check failed: {check.name}",
            action=check.description,
        )
        for check in environment.security
        if not check.passed
    ]


def synthesize_recommendations(
    environment: EnvironmentReport,
    dependencies: DependencyReport,
    feature_results: Mapping[str, FeatureResult],
    performance: PerformanceSnapshot | None,
) -> tuple[Recommendation, ...]:
    """Walk environment, memory, features, dependencies and security in that order."""

    return tuple(
        [
            *_environment_recommendations(environment),
            *_performance_recommendations(performance),
            *_feature_recommendations(feature_results),
            *_dependency_recommendations(dependencies),
            *_security_recommendations(environment),
        ]
    )


async def probe_feature(
    feature: DiagnosisFeature,
    client: httpx.AsyncClient,
    *,
    deadline: Deadline | None = None,
    logger: BoundLogger | None = None,
    clock: Clock = time.perf_counter,
) -> FeatureResult:
    outcome = await execute_http_probe(
        feature.probe.to_probe_spec(), client, deadline=deadline, logger=logger, clock=clock
    )
    return FeatureResult(
        name=feature.name,
        status=classify_feature(outcome, feature.result_fields),
        outcome=outcome,
    )


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


async def run_diagnosis(
    catalog: Catalog,
    client: httpx.AsyncClient,
    *,
    environ: Mapping[str, str] | None = None,
    deadline: Deadline | None = None,
    logger: BoundLogger | None = None,
    clock: Clock = time.perf_counter,
    now: Callable[[], datetime] = utc_now,
) -> DiagnosisReport:
    """Run the full diagnosis pipeline and return a fresh report."""

    log = attach_run_context(logger or _LOGGER, phase="diagnose")
    captured = dict(os.environ if environ is None else environ)
    started = clock()
    timestamp = now().isoformat()

    log_event(log, "diagnosis.phase", phase="environment")
    environment = validate_environment(catalog.env_validation, captured)

    log_event(log, "diagnosis.phase", phase="dependencies")
    dependencies = await check_dependencies(
        catalog.dependency_checks,
        client,
        health_endpoint=catalog.health_endpoint,
        environ=captured,
        deadline=deadline,
        logger=log,
    )

    log_event(log, "diagnosis.phase", phase="features")
    feature_results: dict[str, FeatureResult] = {}
    for feature in catalog.diagnosis_features:
        feature_results[feature.name] = await probe_feature(
            feature, client, deadline=deadline, logger=log, clock=clock
        )

    log_event(log, "diagnosis.phase", phase="performance")
    health = await execute_http_probe(
        health_probe(catalog.health_endpoint, name="Performance snapshot"),
        client,
        deadline=deadline,
        logger=log,
        clock=clock,
    )
    performance = performance_snapshot(health.observed_value) if health.passed else None

    score = compute_health_score(feature_results)
    level = health_level(score)
    cancelled = health.failure_category is FailureCategory.CANCELLED or any(
        result.outcome.failure_category is FailureCategory.CANCELLED
        for result in feature_results.values()
    )
    report = DiagnosisReport(
        timestamp=timestamp,
        environment=environment,
        dependencies=dependencies,
        feature_results=feature_results,
        performance=performance,
        recommendations=synthesize_recommendations(
            environment, dependencies, feature_results, performance
        ),
        health_score=score,
        health_level=level,
        duration_ms=max(0, round((clock() - started) * 1000)),
        cancelled=cancelled,
    )
    log_event(
        log,
        "diagnosis.complete",
        level=logging.WARNING if cancelled else logging.INFO,
        health_score=score,
        health_level=level,
        cancelled=cancelled,
    )
    return report


__all__ = [
    "HEALTH_LEVELS",
    "LEVEL_POOR",
    "MEMORY_THRESHOLD_MB",
    "SLOW_FEATURE_MS",
    "classify_feature",
    "compute_health_score",
    "has_result_field",
    "health_level",
    "probe_feature",
    "run_diagnosis",
    "synthesize_recommendations",
    "utc_now",
]
