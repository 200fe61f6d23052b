"""Feature test suites and the full environment + dependency + suite run."""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Final

import httpx

from propdx.application.dependencies import check_dependencies
from propdx.application.diagnosis import utc_now
from propdx.application.environment import validate_environment
from propdx.application.probes import Clock, Deadline, execute_probe
from propdx.config.catalog import Catalog
from propdx.domain.models import FullReport, Outcome, SuiteReport
from propdx.infrastructure.errors import FailureCategory
from propdx.infrastructure.logging import BoundLogger, attach_run_context, get_logger, log_event

_LOGGER = get_logger("propdx.suites")

VERDICT_OPERATIONAL: Final = "operational"
VERDICT_DEGRADED: Final = "degraded"
VERDICT_ATTENTION: Final = "attention"
DEGRADED_SUCCESS_RATE: Final = 80


def suite_verdict(outcomes: tuple[Outcome, ...]) -> str:
    passed = sum(1 for outcome in outcomes if outcome.passed)
    if outcomes and passed == len(outcomes):
        return VERDICT_OPERATIONAL
    if outcomes and passed * 100 >= DEGRADED_SUCCESS_RATE * len(outcomes):
        return VERDICT_DEGRADED
    return VERDICT_ATTENTION


async def run_feature_suite(
    feature: str,
    catalog: Catalog,
    client: httpx.AsyncClient,
    *,
    deadline: Deadline | None = None,
    logger: BoundLogger | None = None,
    clock: Clock = time.perf_counter,
) -> SuiteReport:
    """Run every probe of one feature suite, in catalog order.

    Raises:
        ConfigError: ``feature`` is not defined in the catalog.
    """

    suite = catalog.suite(feature)
    log = (logger or _LOGGER).bind(feature=feature)
    log_event(log, "suite.start", probes=len(suite.test_cases))

    outcomes: list[Outcome] = []
    for spec in suite.probe_specs():
        outcomes.append(
            await execute_probe(
                spec,
                client,
                deadline=deadline,
                remediation=suite.common_errors,
                logger=log,
                clock=clock,
            )
        )

    report = SuiteReport(
        feature=feature,
        outcomes=tuple(outcomes),
        verdict=suite_verdict(tuple(outcomes)),
    )
    log_event(
        log,
        "suite.complete",
        level=logging.INFO if report.failed == 0 else logging.WARNING,
        passed=report.passed,
        failed=report.failed,
        verdict=report.verdict,
    )
    return report


async def run_all_suites(
    catalog: Catalog,
    client: httpx.AsyncClient,
    *,
    deadline: Deadline | None = None,
    logger: BoundLogger | None = None,
    clock: Clock = time.perf_counter,
) -> tuple[SuiteReport, ...]:
    reports: list[SuiteReport] = []
    for feature in catalog.feature_tests:
        reports.append(
            await run_feature_suite(
                feature, catalog, client, deadline=deadline, logger=logger, clock=clock
            )
        )
    return tuple(reports)


async def run_full(
    catalog: Catalog,
    client: httpx.AsyncClient,
    *,
    environ: Mapping[str, str] | None = None,
    deadline: Deadline | None = None,
    logger: BoundLogger | None = None,
    clock: Clock = time.perf_counter,
    now: Callable[[], datetime] = utc_now,
) -> FullReport:
    """Validate the environment, check dependencies and run every suite."""

    log = attach_run_context(logger or _LOGGER, phase="full")
    captured = dict(os.environ if environ is None else environ)
    timestamp = now().isoformat()

    environment = validate_environment(catalog.env_validation, captured)
    dependencies = await check_dependencies(
        catalog.dependency_checks,
        client,
        health_endpoint=catalog.health_endpoint,
        environ=captured,
        deadline=deadline,
        logger=log,
    )
    suites = await run_all_suites(catalog, client, deadline=deadline, logger=log, clock=clock)
    cancelled = any(
        outcome.failure_category is FailureCategory.CANCELLED
        for suite in suites
        for outcome in suite.outcomes
    )
    return FullReport(
        timestamp=timestamp,
        environment=environment,
        dependencies=dependencies,
        suites=suites,
        cancelled=cancelled,
    )


__all__ = [
    "DEGRADED_SUCCESS_RATE",
    "VERDICT_ATTENTION",
    "VERDICT_DEGRADED",
    "VERDICT_OPERATIONAL",
    "run_all_suites",
    "run_feature_suite",
    "run_full",
    "suite_verdict",
]
