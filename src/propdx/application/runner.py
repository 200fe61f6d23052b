"""Synchronous facade over the async diagnostic runners.

The CLI goes through :class:`DiagnosticRunner` so that commands never deal
with event loops, HTTP clients or deadlines directly.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any, TypeVar

import httpx

from propdx.application.advisor import advise, resolve_categories
from propdx.application.dependencies import check_dependencies
from propdx.application.diagnosis import LEVEL_POOR, run_diagnosis
from propdx.application.environment import validate_environment
from propdx.application.probes import Deadline, create_client
from propdx.application.suites import (
    VERDICT_ATTENTION,
    VERDICT_OPERATIONAL,
    run_all_suites,
    run_feature_suite,
    run_full,
)
from propdx.config.catalog import Catalog
from propdx.domain.models import (
    AdvisoryReport,
    DependencyReport,
    DiagnosisReport,
    EnvironmentReport,
    FullReport,
    SuiteReport,
    to_payload,
)
from propdx.infrastructure.logging import BoundLogger

SyncRunner = Callable[[Awaitable[Any]], Any]
T = TypeVar("T")

ALL_SUITES = "all"


def _default_run_sync(coro: Awaitable[Any]) -> Any:
    return asyncio.run(coro)


def _sync(coro: Awaitable[Any], run_sync: SyncRunner | None = None) -> Any:
    runner = run_sync or _default_run_sync
    return runner(coro)


def _report_payload(report: Any) -> Any:
    if hasattr(report, "to_payload"):
        return report.to_payload()
    if isinstance(report, tuple):
        return [_report_payload(item) for item in report]
    return to_payload(report)


@dataclass(frozen=True)
class RunResult:
    """Outcome of one CLI-level invocation and its process exit code."""

    command: str
    report: Any
    success: bool
    degraded: bool

    def exit_code(self) -> int:
        if not self.success:
            return 1
        if self.degraded:
            return 2
        return 0

    def to_payload(self) -> dict[str, Any]:
        return {
            "command": self.command,
            "success": self.success,
            "degraded": self.degraded,
            "exit_code": self.exit_code(),
            "report": _report_payload(self.report),
        }


def suites_result(command: str, reports: tuple[SuiteReport, ...]) -> RunResult:
    verdicts = [report.verdict for report in reports]
    return RunResult(
        command=command,
        report=reports[0] if len(reports) == 1 else reports,
        success=VERDICT_ATTENTION not in verdicts,
        degraded=any(verdict != VERDICT_OPERATIONAL for verdict in verdicts),
    )


def dependencies_result(report: DependencyReport) -> RunResult:
    return RunResult(
        command="deps",
        report=report,
        success=report.total == 0 or report.healthy > 0,
        degraded=not report.all_healthy,
    )


def environment_result(report: EnvironmentReport) -> RunResult:
    return RunResult(
        command="env",
        report=report,
        success=report.ready,
        degraded=bool(report.invalid_required),
    )


def advisory_result(report: AdvisoryReport) -> RunResult:
    return RunResult(
        command="fix",
        report=report,
        success=report.healthy,
        degraded=report.failed > 0 or report.recommended > 0,
    )


def diagnosis_result(report: DiagnosisReport) -> RunResult:
    return RunResult(
        command="diagnose",
        report=report,
        success=report.health_level != LEVEL_POOR,
        degraded=report.cancelled or report.health_level == "fair",
    )


def full_result(report: FullReport) -> RunResult:
    return RunResult(
        command="full",
        report=report,
        success=all(suite.verdict != VERDICT_ATTENTION for suite in report.suites),
        degraded=(
            report.cancelled
            or not report.success
            or not report.environment.ready
            or not report.dependencies.all_healthy
        ),
    )


class DiagnosticRunner:
    """Run catalog-driven diagnostics against one target service."""

    def __init__(
        self,
        *,
        catalog: Catalog,
        base_url: str,
        logger: BoundLogger,
        environ: Mapping[str, str] | None = None,
        time_budget_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        run_sync: SyncRunner | None = None,
    ) -> None:
        self._catalog = catalog
        self._base_url = base_url
        self._logger = logger
        self._environ = dict(os.environ if environ is None else environ)
        self._time_budget = time_budget_seconds
        self._transport = transport
        self._run_sync = run_sync

    def _execute(self, factory: Callable[[httpx.AsyncClient, Deadline], Awaitable[T]]) -> T:
        async def _run() -> T:
            deadline = Deadline.after(self._time_budget)
            async with create_client(self._base_url, transport=self._transport) as client:
                return await factory(client, deadline)

        return _sync(_run(), self._run_sync)

    def run_suite(self, feature: str) -> RunResult:
        if feature == ALL_SUITES:
            reports = self._execute(
                lambda client, deadline: run_all_suites(
                    self._catalog, client, deadline=deadline, logger=self._logger
                )
            )
            return suites_result("test", reports)

        self._catalog.suite(feature)
        report = self._execute(
            lambda client, deadline: run_feature_suite(
                feature, self._catalog, client, deadline=deadline, logger=self._logger
            )
        )
        return suites_result("test", (report,))

    def check_dependencies(self) -> RunResult:
        report = self._execute(
            lambda client, deadline: check_dependencies(
                self._catalog.dependency_checks,
                client,
                health_endpoint=self._catalog.health_endpoint,
                environ=self._environ,
                deadline=deadline,
                logger=self._logger,
            )
        )
        return dependencies_result(report)

    def validate_environment(self) -> RunResult:
        return environment_result(validate_environment(self._catalog.env_validation, self._environ))

    def advise(self, category: str) -> RunResult:
        resolve_categories(category)
        report = self._execute(
            lambda client, deadline: advise(
                category,
                client,
                catalog=self._catalog,
                environ=self._environ,
                deadline=deadline,
                logger=self._logger,
            )
        )
        return advisory_result(report)

    def diagnose(self) -> RunResult:
        report = self._execute(
            lambda client, deadline: run_diagnosis(
                self._catalog,
                client,
                environ=self._environ,
                deadline=deadline,
                logger=self._logger,
            )
        )
        return diagnosis_result(report)

    def full(self) -> RunResult:
        report = self._execute(
            lambda client, deadline: run_full(
                self._catalog,
                client,
                environ=self._environ,
                deadline=deadline,
                logger=self._logger,
            )
        )
        return full_result(report)


__all__ = [
    "ALL_SUITES",
    "DiagnosticRunner",
    "RunResult",
    "SyncRunner",
    "advisory_result",
    "dependencies_result",
    "diagnosis_result",
    "environment_result",
    "full_result",
    "suites_result",
]
