from __future__ import annotations

import httpx
import pytest
from conftest import health_payload, routing_handler
from propdx.application.runner import DiagnosticRunner, RunResult
from propdx.config.catalog import Catalog
from propdx.infrastructure.errors import ConfigError, FailureCategory
from propdx.infrastructure.logging import get_logger

ATTOM = ("GET", "/propertyapi/v1.0.0/property/detail")


def _routes() -> dict:
    return {
        ("GET", "/api/properties"): httpx.Response(200, json={"properties": [{"id": 1}]}),
        ("GET", "/api/properties/detail"): httpx.Response(
            200, json={"address": "1209 Auld Ln", "estimatedValue": 515000}
        ),
        ("POST", "/api/properties/lien-analysis"): httpx.Response(
            200, json={"analysis": {}, "riskAssessment": "low"}
        ),
        ("POST", "/api/properties/ai-appraisal"): httpx.Response(
            200, json={"propertyAddress": "1209 Auld Ln"}
        ),
        ("GET", "/api/foreclosures"): httpx.Response(200, json={"foreclosures": []}),
        ("GET", "/api/v3/debug/health"): httpx.Response(200, json=health_payload()),
        ATTOM: httpx.Response(200, json={}),
    }


def _runner(
    catalog: Catalog,
    environ: dict[str, str],
    routes: dict | None = None,
    *,
    calls: list[httpx.Request] | None = None,
    time_budget: float | None = None,
) -> DiagnosticRunner:
    inner = routing_handler(_routes() if routes is None else routes)

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        return inner(request)

    return DiagnosticRunner(
        catalog=catalog,
        base_url="http://target.test",
        logger=get_logger("propdx.tests"),
        environ=environ,
        time_budget_seconds=time_budget,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.parametrize(
    ("success", "degraded", "code"),
    [(True, False, 0), (True, True, 2), (False, False, 1), (False, True, 1)],
)
def test_exit_code_mapping(success: bool, degraded: bool, code: int) -> None:
    result = RunResult(command="test", report=None, success=success, degraded=degraded)
    assert result.exit_code() == code
    assert result.to_payload()["exit_code"] == code


def test_single_suite_passes(catalog: Catalog, good_environ: dict[str, str]) -> None:
    result = _runner(catalog, good_environ).run_suite("propertyIntelligence")

    assert result.exit_code() == 0
    payload = result.to_payload()
    assert payload["command"] == "test"
    assert payload["report"]["feature"] == "propertyIntelligence"
    assert payload["report"]["verdict"] == "operational"


def test_all_suites_report_list(catalog: Catalog, good_environ: dict[str, str]) -> None:
    result = _runner(catalog, good_environ).run_suite("all")

    assert [report["feature"] for report in result.to_payload()["report"]] == [
        "propertyIntelligence",
        "lienAnalysis",
    ]
    assert result.success is True


def test_unknown_feature_fails_before_any_request(
    catalog: Catalog, good_environ: dict[str, str]
) -> None:
    calls: list[httpx.Request] = []
    runner = _runner(catalog, good_environ, calls=calls)

    with pytest.raises(ConfigError):
        runner.run_suite("mortgageCalculator")
    with pytest.raises(ConfigError):
        runner.advise("networking")
    assert calls == []


def test_partial_dependency_failure_is_degraded(
    catalog: Catalog, good_environ: dict[str, str]
) -> None:
    routes = _routes()
    routes[ATTOM] = httpx.Response(503)

    result = _runner(catalog, good_environ, routes).check_dependencies()

    assert result.success is True
    assert result.degraded is True
    assert result.exit_code() == 2


def test_all_dependencies_down_fails(catalog: Catalog, good_environ: dict[str, str]) -> None:
    result = _runner(catalog, good_environ, {}).check_dependencies()

    assert result.exit_code() == 1
    assert result.to_payload()["report"]["healthy"] == 0


def test_environment_exit_codes(catalog: Catalog, good_environ: dict[str, str]) -> None:
    assert _runner(catalog, good_environ).validate_environment().exit_code() == 0

    without_geodb = {k: v for k, v in good_environ.items() if k != "GEODB_API_KEY"}
    assert _runner(catalog, without_geodb).validate_environment().exit_code() == 2

    without_attom = {k: v for k, v in good_environ.items() if k != "ATTOM_API_KEY"}
    assert _runner(catalog, without_attom).validate_environment().exit_code() == 1


def test_diagnose_healthy_target(catalog: Catalog, good_environ: dict[str, str]) -> None:
    result = _runner(catalog, good_environ).diagnose()

    report = result.to_payload()["report"]
    assert report["health_score"] == 100
    assert report["health_level"] == "excellent"
    assert result.exit_code() == 0


def test_advise_is_reported_as_advisory(catalog: Catalog, good_environ: dict[str, str]) -> None:
    result = _runner(catalog, good_environ).advise("databaseIssues")

    payload = result.to_payload()
    assert payload["command"] == "fix"
    assert payload["report"]["advisory_only"] is True


def test_full_run_succeeds(catalog: Catalog, good_environ: dict[str, str]) -> None:
    result = _runner(catalog, good_environ).full()

    assert result.exit_code() == 0
    assert result.to_payload()["report"]["success"] is True


def test_exhausted_budget_cancels_remaining_probes(
    catalog: Catalog, good_environ: dict[str, str]
) -> None:
    calls: list[httpx.Request] = []

    result = _runner(catalog, good_environ, calls=calls, time_budget=0).full()

    assert calls == []
    assert result.report.cancelled is True
    outcomes = [outcome for suite in result.report.suites for outcome in suite.outcomes]
    assert all(outcome.failure_category is FailureCategory.CANCELLED for outcome in outcomes)
    assert result.exit_code() == 1
