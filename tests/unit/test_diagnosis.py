from __future__ import annotations

from datetime import datetime, timezone

import httpx
import pytest
from conftest import health_payload, routing_handler
from hypothesis import given
from hypothesis import strategies as st
from propdx.application.diagnosis import (
    classify_feature,
    compute_health_score,
    health_level,
    run_diagnosis,
)
from propdx.application.probes import Deadline
from propdx.config.catalog import Catalog
from propdx.domain.models import (
    FEATURE_FAILED,
    FEATURE_OPERATIONAL,
    PRIORITY_HIGH,
    PRIORITY_LOW,
    PRIORITY_MEDIUM,
    FeatureResult,
    Outcome,
)
from propdx.infrastructure.errors import FailureCategory

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _routes(**health_kwargs) -> dict:
    return {
        ("GET", "/api/v3/debug/health"): httpx.Response(200, json=health_payload(**health_kwargs)),
        ("GET", "/propertyapi/v1.0.0/property/detail"): httpx.Response(200, json={}),
        ("GET", "/api/properties"): httpx.Response(200, json={"properties": [{"id": 1}]}),
        ("POST", "/api/properties/ai-appraisal"): httpx.Response(
            200, json={"propertyAddress": "1209 Auld Ln", "estimatedValue": 515000}
        ),
        ("GET", "/api/foreclosures"): httpx.Response(200, json={"foreclosures": []}),
        ("POST", "/api/properties/lien-analysis"): httpx.Response(
            200, json={"analysis": {"liens": 0}, "riskAssessment": "low"}
        ),
    }


def _result(operational: bool) -> FeatureResult:
    outcome = Outcome(probe_name="probe", passed=operational, duration_ms=10)
    status = FEATURE_OPERATIONAL if operational else FEATURE_FAILED
    return FeatureResult(name="feature", status=status, outcome=outcome)


@pytest.mark.asyncio
async def test_three_of_four_features_scores_good(
    catalog: Catalog, good_environ: dict[str, str], make_client
) -> None:
    routes = _routes()
    routes[("POST", "/api/properties/lien-analysis")] = httpx.Response(500, json={"error": "boom"})
    async with make_client(routing_handler(routes)) as client:
        report = await run_diagnosis(
            catalog, client, environ=good_environ, now=lambda: FIXED_NOW
        )

    assert report.timestamp == FIXED_NOW.isoformat()
    assert report.health_score == 75
    assert report.health_level == "good"
    assert report.feature_results["lienAnalysis"].status == FEATURE_FAILED
    assert report.feature_results["foreclosureSystem"].status == FEATURE_OPERATIONAL
    assert [(r.category, r.priority) for r in report.recommendations] == [
        ("Features", PRIORITY_HIGH)
    ]
    assert report.recommendations[0].issue == "lienAnalysis not working"
    assert report.to_payload()["working_features"] == 3
    assert report.cancelled is False


@pytest.mark.asyncio
async def test_missing_credential_is_first_high_priority_recommendation(
    catalog: Catalog, good_environ: dict[str, str], make_client
) -> None:
    del good_environ["ATTOM_API_KEY"]
    async with make_client(routing_handler(_routes())) as client:
        report = await run_diagnosis(catalog, client, environ=good_environ)

    first = report.recommendations[0]
    assert first.category == "Environment"
    assert first.priority == PRIORITY_HIGH
    assert "ATTOM_API_KEY" in first.issue
    assert report.environment.ready is False
    assert report.recommendations[-1].category == "Security"
    assert report.recommendations[-1].priority == PRIORITY_LOW
    assert report.health_score == 100


@pytest.mark.asyncio
async def test_high_memory_yields_medium_recommendation(
    catalog: Catalog, good_environ: dict[str, str], make_client
) -> None:
    async with make_client(routing_handler(_routes(heap_mb=260))) as client:
        report = await run_diagnosis(catalog, client, environ=good_environ)

    assert report.performance is not None
    assert report.performance.memory_mb == 260
    (memory,) = [r for r in report.recommendations if r.priority == PRIORITY_MEDIUM]
    assert memory.category == "Performance"
    assert memory.current == "260"
    assert memory.target == "200"


@pytest.mark.asyncio
async def test_unreachable_service_still_produces_report(
    catalog: Catalog, good_environ: dict[str, str], make_client
) -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with make_client(refuse) as client:
        report = await run_diagnosis(catalog, client, environ=good_environ)

    assert report.health_score == 0
    assert report.health_level == "poor"
    assert report.performance is None
    assert report.dependencies.healthy == 0
    categories = [r.category for r in report.recommendations]
    assert categories.count("Features") == 4
    assert categories.count("Dependencies") == 2
    assert categories.index("Features") < categories.index("Dependencies")


@pytest.mark.asyncio
async def test_passing_probe_without_result_field_is_failed(
    catalog: Catalog, good_environ: dict[str, str], make_client
) -> None:
    routes = _routes()
    routes[("GET", "/api/properties")] = httpx.Response(200, json={"properties": None})
    async with make_client(routing_handler(routes)) as client:
        report = await run_diagnosis(catalog, client, environ=good_environ)

    result = report.feature_results["propertyIntelligence"]
    assert result.outcome.passed is True
    assert result.status == FEATURE_FAILED


@pytest.mark.asyncio
async def test_expired_budget_marks_report_cancelled(
    catalog: Catalog, good_environ: dict[str, str], make_client
) -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200)

    deadline = Deadline(expires_at=0.0, clock=lambda: 1.0)
    async with make_client(handler) as client:
        report = await run_diagnosis(catalog, client, environ=good_environ, deadline=deadline)

    assert report.cancelled is True
    assert calls == []
    assert all(
        result.outcome.failure_category is FailureCategory.CANCELLED
        for result in report.feature_results.values()
    )
    assert report.environment.ready is True


def test_classify_feature_requires_non_null_field() -> None:
    passed = Outcome(probe_name="p", passed=True, duration_ms=1, observed_value={"a": 1, "b": None})

    assert classify_feature(passed, ("b", "a")) == FEATURE_OPERATIONAL
    assert classify_feature(passed, ("b",)) == FEATURE_FAILED
    failed = Outcome(probe_name="p", passed=False, duration_ms=1, observed_value={"a": 1})
    assert classify_feature(failed, ("a",)) == FEATURE_FAILED


def test_empty_feature_set_scores_zero() -> None:
    assert compute_health_score({}) == 0
    assert health_level(0) == "poor"


@pytest.mark.parametrize(
    ("score", "level"),
    [
        (100, "excellent"),
        (90, "excellent"),
        (89, "good"),
        (75, "good"),
        (74, "fair"),
        (50, "fair"),
        (49, "poor"),
    ],
)
def test_health_level_boundaries(score: int, level: str) -> None:
    assert health_level(score) == level


@given(st.lists(st.booleans(), min_size=1, max_size=20))
def test_health_score_is_rounded_operational_share(flags: list[bool]) -> None:
    results = {f"feature{i}": _result(flag) for i, flag in enumerate(flags)}

    score = compute_health_score(results)

    assert 0 <= score <= 100
    assert score == round(sum(flags) / len(flags) * 100)
    if all(flags):
        assert health_level(score) == "excellent"
