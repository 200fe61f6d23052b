"""Advisory report generator.

Runs read-only diagnostic sub-probes per issue category and classifies each
result as ``applied`` (healthy), ``failed`` (with a recommendation) or
``recommended`` (with current and target values). Nothing here changes state
on the target service: requests are reads, and the tracking endpoint is probed
with ``OPTIONS`` instead of a write. Manual fix procedures from the catalog
are attached for documentation only and are never executed.
"""

from __future__ import annotations

import os
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any, Final

import httpx

from propdx.application.health import (
    health_probe,
    lookup_field,
    memory_mb,
    performance_snapshot,
)
from propdx.application.probes import Deadline, execute_http_probe, resolve_result_count
from propdx.config.catalog import Catalog
from propdx.domain.models import (
    STATUS_APPLIED,
    STATUS_FAILED,
    STATUS_RECOMMENDED,
    AdvisoryReport,
    FixAction,
    Outcome,
    ProbeKind,
    ProbeSpec,
)
from propdx.infrastructure.errors import ConfigError
from propdx.infrastructure.logging import BoundLogger, get_logger, log_event

_LOGGER = get_logger("propdx.advisor")

ALL_CATEGORIES: Final = "all"
CATEGORY_ORDER: Final = ("databaseIssues", "apiConnections", "performance", "foreclosureSystem")

DATABASE_MEMORY_LIMIT_MB: Final = 200
PERFORMANCE_MEMORY_LIMIT_MB: Final = 250
QUERY_FAST_MS: Final = 100
QUERY_SLOW_MS: Final = 1_000
STABLE_UPTIME_SECONDS: Final = 300
OPTIMAL_RUNTIME_VERSION: Final = "v20.18.1"
FORECLOSURE_FAST_MS: Final = 5_000
FORECLOSURE_SLOW_MS: Final = 15_000
FORECLOSURE_REQUIRED_FIELDS: Final = ("address", "id", "estimatedValue")
_LOOKUP_PAYLOAD: Final = {"address": "1209 Auld Ln", "zipCode": "90210"}


def resolve_categories(category: str) -> tuple[str, ...]:
    """Expand ``all`` into the fixed category order; reject unknown names."""

    if category == ALL_CATEGORIES:
        return CATEGORY_ORDER
    if category in CATEGORY_ORDER:
        return (category,)
    raise ConfigError(
        f"Unknown issue category '{category}'; expected one of: "
        + ", ".join((*CATEGORY_ORDER, ALL_CATEGORIES)),
        category=category,
    )


def _applied(category: str, issue: str, detail: str) -> FixAction:
    return FixAction(category=category, issue=issue, status=STATUS_APPLIED, detail=detail)


def _failed(category: str, issue: str, detail: str, recommendation: str) -> FixAction:
    return FixAction(
        category=category,
        issue=issue,
        status=STATUS_FAILED,
        detail=detail,
        recommendation=recommendation,
    )


def _recommended(category: str, issue: str, detail: str, current: str, target: str) -> FixAction:
    return FixAction(
        category=category,
        issue=issue,
        status=STATUS_RECOMMENDED,
        detail=detail,
        current=current,
        target=target,
    )


def _request(
    name: str,
    target: str,
    *,
    timeout_ms: int,
    method: str = "GET",
    payload: Any | None = None,
) -> ProbeSpec:
    return ProbeSpec(
        name=name,
        kind=ProbeKind.HTTP,
        target=target,
        method=method,
        payload=payload,
        timeout_ms=timeout_ms,
    )


def _responded(outcome: Outcome) -> bool:
    return outcome.status_code is not None


@dataclass(frozen=True)
class _AdvisorContext:
    client: httpx.AsyncClient
    health_endpoint: str
    environ: Mapping[str, str]
    performance_targets: Mapping[str, str]
    deadline: Deadline | None
    logger: BoundLogger

    async def run(self, spec: ProbeSpec) -> Outcome:
        return await execute_http_probe(
            spec, self.client, deadline=self.deadline, logger=self.logger
        )


async def _database_actions(ctx: _AdvisorContext) -> list[FixAction]:
    category = "database"
    actions: list[FixAction] = []

    health = await ctx.run(health_probe(ctx.health_endpoint, name="Database health", timeout_ms=5_000))
    if not health.passed:
        actions.append(
            _failed(
                category,
                "Database Health Check Failed",
                health.failure_reason or "Health endpoint unavailable",
                "Restart application and verify DATABASE_URL",
            )
        )
    else:
        status = lookup_field(health.observed_value, "services.database")
        if status == "connected":
            actions.append(_applied(category, "Database Connection", "Verified connection is healthy"))
        else:
            actions.append(
                _failed(
                    category,
                    "Database Connection Failed",
                    f"Database status: {status or 'unknown'}",
                    "Check DATABASE_URL configuration",
                )
            )

        memory = memory_mb(health.observed_value)
        if memory is not None and memory > DATABASE_MEMORY_LIMIT_MB:
            actions.append(
                _recommended(
                    category,
                    "High Memory Usage",
                    "Consider connection pool optimization",
                    current=f"{memory}MB",
                    target="<150MB",
                )
            )
        elif memory is not None:
            actions.append(_applied(category, "Memory Usage", f"Memory usage is optimal at {memory}MB"))

    query = await ctx.run(_request("Query performance", "/api/auth/user", timeout_ms=3_000))
    if not _responded(query):
        actions.append(
            _failed(
                category,
                "Query Performance",
                query.failure_reason or "No response",
                "Verify the database is reachable from the application",
            )
        )
    elif query.duration_ms > QUERY_SLOW_MS:
        actions.append(
            _recommended(
                category,
                "Slow Query Performance",
                "Consider adding database indexes",
                current=f"{query.duration_ms}ms",
                target=f"<{QUERY_FAST_MS}ms",
            )
        )
    elif query.duration_ms < QUERY_FAST_MS:
        actions.append(
            _applied(
                category, "Query Performance", f"Database queries responding in {query.duration_ms}ms"
            )
        )
    else:
        actions.append(
            _applied(category, "Query Performance", f"Query time acceptable at {query.duration_ms}ms")
        )
    return actions


async def _api_actions(ctx: _AdvisorContext) -> list[FixAction]:
    category = "api"
    checks = (
        (
            health_probe(ctx.health_endpoint, name="Internal API health"),
            "Internal API Health",
            "All internal endpoints responding in {ms}ms",
            "Restart server workflow",
        ),
        (
            _request("Property search", "/api/properties?zipCode=90210&limit=1", timeout_ms=10_000),
            "Property Search API",
            "Property search working in {ms}ms",
            "Check Attom API key configuration",
        ),
        (
            _request(
                "Lien analysis",
                "/api/properties/lien-analysis",
                method="POST",
                payload=_LOOKUP_PAYLOAD,
                timeout_ms=5_000,
            ),
            "Lien Analysis API",
            "Lien analysis endpoint operational in {ms}ms",
            "Verify lien analysis service configuration",
        ),
    )

    actions: list[FixAction] = []
    for spec, issue, success, recommendation in checks:
        outcome = await ctx.run(spec)
        if outcome.passed:
            actions.append(_applied(category, issue, success.format(ms=outcome.duration_ms)))
        else:
            actions.append(
                _failed(category, issue, outcome.failure_reason or "Request failed", recommendation)
            )
    return actions


async def _performance_actions(ctx: _AdvisorContext) -> list[FixAction]:
    category = "performance"
    health = await ctx.run(health_probe(ctx.health_endpoint, name="Performance monitoring"))
    snapshot = performance_snapshot(health.observed_value) if health.passed else None
    if snapshot is None:
        return [
            _failed(
                category,
                "Performance Monitoring",
                health.failure_reason or "Health endpoint reports no performance data",
                "Enable performance monitoring endpoints",
            )
        ]

    actions: list[FixAction] = []
    if snapshot.uptime_seconds > STABLE_UPTIME_SECONDS:
        actions.append(
            _applied(category, "System Stability", f"System stable with {snapshot.uptime_seconds}s uptime")
        )
    else:
        actions.append(
            _recommended(
                category,
                "System Stability",
                "Service restarted recently; re-check once it has warmed up",
                current=f"{snapshot.uptime_seconds}s",
                target=f">{STABLE_UPTIME_SECONDS}s",
            )
        )

    target_memory = ctx.performance_targets.get("memoryUsage", f"<{PERFORMANCE_MEMORY_LIMIT_MB}MB")
    if snapshot.memory_mb < PERFORMANCE_MEMORY_LIMIT_MB:
        actions.append(
            _applied(category, "Memory Management", f"Memory usage healthy at {snapshot.memory_mb}MB")
        )
    else:
        actions.append(
            _recommended(
                category,
                "High Memory Usage",
                "Consider restarting application to clear memory",
                current=f"{snapshot.memory_mb}MB",
                target=target_memory,
            )
        )

    if snapshot.runtime_version == OPTIMAL_RUNTIME_VERSION:
        actions.append(_applied(category, "Runtime Version", "Running optimal runtime version"))
    else:
        actions.append(
            _recommended(
                category,
                "Runtime Version",
                "Upgrade the runtime to the tested version",
                current=snapshot.runtime_version or "unknown",
                target=OPTIMAL_RUNTIME_VERSION,
            )
        )
    return actions


def _first_listing(body: Any) -> Mapping[str, Any] | None:
    listings = lookup_field(body, "foreclosures")
    if isinstance(listings, list) and listings and isinstance(listings[0], Mapping):
        return listings[0]
    return None


async def _foreclosure_actions(ctx: _AdvisorContext) -> list[FixAction]:
    category = "foreclosure"
    actions: list[FixAction] = []

    listing = await ctx.run(
        _request("Foreclosure connectivity", "/api/foreclosures?zipCode=90210&limit=3", timeout_ms=10_000)
    )
    if listing.passed:
        count = resolve_result_count(listing.observed_value, source="foreclosures")
        actions.append(
            _applied(
                category,
                "API Connectivity",
                f"Foreclosure API responding in {listing.duration_ms}ms with {count} results",
            )
        )
        first = _first_listing(listing.observed_value)
        if first is not None:
            missing = [name for name in FORECLOSURE_REQUIRED_FIELDS if not first.get(name)]
            if missing:
                actions.append(
                    _recommended(
                        category,
                        "Missing Data Fields",
                        "Update foreclosure data mapping for fields: " + ", ".join(missing),
                        current="Missing: " + ", ".join(missing),
                        target="Complete data structure",
                    )
                )
            else:
                actions.append(
                    _applied(category, "Data Structure", "All required fields present in foreclosure data")
                )
    else:
        actions.append(
            _failed(
                category,
                "API Connection Failed",
                listing.failure_reason or "Request failed",
                "Check foreclosure API configuration and authentication",
            )
        )

    fresh = await ctx.run(
        _request("Foreclosure freshness", "/api/foreclosures?zipCode=33460&limit=1", timeout_ms=8_000)
    )
    fresh_count = resolve_result_count(fresh.observed_value, source="foreclosures") if fresh.passed else 0
    if fresh_count > 0:
        actions.append(
            _applied(category, "Data Availability", "Foreclosure data available across multiple markets")
        )
    else:
        actions.append(
            _recommended(
                category,
                "Data Coverage",
                "Verify foreclosure data availability across different markets",
                current=fresh.failure_reason or "No secondary market results",
                target="Full market coverage validation",
            )
        )

    tracking = await ctx.run(
        _request("Foreclosure tracking", "/api/foreclosures/track", method="OPTIONS", timeout_ms=5_000)
    )
    if tracking.passed:
        actions.append(_applied(category, "Tracking System", "Foreclosure tracking endpoint reachable"))
    elif _responded(tracking):
        actions.append(
            _recommended(
                category,
                "Tracking System",
                "Implement or fix foreclosure tracking endpoint",
                current=f"HTTP {tracking.status_code}",
                target="Operational tracking system",
            )
        )
    else:
        actions.append(
            _recommended(
                category,
                "Tracking System",
                "Implement foreclosure tracking functionality",
                current="Endpoint not available",
                target="Full tracking capabilities",
            )
        )

    if _responded(listing):
        elapsed = listing.duration_ms
        if elapsed < FORECLOSURE_FAST_MS:
            actions.append(
                _applied(category, "Performance", f"Foreclosure API performance excellent: {elapsed}ms")
            )
        elif elapsed > FORECLOSURE_SLOW_MS:
            actions.append(
                _recommended(
                    category,
                    "Performance",
                    "Optimize foreclosure API response time",
                    current=f"{elapsed}ms",
                    target=ctx.performance_targets.get("responseTime", "<10000ms"),
                )
            )
        else:
            actions.append(
                _applied(category, "Performance", f"Foreclosure API performance acceptable: {elapsed}ms")
            )

    emergency_checks = (
        ("Database backup capability", bool(ctx.environ.get("DATABASE_URL"))),
        (
            "API fallback configuration",
            bool(ctx.environ.get("RAPIDAPI_KEY_2") or ctx.environ.get("ATTOM_API_KEY")),
        ),
        ("Error logging system", True),
    )
    for name, available in emergency_checks:
        if available:
            actions.append(_applied(category, "Emergency Protocol", f"{name} verified"))
        else:
            actions.append(
                _recommended(
                    category,
                    "Emergency Protocol",
                    f"Implement {name}",
                    current="Not configured",
                    target="Full emergency preparedness",
                )
            )
    return actions


_CATEGORY_RUNNERS: Final[Mapping[str, Callable[[_AdvisorContext], Awaitable[list[FixAction]]]]] = {
    "databaseIssues": _database_actions,
    "apiConnections": _api_actions,
    "performance": _performance_actions,
    "foreclosureSystem": _foreclosure_actions,
}


async def advise(
    category: str,
    client: httpx.AsyncClient,
    *,
    catalog: Catalog,
    environ: Mapping[str, str] | None = None,
    deadline: Deadline | None = None,
    logger: BoundLogger | None = None,
) -> AdvisoryReport:
    """Diagnose one issue category (or ``all``) and recommend fixes.

    Advisory only: the returned report describes what a fix would need and
    never reflects a change made to the target service.

    Raises:
        ConfigError: ``category`` is not a known issue category.
    """

    categories = resolve_categories(category)
    log = logger or _LOGGER
    ctx = _AdvisorContext(
        client=client,
        health_endpoint=catalog.health_endpoint,
        environ=dict(os.environ if environ is None else environ),
        performance_targets=dict(catalog.performance_targets),
        deadline=deadline,
        logger=log,
    )

    actions: list[FixAction] = []
    for name in categories:
        log_event(log, "advisor.category_start", category=name)
        category_actions = await _CATEGORY_RUNNERS[name](ctx)
        actions.extend(category_actions)
        log_event(log, "advisor.category_complete", category=name, actions=len(category_actions))

    manual_steps = {
        name: tuple(catalog.fix_procedures[name].steps)
        for name in categories
        if name in catalog.fix_procedures
    }
    return AdvisoryReport(
        categories=categories,
        actions=tuple(actions),
        manual_steps=manual_steps,
    )


__all__ = [
    "ALL_CATEGORIES",
    "CATEGORY_ORDER",
    "advise",
    "resolve_categories",
]
