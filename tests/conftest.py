from __future__ import annotations

import copy
from collections.abc import Callable
from typing import Any

import httpx
import pytest
from propdx.config.catalog import Catalog, parse_catalog

Handler = Callable[[httpx.Request], httpx.Response]

MB = 1024 * 1024

BASE_CATALOG: dict[str, Any] = {
    "healthEndpoint": "/api/v3/debug/health",
    "featureTests": {
        "propertyIntelligence": {
            "description": "Property search",
            "testCases": [
                {
                    "name": "Search by ZIP",
                    "endpoint": "/api/properties",
                    "params": {"zipCode": "90210"},
                    "expected": {"status": 200, "minProperties": 1},
                },
                {
                    "name": "Property detail",
                    "endpoint": "/api/properties/detail",
                    "expected": {"contains": ["address", "estimatedValue"]},
                },
            ],
            "commonErrors": {"no_results": "Check the Attom API key"},
        },
        "lienAnalysis": {
            "testCases": [
                {
                    "name": "Lien lookup",
                    "endpoint": "/api/properties/lien-analysis",
                    "method": "post",
                    "payload": {"address": "1209 Auld Ln"},
                    "expected": {"status": 200},
                }
            ]
        },
    },
    "dependencyChecks": {
        "apiServices": [
            {
                "name": "Attom Data API",
                "url": "https://api.gateway.attomdata.com/propertyapi/v1.0.0/property/detail",
                "credentialEnv": "ATTOM_API_KEY",
                "credentialHeader": "apikey",
            }
        ],
        "databaseChecks": [
            {
                "name": "PostgreSQL",
                "healthField": "services.database",
                "credentialEnv": "DATABASE_URL",
                "expectedStatus": "connected",
            }
        ],
    },
    "envValidation": {
        "requiredVariables": [
            {"name": "DATABASE_URL", "critical": True},
            {"name": "ATTOM_API_KEY", "critical": True},
            {"name": "GEODB_API_KEY"},
        ],
        "optionalVariables": [
            {"name": "NODE_ENV", "expected": "production"},
            {"name": "SESSION_SECRET", "sensitive": True},
        ],
        "security": {
            "apiKeyVariables": ["ATTOM_API_KEY"],
            "apiKeyMinLength": 32,
        },
        "performance": [{"name": "NODE_OPTIONS", "optimal": "--max-old-space-size=4096"}],
    },
    "diagnosisFeatures": [
        {
            "name": "propertyIntelligence",
            "probe": {"name": "Property search", "endpoint": "/api/properties?zipCode=90210"},
            "resultFields": ["properties"],
        },
        {
            "name": "aiAppraisal",
            "probe": {
                "name": "AI appraisal",
                "endpoint": "/api/properties/ai-appraisal",
                "method": "POST",
                "payload": {"address": "1209 Auld Ln"},
            },
            "resultFields": ["propertyAddress", "estimatedValue"],
        },
        {
            "name": "foreclosureSystem",
            "probe": {"name": "Foreclosure listing", "endpoint": "/api/foreclosures?zipCode=90210"},
            "resultFields": ["foreclosures"],
        },
        {
            "name": "lienAnalysis",
            "probe": {
                "name": "Lien analysis",
                "endpoint": "/api/properties/lien-analysis",
                "method": "POST",
                "payload": {"address": "1209 Auld Ln"},
            },
            "resultFields": ["analysis", "riskAssessment"],
        },
    ],
    "fixProcedures": {
        "databaseIssues": {
            "description": "Database connectivity",
            "steps": ["Verify DATABASE_URL", "Restart the application"],
        }
    },
    "performanceTargets": {"responseTime": "<10000ms", "memoryUsage": "<250MB"},
}

GOOD_ENVIRON: dict[str, str] = {
    "DATABASE_URL": "postgresql://user:pw@db.example.com/app?sslmode=require",
    "ATTOM_API_KEY": "a" * 40,
    "GEODB_API_KEY": "geodb-key-123456",
    "NODE_ENV": "production",
    "SESSION_SECRET": "super-secret-value",
}


def _is_integration_path(s: str) -> bool:
    s = s.replace("\\", "/")
    return s.startswith("tests/integration/") or "/tests/integration/" in s


def _mark_by_path(items: list[pytest.Item]) -> None:
    for item in items:
        node_str = str(getattr(item, "fspath", item.nodeid))
        marker = pytest.mark.online if _is_integration_path(node_str) else pytest.mark.offline
        item.add_marker(marker)


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("propdx")
    group.addoption(
        "--offline",
        action="store_true",
        dest="propdx_offline",
        help="Run offline tests only (deselect tests marked 'online').",
    )
    group.addoption(
        "--online-only",
        action="store_true",
        dest="propdx_online_only",
        help="Run only tests marked 'online' (deselect offline).",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    _mark_by_path(items)

    offline_only = bool(config.getoption("propdx_offline"))
    online_only = bool(config.getoption("propdx_online_only"))

    if offline_only and online_only:
        raise pytest.UsageError("--offline and --online-only are mutually exclusive")

    deselect: list[pytest.Item] = []
    if online_only:
        deselect = [i for i in items if "online" not in i.keywords]
    elif offline_only:
        deselect = [i for i in items if "online" in i.keywords]

    if not deselect:
        return

    config.hook.pytest_deselected(items=deselect)
    items[:] = [i for i in items if i not in deselect]


@pytest.fixture
def catalog_data() -> dict[str, Any]:
    return copy.deepcopy(BASE_CATALOG)


@pytest.fixture
def catalog(catalog_data: dict[str, Any]) -> Catalog:
    return parse_catalog(catalog_data)


@pytest.fixture
def good_environ() -> dict[str, str]:
    return dict(GOOD_ENVIRON)


def health_payload(
    *,
    database: str = "connected",
    heap_mb: float = 120,
    uptime: float = 3600,
    version: str | None = "v20.18.1",
) -> dict[str, Any]:
    performance: dict[str, Any] = {
        "uptime": uptime,
        "memoryUsage": {"heapUsed": heap_mb * MB},
    }
    if version is not None:
        performance["nodeVersion"] = version
    return {"status": "healthy", "services": {"database": database}, "performance": performance}


def routing_handler(routes: dict[tuple[str, str], Any], default: Any = None) -> Handler:
    """Build a MockTransport handler from ``(method, path)`` keyed routes.

    A route value is either an ``httpx.Response`` or a callable taking the
    request. Unknown routes return ``default`` or a 404.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        key = (request.method, request.url.path)
        route = routes.get(key, default)
        if route is None:
            return httpx.Response(404, json={"error": "not found"})
        if callable(route):
            return route(request)
        return route

    return handler


@pytest.fixture
def make_client() -> Callable[[Handler], httpx.AsyncClient]:
    def factory(handler: Handler) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url="http://target.test",
            transport=httpx.MockTransport(handler),
        )

    return factory
