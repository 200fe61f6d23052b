from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
from propdx.config.catalog import Catalog, load_catalog, parse_catalog
from propdx.domain.models import AssertionKind, ProbeKind
from propdx.infrastructure.errors import ConfigError


def test_packaged_catalog_loads() -> None:
    catalog = load_catalog()

    assert isinstance(catalog, Catalog)
    assert list(catalog.feature_tests) == [
        "propertyIntelligence",
        "aiAppraisal",
        "foreclosureSystem",
        "lienAnalysis",
        "globalSearch",
    ]
    assert [feature.name for feature in catalog.diagnosis_features] == [
        "propertyIntelligence",
        "aiAppraisal",
        "foreclosureSystem",
        "lienAnalysis",
    ]
    assert catalog.health_endpoint == "/api/v3/debug/health"
    assert "databaseIssues" in catalog.fix_procedures


def test_packaged_catalog_has_command_probe() -> None:
    suite = load_catalog().suite("foreclosureSystem")
    kinds = {spec.kind for spec in suite.probe_specs()}

    assert kinds == {ProbeKind.HTTP, ProbeKind.COMMAND}
    command = next(spec for spec in suite.probe_specs() if spec.kind is ProbeKind.COMMAND)
    assert command.method == "EXEC"
    assert command.assertions_of(AssertionKind.OUTPUT_ABOVE)


def test_probe_entry_maps_expectations_to_assertions(catalog: Catalog) -> None:
    search = catalog.suite("propertyIntelligence").probe_specs()[0]

    assert search.target == "/api/properties?zipCode=90210"
    assert [a.kind for a in search.assertions] == [
        AssertionKind.STATUS_EQUALS,
        AssertionKind.MIN_COUNT,
    ]
    assert search.assertions_of(AssertionKind.MIN_COUNT)[0].expected == 1


def test_method_is_normalized(catalog: Catalog) -> None:
    lien = catalog.suite("lienAnalysis").probe_specs()[0]
    assert lien.method == "POST"
    assert lien.payload == {"address": "1209 Auld Ln"}


def test_common_errors_flatten_fix_entries(catalog_data: dict[str, Any]) -> None:
    catalog_data["featureTests"]["lienAnalysis"]["commonErrors"] = {
        "timeout": {"error": "slow", "fix": "Raise the timeout"},
        "http_error": "Check logs",
    }
    suite = parse_catalog(catalog_data).suite("lienAnalysis")

    assert suite.common_errors == {"timeout": "Raise the timeout", "http_error": "Check logs"}


def test_min_listings_counts_any_result_list(catalog_data: dict[str, Any]) -> None:
    catalog_data["featureTests"]["lienAnalysis"]["testCases"].append(
        {"name": "Listings", "endpoint": "/api/foreclosures", "expected": {"minListings": 3}}
    )
    spec = parse_catalog(catalog_data).suite("lienAnalysis").probe_specs()[1]
    (assertion,) = spec.assertions_of(AssertionKind.MIN_COUNT)

    assert assertion.expected == 3
    assert assertion.source is None


def test_unknown_feature_raises_config_error(catalog: Catalog) -> None:
    with pytest.raises(ConfigError) as excinfo:
        catalog.suite("nonexistent")
    assert "nonexistent" in excinfo.value.user_message
    assert "propertyIntelligence" in excinfo.value.user_message


def test_probe_needs_exactly_one_target(catalog_data: dict[str, Any]) -> None:
    catalog_data["featureTests"]["lienAnalysis"]["testCases"][0]["command"] = "echo 1"
    with pytest.raises(ConfigError) as excinfo:
        parse_catalog(catalog_data)
    assert "exactly one of endpoint or command" in excinfo.value.user_message


def test_command_probe_rejects_http_expectations(catalog_data: dict[str, Any]) -> None:
    catalog_data["featureTests"]["lienAnalysis"]["testCases"] = [
        {"name": "Count", "command": "echo 1", "expected": {"status": 200}}
    ]
    with pytest.raises(ConfigError) as excinfo:
        parse_catalog(catalog_data)
    assert "status" in excinfo.value.user_message


def test_string_expectation_becomes_output_match(catalog_data: dict[str, Any]) -> None:
    catalog_data["featureTests"]["lienAnalysis"]["testCases"] = [
        {"name": "Status", "command": "echo connected", "expected": "connected"}
    ]
    spec = parse_catalog(catalog_data).suite("lienAnalysis").probe_specs()[0]
    (assertion,) = spec.assertions_of(AssertionKind.OUTPUT_CONTAINS)
    assert assertion.expected == "connected"


def test_unknown_keys_are_rejected(catalog_data: dict[str, Any]) -> None:
    catalog_data["featureTests"]["lienAnalysis"]["testCases"][0]["expected"]["minWidgets"] = 1
    with pytest.raises(ConfigError):
        parse_catalog(catalog_data)


def test_dependency_needs_one_source(catalog_data: dict[str, Any]) -> None:
    catalog_data["dependencyChecks"]["databaseChecks"][0]["statusCheck"] = "pg_isready"
    with pytest.raises(ConfigError) as excinfo:
        parse_catalog(catalog_data)
    assert "PostgreSQL" in excinfo.value.user_message


def test_credential_header_requires_env(catalog_data: dict[str, Any]) -> None:
    del catalog_data["dependencyChecks"]["apiServices"][0]["credentialEnv"]
    with pytest.raises(ConfigError):
        parse_catalog(catalog_data)


def test_duplicate_diagnosis_features_rejected(catalog_data: dict[str, Any]) -> None:
    catalog_data["diagnosisFeatures"].append(catalog_data["diagnosisFeatures"][0])
    with pytest.raises(ConfigError) as excinfo:
        parse_catalog(catalog_data)
    assert "propertyIntelligence" in excinfo.value.user_message


def test_diagnosis_feature_must_be_http(catalog_data: dict[str, Any]) -> None:
    catalog_data["diagnosisFeatures"][0]["probe"] = {"name": "cmd", "command": "echo 1"}
    with pytest.raises(ConfigError):
        parse_catalog(catalog_data)


def test_load_catalog_from_path(tmp_path: Path, catalog_data: dict[str, Any]) -> None:
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps(catalog_data), encoding="utf-8")

    catalog = load_catalog(path)

    assert set(catalog.feature_tests) == {"propertyIntelligence", "lienAnalysis"}


def test_load_catalog_rejects_bad_json(tmp_path: Path) -> None:
    path = tmp_path / "catalog.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError) as excinfo:
        load_catalog(path)
    assert "not valid JSON" in excinfo.value.user_message


def test_load_catalog_rejects_non_object(tmp_path: Path) -> None:
    path = tmp_path / "catalog.json"
    path.write_text("[]", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_catalog(path)


def test_load_catalog_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError) as excinfo:
        load_catalog(tmp_path / "missing.json")
    assert "Unable to read catalog" in excinfo.value.user_message
