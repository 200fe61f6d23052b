"""Check definition catalog: probes, dependencies, environment and procedures.

The catalog is plain configuration data. It is parsed and validated once with
pydantic; malformed entries raise :class:`ConfigError` before anything runs.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Final, Literal, Mapping
from urllib.parse import urlencode

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from propdx.config.constants import DEFAULT_HEALTH_ENDPOINT, DEFAULT_PROBE_TIMEOUT_MS
from propdx.domain.models import Assertion, AssertionKind, ProbeKind, ProbeSpec
from propdx.infrastructure.errors import ConfigError
from propdx.resources import read_resource_text

CATALOG_RESOURCE: Final = "catalog.json"

_HTTP_ONLY_EXPECTATIONS: Final = (
    "status",
    "min_properties",
    "min_listings",
    "min_results",
    "contains",
    "required_fields",
    "max_response_time",
)
_COMMAND_ONLY_EXPECTATIONS: Final = ("output_contains", "greater_than")


class _CatalogModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)


class ExpectedEntry(_CatalogModel):
    status: int | None = Field(default=None, ge=100, le=599)
    min_properties: int | None = Field(default=None, alias="minProperties", ge=0)
    min_listings: int | None = Field(default=None, alias="minListings", ge=0)
    min_results: int | None = Field(default=None, alias="minResults", ge=0)
    contains: tuple[str, ...] = ()
    required_fields: tuple[str, ...] = Field(default=(), alias="requiredFields")
    max_response_time: int | None = Field(default=None, alias="maxResponseTime", gt=0)
    output_contains: str | None = Field(default=None, alias="outputContains")
    greater_than: int | None = Field(default=None, alias="greaterThan")

    def declared(self, names: tuple[str, ...]) -> list[str]:
        return [name for name in names if getattr(self, name) not in (None, ())]


class ProbeEntry(_CatalogModel):
    name: str = Field(min_length=1)
    kind: Literal["http", "command"] | None = None
    endpoint: str | None = None
    command: str | None = None
    method: str = "GET"
    payload: Any | None = None
    params: dict[str, str] | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    timeout_ms: int = Field(default=DEFAULT_PROBE_TIMEOUT_MS, alias="timeoutMs", gt=0)
    expected: ExpectedEntry = Field(default_factory=ExpectedEntry)

    @field_validator("expected", mode="before")
    @classmethod
    def _coerce_expected(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, str):
            return {"outputContains": value}
        return value

    @field_validator("method")
    @classmethod
    def _normalize_method(cls, value: str) -> str:
        return value.strip().upper()

    @model_validator(mode="after")
    def _check_target(self) -> ProbeEntry:
        if bool(self.endpoint) == bool(self.command):
            raise ValueError(f"probe '{self.name}' needs exactly one of endpoint or command")
        inferred = "http" if self.endpoint else "command"
        if self.kind is not None and self.kind != inferred:
            raise ValueError(f"probe '{self.name}' declares kind '{self.kind}' but targets {inferred}")
        if inferred == "http":
            invalid = self.expected.declared(_COMMAND_ONLY_EXPECTATIONS)
        else:
            invalid = self.expected.declared(_HTTP_ONLY_EXPECTATIONS)
        if invalid:
            raise ValueError(
                f"probe '{self.name}' sets expectations not valid for {inferred} probes: "
                + ", ".join(sorted(invalid))
            )
        return self

    @property
    def probe_kind(self) -> ProbeKind:
        return ProbeKind.HTTP if self.endpoint else ProbeKind.COMMAND

    def to_probe_spec(self) -> ProbeSpec:
        if self.probe_kind is ProbeKind.COMMAND:
            return ProbeSpec(
                name=self.name,
                kind=ProbeKind.COMMAND,
                target=str(self.command),
                method="EXEC",
                timeout_ms=self.timeout_ms,
                assertions=tuple(self._command_assertions()),
            )

        target = str(self.endpoint)
        if self.params:
            separator = "&" if "?" in target else "?"
            target = f"{target}{separator}{urlencode(self.params)}"
        return ProbeSpec(
            name=self.name,
            kind=ProbeKind.HTTP,
            target=target,
            method=self.method,
            payload=self.payload,
            timeout_ms=self.timeout_ms,
            assertions=tuple(self._http_assertions()),
            headers=dict(self.headers),
        )

    def _http_assertions(self) -> list[Assertion]:
        expected = self.expected
        assertions: list[Assertion] = []
        if expected.status is not None:
            assertions.append(Assertion(AssertionKind.STATUS_EQUALS, expected.status))
        for minimum in (expected.min_properties, expected.min_results, expected.min_listings):
            if minimum is not None:
                assertions.append(Assertion(AssertionKind.MIN_COUNT, minimum))
        if expected.contains:
            assertions.append(Assertion(AssertionKind.FIELDS_PRESENT, expected.contains))
        if expected.required_fields:
            assertions.append(Assertion(AssertionKind.FIELDS_STRUCTURAL, expected.required_fields))
        if expected.max_response_time is not None:
            assertions.append(Assertion(AssertionKind.MAX_DURATION, expected.max_response_time))
        return assertions

    def _command_assertions(self) -> list[Assertion]:
        assertions: list[Assertion] = []
        if self.expected.greater_than is not None:
            assertions.append(Assertion(AssertionKind.OUTPUT_ABOVE, self.expected.greater_than))
        if self.expected.output_contains is not None:
            assertions.append(Assertion(AssertionKind.OUTPUT_CONTAINS, self.expected.output_contains))
        return assertions


class FeatureSuite(_CatalogModel):
    description: str = ""
    test_cases: tuple[ProbeEntry, ...] = Field(alias="testCases", min_length=1)
    common_errors: dict[str, str] = Field(default_factory=dict, alias="commonErrors")

    @field_validator("common_errors", mode="before")
    @classmethod
    def _flatten_fixes(cls, value: Any) -> Any:
        if not isinstance(value, Mapping):
            return value
        flattened: dict[str, Any] = {}
        for key, entry in value.items():
            if isinstance(entry, Mapping):
                flattened[key] = entry.get("fix") or entry.get("solution")
            else:
                flattened[key] = entry
        return flattened

    def probe_specs(self) -> tuple[ProbeSpec, ...]:
        return tuple(entry.to_probe_spec() for entry in self.test_cases)


class DependencyEntry(_CatalogModel):
    name: str = Field(min_length=1)
    url: str | None = None
    credential_env: str | None = Field(default=None, alias="credentialEnv")
    credential_header: str | None = Field(default=None, alias="credentialHeader")
    headers: dict[str, str] = Field(default_factory=dict)
    status_check: str | None = Field(default=None, alias="statusCheck")
    command: str | None = None
    health_field: str | None = Field(default=None, alias="healthField")
    expected_status: str | None = Field(default=None, alias="expectedStatus")
    timeout_ms: int = Field(default=5_000, alias="timeoutMs", gt=0)

    @model_validator(mode="after")
    def _check_source(self) -> DependencyEntry:
        sources = [
            value
            for value in (self.url, self.status_check or self.command, self.health_field)
            if value
        ]
        if len(sources) != 1:
            raise ValueError(
                f"dependency '{self.name}' needs exactly one of url, statusCheck/command or healthField"
            )
        if self.credential_header and not self.credential_env:
            raise ValueError(f"dependency '{self.name}' sets credentialHeader without credentialEnv")
        return self

    @property
    def shell_command(self) -> str | None:
        return self.status_check or self.command


class DependencyChecks(_CatalogModel):
    api_services: tuple[DependencyEntry, ...] = Field(default=(), alias="apiServices")
    database_checks: tuple[DependencyEntry, ...] = Field(default=(), alias="databaseChecks")


class EnvEntry(_CatalogModel):
    name: str = Field(min_length=1)
    description: str = ""
    critical: bool = False
    sensitive: bool = False
    expected: str | None = None


class SecurityConfig(_CatalogModel):
    api_key_variables: tuple[str, ...] = Field(default=(), alias="apiKeyVariables")
    api_key_min_length: int = Field(default=32, alias="apiKeyMinLength", gt=0)
    connection_string_variable: str = Field(default="DATABASE_URL", alias="connectionStringVariable")
    ssl_markers: tuple[str, ...] = Field(default=("ssl=true", "sslmode=require"), alias="sslMarkers")
    mode_variable: str = Field(default="NODE_ENV", alias="modeVariable")
    mode_values: tuple[str, ...] = Field(default=("development", "production"), alias="modeValues")


class PerformanceEntry(_CatalogModel):
    name: str
    variable: str | None = None
    optimal: str


class EnvValidation(_CatalogModel):
    required_variables: tuple[EnvEntry, ...] = Field(default=(), alias="requiredVariables")
    optional_variables: tuple[EnvEntry, ...] = Field(default=(), alias="optionalVariables")
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    performance: tuple[PerformanceEntry, ...] = ()


class DiagnosisFeature(_CatalogModel):
    name: str = Field(min_length=1)
    probe: ProbeEntry
    result_fields: tuple[str, ...] = Field(alias="resultFields", min_length=1)

    @model_validator(mode="after")
    def _check_http(self) -> DiagnosisFeature:
        if self.probe.probe_kind is not ProbeKind.HTTP:
            raise ValueError(f"diagnosis feature '{self.name}' must use an HTTP probe")
        return self


class FixProcedure(_CatalogModel):
    description: str = ""
    steps: tuple[str, ...] = ()


class Catalog(_CatalogModel):
    feature_tests: dict[str, FeatureSuite] = Field(default_factory=dict, alias="featureTests")
    dependency_checks: DependencyChecks = Field(
        default_factory=DependencyChecks, alias="dependencyChecks"
    )
    env_validation: EnvValidation = Field(default_factory=EnvValidation, alias="envValidation")
    diagnosis_features: tuple[DiagnosisFeature, ...] = Field(default=(), alias="diagnosisFeatures")
    health_endpoint: str = Field(default=DEFAULT_HEALTH_ENDPOINT, alias="healthEndpoint")
    fix_procedures: dict[str, FixProcedure] = Field(default_factory=dict, alias="fixProcedures")
    performance_targets: dict[str, str] = Field(default_factory=dict, alias="performanceTargets")

    @model_validator(mode="after")
    def _check_unique_features(self) -> Catalog:
        names = [feature.name for feature in self.diagnosis_features]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError("duplicate diagnosis features: " + ", ".join(duplicates))
        return self

    def suite(self, feature: str) -> FeatureSuite:
        try:
            return self.feature_tests[feature]
        except KeyError:
            available = ", ".join(sorted(self.feature_tests)) or "none"
            raise ConfigError(
                f"Unknown feature '{feature}'; available: {available}",
                feature=feature,
            ) from None


def _describe_validation_error(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "invalid value")
    if location:
        return f"{location}: {message}"
    return message


def parse_catalog(data: Mapping[str, Any]) -> Catalog:
    """Validate already-parsed catalog data."""

    try:
        return Catalog.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(
            f"Invalid catalog entry ({_describe_validation_error(exc)})",
            error_count=exc.error_count(),
        ) from exc


def load_catalog(path: str | Path | None = None) -> Catalog:
    """Load the catalog from ``path`` or from the packaged default."""

    try:
        if path is None:
            raw = read_resource_text(CATALOG_RESOURCE)
        else:
            raw = Path(path).expanduser().read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Unable to read catalog: {exc}", target=str(path)) from exc

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Catalog is not valid JSON: {exc}", target=str(path)) from exc

    if not isinstance(data, Mapping):
        raise ConfigError("Catalog root must be a JSON object", target=str(path))
    return parse_catalog(data)


__all__ = [
    "Catalog",
    "DependencyChecks",
    "DependencyEntry",
    "DiagnosisFeature",
    "EnvEntry",
    "EnvValidation",
    "ExpectedEntry",
    "FeatureSuite",
    "FixProcedure",
    "PerformanceEntry",
    "ProbeEntry",
    "SecurityConfig",
    "load_catalog",
    "parse_catalog",
]
