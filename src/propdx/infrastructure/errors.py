"""Error types shared by the probe executors and the diagnostic runners."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    PROBE_TIMEOUT = "PROPDX.PROBE.TIMEOUT"
    PROBE_ASSERTION = "PROPDX.PROBE.ASSERTION"
    TARGET_CONNECTION = "PROPDX.TARGET.CONNECTION"
    CONFIG_INVALID = "PROPDX.CONFIG.INVALID"


class FailureCategory(str, Enum):
    """Typed failure classes used to look up remediation suggestions."""

    TIMEOUT = "timeout"
    NO_RESULTS = "no_results"
    MALFORMED_INPUT = "malformed_input"
    HTTP_ERROR = "http_error"
    MISSING_FIELDS = "missing_fields"
    CONNECTION = "connection"
    COMMAND_FAILED = "command_failed"
    UNEXPECTED_OUTPUT = "unexpected_output"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ErrorContext:
    code: str
    probe: str | None = None
    target: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


class PropdxError(Exception):
    """Base error carrying a stable code and a user-facing message."""

    code: ErrorCode = ErrorCode.CONFIG_INVALID

    def __init__(
        self,
        message: str,
        *,
        probe: str | None = None,
        target: str | None = None,
        **details: Any,
    ) -> None:
        super().__init__(message)
        self.user_message = message
        self.context = ErrorContext(
            code=self.code.value,
            probe=probe,
            target=target,
            details=dict(details),
        )

    def log_fields(self) -> dict[str, Any]:
        fields: dict[str, Any] = {"code": self.context.code}
        if self.context.probe:
            fields["probe"] = self.context.probe
        if self.context.target:
            fields["target"] = self.context.target
        fields.update(self.context.details)
        return fields


class ConfigError(PropdxError):
    """Raised when the catalog is malformed or a requested name is unknown."""

    code = ErrorCode.CONFIG_INVALID


class ProbeError(PropdxError):
    """Base class for errors raised while executing a single probe."""

    category: FailureCategory = FailureCategory.HTTP_ERROR


class ProbeTimeoutError(ProbeError):
    code = ErrorCode.PROBE_TIMEOUT
    category = FailureCategory.TIMEOUT


class TargetConnectionError(ProbeError):
    code = ErrorCode.TARGET_CONNECTION
    category = FailureCategory.CONNECTION


class ProbeAssertionError(ProbeError):
    code = ErrorCode.PROBE_ASSERTION

    def __init__(
        self,
        message: str,
        *,
        category: FailureCategory,
        probe: str | None = None,
        target: str | None = None,
        **details: Any,
    ) -> None:
        super().__init__(message, probe=probe, target=target, **details)
        self.category = category


__all__ = [
    "ConfigError",
    "ErrorCode",
    "ErrorContext",
    "FailureCategory",
    "PropdxError",
    "ProbeAssertionError",
    "ProbeError",
    "ProbeTimeoutError",
    "TargetConnectionError",
]
