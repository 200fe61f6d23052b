"""HTTP and command probe executors.

Executors never raise. Transport failures, timeouts and assertion mismatches
are raised internally as :class:`ProbeError` subclasses and converted into a
failed :class:`Outcome` at the executor boundary.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
import signal
import time
from collections.abc import Callable, Mapping
from contextlib import suppress
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Final

import httpx

from propdx.domain.models import AssertionKind, Outcome, ProbeKind, ProbeSpec
from propdx.infrastructure.errors import (
    FailureCategory,
    ProbeAssertionError,
    ProbeError,
    ProbeTimeoutError,
    TargetConnectionError,
)
from propdx.infrastructure.logging import BoundLogger, get_logger, log_probe_event

Clock = Callable[[], float]

_LOGGER = get_logger("propdx.probes")

DEFAULT_REMEDIATIONS: Final[Mapping[FailureCategory, str]] = MappingProxyType(
    {
        FailureCategory.TIMEOUT: "Increase the probe timeout or check the service for slow upstream calls",
        FailureCategory.NO_RESULTS: "Verify the data sources return listings for the requested query",
        FailureCategory.MALFORMED_INPUT: "Check the request parameters, for example the ZIP code format",
        FailureCategory.HTTP_ERROR: "Inspect the service logs for the failing endpoint",
        FailureCategory.CONNECTION: "Confirm the service is running and reachable at the configured base URL",
        FailureCategory.MISSING_FIELDS: "Check that the response normalizer populates the expected fields",
        FailureCategory.COMMAND_FAILED: "Run the command manually to inspect its exit status and output",
        FailureCategory.CANCELLED: "Raise the overall time budget so the remaining probes can run",
    }
)

_MALFORMED_INPUT_STATUSES: Final = frozenset({400, 422})
_COUNT_PATHS: Final = (("properties",), ("foreclosures",), ("data", "properties"))
_LEADING_INTEGER: Final = re.compile(r"\s*(-?\d+)")
_DRAIN_TIMEOUT: Final = 1.0


@dataclass(frozen=True)
class Deadline:
    """Overall time budget shared by every probe of a run."""

    expires_at: float | None
    clock: Clock = time.monotonic

    @classmethod
    def after(cls, seconds: float | None, *, clock: Clock = time.monotonic) -> Deadline:
        if seconds is None:
            return cls(None, clock)
        return cls(clock() + seconds, clock)

    @classmethod
    def unlimited(cls) -> Deadline:
        return cls(None)

    def remaining(self) -> float | None:
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - self.clock())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def cap(self, timeout_seconds: float) -> float:
        remaining = self.remaining()
        if remaining is None:
            return timeout_seconds
        return min(timeout_seconds, remaining)


def suggestion_for(
    category: FailureCategory | None,
    overrides: Mapping[str, str] | None = None,
) -> str | None:
    """Return the remediation hint for ``category``, preferring suite overrides."""

    if category is None:
        return None
    if overrides and overrides.get(category.value):
        return overrides[category.value]
    return DEFAULT_REMEDIATIONS.get(category)


def cancelled_outcome(spec: ProbeSpec, remediation: Mapping[str, str] | None = None) -> Outcome:
    return Outcome(
        probe_name=spec.name,
        passed=False,
        duration_ms=0,
        failure_reason="Skipped: overall time budget exhausted",
        failure_category=FailureCategory.CANCELLED,
        suggestion=suggestion_for(FailureCategory.CANCELLED, remediation),
    )


def _elapsed_ms(started: float, clock: Clock) -> int:
    return max(0, round((clock() - started) * 1000))


def _lookup(body: Any, path: tuple[str, ...]) -> Any:
    current = body
    for key in path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


def _listed_results(body: Any, source: str | None = None) -> list[Any]:
    paths = ((source,),) if source else _COUNT_PATHS
    for path in paths:
        value = _lookup(body, path)
        if isinstance(value, list) and value:
            return value
    return []


def resolve_result_count(body: Any, *, source: str | None = None) -> int:
    """Count results in ``properties``, ``foreclosures`` or ``data.properties``.

    The first non-empty list wins. ``source`` restricts the lookup to a single
    top-level key.
    """

    return len(_listed_results(body, source))


def _serialize_body(body: Any) -> str:
    if isinstance(body, str):
        return body
    return json.dumps(body, default=str)


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _status_category(status_code: int) -> FailureCategory:
    if status_code in _MALFORMED_INPUT_STATUSES:
        return FailureCategory.MALFORMED_INPUT
    return FailureCategory.HTTP_ERROR


def _check_duration(spec: ProbeSpec, duration_ms: int) -> None:
    if duration_ms > spec.timeout_ms:
        raise ProbeTimeoutError(
            f"Probe timed out: took {duration_ms} ms, limit {spec.timeout_ms} ms",
            probe=spec.name,
            target=spec.target,
        )


def _check_status(spec: ProbeSpec, status_code: int) -> None:
    expected_statuses = spec.assertions_of(AssertionKind.STATUS_EQUALS)
    if expected_statuses:
        expected = expected_statuses[0].expected
        if status_code == expected:
            return
        message = f"Status {status_code}, expected {expected}"
    elif 200 <= status_code < 300:
        return
    else:
        message = f"Status {status_code}, expected a 2xx response"
    raise ProbeAssertionError(
        message,
        category=_status_category(status_code),
        probe=spec.name,
        target=spec.target,
        status_code=status_code,
    )


def _check_http_assertions(
    spec: ProbeSpec,
    body: Any,
    duration_ms: int,
) -> tuple[int | None, tuple[str, ...]]:
    result_count: int | None = None
    for assertion in spec.assertions_of(AssertionKind.MIN_COUNT):
        result_count = resolve_result_count(body, source=assertion.source)
        if result_count < assertion.expected:
            raise ProbeAssertionError(
                f"Expected at least {assertion.expected} results, got {result_count}",
                category=FailureCategory.NO_RESULTS,
                probe=spec.name,
                target=spec.target,
            )

    for assertion in spec.assertions_of(AssertionKind.FIELDS_PRESENT):
        text = _serialize_body(body)
        missing = [name for name in assertion.expected if name not in text]
        if missing:
            raise ProbeAssertionError(
                "Missing fields: " + ", ".join(missing),
                category=FailureCategory.MISSING_FIELDS,
                probe=spec.name,
                target=spec.target,
            )

    for assertion in spec.assertions_of(AssertionKind.FIELDS_STRUCTURAL):
        results = _listed_results(body, assertion.source)
        if not results:
            # Empty listings are the count assertions' concern.
            continue
        first = results[0]
        present = first if isinstance(first, Mapping) else {}
        missing = [name for name in assertion.expected if name not in present]
        if missing:
            raise ProbeAssertionError(
                "Missing required fields: " + ", ".join(missing),
                category=FailureCategory.MISSING_FIELDS,
                probe=spec.name,
                target=spec.target,
            )

    warnings: list[str] = []
    for assertion in spec.assertions_of(AssertionKind.MAX_DURATION):
        if duration_ms > assertion.expected:
            warnings.append(
                f"Response time {duration_ms} ms exceeds target {assertion.expected} ms"
            )
    return result_count, tuple(warnings)


def _failed_outcome(
    spec: ProbeSpec,
    error: ProbeError,
    duration_ms: int,
    *,
    remediation: Mapping[str, str] | None,
    logger: BoundLogger,
    observed_value: Any = None,
    status_code: int | None = None,
) -> Outcome:
    log_probe_event(
        logger,
        "failed",
        probe=spec.name,
        level=logging.WARNING,
        category=error.category.value,
        reason=error.user_message,
        duration_ms=duration_ms,
        **{key: value for key, value in error.log_fields().items() if key != "probe"},
    )
    return Outcome(
        probe_name=spec.name,
        passed=False,
        duration_ms=duration_ms,
        observed_value=observed_value,
        failure_reason=error.user_message,
        failure_category=error.category,
        suggestion=suggestion_for(error.category, remediation),
        status_code=status_code,
    )


async def _send(spec: ProbeSpec, client: httpx.AsyncClient, timeout: float) -> httpx.Response:
    try:
        return await client.request(
            spec.method,
            spec.target,
            json=spec.payload,
            headers=dict(spec.headers) or None,
            timeout=timeout,
        )
    except httpx.TimeoutException as exc:
        raise ProbeTimeoutError(
            f"Request timed out after {round(timeout * 1000)} ms",
            probe=spec.name,
            target=spec.target,
        ) from exc
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise TargetConnectionError(
            f"Connection failed: {exc}",
            probe=spec.name,
            target=spec.target,
        ) from exc


async def execute_http_probe(
    spec: ProbeSpec,
    client: httpx.AsyncClient,
    *,
    deadline: Deadline | None = None,
    remediation: Mapping[str, str] | None = None,
    logger: BoundLogger | None = None,
    clock: Clock = time.perf_counter,
) -> Outcome:
    """Run one HTTP probe and return its outcome."""

    log = logger or _LOGGER
    if deadline is not None and deadline.expired:
        return cancelled_outcome(spec, remediation)

    timeout = spec.timeout_ms / 1000
    if deadline is not None:
        timeout = deadline.cap(timeout)

    log_probe_event(
        log, "start", probe=spec.name, level=logging.DEBUG, method=spec.method, target=spec.target
    )
    started = clock()
    status_code: int | None = None
    body: Any = None
    try:
        response = await _send(spec, client, timeout)
        duration_ms = _elapsed_ms(started, clock)
        status_code = response.status_code
        body = _decode_body(response)
        _check_duration(spec, duration_ms)
        _check_status(spec, status_code)
        result_count, warnings = _check_http_assertions(spec, body, duration_ms)
    except ProbeError as exc:
        return _failed_outcome(
            spec,
            exc,
            _elapsed_ms(started, clock),
            remediation=remediation,
            logger=log,
            observed_value=body,
            status_code=status_code,
        )

    for warning in warnings:
        log_probe_event(log, "slow", probe=spec.name, level=logging.WARNING, warning=warning)
    log_probe_event(
        log,
        "passed",
        probe=spec.name,
        status_code=status_code,
        duration_ms=duration_ms,
        result_count=result_count,
    )
    return Outcome(
        probe_name=spec.name,
        passed=True,
        duration_ms=duration_ms,
        observed_value=body,
        status_code=status_code,
        result_count=result_count,
        warnings=warnings,
    )


async def _read_into(stream: asyncio.StreamReader, chunks: list[bytes]) -> None:
    while True:
        chunk = await stream.read(4096)
        if not chunk:
            return
        chunks.append(chunk)


def _kill_process_group(process: asyncio.subprocess.Process) -> None:
    with suppress(ProcessLookupError):
        os.killpg(process.pid, signal.SIGKILL)


async def _run_command(spec: ProbeSpec, timeout: float) -> tuple[int | None, str]:
    """Run the shell command and return its exit code and combined output.

    The exit code is ``None`` when the command ran past ``timeout``. The whole
    process group is killed then, so children forked by the shell cannot keep
    the pipe open, and the output read so far is returned.
    """

    try:
        process = await asyncio.create_subprocess_shell(
            spec.target,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            start_new_session=True,
        )
    except OSError as exc:
        raise ProbeAssertionError(
            f"Unable to start command: {exc}",
            category=FailureCategory.COMMAND_FAILED,
            probe=spec.name,
            target=spec.target,
        ) from exc

    assert process.stdout is not None
    chunks: list[bytes] = []
    exit_code: int | None
    try:
        await asyncio.wait_for(
            asyncio.gather(_read_into(process.stdout, chunks), process.wait()),
            timeout=timeout,
        )
        exit_code = process.returncode or 0
    except asyncio.TimeoutError:
        _kill_process_group(process)
        # A descendant that left the group may still hold the pipe.
        with suppress(asyncio.TimeoutError):
            await asyncio.wait_for(
                asyncio.gather(_read_into(process.stdout, chunks), process.wait()),
                timeout=_DRAIN_TIMEOUT,
            )
        exit_code = None
    except asyncio.CancelledError:
        _kill_process_group(process)
        raise

    return exit_code, b"".join(chunks).decode("utf-8", errors="replace")


def _check_command_output(spec: ProbeSpec, exit_code: int, output: str) -> None:
    text = output.strip()
    if exit_code != 0:
        raise ProbeAssertionError(
            f"Command exited with status {exit_code}: {text}",
            category=FailureCategory.COMMAND_FAILED,
            probe=spec.name,
            target=spec.target,
            exit_code=exit_code,
        )

    for assertion in spec.assertions_of(AssertionKind.OUTPUT_ABOVE):
        threshold = assertion.expected if assertion.expected is not None else 0
        match = _LEADING_INTEGER.match(text)
        if match is None:
            raise ProbeAssertionError(
                f"Unexpected output: {text!r} is not an integer",
                category=FailureCategory.UNEXPECTED_OUTPUT,
                probe=spec.name,
                target=spec.target,
            )
        value = int(match.group(1))
        if value <= threshold:
            raise ProbeAssertionError(
                f"Output {value} is not greater than {threshold}",
                category=FailureCategory.UNEXPECTED_OUTPUT,
                probe=spec.name,
                target=spec.target,
            )

    for assertion in spec.assertions_of(AssertionKind.OUTPUT_CONTAINS):
        if str(assertion.expected) not in output:
            raise ProbeAssertionError(
                f"Unexpected output: {text}",
                category=FailureCategory.UNEXPECTED_OUTPUT,
                probe=spec.name,
                target=spec.target,
            )


async def execute_command_probe(
    spec: ProbeSpec,
    *,
    deadline: Deadline | None = None,
    remediation: Mapping[str, str] | None = None,
    logger: BoundLogger | None = None,
    clock: Clock = time.perf_counter,
) -> Outcome:
    """Run one shell command probe and return its outcome."""

    log = logger or _LOGGER
    if deadline is not None and deadline.expired:
        return cancelled_outcome(spec, remediation)

    timeout = spec.timeout_ms / 1000
    if deadline is not None:
        timeout = deadline.cap(timeout)

    log_probe_event(log, "start", probe=spec.name, level=logging.DEBUG, command=spec.target)
    started = clock()
    output: str | None = None
    try:
        exit_code, output = await _run_command(spec, timeout)
        if exit_code is None:
            raise ProbeTimeoutError(
                f"Command timed out after {round(timeout * 1000)} ms",
                probe=spec.name,
                target=spec.target,
            )
        duration_ms = _elapsed_ms(started, clock)
        _check_duration(spec, duration_ms)
        _check_command_output(spec, exit_code, output)
    except ProbeError as exc:
        return _failed_outcome(
            spec,
            exc,
            _elapsed_ms(started, clock),
            remediation=remediation,
            logger=log,
            observed_value=output,
        )

    log_probe_event(log, "passed", probe=spec.name, duration_ms=duration_ms)
    return Outcome(
        probe_name=spec.name,
        passed=True,
        duration_ms=duration_ms,
        observed_value=output,
    )


async def execute_probe(
    spec: ProbeSpec,
    client: httpx.AsyncClient,
    *,
    deadline: Deadline | None = None,
    remediation: Mapping[str, str] | None = None,
    logger: BoundLogger | None = None,
    clock: Clock = time.perf_counter,
) -> Outcome:
    if spec.kind is ProbeKind.COMMAND:
        return await execute_command_probe(
            spec, deadline=deadline, remediation=remediation, logger=logger, clock=clock
        )
    return await execute_http_probe(
        spec, client, deadline=deadline, remediation=remediation, logger=logger, clock=clock
    )


def create_client(
    base_url: str,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Build the shared client used for every probe of a run."""

    return httpx.AsyncClient(base_url=base_url, transport=transport, follow_redirects=True)


__all__ = [
    "DEFAULT_REMEDIATIONS",
    "Deadline",
    "cancelled_outcome",
    "create_client",
    "execute_command_probe",
    "execute_http_probe",
    "execute_probe",
    "resolve_result_count",
    "suggestion_for",
]
