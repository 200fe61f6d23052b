"""structlog configuration and event helpers for propdx runs.

Every record goes through the standard library ``logging`` tree so the
console and rotating-file handlers see the same stream. Credential-looking
fields are redacted before rendering because probe events may carry request
headers or environment values.
"""

from __future__ import annotations

import logging
import sys
import uuid
from logging.handlers import RotatingFileHandler
from typing import Any, Final

import structlog
from structlog.typing import EventDict, Processor, WrappedLogger

from propdx.config.settings import LOG_FORMAT_JSON, LoggingSettings

BoundLogger = structlog.stdlib.BoundLogger

REDACTED: Final = "***"
_SENSITIVE_MARKERS: Final = ("apikey", "api_key", "authorization", "password", "secret", "token")
_QUIET_LIBRARIES: Final = ("httpx", "httpcore")


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in _SENSITIVE_MARKERS)


def redact_sensitive_fields(
    _logger: WrappedLogger, _method: str, event_dict: EventDict
) -> EventDict:
    for key in list(event_dict):
        if key != "event" and _is_sensitive(key) and event_dict[key] is not None:
            event_dict[key] = REDACTED
    return event_dict


def _processors(settings: LoggingSettings) -> list[Processor]:
    renderer: Processor
    if settings.format == LOG_FORMAT_JSON:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)
    return [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_sensitive_fields,
        renderer,
    ]


def _handlers(settings: LoggingSettings) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if settings.file_path:
        handlers.append(
            RotatingFileHandler(
                settings.file_path,
                maxBytes=settings.max_bytes,
                backupCount=settings.backup_count,
                encoding="utf-8",
            )
        )
    for handler in handlers:
        handler.setLevel(settings.level)
        handler.setFormatter(logging.Formatter("%(message)s"))
    return handlers


def configure_logging(settings: LoggingSettings) -> None:
    """Route structlog through fresh root handlers built from ``settings``."""

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(settings.level)
    for handler in _handlers(settings):
        root_logger.addHandler(handler)

    # httpx logs every request at INFO; probe events already cover that.
    for name in _QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(max(settings.level, logging.WARNING))

    structlog.configure(
        processors=_processors(settings),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> BoundLogger:
    return structlog.get_logger(name)


def attach_run_context(
    logger: BoundLogger,
    *,
    run_id: str | None = None,
    phase: str | None = None,
    **base_fields: Any,
) -> BoundLogger:
    """Bind a run identifier (generated when absent) and the run phase."""

    fields: dict[str, Any] = {"run_id": run_id or uuid.uuid4().hex}
    if phase:
        fields["phase"] = phase
    fields.update((key, value) for key, value in base_fields.items() if value is not None)
    return logger.bind(**fields)


def log_event(
    logger: BoundLogger,
    event: str,
    *,
    level: int = logging.INFO,
    message: str | None = None,
    **fields: Any,
) -> None:
    present = {key: value for key, value in fields.items() if value is not None}
    logger.bind(event_name=event, **present).log(level, message or event)


def log_probe_event(
    logger: BoundLogger,
    action: str,
    *,
    probe: str | None = None,
    level: int = logging.INFO,
    **fields: Any,
) -> None:
    log_event(logger, f"probe.{action}", level=level, probe=probe, **fields)


__all__ = [
    "REDACTED",
    "BoundLogger",
    "attach_run_context",
    "configure_logging",
    "get_logger",
    "log_event",
    "log_probe_event",
    "redact_sensitive_fields",
]
