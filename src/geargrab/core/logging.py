"""Structured logging for GearGrab screening.

structlog renders every entry, including records coming from the standard
library (uvicorn, SQLAlchemy, httpx), as JSON in production and as
coloured console lines elsewhere. Candidate identifiers are masked by a
processor before any renderer sees them, so a workflow that logs a field
named ``ssn`` by mistake still writes ``[REDACTED]``.

Workflow tasks bind ``record_id`` with ``LogContext`` and API requests bind
``request_id``; both ride along on every entry via contextvars.
"""
# ruff: noqa: ARG001  # Processor signatures required by structlog API

import logging
import sys
from typing import Any, Literal

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from geargrab.config.settings import get_settings

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

REDACTED = "[REDACTED]"

# Field names that carry raw candidate identifiers
SENSITIVE_KEYS = frozenset(
    {
        "ssn",
        "government_id",
        "date_of_birth",
        "dob",
        "drivers_license",
        "password",
        "credential",
    }
)

# Fields holding an email address; kept but partially masked
EMAIL_KEYS = frozenset({"email", "recipient", "to"})

# Library loggers routed through our handler, with their floor level
LIBRARY_LOGGERS: dict[str, int | None] = {
    "uvicorn": None,
    "uvicorn.access": None,
    "uvicorn.error": None,
    "sqlalchemy": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "httpx": logging.WARNING,
}


# =============================================================================
# Processors
# =============================================================================


def add_environment_info(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Tag entries with the deployment environment."""
    event_dict["environment"] = get_settings().ENVIRONMENT
    return event_dict


def mask_email(value: str) -> str:
    """Keep the first character of the local part and the domain."""
    local, sep, domain = value.partition("@")
    if not sep or not local:
        return REDACTED
    return f"{local[0]}***@{domain}"


def redact_candidate_fields(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Mask candidate identifiers that were passed as log fields."""
    for key in SENSITIVE_KEYS.intersection(event_dict):
        event_dict[key] = REDACTED
    for key in EMAIL_KEYS.intersection(event_dict):
        if isinstance(event_dict[key], str):
            event_dict[key] = mask_email(event_dict[key])
    return event_dict


def drop_color_message_key(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """uvicorn duplicates its message under ``color_message``."""
    event_dict.pop("color_message", None)
    return event_dict


def _shared_processors(add_timestamp: bool) -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        add_environment_info,
        redact_candidate_fields,
        drop_color_message_key,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if add_timestamp:
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso", utc=True))
    return processors


# =============================================================================
# Setup
# =============================================================================


def setup_logging(
    log_level: LogLevel | None = None,
    json_format: bool | None = None,
    add_timestamp: bool = True,
) -> None:
    """Configure structlog and the standard library root logger.

    Args:
        log_level: Override for ``settings.log_level``
        json_format: JSON lines; defaults to on in production only
        add_timestamp: Include an ISO timestamp in each entry
    """
    settings = get_settings()
    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)
    as_json = settings.is_production if json_format is None else json_format

    processors = _shared_processors(add_timestamp)
    renderer: Processor
    if as_json:
        processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[*processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            # PrintLogger has no name; only stdlib records carry one
            foreign_pre_chain=[structlog.stdlib.add_logger_name, *processors],
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    for name, floor in LIBRARY_LOGGERS.items():
        library_logger = logging.getLogger(name)
        library_logger.handlers = [handler]
        library_logger.propagate = False
        if floor is not None:
            library_logger.setLevel(floor)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger, usually with ``__name__``."""
    return structlog.get_logger(name)


# =============================================================================
# Context
# =============================================================================

bind_contextvars = structlog.contextvars.bind_contextvars
unbind_contextvars = structlog.contextvars.unbind_contextvars
clear_contextvars = structlog.contextvars.clear_contextvars


class LogContext:
    """Bind fields for the duration of a block.

    Example:
        with LogContext(record_id=str(record.record_id)):
            logger.info("polling_started")  # carries record_id
    """

    def __init__(self, **fields: Any):
        self.fields = fields

    def __enter__(self) -> "LogContext":
        bind_contextvars(**self.fields)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        unbind_contextvars(*self.fields)


# =============================================================================
# Event helpers
# =============================================================================


def log_request_end(
    logger: structlog.stdlib.BoundLogger,
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    **fields: Any,
) -> None:
    logger.info(
        "request_completed",
        http_method=method,
        http_path=path,
        http_status=status_code,
        duration_ms=round(duration_ms, 2),
        **fields,
    )


def log_exception(
    logger: structlog.stdlib.BoundLogger,
    exc: BaseException,
    **fields: Any,
) -> None:
    """Log an exception with its traceback and type."""
    logger.exception(
        "exception_occurred",
        error_type=type(exc).__name__,
        error_message=str(exc),
        **fields,
    )


def log_external_call(
    logger: structlog.stdlib.BoundLogger,
    service: str,
    operation: str,
    duration_ms: float,
    success: bool,
    **fields: Any,
) -> None:
    """Log one vendor or email API call; failures log at warning."""
    emit = logger.info if success else logger.warning
    emit(
        "external_call",
        service=service,
        operation=operation,
        duration_ms=round(duration_ms, 2),
        success=success,
        **fields,
    )
