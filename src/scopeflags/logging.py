"""
Structured logging for scopeflags.

Two layers live here:

1. Process setup (:func:`configure_logging`, :func:`get_logger`) using
   structlog, with JSON output for aggregation or colored console output
   for development.
2. The logging collaborator handed to :class:`~scopeflags.service.FeatureFlagService`.
   It is a small protocol (:class:`FlagLogger`) with a null implementation
   as the default, so the service never checks whether logging is wired.

Architecture:
    ::

        FeatureFlagService
              │  log_info / log_warn / log_error (message, **meta)
              ▼
        ┌──────────────────────┐     ┌──────────────────────────────┐
        │ NullFlagLogger       │     │ StructlogFlagLogger          │
        │ (default, no-op)     │     │ → structlog BoundLogger      │
        └──────────────────────┘     └──────────────────────────────┘

        JSON output (configure_logging(json_format=True)):
        {
          "@timestamp": "2026-10-18T10:00:00Z",
          "log.level": "info",
          "service.name": "scopeflags",
          "event": "feature_flags_loaded",
          "flag_count": 22
        }

Examples:
    >>> from scopeflags.logging import configure_logging, StructlogFlagLogger
    >>> configure_logging(level="INFO", json_format=True)
    >>> flag_logger = StructlogFlagLogger()
    >>> flag_logger.log_info("feature_flags_loaded", flag_count=22)

Tags:
    logging, structlog, observability, null-object
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Protocol, TextIO, runtime_checkable

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

_SERVICE_NAME = "scopeflags"


def _add_service_metadata(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add service-level metadata to all logs."""
    event_dict.setdefault("service.name", _SERVICE_NAME)
    return event_dict


def _elasticsearch_compatible(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Make field names Elasticsearch/ECS compatible."""
    if "timestamp" in event_dict:
        event_dict["@timestamp"] = event_dict.pop("timestamp")
    if "level" in event_dict:
        event_dict["log.level"] = event_dict.pop("level")
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "scopeflags",
    add_timestamp: bool = True,
    stream: TextIO | None = None,
) -> None:
    """Configure structured logging for the process.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: True for JSON, False for console, None for auto (JSON if not tty)
        service: Service name to include in logs
        add_timestamp: Include ISO timestamp in logs
        stream: Output stream, stdout by default (the CLI logs to stderr)
    """
    global _SERVICE_NAME
    _SERVICE_NAME = service
    stream = stream or sys.stdout

    if json_format is None:
        json_format = not stream.isatty()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _add_service_metadata,
    ]

    if add_timestamp:
        shared_processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

    if json_format:
        shared_processors.append(_elasticsearch_compatible)
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=stream,
        level=getattr(logging, level.upper()),
    )


def get_logger(name: str | None = None) -> Any:
    """Get a structlog logger (usually ``get_logger(__name__)``)."""
    logger = structlog.get_logger()
    return logger.bind(logger=name) if name else logger


# ---------------------------------------------------------------------------
# Logging collaborator
# ---------------------------------------------------------------------------


@runtime_checkable
class FlagLogger(Protocol):
    """Logging collaborator used by the flag service.

    ``message`` is a snake_case event name; ``meta`` is a structured bag
    (scope ids, counts, error details). ``event`` in ``meta`` overrides the
    event name; ``log_error`` with an exception uses it as the only name.
    """

    def log_info(self, message: str, **meta: Any) -> None: ...

    def log_warn(self, message: str, **meta: Any) -> None: ...

    def log_error(self, error: BaseException | str, **meta: Any) -> None: ...


class NullFlagLogger:
    """Discards everything. Default when no logger is wired."""

    def log_info(self, message: str, **meta: Any) -> None:
        pass

    def log_warn(self, message: str, **meta: Any) -> None:
        pass

    def log_error(self, error: BaseException | str, **meta: Any) -> None:
        pass


class StructlogFlagLogger:
    """:class:`FlagLogger` backed by a structlog logger.

    An ``event`` key in ``meta`` names the structlog event in every method.
    When it is given alongside a string message, the message moves to
    ``message``.
    """

    def __init__(self, logger: Any | None = None, **context: Any) -> None:
        base = logger if logger is not None else get_logger("scopeflags")
        self._logger = base.bind(**context) if context else base

    def log_info(self, message: str, **meta: Any) -> None:
        self._logger.info(_event_name(message, meta), **meta)

    def log_warn(self, message: str, **meta: Any) -> None:
        self._logger.warning(_event_name(message, meta), **meta)

    def log_error(self, error: BaseException | str, **meta: Any) -> None:
        if isinstance(error, BaseException):
            meta.setdefault("error", str(error))
            meta.setdefault("error_type", type(error).__name__)
            self._logger.error(meta.pop("event", "feature_flags_error"), **meta)
        else:
            self._logger.error(_event_name(error, meta), **meta)


def _event_name(message: str, meta: dict[str, Any]) -> str:
    event = meta.pop("event", None)
    if event is None:
        return message
    meta.setdefault("message", message)
    return event


__all__ = [
    "FlagLogger",
    "NullFlagLogger",
    "StructlogFlagLogger",
    "configure_logging",
    "get_logger",
]
