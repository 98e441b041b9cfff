"""
dataex logging - structured logging for stored-procedure round trips.

Configuration Flow:
    ::

        configure_logging(level="INFO", json_format=None, service="dataex")
            ↓
        structlog processor chain:
            1. TimeStamper (iso)
            2. add_log_level / add_logger_name
            3. service metadata
            4. JSONRenderer (no tty) or ConsoleRenderer (tty)

Usage Flow:
    ::

        with log_call("procedure.call", procedure="sp_list_users") as timer:
            result = run()
            timer.add_metric("rowcount", result.rowcount)

        # DEBUG procedure.call.start procedure=sp_list_users
        # DEBUG procedure.call.end   procedure=sp_list_users duration_ms=3.1 rowcount=2

Guardrails:
    - Parameter values are never logged, only their names
    - ``log_call`` re-raises the original exception after logging it

Tags:
    logging, structlog, observability, timing, dataex
"""

from __future__ import annotations

import logging
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

# Store service name for metadata
_SERVICE_NAME = "dataex"


def _add_service_metadata(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add service-level metadata to all logs."""
    event_dict.setdefault("service.name", _SERVICE_NAME)
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "dataex",
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: True for JSON, False for console, None for auto (JSON if not tty)
        service: Service name to include in logs
    """
    global _SERVICE_NAME
    _SERVICE_NAME = service

    if json_format is None:
        json_format = not sys.stdout.isatty()

    shared_processors: list[Processor] = [
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _add_service_metadata,
    ]

    if json_format:
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level.upper())),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper()),
    )


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger (usually ``get_logger(__name__)``)."""
    return structlog.get_logger(name)


@dataclass
class CallTimer:
    """Timing and metrics of one logged call."""

    event: str
    started_at: float = field(default_factory=time.perf_counter)
    ended_at: float | None = None
    metrics: dict[str, Any] = field(default_factory=dict)

    def stop(self) -> CallTimer:
        self.ended_at = time.perf_counter()
        return self

    @property
    def duration_ms(self) -> float:
        end = self.ended_at if self.ended_at is not None else time.perf_counter()
        return (end - self.started_at) * 1000

    def add_metric(self, key: str, value: Any) -> CallTimer:
        """Add a metric to include in the end log."""
        self.metrics[key] = value
        return self

    def to_log_dict(self) -> dict[str, Any]:
        result = {"duration_ms": round(self.duration_ms, 2)}
        result.update(self.metrics)
        return result


@contextmanager
def log_call(event: str, logger: Any = None, **fields: Any) -> Iterator[CallTimer]:
    """
    Context manager that logs a call's start, end and failure with timing.

    Logs:
    - Start: DEBUG ``<event>.start``
    - End: DEBUG ``<event>.end`` with duration_ms and metrics
    - Failure: ERROR ``<event>.error`` with error_type/error_message, then re-raise

    Args:
        event: Event name (e.g. "procedure.call")
        logger: Logger to use, defaults to ``get_logger("dataex.calls")``
        **fields: Fields included in every log line of this call
    """
    log = logger or get_logger("dataex.calls")
    timer = CallTimer(event=event)

    log.debug(f"{event}.start", **fields)
    try:
        yield timer
    except Exception as e:
        timer.stop()
        log.error(
            f"{event}.error",
            **fields,
            **timer.to_log_dict(),
            error_type=type(e).__name__,
            error_message=str(e),
        )
        raise
    timer.stop()
    log.debug(f"{event}.end", **fields, **timer.to_log_dict())


__all__ = [
    "configure_logging",
    "get_logger",
    "log_call",
    "CallTimer",
]
