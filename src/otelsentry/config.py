"""Structured logging setup for otelsentry.

All otelsentry modules log through :mod:`structlog`.  By default structlog
prints to stdout; applications that want JSON lines routed through the
stdlib :mod:`logging` tree call :func:`configure_logging` (or
:func:`setup_logging` to read the environment).

Log records carry ``timestamp``, ``level``, ``logger``, ``message`` and, when
emitted inside a span, ``trace_id``/``span_id``/``trace_flags``.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import orjson
import structlog
from opentelemetry import trace
from structlog.contextvars import merge_contextvars


def _orjson_serializer(obj: object, **_kw: object) -> str:
    return orjson.dumps(obj, default=repr).decode()


def _to_logging_level(level_name: str) -> int:
    upper_level = level_name.upper()
    if upper_level == "WARN":
        return logging.WARNING
    result: int = getattr(logging, upper_level, logging.INFO)
    return result


def add_otel_context(
    _logger: Any,
    _method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Add the current OpenTelemetry span context to the event dict."""
    ctx = trace.get_current_span().get_span_context()
    if ctx.is_valid:
        event_dict.setdefault("trace_id", format(ctx.trace_id, "032x"))
        event_dict.setdefault("span_id", format(ctx.span_id, "016x"))
        event_dict.setdefault("trace_flags", int(ctx.trace_flags))
    return event_dict


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
        add_otel_context,  # type: ignore[list-item]
        structlog.processors.StackInfoRenderer(),
        structlog.processors.EventRenamer("message"),
    ]


def configure_logging(
    *,
    level: str = "INFO",
    json_logs: bool = True,
    stream: Any = None,
    logger_name: str = "otelsentry",
) -> logging.Handler:
    """Route structlog output through a stdlib handler on *logger_name*.

    Parameters
    ----------
    level:
        Minimum log level (e.g. ``"DEBUG"``).
    json_logs:
        ``True`` for JSON lines, ``False`` for the console renderer.
    stream:
        Output stream.  Defaults to ``sys.stderr``.
    logger_name:
        Stdlib logger receiving the records.  Returns the installed handler.
    """
    if stream is None:
        stream = sys.stderr

    shared = _shared_processors()
    structlog.configure(
        processors=[
            *shared,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer(serializer=_orjson_serializer)
        if json_logs
        else structlog.dev.ConsoleRenderer(event_key="message")
    )
    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
        foreign_pre_chain=shared,
    )

    handler = logging.StreamHandler(stream)
    handler.setFormatter(formatter)

    target = logging.getLogger(logger_name)
    target.setLevel(_to_logging_level(level))
    target.addHandler(handler)
    return handler


def setup_logging() -> logging.Handler:
    """Configure logging from ``OTELSENTRY_LOG_LEVEL`` and ``OTELSENTRY_JSON_LOGS``."""
    level = os.environ.get("OTELSENTRY_LOG_LEVEL", "INFO")
    json_logs = os.environ.get("OTELSENTRY_JSON_LOGS", "1") != "0"
    return configure_logging(level=level, json_logs=json_logs)
