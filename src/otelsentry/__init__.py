"""otelsentry — OpenTelemetry HTTP spans and breadcrumbs for Sentry."""

from otelsentry.config import add_otel_context, configure_logging, setup_logging
from otelsentry.events import SpanDecision, SpanEndDispatcher
from otelsentry.http import HttpIntegration
from otelsentry.options import HttpOptions, TracingMode, TracingOptions

__version__ = "0.1.0"

__all__ = [
    "HttpIntegration",
    "HttpOptions",
    "SpanDecision",
    "SpanEndDispatcher",
    "TracingMode",
    "TracingOptions",
    "add_otel_context",
    "configure_logging",
    "setup_logging",
]
