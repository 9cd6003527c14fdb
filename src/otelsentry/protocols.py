"""Contracts for the collaborators of the HTTP integration.

The integration never reaches for global SDK state.  It talks to a
:class:`MonitoringClient` handed to it at setup and registers its hooks with
an :class:`Instrumentor`.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from otelsentry.events import SpanEndListener


@runtime_checkable
class MonitoringSpan(Protocol):
    """The monitoring-side counterpart of an OpenTelemetry span."""

    origin: str | None

    @property
    def is_transaction(self) -> bool: ...

    def set_tag(self, key: str, value: Any) -> None: ...

    def set_data(self, key: str, value: Any) -> None: ...

    def set_request(self, request: Any) -> None:
        """Attach the raw request to a transaction."""
        ...


@runtime_checkable
class MonitoringClient(Protocol):
    @property
    def options(self) -> Mapping[str, Any]: ...

    def has_tracing_enabled(self) -> bool: ...

    def get_span(self, span_id: int) -> MonitoringSpan | None: ...

    def add_breadcrumb(self, crumb: dict[str, Any], hint: dict[str, Any]) -> None: ...

    def is_monitoring_url(self, url: str) -> bool: ...

    def on_span_end(self, listener: SpanEndListener) -> None: ...


@dataclass(frozen=True)
class InstrumentationHooks:
    """Callbacks handed to an instrumentation host."""

    request_hook: Callable[[Any, Any], None]
    response_hook: Callable[[Any, Any], None]
    ignore_incoming_request_hook: Callable[[Any], bool]
    ignore_outgoing_request_hook: Callable[[Any], bool]


class Instrumentor(Protocol):
    def register(self, hooks: InstrumentationHooks) -> Callable[[], None]:
        """Install *hooks* and return a callable that removes them."""
        ...
