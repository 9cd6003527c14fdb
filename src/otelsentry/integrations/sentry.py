"""Sentry client adapter.

Implements :class:`~otelsentry.protocols.MonitoringClient` on top of
``sentry_sdk``.  Every call degrades to a no-op when ``sentry-sdk`` is not
installed.

Usage::

    from opentelemetry.sdk.trace import TracerProvider

    from otelsentry.integrations.sentry import SentryClient

    client = SentryClient()
    provider = TracerProvider()
    provider.add_span_processor(client.dispatcher)
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from collections.abc import Mapping
from typing import Any

import structlog
from opentelemetry.sdk.trace import SpanProcessor

from otelsentry.events import SpanEndDispatcher, SpanEndListener
from otelsentry.http import get_request_method, get_request_url

log = structlog.get_logger("otelsentry.integrations.sentry")


def _default_span_processor() -> SpanProcessor | None:
    try:
        from sentry_sdk.integrations.opentelemetry.span_processor import SentrySpanProcessor
    except ImportError:
        return None
    return SentrySpanProcessor()  # type: ignore[no-any-return]


def _request_headers(request: Any) -> dict[str, str]:
    if isinstance(request, Mapping):
        if "REQUEST_METHOD" in request:
            return {
                key[5:].replace("_", "-").title(): str(value)
                for key, value in request.items()
                if key.startswith("HTTP_")
            }
        headers: dict[str, str] = {}
        for key, value in request.get("headers", []):
            if isinstance(key, bytes):
                key = key.decode("latin-1")
            if isinstance(value, bytes):
                value = value.decode("latin-1")
            headers[key] = value
        return headers
    raw = getattr(request, "headers", None)
    if raw is None:
        return {}
    try:
        return {str(k): str(v) for k, v in dict(raw).items()}
    except (TypeError, ValueError):
        return {}


def _request_info(request: Any) -> dict[str, Any]:
    info: dict[str, Any] = {"headers": _request_headers(request)}
    method = get_request_method(request)
    if method:
        info["method"] = method
    url = get_request_url(request)
    if url:
        info["url"] = url
    return info


class _PendingRequests:
    """Request details waiting for their transaction event, keyed by span id.

    Bounded so that transactions which are never sent (sampled out, dropped)
    do not accumulate.
    """

    def __init__(self, maxsize: int = 1000) -> None:
        self._maxsize = maxsize
        self._items: OrderedDict[str, dict[str, Any]] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def add(self, span_id: str, info: dict[str, Any]) -> None:
        with self._lock:
            self._items[span_id] = info
            self._items.move_to_end(span_id)
            while len(self._items) > self._maxsize:
                self._items.popitem(last=False)

    def pop(self, span_id: Any) -> dict[str, Any] | None:
        with self._lock:
            return self._items.pop(span_id, None)


_pending_requests = _PendingRequests()
_install_lock = threading.Lock()


def attach_request_info(event: dict[str, Any], _hint: dict[str, Any]) -> dict[str, Any]:
    """Event processor adding queued request details to transaction events."""
    if event.get("type") != "transaction":
        return event
    span_id = event.get("contexts", {}).get("trace", {}).get("span_id")
    info = _pending_requests.pop(span_id)
    if info:
        request_data = event.setdefault("request", {})
        for key, value in info.items():
            request_data.setdefault(key, value)
    return event


def _install_request_processor() -> None:
    """Register :func:`attach_request_info` once per process."""
    try:
        from sentry_sdk.scope import add_global_event_processor, global_event_processors
    except ImportError:
        return
    with _install_lock:
        if attach_request_info not in global_event_processors:
            add_global_event_processor(attach_request_info)


class SentrySpan:
    """Wrap a ``sentry_sdk`` span as a :class:`~otelsentry.protocols.MonitoringSpan`."""

    def __init__(self, span: Any) -> None:
        self._span = span

    @property
    def origin(self) -> str | None:
        return getattr(self._span, "origin", None)

    @origin.setter
    def origin(self, value: str | None) -> None:
        self._span.origin = value

    @property
    def is_transaction(self) -> bool:
        try:
            from sentry_sdk.tracing import Transaction
        except ImportError:
            return False
        return isinstance(self._span, Transaction)

    def set_tag(self, key: str, value: Any) -> None:
        self._span.set_tag(key, value)

    def set_data(self, key: str, value: Any) -> None:
        self._span.set_data(key, value)

    def set_request(self, request: Any) -> None:
        """Queue request details for this transaction's event."""
        _pending_requests.add(self._span.span_id, _request_info(request))


class SentryClient:
    """Monitoring client backed by the active ``sentry_sdk`` client.

    Parameters
    ----------
    dispatcher:
        Span-completed event source.  By default a
        :class:`~otelsentry.events.SpanEndDispatcher` wrapping Sentry's
        OpenTelemetry ``SentrySpanProcessor``, so dropped spans never reach
        Sentry.
    """

    def __init__(self, dispatcher: SpanEndDispatcher | None = None) -> None:
        self.dispatcher = dispatcher or SpanEndDispatcher(_default_span_processor())
        _install_request_processor()

    @property
    def options(self) -> Mapping[str, Any]:
        try:
            import sentry_sdk
        except ImportError:
            return {}
        return sentry_sdk.get_client().options or {}

    def has_tracing_enabled(self) -> bool:
        try:
            from sentry_sdk.tracing_utils import has_tracing_enabled
        except ImportError:
            return False
        return bool(has_tracing_enabled(dict(self.options)))

    def get_span(self, span_id: int) -> SentrySpan | None:
        try:
            from sentry_sdk.integrations.opentelemetry.span_processor import SentrySpanProcessor
        except ImportError:
            return None
        span = SentrySpanProcessor().otel_span_map.get(format(span_id, "016x"))
        return SentrySpan(span) if span is not None else None

    def add_breadcrumb(self, crumb: dict[str, Any], hint: dict[str, Any]) -> None:
        try:
            import sentry_sdk
        except ImportError:
            return
        sentry_sdk.add_breadcrumb(crumb, hint=hint)

    def is_monitoring_url(self, url: str) -> bool:
        try:
            import sentry_sdk
            from sentry_sdk.utils import is_sentry_url
        except ImportError:
            return False
        return bool(is_sentry_url(sentry_sdk.get_client(), url))

    def on_span_end(self, listener: SpanEndListener) -> None:
        self.dispatcher.add_listener(listener)
