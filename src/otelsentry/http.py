"""HTTP integration between OpenTelemetry instrumentation and Sentry.

The integration does three things:

- drops finished HTTP spans when tracing is off or the URL filter rejects them;
- copies URL, query, fragment and status code onto the Sentry span;
- records a breadcrumb for every outgoing request.

Usage::

    from otelsentry import HttpIntegration, HttpOptions, TracingOptions
    from otelsentry.instrumentors import RequestsInstrumentation
    from otelsentry.integrations.sentry import SentryClient

    integration = HttpIntegration(
        HttpOptions(tracing=TracingOptions(url_filter=lambda url: "healthz" not in url)),
    )
    integration.setup_once(SentryClient(), RequestsInstrumentation())
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

import structlog
from opentelemetry.trace import SpanKind

from otelsentry.attributes import get_http_status_code, get_http_url, get_request_span_data
from otelsentry.events import SpanDecision
from otelsentry.options import HttpOptions, TracingMode, UrlFilter
from otelsentry.protocols import InstrumentationHooks, Instrumentor, MonitoringClient

log = structlog.get_logger("otelsentry.http")

SPAN_ORIGIN = "auto.http.otel.http"

_IGNORED_INCOMING_METHODS = frozenset({"OPTIONS", "HEAD"})


def get_request_url(request: Any) -> str | None:
    """Return the URL of *request*, or ``None`` when it cannot be determined.

    Understands client request objects (``url`` or ``full_url`` attribute) and
    ASGI scopes / WSGI environs.
    """
    if isinstance(request, Mapping):
        return _url_from_mapping(request)
    for attr in ("url", "full_url"):
        value = getattr(request, attr, None)
        if value:
            return str(value)
    return None


def get_request_method(request: Any) -> str | None:
    if isinstance(request, Mapping):
        method = request.get("method") or request.get("REQUEST_METHOD")
    else:
        method = getattr(request, "method", None)
    if isinstance(method, bytes):
        method = method.decode("latin-1")
    return method.upper() if isinstance(method, str) else None


def _url_from_mapping(scope: Mapping[str, Any]) -> str | None:
    if "REQUEST_METHOD" in scope:
        host = scope.get("HTTP_HOST") or scope.get("SERVER_NAME")
        if not host:
            return None
        path = f"{scope.get('SCRIPT_NAME', '')}{scope.get('PATH_INFO', '')}"
        query = scope.get("QUERY_STRING")
        url = f"{scope.get('wsgi.url_scheme', 'http')}://{host}{path}"
        return f"{url}?{query}" if query else url

    server = scope.get("server")
    if not server:
        return None
    host, port = server[0], server[1]
    url = f"{scope.get('scheme', 'http')}://{host}"
    if port is not None:
        url = f"{url}:{port}"
    url = f"{url}{scope.get('root_path', '')}{scope.get('path', '')}"
    query = scope.get("query_string")
    if isinstance(query, bytes):
        query = query.decode("latin-1")
    return f"{url}?{query}" if query else url


def _response_status(response: Any) -> Any:
    if isinstance(response, Mapping):
        return response.get("status")
    status = getattr(response, "status_code", None)
    if status is None:
        status = getattr(response, "status", None)
    return status


def _strip_separator(value: str) -> str:
    return value[1:]


class HttpIntegration:
    """Span admission and enrichment policy for HTTP spans.

    Parameters
    ----------
    options:
        Integration options.  Defaults to breadcrumbs on and tracing derived
        from the client.
    """

    identifier = "Http"

    def __init__(self, options: HttpOptions | None = None) -> None:
        self.options = options or HttpOptions()
        self._client: MonitoringClient | None = None
        self._should_create_spans = False
        self._url_filter: UrlFilter | None = self.options.url_filter
        self._unload: Callable[[], None] | None = None

    @property
    def should_create_spans(self) -> bool:
        return self._should_create_spans

    def setup_once(self, client: MonitoringClient, instrumentor: Instrumentor) -> None:
        """Resolve tracing settings and register hooks with *instrumentor*."""
        mode = self.options.tracing_mode
        if not self.options.breadcrumbs and mode is TracingMode.DISABLED:
            log.debug("http integration disabled")
            return

        self._client = client
        if mode is TracingMode.AMBIENT:
            self._should_create_spans = client.has_tracing_enabled()
        else:
            self._should_create_spans = mode is TracingMode.ENABLED

        self._unload = instrumentor.register(
            InstrumentationHooks(
                request_hook=self.on_request_start,
                response_hook=self.on_response_end,
                ignore_incoming_request_hook=self.ignore_incoming_request,
                ignore_outgoing_request_hook=self.ignore_outgoing_request,
            )
        )

        if self._url_filter is None:
            fallback = client.options.get("should_create_span_for_request")
            if callable(fallback):
                self._url_filter = fallback

        client.on_span_end(self.on_span_end)
        log.debug(
            "http integration installed",
            breadcrumbs=self.options.breadcrumbs,
            tracing=self._should_create_spans,
            url_filter=self._url_filter is not None,
        )

    def unregister(self) -> None:
        unload, self._unload = self._unload, None
        if unload is not None:
            unload()

    def on_span_end(self, span: Any, decision: SpanDecision) -> None:
        """Decide whether a finished span is kept."""
        if not self._should_create_spans:
            decision.drop = True
            return

        # Outgoing requests are only traced inside an existing trace.
        if span.kind == SpanKind.CLIENT and getattr(span, "parent", None) is None:
            log.debug("outgoing span without parent dropped", name=getattr(span, "name", None))
            decision.drop = True
            return

        if self._url_filter is not None:
            url = get_http_url(getattr(span, "attributes", None))
            if url and not self._url_filter(url):
                log.debug("span rejected by url filter", url=url)
                decision.drop = True

    def on_request_start(self, span: Any, request: Any) -> None:
        try:
            self._update_monitoring_span(span, request)
        except Exception:
            log.exception("failed to enrich http span")

    def on_response_end(self, span: Any, response: Any) -> None:
        try:
            self._add_request_breadcrumb(span, response)
        except Exception:
            log.exception("failed to record http breadcrumb")

    def ignore_incoming_request(self, request: Any) -> bool:
        # OPTIONS/HEAD requests do not become transactions.
        return get_request_method(request) in _IGNORED_INCOMING_METHODS

    def ignore_outgoing_request(self, request: Any) -> bool:
        url = get_request_url(request)
        if not url or self._client is None:
            return False
        try:
            return self._client.is_monitoring_url(url)
        except Exception:
            log.exception("failed to check monitoring url", url=url)
            return False

    def _update_monitoring_span(self, span: Any, request: Any) -> None:
        if self._client is None:
            return
        monitoring_span = self._client.get_span(span.get_span_context().span_id)
        if monitoring_span is None:
            log.debug("no monitoring span", span_name=getattr(span, "name", None))
            return

        monitoring_span.origin = SPAN_ORIGIN

        if monitoring_span.is_transaction and span.kind == SpanKind.SERVER:
            monitoring_span.set_request(request)

        data = get_request_span_data(span)
        additional_data: dict[str, Any] = {"url": data["url"]}
        if "http.method" in data:
            additional_data["http.method"] = data["http.method"]

        status_code = get_http_status_code(span.attributes)
        if status_code:
            additional_data["http.response.status_code"] = status_code
            monitoring_span.set_tag("http.status_code", status_code)

        if data.get("http.query"):
            additional_data["http.query"] = _strip_separator(data["http.query"])
        if data.get("http.fragment"):
            additional_data["http.fragment"] = _strip_separator(data["http.fragment"])

        for key, value in additional_data.items():
            monitoring_span.set_data(key, value)

    def _add_request_breadcrumb(self, span: Any, response: Any) -> None:
        if not self.options.breadcrumbs or span.kind != SpanKind.CLIENT:
            return
        if self._client is None:
            return

        data: dict[str, Any] = {"status_code": _response_status(response)}
        for key, value in get_request_span_data(span).items():
            if key in ("http.query", "http.fragment"):
                value = _strip_separator(value)
            data[key] = value

        self._client.add_breadcrumb(
            {"category": "http", "type": "http", "data": data},
            {"event": "response", "response": response},
        )
