"""Instrumentation hosts that drive the integration hooks.

:class:`RequestsInstrumentation` wires the hooks into
``opentelemetry-instrumentation-requests`` (imported lazily).
:class:`CallbackInstrumentation` is a host for code that creates its own HTTP
spans and calls the hooks directly.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import structlog

from otelsentry.protocols import InstrumentationHooks

log = structlog.get_logger("otelsentry.instrumentors")


class RequestsInstrumentation:
    """Register hooks with ``opentelemetry-instrumentation-requests``.

    Requests to the monitoring endpoint itself are neither enriched nor
    recorded as breadcrumbs.
    """

    def register(self, hooks: InstrumentationHooks) -> Callable[[], None]:
        try:
            from opentelemetry.instrumentation.requests import RequestsInstrumentor
        except ImportError:
            log.warning(
                "requests instrumentation not installed",
                package="opentelemetry-instrumentation-requests",
            )
            return lambda: None

        def _request_hook(span: Any, request: Any) -> None:
            if not hooks.ignore_outgoing_request_hook(request):
                hooks.request_hook(span, request)

        def _response_hook(span: Any, request: Any, response: Any) -> None:
            if not hooks.ignore_outgoing_request_hook(request):
                hooks.response_hook(span, response)

        instrumentor = RequestsInstrumentor()
        instrumentor.instrument(request_hook=_request_hook, response_hook=_response_hook)
        log.info("requests instrumentation enabled")

        def _unload() -> None:
            instrumentor.uninstrument()
            log.info("requests instrumentation disabled")

        return _unload


class CallbackInstrumentation:
    """In-process host exposing the registered hooks as plain methods.

    Calls made before :meth:`register` or after unloading are ignored.
    """

    def __init__(self) -> None:
        self._hooks: InstrumentationHooks | None = None

    @property
    def active(self) -> bool:
        return self._hooks is not None

    def register(self, hooks: InstrumentationHooks) -> Callable[[], None]:
        self._hooks = hooks

        def _unload() -> None:
            if self._hooks is hooks:
                self._hooks = None

        return _unload

    def should_ignore(self, request: Any, *, incoming: bool) -> bool:
        if self._hooks is None:
            return False
        if incoming:
            return self._hooks.ignore_incoming_request_hook(request)
        return self._hooks.ignore_outgoing_request_hook(request)

    def request_started(self, span: Any, request: Any) -> None:
        if self._hooks is not None:
            self._hooks.request_hook(span, request)

    def response_finished(self, span: Any, response: Any) -> None:
        if self._hooks is not None:
            self._hooks.response_hook(span, response)
