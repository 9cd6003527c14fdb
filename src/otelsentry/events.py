"""Span-completed event dispatch.

:class:`SpanEndDispatcher` is an OpenTelemetry ``SpanProcessor`` that wraps
another processor.  When a span ends, every registered listener receives the
span together with a mutable :class:`SpanDecision`; the span reaches the
wrapped processor only if no listener set ``drop``.

Usage::

    from sentry_sdk.integrations.opentelemetry import SentrySpanProcessor

    dispatcher = SpanEndDispatcher(SentrySpanProcessor())
    provider.add_span_processor(dispatcher)
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeAlias

import structlog
from opentelemetry.context import Context
from opentelemetry.sdk.trace import ReadableSpan, Span, SpanProcessor

log = structlog.get_logger("otelsentry.events")


@dataclass
class SpanDecision:
    """Mutable outcome of the span-completed event."""

    drop: bool = False


SpanEndListener: TypeAlias = Callable[[ReadableSpan, SpanDecision], None]


class SpanEndDispatcher(SpanProcessor):
    """Notify listeners when a span ends and forward kept spans.

    Parameters
    ----------
    wrapped:
        Processor receiving the spans that were not dropped.  ``None`` turns
        the dispatcher into a pure event source.
    """

    def __init__(self, wrapped: SpanProcessor | None = None) -> None:
        self._wrapped = wrapped
        self._listeners: list[SpanEndListener] = []
        self._lock = threading.Lock()

    def add_listener(self, listener: SpanEndListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: SpanEndListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def on_start(self, span: Span, parent_context: Context | None = None) -> None:
        if self._wrapped is not None:
            self._wrapped.on_start(span, parent_context=parent_context)

    def on_end(self, span: ReadableSpan) -> None:
        decision = self.emit(span)
        if decision.drop:
            log.debug("span dropped", span_name=span.name)
            return
        if self._wrapped is not None:
            self._wrapped.on_end(span)

    def emit(self, span: ReadableSpan) -> SpanDecision:
        """Run all listeners for *span* and return the resulting decision."""
        with self._lock:
            listeners = list(self._listeners)

        decision = SpanDecision()
        for listener in listeners:
            try:
                listener(span, decision)
            except Exception:
                log.exception("span end listener failed", span_name=span.name)
        return decision

    def shutdown(self) -> None:
        if self._wrapped is not None:
            self._wrapped.shutdown()

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        if self._wrapped is None:
            return True
        return self._wrapped.force_flush(timeout_millis)
