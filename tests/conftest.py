"""Shared fixtures for otelsentry tests."""

from __future__ import annotations

import logging
from typing import Any
from unittest.mock import MagicMock

import pytest
import structlog
from opentelemetry.trace import SpanKind

from otelsentry.events import SpanEndListener


class FakeClient:
    """In-memory :class:`~otelsentry.protocols.MonitoringClient`."""

    def __init__(
        self,
        *,
        tracing_enabled: bool = True,
        options: dict[str, Any] | None = None,
        monitoring_host: str = "o1.ingest.sentry.io",
    ) -> None:
        self.options: dict[str, Any] = options or {}
        self.tracing_enabled = tracing_enabled
        self.tracing_checks = 0
        self.monitoring_host = monitoring_host
        self.spans: dict[int, Any] = {}
        self.breadcrumbs: list[tuple[dict[str, Any], dict[str, Any]]] = []
        self.listeners: list[SpanEndListener] = []

    def has_tracing_enabled(self) -> bool:
        self.tracing_checks += 1
        return self.tracing_enabled

    def get_span(self, span_id: int) -> Any:
        return self.spans.get(span_id)

    def add_breadcrumb(self, crumb: dict[str, Any], hint: dict[str, Any]) -> None:
        self.breadcrumbs.append((crumb, hint))

    def is_monitoring_url(self, url: str) -> bool:
        return self.monitoring_host in url

    def on_span_end(self, listener: SpanEndListener) -> None:
        self.listeners.append(listener)


def _make_span(
    attributes: dict[str, Any] | None = None,
    *,
    kind: SpanKind = SpanKind.CLIENT,
    span_id: int = 0x00F067AA0BA902B7,
) -> MagicMock:
    span = MagicMock()
    span.name = "GET"
    span.kind = kind
    span.attributes = attributes or {}
    span.get_span_context.return_value.span_id = span_id
    return span


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()


@pytest.fixture(autouse=True)
def _reset_logging() -> None:  # type: ignore[misc]
    """Remove handlers added to the ``otelsentry`` logger by a test."""
    target = logging.getLogger("otelsentry")
    original_handlers = list(target.handlers)
    original_level = target.level

    yield  # type: ignore[misc]

    target.handlers[:] = original_handlers
    target.setLevel(original_level)


@pytest.fixture(autouse=True)
def _reset_structlog() -> None:  # type: ignore[misc]
    yield  # type: ignore[misc]
    structlog.reset_defaults()


@pytest.fixture
def make_span() -> Any:
    return _make_span
