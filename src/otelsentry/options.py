"""Configuration for the HTTP integration."""

from __future__ import annotations

import enum
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass

UrlFilter = Callable[[str], bool]

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


class TracingMode(enum.Enum):
    """Resolved form of the ``tracing`` option."""

    DISABLED = "disabled"
    ENABLED = "enabled"
    # Decided at setup from the client's own tracing settings.
    AMBIENT = "ambient"


@dataclass(frozen=True)
class TracingOptions:
    """Tracing settings.

    Parameters
    ----------
    url_filter:
        Called with the URL of each finished HTTP span.  Returning ``False``
        drops the span.  By default every span is kept.
    """

    url_filter: UrlFilter | None = None


@dataclass(frozen=True)
class HttpOptions:
    """Options for :class:`~otelsentry.http.HttpIntegration`.

    Parameters
    ----------
    breadcrumbs:
        Record a breadcrumb for every outgoing request.
    tracing:
        ``True``/``False`` to force span creation on or off,
        a :class:`TracingOptions` to enable it with a URL filter, or ``None``
        to follow the client's tracing configuration.
    """

    breadcrumbs: bool = True
    tracing: bool | TracingOptions | None = None

    @property
    def tracing_mode(self) -> TracingMode:
        if self.tracing is None:
            return TracingMode.AMBIENT
        if isinstance(self.tracing, TracingOptions) or self.tracing:
            return TracingMode.ENABLED
        return TracingMode.DISABLED

    @property
    def url_filter(self) -> UrlFilter | None:
        if isinstance(self.tracing, TracingOptions):
            return self.tracing.url_filter
        return None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> HttpOptions:
        """Build options from the environment.

        Reads ``OTELSENTRY_HTTP_BREADCRUMBS`` and ``OTELSENTRY_HTTP_TRACING``.
        Unset variables keep the defaults.
        """
        if environ is None:
            environ = os.environ
        breadcrumbs = _parse_bool(environ, "OTELSENTRY_HTTP_BREADCRUMBS")
        tracing = _parse_bool(environ, "OTELSENTRY_HTTP_TRACING")
        return cls(
            breadcrumbs=True if breadcrumbs is None else breadcrumbs,
            tracing=tracing,
        )


def _parse_bool(environ: Mapping[str, str], name: str) -> bool | None:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return None
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    msg = f"{name} must be a boolean flag, got {raw!r}"
    raise ValueError(msg)
