"""HTTP span attribute access.

Reads URL, method and status code from OpenTelemetry span attributes.  Both
the legacy (``http.url``) and the stable (``url.full``) HTTP semantic
conventions are understood, since instrumentations in the wild emit either.

:func:`get_request_span_data` derives the request record used for span data
and breadcrumbs::

    {"url": "http://host/path?a=1#top", "http.query": "?a=1", "http.fragment": "#top"}
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from urllib.parse import urlsplit

HTTP_URL = "http.url"
URL_FULL = "url.full"
HTTP_METHOD = "http.method"
HTTP_REQUEST_METHOD = "http.request.method"
HTTP_STATUS_CODE = "http.status_code"
HTTP_RESPONSE_STATUS_CODE = "http.response.status_code"

_URL_KEYS = (HTTP_URL, URL_FULL)
_METHOD_KEYS = (HTTP_METHOD, HTTP_REQUEST_METHOD)
_STATUS_CODE_KEYS = (HTTP_STATUS_CODE, HTTP_RESPONSE_STATUS_CODE)


def _first(attributes: Mapping[str, Any] | None, keys: tuple[str, ...]) -> Any:
    if not attributes:
        return None
    for key in keys:
        value = attributes.get(key)
        if value is not None:
            return value
    return None


def get_http_url(attributes: Mapping[str, Any] | None) -> str | None:
    """Return the HTTP URL attribute, or ``None`` if absent or not a string."""
    url = _first(attributes, _URL_KEYS)
    return url if isinstance(url, str) else None


def get_http_method(attributes: Mapping[str, Any] | None) -> str | None:
    method = _first(attributes, _METHOD_KEYS)
    return method if isinstance(method, str) else None


def get_http_status_code(attributes: Mapping[str, Any] | None) -> Any:
    return _first(attributes, _STATUS_CODE_KEYS)


def get_request_span_data(span: Any) -> dict[str, Any]:
    """Build the request record for *span*.

    ``url`` is always present.  ``http.query`` and ``http.fragment`` keep
    their leading ``?`` / ``#`` and are only set when non-empty.
    """
    attributes = getattr(span, "attributes", None)
    url = get_http_url(attributes)
    data: dict[str, Any] = {"url": url or ""}

    method = get_http_method(attributes)
    if method:
        data["http.method"] = method

    if not url:
        return data

    try:
        parts = urlsplit(url)
    except ValueError:
        return data

    if parts.query:
        data["http.query"] = f"?{parts.query}"
    if parts.fragment:
        data["http.fragment"] = f"#{parts.fragment}"
    return data
