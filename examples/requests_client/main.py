"""Outgoing ``requests`` calls traced into Sentry with otelsentry."""

from __future__ import annotations

import requests
import sentry_sdk
from opentelemetry import trace
from opentelemetry.propagate import set_global_textmap
from opentelemetry.sdk.trace import TracerProvider
from sentry_sdk.integrations.opentelemetry import SentryPropagator

from otelsentry import HttpIntegration, HttpOptions, TracingOptions, setup_logging
from otelsentry.instrumentors import RequestsInstrumentation
from otelsentry.integrations.sentry import SentryClient

# 1. Logging
setup_logging()

# 2. Sentry with OpenTelemetry as the span source
sentry_sdk.init(
    dsn="https://public@o1.ingest.sentry.io/1",
    traces_sample_rate=1.0,
    instrumenter="otel",
)

# 3. Tracer provider; the dispatcher decides which spans reach Sentry
client = SentryClient()
provider = TracerProvider()
provider.add_span_processor(client.dispatcher)
trace.set_tracer_provider(provider)
set_global_textmap(SentryPropagator())

# 4. HTTP integration: no spans for health checks
integration = HttpIntegration(
    HttpOptions(tracing=TracingOptions(url_filter=lambda url: "healthz" not in url)),
)
integration.setup_once(client, RequestsInstrumentation())

tracer = trace.get_tracer("example")

if __name__ == "__main__":
    with tracer.start_as_current_span("checkout"):
        requests.get("https://httpbin.org/get?item=42#details", timeout=10)
        requests.get("https://httpbin.org/status/200?check=healthz", timeout=10)
    integration.unregister()
