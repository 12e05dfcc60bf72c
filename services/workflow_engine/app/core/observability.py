"""
Prometheus and (optional) OpenTelemetry wiring for the FastAPI app.

Approval counters live in ``core.metrics``; this module only mounts the
HTTP request instrumentation and the ``/metrics`` scrape route.
"""
from typing import Optional

from starlette_exporter import PrometheusMiddleware, handle_metrics

try:
    from opentelemetry import trace
    from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
    from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor

    _HAS_OTEL = True
except ImportError:  # pragma: no cover - tracing extra not installed
    _HAS_OTEL = False

from .logging import get_logger

logger = get_logger(__name__)

# Probes would otherwise dominate the request histograms
UNMEASURED_PATHS = ["/health", "/metrics"]


def add_prometheus(app, app_name: str) -> None:
    app.add_middleware(
        PrometheusMiddleware,
        app_name=app_name,
        prefix=app_name,
        group_paths=True,
        filter_unhandled_paths=True,
        skip_paths=UNMEASURED_PATHS,
    )
    app.add_route("/metrics", handle_metrics)


def add_tracing(app, service_name: str, version: str, endpoint: Optional[str]) -> bool:
    """Export request spans over OTLP/HTTP. Returns False when tracing is unavailable."""
    if not _HAS_OTEL:
        logger.warning("tracing.unavailable", reason="opentelemetry packages not installed")
        return False
    if not endpoint:
        logger.warning("tracing.disabled", reason="no OTLP endpoint configured")
        return False
    provider = TracerProvider(
        resource=Resource.create({"service.name": service_name, "service.version": version})
    )
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
    trace.set_tracer_provider(provider)
    FastAPIInstrumentor.instrument_app(app, excluded_urls=",".join(UNMEASURED_PATHS))
    logger.info("tracing.enabled", endpoint=endpoint)
    return True
