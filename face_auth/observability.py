"""
Tracing and metrics for the facial authentication service.

Everything here is a no-op until `setup_observability` has run, so the
services and tests can call the recorders unconditionally.
"""

from functools import wraps
from typing import Any, Callable, Dict, Optional

import structlog
from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import ConsoleMetricExporter, PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

logger = structlog.get_logger()

METRIC_EXPORT_INTERVAL_MS = 30000

# name -> (kind, description, unit)
INSTRUMENTS = {
    "http_requests_total": ("counter", "HTTP requests served", "1"),
    "http_errors_total": ("counter", "HTTP responses with status >= 400", "1"),
    "http_request_duration_seconds": ("histogram", "Request and operation latency", "s"),
    "face_enrollments_total": ("counter", "Face enrollment attempts", "1"),
    "face_logins_total": ("counter", "Face login attempts", "1"),
    "face_match_score": ("histogram", "Best composite score of each face login search", "1"),
}

tracer: Optional[trace.Tracer] = None
instruments: Dict[str, Any] = {}


def setup_observability(
    service_name: str,
    service_version: str,
    otlp_endpoint: Optional[str] = None,
    enable_console_export: bool = False
) -> None:
    """
    Install the tracer and meter providers and create the service instruments.

    Spans and metrics go to the OTLP collector at `otlp_endpoint` and, for
    local runs, to stdout. With neither configured they are still created
    but never exported.
    """
    global tracer

    resource = Resource.create({"service.name": service_name, "service.version": service_version})

    span_exporters = []
    metric_exporters = []
    if otlp_endpoint:
        span_exporters.append(OTLPSpanExporter(endpoint=otlp_endpoint))
        metric_exporters.append(OTLPMetricExporter(endpoint=otlp_endpoint))
    if enable_console_export:
        span_exporters.append(ConsoleSpanExporter())
        metric_exporters.append(ConsoleMetricExporter())

    trace_provider = TracerProvider(resource=resource)
    for exporter in span_exporters:
        trace_provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(trace_provider)
    tracer = trace.get_tracer(__name__)

    readers = [
        PeriodicExportingMetricReader(exporter=exporter, export_interval_millis=METRIC_EXPORT_INTERVAL_MS)
        for exporter in metric_exporters
    ]
    metrics.set_meter_provider(MeterProvider(resource=resource, metric_readers=readers))
    create_instruments(metrics.get_meter(__name__))

    logger.info(
        "Observability configured",
        service_name=service_name,
        otlp_endpoint=otlp_endpoint,
        console_export=enable_console_export
    )


def create_instruments(meter: metrics.Meter) -> None:
    for name, (kind, description, unit) in INSTRUMENTS.items():
        factory = meter.create_counter if kind == "counter" else meter.create_histogram
        instruments[name] = factory(name=name, description=description, unit=unit)


def instrument_fastapi_app(app) -> None:
    if tracer is None:
        logger.warning("Skipping FastAPI instrumentation, observability is not configured")
        return

    FastAPIInstrumentor.instrument_app(app)
    # Supabase and GoTrue both talk over httpx
    HTTPXClientInstrumentor().instrument()
    LoggingInstrumentor().instrument(set_logging_format=True)


def trace_function(operation_name: str):
    """Run an async endpoint inside a span named `operation_name`."""
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            if tracer is None:
                return await func(*args, **kwargs)

            with tracer.start_as_current_span(operation_name) as span:
                span.set_attribute("face_auth.operation", operation_name)
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    span.record_exception(e)
                    span.set_attribute("error.type", type(e).__name__)
                    raise

        return wrapper

    return decorator


def _record(name: str, value: float, attributes: Dict[str, str]) -> None:
    instrument = instruments.get(name)
    if instrument is None:
        return
    if isinstance(instrument, metrics.Counter):
        instrument.add(value, attributes)
    else:
        instrument.record(value, attributes)


def record_enrollment_metrics(
    success: bool,
    processing_time: float,
    stored_count: int = 0,
    failure_kind: Optional[str] = None
) -> None:
    attributes = {"operation": "face_enrollment", "success": str(success).lower()}
    if failure_kind:
        attributes["failure_kind"] = failure_kind

    _record("face_enrollments_total", 1, attributes)
    _record("http_request_duration_seconds", processing_time, attributes)
    logger.debug("Enrollment recorded", stored_count=stored_count, **attributes)


def record_face_login_metrics(
    success: bool,
    processing_time: float,
    best_score: Optional[float],
    reason: str
) -> None:
    """
    Count a face login attempt.

    `best_score` is None when no candidate could be scored, in which case
    the score histogram is left alone.
    """
    attributes = {"operation": "face_login", "success": str(success).lower(), "reason": reason}

    _record("face_logins_total", 1, attributes)
    _record("http_request_duration_seconds", processing_time, attributes)
    if best_score is not None:
        _record("face_match_score", best_score, {"success": attributes["success"]})


def record_http_metrics(method: str, path: str, status_code: int, processing_time: float) -> None:
    attributes = {"method": method, "path": path, "status_code": str(status_code)}

    _record("http_requests_total", 1, attributes)
    _record("http_request_duration_seconds", processing_time, attributes)
    if status_code >= 400:
        error_class = "client_error" if status_code < 500 else "server_error"
        _record("http_errors_total", 1, {**attributes, "error_type": error_class})


def current_trace_ids() -> Dict[str, str]:
    span_context = trace.get_current_span().get_span_context()
    if not span_context.is_valid:
        return {}
    return {
        "trace_id": format(span_context.trace_id, "032x"),
        "span_id": format(span_context.span_id, "016x"),
    }


class TracingContextMiddleware:
    """ASGI middleware binding the active trace ids into the structlog context."""

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] == "http":
            structlog.contextvars.bind_contextvars(**current_trace_ids())
        await self.app(scope, receive, send)
