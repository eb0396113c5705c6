"""Tracing for the sync routes and the buffer store.

Spans come from the OpenTelemetry API, which hands out no-op tracers until a
provider is installed, so services call ``get_tracer`` unconditionally.
"""

from opentelemetry import trace

from app.config import Settings, settings
from app.logging import get_logger

logger = get_logger(__name__)


def get_tracer(name: str) -> trace.Tracer:
    return trace.get_tracer(name)


def setup_otel(app, config: Settings = settings) -> bool:
    """Install an OTLP tracer provider and instrument FastAPI and SQLAlchemy.

    Returns False, leaving tracing off, when ``OTEL_ENABLED`` is unset or the
    ``otel`` extra is not installed.
    """
    if not config.otel_enabled:
        return False

    try:
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
        from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError:
        logger.warning("OTEL_ENABLED is set but the otel extra is not installed; tracing stays off")
        return False

    from app.db import get_engine

    endpoint = config.otel_exporter_endpoint
    exporter = OTLPSpanExporter(endpoint=f"{endpoint.rstrip('/')}/v1/traces") if endpoint else OTLPSpanExporter()
    provider = TracerProvider(resource=Resource.create({"service.name": config.otel_service_name}))
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)

    FastAPIInstrumentor.instrument_app(app)
    SQLAlchemyInstrumentor().instrument(engine=get_engine())
    logger.info("Tracing enabled for %s", config.otel_service_name)
    return True
