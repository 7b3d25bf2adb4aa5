"""
OpenTelemetry Configuration.

Traces API requests, database statements and every call made to the
workload orchestrator. Tracing is only switched on in production when an
OTLP collector endpoint is configured.
"""

import functools
import inspect

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource, SERVICE_NAME, SERVICE_VERSION
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from baktaforge.config import Settings
from baktaforge.core.logging import get_logger

logger = get_logger(__name__)

TRACER_NAME = "baktaforge.orchestrator"


def setup_telemetry(settings: Settings, otlp_endpoint: str, app=None, engine=None) -> None:
    """
    Export traces to an OTLP collector.

    Args:
        settings: Application settings, used for the service resource
        otlp_endpoint: Collector endpoint (e.g., "http://otel-collector:4317")
        app: FastAPI application to instrument
        engine: Async SQLAlchemy engine to instrument
    """
    resource = Resource.create({
        SERVICE_NAME: settings.app_name.lower(),
        SERVICE_VERSION: settings.backend_version or settings.app_version,
        "deployment.environment": settings.env,
        "k8s.namespace.name": settings.orchestrator.namespace,
    })

    provider = TracerProvider(resource=resource)
    provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True))
    )
    trace.set_tracer_provider(provider)

    if app is not None:
        FastAPIInstrumentor.instrument_app(app, excluded_urls="health")
    if engine is not None:
        SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)

    logger.info("Telemetry configured", endpoint=otlp_endpoint)


def traced(operation: str):
    """
    Trace an async orchestrator method.

    The span carries the operation and, when the first argument after
    ``self`` is a workload name, that name.

    Usage:
        @traced("orchestrator.delete_workload")
        async def delete_workload(self, name):
            ...
    """
    def decorator(func):
        if not inspect.iscoroutinefunction(func):
            raise TypeError(f"traced expects a coroutine function, got {func.__name__}")

        @functools.wraps(func)
        async def wrapper(self, *args, **kwargs):
            tracer = trace.get_tracer(TRACER_NAME)
            with tracer.start_as_current_span(operation) as span:
                span.set_attribute("orchestrator.operation", operation)
                if args and isinstance(args[0], str):
                    span.set_attribute("workload.name", args[0])
                try:
                    return await func(self, *args, **kwargs)
                except Exception as e:
                    span.record_exception(e)
                    span.set_status(trace.Status(trace.StatusCode.ERROR))
                    raise

        return wrapper

    return decorator
