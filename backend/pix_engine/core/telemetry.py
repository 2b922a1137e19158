"""Inicialização opcional de OpenTelemetry."""

from __future__ import annotations

from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased

from pix_engine.config import get_settings
from pix_engine.core.logging import get_logger

settings = get_settings()
logger = get_logger(__name__)


def _build_exporter() -> Any:
    if settings.otel_exporter == "otlp":
        return OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint)
    return ConsoleSpanExporter()


def init_telemetry(app: Any, engine: Any = None) -> bool:
    """Ativa instrumentação OpenTelemetry se configurada.

    Falha de instrumentação é registrada e não impede o boot da API.
    Retorna ``True`` quando a instrumentação foi ativada.
    """
    if not settings.otel_enabled:
        return False

    provider = TracerProvider(
        resource=Resource.create(
            {
                "service.name": settings.otel_service_name,
                "service.version": settings.app_version,
                "deployment.environment": settings.environment,
            }
        ),
        sampler=TraceIdRatioBased(settings.otel_sampling_ratio),
    )
    provider.add_span_processor(BatchSpanProcessor(_build_exporter()))
    trace.set_tracer_provider(provider)

    try:
        FastAPIInstrumentor().instrument_app(
            app,
            tracer_provider=provider,
            server_request_hook=_on_request_start,
        )
        if engine is not None:
            SQLAlchemyInstrumentor().instrument(
                engine=engine.sync_engine,
                tracer_provider=provider,
            )
    except Exception as exc:
        logger.warning("otel_instrumentation_failed", error=str(exc))
        return False

    logger.info("otel_instrumentation_enabled", exporter=settings.otel_exporter)
    return True


def _on_request_start(span, scope):  # pragma: no cover
    if span is None or not span.is_recording():
        return
    query = dict(
        pair.split("=", 1)
        for pair in scope.get("query_string", b"").decode("latin-1").split("&")
        if "=" in pair
    )
    for key in ("tenant_id", "partner_id"):
        if query.get(key):
            span.set_attribute(f"pix.{key}", query[key])
