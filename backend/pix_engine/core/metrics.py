"""Métricas leves de execução (Prometheus) em registry próprio."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, CONTENT_TYPE_LATEST, generate_latest, Histogram
from prometheus_client import Counter

from pix_engine.config import get_settings

__all__ = [
    "CONTENT_TYPE_LATEST",
    "get_metrics_payload",
    "is_enabled",
    "record_fee_computation",
    "record_http_request",
    "record_route_resolution",
    "record_rule_skipped",
]

settings = get_settings()

_registry = CollectorRegistry()
_http_requests_total = None
_http_request_duration_seconds = None
_pix_route_resolutions_total = None
_pix_rule_skips_total = None
_pix_fee_computations_total = None


def _build_metrics() -> None:
    global _http_requests_total, _http_request_duration_seconds
    global _pix_route_resolutions_total, _pix_rule_skips_total, _pix_fee_computations_total

    if _http_requests_total is not None:
        return

    _http_requests_total = Counter(
        "http_requests_total",
        "Total de requisições HTTP",
        ["method", "path", "status"],
        registry=_registry,
    )
    _http_request_duration_seconds = Histogram(
        "http_request_duration_seconds",
        "Duração das requisições HTTP",
        ["method", "path", "status"],
        registry=_registry,
        buckets=[0.01, 0.05, 0.1, 0.5, 1, 3],
    )
    _pix_route_resolutions_total = Counter(
        "pix_route_resolutions_total",
        "Resoluções de rota PIX por resultado",
        ["outcome", "scope"],
        registry=_registry,
    )
    _pix_rule_skips_total = Counter(
        "pix_rule_skips_total",
        "Regras de disponibilidade ignoradas durante a resolução",
        ["reason"],
        registry=_registry,
    )
    _pix_fee_computations_total = Counter(
        "pix_fee_computations_total",
        "Cálculos de tarifa PIX por fonte de precificação",
        ["source"],
        registry=_registry,
    )


def is_enabled() -> bool:
    """Métricas habilitadas globalmente."""
    return bool(settings.metrics_enabled)


def record_http_request(
    method: str,
    path: str,
    status: int,
    duration_seconds: float,
) -> None:
    """Registra métrica de request HTTP."""
    if not is_enabled():
        return
    _build_metrics()

    labels = {"method": method.upper(), "path": path, "status": str(status)}
    _http_requests_total.labels(**labels).inc()
    _http_request_duration_seconds.labels(**labels).observe(duration_seconds)


def record_route_resolution(outcome: str, scope: str | None = None) -> None:
    """Registra resolução de rota (``resolved`` ou ``not_found``)."""
    if not is_enabled():
        return
    _build_metrics()
    _pix_route_resolutions_total.labels(outcome=outcome, scope=scope or "none").inc()


def record_rule_skipped(reason: str) -> None:
    """Registra regra ignorada (referência pendente, PSP/plano inativo...)."""
    if not is_enabled():
        return
    _build_metrics()
    _pix_rule_skips_total.labels(reason=reason).inc()


def record_fee_computation(source: str) -> None:
    """Registra cálculo de tarifa por fonte (plano ou padrão do PSP)."""
    if not is_enabled():
        return
    _build_metrics()
    _pix_fee_computations_total.labels(source=source).inc()


def get_metrics_payload() -> bytes:
    """Métricas no formato texto do Prometheus."""
    if not is_enabled():
        return b""
    _build_metrics()
    return generate_latest(_registry)
