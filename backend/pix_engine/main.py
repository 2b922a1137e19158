"""
Aplicação Principal FastAPI - Motor PIX Automático

Entry point do servidor REST API de política de parceiros, roteamento e
tarifação PIX.
"""
from __future__ import annotations

from time import perf_counter
from typing import Any
from uuid import uuid4

from pix_engine.core.logging import bind_request_context, configure_structlog, get_logger
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import APIRouter, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.responses import JSONResponse

from pix_engine.config import get_settings
from pix_engine.core.metrics import CONTENT_TYPE_LATEST, get_metrics_payload, is_enabled, record_http_request
from pix_engine.core.telemetry import init_telemetry
from pix_engine.api.v1.policies import admin_router as policy_admin_router
from pix_engine.api.v1.policies import router as policies_router
from pix_engine.api.v1.pix_admin import router as pix_admin_router
from pix_engine.api.v1.pix_routing import router as pix_routing_router
from pix_engine.db.base import AsyncSessionLocal, engine
from pix_engine.services.partner_policy_service import get_partner_policy_service
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

settings = get_settings()
configure_structlog()
logger = get_logger(__name__)


async def _ensure_global_policy() -> None:
    """Recusa o boot sem a política global de parceiros (``ConfigurationError``)."""
    async with AsyncSessionLocal() as session:
        await get_partner_policy_service().ensure_global_policy(session)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Gerencia o ciclo de vida da aplicação.

    Startup: política global obrigatória, telemetria
    Shutdown: descarte do pool de conexões
    """
    # Startup
    logger.info(
        "app_startup_started",
        app_name=settings.app_name,
        app_version=settings.app_version,
        environment=settings.environment,
    )
    if settings.require_global_policy_on_startup:
        await _ensure_global_policy()
    init_telemetry(app, engine)

    yield

    # Shutdown
    await engine.dispose()
    logger.info("app_shutdown")


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """Middleware de observabilidade básica com duração de request."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-Id") or request.headers.get(
            "X-Request-ID"
        ) or str(uuid4())
        request.state.request_id = request_id
        start = perf_counter()
        tenant_id = request.headers.get("X-Tenant-ID") or request.query_params.get("tenant_id")
        partner_id = request.headers.get("X-Partner-ID") or request.query_params.get("partner_id")

        with bind_request_context(
            request_id=request_id,
            tenant_id=tenant_id,
            partner_id=partner_id,
        ):
            response = await call_next(request)

        elapsed_ms = (perf_counter() - start) * 1000
        response.headers["X-Request-Id"] = request_id
        response.headers["X-Request-Duration-Ms"] = f"{elapsed_ms:.2f}"

        logger.info(
            "http_request_complete",
            method=request.method,
            path=request.url.path,
            status_code=getattr(response, "status_code", None),
            request_id=request_id,
            duration_ms=round(elapsed_ms, 2),
            tenant_id=tenant_id,
        )
        return response


class DocsProtectionMiddleware(BaseHTTPMiddleware):
    """Protege /docs e /redoc com token opcional de acesso."""

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        if path in ("/docs", "/redoc", "/openapi.json"):
            token = (
                request.headers.get("x-docs-token")
                or request.query_params.get("token")
            )
            if settings.docs_access_token and token != settings.docs_access_token:
                return JSONResponse(
                    status_code=401,
                    content={"detail": "Unauthorized documentation access"},
                )

        return await call_next(request)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Mede duração/contagem de requisições para o endpoint /metrics."""

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        start = perf_counter()
        response = await call_next(request)
        elapsed = perf_counter() - start
        if is_enabled():
            route = request.scope.get("route")
            record_http_request(
                method=request.method,
                path=getattr(route, "path", request.url.path),
                status=response.status_code,
                duration_seconds=elapsed,
            )
        return response


# Criar aplicação FastAPI
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Política de parceiros, roteamento de PSP e tarifação do PIX Automático",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "PIX Automático", "description": "Rota, tarifa e cotação no checkout."},
        {"name": "Políticas de Parceiros", "description": "Política efetiva por parceiro."},
        {"name": "Admin - PIX Automático", "description": "Planos, PSPs, regras e credenciais."},
        {"name": "Admin - Políticas de Parceiros", "description": "Política global e overrides."},
    ],
    lifespan=lifespan,
)


# =====================================================
# Middlewares
# =====================================================

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestTimingMiddleware)
app.add_middleware(DocsProtectionMiddleware)
app.add_middleware(MetricsMiddleware)


def _build_health_result() -> dict[str, Any]:
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "timestamp_utc": datetime.now(timezone.utc).isoformat(),
    }


async def _check_postgres() -> dict[str, Any]:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return {"status": "connected"}
    except (OSError, SQLAlchemyError) as exc:
        return {"status": "disconnected", "error": str(exc)}


async def _check_global_policy() -> dict[str, Any]:
    try:
        async with AsyncSessionLocal() as session:
            row = await get_partner_policy_service().get_global_row(session)
    except (OSError, SQLAlchemyError) as exc:
        return {"status": "disconnected", "error": str(exc)}
    if row is None:
        return {"status": "missing"}
    return {"status": "connected"}


async def _collect_dependency_checks() -> dict[str, Any]:
    postgres = await _check_postgres()
    global_policy = await _check_global_policy()

    return {
        "dependencies": {
            "postgres": postgres,
            "global_partner_policy": global_policy,
        },
    }


# =====================================================
# Rotas API v1
# =====================================================

api_router = APIRouter(prefix="/api/v1")

# Incluir routers
api_router.include_router(policies_router)
api_router.include_router(policy_admin_router)
api_router.include_router(pix_routing_router)
api_router.include_router(pix_admin_router)

app.include_router(api_router)


# =====================================================
# Health Check
# =====================================================

@app.get("/")
async def root():
    """Health check básico."""
    payload = _build_health_result()
    payload["status"] = "healthy"
    return payload


@app.get("/health")
async def health():
    """Health check simples: sempre retorna resumo consolidado."""
    payload = _build_health_result()
    payload["status"] = "healthy"
    checks = await _collect_dependency_checks()
    payload.update(checks)
    return payload


@app.get("/health/ready")
async def ready():
    """Readiness para orquestradores (carregamento de tráfego)."""
    payload = _build_health_result()
    checks = await _collect_dependency_checks()
    payload.update(checks)

    all_connected = all(
        dependency.get("status") == "connected"
        for dependency in checks["dependencies"].values()
    )

    if all_connected:
        payload["status"] = "ready"
        return payload

    payload["status"] = "unready"
    payload["status_code"] = 503
    raise HTTPException(status_code=503, detail=payload)


@app.get("/health/live")
async def live():
    """Liveness: verifica se o processo está vivo."""
    payload = _build_health_result()
    payload["status"] = "alive"
    return payload


# =====================================================
# Métricas Prometheus
# =====================================================


@app.get("/metrics", include_in_schema=False)
async def metrics() -> PlainTextResponse:
    if not is_enabled():
        return PlainTextResponse("metrics_disabled 0\n")

    payload = get_metrics_payload()
    return PlainTextResponse(payload.decode("utf-8"), media_type=CONTENT_TYPE_LATEST)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "pix_engine.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
