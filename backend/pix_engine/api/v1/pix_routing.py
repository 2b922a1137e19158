"""
Endpoints de checkout do PIX Automático.

Resolução de rota, cálculo de tarifa, cotação, simulação de planos e origem
da credencial. Indisponibilidade de rota é resposta 200 com
``available = false``.
"""

from __future__ import annotations

import uuid
from typing import Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from pix_engine.core.logging import bind_request_context
from pix_engine.db.base import get_db
from pix_engine.schemas.pix import (
    CredentialResolveResponse,
    FeeRequest,
    FeeResponse,
    QuoteRequest,
    QuoteResponse,
    RouteOptionsResponse,
    RouteResponse,
    SimulationItem,
    SimulationRequest,
    SimulationResponse,
)
from pix_engine.services.pix.errors import ConfigurationError, InvalidAmountError
from pix_engine.services.pix.types import (
    CredentialSelection,
    FeeBreakdown,
    ResolvedRoute,
    RouteContext,
    RouteNotFound,
)
from pix_engine.services.pix_credential_service import (
    PixCredentialService,
    get_pix_credential_service,
)
from pix_engine.services.pix_routing_service import PixRoutingService, get_pix_routing_service


router = APIRouter(prefix="/pix", tags=["PIX Automático"])


def _as_route_payload(route: Union[ResolvedRoute, RouteNotFound]) -> RouteResponse:
    if isinstance(route, RouteNotFound):
        return RouteResponse(available=False, reason=route.reason)
    return RouteResponse(
        available=True,
        rule_id=route.rule_id,
        scope=route.scope,
        priority=route.priority,
        provider_id=route.provider_id,
        pricing_plan_id=route.pricing_plan_id,
    )


def _as_fee_payload(fee: FeeBreakdown) -> FeeResponse:
    return FeeResponse(
        merchant_fee_cents=fee.merchant_fee_cents,
        platform_subsidy_cents=fee.platform_subsidy_cents,
        total_fee_cents=fee.total_fee_cents,
        source=fee.source,
    )


def _as_credential_payload(selection: CredentialSelection) -> CredentialResolveResponse:
    return CredentialResolveResponse(
        source=selection.source,
        credential_id=selection.credential.id if selection.credential else None,
        connection_status=selection.connection_status,
    )


def _invalid_amount(exc: InvalidAmountError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))


def _route_context(
    tenant_id: str = Query(..., min_length=1),
    partner_id: Optional[str] = Query(None),
    plan_id: Optional[str] = Query(None),
    category_id: Optional[str] = Query(None),
) -> RouteContext:
    return RouteContext(
        tenant_id=tenant_id,
        partner_id=partner_id,
        plan_id=plan_id,
        category_id=category_id,
    )


@router.get("/route", response_model=RouteResponse, summary="Resolver rota PIX")
async def resolve_route(
    ctx: RouteContext = Depends(_route_context),
    db: AsyncSession = Depends(get_db),
    routing_service: PixRoutingService = Depends(get_pix_routing_service),
) -> RouteResponse:
    """PSP e/ou plano de precificação aplicáveis ao contexto de checkout."""
    with bind_request_context(tenant_id=ctx.tenant_id, partner_id=ctx.partner_id):
        route = await routing_service.resolve_route(db, ctx)
    return _as_route_payload(route)


@router.get(
    "/route/options",
    response_model=RouteOptionsResponse,
    summary="Opções de PSP disponíveis para o contexto",
)
async def resolve_route_options(
    ctx: RouteContext = Depends(_route_context),
    db: AsyncSession = Depends(get_db),
    routing_service: PixRoutingService = Depends(get_pix_routing_service),
) -> RouteOptionsResponse:
    with bind_request_context(tenant_id=ctx.tenant_id, partner_id=ctx.partner_id):
        options = await routing_service.resolve_options(db, ctx)
    return RouteOptionsResponse(options=[_as_route_payload(option) for option in options])


@router.post("/fees", response_model=FeeResponse, summary="Calcular tarifa PIX")
async def compute_fee(
    payload: FeeRequest,
    db: AsyncSession = Depends(get_db),
    routing_service: PixRoutingService = Depends(get_pix_routing_service),
) -> FeeResponse:
    try:
        fee = await routing_service.compute_fee(
            db,
            payload.amount_cents,
            pricing_plan_id=payload.pricing_plan_id,
            psp_provider_id=payload.psp_provider_id,
        )
    except InvalidAmountError as exc:
        raise _invalid_amount(exc) from exc
    except ConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return _as_fee_payload(fee)


@router.post("/quote", response_model=QuoteResponse, summary="Cotar transação PIX")
async def quote(
    payload: QuoteRequest,
    db: AsyncSession = Depends(get_db),
    routing_service: PixRoutingService = Depends(get_pix_routing_service),
) -> QuoteResponse:
    """Rota, tarifa e origem da credencial em uma única leitura consistente."""
    ctx = RouteContext(
        tenant_id=payload.tenant_id,
        partner_id=payload.partner_id,
        plan_id=payload.plan_id,
        category_id=payload.category_id,
    )
    with bind_request_context(tenant_id=ctx.tenant_id, partner_id=ctx.partner_id):
        try:
            result = await routing_service.quote(db, ctx, payload.amount_cents)
        except InvalidAmountError as exc:
            raise _invalid_amount(exc) from exc

    route = _as_route_payload(result.route)
    return QuoteResponse(
        available=route.available,
        route=route,
        fee=_as_fee_payload(result.fee) if result.fee else None,
        credential_source=result.credential.source if result.credential else None,
        connection_status=result.credential.connection_status if result.credential else None,
    )


@router.post("/simulate", response_model=SimulationResponse, summary="Simular custo mensal por plano")
async def simulate(
    payload: SimulationRequest,
    db: AsyncSession = Depends(get_db),
    routing_service: PixRoutingService = Depends(get_pix_routing_service),
) -> SimulationResponse:
    try:
        results = await routing_service.simulate(db, payload.ticket_cents, payload.monthly_volume)
    except InvalidAmountError as exc:
        raise _invalid_amount(exc) from exc
    return SimulationResponse(
        ticket_cents=payload.ticket_cents,
        monthly_volume=payload.monthly_volume,
        plans=[
            SimulationItem(
                plan_id=item.plan_id,
                slug=item.slug,
                name=item.name,
                fee_per_transaction_cents=item.fee.total_fee_cents,
                merchant_fee_cents=item.fee.merchant_fee_cents,
                platform_subsidy_cents=item.fee.platform_subsidy_cents,
                monthly_merchant_cost_cents=item.monthly_merchant_cost_cents,
                monthly_subsidy_cents=item.monthly_subsidy_cents,
            )
            for item in results
        ],
    )


@router.get(
    "/credentials/resolve",
    response_model=CredentialResolveResponse,
    summary="Origem da credencial do PSP para o tenant",
)
async def resolve_credentials(
    tenant_id: str = Query(..., min_length=1),
    psp_provider_id: uuid.UUID = Query(...),
    db: AsyncSession = Depends(get_db),
    credential_service: PixCredentialService = Depends(get_pix_credential_service),
) -> CredentialResolveResponse:
    """Nunca devolve segredos; apenas origem e status de conexão."""
    selection = await credential_service.resolve(db, tenant_id, psp_provider_id)
    return _as_credential_payload(selection)
