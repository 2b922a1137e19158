"""
Endpoints administrativos do PIX Automático.

CRUD de planos de precificação, PSPs, regras de disponibilidade e
credenciais (segredos somente escrita).
"""

from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from pix_engine.api.deps import require_admin_token
from pix_engine.db.base import get_db
from pix_engine.db.models.pix_credential import PixCredential
from pix_engine.schemas.pix import (
    CredentialResponse,
    CredentialUpsert,
    PlanDeleteResponse,
    PricingPlanCreate,
    PricingPlanResponse,
    PricingPlanUpdate,
    ProviderResponse,
    ProviderUpdate,
    RuleCreate,
    RuleResponse,
    RuleScope,
    RuleUpdate,
)
from pix_engine.services.pix.errors import ConfigurationError, InconsistentPlanError
from pix_engine.services.pix_catalog_service import (
    CatalogRecordNotFoundError,
    PixCatalogService,
    get_pix_catalog_service,
)
from pix_engine.services.pix_credential_service import (
    PixCredentialService,
    get_pix_credential_service,
)


router = APIRouter(
    prefix="/admin/pix",
    tags=["Admin - PIX Automático"],
    dependencies=[Depends(require_admin_token)],
)


def _not_found(exc: LookupError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


def _unprocessable(exc: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))


def _as_credential_payload(row: PixCredential) -> CredentialResponse:
    """Resposta de credencial sem segredos."""
    return CredentialResponse(
        id=row.id,
        scope=row.scope,
        scope_id=row.scope_id,
        psp_provider_id=row.psp_provider_id,
        connection_status=row.connection_status,
        use_platform_credentials=row.use_platform_credentials,
        has_api_key=bool(row.api_key),
        has_webhook_secret=bool(row.webhook_secret),
    )


# =====================================================
# Planos de precificação
# =====================================================


@router.get("/pricing-plans", response_model=List[PricingPlanResponse], summary="Listar planos")
async def list_pricing_plans(
    include_inactive: bool = Query(True),
    db: AsyncSession = Depends(get_db),
    catalog: PixCatalogService = Depends(get_pix_catalog_service),
) -> List[PricingPlanResponse]:
    plans = await catalog.list_plans(db, include_inactive=include_inactive)
    return [PricingPlanResponse.model_validate(plan) for plan in plans]


@router.post(
    "/pricing-plans",
    response_model=PricingPlanResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Criar plano",
)
async def create_pricing_plan(
    payload: PricingPlanCreate,
    db: AsyncSession = Depends(get_db),
    catalog: PixCatalogService = Depends(get_pix_catalog_service),
) -> PricingPlanResponse:
    try:
        plan = await catalog.create_plan(db, payload.model_dump())
    except InconsistentPlanError as exc:
        raise _unprocessable(exc) from exc
    return PricingPlanResponse.model_validate(plan)


@router.patch("/pricing-plans/{plan_id}", response_model=PricingPlanResponse, summary="Editar plano")
async def update_pricing_plan(
    plan_id: uuid.UUID,
    payload: PricingPlanUpdate,
    db: AsyncSession = Depends(get_db),
    catalog: PixCatalogService = Depends(get_pix_catalog_service),
) -> PricingPlanResponse:
    try:
        plan = await catalog.update_plan(db, plan_id, payload.model_dump(exclude_unset=True))
    except CatalogRecordNotFoundError as exc:
        raise _not_found(exc) from exc
    except ValueError as exc:
        raise _unprocessable(exc) from exc
    return PricingPlanResponse.model_validate(plan)


@router.delete(
    "/pricing-plans/{plan_id}",
    response_model=PlanDeleteResponse,
    summary="Remover plano (desabilita regras dependentes)",
)
async def delete_pricing_plan(
    plan_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    catalog: PixCatalogService = Depends(get_pix_catalog_service),
) -> PlanDeleteResponse:
    try:
        disabled = await catalog.delete_plan(db, plan_id)
    except CatalogRecordNotFoundError as exc:
        raise _not_found(exc) from exc
    return PlanDeleteResponse(id=plan_id, rules_disabled=disabled)


# =====================================================
# PSPs
# =====================================================


@router.get("/providers", response_model=List[ProviderResponse], summary="Listar PSPs")
async def list_providers(
    db: AsyncSession = Depends(get_db),
    catalog: PixCatalogService = Depends(get_pix_catalog_service),
) -> List[ProviderResponse]:
    providers = await catalog.list_providers(db)
    return [ProviderResponse.model_validate(provider) for provider in providers]


@router.patch("/providers/{provider_id}", response_model=ProviderResponse, summary="Editar PSP")
async def update_provider(
    provider_id: uuid.UUID,
    payload: ProviderUpdate,
    db: AsyncSession = Depends(get_db),
    catalog: PixCatalogService = Depends(get_pix_catalog_service),
) -> ProviderResponse:
    try:
        provider = await catalog.update_provider(db, provider_id, payload.model_dump(exclude_unset=True))
    except CatalogRecordNotFoundError as exc:
        raise _not_found(exc) from exc
    except ValueError as exc:
        raise _unprocessable(exc) from exc
    return ProviderResponse.model_validate(provider)


# =====================================================
# Regras de disponibilidade
# =====================================================


@router.get("/rules", response_model=List[RuleResponse], summary="Listar regras")
async def list_rules(
    scope: Optional[RuleScope] = Query(None),
    db: AsyncSession = Depends(get_db),
    catalog: PixCatalogService = Depends(get_pix_catalog_service),
) -> List[RuleResponse]:
    rules = await catalog.list_rules(db, scope=scope)
    return [RuleResponse.model_validate(rule) for rule in rules]


@router.post(
    "/rules",
    response_model=RuleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Criar regra",
)
async def create_rule(
    payload: RuleCreate,
    db: AsyncSession = Depends(get_db),
    catalog: PixCatalogService = Depends(get_pix_catalog_service),
) -> RuleResponse:
    try:
        rule = await catalog.create_rule(db, payload.model_dump())
    except (ConfigurationError, ValueError) as exc:
        raise _unprocessable(exc) from exc
    return RuleResponse.model_validate(rule)


@router.patch("/rules/{rule_id}", response_model=RuleResponse, summary="Editar regra")
async def update_rule(
    rule_id: uuid.UUID,
    payload: RuleUpdate,
    db: AsyncSession = Depends(get_db),
    catalog: PixCatalogService = Depends(get_pix_catalog_service),
) -> RuleResponse:
    try:
        rule = await catalog.update_rule(db, rule_id, payload.model_dump(exclude_unset=True))
    except CatalogRecordNotFoundError as exc:
        raise _not_found(exc) from exc
    except (ConfigurationError, ValueError) as exc:
        raise _unprocessable(exc) from exc
    return RuleResponse.model_validate(rule)


@router.delete(
    "/rules/{rule_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remover regra",
)
async def delete_rule(
    rule_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    catalog: PixCatalogService = Depends(get_pix_catalog_service),
) -> Response:
    try:
        await catalog.delete_rule(db, rule_id)
    except CatalogRecordNotFoundError as exc:
        raise _not_found(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =====================================================
# Credenciais
# =====================================================


@router.put("/credentials", response_model=CredentialResponse, summary="Salvar credencial de PSP")
async def upsert_credential(
    payload: CredentialUpsert,
    db: AsyncSession = Depends(get_db),
    credential_service: PixCredentialService = Depends(get_pix_credential_service),
) -> CredentialResponse:
    try:
        row = await credential_service.upsert(db, **payload.model_dump())
    except (ConfigurationError, ValueError) as exc:
        raise _unprocessable(exc) from exc
    return _as_credential_payload(row)
