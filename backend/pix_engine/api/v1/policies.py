"""
Endpoints de política de parceiros.

Leitura da política efetiva e administração da política global e dos
overrides por parceiro.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from pix_engine.api.deps import require_admin_token
from pix_engine.db.base import get_db
from pix_engine.db.models.partner_policy import PartnerPolicyOverride
from pix_engine.schemas.policy import (
    EffectivePolicyResponse,
    GlobalPolicySchema,
    PartnerPlanDraftRequest,
    PlanValidationResponse,
    PolicyOverrideResponse,
    PolicyOverrideUpsert,
)
from pix_engine.services.partner_policy_service import (
    PartnerPolicyService,
    PolicyOverrideNotFoundError,
    get_partner_policy_service,
)
from pix_engine.services.pix.errors import ConfigurationError
from pix_engine.services.pix.policy_resolver import PartnerPlanDraft, overridden_fields, policy_as_dict
from pix_engine.services.pix_catalog_service import CatalogRecordNotFoundError


router = APIRouter(tags=["Políticas de Parceiros"])
admin_router = APIRouter(
    prefix="/admin",
    tags=["Admin - Políticas de Parceiros"],
    dependencies=[Depends(require_admin_token)],
)


def _as_override_payload(row: PartnerPolicyOverride) -> PolicyOverrideResponse:
    """Converte override persistido em payload de resposta."""
    payload = PolicyOverrideResponse.model_validate(row)
    payload.overridden_fields = overridden_fields(row.to_domain())
    return payload


def _missing_global_policy(exc: ConfigurationError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=str(exc),
    )


@router.get(
    "/partners/{partner_id}/effective-policy",
    response_model=EffectivePolicyResponse,
    summary="Política efetiva do parceiro",
)
async def get_effective_policy(
    partner_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    policy_service: PartnerPolicyService = Depends(get_partner_policy_service),
) -> EffectivePolicyResponse:
    """Política global combinada com o override do parceiro (campo a campo)."""
    try:
        view = await policy_service.get_effective_policy(db, partner_id)
    except ConfigurationError as exc:
        raise _missing_global_policy(exc) from exc
    return EffectivePolicyResponse(
        partner_id=view.partner_id,
        policy=GlobalPolicySchema(**policy_as_dict(view.policy)),
        overridden_fields=view.overridden_fields,
        has_override=view.has_override,
    )


# =====================================================
# Administração
# =====================================================


@admin_router.get(
    "/partner-policy/global",
    response_model=GlobalPolicySchema,
    summary="Política global de parceiros",
)
async def get_global_policy(
    db: AsyncSession = Depends(get_db),
    policy_service: PartnerPolicyService = Depends(get_partner_policy_service),
) -> GlobalPolicySchema:
    try:
        policy = await policy_service.get_global_policy(db)
    except ConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return GlobalPolicySchema(**policy_as_dict(policy))


@admin_router.put(
    "/partner-policy/global",
    response_model=GlobalPolicySchema,
    summary="Salvar política global de parceiros",
)
async def save_global_policy(
    payload: GlobalPolicySchema,
    db: AsyncSession = Depends(get_db),
    policy_service: PartnerPolicyService = Depends(get_partner_policy_service),
) -> GlobalPolicySchema:
    try:
        policy = await policy_service.save_global_policy(db, payload.model_dump())
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    return GlobalPolicySchema(**policy_as_dict(policy))


@admin_router.get(
    "/partners/{partner_id}/policy-override",
    response_model=PolicyOverrideResponse,
    summary="Override de política do parceiro",
)
async def get_policy_override(
    partner_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    policy_service: PartnerPolicyService = Depends(get_partner_policy_service),
) -> PolicyOverrideResponse:
    row = await policy_service.get_override_row(db, partner_id)
    if row is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="override não encontrado",
        )
    return _as_override_payload(row)


@admin_router.put(
    "/partners/{partner_id}/policy-override",
    response_model=PolicyOverrideResponse,
    summary="Salvar override de política do parceiro",
)
async def save_policy_override(
    partner_id: uuid.UUID,
    payload: PolicyOverrideUpsert,
    db: AsyncSession = Depends(get_db),
    policy_service: PartnerPolicyService = Depends(get_partner_policy_service),
) -> PolicyOverrideResponse:
    """Substitui o override; campos ``null`` voltam a herdar da política global."""
    values = payload.model_dump(exclude={"notes"})
    try:
        row = await policy_service.save_override(db, partner_id, values, notes=payload.notes)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    return _as_override_payload(row)


@admin_router.delete(
    "/partners/{partner_id}/policy-override",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remover override (herança total)",
)
async def delete_policy_override(
    partner_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    policy_service: PartnerPolicyService = Depends(get_partner_policy_service),
) -> Response:
    try:
        await policy_service.delete_override(db, partner_id)
    except PolicyOverrideNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@admin_router.post(
    "/partners/{partner_id}/policy-override/{field_name}/cycle",
    response_model=PolicyOverrideResponse,
    summary="Alternar campo booleano (herdar → sim → não)",
)
async def cycle_policy_override_field(
    partner_id: uuid.UUID,
    field_name: str,
    db: AsyncSession = Depends(get_db),
    policy_service: PartnerPolicyService = Depends(get_partner_policy_service),
) -> PolicyOverrideResponse:
    try:
        row = await policy_service.cycle_field(db, partner_id, field_name)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    return _as_override_payload(row)


@admin_router.post(
    "/partners/{partner_id}/plan-validation",
    response_model=PlanValidationResponse,
    summary="Validar plano do parceiro contra a política efetiva",
)
async def validate_partner_plan(
    partner_id: uuid.UUID,
    payload: PartnerPlanDraftRequest,
    db: AsyncSession = Depends(get_db),
    policy_service: PartnerPolicyService = Depends(get_partner_policy_service),
) -> PlanValidationResponse:
    draft = PartnerPlanDraft(
        monthly_price=payload.monthly_price,
        is_free=payload.is_free,
        trial_days=payload.trial_days,
        included_modules=tuple(payload.included_modules),
        included_features=tuple(payload.included_features),
    )
    try:
        result = await policy_service.validate_plan(
            db,
            partner_id,
            draft,
            payload.existing_plans,
            pricing_plan_id=payload.pricing_plan_id,
        )
    except ConfigurationError as exc:
        raise _missing_global_policy(exc) from exc
    except CatalogRecordNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return PlanValidationResponse(valid=result.valid, errors=result.errors)
