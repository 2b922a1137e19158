"""
Serviço de políticas de parceiros.

Centraliza leitura/escrita de:
- política global (linha única)
- override anulável por parceiro
- política efetiva e validação de planos do parceiro
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pix_engine.core.logging import get_logger
from pix_engine.db.base import begin_snapshot
from pix_engine.db.models.partner_policy import (
    BILLING_OWNERS,
    GlobalPartnerPolicy,
    PartnerPolicyOverride,
)
from pix_engine.db.models.pix_pricing_plan import PixPricingPlan
from pix_engine.services.pix.errors import ConfigurationError
from pix_engine.services.pix.policy_resolver import (
    PartnerPlanDraft,
    PlanValidationResult,
    check_tx_fee_caps,
    cycle_override_field,
    overridden_fields,
    resolve_effective_policy,
    validate_partner_plan,
)
from pix_engine.services.pix.types import (
    BOOLEAN_POLICY_FIELDS,
    POLICY_FIELDS,
    EffectivePolicy,
    GlobalPolicy,
    PolicyOverride,
    PricingPlan,
    to_nullable,
)
from pix_engine.services.pix_catalog_service import CatalogRecordNotFoundError

logger = get_logger(__name__)

GLOBAL_POLICY_ID = 1
_NON_NEGATIVE_FIELDS = (
    "max_plans",
    "min_paid_price",
    "max_modules_per_plan",
    "max_features_per_plan",
    "max_trial_days",
    "tx_fee_max_percent",
    "tx_fee_max_fixed_cents",
)


class PolicyOverrideNotFoundError(LookupError):
    """Parceiro sem override cadastrado."""


@dataclass(frozen=True, slots=True)
class EffectivePolicyView:
    partner_id: UUID
    policy: EffectivePolicy
    overridden_fields: list[str]
    has_override: bool


class PartnerPolicyService:
    """Gerencia a política global e os overrides por parceiro."""

    @staticmethod
    def _validate_values(values: dict[str, Any]) -> None:
        """Valida faixas; ``None`` é aceito (herdar) e ignorado aqui."""
        unknown = set(values) - set(POLICY_FIELDS)
        if unknown:
            raise ValueError(f"Campos de política desconhecidos: {', '.join(sorted(unknown))}")

        owner = values.get("billing_owner")
        if owner is not None and owner not in BILLING_OWNERS:
            raise ValueError(f"billing_owner inválido: {owner}")

        for name in _NON_NEGATIVE_FIELDS:
            value = values.get(name)
            if value is not None and value < 0:
                raise ValueError(f"{name} não pode ser negativo")

        percent = values.get("tx_fee_max_percent")
        if percent is not None and Decimal(str(percent)) > 100:
            raise ValueError("tx_fee_max_percent deve estar entre 0 e 100")

    # ------------------------------------------------------------------
    # Política global
    # ------------------------------------------------------------------

    async def get_global_row(self, db: AsyncSession) -> Optional[GlobalPartnerPolicy]:
        result = await db.execute(
            select(GlobalPartnerPolicy).where(GlobalPartnerPolicy.id == GLOBAL_POLICY_ID)
        )
        return result.scalar_one_or_none()

    async def get_global_policy(self, db: AsyncSession) -> GlobalPolicy:
        """Busca a política global; ausência é erro de configuração."""
        row = await self.get_global_row(db)
        if row is None:
            raise ConfigurationError("Política global de parceiros não configurada")
        return row.to_domain()

    async def ensure_global_policy(self, db: AsyncSession) -> GlobalPolicy:
        """Verificação de inicialização: a linha global precisa existir."""
        policy = await self.get_global_policy(db)
        logger.info("partner_policy_global_loaded", max_plans=policy.max_plans)
        return policy

    async def save_global_policy(self, db: AsyncSession, values: dict[str, Any]) -> GlobalPolicy:
        """Cria ou substitui a política global (todos os campos obrigatórios)."""
        missing = [name for name in POLICY_FIELDS if values.get(name) is None]
        if missing:
            raise ValueError(f"Campos obrigatórios ausentes: {', '.join(missing)}")
        self._validate_values(values)

        row = await self.get_global_row(db)
        if row is None:
            row = GlobalPartnerPolicy(id=GLOBAL_POLICY_ID)
            db.add(row)
        for name in POLICY_FIELDS:
            setattr(row, name, values[name])

        await db.commit()
        await db.refresh(row)
        logger.info("partner_policy_global_saved")
        return row.to_domain()

    # ------------------------------------------------------------------
    # Overrides por parceiro
    # ------------------------------------------------------------------

    async def get_override_row(
        self, db: AsyncSession, partner_id: UUID
    ) -> Optional[PartnerPolicyOverride]:
        result = await db.execute(
            select(PartnerPolicyOverride).where(PartnerPolicyOverride.partner_id == partner_id)
        )
        return result.scalar_one_or_none()

    async def save_override(
        self,
        db: AsyncSession,
        partner_id: UUID,
        values: dict[str, Any],
        notes: Optional[str] = None,
    ) -> PartnerPolicyOverride:
        """
        Upsert do override do parceiro.

        Substitui todos os campos: ausente ou ``None`` significa herdar.
        """
        self._validate_values(values)

        row = await self.get_override_row(db, partner_id)
        if row is None:
            row = PartnerPolicyOverride(partner_id=partner_id)
            db.add(row)
        for name in POLICY_FIELDS:
            setattr(row, name, values.get(name))
        row.notes = notes

        await db.commit()
        await db.refresh(row)
        logger.info(
            "partner_policy_override_saved",
            partner_id=str(partner_id),
            overridden=overridden_fields(row.to_domain()),
        )
        return row

    async def delete_override(self, db: AsyncSession, partner_id: UUID) -> None:
        """Remove o override; o parceiro volta a herdar tudo."""
        row = await self.get_override_row(db, partner_id)
        if row is None:
            raise PolicyOverrideNotFoundError(f"Override do parceiro {partner_id} não encontrado")
        await db.delete(row)
        await db.commit()
        logger.info("partner_policy_override_deleted", partner_id=str(partner_id))

    async def cycle_field(
        self, db: AsyncSession, partner_id: UUID, field_name: str
    ) -> PartnerPolicyOverride:
        """Avança um campo booleano: herdar → sim → não → herdar."""
        if field_name not in BOOLEAN_POLICY_FIELDS:
            raise ValueError(f"Campo '{field_name}' não é booleano")

        row = await self.get_override_row(db, partner_id)
        current = row.to_domain() if row is not None else None
        cycled = cycle_override_field(current, field_name)

        if row is None:
            row = PartnerPolicyOverride(partner_id=partner_id)
            for name in POLICY_FIELDS:
                setattr(row, name, None)
            db.add(row)
        setattr(row, field_name, to_nullable(getattr(cycled, field_name)))

        await db.commit()
        await db.refresh(row)
        logger.info(
            "partner_policy_override_cycled",
            partner_id=str(partner_id),
            field=field_name,
            value=getattr(row, field_name),
        )
        return row

    # ------------------------------------------------------------------
    # Política efetiva
    # ------------------------------------------------------------------

    async def get_effective_policy(self, db: AsyncSession, partner_id: UUID) -> EffectivePolicyView:
        """Política global combinada com o override do parceiro, no mesmo snapshot."""
        await begin_snapshot(db)
        global_policy = await self.get_global_policy(db)
        row = await self.get_override_row(db, partner_id)
        override: Optional[PolicyOverride] = row.to_domain() if row is not None else None
        return EffectivePolicyView(
            partner_id=partner_id,
            policy=resolve_effective_policy(global_policy, override),
            overridden_fields=overridden_fields(override),
            has_override=row is not None,
        )

    async def validate_plan(
        self,
        db: AsyncSession,
        partner_id: UUID,
        draft: PartnerPlanDraft,
        existing_plans: int = 0,
        pricing_plan_id: Optional[UUID] = None,
    ) -> PlanValidationResult:
        """
        Valida o plano proposto contra a política efetiva do parceiro.

        Com ``pricing_plan_id``, o plano PIX escolhido também é conferido contra
        os tetos de tarifa (``tx_fee_max_percent`` / ``tx_fee_max_fixed_cents``).
        """
        view = await self.get_effective_policy(db, partner_id)
        result = validate_partner_plan(view.policy, draft, existing_plans)
        if pricing_plan_id is not None:
            plan = await self._get_pricing_plan(db, pricing_plan_id)
            fee_errors = check_tx_fee_caps(view.policy, plan)
            if fee_errors:
                result = PlanValidationResult(valid=False, errors=result.errors + fee_errors)
        if not result.valid:
            logger.info(
                "partner_plan_rejected",
                partner_id=str(partner_id),
                errors=result.errors,
            )
        return result

    @staticmethod
    async def _get_pricing_plan(db: AsyncSession, plan_id: UUID) -> PricingPlan:
        result = await db.execute(select(PixPricingPlan).where(PixPricingPlan.id == plan_id))
        row = result.scalar_one_or_none()
        if row is None:
            raise CatalogRecordNotFoundError(f"Plano {plan_id} não encontrado")
        return row.to_domain()


_partner_policy_service: PartnerPolicyService | None = None


def get_partner_policy_service() -> PartnerPolicyService:
    """Retorna singleton do serviço de políticas de parceiros."""
    global _partner_policy_service
    if _partner_policy_service is None:
        _partner_policy_service = PartnerPolicyService()
    return _partner_policy_service
