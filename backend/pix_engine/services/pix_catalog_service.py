"""
Serviço de catálogo PIX Automático.

CRUD administrativo de planos de precificação, PSPs e regras de
disponibilidade, com validação na escrita. As leituras de resolução ficam em
``pix_routing_service``.
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pix_engine.core.logging import get_logger
from pix_engine.db.models.pix_availability_rule import PixAvailabilityRule
from pix_engine.db.models.pix_pricing_plan import PixPricingPlan
from pix_engine.db.models.pix_psp_provider import PixPspProvider
from pix_engine.services.pix.errors import ConfigurationError
from pix_engine.services.pix.fee_calculator import validate_pricing_plan
from pix_engine.services.pix.rule_resolver import default_priority
from pix_engine.services.pix.types import RULE_SCOPES

logger = get_logger(__name__)

_PLAN_FIELDS = (
    "name",
    "slug",
    "description",
    "pricing_type",
    "percent_rate",
    "fixed_rate",
    "min_fee",
    "max_fee",
    "is_subsidized",
    "subsidy_percent",
    "is_active",
    "display_order",
)
_PLAN_DEFAULTS: dict[str, Any] = {
    "pricing_type": "percentual",
    "percent_rate": Decimal("0"),
    "fixed_rate": Decimal("0"),
    "min_fee": Decimal("0"),
    "is_subsidized": False,
    "is_active": True,
    "display_order": 0,
}
_PROVIDER_FIELDS = (
    "display_name",
    "supports_txid",
    "supports_webhook",
    "supports_subaccount",
    "supports_split",
    "default_percent_fee",
    "default_fixed_fee",
    "pricing_model",
    "is_active",
)
_RULE_FIELDS = (
    "scope",
    "scope_id",
    "psp_provider_id",
    "pricing_plan_id",
    "priority",
    "is_enabled",
    "notes",
)
_PLAN_NULLABLE = frozenset({"description", "max_fee", "subsidy_percent"})
_RULE_NULLABLE = frozenset({"scope_id", "psp_provider_id", "pricing_plan_id", "notes"})


class CatalogRecordNotFoundError(LookupError):
    """Plano, PSP ou regra inexistente."""


def _reject_nulls(changes: dict[str, Any], nullable: frozenset[str] = frozenset()) -> None:
    """Colunas NOT NULL não podem ser limpas por uma edição parcial."""
    invalid = sorted(name for name, value in changes.items() if value is None and name not in nullable)
    if invalid:
        raise ValueError(f"Campos não aceitam null: {', '.join(invalid)}")


def _append_note(current: Optional[str], note: str) -> str:
    if not current:
        return note
    return f"{current}\n{note}"


class PixCatalogService:
    """Gerencia planos, PSPs e regras de disponibilidade."""

    # ------------------------------------------------------------------
    # Planos de precificação
    # ------------------------------------------------------------------

    async def list_plans(self, db: AsyncSession, include_inactive: bool = True) -> list[PixPricingPlan]:
        stmt = select(PixPricingPlan)
        if not include_inactive:
            stmt = stmt.where(PixPricingPlan.is_active.is_(True))
        result = await db.execute(stmt.order_by(PixPricingPlan.display_order, PixPricingPlan.slug))
        return list(result.scalars().all())

    async def get_plan(self, db: AsyncSession, plan_id: UUID) -> PixPricingPlan:
        result = await db.execute(select(PixPricingPlan).where(PixPricingPlan.id == plan_id))
        plan = result.scalar_one_or_none()
        if plan is None:
            raise CatalogRecordNotFoundError(f"Plano {plan_id} não encontrado")
        return plan

    async def create_plan(self, db: AsyncSession, values: dict[str, Any]) -> PixPricingPlan:
        """Cria plano após validar consistência (``InconsistentPlanError``)."""
        plan = PixPricingPlan(id=uuid.uuid4(), **_PLAN_DEFAULTS)
        for name in _PLAN_FIELDS:
            if values.get(name) is not None:
                setattr(plan, name, values[name])
        validate_pricing_plan(plan.to_domain())

        db.add(plan)
        await db.commit()
        await db.refresh(plan)
        logger.info("pix_pricing_plan_created", plan_id=str(plan.id), slug=plan.slug)
        return plan

    async def update_plan(self, db: AsyncSession, plan_id: UUID, changes: dict[str, Any]) -> PixPricingPlan:
        _reject_nulls(changes, _PLAN_NULLABLE)
        plan = await self.get_plan(db, plan_id)
        for name, value in changes.items():
            if name in _PLAN_FIELDS:
                setattr(plan, name, value)
        validate_pricing_plan(plan.to_domain())

        await db.commit()
        await db.refresh(plan)
        logger.info("pix_pricing_plan_updated", plan_id=str(plan.id), fields=sorted(changes))
        return plan

    async def delete_plan(self, db: AsyncSession, plan_id: UUID) -> int:
        """
        Remove o plano e desabilita as regras que apontavam para ele.

        As regras perdem o ``pricing_plan_id`` e recebem uma nota; reabilitar é
        ato explícito do operador. Retorna quantas regras foram desabilitadas.
        """
        plan = await self.get_plan(db, plan_id)
        result = await db.execute(
            select(PixAvailabilityRule).where(PixAvailabilityRule.pricing_plan_id == plan_id)
        )
        dependents = list(result.scalars().all())

        affected_scopes: set[tuple[str, Optional[str]]] = set()
        for rule in dependents:
            if rule.is_enabled:
                affected_scopes.add((rule.scope, rule.scope_id))
            rule.is_enabled = False
            rule.pricing_plan_id = None
            rule.notes = _append_note(rule.notes, f"Desabilitada: plano '{plan.slug}' removido")

        await db.delete(plan)
        await db.commit()
        logger.info(
            "pix_pricing_plan_deleted",
            plan_id=str(plan_id),
            slug=plan.slug,
            rules_disabled=len(dependents),
        )

        for scope, scope_id in sorted(affected_scopes, key=lambda item: (item[0], item[1] or "")):
            await self._warn_if_uncovered(db, scope, scope_id)
        return len(dependents)

    # ------------------------------------------------------------------
    # PSPs
    # ------------------------------------------------------------------

    async def list_providers(self, db: AsyncSession) -> list[PixPspProvider]:
        result = await db.execute(select(PixPspProvider).order_by(PixPspProvider.name))
        return list(result.scalars().all())

    async def get_provider(self, db: AsyncSession, provider_id: UUID) -> PixPspProvider:
        result = await db.execute(select(PixPspProvider).where(PixPspProvider.id == provider_id))
        provider = result.scalar_one_or_none()
        if provider is None:
            raise CatalogRecordNotFoundError(f"PSP {provider_id} não encontrado")
        return provider

    async def update_provider(
        self, db: AsyncSession, provider_id: UUID, changes: dict[str, Any]
    ) -> PixPspProvider:
        _reject_nulls(changes)
        provider = await self.get_provider(db, provider_id)
        for name, value in changes.items():
            if name in _PROVIDER_FIELDS:
                setattr(provider, name, value)
        if provider.default_percent_fee is not None and not (0 <= provider.default_percent_fee <= 1):
            raise ValueError("default_percent_fee deve estar entre 0 e 1")
        if provider.default_fixed_fee is not None and provider.default_fixed_fee < 0:
            raise ValueError("default_fixed_fee não pode ser negativo")

        await db.commit()
        await db.refresh(provider)
        logger.info("pix_provider_updated", provider_id=str(provider.id), fields=sorted(changes))
        return provider

    # ------------------------------------------------------------------
    # Regras de disponibilidade
    # ------------------------------------------------------------------

    async def list_rules(self, db: AsyncSession, scope: Optional[str] = None) -> list[PixAvailabilityRule]:
        stmt = select(PixAvailabilityRule)
        if scope is not None:
            stmt = stmt.where(PixAvailabilityRule.scope == scope)
        result = await db.execute(
            stmt.order_by(PixAvailabilityRule.scope, PixAvailabilityRule.priority.desc())
        )
        return list(result.scalars().all())

    async def get_rule(self, db: AsyncSession, rule_id: UUID) -> PixAvailabilityRule:
        result = await db.execute(select(PixAvailabilityRule).where(PixAvailabilityRule.id == rule_id))
        rule = result.scalar_one_or_none()
        if rule is None:
            raise CatalogRecordNotFoundError(f"Regra {rule_id} não encontrada")
        return rule

    @staticmethod
    def _normalize_scope(rule: PixAvailabilityRule) -> None:
        if rule.scope not in RULE_SCOPES:
            raise ValueError(f"Escopo inválido: {rule.scope}")
        if rule.scope == "global":
            rule.scope_id = None
        elif not rule.scope_id:
            raise ValueError(f"scope_id é obrigatório para o escopo '{rule.scope}'")
        if rule.psp_provider_id is None and rule.pricing_plan_id is None:
            raise ValueError("Regra precisa apontar um PSP ou um plano de precificação")

    async def _check_references(self, db: AsyncSession, rule: PixAvailabilityRule) -> None:
        """Referências da regra devem existir no momento da escrita."""
        if rule.psp_provider_id is not None:
            result = await db.execute(
                select(PixPspProvider.id).where(PixPspProvider.id == rule.psp_provider_id)
            )
            if result.scalar_one_or_none() is None:
                raise ConfigurationError(f"PSP {rule.psp_provider_id} não existe")
        if rule.pricing_plan_id is not None:
            result = await db.execute(
                select(PixPricingPlan.id).where(PixPricingPlan.id == rule.pricing_plan_id)
            )
            if result.scalar_one_or_none() is None:
                raise ConfigurationError(f"Plano {rule.pricing_plan_id} não existe")

    async def create_rule(self, db: AsyncSession, values: dict[str, Any]) -> PixAvailabilityRule:
        """Cria regra; sem ``priority`` explícita usa o padrão do escopo."""
        rule = PixAvailabilityRule(id=uuid.uuid4(), is_enabled=True)
        for name in _RULE_FIELDS:
            if values.get(name) is not None:
                setattr(rule, name, values[name])
        self._normalize_scope(rule)
        if rule.priority is None:
            rule.priority = default_priority(rule.scope)
        await self._check_references(db, rule)

        db.add(rule)
        await db.commit()
        await db.refresh(rule)
        logger.info(
            "pix_rule_created",
            rule_id=str(rule.id),
            scope=rule.scope,
            scope_id=rule.scope_id,
            priority=rule.priority,
        )
        return rule

    async def update_rule(
        self, db: AsyncSession, rule_id: UUID, changes: dict[str, Any]
    ) -> PixAvailabilityRule:
        _reject_nulls(changes, _RULE_NULLABLE)
        rule = await self.get_rule(db, rule_id)
        was_enabled = bool(rule.is_enabled)
        previous_scope = (rule.scope, rule.scope_id)

        for name, value in changes.items():
            if name in _RULE_FIELDS:
                setattr(rule, name, value)
        self._normalize_scope(rule)
        if "psp_provider_id" in changes or "pricing_plan_id" in changes:
            await self._check_references(db, rule)

        await db.commit()
        await db.refresh(rule)
        logger.info("pix_rule_updated", rule_id=str(rule.id), fields=sorted(changes))

        if was_enabled and (not rule.is_enabled or previous_scope != (rule.scope, rule.scope_id)):
            await self._warn_if_uncovered(db, *previous_scope)
        return rule

    async def delete_rule(self, db: AsyncSession, rule_id: UUID) -> None:
        rule = await self.get_rule(db, rule_id)
        scope, scope_id, was_enabled = rule.scope, rule.scope_id, bool(rule.is_enabled)

        await db.delete(rule)
        await db.commit()
        logger.info("pix_rule_deleted", rule_id=str(rule_id), scope=scope, scope_id=scope_id)

        if was_enabled:
            await self._warn_if_uncovered(db, scope, scope_id)

    async def _warn_if_uncovered(self, db: AsyncSession, scope: str, scope_id: Optional[str]) -> bool:
        """Avisa quando um escopo antes coberto ficou sem regra habilitada.

        Não bloqueia a escrita.
        """
        stmt = (
            select(func.count())
            .select_from(PixAvailabilityRule)
            .where(PixAvailabilityRule.scope == scope)
            .where(PixAvailabilityRule.is_enabled.is_(True))
        )
        if scope_id is None:
            stmt = stmt.where(PixAvailabilityRule.scope_id.is_(None))
        else:
            stmt = stmt.where(PixAvailabilityRule.scope_id == scope_id)
        result = await db.execute(stmt)
        remaining = int(result.scalar_one() or 0)
        if remaining == 0:
            logger.warning("pix_scope_uncovered", scope=scope, scope_id=scope_id)
            return True
        return False


_catalog_service: Optional[PixCatalogService] = None


def get_pix_catalog_service() -> PixCatalogService:
    """Singleton do serviço de catálogo PIX."""
    global _catalog_service
    if _catalog_service is None:
        _catalog_service = PixCatalogService()
    return _catalog_service
