"""
Serviço de resolução PIX Automático para o checkout.

Carrega regras, planos e PSPs em um único snapshot transacional e delega a
decisão ao motor puro (``services.pix``).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Union
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pix_engine.core.logging import get_logger
from pix_engine.core.metrics import record_fee_computation
from pix_engine.db.base import begin_snapshot
from pix_engine.db.models.pix_availability_rule import PixAvailabilityRule
from pix_engine.db.models.pix_pricing_plan import PixPricingPlan
from pix_engine.db.models.pix_psp_provider import PixPspProvider
from pix_engine.services.pix.errors import ConfigurationError
from pix_engine.services.pix.fee_calculator import compute_fee, validate_amount
from pix_engine.services.pix.provider_registry import ProviderRegistry
from pix_engine.services.pix.rule_resolver import resolve_route, resolve_route_options
from pix_engine.services.pix.simulator import PlanSimulation, simulate_plans
from pix_engine.services.pix.types import (
    AvailabilityRule,
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

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class RoutingSnapshot:
    """Estado consistente do catálogo para uma resolução."""

    rules: list[AvailabilityRule]
    registry: ProviderRegistry


@dataclass(frozen=True, slots=True)
class PixQuote:
    route: Union[ResolvedRoute, RouteNotFound]
    fee: Optional[FeeBreakdown] = None
    credential: Optional[CredentialSelection] = None


class PixRoutingService:
    """Resolve rota, tarifa e cotação de checkout PIX."""

    def __init__(self, credential_service: Optional[PixCredentialService] = None):
        self.credential_service = credential_service or get_pix_credential_service()

    async def load_snapshot(self, db: AsyncSession) -> RoutingSnapshot:
        """Lê regras, planos e PSPs na mesma transação."""
        await begin_snapshot(db)

        rules_result = await db.execute(select(PixAvailabilityRule))
        plans_result = await db.execute(select(PixPricingPlan))
        providers_result = await db.execute(select(PixPspProvider))

        rules = [row.to_domain() for row in rules_result.scalars().all()]
        plans = [row.to_domain() for row in plans_result.scalars().all()]
        providers = [row.to_domain() for row in providers_result.scalars().all()]
        return RoutingSnapshot(rules=rules, registry=ProviderRegistry(providers, plans))

    async def resolve_route(
        self, db: AsyncSession, ctx: RouteContext
    ) -> Union[ResolvedRoute, RouteNotFound]:
        snapshot = await self.load_snapshot(db)
        return resolve_route(
            ctx,
            snapshot.rules,
            snapshot.registry.plans,
            snapshot.registry.providers,
        )

    async def resolve_options(self, db: AsyncSession, ctx: RouteContext) -> list[ResolvedRoute]:
        snapshot = await self.load_snapshot(db)
        return resolve_route_options(
            ctx,
            snapshot.rules,
            snapshot.registry.plans,
            snapshot.registry.providers,
        )

    async def compute_fee(
        self,
        db: AsyncSession,
        amount_cents: Any,
        pricing_plan_id: Optional[UUID] = None,
        psp_provider_id: Optional[UUID] = None,
    ) -> FeeBreakdown:
        """
        Calcula a tarifa a partir de um plano ou da tarifa padrão de um PSP.

        Exatamente uma referência deve ser informada. Referência inexistente
        levanta ``ConfigurationError``.
        """
        if (pricing_plan_id is None) == (psp_provider_id is None):
            raise ValueError("Informe pricing_plan_id ou psp_provider_id (apenas um)")
        validate_amount(amount_cents)

        if pricing_plan_id is not None:
            result = await db.execute(
                select(PixPricingPlan).where(PixPricingPlan.id == pricing_plan_id)
            )
            plan = result.scalar_one_or_none()
            if plan is None:
                raise ConfigurationError(f"Plano de precificação não encontrado: {pricing_plan_id}")
            source = plan.to_domain()
        else:
            result = await db.execute(
                select(PixPspProvider).where(PixPspProvider.id == psp_provider_id)
            )
            provider = result.scalar_one_or_none()
            registry = ProviderRegistry([provider.to_domain()] if provider is not None else [])
            source = registry.get_fallback_fee(str(psp_provider_id))

        fee = compute_fee(source, amount_cents)
        record_fee_computation(fee.source)
        return fee

    async def quote(self, db: AsyncSession, ctx: RouteContext, amount_cents: Any) -> PixQuote:
        """Rota, tarifa e origem da credencial em um único snapshot."""
        validate_amount(amount_cents)
        snapshot = await self.load_snapshot(db)
        route = resolve_route(
            ctx,
            snapshot.rules,
            snapshot.registry.plans,
            snapshot.registry.providers,
        )
        if isinstance(route, RouteNotFound):
            return PixQuote(route=route)

        fee = compute_fee(snapshot.registry.pricing_for_route(route), amount_cents)
        record_fee_computation(fee.source)

        credential = None
        if route.provider_id is not None:
            credential = await self.credential_service.resolve(
                db, ctx.tenant_id, UUID(route.provider_id)
            )
        logger.info(
            "pix_quote_computed",
            rule_id=route.rule_id,
            provider_id=route.provider_id,
            pricing_plan_id=route.pricing_plan_id,
            total_fee_cents=fee.total_fee_cents,
            credential_source=credential.source if credential else None,
        )
        return PixQuote(route=route, fee=fee, credential=credential)

    async def simulate(
        self, db: AsyncSession, ticket_cents: int, monthly_volume: int
    ) -> list[PlanSimulation]:
        result = await db.execute(select(PixPricingPlan).where(PixPricingPlan.is_active.is_(True)))
        plans = [row.to_domain() for row in result.scalars().all()]
        return simulate_plans(plans, ticket_cents, monthly_volume)


_routing_service: Optional[PixRoutingService] = None


def get_pix_routing_service() -> PixRoutingService:
    """Singleton do serviço de resolução PIX."""
    global _routing_service
    if _routing_service is None:
        _routing_service = PixRoutingService()
    return _routing_service
