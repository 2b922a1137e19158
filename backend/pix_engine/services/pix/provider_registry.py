"""Registro de PSPs: capacidades e tabela de tarifa padrão."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Optional

from .errors import ConfigurationError
from .fee_calculator import PricingSource
from .types import PricingPlan, PSPProvider, ProviderDefault, ResolvedRoute


class ProviderRegistry:
    """Consulta somente leitura sobre um snapshot de PSPs e planos."""

    def __init__(
        self,
        providers: Iterable[PSPProvider],
        plans: Iterable[PricingPlan] = (),
    ) -> None:
        self._providers: dict[str, PSPProvider] = {str(p.id): p for p in providers}
        self._plans: dict[str, PricingPlan] = {str(p.id): p for p in plans}

    @property
    def providers(self) -> Mapping[str, PSPProvider]:
        return self._providers

    @property
    def plans(self) -> Mapping[str, PricingPlan]:
        return self._plans

    def get(self, provider_id: str) -> Optional[PSPProvider]:
        return self._providers.get(str(provider_id))

    def get_plan(self, plan_id: str) -> Optional[PricingPlan]:
        return self._plans.get(str(plan_id))

    def get_fallback_fee(self, provider_id: str) -> ProviderDefault:
        """Tarifa padrão do PSP como fonte de precificação de faixa única."""
        provider = self.get(provider_id)
        if provider is None:
            raise ConfigurationError(f"PSP não encontrado: {provider_id}")
        return ProviderDefault(
            provider_id=str(provider.id),
            percent_rate=provider.default_percent_fee,
            fixed_rate=provider.default_fixed_fee,
        )

    def pricing_for_route(self, route: ResolvedRoute) -> PricingSource:
        """Plano da rota ou, sem plano, a tarifa padrão do PSP da rota."""
        if route.pricing_plan_id is not None:
            plan = self.get_plan(route.pricing_plan_id)
            if plan is None:
                raise ConfigurationError(f"Plano de precificação não encontrado: {route.pricing_plan_id}")
            return plan
        if route.provider_id is None:
            raise ConfigurationError(f"Regra {route.rule_id} sem PSP nem plano")
        return self.get_fallback_fee(route.provider_id)
