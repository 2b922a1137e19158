"""Simulador de custo mensal por plano de precificação."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from .errors import InvalidAmountError
from .fee_calculator import compute_fee, validate_amount
from .types import FeeBreakdown, PricingPlan


@dataclass(frozen=True, slots=True)
class PlanSimulation:
    plan_id: str
    slug: str
    name: str
    fee: FeeBreakdown
    monthly_merchant_cost_cents: int
    monthly_subsidy_cents: int
    display_order: int = 0


def simulate_plans(
    plans: Iterable[PricingPlan],
    ticket_cents: int,
    monthly_volume: int,
) -> list[PlanSimulation]:
    """Custo por transação e mensal de cada plano ativo, do mais barato ao mais caro."""
    if isinstance(monthly_volume, bool) or not isinstance(monthly_volume, int) or monthly_volume < 0:
        raise InvalidAmountError("Volume mensal deve ser inteiro não negativo")
    validate_amount(ticket_cents)

    results: list[PlanSimulation] = []
    for plan in plans:
        if not plan.is_active:
            continue
        fee = compute_fee(plan, ticket_cents)
        results.append(
            PlanSimulation(
                plan_id=str(plan.id),
                slug=plan.slug,
                name=plan.name,
                fee=fee,
                monthly_merchant_cost_cents=fee.merchant_fee_cents * monthly_volume,
                monthly_subsidy_cents=fee.platform_subsidy_cents * monthly_volume,
                display_order=plan.display_order,
            )
        )

    results.sort(key=lambda r: (r.monthly_merchant_cost_cents, r.display_order, r.slug))
    return results
