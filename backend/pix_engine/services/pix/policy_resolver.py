"""
Resolução da política efetiva de parceiros.

Combina a política global (linha única) com o override opcional do parceiro,
campo a campo. Também concentra as validações que dependem da política
efetiva: limites de planos de assinatura do parceiro e tetos de tarifa PIX.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional

from .types import (
    BOOLEAN_POLICY_FIELDS,
    INHERIT,
    POLICY_FIELDS,
    EffectivePolicy,
    GlobalPolicy,
    Inherit,
    Override,
    PolicyOverride,
    PricingPlan,
    Value,
    to_nullable,
)


def resolve_effective_policy(
    global_policy: GlobalPolicy,
    override: Optional[PolicyOverride],
) -> EffectivePolicy:
    """
    Retorna a política efetiva do parceiro.

    Para cada campo, o valor do override vence quando é ``Value``; caso
    contrário herda o valor global. ``override=None`` equivale a um override
    com todos os campos ``INHERIT`` e devolve a própria política global.
    """
    if override is None:
        return global_policy

    changes: dict[str, Any] = {}
    for name in POLICY_FIELDS:
        item = getattr(override, name)
        if isinstance(item, Value):
            changes[name] = item.value

    if not changes:
        return global_policy
    return dataclasses.replace(global_policy, **changes)


def overridden_fields(override: Optional[PolicyOverride]) -> list[str]:
    """Campos personalizados (não herdados) do override, na ordem da política."""
    if override is None:
        return []
    return [name for name in POLICY_FIELDS if isinstance(getattr(override, name), Value)]


def cycle_tri_state(current: Override[bool]) -> Override[bool]:
    """Próximo estado do seletor booleano: herdar → sim → não → herdar."""
    if isinstance(current, Inherit):
        return Value(True)
    if current.value is True:
        return Value(False)
    return INHERIT


def cycle_override_field(override: Optional[PolicyOverride], field_name: str) -> PolicyOverride:
    """Aplica ``cycle_tri_state`` a um campo booleano do override."""
    if field_name not in BOOLEAN_POLICY_FIELDS:
        raise ValueError(f"Campo '{field_name}' não é booleano")
    base = override or PolicyOverride()
    return dataclasses.replace(base, **{field_name: cycle_tri_state(getattr(base, field_name))})


# ---------------------------------------------------------------------------
# Validação de planos de assinatura do parceiro
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PartnerPlanDraft:
    """Rascunho de plano de assinatura oferecido por um parceiro."""

    monthly_price: Decimal
    is_free: bool = False
    trial_days: int = 0
    included_modules: tuple[str, ...] = ()
    included_features: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class PlanValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)


def validate_partner_plan(
    policy: EffectivePolicy,
    draft: PartnerPlanDraft,
    existing_plans: int = 0,
) -> PlanValidationResult:
    """
    Valida um plano de parceiro contra a política efetiva.

    Parameters
    ----------
    policy : EffectivePolicy
        Política já resolvida para o parceiro.
    draft : PartnerPlanDraft
        Plano proposto.
    existing_plans : int
        Quantidade de planos que o parceiro já possui (sem contar o rascunho).
    """
    errors: list[str] = []

    if draft.is_free and not policy.allow_free_plan:
        errors.append("Plano gratuito não permitido")

    if not draft.is_free and draft.monthly_price < policy.min_paid_price:
        errors.append(f"Preço mínimo para plano pago: R$ {policy.min_paid_price:.2f}")

    if draft.trial_days and draft.trial_days > policy.max_trial_days:
        errors.append(f"Máximo de {policy.max_trial_days} dias de trial")

    if len(draft.included_modules) > policy.max_modules_per_plan:
        errors.append(f"Máximo de {policy.max_modules_per_plan} módulos por plano")

    if len(draft.included_features) > policy.max_features_per_plan:
        errors.append(f"Máximo de {policy.max_features_per_plan} features por plano")

    if existing_plans + 1 > policy.max_plans:
        errors.append(f"Máximo de {policy.max_plans} planos por parceiro")

    return PlanValidationResult(valid=not errors, errors=errors)


def check_tx_fee_caps(policy: EffectivePolicy, plan: PricingPlan) -> list[str]:
    """
    Confere um plano de precificação contra os tetos de tarifa da política.

    ``tx_fee_max_percent`` está em pontos percentuais (0..100) e o
    ``percent_rate`` do plano é fração (0..1).
    """
    errors: list[str] = []
    percent_points = plan.percent_rate * Decimal(100)
    if percent_points > policy.tx_fee_max_percent:
        errors.append(
            f"Taxa percentual {percent_points.normalize():f}% acima do máximo de "
            f"{policy.tx_fee_max_percent.normalize():f}%"
        )
    fixed_cents = int((plan.fixed_rate * 100).to_integral_value())
    if fixed_cents > policy.tx_fee_max_fixed_cents:
        errors.append(
            f"Taxa fixa de {fixed_cents} centavos acima do máximo de "
            f"{policy.tx_fee_max_fixed_cents} centavos"
        )
    return errors


def policy_as_dict(policy: GlobalPolicy) -> dict[str, Any]:
    return {name: getattr(policy, name) for name in POLICY_FIELDS}


def override_as_dict(override: PolicyOverride) -> dict[str, Any]:
    """Override como dicionário anulável (``None`` = herdar)."""
    return {name: to_nullable(getattr(override, name)) for name in POLICY_FIELDS}
