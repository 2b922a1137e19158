"""
Resolução de rota PIX a partir das regras de disponibilidade.

Seleciona, para um contexto de checkout, a regra habilitada de maior
prioridade entre as que se aplicam ao contexto. A prioridade é a gravada na
regra; os valores padrão por escopo só são aplicados na criação.

Ordem de desempate: ``priority`` desc, ``created_at`` desc (mais recente
vence), ``id`` desc.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Optional, Union

from pix_engine.core.logging import get_logger
from pix_engine.core.metrics import record_route_resolution, record_rule_skipped

from .types import (
    AvailabilityRule,
    PricingPlan,
    PSPProvider,
    ResolvedRoute,
    RouteContext,
    RouteNotFound,
)

logger = get_logger(__name__)

DEFAULT_SCOPE_PRIORITY: dict[str, int] = {
    "tenant": 5,
    "partner": 4,
    "plan": 3,
    "category": 2,
    "global": 1,
}

RouteResult = Union[ResolvedRoute, RouteNotFound]


def default_priority(scope: str) -> int:
    """Prioridade sugerida para uma regra nova do escopo informado."""
    try:
        return DEFAULT_SCOPE_PRIORITY[scope]
    except KeyError:
        raise ValueError(f"Escopo inválido: {scope}") from None


def rule_matches(rule: AvailabilityRule, ctx: RouteContext) -> bool:
    """Regra habilitada e aplicável ao contexto."""
    if not rule.is_enabled:
        return False
    if rule.scope == "global":
        return True
    expected = ctx.scope_value(rule.scope)
    if expected is None or rule.scope_id is None:
        return False
    return str(rule.scope_id) == str(expected)


def _rank_key(rule: AvailabilityRule) -> tuple[int, float, str]:
    created = rule.created_at.timestamp() if isinstance(rule.created_at, datetime) else float("-inf")
    return (rule.priority, created, str(rule.id))


def rank_rules(rules: Iterable[AvailabilityRule]) -> list[AvailabilityRule]:
    """Ordena regras da mais forte para a mais fraca."""
    return sorted(rules, key=_rank_key, reverse=True)


def _skip_reason(
    rule: AvailabilityRule,
    plans: Mapping[str, PricingPlan],
    providers: Mapping[str, PSPProvider],
) -> Optional[str]:
    if rule.psp_provider_id is None and rule.pricing_plan_id is None:
        return "no_target"
    if rule.psp_provider_id is not None:
        provider = providers.get(str(rule.psp_provider_id))
        if provider is None:
            return "dangling_provider"
        if not provider.is_active:
            return "inactive_provider"
    if rule.pricing_plan_id is not None:
        plan = plans.get(str(rule.pricing_plan_id))
        if plan is None:
            return "dangling_plan"
        if not plan.is_active:
            return "inactive_plan"
    return None


def _log_skip(rule: AvailabilityRule, reason: str) -> None:
    record_rule_skipped(reason)
    fields = {
        "rule_id": str(rule.id),
        "scope": rule.scope,
        "reason": reason,
        "psp_provider_id": rule.psp_provider_id,
        "pricing_plan_id": rule.pricing_plan_id,
    }
    if reason.startswith("inactive_"):
        logger.info("pix_rule_skipped", **fields)
    else:
        logger.warning("pix_rule_skipped", **fields)


def _usable_candidates(
    ctx: RouteContext,
    rules: Iterable[AvailabilityRule],
    plans: Mapping[str, PricingPlan],
    providers: Mapping[str, PSPProvider],
) -> Iterable[AvailabilityRule]:
    for rule in rank_rules(r for r in rules if rule_matches(r, ctx)):
        reason = _skip_reason(rule, plans, providers)
        if reason is not None:
            _log_skip(rule, reason)
            continue
        yield rule


def _to_route(rule: AvailabilityRule) -> ResolvedRoute:
    return ResolvedRoute(
        rule_id=str(rule.id),
        scope=rule.scope,
        priority=rule.priority,
        provider_id=str(rule.psp_provider_id) if rule.psp_provider_id is not None else None,
        pricing_plan_id=str(rule.pricing_plan_id) if rule.pricing_plan_id is not None else None,
    )


def resolve_route(
    ctx: RouteContext,
    rules: Iterable[AvailabilityRule],
    plans: Mapping[str, PricingPlan],
    providers: Mapping[str, PSPProvider],
) -> RouteResult:
    """
    Resolve a rota PIX (PSP e/ou plano de precificação) para o contexto.

    Parameters
    ----------
    ctx : RouteContext
        Identificadores do checkout (tenant obrigatório; parceiro, plano e
        categoria opcionais).
    rules : Iterable[AvailabilityRule]
        Regras do snapshot atual.
    plans, providers : Mapping[str, ...]
        Planos e PSPs do mesmo snapshot, indexados por id.

    Returns
    -------
    ResolvedRoute | RouteNotFound
        ``RouteNotFound`` significa recurso indisponível para o tenant; não é
        um erro.
    """
    for rule in _usable_candidates(ctx, rules, plans, providers):
        route = _to_route(rule)
        record_route_resolution("resolved", route.scope)
        logger.debug(
            "pix_route_resolved",
            rule_id=route.rule_id,
            scope=route.scope,
            priority=route.priority,
        )
        return route

    record_route_resolution("not_found")
    logger.info("pix_route_not_found", tenant_id=ctx.tenant_id)
    return RouteNotFound(tenant_id=ctx.tenant_id)


def resolve_route_options(
    ctx: RouteContext,
    rules: Iterable[AvailabilityRule],
    plans: Mapping[str, PricingPlan],
    providers: Mapping[str, PSPProvider],
) -> list[ResolvedRoute]:
    """Melhor regra utilizável por PSP, da mais forte para a mais fraca.

    Regras sem PSP (só plano) entram uma única vez, sob a chave ``None``.
    """
    seen: set[Optional[str]] = set()
    options: list[ResolvedRoute] = []
    for rule in _usable_candidates(ctx, rules, plans, providers):
        route = _to_route(rule)
        if route.provider_id in seen:
            continue
        seen.add(route.provider_id)
        options.append(route)
    return options
