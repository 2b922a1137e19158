"""
Cálculo de tarifa PIX em centavos.

Toda a aritmética é feita com ``Decimal`` sobre centavos; o arredondamento
final é half-up para o centavo mais próximo. O subsídio é arredondado
separadamente e a tarifa do lojista é o restante, de modo que
``merchant_fee_cents + platform_subsidy_cents == total_fee_cents``.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from numbers import Number
from typing import Any, Union

from .errors import InconsistentPlanError, InvalidAmountError
from .types import PRICING_TYPES, FeeBreakdown, PricingPlan, ProviderDefault

PricingSource = Union[PricingPlan, ProviderDefault]

_CENTS = Decimal(100)
_ONE = Decimal(1)


def round_half_up(value: Decimal) -> int:
    """Arredonda para o inteiro mais próximo (meio para cima)."""
    return int(value.quantize(_ONE, rounding=ROUND_HALF_UP))


def to_cents(amount: Union[Decimal, int, str]) -> Decimal:
    """Converte valor em reais para centavos (sem arredondar)."""
    return Decimal(str(amount)) * _CENTS


def _as_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def validate_amount(amount_cents: Any) -> int:
    """
    Valida o valor da transação em centavos.

    Aceita inteiros e valores numéricos integrais (``4500.0``). Rejeita
    booleanos, negativos, não finitos e frações de centavo.
    """
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, (Number, Decimal)):
        raise InvalidAmountError(f"Valor inválido: {amount_cents!r}")
    try:
        value = _as_decimal(amount_cents)
    except (InvalidOperation, ValueError):
        raise InvalidAmountError(f"Valor inválido: {amount_cents!r}") from None
    if not value.is_finite():
        raise InvalidAmountError("Valor da transação deve ser finito")
    if value < 0:
        raise InvalidAmountError("Valor da transação não pode ser negativo")
    if value != value.to_integral_value():
        raise InvalidAmountError("Valor da transação deve ser inteiro em centavos")
    return int(value)


def compute_fee(source: PricingSource, amount_cents: Any) -> FeeBreakdown:
    """
    Calcula a tarifa de uma transação.

    ``raw = amount * percent_rate + fixed_rate`` (em centavos), limitada por
    ``min_fee``/``max_fee`` quando a fonte é um plano. A tarifa mínima vale
    também para valor zero. Padrões de PSP não têm mínimo, máximo nem subsídio.
    """
    amount = Decimal(validate_amount(amount_cents))

    if isinstance(source, PricingPlan):
        raw = amount * _as_decimal(source.percent_rate) + to_cents(source.fixed_rate)
        clamped = raw
        if source.max_fee is not None:
            clamped = min(clamped, to_cents(source.max_fee))
        clamped = max(to_cents(source.min_fee), clamped)
        total = round_half_up(clamped)

        subsidy = 0
        if source.is_subsidized and source.subsidy_percent:
            subsidy = round_half_up(Decimal(total) * _as_decimal(source.subsidy_percent) / _CENTS)
        origin = "pricing_plan"
    else:
        raw = amount * _as_decimal(source.percent_rate) + to_cents(source.fixed_rate)
        total = round_half_up(raw)
        subsidy = 0
        origin = "provider_default"

    return FeeBreakdown(
        merchant_fee_cents=total - subsidy,
        platform_subsidy_cents=subsidy,
        total_fee_cents=total,
        raw_fee_cents=raw,
        source=origin,
    )


def validate_pricing_plan(plan: PricingPlan) -> None:
    """
    Verifica a consistência de um plano de precificação.

    Raises
    ------
    InconsistentPlanError
        Faixas inválidas, ``min_fee > max_fee`` ou tipo incompatível com as taxas.
    """
    if plan.pricing_type not in PRICING_TYPES:
        raise InconsistentPlanError(f"Tipo de precificação inválido: {plan.pricing_type}")

    percent_rate = _as_decimal(plan.percent_rate)
    fixed_rate = _as_decimal(plan.fixed_rate)
    min_fee = _as_decimal(plan.min_fee)

    if not (Decimal(0) <= percent_rate <= _ONE):
        raise InconsistentPlanError("percent_rate deve estar entre 0 e 1")
    if fixed_rate < 0:
        raise InconsistentPlanError("fixed_rate não pode ser negativo")
    if min_fee < 0:
        raise InconsistentPlanError("min_fee não pode ser negativo")
    if plan.max_fee is not None and min_fee > _as_decimal(plan.max_fee):
        raise InconsistentPlanError("min_fee não pode ser maior que max_fee")

    if plan.pricing_type == "percentual" and fixed_rate != 0:
        raise InconsistentPlanError("Plano percentual não pode ter taxa fixa")
    if plan.pricing_type == "fixo" and percent_rate != 0:
        raise InconsistentPlanError("Plano fixo não pode ter taxa percentual")

    if plan.is_subsidized:
        if plan.subsidy_percent is None:
            raise InconsistentPlanError("Plano subsidiado exige subsidy_percent")
        if not (Decimal(0) <= _as_decimal(plan.subsidy_percent) <= _CENTS):
            raise InconsistentPlanError("subsidy_percent deve estar entre 0 e 100")
