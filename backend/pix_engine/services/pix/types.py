"""
Tipos do motor PIX Automático.

Valores imutáveis, sem I/O. A camada de persistência converte linhas
SQLAlchemy nestes tipos antes de chamar os resolvers.

Valores monetários:
- campos ``*_fee`` / ``*_rate`` fixos / ``min_paid_price`` em unidades de moeda (R$, ``Decimal``);
- campos ``*_cents`` em centavos (``int``);
- ``percent_rate`` como fração decimal em [0, 1].
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from decimal import Decimal
from typing import Generic, Literal, Optional, TypeAlias, TypeVar, Union

RuleScopeLiteral = Literal["global", "category", "plan", "partner", "tenant"]
PricingTypeLiteral = Literal["percentual", "fixo", "hibrido"]
ConnectionStatusLiteral = Literal["pending", "connected", "error"]
CredentialScopeLiteral = Literal["tenant", "platform"]
CredentialSourceLiteral = Literal["tenant", "platform", "none"]
BillingOwnerLiteral = Literal["platform", "partner"]
FeeSourceLiteral = Literal["pricing_plan", "provider_default"]

RULE_SCOPES: tuple[str, ...] = ("global", "category", "plan", "partner", "tenant")
PRICING_TYPES: tuple[str, ...] = ("percentual", "fixo", "hibrido")

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Valor tri-state de override: herdar ou valor explícito
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Inherit:
    """Campo herda o valor da política global."""

    def __repr__(self) -> str:
        return "INHERIT"


@dataclass(frozen=True, slots=True)
class Value(Generic[T]):
    """Campo sobrescrito explicitamente (``False`` e ``0`` são valores)."""

    value: T


INHERIT = Inherit()

Override: TypeAlias = Union[Inherit, Value[T]]


def from_nullable(raw: Optional[T]) -> Override[T]:
    """Converte coluna anulável (``NULL`` = herdar) para o valor tri-state."""
    if raw is None:
        return INHERIT
    return Value(raw)


def to_nullable(item: Override[T]) -> Optional[T]:
    """Converte o valor tri-state de volta para coluna anulável."""
    if isinstance(item, Value):
        return item.value
    return None


# ---------------------------------------------------------------------------
# Políticas de parceiro
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class GlobalPolicy:
    """Política padrão da plataforma (linha única, todos os campos concretos)."""

    allow_free_plan: bool
    allow_partner_gateway: bool
    allow_offline_billing: bool
    billing_owner: BillingOwnerLiteral
    max_plans: int
    min_paid_price: Decimal
    max_modules_per_plan: int
    max_features_per_plan: int
    max_trial_days: int
    tx_fee_max_percent: Decimal
    tx_fee_max_fixed_cents: int


EffectivePolicy: TypeAlias = GlobalPolicy

POLICY_FIELDS: tuple[str, ...] = tuple(item.name for item in fields(GlobalPolicy))
BOOLEAN_POLICY_FIELDS: tuple[str, ...] = (
    "allow_free_plan",
    "allow_partner_gateway",
    "allow_offline_billing",
)


@dataclass(frozen=True, slots=True)
class PolicyOverride:
    """Override por parceiro; cada campo herda (``INHERIT``) ou define valor."""

    allow_free_plan: Override[bool] = INHERIT
    allow_partner_gateway: Override[bool] = INHERIT
    allow_offline_billing: Override[bool] = INHERIT
    billing_owner: Override[str] = INHERIT
    max_plans: Override[int] = INHERIT
    min_paid_price: Override[Decimal] = INHERIT
    max_modules_per_plan: Override[int] = INHERIT
    max_features_per_plan: Override[int] = INHERIT
    max_trial_days: Override[int] = INHERIT
    tx_fee_max_percent: Override[Decimal] = INHERIT
    tx_fee_max_fixed_cents: Override[int] = INHERIT


# ---------------------------------------------------------------------------
# Catálogo PIX: planos, PSPs, regras e credenciais
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PricingPlan:
    id: str
    slug: str
    pricing_type: PricingTypeLiteral
    percent_rate: Decimal
    fixed_rate: Decimal
    min_fee: Decimal
    max_fee: Optional[Decimal] = None
    is_subsidized: bool = False
    subsidy_percent: Optional[Decimal] = None
    is_active: bool = True
    display_order: int = 0
    name: str = ""


@dataclass(frozen=True, slots=True)
class PSPProvider:
    id: str
    name: str
    default_percent_fee: Decimal
    default_fixed_fee: Decimal
    pricing_model: PricingTypeLiteral = "percentual"
    supports_txid: bool = False
    supports_webhook: bool = False
    supports_subaccount: bool = False
    supports_split: bool = False
    is_active: bool = True
    display_name: str = ""


@dataclass(frozen=True, slots=True)
class ProviderDefault:
    """Tabela de tarifa padrão do PSP, usada quando a regra não tem plano."""

    provider_id: str
    percent_rate: Decimal
    fixed_rate: Decimal


@dataclass(frozen=True, slots=True)
class AvailabilityRule:
    id: str
    scope: RuleScopeLiteral
    priority: int
    scope_id: Optional[str] = None
    psp_provider_id: Optional[str] = None
    pricing_plan_id: Optional[str] = None
    is_enabled: bool = True
    created_at: Optional[datetime] = None
    notes: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Credential:
    id: str
    scope: CredentialScopeLiteral
    psp_provider_id: str
    scope_id: Optional[str] = None
    api_key: Optional[str] = field(default=None, repr=False)
    webhook_secret: Optional[str] = field(default=None, repr=False)
    connection_status: ConnectionStatusLiteral = "pending"
    use_platform_credentials: bool = False


# ---------------------------------------------------------------------------
# Entradas e saídas de resolução
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RouteContext:
    """Contexto de checkout usado para casar regras por escopo."""

    tenant_id: str
    partner_id: Optional[str] = None
    plan_id: Optional[str] = None
    category_id: Optional[str] = None

    def scope_value(self, scope: str) -> Optional[str]:
        if scope == "tenant":
            return self.tenant_id
        if scope == "partner":
            return self.partner_id
        if scope == "plan":
            return self.plan_id
        if scope == "category":
            return self.category_id
        return None


@dataclass(frozen=True, slots=True)
class ResolvedRoute:
    rule_id: str
    scope: RuleScopeLiteral
    priority: int
    provider_id: Optional[str] = None
    pricing_plan_id: Optional[str] = None

    available = True


@dataclass(frozen=True, slots=True)
class RouteNotFound:
    """Nenhuma regra habilitada atende o contexto: recurso indisponível."""

    tenant_id: str
    reason: str = "no_matching_rule"

    available = False


@dataclass(frozen=True, slots=True)
class FeeBreakdown:
    merchant_fee_cents: int
    platform_subsidy_cents: int
    total_fee_cents: int
    raw_fee_cents: Decimal
    source: FeeSourceLiteral


@dataclass(frozen=True, slots=True)
class CredentialSelection:
    source: CredentialSourceLiteral
    credential: Optional[Credential] = None

    @property
    def connection_status(self) -> Optional[str]:
        if self.credential is None:
            return None
        return self.credential.connection_status
