"""
Schemas do PIX Automático.

Inclui payloads administrativos (planos, PSPs, regras, credenciais) e as
respostas de checkout (rota, tarifa, cotação, simulação).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import ClassVar, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

RuleScope = Literal["global", "category", "plan", "partner", "tenant"]
PricingType = Literal["percentual", "fixo", "hibrido"]
ConnectionStatus = Literal["pending", "connected", "error"]


class PartialUpdate(BaseModel):
    """Base de PATCH: ``null`` explícito só é aceito nos campos anuláveis."""

    nullable_fields: ClassVar[frozenset[str]] = frozenset()

    @model_validator(mode="after")
    def _reject_explicit_nulls(self):
        invalid = sorted(
            name
            for name in self.model_fields_set
            if getattr(self, name) is None and name not in self.nullable_fields
        )
        if invalid:
            raise ValueError(f"campos não aceitam null: {', '.join(invalid)}")
        return self


# ---------------------------------------------------------------------------
# Planos de precificação
# ---------------------------------------------------------------------------


class PricingPlanBase(BaseModel):
    """Dados base de plano de precificação."""

    name: str = Field(..., min_length=2, max_length=100)
    slug: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = None
    pricing_type: PricingType = "percentual"
    percent_rate: Decimal = Field(default=Decimal("0"), ge=0, le=1, description="Fração (0.0199 = 1,99%)")
    fixed_rate: Decimal = Field(default=Decimal("0"), ge=0, description="Em reais")
    min_fee: Decimal = Field(default=Decimal("0"), ge=0)
    max_fee: Optional[Decimal] = Field(default=None, ge=0)
    is_subsidized: bool = False
    subsidy_percent: Optional[Decimal] = Field(default=None, ge=0, le=100)
    is_active: bool = True
    display_order: int = 0

    @field_validator("slug")
    @classmethod
    def _validate_slug(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError("slug é obrigatório")
        if " " in normalized:
            raise ValueError("slug não pode conter espaços")
        return normalized


class PricingPlanCreate(PricingPlanBase):
    """Payload de criação de plano."""


class PricingPlanUpdate(PartialUpdate):
    """Payload de atualização parcial de plano."""

    nullable_fields: ClassVar[frozenset[str]] = frozenset(
        {"description", "max_fee", "subsidy_percent"}
    )

    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    description: Optional[str] = None
    pricing_type: Optional[PricingType] = None
    percent_rate: Optional[Decimal] = Field(default=None, ge=0, le=1)
    fixed_rate: Optional[Decimal] = Field(default=None, ge=0)
    min_fee: Optional[Decimal] = Field(default=None, ge=0)
    max_fee: Optional[Decimal] = Field(default=None, ge=0)
    is_subsidized: Optional[bool] = None
    subsidy_percent: Optional[Decimal] = Field(default=None, ge=0, le=100)
    is_active: Optional[bool] = None
    display_order: Optional[int] = None


class PricingPlanResponse(PricingPlanBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PlanDeleteResponse(BaseModel):
    id: UUID
    rules_disabled: int


# ---------------------------------------------------------------------------
# PSPs
# ---------------------------------------------------------------------------


class ProviderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    display_name: str
    supports_txid: bool
    supports_webhook: bool
    supports_subaccount: bool
    supports_split: bool
    default_percent_fee: Decimal
    default_fixed_fee: Decimal
    pricing_model: str
    is_active: bool


class ProviderUpdate(PartialUpdate):
    display_name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    supports_txid: Optional[bool] = None
    supports_webhook: Optional[bool] = None
    supports_subaccount: Optional[bool] = None
    supports_split: Optional[bool] = None
    default_percent_fee: Optional[Decimal] = Field(default=None, ge=0, le=1)
    default_fixed_fee: Optional[Decimal] = Field(default=None, ge=0)
    pricing_model: Optional[PricingType] = None
    is_active: Optional[bool] = None


# ---------------------------------------------------------------------------
# Regras de disponibilidade
# ---------------------------------------------------------------------------


class RuleCreate(BaseModel):
    """Payload de criação de regra; sem ``priority`` usa o padrão do escopo."""

    scope: RuleScope
    scope_id: Optional[str] = Field(default=None, max_length=255)
    psp_provider_id: Optional[UUID] = None
    pricing_plan_id: Optional[UUID] = None
    priority: Optional[int] = None
    is_enabled: bool = True
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _check_target(self) -> "RuleCreate":
        if self.scope != "global" and not (self.scope_id or "").strip():
            raise ValueError("scope_id é obrigatório para escopos diferentes de global")
        if self.psp_provider_id is None and self.pricing_plan_id is None:
            raise ValueError("informe psp_provider_id e/ou pricing_plan_id")
        return self


class RuleUpdate(PartialUpdate):
    nullable_fields: ClassVar[frozenset[str]] = frozenset(
        {"scope_id", "psp_provider_id", "pricing_plan_id", "notes"}
    )

    scope: Optional[RuleScope] = None
    scope_id: Optional[str] = Field(default=None, max_length=255)
    psp_provider_id: Optional[UUID] = None
    pricing_plan_id: Optional[UUID] = None
    priority: Optional[int] = None
    is_enabled: Optional[bool] = None
    notes: Optional[str] = None


class RuleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    scope: RuleScope
    scope_id: Optional[str] = None
    psp_provider_id: Optional[UUID] = None
    pricing_plan_id: Optional[UUID] = None
    priority: int
    is_enabled: bool
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Credenciais
# ---------------------------------------------------------------------------


class CredentialUpsert(BaseModel):
    """Payload de credencial; segredos são somente escrita."""

    scope: Literal["tenant", "platform"]
    scope_id: Optional[str] = Field(default=None, max_length=255)
    psp_provider_id: UUID
    api_key: Optional[str] = None
    webhook_secret: Optional[str] = None
    connection_status: ConnectionStatus = "pending"
    use_platform_credentials: bool = False


class CredentialResponse(BaseModel):
    id: UUID
    scope: str
    scope_id: Optional[str] = None
    psp_provider_id: UUID
    connection_status: ConnectionStatus
    use_platform_credentials: bool
    has_api_key: bool
    has_webhook_secret: bool


class CredentialResolveResponse(BaseModel):
    source: Literal["tenant", "platform", "none"]
    credential_id: Optional[str] = None
    connection_status: Optional[ConnectionStatus] = None


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------


class RouteResponse(BaseModel):
    """Rota resolvida ou indisponibilidade (``available = false``)."""

    available: bool
    rule_id: Optional[str] = None
    scope: Optional[RuleScope] = None
    priority: Optional[int] = None
    provider_id: Optional[str] = None
    pricing_plan_id: Optional[str] = None
    reason: Optional[str] = None


class RouteOptionsResponse(BaseModel):
    options: List[RouteResponse] = Field(default_factory=list)


class FeeRequest(BaseModel):
    """Cálculo de tarifa a partir de plano ou PSP (apenas um)."""

    pricing_plan_id: Optional[UUID] = None
    psp_provider_id: Optional[UUID] = None
    amount_cents: int

    @model_validator(mode="after")
    def _check_reference(self) -> "FeeRequest":
        if (self.pricing_plan_id is None) == (self.psp_provider_id is None):
            raise ValueError("informe pricing_plan_id ou psp_provider_id (apenas um)")
        return self


class FeeResponse(BaseModel):
    merchant_fee_cents: int
    platform_subsidy_cents: int
    total_fee_cents: int
    source: Literal["pricing_plan", "provider_default"]


class QuoteRequest(BaseModel):
    tenant_id: str = Field(..., min_length=1, max_length=255)
    partner_id: Optional[str] = None
    plan_id: Optional[str] = None
    category_id: Optional[str] = None
    amount_cents: int


class QuoteResponse(BaseModel):
    available: bool
    route: RouteResponse
    fee: Optional[FeeResponse] = None
    credential_source: Optional[Literal["tenant", "platform", "none"]] = None
    connection_status: Optional[ConnectionStatus] = None


class SimulationRequest(BaseModel):
    ticket_cents: int = Field(default=4500, description="Ticket médio em centavos")
    monthly_volume: int = Field(default=500, ge=0, description="Transações por mês")


class SimulationItem(BaseModel):
    plan_id: str
    slug: str
    name: str
    fee_per_transaction_cents: int
    merchant_fee_cents: int
    platform_subsidy_cents: int
    monthly_merchant_cost_cents: int
    monthly_subsidy_cents: int


class SimulationResponse(BaseModel):
    ticket_cents: int
    monthly_volume: int
    plans: List[SimulationItem] = Field(default_factory=list)
