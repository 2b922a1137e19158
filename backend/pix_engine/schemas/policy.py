"""
Schemas de política de parceiros.

Política global, override por parceiro (``null`` = herdar) e política efetiva.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class GlobalPolicySchema(BaseModel):
    """Política padrão da plataforma (todos os campos obrigatórios)."""

    model_config = ConfigDict(from_attributes=True)

    allow_free_plan: bool
    allow_partner_gateway: bool
    allow_offline_billing: bool
    billing_owner: Literal["platform", "partner"]
    max_plans: int = Field(..., ge=0)
    min_paid_price: Decimal = Field(..., ge=0)
    max_modules_per_plan: int = Field(..., ge=0)
    max_features_per_plan: int = Field(..., ge=0)
    max_trial_days: int = Field(..., ge=0)
    tx_fee_max_percent: Decimal = Field(..., ge=0, le=100)
    tx_fee_max_fixed_cents: int = Field(..., ge=0)


class PolicyOverrideUpsert(BaseModel):
    """Payload de override; ``null`` em qualquer campo significa herdar."""

    allow_free_plan: Optional[bool] = None
    allow_partner_gateway: Optional[bool] = None
    allow_offline_billing: Optional[bool] = None
    billing_owner: Optional[Literal["platform", "partner"]] = None
    max_plans: Optional[int] = Field(default=None, ge=0)
    min_paid_price: Optional[Decimal] = Field(default=None, ge=0)
    max_modules_per_plan: Optional[int] = Field(default=None, ge=0)
    max_features_per_plan: Optional[int] = Field(default=None, ge=0)
    max_trial_days: Optional[int] = Field(default=None, ge=0)
    tx_fee_max_percent: Optional[Decimal] = Field(default=None, ge=0, le=100)
    tx_fee_max_fixed_cents: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("notes")
    @classmethod
    def _strip_notes(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


class PolicyOverrideResponse(PolicyOverrideUpsert):
    """Override persistido com os campos personalizados destacados."""

    model_config = ConfigDict(from_attributes=True)

    partner_id: UUID
    overridden_fields: List[str] = Field(default_factory=list)
    updated_at: Optional[datetime] = None


class EffectivePolicyResponse(BaseModel):
    """Política efetiva de um parceiro."""

    partner_id: UUID
    policy: GlobalPolicySchema
    overridden_fields: List[str] = Field(default_factory=list)
    has_override: bool = False


class PartnerPlanDraftRequest(BaseModel):
    """Plano de assinatura proposto pelo parceiro."""

    monthly_price: Decimal = Field(..., ge=0)
    is_free: bool = False
    trial_days: int = Field(default=0, ge=0)
    included_modules: List[str] = Field(default_factory=list)
    included_features: List[str] = Field(default_factory=list)
    existing_plans: int = Field(default=0, ge=0, description="Planos já cadastrados pelo parceiro")
    pricing_plan_id: Optional[UUID] = Field(
        default=None, description="Plano PIX a conferir contra os tetos de tarifa"
    )


class PlanValidationResponse(BaseModel):
    valid: bool
    errors: List[str] = Field(default_factory=list)
