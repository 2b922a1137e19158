"""
Política global de parceiros e overrides por parceiro.
"""

from __future__ import annotations

import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from pix_engine.db.base import Base
from pix_engine.services.pix.types import (
    POLICY_FIELDS,
    GlobalPolicy,
    PolicyOverride,
    from_nullable,
)

BILLING_OWNERS = ("platform", "partner")


class GlobalPartnerPolicy(Base):
    """Política padrão da plataforma.

    Linha única (``id = 1``); todos os campos são obrigatórios.
    """

    __tablename__ = "global_partner_policy"

    id = Column(Integer, primary_key=True, default=1)

    allow_free_plan = Column(Boolean, nullable=False, default=False)
    allow_partner_gateway = Column(Boolean, nullable=False, default=False)
    allow_offline_billing = Column(Boolean, nullable=False, default=False)
    billing_owner = Column(String(20), nullable=False, default="platform")
    max_plans = Column(Integer, nullable=False, default=5)
    min_paid_price = Column(Numeric(12, 2), nullable=False, default=0)
    max_modules_per_plan = Column(Integer, nullable=False, default=20)
    max_features_per_plan = Column(Integer, nullable=False, default=50)
    max_trial_days = Column(Integer, nullable=False, default=30)
    tx_fee_max_percent = Column(Numeric(6, 3), nullable=False, default=5)
    tx_fee_max_fixed_cents = Column(Integer, nullable=False, default=500)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        CheckConstraint("id = 1", name="ck_global_partner_policy_singleton"),
        CheckConstraint(
            f"billing_owner IN {BILLING_OWNERS}",
            name="ck_global_partner_policy_billing_owner",
        ),
    )

    def to_domain(self) -> GlobalPolicy:
        return GlobalPolicy(**{name: getattr(self, name) for name in POLICY_FIELDS})

    def __repr__(self) -> str:
        return f"<GlobalPartnerPolicy allow_free_plan={self.allow_free_plan} max_plans={self.max_plans}>"


class PartnerPolicyOverride(Base):
    """Override de política por parceiro.

    ``NULL`` em qualquer campo significa herdar da política global. Remover a
    linha volta o parceiro para herança total.
    """

    __tablename__ = "partner_policy_overrides"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    partner_id = Column(UUID(as_uuid=True), nullable=False, unique=True, index=True)

    allow_free_plan = Column(Boolean, nullable=True)
    allow_partner_gateway = Column(Boolean, nullable=True)
    allow_offline_billing = Column(Boolean, nullable=True)
    billing_owner = Column(String(20), nullable=True)
    max_plans = Column(Integer, nullable=True)
    min_paid_price = Column(Numeric(12, 2), nullable=True)
    max_modules_per_plan = Column(Integer, nullable=True)
    max_features_per_plan = Column(Integer, nullable=True)
    max_trial_days = Column(Integer, nullable=True)
    tx_fee_max_percent = Column(Numeric(6, 3), nullable=True)
    tx_fee_max_fixed_cents = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        CheckConstraint(
            f"billing_owner IS NULL OR billing_owner IN {BILLING_OWNERS}",
            name="ck_partner_policy_overrides_billing_owner",
        ),
    )

    def to_domain(self) -> PolicyOverride:
        return PolicyOverride(**{name: from_nullable(getattr(self, name)) for name in POLICY_FIELDS})

    def __repr__(self) -> str:
        return f"<PartnerPolicyOverride partner={self.partner_id}>"
