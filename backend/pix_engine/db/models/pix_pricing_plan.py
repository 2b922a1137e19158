"""
Planos de precificação PIX (percentual, fixo ou híbrido).
"""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from pix_engine.db.base import Base
from pix_engine.services.pix.types import PRICING_TYPES, PricingPlan


class PixPricingPlan(Base):
    """Plano de tarifa aplicado às transações PIX.

    ``percent_rate`` é fração (0..1); ``fixed_rate``, ``min_fee`` e ``max_fee``
    em reais. ``max_fee`` nulo significa sem teto.
    """

    __tablename__ = "pix_pricing_plans"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    slug = Column(String(100), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)

    pricing_type = Column(String(20), nullable=False, default="percentual")
    percent_rate = Column(Numeric(8, 6), nullable=False, default=0)
    fixed_rate = Column(Numeric(12, 2), nullable=False, default=0)
    min_fee = Column(Numeric(12, 2), nullable=False, default=0)
    max_fee = Column(Numeric(12, 2), nullable=True)

    is_subsidized = Column(Boolean, nullable=False, default=False)
    subsidy_percent = Column(Numeric(5, 2), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    display_order = Column(Integer, nullable=False, default=0)

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
            f"pricing_type IN {PRICING_TYPES}",
            name="ck_pix_pricing_plans_pricing_type",
        ),
        CheckConstraint(
            "max_fee IS NULL OR min_fee <= max_fee",
            name="ck_pix_pricing_plans_fee_bounds",
        ),
        CheckConstraint(
            "percent_rate >= 0 AND percent_rate <= 1",
            name="ck_pix_pricing_plans_percent_rate",
        ),
        CheckConstraint(
            "subsidy_percent IS NULL OR (subsidy_percent >= 0 AND subsidy_percent <= 100)",
            name="ck_pix_pricing_plans_subsidy_percent",
        ),
    )

    def to_domain(self) -> PricingPlan:
        return PricingPlan(
            id=str(self.id),
            slug=self.slug,
            name=self.name,
            pricing_type=self.pricing_type,
            percent_rate=self.percent_rate,
            fixed_rate=self.fixed_rate,
            min_fee=self.min_fee,
            max_fee=self.max_fee,
            is_subsidized=self.is_subsidized,
            subsidy_percent=self.subsidy_percent,
            is_active=self.is_active,
            display_order=self.display_order,
        )

    def __repr__(self) -> str:
        return f"<PixPricingPlan {self.slug} type={self.pricing_type}>"
