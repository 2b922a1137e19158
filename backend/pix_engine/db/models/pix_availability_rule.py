"""
Regras de disponibilidade do PIX Automático por escopo.
"""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from pix_engine.db.base import Base
from pix_engine.services.pix.types import RULE_SCOPES, AvailabilityRule


class PixAvailabilityRule(Base):
    """Regra que libera o PIX Automático para um escopo.

    Exemplo:
    - scope="tenant", scope_id=<tenant_id>, priority=5;
    - scope="plan", scope_id=<slug do plano>;
    - scope="global", scope_id=NULL, priority=1.
    """

    __tablename__ = "pix_availability_rules"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    scope = Column(String(20), nullable=False)
    scope_id = Column(String(255), nullable=True)
    psp_provider_id = Column(
        UUID(as_uuid=True),
        ForeignKey("pix_psp_providers.id", ondelete="SET NULL"),
        nullable=True,
    )
    pricing_plan_id = Column(
        UUID(as_uuid=True),
        ForeignKey("pix_pricing_plans.id", ondelete="SET NULL"),
        nullable=True,
    )
    priority = Column(Integer, nullable=False)
    is_enabled = Column(Boolean, nullable=False, default=True)
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
            f"scope IN {RULE_SCOPES}",
            name="ck_pix_availability_rules_scope",
        ),
        CheckConstraint(
            "(scope = 'global') = (scope_id IS NULL)",
            name="ck_pix_availability_rules_scope_id",
        ),
        Index("ix_pix_availability_rules_scope_scope_id", "scope", "scope_id"),
    )

    def to_domain(self) -> AvailabilityRule:
        return AvailabilityRule(
            id=str(self.id),
            scope=self.scope,
            scope_id=self.scope_id,
            psp_provider_id=str(self.psp_provider_id) if self.psp_provider_id else None,
            pricing_plan_id=str(self.pricing_plan_id) if self.pricing_plan_id else None,
            priority=self.priority,
            is_enabled=self.is_enabled,
            created_at=self.created_at,
            notes=self.notes,
        )

    def __repr__(self) -> str:
        return f"<PixAvailabilityRule {self.scope}:{self.scope_id} priority={self.priority}>"
