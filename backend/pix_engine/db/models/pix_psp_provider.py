"""
Provedores de serviço de pagamento (PSP) habilitados para PIX Automático.
"""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, DateTime, Numeric, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from pix_engine.db.base import Base
from pix_engine.services.pix.types import PSPProvider


class PixPspProvider(Base):
    """PSP com flags de capacidade e tarifa padrão.

    A tarifa padrão só é usada quando a regra resolvida não aponta plano.
    """

    __tablename__ = "pix_psp_providers"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(50), nullable=False, unique=True, index=True)
    display_name = Column(String(100), nullable=False)

    supports_txid = Column(Boolean, nullable=False, default=False)
    supports_webhook = Column(Boolean, nullable=False, default=False)
    supports_subaccount = Column(Boolean, nullable=False, default=False)
    supports_split = Column(Boolean, nullable=False, default=False)

    default_percent_fee = Column(Numeric(8, 6), nullable=False, default=0)
    default_fixed_fee = Column(Numeric(12, 2), nullable=False, default=0)
    pricing_model = Column(String(20), nullable=False, default="percentual")
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    def to_domain(self) -> PSPProvider:
        return PSPProvider(
            id=str(self.id),
            name=self.name,
            display_name=self.display_name,
            default_percent_fee=self.default_percent_fee,
            default_fixed_fee=self.default_fixed_fee,
            pricing_model=self.pricing_model,
            supports_txid=self.supports_txid,
            supports_webhook=self.supports_webhook,
            supports_subaccount=self.supports_subaccount,
            supports_split=self.supports_split,
            is_active=self.is_active,
        )

    def __repr__(self) -> str:
        return f"<PixPspProvider {self.name} active={self.is_active}>"
