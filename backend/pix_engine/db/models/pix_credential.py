"""
Credenciais de PSP por tenant ou da plataforma.
"""

from __future__ import annotations

import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from pix_engine.db.base import Base
from pix_engine.services.pix.types import Credential

CREDENTIAL_SCOPES = ("tenant", "platform")
CONNECTION_STATUSES = ("pending", "connected", "error")


class PixCredential(Base):
    """Credencial de acesso a um PSP.

    Linhas de tenant podem optar pela credencial da plataforma com
    ``use_platform_credentials``. Segredos nunca saem pela API.
    """

    __tablename__ = "pix_credentials"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    scope = Column(String(20), nullable=False)
    scope_id = Column(String(255), nullable=True)
    psp_provider_id = Column(
        UUID(as_uuid=True),
        ForeignKey("pix_psp_providers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    api_key = Column(Text, nullable=True)
    webhook_secret = Column(Text, nullable=True)
    connection_status = Column(String(20), nullable=False, default="pending")
    use_platform_credentials = Column(Boolean, nullable=False, default=False)

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
        UniqueConstraint(
            "scope",
            "scope_id",
            "psp_provider_id",
            name="uq_pix_credential_scope_provider",
        ),
        # scope_id é NULL nas linhas da plataforma; a unique acima não as cobre.
        Index(
            "uq_pix_credentials_platform_provider",
            "psp_provider_id",
            unique=True,
            postgresql_where=text("scope = 'platform'"),
        ),
        CheckConstraint(
            f"scope IN {CREDENTIAL_SCOPES}",
            name="ck_pix_credentials_scope",
        ),
        CheckConstraint(
            f"connection_status IN {CONNECTION_STATUSES}",
            name="ck_pix_credentials_connection_status",
        ),
    )

    def to_domain(self) -> Credential:
        return Credential(
            id=str(self.id),
            scope=self.scope,
            scope_id=self.scope_id,
            psp_provider_id=str(self.psp_provider_id),
            api_key=self.api_key,
            webhook_secret=self.webhook_secret,
            connection_status=self.connection_status,
            use_platform_credentials=self.use_platform_credentials,
        )

    def __repr__(self) -> str:
        return f"<PixCredential {self.scope}:{self.scope_id} status={self.connection_status}>"
