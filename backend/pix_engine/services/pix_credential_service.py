"""
Serviço de credenciais de PSP.

A seleção (tenant → opt-out → plataforma) acontece antes de qualquer chamada
ao PSP; os segredos nunca são devolvidos pela API.
"""

from __future__ import annotations

import uuid
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pix_engine.core.logging import get_logger
from pix_engine.db.models.pix_credential import CONNECTION_STATUSES, CREDENTIAL_SCOPES, PixCredential
from pix_engine.db.models.pix_psp_provider import PixPspProvider
from pix_engine.services.pix.credentials import select_credential
from pix_engine.services.pix.errors import ConfigurationError
from pix_engine.services.pix.types import CredentialSelection

logger = get_logger(__name__)


class PixCredentialService:
    """Leitura e escrita de credenciais por tenant/plataforma."""

    async def _find(
        self,
        db: AsyncSession,
        scope: str,
        scope_id: Optional[str],
        psp_provider_id: UUID,
    ) -> Optional[PixCredential]:
        stmt = (
            select(PixCredential)
            .where(PixCredential.scope == scope)
            .where(PixCredential.psp_provider_id == psp_provider_id)
        )
        if scope_id is None:
            stmt = stmt.where(PixCredential.scope_id.is_(None))
        else:
            stmt = stmt.where(PixCredential.scope_id == scope_id)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def resolve(
        self, db: AsyncSession, tenant_id: str, psp_provider_id: UUID
    ) -> CredentialSelection:
        """Seleciona a credencial a usar para o tenant e PSP."""
        tenant_row = await self._find(db, "tenant", str(tenant_id), psp_provider_id)
        platform_row = await self._find(db, "platform", None, psp_provider_id)
        selection = select_credential(
            tenant_row.to_domain() if tenant_row is not None else None,
            platform_row.to_domain() if platform_row is not None else None,
        )
        logger.info(
            "pix_credential_selected",
            tenant_id=str(tenant_id),
            psp_provider_id=str(psp_provider_id),
            source=selection.source,
            connection_status=selection.connection_status,
        )
        return selection

    async def upsert(
        self,
        db: AsyncSession,
        *,
        scope: str,
        psp_provider_id: UUID,
        scope_id: Optional[str] = None,
        api_key: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        connection_status: str = "pending",
        use_platform_credentials: bool = False,
    ) -> PixCredential:
        """Cria ou atualiza a credencial do escopo; segredos omitidos são preservados."""
        if scope not in CREDENTIAL_SCOPES:
            raise ValueError(f"Escopo de credencial inválido: {scope}")
        if connection_status not in CONNECTION_STATUSES:
            raise ValueError(f"connection_status inválido: {connection_status}")
        if scope == "platform":
            scope_id = None
            use_platform_credentials = False
        elif not scope_id:
            raise ValueError("scope_id é obrigatório para credencial de tenant")

        result = await db.execute(select(PixPspProvider.id).where(PixPspProvider.id == psp_provider_id))
        if result.scalar_one_or_none() is None:
            raise ConfigurationError(f"PSP {psp_provider_id} não existe")

        row = await self._find(db, scope, scope_id, psp_provider_id)
        if row is None:
            row = PixCredential(
                id=uuid.uuid4(),
                scope=scope,
                scope_id=scope_id,
                psp_provider_id=psp_provider_id,
            )
            db.add(row)
        if api_key is not None:
            row.api_key = api_key
        if webhook_secret is not None:
            row.webhook_secret = webhook_secret
        row.connection_status = connection_status
        row.use_platform_credentials = use_platform_credentials

        await db.commit()
        await db.refresh(row)
        logger.info(
            "pix_credential_saved",
            scope=scope,
            scope_id=scope_id,
            psp_provider_id=str(psp_provider_id),
            connection_status=connection_status,
        )
        return row


_credential_service: Optional[PixCredentialService] = None


def get_pix_credential_service() -> PixCredentialService:
    """Singleton do serviço de credenciais PIX."""
    global _credential_service
    if _credential_service is None:
        _credential_service = PixCredentialService()
    return _credential_service
