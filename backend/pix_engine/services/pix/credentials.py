"""Seleção de credencial do PSP: tenant, opt-out explícito, plataforma."""

from __future__ import annotations

from typing import Optional

from .types import Credential, CredentialSelection


def select_credential(
    tenant_credential: Optional[Credential],
    platform_credential: Optional[Credential],
) -> CredentialSelection:
    """
    Escolhe a credencial a usar antes de qualquer chamada ao PSP.

    A credencial do tenant é usada salvo quando ausente ou marcada com
    ``use_platform_credentials``; nesses casos vale a credencial de plataforma
    do mesmo PSP. Sem nenhuma das duas, ``source == "none"``.
    """
    if tenant_credential is not None and not tenant_credential.use_platform_credentials:
        return CredentialSelection(source="tenant", credential=tenant_credential)
    if platform_credential is not None:
        return CredentialSelection(source="platform", credential=platform_credential)
    return CredentialSelection(source="none")
