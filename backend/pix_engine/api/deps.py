"""
Dependencies para endpoints FastAPI.

Funções reutilizáveis para injeção de dependências.
"""
from __future__ import annotations

import secrets
from typing import Optional

from fastapi import Header, HTTPException, status

from pix_engine.config import get_settings


async def require_admin_token(
    x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token"),
) -> None:
    """
    Protege rotas administrativas com token compartilhado.

    Sem ``admin_api_token`` configurado a verificação fica desligada
    (autenticação é responsabilidade do gateway).
    """
    expected = get_settings().admin_api_token
    if not expected:
        return
    if x_admin_token is None or not secrets.compare_digest(x_admin_token, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token administrativo inválido",
        )
