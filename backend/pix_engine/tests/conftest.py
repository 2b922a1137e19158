"""Configuração global do pytest para testes unitários do backend.

Os testes não abrem conexão com o Postgres: ``pix_engine/db/base.py`` cria o
engine asyncpg de forma preguiçosa (sem conectar) e os serviços recebem
sessões ``AsyncMock``. Aqui só definimos o ambiente mínimo antes de qualquer
import da aplicação.
"""
from __future__ import annotations

import os


def _set_env_defaults() -> None:
    """Seta variáveis de ambiente mínimas para o Settings dos testes."""
    defaults = {
        "ENVIRONMENT": "test",
        "DEBUG": "false",
        "POSTGRES_HOST": "localhost",
        "POSTGRES_DB": "pix_engine_test",
        "POSTGRES_POOL_SIZE": "1",
        "POSTGRES_MAX_OVERFLOW": "0",
        "METRICS_ENABLED": "true",
        "OTEL_ENABLED": "false",
        "REQUIRE_GLOBAL_POLICY_ON_STARTUP": "false",
    }
    for key, val in defaults.items():
        os.environ.setdefault(key, val)


# ---------------------------------------------------------------------------
# Executa antes de qualquer import de módulo da app
# ---------------------------------------------------------------------------
_set_env_defaults()
