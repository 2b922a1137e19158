"""
Configurações centralizadas do motor PIX usando Pydantic Settings.

Este módulo carrega e valida as variáveis de ambiente do arquivo .env
e fornece uma interface type-safe para acessá-las em toda a aplicação.
"""

from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import List, Literal

# Caminho base do projeto
BASE_DIR = Path(__file__).resolve().parent.parent.parent
ENV_FILE = BASE_DIR / "backend" / ".env"


class Settings(BaseSettings):
    """Configurações da aplicação."""

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    app_name: str = "PIX Automático - Motor de Roteamento"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: str = "development"
    allowed_origins: List[str] = ["http://localhost:5173", "http://localhost:3000"]

    # PostgreSQL
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "pix_engine"
    postgres_user: str = "postgres"
    postgres_password: str = "postgres"
    postgres_pool_size: int = 20
    postgres_max_overflow: int = 10

    @property
    def postgres_url(self) -> str:
        """URL de conexão PostgreSQL para SQLAlchemy."""
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}@"
            f"{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def sync_postgres_url(self) -> str:
        """URL de conexão síncrona (scripts e ferramentas externas)."""
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}@"
            f"{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # Resolução PIX
    snapshot_isolation_level: Literal[
        "READ COMMITTED", "REPEATABLE READ", "SERIALIZABLE"
    ] = "REPEATABLE READ"
    require_global_policy_on_startup: bool = True

    # Segurança
    docs_access_token: str | None = None
    admin_api_token: str | None = None

    # Observability
    metrics_enabled: bool = True
    otel_enabled: bool = False
    otel_exporter: Literal["console", "otlp"] = "otlp"
    otel_exporter_otlp_endpoint: str = "http://localhost:4317"
    otel_service_name: str = "pix-engine-backend"
    otel_sampling_ratio: float = 1.0


@lru_cache()
def get_settings() -> Settings:
    """
    Retorna instância cached de Settings.

    Usa lru_cache para garantir que as configurações sejam carregadas
    apenas uma vez e reutilizadas em toda a aplicação.

    Returns:
        Settings: Instância de configurações validadas
    """
    return Settings()
