"""
Base de dados SQLAlchemy do motor PIX.

Engine asyncpg, fábrica de sessões e dependency ``get_db``. O nível de
isolamento das leituras de resolução é aplicado por sessão via
``begin_snapshot``; o engine mantém o padrão do Postgres.
"""

from collections.abc import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from pix_engine.config import get_settings

settings = get_settings()

engine = create_async_engine(
    settings.postgres_url,
    echo=settings.debug,
    pool_size=settings.postgres_pool_size,
    max_overflow=settings.postgres_max_overflow,
    pool_pre_ping=True,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base declarativa das tabelas de política e catálogo PIX."""


async def get_db() -> AsyncIterator[AsyncSession]:
    """Sessão por request; transação aberta sem commit é descartada no fim."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def begin_snapshot(db: AsyncSession) -> None:
    """Abre a transação de leitura com o nível de isolamento configurado.

    Sem efeito quando a sessão já está em transação.
    """
    if db.in_transaction():
        return
    isolation = get_settings().snapshot_isolation_level
    await db.connection(execution_options={"isolation_level": isolation})
