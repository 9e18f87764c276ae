"""Async engine and session factory."""

from __future__ import annotations

from collections.abc import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from ..core.config import get_settings

settings = get_settings()

engine: AsyncEngine = create_async_engine(
    settings.database_url,
    echo=settings.db_echo,
    pool_pre_ping=True,
)
async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_session() -> AsyncIterator[AsyncSession]:
    """Yield a request-scoped session, rolling back anything left uncommitted."""

    async with async_session_maker() as session:
        try:
            yield session
        finally:
            if session.in_transaction():
                await session.rollback()


async def init_db() -> None:
    """Create all tables directly, bypassing migrations (local development only)."""

    from .. import models  # noqa: F401  registers tables on the metadata

    async with engine.begin() as connection:
        await connection.run_sync(SQLModel.metadata.create_all)


__all__ = ["async_session_maker", "engine", "get_session", "init_db"]
