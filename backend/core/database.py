"""Database Module

Async SQLAlchemy engine and session factories. Nothing is created at import
time: the application builds its engine from Settings and hands the session
factory to the repository that needs it.
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from core.config import Settings

Base = declarative_base()


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    """Build the async engine described by DATABASE_URL."""
    engine_kwargs = {
        "echo": settings.LOG_SQL,
    }

    if "sqlite" not in settings.DATABASE_URL:
        engine_kwargs.update({
            "pool_pre_ping": True,
            "pool_size": 5,
            "max_overflow": 10,
        })

    return create_async_engine(settings.DATABASE_URL, **engine_kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def create_tables(engine: AsyncEngine) -> None:
    """Create all mapped tables. Models must be imported before calling."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def session_scope(
    factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """Session inside a transaction: commits on success, rolls back on error."""
    async with factory() as session:
        async with session.begin():
            yield session
