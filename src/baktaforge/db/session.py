"""Async database engine and session management."""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from baktaforge.config import settings


class Base(DeclarativeBase):
    """Declarative base for all models."""


def create_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine for the given URL."""
    return create_async_engine(url, echo=echo, pool_pre_ping=True)


def create_session_maker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory that keeps objects usable after commit."""
    return async_sessionmaker(bind, expire_on_commit=False)


engine = create_engine(settings.database.url, echo=settings.database.echo)
async_session_maker = create_session_maker(engine)


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create tables that do not exist yet."""
    # Register models on Base.metadata
    from baktaforge import models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db(bind: AsyncEngine | None = None) -> None:
    """Dispose of the connection pool."""
    await (bind or engine).dispose()
