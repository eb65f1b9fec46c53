"""Database connection and session management.

Provides async SQLAlchemy engine and session factory, built from the
configured database URL.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


def normalize_database_url(database_url: str) -> str:
    """Select the async driver for plain SQLite / PostgreSQL URLs."""
    if database_url.startswith("sqlite://"):
        # SQLite async requires aiosqlite
        return database_url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return database_url


def create_engine(database_url: str) -> AsyncEngine:
    """Create an async engine for the given URL."""
    database_url = normalize_database_url(database_url)

    if database_url.startswith("sqlite"):
        return create_async_engine(database_url, echo=False)

    # PostgreSQL with asyncpg
    return create_async_engine(
        database_url,
        echo=False,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Async session factory bound to ``engine``."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """Initialize database tables.

    Creates all tables defined in models if they don't exist.
    """
    # Register models on Base.metadata
    from account_api.db import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
