"""Database connection management for crowdledger.

Factory functions for the SQLAlchemy async engine and session factory,
configured from the application's DatabaseConfig.

Example usage:
    >>> from crowdledger.config import DatabaseConfig
    >>> from crowdledger.database.connection import get_engine, get_session_factory
    >>>
    >>> engine = get_engine(DatabaseConfig(url="sqlite+aiosqlite:///ledger.db"))
    >>> SessionFactory = get_session_factory(engine)
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from crowdledger.config import DatabaseConfig
from crowdledger.database.models.base import Base


def get_engine(config: DatabaseConfig) -> AsyncEngine:
    """Create an async SQLAlchemy engine from database configuration.

    Args:
        config: Database configuration containing URL and SQL echo preference.

    Returns:
        Configured AsyncEngine instance.
    """
    return create_async_engine(config.url, echo=config.echo)


def get_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory bound to the given engine.

    Sessions use expire_on_commit=False so loaded entries stay readable
    after the call's transaction commits.

    Args:
        engine: AsyncEngine to bind sessions to.

    Returns:
        Configured async_sessionmaker that produces AsyncSession instances.
    """
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def create_schema(engine: AsyncEngine) -> None:
    """Create storage tables that do not exist yet.

    Intended for local SQLite stores and tests; deployed databases are
    migrated with Alembic.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
