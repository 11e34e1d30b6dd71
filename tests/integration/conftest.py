"""Pytest fixtures for integration tests.

Provides async database fixtures for exercising the storage queries and the
ledger host against an in-memory SQLite database.
"""

from __future__ import annotations

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from crowdledger.config import LedgerConfig
from crowdledger.database.connection import create_schema, get_session_factory
from crowdledger.domain.models import CallContext
from crowdledger.host import LedgerHost


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    return "asyncio"


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create an in-memory SQLite async engine shared by all sessions.

    Yields:
        Configured AsyncEngine instance using in-memory SQLite.
    """
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )
    await create_schema(test_engine)

    yield test_engine

    await test_engine.dispose()


@pytest_asyncio.fixture
async def session_factory(
    engine: AsyncEngine,
) -> async_sessionmaker[AsyncSession]:
    return get_session_factory(engine)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create a new async database session for each test.

    Yields:
        AsyncSession instance for the test.
    """
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def host(session_factory: async_sessionmaker[AsyncSession]) -> LedgerHost:
    """Create a LedgerHost with a reserve of 1."""
    return LedgerHost(session_factory, LedgerConfig(min_reserve=1))


@pytest.fixture
def ctx() -> CallContext:
    return CallContext(
        predecessor_account_id="factory.near",
        signer_account_id="alice.near",
        account_balance=1000,
    )
