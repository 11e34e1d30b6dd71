"""Database layer for crowdledger.

Persists ledger instances as encoded key/value entries through the
SQLAlchemy async engine.

Public API:
    get_engine: Create an AsyncEngine from DatabaseConfig.
    get_session_factory: Create an async_sessionmaker from an engine.
    create_schema: Create missing tables.
    Base: SQLAlchemy declarative base for all models.
    StateEntry: One stored entry of a ledger instance.
"""

from crowdledger.database.connection import (
    create_schema,
    get_engine,
    get_session_factory,
)
from crowdledger.database.models import Base, StateEntry, TimestampMixin

__all__ = [
    "get_engine",
    "get_session_factory",
    "create_schema",
    "Base",
    "TimestampMixin",
    "StateEntry",
]
