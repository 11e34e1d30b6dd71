"""SQLAlchemy ORM models for crowdledger.

All models use SQLAlchemy 2.0 declarative style with Mapped[] type annotations.
"""

from crowdledger.database.models.base import Base, TimestampMixin
from crowdledger.database.models.state_entry import StateEntry

__all__ = [
    "Base",
    "TimestampMixin",
    "StateEntry",
]
