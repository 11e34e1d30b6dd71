"""SQLAlchemy declarative base and common column mixins for crowdledger.

All storage models inherit from Base and include TimestampMixin for
consistent created/updated bookkeeping.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """SQLAlchemy 2.0 declarative base for all crowdledger models."""

    pass


class TimestampMixin:
    """Mixin providing created_at and updated_at columns.

    Attributes:
        created_at: Timestamp set by the database on row creation.
        updated_at: Timestamp set by the database on row creation and
                    updated on each modification.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )
