"""Storage entry model for crowdledger.

Each ledger instance persists its state as a set of opaque key/value
entries produced by ``crowdledger.domain.codec``. One row holds one entry;
the root record and every collection element are separate rows sharing the
instance's ``instance_id``.
"""

from __future__ import annotations

from sqlalchemy import Index, LargeBinary, Text
from sqlalchemy.orm import Mapped, mapped_column

from crowdledger.database.models.base import Base, TimestampMixin


class StateEntry(TimestampMixin, Base):
    """One encoded storage entry of a ledger instance.

    Attributes:
        instance_id: Identifier of the ledger instance owning the entry.
        key: Storage key (e.g. ``STATE`` or a collection element key).
        value: Encoded value bytes.
        created_at: Row creation timestamp (from TimestampMixin).
        updated_at: Last modification timestamp (from TimestampMixin).
    """

    __tablename__ = "ledger_state_entries"

    instance_id: Mapped[str] = mapped_column(Text, primary_key=True)
    key: Mapped[bytes] = mapped_column(LargeBinary, primary_key=True)
    value: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)

    __table_args__ = (
        Index("idx_ledger_state_entries_instance", "instance_id"),
    )
