"""Ledger state entries table.

Creates the ledger_state_entries table holding the encoded key/value
entries of every ledger instance, keyed by (instance_id, key).

Revision ID: 001
Revises:
Create Date: 2026-10-17
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "ledger_state_entries",
        sa.Column("instance_id", sa.Text(), nullable=False),
        sa.Column("key", sa.LargeBinary(), nullable=False),
        sa.Column("value", sa.LargeBinary(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("instance_id", "key"),
    )
    op.create_index(
        "idx_ledger_state_entries_instance",
        "ledger_state_entries",
        ["instance_id"],
    )


def downgrade() -> None:
    op.drop_index(
        "idx_ledger_state_entries_instance",
        table_name="ledger_state_entries",
    )
    op.drop_table("ledger_state_entries")
