"""State entry query functions for crowdledger.

Async functions for reading and writing the encoded key/value entries of a
ledger instance using the SQLAlchemy 2.0 select() API.

None of these functions open or commit a transaction. The host wraps the
load and the write of one call in a single transaction so the call commits
or rolls back as a whole.
"""

from __future__ import annotations

from collections.abc import Mapping

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from crowdledger.database.models.state_entry import StateEntry

logger = structlog.get_logger(__name__)


async def load_entries(
    session: AsyncSession,
    instance_id: str,
) -> dict[bytes, bytes]:
    """Load every stored entry of an instance.

    Args:
        session: Active async database session.
        instance_id: Ledger instance to load.

    Returns:
        Mapping of storage key to value; empty if the instance has no state.
    """
    stmt = (
        select(StateEntry)
        .where(StateEntry.instance_id == instance_id)
        .order_by(StateEntry.key)
    )
    result = await session.execute(stmt)
    return {row.key: row.value for row in result.scalars().all()}


async def replace_entries(
    session: AsyncSession,
    instance_id: str,
    entries: Mapping[bytes, bytes],
) -> tuple[int, int]:
    """Make the stored entries of an instance equal to ``entries``.

    Unchanged rows are left alone, changed rows are updated in place, new
    keys are inserted and keys absent from ``entries`` are deleted.

    Args:
        session: Active async database session.
        instance_id: Ledger instance to write.
        entries: Complete set of entries the instance should hold.

    Returns:
        Tuple of (rows written, rows deleted).
    """
    stmt = select(StateEntry).where(StateEntry.instance_id == instance_id)
    result = await session.execute(stmt)
    existing = {row.key: row for row in result.scalars().all()}

    written = 0
    for key, value in entries.items():
        row = existing.pop(key, None)
        if row is None:
            session.add(StateEntry(instance_id=instance_id, key=key, value=value))
            written += 1
        elif row.value != value:
            row.value = value
            written += 1

    for row in existing.values():
        await session.delete(row)

    await session.flush()

    logger.debug(
        "state_entries_replaced",
        instance_id=instance_id,
        written=written,
        deleted=len(existing),
    )

    return written, len(existing)


async def delete_instance(
    session: AsyncSession,
    instance_id: str,
) -> int:
    """Delete all stored entries of an instance.

    Args:
        session: Active async database session.
        instance_id: Ledger instance to remove.

    Returns:
        Number of entries deleted.
    """
    stmt = delete(StateEntry).where(StateEntry.instance_id == instance_id)
    result = await session.execute(stmt)

    deleted = result.rowcount
    if deleted:
        logger.info("instance_deleted", instance_id=instance_id, entries=deleted)
    else:
        logger.warning("instance_not_found", instance_id=instance_id)

    return deleted


async def list_instances(session: AsyncSession) -> list[str]:
    """List the identifiers of all instances with stored state.

    Args:
        session: Active async database session.

    Returns:
        Sorted list of instance identifiers.
    """
    stmt = select(StateEntry.instance_id).distinct().order_by(StateEntry.instance_id)
    result = await session.execute(stmt)
    return list(result.scalars().all())
