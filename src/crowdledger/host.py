"""Transactional host for ledger instances.

``LedgerHost`` runs the load -> apply -> save cycle for one call inside a
single database transaction. A failing call raises out of the transaction,
which rolls back, so the stored state of the instance is left exactly as it
was.

Example usage:
    >>> host = LedgerHost(session_factory, config.ledger)
    >>> ctx = CallContext(predecessor_account_id="factory", signer_account_id="alice")
    >>> await host.invoke("well", Call(method="initialize"), ctx)
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from crowdledger.config import LedgerConfig
from crowdledger.database.queries.state import load_entries, replace_entries
from crowdledger.domain.codec import decode_state, encode_state
from crowdledger.domain.models import CallContext, Project
from crowdledger.errors import LedgerError
from crowdledger.logging import bind_call_context, clear_call_context, set_correlation_id
from crowdledger.runtime import Call, apply, is_view

logger = structlog.get_logger(__name__)


class LedgerHost:
    """Executes calls against persisted ledger instances.

    Calls to the same instance are serialized by a per-instance
    ``asyncio.Lock`` held around the whole transaction, so concurrent calls
    on one event loop never read the same snapshot. Calls to different
    instances run independently. Serializing across processes is left to
    the database.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        config: LedgerConfig | None = None,
    ):
        self.session_factory = session_factory
        self.config = config or LedgerConfig()
        self.logger = logger.bind(component="LedgerHost")
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, instance_id: str) -> asyncio.Lock:
        lock = self._locks.get(instance_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[instance_id] = lock
        return lock

    async def invoke(self, instance_id: str, call: Call, ctx: CallContext) -> Any:
        """Apply one call to an instance and persist the result.

        Args:
            instance_id: Ledger instance to invoke.
            call: Method and arguments.
            ctx: Identity, deposit and balance for the call.

        Returns:
            The JSON-ready call result.

        Raises:
            LedgerError: If the call fails; nothing is persisted.
        """
        set_correlation_id(str(uuid.uuid4()))
        bind_call_context(instance_id, call.method)
        try:
            async with self._lock_for(instance_id):
                async with self.session_factory() as session:
                    async with session.begin():
                        state = decode_state(await load_entries(session, instance_id))
                        new_state, result = apply(call, state, ctx, self.config)
                        if not is_view(call.method) and new_state is not None:
                            await replace_entries(
                                session, instance_id, encode_state(new_state)
                            )
            self.logger.info("call_applied", view=is_view(call.method))
        except LedgerError as e:
            self.logger.warning("call_failed", error_code=e.code, error=str(e))
            raise
        finally:
            clear_call_context()
            set_correlation_id(None)

        return result

    async def load(self, instance_id: str) -> Project | None:
        """Load and decode the stored state of an instance."""
        async with self.session_factory() as session:
            return decode_state(await load_entries(session, instance_id))
