"""Integration tests for the transactional ledger host.

Runs full load -> apply -> save cycles against in-memory SQLite and checks
that failed calls leave the stored state byte-for-byte unchanged.
"""

from __future__ import annotations

import asyncio

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from crowdledger.database.queries.state import load_entries
from crowdledger.domain.codec import STATE_KEY
from crowdledger.domain.models import CallContext, TaskStatus
from crowdledger.errors import (
    AlreadyInitializedError,
    LedgerError,
    NotConfiguredError,
    NotInitializedError,
)
from crowdledger.host import LedgerHost
from crowdledger.runtime import Call


async def stored(
    session_factory: async_sessionmaker[AsyncSession], instance_id: str
) -> dict[bytes, bytes]:
    async with session_factory() as session:
        return await load_entries(session, instance_id)


@pytest.mark.asyncio
async def test_initialize_persists_root(
    host: LedgerHost,
    session_factory: async_sessionmaker[AsyncSession],
    ctx: CallContext,
) -> None:
    """Test that initialize writes the root entry."""
    assert await host.invoke("well", Call(method="initialize"), ctx) is None

    entries = await stored(session_factory, "well")
    assert STATE_KEY in entries

    project = await host.load("well")
    assert project is not None
    assert project.factory == "factory.near"
    assert project.proposal == "alice.near"


@pytest.mark.asyncio
async def test_initialize_twice_fails_without_changes(
    host: LedgerHost,
    session_factory: async_sessionmaker[AsyncSession],
    ctx: CallContext,
) -> None:
    """Test that the second initialize fails and keeps the first state."""
    await host.invoke("well", Call(method="initialize"), ctx)
    before = await stored(session_factory, "well")

    other = CallContext(predecessor_account_id="other", signer_account_id="mallory")
    with pytest.raises(AlreadyInitializedError):
        await host.invoke("well", Call(method="initialize"), other)

    assert await stored(session_factory, "well") == before


@pytest.mark.asyncio
async def test_uninitialized_instance(host: LedgerHost, ctx: CallContext) -> None:
    """Test that calls to an empty instance fail."""
    with pytest.raises(NotInitializedError):
        await host.invoke("ghost", Call(method="get_factory"), ctx)
    assert await host.load("ghost") is None


@pytest.mark.asyncio
async def test_gating_rolls_back(
    host: LedgerHost,
    session_factory: async_sessionmaker[AsyncSession],
    ctx: CallContext,
) -> None:
    """Test that gated calls fail before configure and persist nothing."""
    await host.invoke("well", Call(method="initialize"), ctx)
    before = await stored(session_factory, "well")

    with pytest.raises(NotConfiguredError):
        await host.invoke(
            "well", Call(method="add_expense", args={"label": "pump", "amount": 1}), ctx
        )

    assert await stored(session_factory, "well") == before


@pytest.mark.asyncio
async def test_scenario_persisted(
    host: LedgerHost,
    session_factory: async_sessionmaker[AsyncSession],
    ctx: CallContext,
) -> None:
    """Test the well scenario with state reloaded from storage on every call."""
    await host.invoke("well", Call(method="initialize"), ctx)
    await host.invoke(
        "well",
        Call(method="configure", args={"title": "Well", "description": "Build a well"}),
        ctx,
    )
    await host.invoke(
        "well", Call(method="add_expense", args={"label": "pump", "amount": 200}), ctx
    )
    assert await host.invoke("well", Call(method="get_remaining_budget"), ctx) == 799

    deposit_ctx = CallContext(
        predecessor_account_id="bob.near",
        signer_account_id="bob.near",
        attached_deposit=50,
        account_balance=1050,
    )
    await host.invoke("well", Call(method="add_funds"), deposit_ctx)
    assert await host.invoke("well", Call(method="get_remaining_budget"), ctx) == 849

    await host.invoke(
        "well",
        Call(
            method="add_contributor",
            args={
                "account": "alice",
                "contribution": {
                    "account": "alice",
                    "task": "dig",
                    "amount": 100,
                    "status": "ASSIGNED",
                },
            },
        ),
        ctx,
    )

    project = await host.load("well")
    assert project is not None
    assert project.funding is not None
    assert (project.funding.total, project.funding.spent) == (1049, 200)
    assert project.contributors["alice"].status == TaskStatus.ASSIGNED
    assert len([k for k in await stored(session_factory, "well") if k.startswith(b"e")]) == 1

    await host.invoke(
        "well",
        Call(method="configure", args={"title": "Well v2", "description": "Deeper"}),
        CallContext(
            predecessor_account_id="factory.near",
            signer_account_id="alice.near",
            account_balance=1050,
        ),
    )

    project = await host.load("well")
    assert project.funding.total == 1049
    assert project.funding.spent == 0
    assert project.funding.expenses == []
    assert not any(k.startswith(b"e") for k in await stored(session_factory, "well"))


@pytest.mark.asyncio
async def test_view_does_not_write(
    host: LedgerHost,
    session_factory: async_sessionmaker[AsyncSession],
    ctx: CallContext,
) -> None:
    """Test that views return results and leave storage alone."""
    await host.invoke("well", Call(method="initialize"), ctx)
    before = await stored(session_factory, "well")

    assert await host.invoke("well", Call(method="get_proposal"), ctx) == "alice.near"
    assert await host.invoke("well", Call(method="is_configured"), ctx) is False

    assert await stored(session_factory, "well") == before


@pytest.mark.asyncio
async def test_failure_after_write_rolls_back(
    host: LedgerHost,
    session_factory: async_sessionmaker[AsyncSession],
    ctx: CallContext,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Test that an error raised after entries are written discards them."""
    await host.invoke("well", Call(method="initialize"), ctx)
    await host.invoke(
        "well",
        Call(method="configure", args={"title": "Well", "description": "Build a well"}),
        ctx,
    )
    before = await stored(session_factory, "well")

    import crowdledger.host as host_module

    real_replace = host_module.replace_entries

    async def failing_replace(session, instance_id, entries):
        await real_replace(session, instance_id, entries)
        raise LedgerError("storage write rejected")

    monkeypatch.setattr(host_module, "replace_entries", failing_replace)

    with pytest.raises(LedgerError, match="storage write rejected"):
        await host.invoke(
            "well", Call(method="add_expense", args={"label": "pump", "amount": 200}), ctx
        )

    assert await stored(session_factory, "well") == before


@pytest.mark.asyncio
async def test_concurrent_calls_are_serialized(
    host: LedgerHost,
    session_factory: async_sessionmaker[AsyncSession],
    ctx: CallContext,
) -> None:
    """Test that concurrent expenses on one instance are all recorded."""
    await host.invoke("well", Call(method="initialize"), ctx)
    await host.invoke(
        "well",
        Call(method="configure", args={"title": "Well", "description": "Build a well"}),
        ctx,
    )

    calls = 5
    results = await asyncio.gather(
        *(
            host.invoke(
                "well",
                Call(method="add_expense", args={"label": f"part-{i}", "amount": 10}),
                ctx,
            )
            for i in range(calls)
        )
    )

    assert results == [None] * calls
    project = await host.load("well")
    assert project.funding.spent == calls * 10
    assert len(project.funding.expenses) == calls
    assert sorted(e.label for e in project.funding.expenses) == [
        f"part-{i}" for i in range(calls)
    ]
    entries = await stored(session_factory, "well")
    assert len([k for k in entries if k.startswith(b"e")]) == calls


@pytest.mark.asyncio
async def test_lock_is_per_instance(host: LedgerHost, ctx: CallContext) -> None:
    """Test that each instance gets its own lock and reuses it."""
    await host.invoke("well", Call(method="initialize"), ctx)
    await host.invoke("school", Call(method="initialize"), ctx)

    assert host._lock_for("well") is host._lock_for("well")
    assert host._lock_for("well") is not host._lock_for("school")
    assert not host._lock_for("well").locked()
