"""Project ledger domain layer.

Public API:
    Project: Aggregate root holding details, funding and contributors.
    ProjectDetails, ProjectFunding, Expense, Contribution, TaskStatus: State records.
    CallContext: Host-supplied identity, deposit and balance for one call.
    encode_state / decode_state: Deterministic storage encoding.
"""

from crowdledger.domain.codec import STATE_KEY, decode_state, encode_state
from crowdledger.domain.models import (
    U128_MAX,
    CallContext,
    Contribution,
    Expense,
    Project,
    ProjectDetails,
    ProjectFunding,
    TaskStatus,
)

__all__ = [
    "U128_MAX",
    "STATE_KEY",
    "CallContext",
    "Contribution",
    "Expense",
    "Project",
    "ProjectDetails",
    "ProjectFunding",
    "TaskStatus",
    "decode_state",
    "encode_state",
]
