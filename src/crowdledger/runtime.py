"""Call dispatch for the project ledger.

A host turns each external invocation into a ``Call`` and runs it through
``apply`` together with the stored state and the invocation context:

    new_state, result = apply(call, state, ctx, config)

``apply`` never mutates the state it is given. Mutating methods run against
a deep copy, so a failing call leaves the caller holding the untouched
original and the host simply discards the attempt.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from crowdledger.config import LedgerConfig
from crowdledger.domain.models import Amount, CallContext, Contribution, Project, Text
from crowdledger.errors import (
    InvalidArgumentsError,
    NotInitializedError,
    UnknownMethodError,
)

logger = structlog.get_logger(__name__)


class Call(BaseModel):
    """One external invocation: a method name and its JSON arguments."""

    model_config = ConfigDict(frozen=True)

    method: str
    args: dict[str, Any] = Field(default_factory=dict)


class _Args(BaseModel):
    model_config = ConfigDict(extra="forbid")


class NoArgs(_Args):
    pass


class ConfigureArgs(_Args):
    title: Text
    description: Text


class AddContributorArgs(_Args):
    account: Text
    contribution: Contribution


class AddExpenseArgs(_Args):
    label: Text
    amount: Amount


class AccountArgs(_Args):
    account: Text


def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_dump(item) for item in value]
    if isinstance(value, dict):
        return {key: _dump(item) for key, item in value.items()}
    return value


Handler = Callable[[Project, Any, CallContext, LedgerConfig], Any]


def _configure(project: Project, args: ConfigureArgs, ctx: CallContext, config: LedgerConfig) -> None:
    project.configure(args.title, args.description, ctx, min_reserve=config.min_reserve)


def _add_funds(project: Project, args: NoArgs, ctx: CallContext, config: LedgerConfig) -> None:
    project.add_funds(ctx)


def _add_contributor(
    project: Project, args: AddContributorArgs, ctx: CallContext, config: LedgerConfig
) -> None:
    project.add_contributor(
        args.account,
        args.contribution,
        require_matching_account=config.require_matching_contributor,
    )


def _add_expense(project: Project, args: AddExpenseArgs, ctx: CallContext, config: LedgerConfig) -> None:
    project.add_expense(args.label, args.amount, strict_budget=config.strict_budget)


MUTATIONS: dict[str, tuple[type[_Args], Handler]] = {
    "configure": (ConfigureArgs, _configure),
    "add_funds": (NoArgs, _add_funds),
    "add_contributor": (AddContributorArgs, _add_contributor),
    "add_expense": (AddExpenseArgs, _add_expense),
}

VIEWS: dict[str, tuple[type[_Args], Handler]] = {
    "is_configured": (NoArgs, lambda p, a, c, cfg: p.is_configured()),
    "get_factory": (NoArgs, lambda p, a, c, cfg: p.get_factory()),
    "get_proposal": (NoArgs, lambda p, a, c, cfg: p.get_proposal()),
    "get_remaining_budget": (NoArgs, lambda p, a, c, cfg: p.get_remaining_budget()),
    "get_details": (NoArgs, lambda p, a, c, cfg: p.get_details()),
    "get_expenses": (NoArgs, lambda p, a, c, cfg: p.get_expenses()),
    "get_contributors": (NoArgs, lambda p, a, c, cfg: p.get_contributors()),
    "get_contributor": (AccountArgs, lambda p, a, c, cfg: p.get_contributor(a.account)),
}

INITIALIZE = "initialize"


def is_view(method: str) -> bool:
    """Return True if the method never changes stored state."""
    return method in VIEWS


def _parse_args(method: str, schema: type[_Args], raw: dict[str, Any]) -> Any:
    try:
        return schema.model_validate(raw)
    except ValidationError as e:
        raise InvalidArgumentsError(
            method, e.errors(include_url=False, include_context=False)
        ) from e


def apply(
    call: Call,
    state: Project | None,
    ctx: CallContext,
    config: LedgerConfig | None = None,
) -> tuple[Project | None, Any]:
    """Apply one call to the stored state.

    Args:
        call: Method and arguments to apply.
        state: Currently stored state, or None for an uninitialized instance.
        ctx: Identity, deposit and balance for this invocation.
        config: Ledger behavior switches; defaults when omitted.

    Returns:
        Tuple of the state to persist and the JSON-ready call result. For
        views the returned state is the input state object itself.

    Raises:
        UnknownMethodError: If the method is not exposed.
        InvalidArgumentsError: If the arguments fail validation.
        NotInitializedError: If state is None and the call is not initialize.
        LedgerError: Any domain failure raised by the operation.
    """
    config = config or LedgerConfig()

    if call.method == INITIALIZE:
        _parse_args(call.method, NoArgs, call.args)
        return Project.initialize(ctx, state), None

    if call.method in VIEWS:
        schema, handler = VIEWS[call.method]
    elif call.method in MUTATIONS:
        schema, handler = MUTATIONS[call.method]
    else:
        raise UnknownMethodError(call.method)

    args = _parse_args(call.method, schema, call.args)
    if state is None:
        raise NotInitializedError()

    if call.method in VIEWS:
        return state, _dump(handler(state, args, ctx, config))

    working = state.model_copy(deep=True)
    result = handler(working, args, ctx, config)
    logger.debug("mutation_applied", method=call.method)
    return working, _dump(result)
