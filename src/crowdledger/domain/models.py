"""Project ledger state model.

Defines the records that make up one crowdfunded project's persistent state
and the ``Project`` aggregate root that owns them. The host loads a
``Project``, runs exactly one operation on it and persists the result, so
every method here is a plain state transition with its inputs passed in
explicitly through ``CallContext``.

Amounts are unsigned 128-bit integers. Additions that leave that range fail
with ``ArithmeticOverflowError``; the remaining budget is the only derived
value and is reported as a signed integer that can go negative.
"""

from __future__ import annotations

import enum
from typing import Annotated

import structlog
from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from crowdledger.errors import (
    AlreadyInitializedError,
    ArithmeticOverflowError,
    BudgetExceededError,
    ContributorMismatchError,
    NotConfiguredError,
)

logger = structlog.get_logger(__name__)

U128_MAX = 2**128 - 1

Amount = Annotated[int, Field(ge=0, le=U128_MAX)]


def _require_utf8(value: str) -> str:
    try:
        value.encode("utf-8")
    except UnicodeEncodeError as e:
        raise ValueError(f"Text is not valid UTF-8: {e.reason}") from e
    return value


Text = Annotated[str, AfterValidator(_require_utf8)]


def checked_add(field: str, current: int, operand: int) -> int:
    """Add two amounts, failing instead of leaving the u128 range."""
    result = current + operand
    if result > U128_MAX:
        raise ArithmeticOverflowError(field, current, operand)
    return result


def checked_sub(field: str, current: int, operand: int) -> int:
    """Subtract two amounts, failing instead of going below zero."""
    if operand > current:
        raise ArithmeticOverflowError(field, current, -operand)
    return current - operand


class TaskStatus(str, enum.Enum):
    """Lifecycle status of a contribution.

    Any status may be assigned at any time; no transition order is enforced.
    Declaration order is the binary variant index.
    """

    BLOCKED = "BLOCKED"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class Expense(BaseModel):
    """One recorded spend against the project budget."""

    model_config = ConfigDict(frozen=True)

    label: Text
    amount: Amount


class ProjectDetails(BaseModel):
    """Descriptive metadata set when the project is configured."""

    model_config = ConfigDict(frozen=True)

    title: Text
    description: Text


class Contribution(BaseModel):
    """A task assigned to one account.

    Attributes:
        account: Account doing the work. Not required to match the key the
            contribution is stored under unless the ledger is configured to
            check it.
        task: Free-form task description.
        amount: Agreed amount for the task. Never affects the funding ledger.
        status: Current status of the task.
    """

    model_config = ConfigDict(frozen=True)

    account: Text
    task: Text
    amount: Amount
    status: TaskStatus


class ProjectFunding(BaseModel):
    """Budget ledger: funds raised, funds spent and the expense log.

    ``spent`` always equals the sum of ``expenses``. Nothing here checks
    ``spent <= total``; guards live in ``Project``.
    """

    total: Amount = 0
    spent: Amount = 0
    expenses: list[Expense] = Field(default_factory=list)

    @classmethod
    def with_amount(cls, total: int) -> ProjectFunding:
        """Create a fresh ledger seeded with ``total`` and nothing spent."""
        return cls(total=total)


class CallContext(BaseModel):
    """Invocation context supplied by the host for a single call.

    Attributes:
        predecessor_account_id: Account that directly invoked the call.
        signer_account_id: Account that originated the call chain.
        attached_deposit: Value attached to the call. Already included in
            ``account_balance``.
        account_balance: Instance balance at the time of the call.
    """

    model_config = ConfigDict(frozen=True)

    predecessor_account_id: Text
    signer_account_id: Text
    attached_deposit: Amount = 0
    account_balance: Amount = 0


class Project(BaseModel):
    """Aggregate root for one project instance.

    Attributes:
        factory: Account that created this instance.
        proposal: Account that originated the creating call chain.
        details: Project metadata; its presence marks the project configured.
        funding: Budget ledger, present once configured.
        contributors: Contributions keyed by account, in first-insertion order.
    """

    factory: Text
    proposal: Text
    details: ProjectDetails | None = None
    funding: ProjectFunding | None = None
    contributors: dict[str, Contribution] = Field(default_factory=dict)

    @classmethod
    def initialize(cls, ctx: CallContext, existing: Project | None = None) -> Project:
        """Create the root state for a new instance.

        Args:
            ctx: Call context; the direct caller becomes the factory and the
                signer becomes the proposal.
            existing: State already stored for the instance, if any.

        Raises:
            AlreadyInitializedError: If ``existing`` is not None.
        """
        if existing is not None:
            raise AlreadyInitializedError()

        project = cls(
            factory=ctx.predecessor_account_id,
            proposal=ctx.signer_account_id,
        )
        logger.info(
            "project_initialized",
            factory=project.factory,
            proposal=project.proposal,
        )
        return project

    def is_configured(self) -> bool:
        return self.details is not None

    def assert_configured(self, operation: str | None = None) -> None:
        if not self.is_configured():
            raise NotConfiguredError(operation)

    def _require_funding(self, operation: str) -> ProjectFunding:
        self.assert_configured(operation)
        if self.funding is None:
            raise NotConfiguredError(operation)
        return self.funding

    def configure(
        self,
        title: str,
        description: str,
        ctx: CallContext,
        min_reserve: int = 0,
    ) -> None:
        """Set project details and reset the funding ledger.

        May be called repeatedly. Each call replaces the details and starts a
        fresh ledger seeded from the current balance minus ``min_reserve``,
        discarding the previous totals and expense log.

        Raises:
            ArithmeticOverflowError: If the balance is below the reserve.
        """
        total = checked_sub("total", ctx.account_balance, min_reserve)
        reconfigured = self.is_configured()

        self.details = ProjectDetails(title=title, description=description)
        self.funding = ProjectFunding.with_amount(total)

        logger.info(
            "project_configured",
            title=title,
            total=total,
            reconfigured=reconfigured,
        )

    def add_funds(self, ctx: CallContext) -> None:
        """Add the attached deposit to the funding total."""
        funding = self._require_funding("add_funds")
        funding.total = checked_add("total", funding.total, ctx.attached_deposit)
        logger.info(
            "funds_added",
            amount=ctx.attached_deposit,
            total=funding.total,
        )

    def add_contributor(
        self,
        account: str,
        contribution: Contribution,
        require_matching_account: bool = False,
    ) -> None:
        """Insert or replace the contribution stored under ``account``.

        Args:
            account: Key to store the contribution under.
            contribution: Record stored verbatim.
            require_matching_account: Reject contributions whose embedded
                account differs from ``account``.

        Raises:
            NotConfiguredError: If the project is not configured.
            ContributorMismatchError: If the accounts differ and matching is
                required.
        """
        self.assert_configured("add_contributor")
        if require_matching_account and contribution.account != account:
            raise ContributorMismatchError(account, contribution.account)

        replaced = account in self.contributors
        self.contributors[account] = contribution
        logger.info(
            "contributor_added",
            account=account,
            status=contribution.status.value,
            replaced=replaced,
        )

    def add_expense(self, label: str, amount: int, strict_budget: bool = False) -> None:
        """Record an expense and add it to the spent amount.

        Args:
            label: Expense label.
            amount: Expense amount.
            strict_budget: Reject expenses larger than the remaining budget.

        Raises:
            NotConfiguredError: If the project is not configured.
            BudgetExceededError: In strict mode, when overspending.
            ArithmeticOverflowError: If ``spent`` would leave the u128 range.
        """
        funding = self._require_funding("add_expense")
        if strict_budget:
            remaining = funding.total - funding.spent
            if amount > remaining:
                raise BudgetExceededError(amount, remaining)

        spent = checked_add("spent", funding.spent, amount)
        funding.expenses.append(Expense(label=label, amount=amount))
        funding.spent = spent
        logger.info(
            "expense_recorded",
            label=label,
            amount=amount,
            spent=spent,
            index=len(funding.expenses) - 1,
        )

    def get_factory(self) -> str:
        return self.factory

    def get_proposal(self) -> str:
        return self.proposal

    def get_remaining_budget(self) -> int:
        """Return ``total - spent``; negative when overspent."""
        self.assert_configured("get_remaining_budget")
        if self.funding is None:
            return 0
        return self.funding.total - self.funding.spent

    def get_details(self) -> ProjectDetails | None:
        return self.details

    def get_expenses(self) -> list[Expense]:
        self.assert_configured("get_expenses")
        if self.funding is None:
            return []
        return list(self.funding.expenses)

    def get_contributors(self) -> dict[str, Contribution]:
        return dict(self.contributors)

    def get_contributor(self, account: str) -> Contribution | None:
        return self.contributors.get(account)
