"""Typed error taxonomy for the project ledger.

Every error aborts the whole call. Hosts catch ``LedgerError`` and roll back
the invocation; nothing here is a recoverable return value.

Each error carries a machine-readable ``code`` alongside structured
attributes so callers never have to parse messages.
"""

from __future__ import annotations

from typing import Any


class LedgerError(Exception):
    """Base class for all ledger failures.

    Attributes:
        code: Stable machine-readable error code.
    """

    code: str = "LEDGER_ERROR"


class AlreadyInitializedError(LedgerError):
    """Raised when initialize runs against an instance that already has state."""

    code = "ALREADY_INITIALIZED"

    def __init__(self) -> None:
        super().__init__("Already initialized")


class NotInitializedError(LedgerError):
    """Raised when any call other than initialize runs before state exists."""

    code = "NOT_INITIALIZED"

    def __init__(self) -> None:
        super().__init__("The project is not initialized")


class NotConfiguredError(LedgerError):
    """Raised when a gated operation runs before configure."""

    code = "NOT_CONFIGURED"

    def __init__(self, operation: str | None = None):
        self.operation = operation
        msg = "Not configured project"
        if operation:
            msg += f" (operation: {operation})"
        super().__init__(msg)


class ArithmeticOverflowError(LedgerError):
    """Raised when an amount leaves the unsigned 128-bit range.

    Attributes:
        field: Name of the ledger field being updated.
        current: Value before the operation.
        operand: Amount being added or subtracted.
    """

    code = "ARITHMETIC_OVERFLOW"

    def __init__(self, field: str, current: int, operand: int):
        self.field = field
        self.current = current
        self.operand = operand
        super().__init__(
            f"Arithmetic overflow on {field}: {current} with operand {operand}"
        )


class BudgetExceededError(LedgerError):
    """Raised in strict budget mode when an expense would overspend.

    Attributes:
        amount: Expense amount requested.
        remaining: Remaining budget before the expense.
    """

    code = "BUDGET_EXCEEDED"

    def __init__(self, amount: int, remaining: int):
        self.amount = amount
        self.remaining = remaining
        super().__init__(
            f"Expense of {amount} exceeds remaining budget of {remaining}"
        )


class ContributorMismatchError(LedgerError):
    """Raised when a contribution names a different account than its key."""

    code = "CONTRIBUTOR_MISMATCH"

    def __init__(self, key: str, account: str):
        self.key = key
        self.account = account
        super().__init__(
            f"Contribution account {account!r} does not match key {key!r}"
        )


class UnknownMethodError(LedgerError):
    """Raised when a call names a method the ledger does not expose."""

    code = "UNKNOWN_METHOD"

    def __init__(self, method: str):
        self.method = method
        super().__init__(f"Unknown method: {method}")


class InvalidArgumentsError(LedgerError):
    """Raised when call arguments fail validation.

    Attributes:
        method: Method the arguments were meant for.
        errors: Validation error details as reported by pydantic.
    """

    code = "INVALID_ARGUMENTS"

    def __init__(self, method: str, errors: list[dict[str, Any]]):
        self.method = method
        self.errors = errors
        super().__init__(f"Invalid arguments for {method}: {errors}")


class CodecError(LedgerError):
    """Raised when stored state cannot be decoded."""

    code = "CODEC_ERROR"
