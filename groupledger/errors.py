"""
Errors Module

Named error kinds raised by the split validator, the balance engine and the
settlement planner. Every error is a LedgerError so the calling layer can
catch the whole family at its boundary.

Error kinds:
    InvalidSplit: Expense shares are inconsistent (raised at write time).
    UnknownMemberReference: Expense or payment names a non-member.
    InconsistentExpense: Stored expense shares do not sum to its total.
    UnbalancedInput: Balances handed to the planner do not net to zero.
    CurrencyMismatch: Rows of one computation carry different currencies.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional


class SplitErrorReason(str, Enum):
    """Reason attached to an InvalidSplit error."""
    SUM_MISMATCH = "SumMismatch"
    NEGATIVE_SHARE = "NegativeShare"
    NO_PARTICIPANTS = "NoParticipants"
    NON_POSITIVE_TOTAL = "NonPositiveTotal"
    DUPLICATE_PARTICIPANT = "DuplicateParticipant"
    INVALID_SHARE_COUNT = "InvalidShareCount"


class LedgerError(Exception):
    """Base class for every balance and settlement error."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidSplit(LedgerError):
    """
    An expense's shares are not consistent with its total or split method.

    Attributes:
        reason (SplitErrorReason): Which rule was broken.
        detail (str | None): Human-readable context.
    """

    def __init__(self, reason: SplitErrorReason, detail: Optional[str] = None):
        self.reason = SplitErrorReason(reason)
        self.detail = detail
        message = f"Invalid split ({self.reason.value})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class UnknownMemberReference(LedgerError):
    """An expense or payment references a member id absent from the member list."""

    def __init__(self, member_id: str, source_id: Optional[str] = None):
        self.member_id = member_id
        self.source_id = source_id
        where = f" in {source_id}" if source_id else ""
        super().__init__(f"Unknown member '{member_id}' referenced{where}")


class InconsistentExpense(LedgerError):
    """An expense's shares do not sum to its total amount."""

    def __init__(self, expense_id: str, shares_total: Decimal, total_amount: Decimal):
        self.expense_id = expense_id
        self.shares_total = shares_total
        self.total_amount = total_amount
        super().__init__(
            f"Expense '{expense_id}' shares sum to {shares_total}, expected {total_amount}"
        )


class UnbalancedInput(LedgerError):
    """Balances supplied to the settlement planner do not sum to zero."""

    def __init__(self, net: Decimal):
        self.net = net
        super().__init__(f"Balances do not net to zero (net {net})")


class CurrencyMismatch(LedgerError):
    """A computation received amounts in more than one currency."""

    def __init__(self, expected: str, found: str):
        self.expected = expected
        self.found = found
        super().__init__(f"Currency mismatch: expected {expected}, found {found}")
