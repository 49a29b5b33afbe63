"""
Group Ledger

Balance computation and debt-settlement planning for group expense
splitting.
"""

from groupledger.balances import compute_balances, is_group_settled
from groupledger.errors import (
    CurrencyMismatch,
    InconsistentExpense,
    InvalidSplit,
    LedgerError,
    SplitErrorReason,
    UnbalancedInput,
    UnknownMemberReference
)
from groupledger.models import (
    Balance,
    BalanceStatus,
    Expense,
    Member,
    ParticipantShare,
    Payment,
    Settlement,
    SplitMethod
)
from groupledger.settlement import plan_settlement
from groupledger.splitter import calculate_split, validate_expense

__version__ = "1.0.0"

__all__ = [
    "Balance",
    "BalanceStatus",
    "CurrencyMismatch",
    "Expense",
    "InconsistentExpense",
    "InvalidSplit",
    "LedgerError",
    "Member",
    "ParticipantShare",
    "Payment",
    "Settlement",
    "SplitErrorReason",
    "SplitMethod",
    "UnbalancedInput",
    "UnknownMemberReference",
    "calculate_split",
    "compute_balances",
    "is_group_settled",
    "plan_settlement",
    "validate_expense",
]
