"""
Models Module

Immutable data model shared by the splitter, the balance engine, the
settlement planner and the Firestore store modules.

Data Model:
    Member - member_id, display_name
    ParticipantShare - member_id, amount, percentage, share_count,
                       input_percentage
    Expense - expense_id, group_id, payer_id, total_amount, currency,
              split_method, shares, description, date
    Payment - payment_id, group_id, payer_id, recipient_id, amount,
              currency, note, date
    Balance - member_id, display_name, amount (signed), currency and the
              paid/owed/sent/received breakdown
    Settlement - payer, recipient, amount, currency

All amounts are Decimal rounded to 2 places. to_dict() stores amounts as
strings so Firestore never sees a binary float.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

from groupledger.currency import TOLERANCE, to_money


class SplitMethod(str, Enum):
    """Rule by which an expense total is divided among participants."""
    EQUAL = "equal"
    PERCENTAGE = "percentage"
    EXACT = "exact"
    SHARES = "shares"


class BalanceStatus(str, Enum):
    OWES = "owes"
    OWED = "owed"
    SETTLED = "settled"


def _money_field(instance, name: str) -> None:
    # frozen dataclasses need object.__setattr__ to normalise in __post_init__
    object.__setattr__(instance, name, to_money(getattr(instance, name)))


@dataclass(frozen=True)
class Member:
    """A group member, referenced by id everywhere else."""
    member_id: str
    display_name: str

    def to_dict(self) -> dict:
        return {"member_id": self.member_id, "display_name": self.display_name}

    @classmethod
    def from_dict(cls, data: dict) -> "Member":
        return cls(member_id=data.get("member_id"), display_name=data.get("display_name"))


@dataclass(frozen=True)
class ParticipantShare:
    """
    One participant's part of an expense.

    Attributes:
        member_id (str): Participant.
        amount (Decimal): Share of the expense total.
        percentage (Decimal): amount / total * 100, for display.
        share_count (int | None): Raw share count for `shares` splits.
        input_percentage (Decimal | None): Percentage as entered, for
            `percentage` splits. Not rounded, so re-splits reuse it exactly.
    """
    member_id: str
    amount: Decimal
    percentage: Decimal = Decimal("0.00")
    share_count: Optional[int] = None
    input_percentage: Optional[Decimal] = None

    def __post_init__(self):
        _money_field(self, "amount")
        _money_field(self, "percentage")
        if self.input_percentage is not None:
            object.__setattr__(self, "input_percentage", Decimal(str(self.input_percentage)))

    def to_dict(self) -> dict:
        return {
            "member_id": self.member_id,
            "amount": str(self.amount),
            "percentage": str(self.percentage),
            "share_count": self.share_count,
            "input_percentage": (
                str(self.input_percentage) if self.input_percentage is not None else None
            )
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ParticipantShare":
        return cls(
            member_id=data.get("member_id"),
            amount=data.get("amount", "0"),
            percentage=data.get("percentage", "0"),
            share_count=data.get("share_count"),
            input_percentage=data.get("input_percentage")
        )


@dataclass(frozen=True)
class Expense:
    """
    A shared expense paid by one member and split among participants.

    The shares are expected to have passed validate_expense() before the
    expense is stored.
    """
    expense_id: str
    group_id: str
    payer_id: str
    total_amount: Decimal
    currency: str
    split_method: SplitMethod
    shares: tuple = ()
    description: Optional[str] = None
    date: Optional[str] = None

    def __post_init__(self):
        _money_field(self, "total_amount")
        object.__setattr__(self, "split_method", SplitMethod(self.split_method))
        object.__setattr__(self, "shares", tuple(self.shares))

    @property
    def participant_ids(self) -> list[str]:
        return [share.member_id for share in self.shares]

    @property
    def shares_total(self) -> Decimal:
        return sum((share.amount for share in self.shares), Decimal("0.00"))

    def to_dict(self) -> dict:
        """Convert expense to dictionary for Firestore storage."""
        return {
            "expense_id": self.expense_id,
            "group_id": self.group_id,
            "payer_id": self.payer_id,
            "total_amount": str(self.total_amount),
            "currency": self.currency,
            "split_method": self.split_method.value,
            "shares": [share.to_dict() for share in self.shares],
            "description": self.description,
            "date": self.date
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Expense":
        """Create an Expense instance from a dictionary."""
        return cls(
            expense_id=data.get("expense_id"),
            group_id=data.get("group_id"),
            payer_id=data.get("payer_id"),
            total_amount=data.get("total_amount"),
            currency=data.get("currency"),
            split_method=data.get("split_method"),
            shares=[ParticipantShare.from_dict(s) for s in data.get("shares", [])],
            description=data.get("description"),
            date=data.get("date")
        )


@dataclass(frozen=True)
class Payment:
    """
    A direct transfer between two members, independent of any expense.

    Raises:
        ValueError: If payer and recipient are the same or amount <= 0.
    """
    payment_id: str
    group_id: str
    payer_id: str
    recipient_id: str
    amount: Decimal
    currency: str
    note: Optional[str] = None
    date: Optional[str] = None

    def __post_init__(self):
        _money_field(self, "amount")
        if self.amount <= 0:
            raise ValueError(f"payment amount must be positive, got: {self.amount}")
        if self.payer_id == self.recipient_id:
            raise ValueError("payment payer and recipient must be different members")

    def to_dict(self) -> dict:
        return {
            "payment_id": self.payment_id,
            "group_id": self.group_id,
            "payer_id": self.payer_id,
            "recipient_id": self.recipient_id,
            "amount": str(self.amount),
            "currency": self.currency,
            "note": self.note,
            "date": self.date
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Payment":
        return cls(
            payment_id=data.get("payment_id"),
            group_id=data.get("group_id"),
            payer_id=data.get("payer_id"),
            recipient_id=data.get("recipient_id"),
            amount=data.get("amount"),
            currency=data.get("currency"),
            note=data.get("note"),
            date=data.get("date")
        )


@dataclass(frozen=True)
class Balance:
    """
    A member's net position in a group.

    Positive amount = the group owes this member; negative = this member
    owes the group. amount == total_paid - total_owed + payments_sent
    - payments_received.
    """
    member_id: str
    display_name: str
    amount: Decimal
    currency: str
    total_paid: Decimal = Decimal("0.00")
    total_owed: Decimal = Decimal("0.00")
    payments_sent: Decimal = Decimal("0.00")
    payments_received: Decimal = Decimal("0.00")

    def __post_init__(self):
        for name in ("amount", "total_paid", "total_owed", "payments_sent", "payments_received"):
            _money_field(self, name)

    @property
    def is_settled(self) -> bool:
        return abs(self.amount) < TOLERANCE

    @property
    def owes_money(self) -> bool:
        return not self.is_settled and self.amount < 0

    @property
    def is_owed_money(self) -> bool:
        return not self.is_settled and self.amount > 0

    @property
    def status(self) -> BalanceStatus:
        if self.is_settled:
            return BalanceStatus.SETTLED
        if self.owes_money:
            return BalanceStatus.OWES
        return BalanceStatus.OWED

    def to_dict(self) -> dict:
        return {
            "member_id": self.member_id,
            "display_name": self.display_name,
            "amount": str(self.amount),
            "currency": self.currency,
            "total_paid": str(self.total_paid),
            "total_owed": str(self.total_owed),
            "payments_sent": str(self.payments_sent),
            "payments_received": str(self.payments_received),
            "status": self.status.value
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Balance":
        return cls(
            member_id=data.get("member_id"),
            display_name=data.get("display_name"),
            amount=data.get("amount", "0"),
            currency=data.get("currency"),
            total_paid=data.get("total_paid", "0"),
            total_owed=data.get("total_owed", "0"),
            payments_sent=data.get("payments_sent", "0"),
            payments_received=data.get("payments_received", "0")
        )


@dataclass(frozen=True)
class Settlement:
    """A suggested transfer from a debtor (payer) to a creditor (recipient)."""
    payer_id: str
    payer_name: str
    recipient_id: str
    recipient_name: str
    amount: Decimal
    currency: str

    def __post_init__(self):
        _money_field(self, "amount")

    @property
    def description(self) -> str:
        return f"{self.payer_name} pays {self.recipient_name} {self.amount} {self.currency}"

    def to_dict(self) -> dict:
        return {
            "payer_id": self.payer_id,
            "payer_name": self.payer_name,
            "recipient_id": self.recipient_id,
            "recipient_name": self.recipient_name,
            "amount": str(self.amount),
            "currency": self.currency
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Settlement":
        return cls(
            payer_id=data.get("payer_id"),
            payer_name=data.get("payer_name"),
            recipient_id=data.get("recipient_id"),
            recipient_name=data.get("recipient_name"),
            amount=data.get("amount"),
            currency=data.get("currency")
        )
