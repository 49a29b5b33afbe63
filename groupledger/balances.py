"""
Balances Module

This module computes each member's net balance in a group from its
expenses and payments.

Features:
    - Every member gets a balance, including members with no activity
    - Payer credited with the full expense total, participants debited
      their shares
    - Payments move the payer up and the recipient down
    - Decimal arithmetic throughout, half-up rounding to 2 places
    - Output independent of input ordering (sorted by member_id)

Data Model:
    Input - members: list of Member
    Input - expenses: list of Expense (already validated at write time)
    Input - payments: list of Payment

    Output - list of Balance sorted by member_id:
        - amount: total_paid - total_owed + payments_sent - payments_received
            - Positive = the group owes this member
            - Negative = this member owes the group

Functions:
    compute_balances: Calculate every member's net balance.
    is_group_settled: True when every balance is within 0.01 of zero.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from groupledger.config import settings
from groupledger.currency import CENT, TOLERANCE, normalize_currency
from groupledger.errors import CurrencyMismatch, InconsistentExpense, UnknownMemberReference
from groupledger.models import Balance, Expense, Member, Payment

logger = logging.getLogger(__name__)


def _resolve_currency(
    expenses: list[Expense],
    payments: list[Payment],
    currency: Optional[str]
) -> str:
    """
    Pick the single currency of a computation.

    Raises:
        CurrencyMismatch: If rows disagree with each other or with the
            requested currency.
    """
    found = sorted(
        {normalize_currency(e.currency) for e in expenses}
        | {normalize_currency(p.currency) for p in payments}
    )
    if currency is not None:
        expected = normalize_currency(currency)
        others = [code for code in found if code != expected]
        if others:
            raise CurrencyMismatch(expected, others[0])
        return expected
    if len(found) > 1:
        raise CurrencyMismatch(found[0], found[1])
    if found:
        return found[0]
    return normalize_currency(settings.DEFAULT_CURRENCY)


def _check_expense(expense: Expense, member_ids: set) -> None:
    if expense.payer_id not in member_ids:
        raise UnknownMemberReference(expense.payer_id, expense.expense_id)
    for share in expense.shares:
        if share.member_id not in member_ids:
            raise UnknownMemberReference(share.member_id, expense.expense_id)

    # should be unreachable once validate_expense ran at write time
    shares_total = expense.shares_total
    negative = any(share.amount < 0 for share in expense.shares)
    if negative or abs(shares_total - expense.total_amount) > TOLERANCE:
        logger.error(
            "Inconsistent expense %s: shares sum to %s, total %s",
            expense.expense_id, shares_total, expense.total_amount
        )
        raise InconsistentExpense(expense.expense_id, shares_total, expense.total_amount)


def compute_balances(
    members: list[Member],
    expenses: list[Expense],
    payments: list[Payment],
    currency: Optional[str] = None
) -> list[Balance]:
    """
    Calculate every member's net balance from expenses and payments.

    For each expense:
        1. The payer is credited with the full total amount
        2. Each participant (payer included, if listed) is debited their share

    For each payment:
        1. The payer's balance rises by the amount (they paid off debt)
        2. The recipient's balance falls by the amount

    Args:
        members: Current group members.
        expenses: Live expenses; shares must already satisfy validate_expense.
        payments: Live payments.
        currency: Expected currency; inferred from the rows when omitted
            (DEFAULT_CURRENCY when there are no rows).

    Returns:
        list[Balance]: One balance per member, sorted by member_id.

    Raises:
        UnknownMemberReference: An expense or payment names a non-member.
        InconsistentExpense: An expense's shares do not sum to its total.
        CurrencyMismatch: Rows carry more than one currency.

    Notes:
        - The whole computation aborts on the first bad row; a partial
          balance set is never returned
        - Does NOT write to Firestore
    """
    currency = _resolve_currency(expenses, payments, currency)

    names = {m.member_id: m.display_name for m in members}
    member_ids = set(names)

    # paid, owed, sent, received per member
    totals = {
        member_id: [Decimal("0"), Decimal("0"), Decimal("0"), Decimal("0")]
        for member_id in member_ids
    }

    for expense in sorted(expenses, key=lambda e: str(e.expense_id)):
        _check_expense(expense, member_ids)
        totals[expense.payer_id][0] += expense.total_amount
        for share in expense.shares:
            totals[share.member_id][1] += share.amount

    for payment in sorted(payments, key=lambda p: str(p.payment_id)):
        for member_id in (payment.payer_id, payment.recipient_id):
            if member_id not in member_ids:
                raise UnknownMemberReference(member_id, payment.payment_id)
        totals[payment.payer_id][2] += payment.amount
        totals[payment.recipient_id][3] += payment.amount

    balances = []
    for member_id in sorted(member_ids):
        paid, owed, sent, received = totals[member_id]
        net = (paid - owed + sent - received).quantize(CENT, rounding=ROUND_HALF_UP)
        balances.append(Balance(
            member_id=member_id,
            display_name=names[member_id],
            amount=net,
            currency=currency,
            total_paid=paid,
            total_owed=owed,
            payments_sent=sent,
            payments_received=received
        ))

    logger.debug(
        "Computed %d balances from %d expenses and %d payments",
        len(balances), len(expenses), len(payments)
    )
    return balances


def is_group_settled(balances: list[Balance]) -> bool:
    """A group is settled when every member's |balance| < 0.01."""
    return all(balance.is_settled for balance in balances)
