"""
Expenses Module

This module handles all expense-related operations for a group.

Features:
    - Add/edit/delete expenses
    - Split computation and validation at write time, so every stored
      expense satisfies the shares-sum-to-total invariant
    - Soft deletion: deleted expenses drop out of future balances

Data Model:
    Expense stored at: groups/{group_id}/expenses/{expense_id}
    Fields:
        - expense_id: string (E001, E002, ... format)
        - payer_id: string (member_id who paid)
        - total_amount: decimal string (must be > 0)
        - currency: group currency
        - split_method: equal | percentage | exact | shares
        - shares: list of ParticipantShare dicts
        - description: string or None
        - date: string (YYYY-MM-DD) or None
        - deleted_at: ISO timestamp or None

Functions:
    add_expense: Add a new expense to a group.
    update_expense: Edit an expense and re-validate it.
    delete_expense: Soft-delete an expense.
    get_expense: Get one live expense.
    get_expenses: Get all live expenses of a group.
    filter_expenses: Narrow expenses by member, date range and amount.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Optional

from groupledger.currency import to_money
from groupledger.firestore_helpers import (
    create_with_next_id,
    get_timestamp,
    group_ref,
    validate_date,
    validate_non_empty_string
)
from groupledger.groups import require_group, resolve_currency
from groupledger.members import get_member_ids
from groupledger.models import Expense, SplitMethod
from groupledger.splitter import calculate_split, recalculate_split, validate_expense

logger = logging.getLogger(__name__)


def _check_members(group_id: str, expense: Expense) -> None:
    member_ids = get_member_ids(group_id)
    if expense.payer_id not in member_ids:
        raise ValueError(f"payer_id '{expense.payer_id}' does not exist in group {group_id}")
    for member_id in expense.participant_ids:
        if member_id not in member_ids:
            raise ValueError(f"participant '{member_id}' does not exist in group {group_id}")


def _document(expense: Expense) -> dict:
    doc = expense.to_dict()
    doc["deleted_at"] = None
    doc["updated_at"] = get_timestamp()
    return doc


def add_expense(
    group_id: str,
    payer_id: str,
    total_amount,
    split_method,
    participants: list[dict],
    currency: Optional[str] = None,
    description: Optional[str] = None,
    date: Optional[str] = None
) -> Expense:
    """
    Add a new expense to a group.

    Args:
        group_id: The ID of the group.
        payer_id: Member ID of who paid the expense.
        total_amount: Amount of the expense (must be > 0).
        split_method: equal, percentage, exact or shares.
        participants: List of dicts with member_id and the split input
            (percentage, amount or shares).
        currency: Must match the group currency; defaults to it.
        description: Optional description.
        date: Optional date of the expense (YYYY-MM-DD).

    Returns:
        Expense: The created expense.

    Raises:
        InvalidSplit: If the shares break a split rule.
        ValueError: If input validation fails.
        LookupError: If the group does not exist.
        RuntimeError: If Firestore is not available.

    Notes:
        - Payer does NOT have to be a participant
    """
    validate_non_empty_string(group_id, "group_id")
    validate_non_empty_string(payer_id, "payer_id")
    validate_date(date, "date")
    group = require_group(group_id)

    method = SplitMethod(split_method)
    draft = Expense(
        expense_id="",
        group_id=group_id,
        payer_id=payer_id,
        total_amount=total_amount,
        currency=resolve_currency(group, currency),
        split_method=method,
        shares=calculate_split(total_amount, method, participants),
        description=description.strip() if description else None,
        date=date
    )
    validate_expense(draft)
    _check_members(group_id, draft)

    def build(expense_id):
        expense = replace(draft, expense_id=expense_id)
        return expense, _document(expense)

    expense = create_with_next_id(group_id, "expenses", "E", build)
    logger.info("Added expense %s (%s %s) to group %s",
                expense.expense_id, expense.total_amount, expense.currency, group_id)
    return expense


def get_expense(group_id: str, expense_id: str) -> Optional[Expense]:
    """Get one live (not deleted) expense, or None."""
    validate_non_empty_string(group_id, "group_id")
    validate_non_empty_string(expense_id, "expense_id")
    snapshot = group_ref(group_id).collection("expenses").document(expense_id).get()
    if not snapshot.exists:
        return None
    data = snapshot.to_dict()
    if data.get("deleted_at"):
        return None
    return Expense.from_dict(data)


def update_expense(
    group_id: str,
    expense_id: str,
    total_amount=None,
    payer_id: Optional[str] = None,
    split_method=None,
    participants: Optional[list[dict]] = None,
    description: Optional[str] = None,
    date: Optional[str] = None
) -> Expense:
    """
    Edit an expense; the edited expense is re-validated before it is written.

    When only the total changes, the shares are re-split with the stored
    split input (recalculate_split). When participants are given, the
    split is computed afresh from them.

    Raises:
        InvalidSplit: If the edited shares break a split rule.
        ValueError: If input validation fails.
        LookupError: If the expense does not exist.
        RuntimeError: If Firestore is not available.
    """
    validate_date(date, "date")
    current = get_expense(group_id, expense_id)
    if current is None:
        raise LookupError(f"expense '{expense_id}' does not exist in group {group_id}")

    new_total = total_amount if total_amount is not None else current.total_amount
    method = SplitMethod(split_method) if split_method is not None else current.split_method

    if participants is not None:
        shares = calculate_split(new_total, method, participants)
    elif method is not current.split_method:
        raise ValueError("changing the split method requires the participants' split input")
    elif total_amount is not None:
        shares = recalculate_split(current, new_total)
    else:
        shares = current.shares

    expense = Expense(
        expense_id=current.expense_id,
        group_id=group_id,
        payer_id=payer_id or current.payer_id,
        total_amount=new_total,
        currency=current.currency,
        split_method=method,
        shares=shares,
        description=description.strip() if description else current.description,
        date=date or current.date
    )
    validate_expense(expense)
    _check_members(group_id, expense)

    group_ref(group_id).collection("expenses").document(expense_id).set(_document(expense))
    logger.info("Updated expense %s in group %s", expense_id, group_id)
    return expense


def delete_expense(group_id: str, expense_id: str) -> None:
    """
    Soft-delete an expense; it no longer counts towards balances.

    Raises:
        LookupError: If the expense does not exist.
    """
    if get_expense(group_id, expense_id) is None:
        raise LookupError(f"expense '{expense_id}' does not exist in group {group_id}")
    group_ref(group_id).collection("expenses").document(expense_id).update(
        {"deleted_at": get_timestamp()}
    )
    logger.info("Deleted expense %s in group %s", expense_id, group_id)


def get_expenses(group_id: str) -> list[Expense]:
    """
    Get all live expenses of a group.

    Raises:
        ValueError: If group_id is invalid.
        RuntimeError: If Firestore is not available.
    """
    validate_non_empty_string(group_id, "group_id")
    docs = group_ref(group_id).collection("expenses").stream()
    return [
        Expense.from_dict(data)
        for data in (doc.to_dict() for doc in docs)
        if not data.get("deleted_at")
    ]


def _day(date_str: str):
    return datetime.strptime(date_str, "%Y-%m-%d").date()


def filter_expenses(
    expenses: list[Expense],
    member_id: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    min_amount=None,
    max_amount=None
) -> list[Expense]:
    """
    Narrow a list of expenses, ordered by expense_id.

    Args:
        expenses: Expenses to filter.
        member_id: Keep expenses this member paid or takes part in.
        start_date: Keep expenses dated on or after this day (YYYY-MM-DD).
        end_date: Keep expenses dated on or before this day (YYYY-MM-DD).
        min_amount: Keep expenses whose total is at least this amount.
        max_amount: Keep expenses whose total is at most this amount.

    Returns:
        list[Expense]: The matching expenses. Undated expenses never match
        a date bound.

    Raises:
        ValueError: If a date is malformed, an amount is not a number, or a
            lower bound is above its upper bound.
    """
    validate_date(start_date, "start_date")
    validate_date(end_date, "end_date")
    start = _day(start_date) if start_date else None
    end = _day(end_date) if end_date else None
    if start and end and start > end:
        raise ValueError(f"start_date {start_date} is after end_date {end_date}")
    low = to_money(min_amount) if min_amount is not None else None
    high = to_money(max_amount) if max_amount is not None else None
    if low is not None and high is not None and low > high:
        raise ValueError(f"min_amount {low} is above max_amount {high}")

    def matches(expense: Expense) -> bool:
        if member_id and member_id != expense.payer_id and member_id not in expense.participant_ids:
            return False
        if start or end:
            if not expense.date:
                return False
            if start and _day(expense.date) < start:
                return False
            if end and _day(expense.date) > end:
                return False
        if low is not None and expense.total_amount < low:
            return False
        if high is not None and expense.total_amount > high:
            return False
        return True

    return sorted((e for e in expenses if matches(e)), key=lambda e: e.expense_id)
