"""
Ledger Module

"Recompute now" entry point: load a group's current data and run the
balance engine and settlement planner over it.

Called on demand (a balance view is requested) or after a change
notification (an expense or payment was added, edited or deleted). Every
call starts from a fresh snapshot; nothing is kept between calls.

Functions:
    load_group_snapshot: Fetch members, live expenses and live payments.
    summarize_group: Balances and settlement plan for an in-memory snapshot.
    recompute_group: Load, compute and optionally cache a group's results.
"""

import logging
from typing import NamedTuple, Optional

from groupledger.balances import compute_balances, is_group_settled
from groupledger.config import settings
from groupledger.expenses import get_expenses
from groupledger.firebase_store import save_balances, save_settlements
from groupledger.groups import require_group
from groupledger.members import get_members
from groupledger.models import Expense, Member, Payment
from groupledger.payments import get_payments
from groupledger.settlement import plan_settlement

logger = logging.getLogger(__name__)


class GroupSnapshot(NamedTuple):
    group_id: str
    currency: str
    members: list[Member]
    expenses: list[Expense]
    payments: list[Payment]


def load_group_snapshot(group_id: str) -> GroupSnapshot:
    """
    Fetch everything the balance engine needs for one group.

    Raises:
        LookupError: If the group does not exist.
        RuntimeError: If Firestore is not available.
    """
    group = require_group(group_id)
    return GroupSnapshot(
        group_id=group_id,
        currency=group["currency"],
        members=get_members(group_id),
        expenses=get_expenses(group_id),
        payments=get_payments(group_id)
    )


def summarize_group(
    members: list[Member],
    expenses: list[Expense],
    payments: list[Payment],
    currency: Optional[str] = None
) -> dict:
    """
    Compute balances and the settlement plan for a snapshot.

    Returns:
        dict: balances (list[Balance]), settlements (list[Settlement]),
            is_settled (bool).

    Raises:
        LedgerError: Any balance or settlement error; nothing partial is
            returned.
    """
    balances = compute_balances(members, expenses, payments, currency=currency)
    settlements = plan_settlement(balances)
    return {
        "balances": balances,
        "settlements": settlements,
        "is_settled": is_group_settled(balances)
    }


def recompute_group(group_id: str, persist: Optional[bool] = None) -> dict:
    """
    Recompute a group's balances and settlement plan from current data.

    Args:
        group_id: The ID of the group.
        persist: Cache the results in Firestore; PERSIST_RESULTS when None.

    Returns:
        dict: group_id, currency, balances, settlements, is_settled.

    Raises:
        LedgerError: If the data is inconsistent (nothing is cached then).
        LookupError: If the group does not exist.
        RuntimeError: If Firestore is not available.
    """
    snapshot = load_group_snapshot(group_id)
    summary = summarize_group(
        snapshot.members, snapshot.expenses, snapshot.payments, currency=snapshot.currency
    )

    if settings.PERSIST_RESULTS if persist is None else persist:
        save_balances(group_id, summary["balances"])
        save_settlements(group_id, summary["settlements"])

    logger.info(
        "Recomputed group %s: %d members, %d settlements",
        group_id, len(summary["balances"]), len(summary["settlements"])
    )
    return {"group_id": group_id, "currency": snapshot.currency, **summary}
