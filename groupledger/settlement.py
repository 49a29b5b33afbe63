"""
Settlement Module

This module turns net balances into a short list of suggested transfers.

Features:
    - Greedy largest-creditor / largest-debtor matching
    - Ties broken by member id, so identical input gives identical output
    - Balances within 0.01 of zero are treated as settled
    - Refuses balances that do not net to zero

Data Model:
    Input - balances: list of Balance (positive = owed money,
            negative = owes money)

    Output - list of Settlement in emission order:
        - payer: debtor who pays
        - recipient: creditor who receives
        - amount: Decimal rounded to 2 decimal places

Functions:
    plan_settlement: Convert balances into minimal settlement transactions.
    apply_settlements: Net balances after applying a plan.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP

from groupledger.currency import CENT, TOLERANCE
from groupledger.errors import CurrencyMismatch, UnbalancedInput
from groupledger.models import Balance, Settlement

logger = logging.getLogger(__name__)


def _pick(candidates: dict) -> str:
    # largest magnitude first, then member id ascending
    return min(candidates, key=lambda member_id: (-candidates[member_id], member_id))


def plan_settlement(balances: list[Balance]) -> list[Settlement]:
    """
    Convert net balances into minimal settlement transactions.

    Uses a greedy algorithm:
        1. Split members into creditors (balance > 0.01) and debtors
           (balance < -0.01); everyone else is already settled
        2. Take the largest creditor and the largest debtor (ties by
           member id ascending)
        3. Transfer min(credit, |debt|) from the debtor to the creditor
        4. Drop whichever side is now within 0.01 of zero
        5. Repeat until no creditors or no debtors remain

    Each round settles at least one member, so the plan never has more
    than (number of unsettled members - 1) transfers.

    Args:
        balances: One Balance per member, all in the same currency.

    Returns:
        list[Settlement]: Suggested transfers in the order they were chosen.

    Raises:
        UnbalancedInput: If the balances do not sum to zero within 0.01.
        CurrencyMismatch: If balances carry different currencies.

    Notes:
        - Residuals below 0.01 left at the end are absorbed, never emitted
        - Does NOT modify input balances
        - Advisory only: recording the transfers is the caller's job
    """
    if not balances:
        return []

    currencies = sorted({balance.currency for balance in balances})
    if len(currencies) > 1:
        raise CurrencyMismatch(currencies[0], currencies[1])
    currency = currencies[0]

    net = sum((balance.amount for balance in balances), Decimal("0"))
    if abs(net) > TOLERANCE:
        logger.error("Settlement input does not net to zero: %s", net)
        raise UnbalancedInput(net)

    names = {balance.member_id: balance.display_name for balance in balances}
    creditors = {}
    debtors = {}   # amounts stored as positive
    for balance in balances:
        if balance.amount > TOLERANCE:
            creditors[balance.member_id] = balance.amount
        elif balance.amount < -TOLERANCE:
            debtors[balance.member_id] = -balance.amount

    settlements = []
    while creditors and debtors:
        creditor_id = _pick(creditors)
        debtor_id = _pick(debtors)
        amount = min(creditors[creditor_id], debtors[debtor_id])

        settlements.append(Settlement(
            payer_id=debtor_id,
            payer_name=names[debtor_id],
            recipient_id=creditor_id,
            recipient_name=names[creditor_id],
            amount=amount.quantize(CENT, rounding=ROUND_HALF_UP),
            currency=currency
        ))

        creditors[creditor_id] -= amount
        debtors[debtor_id] -= amount
        if creditors[creditor_id] <= TOLERANCE:
            del creditors[creditor_id]
        if debtors[debtor_id] <= TOLERANCE:
            del debtors[debtor_id]

    logger.debug("Planned %d settlements for %d balances", len(settlements), len(balances))
    return settlements


def apply_settlements(balances: list[Balance], settlements: list[Settlement]) -> dict:
    """
    Net balance of each member after every settlement is paid.

    Returns:
        dict: member_id -> remaining Decimal balance.
    """
    remaining = {balance.member_id: balance.amount for balance in balances}
    for settlement in settlements:
        remaining[settlement.payer_id] += settlement.amount
        remaining[settlement.recipient_id] -= settlement.amount
    return remaining
