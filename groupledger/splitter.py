"""
Splitter Module

This module handles expense splitting and split validation for the group
ledger.

Features:
    - Equal, percentage, exact and share-based splitting
    - Cent-exact results: shares always sum to the expense total
    - Largest-remainder residual assignment with a deterministic tie-break
    - Write-time validation of an expense's shares
    - Re-splitting an expense whose total was edited

Data Model:
    Input - participants (list of dicts):
        - member_id: string
        - percentage: number (percentage splits)
        - amount: number (exact splits)
        - shares: int (share splits)

    Output - list of ParticipantShare in participant input order.

Functions:
    split_equally: Split a total equally, extra cents to the first participants.
    split_by_percentage: Split a total by percentages.
    split_by_exact_amounts: Take exact amounts as given.
    split_by_shares: Split a total by integer share counts.
    calculate_split: Dispatch on split method and build ParticipantShares.
    calculate_percentages: Display percentage of each amount.
    validate_expense: Check an expense's shares against its total.
    recalculate_split: Re-split an expense for a new total.
    can_modify_participants: Whether participants can change without re-entry.
"""

import logging
from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP

from groupledger.currency import TOLERANCE, from_cents, to_cents, to_money
from groupledger.errors import InvalidSplit, SplitErrorReason
from groupledger.models import Expense, ParticipantShare, SplitMethod

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


def _require_participants(member_ids: list[str]) -> None:
    if not member_ids:
        raise InvalidSplit(SplitErrorReason.NO_PARTICIPANTS, "at least one participant is required")
    seen = set()
    for member_id in member_ids:
        if member_id in seen:
            raise InvalidSplit(
                SplitErrorReason.DUPLICATE_PARTICIPANT,
                f"member '{member_id}' appears more than once"
            )
        seen.add(member_id)


def _require_positive_total(total_amount: Decimal) -> None:
    if total_amount <= 0:
        raise InvalidSplit(
            SplitErrorReason.NON_POSITIVE_TOTAL,
            f"total amount must be positive, got {total_amount}"
        )


def _apportion(total_cents: int, weights: dict[str, Decimal]) -> dict[str, int]:
    """
    Apportion whole cents proportionally to weights (largest-remainder method).

    Each member gets floor(total * weight / sum(weights)) cents; the
    leftover cents go one at a time to the largest fractional remainders,
    ties broken by member id ascending.
    """
    weight_total = sum(weights.values(), Decimal("0"))
    floors = {}
    remainders = []
    for member_id, weight in weights.items():
        exact = Decimal(total_cents) * weight / weight_total
        whole = int(exact.to_integral_value(rounding=ROUND_FLOOR))
        floors[member_id] = whole
        remainders.append((exact - whole, member_id))

    residual = total_cents - sum(floors.values())
    remainders.sort(key=lambda item: (-item[0], item[1]))
    for _, member_id in remainders[:residual]:
        floors[member_id] += 1
    return floors


def split_equally(total_amount, member_ids: list[str]) -> dict[str, Decimal]:
    """
    Split a total equally among participants.

    The total is divided in cents; when it does not divide evenly, the
    first N participants in input order get one extra cent (N = the
    remainder), so shares differ by at most one cent and sum to the total.

    Args:
        total_amount: Expense total.
        member_ids: Participants in input order.

    Returns:
        dict: member_id -> share amount.

    Raises:
        InvalidSplit: NonPositiveTotal, NoParticipants or DuplicateParticipant.
    """
    total_amount = to_money(total_amount)
    _require_positive_total(total_amount)
    _require_participants(member_ids)

    total_cents = to_cents(total_amount)
    base, remainder = divmod(total_cents, len(member_ids))
    return {
        member_id: from_cents(base + (1 if index < remainder else 0))
        for index, member_id in enumerate(member_ids)
    }


def split_by_percentage(total_amount, percentages: dict[str, Decimal]) -> dict[str, Decimal]:
    """
    Split a total by percentages.

    Percentages must sum to 100 (within 0.01). Each share is
    total * percentage / 100 in cents; residual cents are assigned by the
    largest-remainder method so the shares sum exactly to the total.

    Args:
        total_amount: Expense total.
        percentages: member_id -> percentage, in participant order.

    Returns:
        dict: member_id -> share amount.

    Raises:
        InvalidSplit: NonPositiveTotal, NoParticipants, NegativeShare or
            SumMismatch.
    """
    total_amount = to_money(total_amount)
    _require_positive_total(total_amount)
    _require_participants(list(percentages))

    weights = {}
    for member_id, percentage in percentages.items():
        percentage = Decimal(str(percentage))
        if percentage < 0:
            raise InvalidSplit(
                SplitErrorReason.NEGATIVE_SHARE,
                f"percentage for '{member_id}' is negative ({percentage})"
            )
        if percentage > HUNDRED:
            raise InvalidSplit(
                SplitErrorReason.SUM_MISMATCH,
                f"percentage for '{member_id}' exceeds 100 ({percentage})"
            )
        weights[member_id] = percentage

    percentage_total = sum(weights.values(), Decimal("0"))
    if abs(percentage_total - HUNDRED) > TOLERANCE:
        raise InvalidSplit(
            SplitErrorReason.SUM_MISMATCH,
            f"percentages sum to {percentage_total}, expected 100"
        )

    cents = _apportion(to_cents(total_amount), weights)
    return {member_id: from_cents(value) for member_id, value in cents.items()}


def split_by_exact_amounts(total_amount, amounts: dict[str, Decimal]) -> dict[str, Decimal]:
    """
    Take exact per-participant amounts as given.

    The amounts must sum to the total within 0.01. Nothing is
    redistributed: a mismatch is an error, never corrected.

    Raises:
        InvalidSplit: NonPositiveTotal, NoParticipants, NegativeShare or
            SumMismatch.
    """
    total_amount = to_money(total_amount)
    _require_positive_total(total_amount)
    _require_participants(list(amounts))

    result = {}
    for member_id, amount in amounts.items():
        amount = to_money(amount)
        if amount < 0:
            raise InvalidSplit(
                SplitErrorReason.NEGATIVE_SHARE,
                f"amount for '{member_id}' is negative ({amount})"
            )
        result[member_id] = amount

    amounts_total = sum(result.values(), Decimal("0.00"))
    if abs(amounts_total - total_amount) > TOLERANCE:
        raise InvalidSplit(
            SplitErrorReason.SUM_MISMATCH,
            f"amounts sum to {amounts_total}, expected {total_amount}"
        )
    return result


def split_by_shares(total_amount, shares: dict[str, int]) -> dict[str, Decimal]:
    """
    Split a total by integer share counts.

    share amount = total * (member shares / total shares), residual cents
    by the largest-remainder method.

    Raises:
        InvalidSplit: NonPositiveTotal, NoParticipants, NegativeShare or
            InvalidShareCount (non-integer counts, or all counts zero).
    """
    total_amount = to_money(total_amount)
    _require_positive_total(total_amount)
    _require_participants(list(shares))

    weights = {}
    for member_id, count in shares.items():
        if isinstance(count, bool) or not isinstance(count, int):
            raise InvalidSplit(
                SplitErrorReason.INVALID_SHARE_COUNT,
                f"share count for '{member_id}' must be an integer, got {count!r}"
            )
        if count < 0:
            raise InvalidSplit(
                SplitErrorReason.NEGATIVE_SHARE,
                f"share count for '{member_id}' is negative ({count})"
            )
        weights[member_id] = Decimal(count)

    if sum(weights.values()) == 0:
        raise InvalidSplit(SplitErrorReason.INVALID_SHARE_COUNT, "total share count must be positive")

    cents = _apportion(to_cents(total_amount), weights)
    return {member_id: from_cents(value) for member_id, value in cents.items()}


def calculate_percentages(total_amount, amounts: dict[str, Decimal]) -> dict[str, Decimal]:
    """Display percentage (amount / total * 100, 2 places) for each member."""
    total_amount = to_money(total_amount)
    if total_amount == 0:
        return {member_id: Decimal("0.00") for member_id in amounts}
    return {
        member_id: (to_money(amount) / total_amount * HUNDRED).quantize(
            Decimal("0.01"), rounding=ROUND_HALF_UP
        )
        for member_id, amount in amounts.items()
    }


def _input_value(participant: dict, key: str, method: SplitMethod):
    value = participant.get(key)
    if value is None:
        raise ValueError(
            f"{method.value} split requires '{key}' for participant '{participant.get('member_id')}'"
        )
    return value


def calculate_split(
    total_amount,
    split_method,
    participants: list[dict]
) -> list[ParticipantShare]:
    """
    Compute every participant's share of an expense.

    Args:
        total_amount: Expense total.
        split_method: SplitMethod or its string value.
        participants: List of dicts with member_id plus the method's raw
            input (percentage, amount or shares).

    Returns:
        list[ParticipantShare]: One share per participant, in input order.

    Raises:
        InvalidSplit: If the input breaks a split rule.
        ValueError: If a participant lacks the input its method needs.
    """
    method = SplitMethod(split_method)
    member_ids = [p.get("member_id") for p in participants]
    _require_positive_total(to_money(total_amount))
    # duplicates would silently collapse in the dicts below
    _require_participants(member_ids)

    share_counts = {}
    input_percentages = {}
    if method is SplitMethod.EQUAL:
        amounts = split_equally(total_amount, member_ids)
    elif method is SplitMethod.PERCENTAGE:
        input_percentages = {
            p["member_id"]: Decimal(str(_input_value(p, "percentage", method)))
            for p in participants
        }
        amounts = split_by_percentage(total_amount, input_percentages)
    elif method is SplitMethod.EXACT:
        amounts = split_by_exact_amounts(
            total_amount,
            {p["member_id"]: _input_value(p, "amount", method) for p in participants}
        )
    else:
        share_counts = {p["member_id"]: _input_value(p, "shares", method) for p in participants}
        amounts = split_by_shares(total_amount, share_counts)

    percentages = calculate_percentages(total_amount, amounts)
    return [
        ParticipantShare(
            member_id=member_id,
            amount=amounts[member_id],
            percentage=percentages[member_id],
            share_count=share_counts.get(member_id),
            input_percentage=input_percentages.get(member_id)
        )
        for member_id in member_ids
    ]


def validate_expense(expense: Expense) -> None:
    """
    Verify an expense's shares are internally consistent.

    Must run whenever an expense is created or edited; the balance engine
    relies on stored expenses having passed it.

    Checks, in order:
        1. total amount > 0                       (NonPositiveTotal)
        2. at least one participant               (NoParticipants)
        3. no participant listed twice            (DuplicateParticipant)
        4. every share amount >= 0                (NegativeShare)
        5. every percentage within [0, 100]       (SumMismatch)
        6. shares sum to the total within 0.01    (SumMismatch)

    Args:
        expense: The expense with its ParticipantShares populated.

    Raises:
        InvalidSplit: The first rule the expense breaks.
    """
    _require_positive_total(expense.total_amount)
    _require_participants(expense.participant_ids)

    for share in expense.shares:
        if share.amount < 0:
            raise InvalidSplit(
                SplitErrorReason.NEGATIVE_SHARE,
                f"share for '{share.member_id}' is negative ({share.amount})"
            )
        if not Decimal("0") <= share.percentage <= HUNDRED:
            raise InvalidSplit(
                SplitErrorReason.SUM_MISMATCH,
                f"percentage for '{share.member_id}' is outside 0-100 ({share.percentage})"
            )

    difference = abs(expense.shares_total - expense.total_amount)
    if difference > TOLERANCE:
        raise InvalidSplit(
            SplitErrorReason.SUM_MISMATCH,
            f"shares sum to {expense.shares_total}, expected {expense.total_amount}"
        )
    logger.debug("Expense %s passed split validation", expense.expense_id)


def recalculate_split(expense: Expense, new_total_amount) -> list[ParticipantShare]:
    """
    Re-split an expense for a new total, keeping its split method.

    Rules:
        - equal: split the new total equally again
        - percentage: reuse each participant's percentage as entered
          (the display percentage for rows stored without it)
        - shares: reuse stored share counts (1 when missing)
        - exact: scale the old amounts proportionally (largest remainder)

    Returns:
        list[ParticipantShare]: New shares in the expense's participant order.
    """
    method = expense.split_method
    if method is SplitMethod.EQUAL:
        participants = [{"member_id": s.member_id} for s in expense.shares]
    elif method is SplitMethod.PERCENTAGE:
        # rounded display percentages can drift past the 0.01 tolerance
        participants = [
            {
                "member_id": s.member_id,
                "percentage": s.input_percentage if s.input_percentage is not None else s.percentage
            }
            for s in expense.shares
        ]
    elif method is SplitMethod.SHARES:
        participants = [
            {"member_id": s.member_id, "shares": s.share_count if s.share_count is not None else 1}
            for s in expense.shares
        ]
    else:
        new_total_amount = to_money(new_total_amount)
        _require_positive_total(new_total_amount)
        _require_participants(expense.participant_ids)
        weights = {s.member_id: s.amount for s in expense.shares}
        if sum(weights.values(), Decimal("0")) == 0:
            weights = {member_id: Decimal("1") for member_id in weights}
        cents = _apportion(to_cents(new_total_amount), weights)
        participants = [{"member_id": m, "amount": from_cents(c)} for m, c in cents.items()]

    return calculate_split(new_total_amount, method, participants)


def can_modify_participants(split_method) -> bool:
    """
    Whether participants can be added or removed without re-entering input.

    True for equal and share splits; percentage and exact splits would
    need every amount reconfigured.
    """
    return SplitMethod(split_method) in (SplitMethod.EQUAL, SplitMethod.SHARES)
