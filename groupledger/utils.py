"""
Utilities Module

Transparency helpers: explain how each member's balance was reached.

Features:
    - Per-member breakdown of every expense share and payment
    - Explanations for all members, ordered by member_id
    - Human-readable balance lines

Data Model:
    Input - members: list of Member
    Input - expenses: list of Expense
    Input - payments: list of Payment
    Input - balances: list of Balance from compute_balances()

Functions:
    explain_member_balance: Detailed breakdown for one member.
    explain_all_members: Detailed breakdown for all members.
    describe_balance: One-line text for a balance.
"""

from groupledger.currency import format_currency
from groupledger.models import Balance, BalanceStatus, Expense, Member, Payment


def _expense_contribution(expense: Expense, member_id: str) -> dict:
    share = next((s for s in expense.shares if s.member_id == member_id), None)
    return {
        "expense_id": expense.expense_id,
        "description": expense.description,
        "date": expense.date,
        "split_method": expense.split_method.value,
        "total_amount": str(expense.total_amount),
        "paid_by_member": expense.payer_id == member_id,
        "participants": expense.participant_ids,
        "member_share": str(share.amount) if share else "0.00",
        "member_percentage": str(share.percentage) if share else "0.00"
    }


def explain_member_balance(
    member_id: str,
    members: list[Member],
    expenses: list[Expense],
    payments: list[Payment],
    balances: list[Balance]
) -> dict:
    """
    Generate detailed explanation of how a member's balance was calculated.

    For each expense the member paid for or took part in:
        - Shows expense details (id, description, date, total amount)
        - Shows all participants and the member's share
    For each payment the member sent or received:
        - Shows the counterparty, amount and direction

    Args:
        member_id: ID of the member to explain.
        members: List of members.
        expenses: List of expenses.
        payments: List of payments.
        balances: Output from compute_balances().

    Returns:
        dict: Explanation containing:
            - member_id, display_name
            - expense_contributions: list of dicts, ordered by expense_id
            - payments: list of dicts, ordered by payment_id
            - total_paid, total_owed, payments_sent, payments_received,
              net_balance, status (from balances)
            - summary: one-line text from describe_balance()

    Raises:
        KeyError: If the member is unknown.
    """
    names = {m.member_id: m.display_name for m in members}
    if member_id not in names:
        raise KeyError(f"Member {member_id} not found")

    balance = next((b for b in balances if b.member_id == member_id), None)

    expense_contributions = [
        _expense_contribution(expense, member_id)
        for expense in sorted(expenses, key=lambda e: str(e.expense_id))
        if expense.payer_id == member_id or member_id in expense.participant_ids
    ]

    payment_lines = []
    for payment in sorted(payments, key=lambda p: str(p.payment_id)):
        if member_id not in (payment.payer_id, payment.recipient_id):
            continue
        sent = payment.payer_id == member_id
        counterparty = payment.recipient_id if sent else payment.payer_id
        payment_lines.append({
            "payment_id": payment.payment_id,
            "direction": "sent" if sent else "received",
            "counterparty_id": counterparty,
            "counterparty_name": names.get(counterparty, counterparty),
            "amount": str(payment.amount),
            "date": payment.date
        })

    if balance is None:
        totals = {
            "total_paid": "0.00",
            "total_owed": "0.00",
            "payments_sent": "0.00",
            "payments_received": "0.00",
            "net_balance": "0.00",
            "status": BalanceStatus.SETTLED.value,
            "summary": f"{names[member_id]} is settled"
        }
    else:
        totals = {
            "total_paid": str(balance.total_paid),
            "total_owed": str(balance.total_owed),
            "payments_sent": str(balance.payments_sent),
            "payments_received": str(balance.payments_received),
            "net_balance": str(balance.amount),
            "status": balance.status.value,
            "summary": describe_balance(balance)
        }

    return {
        "member_id": member_id,
        "display_name": names[member_id],
        "expense_contributions": expense_contributions,
        "payments": payment_lines,
        **totals
    }


def explain_all_members(
    members: list[Member],
    expenses: list[Expense],
    payments: list[Payment],
    balances: list[Balance]
) -> list[dict]:
    """
    Generate detailed explanations for all members.

    Notes:
        - Includes all members, even those with no expenses
        - Ordered by member_id
    """
    explanations = [
        explain_member_balance(m.member_id, members, expenses, payments, balances)
        for m in members
    ]
    explanations.sort(key=lambda x: x["member_id"])
    return explanations


def describe_balance(balance: Balance) -> str:
    """Return text like 'Bob owes 33.33 USD' or 'Alice is settled'."""
    if balance.status is BalanceStatus.SETTLED:
        return f"{balance.display_name} is settled"
    amount = format_currency(abs(balance.amount), balance.currency)
    if balance.status is BalanceStatus.OWES:
        return f"{balance.display_name} owes {amount}"
    return f"{balance.display_name} is owed {amount}"
