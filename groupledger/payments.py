"""
Payments Module

Direct payments between members of a group.

Data Model:
    Payment stored at: groups/{group_id}/payments/{payment_id}
    Fields:
        - payment_id: string (P001, P002, ... format)
        - payer_id: string (member who paid)
        - recipient_id: string (member who received, != payer_id)
        - amount: decimal string (must be > 0)
        - currency: group currency
        - note: string or None
        - date: string (YYYY-MM-DD) or None
        - deleted_at: ISO timestamp or None

Functions:
    add_payment: Record a payment.
    delete_payment: Soft-delete a payment.
    get_payments: Get all live payments of a group.
    filter_payments: Payments sent or received by a member.
"""

import logging
from typing import Optional

from groupledger.firestore_helpers import (
    create_with_next_id,
    get_timestamp,
    group_ref,
    validate_date,
    validate_non_empty_string
)
from groupledger.groups import require_group, resolve_currency
from groupledger.members import get_member_ids
from groupledger.models import Payment

logger = logging.getLogger(__name__)


def add_payment(
    group_id: str,
    payer_id: str,
    recipient_id: str,
    amount,
    currency: Optional[str] = None,
    note: Optional[str] = None,
    date: Optional[str] = None
) -> Payment:
    """
    Record a payment from one member to another.

    Returns:
        Payment: The created payment.

    Raises:
        ValueError: If amount <= 0, payer == recipient, a member is
            unknown, or the currency is not the group currency.
        LookupError: If the group does not exist.
        RuntimeError: If Firestore is not available.
    """
    validate_non_empty_string(group_id, "group_id")
    validate_non_empty_string(payer_id, "payer_id")
    validate_non_empty_string(recipient_id, "recipient_id")
    validate_date(date, "date")
    group = require_group(group_id)

    member_ids = get_member_ids(group_id)
    for field_name, member_id in (("payer_id", payer_id), ("recipient_id", recipient_id)):
        if member_id not in member_ids:
            raise ValueError(f"{field_name} '{member_id}' does not exist in group {group_id}")

    payment_currency = resolve_currency(group, currency)

    def build(payment_id):
        payment = Payment(
            payment_id=payment_id,
            group_id=group_id,
            payer_id=payer_id,
            recipient_id=recipient_id,
            amount=amount,
            currency=payment_currency,
            note=note.strip() if note else None,
            date=date
        )
        doc = payment.to_dict()
        doc["deleted_at"] = None
        return payment, doc

    payment = create_with_next_id(group_id, "payments", "P", build)
    logger.info("Recorded payment %s (%s -> %s, %s %s) in group %s",
                payment.payment_id, payer_id, recipient_id,
                payment.amount, payment.currency, group_id)
    return payment


def delete_payment(group_id: str, payment_id: str) -> None:
    """
    Soft-delete a payment.

    Raises:
        LookupError: If the payment does not exist or is already deleted.
    """
    validate_non_empty_string(group_id, "group_id")
    validate_non_empty_string(payment_id, "payment_id")
    doc_ref = group_ref(group_id).collection("payments").document(payment_id)
    snapshot = doc_ref.get()
    if not snapshot.exists or snapshot.to_dict().get("deleted_at"):
        raise LookupError(f"payment '{payment_id}' does not exist in group {group_id}")
    doc_ref.update({"deleted_at": get_timestamp()})
    logger.info("Deleted payment %s in group %s", payment_id, group_id)


def get_payments(group_id: str) -> list[Payment]:
    """Get all live payments of a group."""
    validate_non_empty_string(group_id, "group_id")
    docs = group_ref(group_id).collection("payments").stream()
    return [
        Payment.from_dict(data)
        for data in (doc.to_dict() for doc in docs)
        if not data.get("deleted_at")
    ]


def filter_payments(payments: list[Payment], member_id: Optional[str] = None) -> list[Payment]:
    """Payments sent or received by member_id (all when None), ordered by payment_id."""
    return sorted(
        (p for p in payments if not member_id or member_id in (p.payer_id, p.recipient_id)),
        key=lambda p: p.payment_id
    )
