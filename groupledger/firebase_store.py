"""
Firebase Store Module

This module caches computed results in Firestore for callers that want
them. The balance engine and settlement planner never call it themselves.

Features:
    - Save balances per member
    - Save settlement transactions
    - Read the cached results back
    - All saves are idempotent (safe to overwrite)

Firestore Structure:
    groups/{group_id}/results/balances/balances/{member_id}
        - Balance.to_dict() fields
        - updated_at: timestamp

    groups/{group_id}/results/settlements/settlements/{settlement_id}
        - settlement_id: string (S001, S002, ...)
        - Settlement.to_dict() fields
        - updated_at: timestamp

Functions:
    save_balances: Save member balances to Firestore.
    save_settlements: Save settlement transactions to Firestore.
    load_cached_results: Read previously saved results.
"""

import logging

from groupledger.firestore_helpers import get_timestamp, group_ref, validate_non_empty_string
from groupledger.models import Balance, Settlement

logger = logging.getLogger(__name__)


def _results(group_id: str, kind: str):
    return group_ref(group_id).collection("results").document(kind).collection(kind)


def save_balances(group_id: str, balances: list[Balance]) -> dict:
    """
    Save member balances to Firestore.

    Stores each member's balance as a separate document at:
        groups/{group_id}/results/balances/balances/{member_id}

    Args:
        group_id: The ID of the group.
        balances: Output of compute_balances().

    Returns:
        dict: Summary of saved documents with count and member IDs.

    Raises:
        ValueError: If group_id is invalid.
        RuntimeError: If Firestore is not available.
    """
    validate_non_empty_string(group_id, "group_id")

    timestamp = get_timestamp()
    collection = _results(group_id, "balances")
    saved_ids = []
    for balance in balances:
        doc_data = balance.to_dict()
        doc_data["updated_at"] = timestamp
        collection.document(balance.member_id).set(doc_data)
        saved_ids.append(balance.member_id)

    logger.info("Cached %d balances for group %s", len(saved_ids), group_id)
    return {
        "saved_count": len(saved_ids),
        "member_ids": saved_ids,
        "updated_at": timestamp
    }


def save_settlements(group_id: str, settlements: list[Settlement]) -> dict:
    """
    Save settlement transactions to Firestore.

    Generates sequential settlement IDs (S001, S002, ...) and stores at:
        groups/{group_id}/results/settlements/settlements/{settlement_id}

    Settlements left over from a longer previous plan are deleted so the
    cache always holds exactly the latest plan.

    Returns:
        dict: Summary of saved documents with count and settlement IDs.

    Raises:
        ValueError: If group_id is invalid.
        RuntimeError: If Firestore is not available.
    """
    validate_non_empty_string(group_id, "group_id")

    timestamp = get_timestamp()
    collection = _results(group_id, "settlements")
    saved_ids = []
    for index, settlement in enumerate(settlements, start=1):
        settlement_id = f"S{index:03d}"
        doc_data = settlement.to_dict()
        doc_data["settlement_id"] = settlement_id
        doc_data["updated_at"] = timestamp
        collection.document(settlement_id).set(doc_data)
        saved_ids.append(settlement_id)

    for doc in collection.stream():
        if doc.id not in saved_ids:
            doc.reference.delete()

    logger.info("Cached %d settlements for group %s", len(saved_ids), group_id)
    return {
        "saved_count": len(saved_ids),
        "settlement_ids": saved_ids,
        "updated_at": timestamp
    }


def load_cached_results(group_id: str) -> dict:
    """
    Read previously saved balances and settlements.

    Returns:
        dict: {"balances": [Balance], "settlements": [Settlement]}, both
            empty when nothing was cached.
    """
    validate_non_empty_string(group_id, "group_id")
    balances = [Balance.from_dict(doc.to_dict()) for doc in _results(group_id, "balances").stream()]
    settlement_docs = sorted(
        (doc.to_dict() for doc in _results(group_id, "settlements").stream()),
        key=lambda data: data.get("settlement_id", "")
    )
    return {
        "balances": sorted(balances, key=lambda b: b.member_id),
        "settlements": [Settlement.from_dict(data) for data in settlement_docs]
    }