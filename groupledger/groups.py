"""
Groups Module

Group documents in Firestore.

Data Model:
    Group stored at: groups/{group_id}
    Fields:
        - group_id: string (group_{short_uuid})
        - name: string
        - currency: ISO 4217 code every expense and payment must use
        - created_at: ISO timestamp

Functions:
    create_group: Create a new group.
    get_group: Fetch a group document.
"""

import logging
import uuid
from typing import Optional

from groupledger.config import settings
from groupledger.currency import normalize_currency
from groupledger.firestore_helpers import (
    get_timestamp,
    require_db,
    validate_non_empty_string
)

logger = logging.getLogger(__name__)


def _generate_group_id() -> str:
    return f"group_{uuid.uuid4().hex[:8]}"


def create_group(name: str, currency: Optional[str] = None) -> dict:
    """
    Create a new group.

    Args:
        name: Group name.
        currency: ISO 4217 code; DEFAULT_CURRENCY when omitted.

    Returns:
        dict: The stored group document.

    Raises:
        ValueError: If the name or currency is invalid.
        RuntimeError: If Firestore is not available.
    """
    validate_non_empty_string(name, "name")
    currency = normalize_currency(currency or settings.DEFAULT_CURRENCY)

    db = require_db()
    group_id = _generate_group_id()
    group_doc = {
        "group_id": group_id,
        "name": name.strip(),
        "currency": currency,
        "created_at": get_timestamp()
    }
    db.collection("groups").document(group_id).set(group_doc)
    logger.info("Created group %s (%s)", group_id, currency)
    return group_doc


def get_group(group_id: str) -> Optional[dict]:
    """
    Fetch a group document.

    Returns:
        dict | None: The group, or None if it does not exist.

    Raises:
        ValueError: If group_id is invalid.
        RuntimeError: If Firestore is not available.
    """
    validate_non_empty_string(group_id, "group_id")
    snapshot = require_db().collection("groups").document(group_id).get()
    if not snapshot.exists:
        return None
    return snapshot.to_dict()


def require_group(group_id: str) -> dict:
    """
    Fetch a group document or fail.

    Raises:
        LookupError: If the group does not exist.
    """
    group = get_group(group_id)
    if group is None:
        raise LookupError(f"group '{group_id}' does not exist")
    return group


def resolve_currency(group: dict, currency: Optional[str]) -> str:
    """
    Currency for a new expense or payment: the group currency.

    Raises:
        ValueError: If a different currency is requested.
    """
    group_currency = normalize_currency(group["currency"])
    if currency is None:
        return group_currency
    currency = normalize_currency(currency)
    if currency != group_currency:
        raise ValueError(f"currency must be the group currency {group_currency}, got: {currency}")
    return currency
