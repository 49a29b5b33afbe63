"""
Firestore Helpers Module

Shared plumbing for the Firestore store modules.

Functions:
    require_db: Return the Firestore client or fail.
    group_ref: Document reference of a group.
    generate_next_id: Next sequential id (M001, E001, P001, ...) in a collection.
    create_with_next_id: Create a document under the next free sequential id.
    validate_non_empty_string: Input validation for ids and names.
    get_timestamp: Current UTC timestamp in ISO format.
"""

import logging
import re
from datetime import datetime, timezone

from google.api_core.exceptions import AlreadyExists

from groupledger.config.firebase_config import get_db

logger = logging.getLogger(__name__)


def require_db():
    """
    Get the Firestore client.

    Raises:
        RuntimeError: If Firestore is not available.
    """
    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")
    return db


def group_ref(group_id: str):
    """Reference to groups/{group_id}."""
    return require_db().collection("groups").document(group_id)


def validate_non_empty_string(value: str, field_name: str) -> bool:
    """
    Validate that a string is non-empty.

    Raises:
        ValueError: If string is empty or not a string.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{field_name} must be a non-empty string")
    return True


def generate_next_id(group_id: str, collection: str, prefix: str) -> str:
    """
    Generate the next sequential ID in a group's sub-collection.

    Format: {prefix}001, {prefix}002, ...

    Logic:
        1. Fetch all existing document IDs in the collection
        2. Extract numeric suffix from IDs matching {prefix}### format
        3. Generate next ID with zero-padded 3-digit suffix
        4. If no valid IDs exist, start from {prefix}001

    Soft-deleted documents keep their IDs, so numbers are never reused.
    """
    docs = group_ref(group_id).collection(collection).stream()

    max_num = 0
    pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$")
    for doc in docs:
        match = pattern.match(doc.id)
        if match:
            max_num = max(max_num, int(match.group(1)))

    return f"{prefix}{max_num + 1:03d}"


def create_with_next_id(group_id: str, collection: str, prefix: str, build, attempts: int = 5):
    """
    Write a new document under the next sequential ID.

    build(new_id) returns (model, doc). The document is written with
    create(), which fails when the ID is already taken, so two concurrent
    writers never overwrite each other; the loser retries with a fresh ID.

    Returns:
        The model returned by build for the ID that was written.

    Raises:
        RuntimeError: If no free ID was found after `attempts` tries.
    """
    for _ in range(attempts):
        new_id = generate_next_id(group_id, collection, prefix)
        model, doc = build(new_id)
        try:
            group_ref(group_id).collection(collection).document(new_id).create(doc)
        except AlreadyExists:
            logger.warning("ID %s in groups/%s/%s was taken concurrently, retrying",
                           new_id, group_id, collection)
            continue
        return model
    raise RuntimeError(f"could not allocate a new {collection} ID in group {group_id}")


def get_timestamp() -> str:
    """Current UTC timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat()


def validate_date(date_str, field_name: str) -> bool:
    """
    Validate date string format (YYYY-MM-DD); None is allowed.

    Raises:
        ValueError: If date format is invalid.
    """
    if date_str is None:
        return True
    try:
        datetime.strptime(date_str, "%Y-%m-%d")
        return True
    except (TypeError, ValueError):
        raise ValueError(f"{field_name} must be in YYYY-MM-DD format, got: {date_str}")
