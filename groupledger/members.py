"""
Members Module

This module handles all member-related operations for a group.

Data Model:
    Member stored at: groups/{group_id}/members/{member_id}
    Fields:
        - member_id: string (M001, M002, ... format)
        - display_name: string

Functions:
    add_member: Add a new member to a group.
    get_members: Get all members of a group.
    get_member_ids: Set of member ids of a group.
"""

import logging

from groupledger.firestore_helpers import (
    create_with_next_id,
    group_ref,
    validate_non_empty_string
)
from groupledger.groups import require_group
from groupledger.models import Member

logger = logging.getLogger(__name__)


def add_member(group_id: str, display_name: str) -> Member:
    """
    Add a new member to a group.

    Args:
        group_id: The ID of the group.
        display_name: Name shown in balances and settlements.

    Returns:
        Member: The created member.

    Raises:
        ValueError: If input validation fails.
        LookupError: If the group does not exist.
        RuntimeError: If Firestore is not available.
    """
    validate_non_empty_string(group_id, "group_id")
    validate_non_empty_string(display_name, "display_name")
    require_group(group_id)

    name = display_name.strip()

    def build(member_id):
        member = Member(member_id=member_id, display_name=name)
        return member, member.to_dict()

    member = create_with_next_id(group_id, "members", "M", build)
    logger.info("Added member %s to group %s", member.member_id, group_id)
    return member


def get_members(group_id: str) -> list[Member]:
    """
    Get all members of a group, ordered by member_id.

    Raises:
        ValueError: If group_id is invalid.
        RuntimeError: If Firestore is not available.
    """
    validate_non_empty_string(group_id, "group_id")
    docs = group_ref(group_id).collection("members").stream()
    members = [Member.from_dict(doc.to_dict()) for doc in docs]
    return sorted(members, key=lambda m: m.member_id)


def get_member_ids(group_id: str) -> set[str]:
    """Get all member IDs of a group."""
    return {member.member_id for member in get_members(group_id)}
