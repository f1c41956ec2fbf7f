"""
Group membership lookups used by the knock registry.

Every call reads through to the document store so a membership change made
mid-knock is seen by the next check.
"""

from __future__ import annotations

from backend.db import DbClient, normalize_group_code
from backend.errors import GroupNotFoundError
from shared.api import Group


class GroupMembershipResolver:
    def __init__(self, db: DbClient):
        self.db = db

    def _load(self, group_id: str) -> Group:
        group = self.db.get_group(group_id)
        if group is None:
            raise GroupNotFoundError(normalize_group_code(group_id))
        return group

    def is_member(self, group_id: str, identity: str) -> bool:
        """Raises GroupNotFoundError if the group does not exist."""
        return identity in self._load(group_id).members

    def other_members(self, group_id: str, excluding_identity: str) -> set[str]:
        """Members of the group other than `excluding_identity` (may be empty)."""
        members = set(self._load(group_id).members)
        members.discard(excluding_identity)
        return members
