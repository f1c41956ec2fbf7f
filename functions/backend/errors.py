"""
Error taxonomy for the knock protocol.

Precondition failures are raised synchronously to the caller. Push delivery
failures are never raised; they are reported on the KnockAttempt result.
"""

from __future__ import annotations


class KnockError(Exception):
    """Base class for knock protocol errors."""


class NotFoundError(KnockError):
    """A referenced group or knock session does not exist."""


class GroupNotFoundError(NotFoundError):
    def __init__(self, group_id: str):
        super().__init__(f"Group not found: {group_id}")
        self.group_id = group_id


class KnockNotFoundError(NotFoundError):
    """Unknown knock id. Expired sessions are reported the same way."""

    def __init__(self, knock_id: str):
        super().__init__(f"Knock not found or expired: {knock_id}")
        self.knock_id = knock_id


class NotMemberError(KnockError):
    def __init__(self, group_id: str, identity: str):
        super().__init__("Not a group member")
        self.group_id = group_id
        self.identity = identity


class NoRecipientsError(KnockError):
    """The group has nobody else to notify, so no session was created."""

    def __init__(self, group_id: str, reason: str = "No other group members"):
        super().__init__(reason)
        self.group_id = group_id
