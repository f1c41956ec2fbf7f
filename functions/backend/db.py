"""
Document store abstraction for groups and devices.

Firestore is the production backend; the in-memory implementation is used for
local development and tests.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import asdict
from typing import Dict, Optional, Protocol

from dacite import Config, from_dict
from google.api_core import exceptions
from google.cloud.firestore_v1 import SERVER_TIMESTAMP

from backend.errors import GroupNotFoundError
from shared.api import Device, Group, GroupMember
from shared.firebase_constants import DEVICES_COLLECTION, GROUPS_COLLECTION
from shared.json_utils import convert_keys
from shared.utils import generate_group_code, short, utc_now_iso

logger = logging.getLogger(__name__)

MAX_GROUP_CODE_ATTEMPTS = 5


class DbClient(Protocol):
    """Interface for group and device storage."""

    def create_group(
        self, name: str, creator_identity: str, address: str, code_length: int = 6
    ) -> Group:
        ...

    def add_member(self, group_id: str, identity: str, address: str) -> Group:
        ...

    def get_group(self, group_id: str) -> Optional[Group]:
        ...

    def register_device(self, identity: str, push_token: str) -> None:
        ...

    def get_push_token(self, identity: str) -> Optional[str]:
        ...


def normalize_group_code(group_id: str) -> str:
    """Group codes are case-insensitive."""
    return group_id.strip().upper()


def _new_member(address: str) -> GroupMember:
    now = utc_now_iso()
    return GroupMember(joined_at=now, last_address=address, last_updated=now)


def group_from_document(data: dict) -> Group:
    """Builds a Group from a camelCase Firestore document."""
    return from_dict(
        data_class=Group,
        data=convert_keys(data, "camel_to_snake", skip_keys_of=("members",)),
        config=Config(check_types=False),
    )


class InMemoryDbClient:
    """Simple in-memory document store for development and tests."""

    def __init__(self):
        self.groups: Dict[str, Group] = {}
        self.devices: Dict[str, Device] = {}
        self._lock = threading.Lock()

    def create_group(
        self, name: str, creator_identity: str, address: str, code_length: int = 6
    ) -> Group:
        with self._lock:
            for _ in range(MAX_GROUP_CODE_ATTEMPTS):
                code = generate_group_code(code_length)
                if code in self.groups:
                    continue
                group = Group(
                    code=code,
                    name=name,
                    created_at=utc_now_iso(),
                    members={creator_identity: _new_member(address)},
                )
                self.groups[code] = group
                return group
        raise RuntimeError("Could not allocate a unique group code")

    def add_member(self, group_id: str, identity: str, address: str) -> Group:
        code = normalize_group_code(group_id)
        with self._lock:
            group = self.groups.get(code)
            if group is None:
                raise GroupNotFoundError(code)
            member = _new_member(address)
            existing = group.members.get(identity)
            if existing and existing.joined_at:
                member.joined_at = existing.joined_at
            group.members[identity] = member
            return group

    def get_group(self, group_id: str) -> Optional[Group]:
        return self.groups.get(normalize_group_code(group_id))

    def remove_member(self, group_id: str, identity: str) -> None:
        """Drops a member (used to simulate membership changes in tests)."""
        group = self.groups.get(normalize_group_code(group_id))
        if group:
            group.members.pop(identity, None)

    def register_device(self, identity: str, push_token: str) -> None:
        self.devices[identity] = Device(
            identity=identity, push_token=push_token, last_active=utc_now_iso()
        )

    def get_push_token(self, identity: str) -> Optional[str]:
        device = self.devices.get(identity)
        return device.push_token if device else None

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.groups.clear()
            self.devices.clear()


class FirestoreDbClient:
    """
    Firestore-backed implementation.

    Groups live at `groups/{code}` with a `members` map keyed by identity;
    devices live at `devices/{identity}`.
    """

    def __init__(self, client):
        self.client = client

    def _group_ref(self, code: str):
        return self.client.collection(GROUPS_COLLECTION).document(code)

    def create_group(
        self, name: str, creator_identity: str, address: str, code_length: int = 6
    ) -> Group:
        member = _new_member(address)
        for _ in range(MAX_GROUP_CODE_ATTEMPTS):
            code = generate_group_code(code_length)
            doc_data = {
                "name": name,
                "code": code,
                "createdAt": SERVER_TIMESTAMP,
                "members": {
                    creator_identity: convert_keys(asdict(member), "snake_to_camel")
                },
            }
            try:
                # create() fails instead of overwriting an existing group.
                self._group_ref(code).create(doc_data)
            except exceptions.Conflict:
                logger.info("Group code collision on %s, retrying", code)
                continue
            logger.info(
                "Group created: %s (%s) by %s", name, code, short(creator_identity)
            )
            return Group(
                code=code,
                name=name,
                members={creator_identity: member},
            )
        raise RuntimeError("Could not allocate a unique group code")

    def add_member(self, group_id: str, identity: str, address: str) -> Group:
        code = normalize_group_code(group_id)
        if "/" in code:
            raise GroupNotFoundError(code)
        doc_ref = self._group_ref(code)
        doc = doc_ref.get()
        if not doc.exists:
            raise GroupNotFoundError(code)

        group = group_from_document(doc.to_dict())
        member = _new_member(address)
        existing = group.members.get(identity)
        if existing and existing.joined_at:
            member.joined_at = existing.joined_at

        doc_ref.update(
            {
                self.client.field_path("members", identity): convert_keys(
                    asdict(member), "snake_to_camel"
                )
            }
        )
        group.members[identity] = member
        logger.info("%s joined group %s", short(identity), code)
        return group

    def get_group(self, group_id: str) -> Optional[Group]:
        code = normalize_group_code(group_id)
        # A slash would address a subcollection path, never a group.
        if "/" in code:
            return None
        doc = self._group_ref(code).get()
        if not doc.exists:
            return None
        return group_from_document(doc.to_dict())

    def register_device(self, identity: str, push_token: str) -> None:
        self.client.collection(DEVICES_COLLECTION).document(identity).set(
            {
                "identity": identity,
                "pushToken": push_token,
                "lastActive": utc_now_iso(),
            },
            merge=True,
        )
        logger.info("Device registered: %s", short(identity))

    def get_push_token(self, identity: str) -> Optional[str]:
        doc = self.client.collection(DEVICES_COLLECTION).document(identity).get()
        if not doc.exists:
            return None
        return (doc.to_dict() or {}).get("pushToken")
