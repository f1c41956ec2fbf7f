# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from shared.constants import (
    CONFIRMED_KNOCK_BODY,
    CONFIRMED_KNOCK_TITLE,
    CONFIRMED_KNOCK_TYPE,
    KNOCK_ATTEMPT_TYPE,
)


@dataclass
class GroupMember:
    """Per-member metadata stored on a group document."""

    joined_at: Optional[str] = None
    # Address observed when the member created or joined the group. Audit
    # only; knock matching always compares live session addresses.
    last_address: Optional[str] = None
    last_updated: Optional[str] = None


@dataclass
class Group:
    """Schema for a group document stored in Firestore."""

    code: str
    name: str
    created_at: Any = None
    members: Dict[str, GroupMember] = field(default_factory=dict)


@dataclass
class Device:
    """Schema for a device document: the push token registered for an identity."""

    identity: str
    push_token: str
    last_active: Optional[str] = None


@dataclass
class PushPayload:
    """
    Single-recipient push notification.

    `data` is delivered to the app; `title`/`body` are only set for
    user-visible notifications.
    """

    type: str
    data: Dict[str, str]
    title: Optional[str] = None
    body: Optional[str] = None
    high_priority: bool = True

    @property
    def is_silent(self) -> bool:
        return self.title is None and self.body is None


@dataclass
class PushResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


def knock_attempt_payload(knock_id: str, group_id: str) -> PushPayload:
    """Data-only push asking the receiver's device to report its address."""
    return PushPayload(
        type=KNOCK_ATTEMPT_TYPE,
        data={
            "type": KNOCK_ATTEMPT_TYPE,
            "knockId": knock_id,
            "groupCode": group_id,
        },
    )


def confirmed_knock_payload(group_id: str) -> PushPayload:
    return PushPayload(
        type=CONFIRMED_KNOCK_TYPE,
        title=CONFIRMED_KNOCK_TITLE,
        body=CONFIRMED_KNOCK_BODY,
        data={
            "type": CONFIRMED_KNOCK_TYPE,
            "title": CONFIRMED_KNOCK_TITLE,
            "body": CONFIRMED_KNOCK_BODY,
            "groupCode": group_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


@dataclass
class KnockAttempt:
    """Outcome of initiating a knock."""

    knock_id: str
    notified: int
    delivered: int = 0
    failed: List[str] = field(default_factory=list)
