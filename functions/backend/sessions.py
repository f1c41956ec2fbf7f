"""
Ephemeral knock session storage.

Sessions are second-scale coordination state, never business data: the
in-memory store is discarded on restart and the Redis store lets every key
expire with the session.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Optional, Protocol

import redis


@dataclass
class PendingKnock:
    """Server-side record coordinating one knock attempt."""

    knock_id: str
    sender_identity: str
    sender_address: str
    group_id: str
    created_at: float
    expires_at: float
    reported_identities: set[str] = field(default_factory=set)
    # Receivers that already have a confirmed knock scheduled.
    confirmed_identities: set[str] = field(default_factory=set)
    lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False
    )

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class SessionStore(Protocol):
    """Key-value registry of pending knocks with per-key atomic updates."""

    def put(self, knock: PendingKnock) -> None:
        ...

    def get(self, knock_id: str) -> Optional[PendingKnock]:
        ...

    def add_report(self, knock_id: str, identity: str) -> bool:
        ...

    def mark_confirmed(self, knock_id: str, identity: str) -> bool:
        ...

    def delete(self, knock_id: str) -> bool:
        ...

    def count(self) -> int:
        ...


@dataclass
class InMemorySessionStore:
    """
    Process-wide session map.

    The map lock only guards insert/lookup/delete; report and confirm updates
    take the session's own lock so unrelated knocks never contend.
    """

    sessions: dict[str, PendingKnock] = field(default_factory=dict)

    def __post_init__(self):
        self._lock = threading.Lock()

    def put(self, knock: PendingKnock) -> None:
        with self._lock:
            if knock.knock_id in self.sessions:
                raise ValueError(f"Duplicate knock id: {knock.knock_id}")
            self.sessions[knock.knock_id] = knock

    def get(self, knock_id: str) -> Optional[PendingKnock]:
        with self._lock:
            return self.sessions.get(knock_id)

    def add_report(self, knock_id: str, identity: str) -> bool:
        knock = self.get(knock_id)
        if knock is None:
            return False
        with knock.lock:
            knock.reported_identities.add(identity)
        return True

    def mark_confirmed(self, knock_id: str, identity: str) -> bool:
        """Returns True only for the first call per (knock, identity)."""
        knock = self.get(knock_id)
        if knock is None:
            return False
        with knock.lock:
            if identity in knock.confirmed_identities:
                return False
            knock.confirmed_identities.add(identity)
            return True

    def delete(self, knock_id: str) -> bool:
        with self._lock:
            return self.sessions.pop(knock_id, None) is not None

    def count(self) -> int:
        with self._lock:
            return len(self.sessions)

    def reset(self) -> None:
        with self._lock:
            self.sessions.clear()


@dataclass
class RedisSessionStore:
    """
    Redis-backed store shared by several worker processes.

    Each session is a hash plus two sets (reported and confirmed identities);
    all three keys expire at the session deadline.
    """

    url: str
    key_prefix: str = "knock:sessions"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url, decode_responses=True)

    def _key(self, knock_id: str) -> str:
        return f"{self.key_prefix}:{knock_id}"

    def _reported_key(self, knock_id: str) -> str:
        return f"{self._key(knock_id)}:reported"

    def _confirmed_key(self, knock_id: str) -> str:
        return f"{self._key(knock_id)}:confirmed"

    def put(self, knock: PendingKnock) -> None:
        key = self._key(knock.knock_id)
        pipe = self.client.pipeline()
        pipe.hset(
            key,
            mapping={
                "knock_id": knock.knock_id,
                "sender_identity": knock.sender_identity,
                "sender_address": knock.sender_address,
                "group_id": knock.group_id,
                "created_at": repr(knock.created_at),
                "expires_at": repr(knock.expires_at),
            },
        )
        pipe.pexpireat(key, int(knock.expires_at * 1000))
        pipe.execute()

    def get(self, knock_id: str) -> Optional[PendingKnock]:
        data = self.client.hgetall(self._key(knock_id))
        if not data:
            return None
        return PendingKnock(
            knock_id=data["knock_id"],
            sender_identity=data["sender_identity"],
            sender_address=data["sender_address"],
            group_id=data["group_id"],
            created_at=float(data["created_at"]),
            expires_at=float(data["expires_at"]),
            reported_identities=set(self.client.smembers(self._reported_key(knock_id))),
            confirmed_identities=set(
                self.client.smembers(self._confirmed_key(knock_id))
            ),
        )

    def _add_to_set(self, knock_id: str, set_key: str, identity: str) -> Optional[int]:
        expires_at = self.client.hget(self._key(knock_id), "expires_at")
        if expires_at is None:
            return None
        pipe = self.client.pipeline()
        pipe.sadd(set_key, identity)
        pipe.pexpireat(set_key, int(float(expires_at) * 1000))
        added, _ = pipe.execute()
        return added

    def add_report(self, knock_id: str, identity: str) -> bool:
        return (
            self._add_to_set(knock_id, self._reported_key(knock_id), identity)
            is not None
        )

    def mark_confirmed(self, knock_id: str, identity: str) -> bool:
        # SADD reports 1 only for the first writer.
        added = self._add_to_set(knock_id, self._confirmed_key(knock_id), identity)
        return added == 1

    def delete(self, knock_id: str) -> bool:
        removed = self.client.delete(
            self._key(knock_id),
            self._reported_key(knock_id),
            self._confirmed_key(knock_id),
        )
        return removed > 0

    def count(self) -> int:
        return sum(
            1
            for key in self.client.scan_iter(match=f"{self.key_prefix}:*")
            if not key.endswith((":reported", ":confirmed"))
        )
