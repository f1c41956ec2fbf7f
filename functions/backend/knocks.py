"""
Knock session registry: the two-phase "proximity knock" handshake.

1. The sender initiates a knock. Every other group member with a registered
   device gets a silent "knock-attempt" push carrying the knock id.
2. Each receiver's device wakes and reports its own public address.
3. If it equals the address the sender had at initiation, a visible
   "confirmed-knock" push is sent to that receiver after a short delay, as
   long as the session has not expired by then.

Sessions expire after a fixed TTL whether or not anyone matched.
"""

from __future__ import annotations

import concurrent.futures
import logging
import time
from typing import Callable, Optional

from backend.db import DbClient, normalize_group_code
from backend.errors import KnockNotFoundError, NoRecipientsError, NotMemberError
from backend.membership import GroupMembershipResolver
from backend.push import PushGateway
from backend.sessions import PendingKnock, SessionStore
from backend.timers import Scheduler, TimerScheduler
from shared.api import (
    KnockAttempt,
    PushPayload,
    confirmed_knock_payload,
    knock_attempt_payload,
)
from shared.constants import CONFIRMED_KNOCK_DELAY_SECONDS, KNOCK_SESSION_TTL_SECONDS
from shared.utils import get_unique_id, short

logger = logging.getLogger(__name__)


class KnockRegistry:
    """Owns every PendingKnock; no other component mutates sessions."""

    def __init__(
        self,
        db: DbClient,
        sessions: SessionStore,
        push: PushGateway,
        scheduler: Optional[Scheduler] = None,
        *,
        ttl_seconds: float = KNOCK_SESSION_TTL_SECONDS,
        confirm_delay_seconds: float = CONFIRMED_KNOCK_DELAY_SECONDS,
        fanout_workers: int = 8,
        push_timeout_seconds: float = 10.0,
        clock: Callable[[], float] = time.time,
    ):
        self.db = db
        self.membership = GroupMembershipResolver(db)
        self.sessions = sessions
        self.push = push
        self.scheduler = scheduler or TimerScheduler()
        self.ttl_seconds = ttl_seconds
        self.confirm_delay_seconds = confirm_delay_seconds
        self.push_timeout_seconds = push_timeout_seconds
        self.clock = clock
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=fanout_workers, thread_name_prefix="knock-push"
        )

    def initiate_knock(
        self, sender_identity: str, group_id: str, sender_address: str
    ) -> KnockAttempt:
        """
        Opens a knock session and notifies every other group member.

        Raises:
            GroupNotFoundError: The group does not exist.
            NotMemberError: The sender is not a member of the group.
            NoRecipientsError: Nobody else in the group can be notified. No
                session is created in that case.
        """
        group_id = normalize_group_code(group_id)
        if not self.membership.is_member(group_id, sender_identity):
            raise NotMemberError(group_id, sender_identity)

        others = self.membership.other_members(group_id, sender_identity)
        if not others:
            raise NoRecipientsError(group_id)

        recipients = self._resolve_push_tokens(others)
        if not recipients:
            raise NoRecipientsError(
                group_id, "No registered devices for other group members"
            )

        now = self.clock()
        knock = PendingKnock(
            knock_id=get_unique_id(),
            sender_identity=sender_identity,
            sender_address=sender_address,
            group_id=group_id,
            created_at=now,
            expires_at=now + self.ttl_seconds,
        )
        self.sessions.put(knock)
        try:
            self.scheduler.call_later(self.ttl_seconds, self.expire, knock.knock_id)
        except RuntimeError:
            self.sessions.delete(knock.knock_id)
            raise
        logger.info(
            "Knock %s opened by %s in group %s, notifying %d members",
            knock.knock_id,
            short(sender_identity),
            group_id,
            len(recipients),
        )

        delivered, failed = self._fan_out(
            recipients, knock_attempt_payload(knock.knock_id, group_id)
        )
        if failed:
            logger.warning(
                "Knock %s: partial delivery failure, %d of %d attempt pushes failed (%s)",
                knock.knock_id,
                len(failed),
                len(recipients),
                ", ".join(short(identity) for identity in failed),
            )
        return KnockAttempt(
            knock_id=knock.knock_id,
            notified=len(recipients),
            delivered=delivered,
            failed=failed,
        )

    def report_address(
        self, receiver_identity: str, knock_id: str, receiver_address: str
    ) -> bool:
        """
        Records a receiver's address and returns whether it matches the sender's.

        A match schedules a single delayed confirmed knock for the receiver;
        repeating the report never schedules another.

        Raises:
            KnockNotFoundError: Unknown or expired knock.
            GroupNotFoundError: The knock's group has since been deleted.
            NotMemberError: The receiver is no longer in the knock's group.
        """
        knock = self._lookup_open(knock_id)
        if knock is None:
            raise KnockNotFoundError(knock_id)
        if not self.membership.is_member(knock.group_id, receiver_identity):
            raise NotMemberError(knock.group_id, receiver_identity)
        if receiver_identity == knock.sender_identity:
            logger.info("Knock %s: ignoring report from its sender", knock_id)
            return False
        if not self.sessions.add_report(knock_id, receiver_identity):
            raise KnockNotFoundError(knock_id)

        match = receiver_address == knock.sender_address
        if not match:
            logger.info(
                "Knock %s: %s is on a different network",
                knock_id,
                short(receiver_identity),
            )
            return False

        if self.sessions.mark_confirmed(knock_id, receiver_identity):
            self.scheduler.call_later(
                self.confirm_delay_seconds,
                self._send_confirmed_knock,
                knock_id,
                receiver_identity,
            )
            logger.info(
                "Knock %s: address match for %s, confirmed knock in %.1fs",
                knock_id,
                short(receiver_identity),
                self.confirm_delay_seconds,
            )
        else:
            logger.info(
                "Knock %s: duplicate matching report from %s",
                knock_id,
                short(receiver_identity),
            )
        return True

    def expire(self, knock_id: str) -> None:
        """Deletes a session. Safe to call more than once."""
        if self.sessions.delete(knock_id):
            logger.info("Knock %s expired", knock_id)

    def open_knocks(self) -> int:
        return self.sessions.count()

    def shutdown(self) -> None:
        self.scheduler.shutdown()
        self._executor.shutdown(wait=False)

    def _lookup_open(self, knock_id: str) -> Optional[PendingKnock]:
        knock = self.sessions.get(knock_id)
        if knock is None:
            return None
        # The expiry timer may not have run yet.
        if knock.is_expired(self.clock()):
            self.expire(knock_id)
            return None
        return knock

    def _resolve_push_tokens(self, identities: set[str]) -> dict[str, str]:
        recipients: dict[str, str] = {}
        for identity in sorted(identities):
            token = self.db.get_push_token(identity)
            if token:
                recipients[identity] = token
            else:
                logger.info("Skipping %s: no registered device", short(identity))
        return recipients

    def _fan_out(
        self, recipients: dict[str, str], payload: PushPayload
    ) -> tuple[int, list[str]]:
        """Sends one push per recipient concurrently; returns (delivered, failed)."""
        futures = {
            self._executor.submit(self.push.send, token, payload): identity
            for identity, token in recipients.items()
        }
        done, not_done = concurrent.futures.wait(
            futures, timeout=self.push_timeout_seconds
        )

        delivered = 0
        failed: list[str] = []
        for future in done:
            identity = futures[future]
            try:
                result = future.result()
            except Exception:
                logger.exception("Push to %s raised", short(identity))
                failed.append(identity)
                continue
            if result.success:
                delivered += 1
            else:
                failed.append(identity)
        for future in not_done:
            logger.warning(
                "Push to %s still pending after %.1fs",
                short(futures[future]),
                self.push_timeout_seconds,
            )
            failed.append(futures[future])
        return delivered, sorted(failed)

    def _send_confirmed_knock(self, knock_id: str, receiver_identity: str) -> None:
        knock = self._lookup_open(knock_id)
        if knock is None:
            logger.info(
                "Knock %s expired before confirming %s; not sent",
                knock_id,
                short(receiver_identity),
            )
            return

        token = self.db.get_push_token(receiver_identity)
        if not token:
            logger.warning(
                "Knock %s: no device for %s at confirmation time",
                knock_id,
                short(receiver_identity),
            )
            return

        result = self.push.send(token, confirmed_knock_payload(knock.group_id))
        if result.success:
            logger.info(
                "Knock %s: confirmed knock delivered to %s",
                knock_id,
                short(receiver_identity),
            )
        else:
            logger.warning(
                "Knock %s: confirmed knock to %s failed: %s",
                knock_id,
                short(receiver_identity),
                result.error,
            )
