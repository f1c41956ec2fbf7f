"""
Push notification gateway for Firebase Cloud Messaging and in-memory testing.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from firebase_admin import exceptions, messaging

from shared.api import PushPayload, PushResult
from shared.utils import get_unique_id, short

logger = logging.getLogger(__name__)


class PushGateway(Protocol):
    """Single-recipient push delivery. Failures are returned, not raised."""

    def send(self, push_token: str, payload: PushPayload) -> PushResult:
        ...


@dataclass
class SentPush:
    push_token: str
    payload: PushPayload


@dataclass
class InMemoryPushGateway:
    """Test double recording every push; tokens in `failing_tokens` fail."""

    sent: list[SentPush] = field(default_factory=list)
    failing_tokens: set[str] = field(default_factory=set)

    def __post_init__(self):
        self._lock = threading.Lock()

    def send(self, push_token: str, payload: PushPayload) -> PushResult:
        if push_token in self.failing_tokens:
            return PushResult(success=False, error="simulated delivery failure")
        with self._lock:
            self.sent.append(SentPush(push_token=push_token, payload=payload))
        return PushResult(success=True, message_id=get_unique_id())

    def sent_of_type(self, payload_type: str) -> list[SentPush]:
        with self._lock:
            return [push for push in self.sent if push.payload.type == payload_type]

    def reset(self) -> None:
        with self._lock:
            self.sent.clear()
        self.failing_tokens.clear()


def build_message(push_token: str, payload: PushPayload) -> messaging.Message:
    """
    Silent payloads are data-only so the app can wake and report its address
    without showing anything to the user.
    """
    notification: Optional[messaging.Notification] = None
    if payload.is_silent:
        apns = messaging.APNSConfig(
            headers={"apns-priority": "5", "apns-push-type": "background"},
            payload=messaging.APNSPayload(aps=messaging.Aps(content_available=True)),
        )
    else:
        notification = messaging.Notification(title=payload.title, body=payload.body)
        apns = messaging.APNSConfig(headers={"apns-priority": "10"})

    return messaging.Message(
        token=push_token,
        data=payload.data,
        notification=notification,
        android=messaging.AndroidConfig(
            priority="high" if payload.high_priority else "normal"
        ),
        apns=apns,
    )


@dataclass
class FcmPushGateway:
    """Sends one FCM message per recipient via firebase_admin."""

    app: Any = None

    def send(self, push_token: str, payload: PushPayload) -> PushResult:
        message = build_message(push_token, payload)
        try:
            message_id = messaging.send(message, app=self.app)
        except (exceptions.FirebaseError, ValueError) as e:
            logger.warning(
                "FCM %s push failed for %s: %s", payload.type, short(push_token), e
            )
            return PushResult(success=False, error=str(e))
        return PushResult(success=True, message_id=message_id)
