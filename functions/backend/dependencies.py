"""
Dependency wiring for the FastAPI app and the Cloud Functions entry point.
"""

from __future__ import annotations

import logging

import firebase_admin
from firebase_admin import credentials, firestore

from backend.config import Settings, get_settings
from backend.db import DbClient, FirestoreDbClient, InMemoryDbClient
from backend.knocks import KnockRegistry
from backend.push import FcmPushGateway, InMemoryPushGateway, PushGateway
from backend.sessions import InMemorySessionStore, RedisSessionStore, SessionStore

logger = logging.getLogger(__name__)

_db_client: DbClient | None = None
_push_gateway: PushGateway | None = None
_session_store: SessionStore | None = None
_knock_registry: KnockRegistry | None = None


def _use_in_memory(settings: Settings) -> bool:
    return settings.use_in_memory_backends or not settings.firebase_project_id


def _get_firebase_app(settings: Settings) -> firebase_admin.App:
    try:
        return firebase_admin.get_app()
    except ValueError:
        cred = None
        if settings.firebase_credentials_path:
            cred = credentials.Certificate(settings.firebase_credentials_path)
        return firebase_admin.initialize_app(
            cred, {"projectId": settings.firebase_project_id}
        )


def get_db_client() -> DbClient:
    """
    Return a singleton document store client.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if _use_in_memory(settings):
        _db_client = InMemoryDbClient()
    else:
        app = _get_firebase_app(settings)
        _db_client = FirestoreDbClient(firestore.client(app))
    return _db_client


def get_push_gateway() -> PushGateway:
    global _push_gateway
    if _push_gateway:
        return _push_gateway

    settings = get_settings()
    if _use_in_memory(settings):
        _push_gateway = InMemoryPushGateway()
    else:
        _push_gateway = FcmPushGateway(app=_get_firebase_app(settings))
    return _push_gateway


def get_session_store() -> SessionStore:
    """
    Return the process-wide session store; Redis when several processes must
    share knock sessions.
    """
    global _session_store
    if _session_store:
        return _session_store

    settings = get_settings()
    if settings.redis_url:
        _session_store = RedisSessionStore(
            url=settings.redis_url, key_prefix=settings.redis_key_prefix
        )
    else:
        _session_store = InMemorySessionStore()
    return _session_store


def get_knock_registry() -> KnockRegistry:
    global _knock_registry
    if _knock_registry:
        return _knock_registry

    settings = get_settings()
    _knock_registry = KnockRegistry(
        db=get_db_client(),
        sessions=get_session_store(),
        push=get_push_gateway(),
        ttl_seconds=settings.knock_ttl_seconds,
        confirm_delay_seconds=settings.confirm_delay_seconds,
        fanout_workers=settings.push_fanout_workers,
        push_timeout_seconds=settings.push_timeout_seconds,
    )
    logger.info(
        "Knock registry started (ttl=%.1fs, confirm delay=%.1fs, sessions=%s)",
        settings.knock_ttl_seconds,
        settings.confirm_delay_seconds,
        type(_knock_registry.sessions).__name__,
    )
    return _knock_registry


def shutdown_knock_registry() -> None:
    """Cancels pending timers. Open sessions are discarded with the process."""
    global _knock_registry
    if _knock_registry:
        _knock_registry.shutdown()
        _knock_registry = None
