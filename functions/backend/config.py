"""
Configuration and settings for the knock backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.constants import CONFIRMED_KNOCK_DELAY_SECONDS, KNOCK_SESSION_TTL_SECONDS


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service and callables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="KNOCK_",
        extra="ignore",
    )

    api_prefix: str = Field(default="/api")

    # Knock protocol timing
    knock_ttl_seconds: float = Field(default=KNOCK_SESSION_TTL_SECONDS, gt=0)
    confirm_delay_seconds: float = Field(
        default=CONFIRMED_KNOCK_DELAY_SECONDS, ge=0
    )

    # Push fan-out
    push_fanout_workers: int = Field(default=8, ge=1)
    push_timeout_seconds: float = Field(default=10.0, gt=0)

    # Groups
    group_code_length: int = Field(default=6, ge=4, le=12)

    # Only enable behind a proxy that overwrites X-Forwarded-For.
    trust_forwarded_for: bool = Field(default=True)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    # Firebase (Firestore + Cloud Messaging)
    firebase_project_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "KNOCK_FIREBASE_PROJECT_ID", "GOOGLE_CLOUD_PROJECT"
        ),
    )
    firebase_credentials_path: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "KNOCK_FIREBASE_CREDENTIALS_PATH", "GOOGLE_APPLICATION_CREDENTIALS"
        ),
    )

    # Shared session store (Redis)
    redis_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("KNOCK_REDIS_URL", "REDIS_URL")
    )
    redis_key_prefix: str = Field(default="knock:sessions")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
