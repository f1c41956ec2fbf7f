"""
Pydantic schemas for the knock FastAPI backend.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field

from shared.constants import (
    GROUP_CODE_MAX_LENGTH,
    GROUP_NAME_MAX_LENGTH,
    IDENTITY_MAX_LENGTH,
    KNOCK_ID_MAX_LENGTH,
    PUSH_TOKEN_MAX_LENGTH,
)

# Identities and group codes are used as Firestore document ids.
DOCUMENT_ID_PATTERN = r"^[^/]+$"


class CreateGroupRequest(BaseModel):
    identity: str = Field(
        ..., min_length=1, max_length=IDENTITY_MAX_LENGTH, pattern=DOCUMENT_ID_PATTERN
    )
    group_name: str = Field(..., min_length=1, max_length=GROUP_NAME_MAX_LENGTH)
    push_token: Optional[str] = Field(default=None, max_length=PUSH_TOKEN_MAX_LENGTH)


class JoinGroupRequest(BaseModel):
    identity: str = Field(
        ..., min_length=1, max_length=IDENTITY_MAX_LENGTH, pattern=DOCUMENT_ID_PATTERN
    )
    group_code: str = Field(
        ..., min_length=1, max_length=GROUP_CODE_MAX_LENGTH, pattern=DOCUMENT_ID_PATTERN
    )
    push_token: Optional[str] = Field(default=None, max_length=PUSH_TOKEN_MAX_LENGTH)


class GroupResponse(BaseModel):
    group_code: str
    group_name: str


class GroupDetailResponse(GroupResponse):
    members: list[str]


class RegisterDeviceRequest(BaseModel):
    identity: str = Field(
        ..., min_length=1, max_length=IDENTITY_MAX_LENGTH, pattern=DOCUMENT_ID_PATTERN
    )
    push_token: str = Field(..., min_length=1, max_length=PUSH_TOKEN_MAX_LENGTH)


class StatusResponse(BaseModel):
    status: Literal["ok"]


class SendKnockRequest(BaseModel):
    identity: str = Field(
        ..., min_length=1, max_length=IDENTITY_MAX_LENGTH, pattern=DOCUMENT_ID_PATTERN
    )
    group_code: str = Field(
        ..., min_length=1, max_length=GROUP_CODE_MAX_LENGTH, pattern=DOCUMENT_ID_PATTERN
    )


class SendKnockResponse(BaseModel):
    knock_id: str
    notified: int
    delivered: int
    failed: int


class ReportAddressRequest(BaseModel):
    identity: str = Field(..., min_length=1, max_length=IDENTITY_MAX_LENGTH)
    knock_id: str = Field(..., min_length=1, max_length=KNOCK_ID_MAX_LENGTH)


class ReportAddressResponse(BaseModel):
    knock_id: str
    match: bool


class HealthResponse(BaseModel):
    status: Literal["ok"]
    open_knocks: int
