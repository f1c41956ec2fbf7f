"""
HTTP routes for the knock backend API.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from backend.config import Settings, get_settings
from backend.db import DbClient
from backend.dependencies import get_db_client, get_knock_registry
from backend.knocks import KnockRegistry
from backend.network import get_public_address
from backend.schemas import (
    CreateGroupRequest,
    GroupDetailResponse,
    GroupResponse,
    HealthResponse,
    JoinGroupRequest,
    RegisterDeviceRequest,
    ReportAddressRequest,
    ReportAddressResponse,
    SendKnockRequest,
    SendKnockResponse,
    StatusResponse,
)
from shared.utils import short

logger = logging.getLogger(__name__)

router = APIRouter()


def _request_address(request: Request, settings: Settings) -> str:
    return get_public_address(
        request.headers.get("x-forwarded-for"),
        request.client.host if request.client else None,
        trust_forwarded_for=settings.trust_forwarded_for,
    )


@router.get("/health", response_model=HealthResponse)
def health(registry: KnockRegistry = Depends(get_knock_registry)):
    return HealthResponse(status="ok", open_knocks=registry.open_knocks())


@router.post("/create-group", response_model=GroupResponse)
def create_group(
    payload: CreateGroupRequest,
    request: Request,
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    address = _request_address(request, settings)
    if payload.push_token:
        db.register_device(payload.identity, payload.push_token)
    group = db.create_group(
        payload.group_name,
        payload.identity,
        address,
        code_length=settings.group_code_length,
    )
    logger.info(
        "Group created: %s (%s), creator address %s", group.name, group.code, address
    )
    return GroupResponse(group_code=group.code, group_name=group.name)


@router.post("/join-group", response_model=GroupResponse)
def join_group(
    payload: JoinGroupRequest,
    request: Request,
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    address = _request_address(request, settings)
    group = db.add_member(payload.group_code, payload.identity, address)
    if payload.push_token:
        db.register_device(payload.identity, payload.push_token)
    logger.info(
        "%s joined group %s (address %s)", short(payload.identity), group.code, address
    )
    return GroupResponse(group_code=group.code, group_name=group.name)


@router.get("/groups/{group_code}", response_model=GroupDetailResponse)
def get_group(group_code: str, db: DbClient = Depends(get_db_client)):
    group = db.get_group(group_code)
    if not group:
        raise HTTPException(status_code=404, detail="Group not found")
    return GroupDetailResponse(
        group_code=group.code,
        group_name=group.name,
        members=sorted(group.members),
    )


@router.post("/register-device", response_model=StatusResponse)
def register_device(
    payload: RegisterDeviceRequest, db: DbClient = Depends(get_db_client)
):
    db.register_device(payload.identity, payload.push_token)
    return StatusResponse(status="ok")


@router.post("/send-knock", response_model=SendKnockResponse)
def send_knock(
    payload: SendKnockRequest,
    request: Request,
    registry: KnockRegistry = Depends(get_knock_registry),
    settings: Settings = Depends(get_settings),
):
    """
    Starts a knock. Receivers answer through /report-address.
    """
    address = _request_address(request, settings)
    attempt = registry.initiate_knock(payload.identity, payload.group_code, address)
    return SendKnockResponse(
        knock_id=attempt.knock_id,
        notified=attempt.notified,
        delivered=attempt.delivered,
        failed=len(attempt.failed),
    )


@router.post("/report-address", response_model=ReportAddressResponse)
def report_address(
    payload: ReportAddressRequest,
    request: Request,
    registry: KnockRegistry = Depends(get_knock_registry),
    settings: Settings = Depends(get_settings),
):
    address = _request_address(request, settings)
    match = registry.report_address(payload.identity, payload.knock_id, address)
    return ReportAddressResponse(knock_id=payload.knock_id, match=match)
