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

# Cloud functions for the knock backend - groups, devices and the knock
# handshake.
#
# This file containing Python cloud functions must be named main.py.
# See https://cloud.google.com/run/docs/write-functions#python for more info.

# Standard library imports
from dataclasses import asdict, dataclass

# Third-party library imports
from firebase_admin import initialize_app
from firebase_functions import https_fn, logger, options

# Local application imports
from backend.config import get_settings
from backend.dependencies import get_db_client, get_knock_registry
from backend.errors import (
    KnockError,
    NoRecipientsError,
    NotFoundError,
    NotMemberError,
)
from backend.network import get_public_address
from shared.constants import (
    GROUP_CODE_MAX_LENGTH,
    GROUP_NAME_MAX_LENGTH,
    IDENTITY_MAX_LENGTH,
    KNOCK_ID_MAX_LENGTH,
    PUSH_TOKEN_MAX_LENGTH,
)
from shared.json_utils import convert_keys
from shared.utils import short

initialize_app()


@dataclass
class GroupResult:
    group_code: str
    group_name: str


@dataclass
class RegisterDeviceResult:
    status: str


@dataclass
class SendKnockResult:
    knock_id: str
    notified: int
    delivered: int
    failed: int


@dataclass
class ReportKnockAddressResult:
    knock_id: str
    match: bool


def _request_data(req: https_fn.CallableRequest) -> dict:
    return convert_keys(req.data or {}, "camel_to_snake")


def _require_param(
    data: dict, name: str, max_length: int, document_id: bool = False
) -> str:
    value = data.get(name)
    if not value or not isinstance(value, str):
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
            f"Must specify {name} parameter.",
        )
    if len(value) > max_length:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
            f"Incorrect {name} length.",
        )
    if document_id and "/" in value:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
            f"Invalid {name}.",
        )
    return value


def _optional_push_token(data: dict) -> str | None:
    if not data.get("push_token"):
        return None
    return _require_param(data, "push_token", PUSH_TOKEN_MAX_LENGTH)


def _caller_address(req: https_fn.CallableRequest) -> str:
    """The caller's public address as seen through the hosting proxy."""
    raw_request = req.raw_request
    return get_public_address(
        raw_request.headers.get("X-Forwarded-For"),
        raw_request.remote_addr,
        trust_forwarded_for=get_settings().trust_forwarded_for,
    )


def _to_https_error(error: KnockError) -> https_fn.HttpsError:
    if isinstance(error, NotFoundError):
        code = https_fn.FunctionsErrorCode.NOT_FOUND
    elif isinstance(error, NotMemberError):
        code = https_fn.FunctionsErrorCode.PERMISSION_DENIED
    elif isinstance(error, NoRecipientsError):
        code = https_fn.FunctionsErrorCode.FAILED_PRECONDITION
    else:
        code = https_fn.FunctionsErrorCode.INTERNAL
    return https_fn.HttpsError(code, str(error))


@https_fn.on_call(memory=options.MemoryOption.MB_256)
def create_group(req: https_fn.CallableRequest) -> dict:
    """
    Creates a group with the caller as its first member.

    Args:
        req (https_fn.CallableRequest): The request, containing identity,
            groupName and an optional pushToken.

    Returns:
        A dictionary representation of the GroupResult object.
    """
    data = _request_data(req)
    identity = _require_param(data, "identity", IDENTITY_MAX_LENGTH, document_id=True)
    group_name = _require_param(data, "group_name", GROUP_NAME_MAX_LENGTH)
    push_token = _optional_push_token(data)
    address = _caller_address(req)

    db = get_db_client()
    if push_token:
        db.register_device(identity, push_token)
    group = db.create_group(
        group_name,
        identity,
        address,
        code_length=get_settings().group_code_length,
    )
    logger.info(f"Group created: {group.name} ({group.code}) - creator {address}")

    result = GroupResult(group_code=group.code, group_name=group.name)
    return convert_keys(asdict(result), "snake_to_camel")


@https_fn.on_call(memory=options.MemoryOption.MB_256)
def join_group(req: https_fn.CallableRequest) -> dict:
    """
    Adds the caller to an existing group.

    Returns:
        A dictionary representation of the GroupResult object.
    """
    data = _request_data(req)
    identity = _require_param(data, "identity", IDENTITY_MAX_LENGTH, document_id=True)
    group_code = _require_param(
        data, "group_code", GROUP_CODE_MAX_LENGTH, document_id=True
    )
    push_token = _optional_push_token(data)
    address = _caller_address(req)

    db = get_db_client()
    try:
        group = db.add_member(group_code, identity, address)
    except KnockError as e:
        raise _to_https_error(e)
    if push_token:
        db.register_device(identity, push_token)
    logger.info(f"{short(identity)} joined group {group.code} ({address})")

    result = GroupResult(group_code=group.code, group_name=group.name)
    return convert_keys(asdict(result), "snake_to_camel")


@https_fn.on_call(memory=options.MemoryOption.MB_256)
def register_device(req: https_fn.CallableRequest) -> dict:
    data = _request_data(req)
    identity = _require_param(data, "identity", IDENTITY_MAX_LENGTH, document_id=True)
    push_token = _require_param(data, "push_token", PUSH_TOKEN_MAX_LENGTH)

    get_db_client().register_device(identity, push_token)

    result = RegisterDeviceResult(status="success")
    return convert_keys(asdict(result), "snake_to_camel")


@https_fn.on_call(memory=options.MemoryOption.MB_512)
def send_knock(req: https_fn.CallableRequest) -> dict:
    """
    Starts a knock: every other group member is asked to report its address.

    Args:
        req (https_fn.CallableRequest): The request, containing identity and
            groupCode.

    Returns:
        A dictionary representation of the SendKnockResult object.
    """
    data = _request_data(req)
    identity = _require_param(data, "identity", IDENTITY_MAX_LENGTH, document_id=True)
    group_code = _require_param(
        data, "group_code", GROUP_CODE_MAX_LENGTH, document_id=True
    )
    address = _caller_address(req)
    logger.info(f"Knock attempt: {short(identity)} ({address}) to group {group_code}")

    try:
        attempt = get_knock_registry().initiate_knock(identity, group_code, address)
    except KnockError as e:
        raise _to_https_error(e)

    result = SendKnockResult(
        knock_id=attempt.knock_id,
        notified=attempt.notified,
        delivered=attempt.delivered,
        failed=len(attempt.failed),
    )
    return convert_keys(asdict(result), "snake_to_camel")


@https_fn.on_call(memory=options.MemoryOption.MB_256)
def report_knock_address(req: https_fn.CallableRequest) -> dict:
    """
    Called by a receiver's device after a knock-attempt push.

    Returns:
        A dictionary representation of the ReportKnockAddressResult object.
    """
    data = _request_data(req)
    identity = _require_param(data, "identity", IDENTITY_MAX_LENGTH)
    knock_id = _require_param(data, "knock_id", KNOCK_ID_MAX_LENGTH)
    address = _caller_address(req)

    try:
        match = get_knock_registry().report_address(identity, knock_id, address)
    except KnockError as e:
        raise _to_https_error(e)

    result = ReportKnockAddressResult(knock_id=knock_id, match=match)
    return convert_keys(asdict(result), "snake_to_camel")
