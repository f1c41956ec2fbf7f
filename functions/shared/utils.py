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

import secrets
import time
import uuid
from datetime import datetime, timezone

from shared.constants import GROUP_CODE_ALPHABET, LOG_TOKEN_PREFIX_LENGTH


def get_unique_id() -> str:
    """Returns a millisecond-timestamp-prefixed unique id."""
    return f"{int(time.time() * 1000):x}{uuid.uuid4().hex[:12]}"


def generate_group_code(length: int = 6) -> str:
    return "".join(secrets.choice(GROUP_CODE_ALPHABET) for _ in range(length))


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def short(value: str | None) -> str:
    """Truncates identities and push tokens for logging."""
    if not value:
        return "<none>"
    if len(value) <= LOG_TOKEN_PREFIX_LENGTH:
        return value
    return value[:LOG_TOKEN_PREFIX_LENGTH] + "..."
