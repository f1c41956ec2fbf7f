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

# Knock protocol defaults (seconds)
KNOCK_SESSION_TTL_SECONDS = 20
CONFIRMED_KNOCK_DELAY_SECONDS = 2

# Request limits
IDENTITY_MAX_LENGTH = 256
PUSH_TOKEN_MAX_LENGTH = 4096
GROUP_NAME_MAX_LENGTH = 100
GROUP_CODE_MAX_LENGTH = 12
KNOCK_ID_MAX_LENGTH = 64

# Characters used for generated group codes
GROUP_CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"

# Identities and tokens are truncated to this length in logs
LOG_TOKEN_PREFIX_LENGTH = 10

# Notification payload types
KNOCK_ATTEMPT_TYPE = "knock-attempt"
CONFIRMED_KNOCK_TYPE = "confirmed-knock"

CONFIRMED_KNOCK_TITLE = "\U0001f514 Knock Knock!"
CONFIRMED_KNOCK_BODY = "Someone is at the door!"
