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

import re
from typing import Any, Literal

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _camel_to_snake(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def _snake_to_camel(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def convert_keys(
    data: Any,
    direction: Literal["camel_to_snake", "snake_to_camel"],
    skip_keys_of: tuple[str, ...] = (),
) -> Any:
    """
    Recursively converts dictionary keys between camelCase and snake_case.

    Args:
        data: A dict, list or scalar value.
        direction: Either "camel_to_snake" or "snake_to_camel".
        skip_keys_of: Names of fields whose value is a mapping keyed by
            opaque identifiers (e.g. group members); the keys of those
            mappings are left untouched while their values are converted.

    Returns:
        A copy of `data` with converted keys.
    """
    if direction == "camel_to_snake":
        convert = _camel_to_snake
    elif direction == "snake_to_camel":
        convert = _snake_to_camel
    else:
        raise ValueError(f"Unknown direction: {direction}")

    if isinstance(data, dict):
        converted = {}
        for key, value in data.items():
            new_key = convert(key) if isinstance(key, str) else key
            if new_key in skip_keys_of or key in skip_keys_of:
                if isinstance(value, dict):
                    converted[new_key] = {
                        k: convert_keys(v, direction, skip_keys_of)
                        for k, v in value.items()
                    }
                    continue
            converted[new_key] = convert_keys(value, direction, skip_keys_of)
        return converted
    if isinstance(data, list):
        return [convert_keys(item, direction, skip_keys_of) for item in data]
    return data
