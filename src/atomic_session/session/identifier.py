# Copyright 2026 Firefly Software Solutions Inc.
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
"""Session identifier codec — 24-character hex BSON ObjectIds."""

from __future__ import annotations

import re

from bson import ObjectId

_HEX_ID_RE = re.compile(r"^[0-9a-f]{24}$", re.IGNORECASE)


def is_valid(candidate: object) -> bool:
    """Return ``True`` iff *candidate* is exactly 24 hexadecimal characters."""
    return isinstance(candidate, str) and _HEX_ID_RE.fullmatch(candidate) is not None


def generate() -> ObjectId:
    """Allocate a new globally unique identifier."""
    return ObjectId()


def parse(candidate: object) -> ObjectId | None:
    """Parse a cookie value into an ObjectId, or ``None`` when malformed."""
    if not is_valid(candidate):
        return None
    return ObjectId(candidate)  # type: ignore[arg-type]


def to_hex(oid: ObjectId) -> str:
    return str(oid)
