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
"""In-memory session store with MongoDB-style update operators."""

from __future__ import annotations

import asyncio
import copy
from datetime import UTC, datetime
from typing import Any

from bson import ObjectId

_MISSING = object()


def _apply(document: dict[str, Any], update: dict[str, dict[str, Any]]) -> None:
    for operator, fields in update.items():
        for key, value in fields.items():
            current = document.get(key, _MISSING)
            if operator == "$set":
                document[key] = copy.deepcopy(value)
            elif operator == "$unset":
                document.pop(key, None)
            elif operator in ("$inc", "$mul"):
                base = 0 if current is _MISSING else current
                if not isinstance(base, (int, float)) or isinstance(base, bool):
                    raise TypeError(f"Cannot apply {operator} to non-numeric field '{key}'")
                document[key] = base + value if operator == "$inc" else base * value
            elif operator in ("$min", "$max"):
                if current is _MISSING:
                    document[key] = value
                elif operator == "$min":
                    document[key] = min(current, value)
                else:
                    document[key] = max(current, value)
            elif operator in ("$push", "$addToSet"):
                items = [] if current is _MISSING else current
                if not isinstance(items, list):
                    raise TypeError(f"Cannot apply {operator} to non-array field '{key}'")
                if operator == "$push" or value not in items:
                    items = [*items, copy.deepcopy(value)]
                document[key] = items
            elif operator == "$pull":
                if isinstance(current, list):
                    document[key] = [item for item in current if item != value]
            elif operator == "$pop":
                if isinstance(current, list) and current:
                    document[key] = current[1:] if value == -1 else current[:-1]
            elif operator == "$rename":
                if current is not _MISSING:
                    document[value] = document.pop(key)
            else:
                raise ValueError(f"Unsupported update operator: {operator}")


class InMemorySessionStore:
    """Session store keeping documents in a dict, guarded by an asyncio.Lock.

    Documents whose TTL field lies in the past read as absent, mirroring a
    MongoDB TTL index. Suitable for development, tests and single-process
    applications.
    """

    def __init__(self) -> None:
        self._documents: dict[ObjectId, dict[str, Any]] = {}
        self._lock = asyncio.Lock()
        self._ttl_field: str | None = None

    def _live(self, session_id: ObjectId) -> dict[str, Any] | None:
        document = self._documents.get(session_id)
        if document is None:
            return None
        if self._ttl_field is not None:
            expires = document.get(self._ttl_field)
            if isinstance(expires, datetime):
                if expires.tzinfo is None:
                    expires = expires.replace(tzinfo=UTC)
                if expires <= datetime.now(UTC):
                    del self._documents[session_id]
                    return None
        return document

    async def find_one(self, session_id: ObjectId) -> dict[str, Any] | None:
        async with self._lock:
            document = self._live(session_id)
            return copy.deepcopy(document) if document is not None else None

    async def insert(self, document: dict[str, Any]) -> None:
        async with self._lock:
            if document["_id"] in self._documents:
                raise KeyError(f"Duplicate session id {document['_id']}")
            self._documents[document["_id"]] = copy.deepcopy(document)

    async def update(self, session_id: ObjectId, update: dict[str, Any]) -> dict[str, Any] | None:
        async with self._lock:
            document = self._live(session_id)
            if document is None:
                return None
            _apply(document, update)
            return copy.deepcopy(document)

    async def remove(self, session_id: ObjectId) -> None:
        async with self._lock:
            self._documents.pop(session_id, None)

    async def ensure_ttl_index(self, field: str = "expires", expire_after_seconds: int = 0) -> None:
        self._ttl_field = field
