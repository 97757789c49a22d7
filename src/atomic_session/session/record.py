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
"""SessionRecord — reserved session attributes plus the user field mapping."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from bson import ObjectId

from atomic_session.session import identifier

# Keys the record owns in the stored document.
DOCUMENT_KEYS: frozenset[str] = frozenset({"_id", "created", "expires", "maxAge", "secret"})

# Public names on the session handle; a user field with one of these names
# would shadow an accessor.
ACCESSOR_KEYS: frozenset[str] = frozenset(
    {
        "id",
        "context",
        "record",
        "cookies",
        "loaded",
        "destroyed",
        "fields",
        "get",
        "set",
        "unset",
        "touch",
        "update",
        "increment",
        "multiply",
        "minimum",
        "maximum",
        "push",
        "pull",
        "add_to_set",
        "pop",
        "rename",
        "destroy",
        "regenerate",
        "csrf_token",
        "verify_csrf",
        "created_at",
        "expires_at",
        "max_age",
    }
)

RESERVED_KEYS: frozenset[str] = DOCUMENT_KEYS | ACCESSOR_KEYS


def _as_utc(value: datetime) -> datetime:
    # Motor returns naive datetimes unless the client is tz_aware.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


@dataclass
class SessionRecord:
    """In-memory mirror of one session document.

    Reserved attributes live on the dataclass; everything else the document
    holds lives in :attr:`fields`.

    Attributes:
        max_age: Lifetime in milliseconds, refreshed into ``expires_at`` on touch.
        id: Document identifier; ``None`` until the record is persisted.
        created_at: Creation time (UTC).
        expires_at: Expiry time (UTC), ``now + max_age`` after every touch.
        secret: CSRF signing material.
        fields: User payload keyed by flat field names.
        loaded: ``True`` once the record mirrors a stored document.
        destroyed: ``True`` after ``destroy()``; the record is then unusable.
    """

    max_age: int
    id: ObjectId | None = None
    created_at: datetime | None = None
    expires_at: datetime | None = None
    secret: str | None = None
    fields: dict[str, Any] = field(default_factory=dict)
    loaded: bool = False
    destroyed: bool = False

    @property
    def hex_id(self) -> str | None:
        return identifier.to_hex(self.id) if self.id is not None else None

    @property
    def persisted(self) -> bool:
        return self.id is not None and not self.destroyed

    def compute_expiry(self, now: datetime | None = None) -> datetime:
        now = now or datetime.now(UTC)
        return now + timedelta(milliseconds=self.max_age)

    def to_document(self) -> dict[str, Any]:
        """Serialize to the stored document shape."""
        document: dict[str, Any] = {
            "_id": self.id,
            "maxAge": self.max_age,
            "expires": self.expires_at,
            "created": self.created_at,
            "secret": self.secret,
        }
        document.update(self.fields)
        return document

    @classmethod
    def from_document(cls, document: dict[str, Any], default_max_age: int) -> SessionRecord:
        """Hydrate a record from a stored document."""
        record = cls(max_age=default_max_age, id=document["_id"], loaded=True)
        record.reconcile(document)
        if "created" in document and document["created"] is not None:
            record.created_at = _as_utc(document["created"])
        return record

    def reconcile(self, document: dict[str, Any]) -> None:
        """Fold a post-update document back into the record.

        Reserved attributes are refreshed from the document where present.
        ``fields`` is replaced by the document's remaining keys, so a key
        unset in the store disappears locally too.
        """
        if document.get("maxAge") is not None:
            self.max_age = int(document["maxAge"])
        if document.get("expires") is not None:
            self.expires_at = _as_utc(document["expires"])
        if document.get("secret") is not None:
            self.secret = document["secret"]

        self.fields = {k: v for k, v in document.items() if k not in DOCUMENT_KEYS}
