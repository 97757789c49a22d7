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
"""Atomic field commands: validation, batching, touch and reconciliation.

A :class:`SessionUpdate` collects operations synchronously. Awaiting it
hands them to the :class:`CommandDispatcher`, which folds them into as few
``find_one_and_update`` round trips as MongoDB allows (two operators may not
target the same path in one update) and adds a touch of ``expires`` to each.
"""

from __future__ import annotations

from collections.abc import Callable, Generator, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Generic, TypeVar

import structlog

from atomic_session.kernel.exceptions import (
    InvalidDurationException,
    InvalidSessionKeyException,
    NotPersistedException,
    SessionGoneException,
)
from atomic_session.session.duration import parse_duration
from atomic_session.session.ports.outbound import SessionStore
from atomic_session.session.record import RESERVED_KEYS, SessionRecord

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Reserved keys that ``set`` may write; they are never unset.
WRITABLE_RESERVED_KEYS: frozenset[str] = frozenset({"maxAge", "expires"})


@dataclass(frozen=True)
class Operation:
    """One MongoDB update operator applied to one field."""

    operator: str
    key: str
    value: Any = None

    @property
    def paths(self) -> tuple[str, ...]:
        if self.operator == "$rename":
            return (self.key, self.value)
        return (self.key,)


def validate_key(key: object, *, writable_reserved: bool = False) -> str:
    """Check that *key* can name a user field.

    Raises:
        InvalidSessionKeyException: The key is not a string, is empty, is
            dotted, starts with ``$`` or is reserved.
    """
    if not isinstance(key, str):
        raise InvalidSessionKeyException(key, "keys must be strings")
    if not key:
        raise InvalidSessionKeyException(key, "keys must not be empty")
    if "." in key:
        raise InvalidSessionKeyException(key, "nested keys are not supported")
    if key.startswith("$"):
        raise InvalidSessionKeyException(key, "keys must not start with '$'")
    if key in RESERVED_KEYS and not (writable_reserved and key in WRITABLE_RESERVED_KEYS):
        raise InvalidSessionKeyException(key, "reserved key")
    return key


def require_persisted(record: SessionRecord) -> None:
    if record.destroyed:
        raise NotPersistedException(
            "Session was destroyed; call regenerate() first.",
            code="SESSION_DESTROYED",
        )
    if record.id is None:
        raise NotPersistedException("Session not yet created.", code="SESSION_NOT_PERSISTED")


def coerce_expires(value: Any, now: datetime | None = None) -> datetime:
    """Interpret an explicit expiry.

    ``datetime`` values are absolute (naive ones are taken as UTC), ``int``
    values are epoch milliseconds, and ``timedelta`` or duration strings are
    relative to *now*.
    """
    now = now or datetime.now(UTC)
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, int) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000, tz=UTC)
    if isinstance(value, (str, timedelta)):
        return now + timedelta(milliseconds=parse_duration(value))
    raise InvalidDurationException(f"Invalid expires value: {value!r}", code="SESSION_EXPIRES")


def plan_batches(operations: Iterable[Operation]) -> list[list[Operation]]:
    """Split operations so that no two operations in a batch share a path."""
    batches: list[list[Operation]] = []
    current: list[Operation] = []
    seen: set[str] = set()
    for op in operations:
        if seen.intersection(op.paths):
            batches.append(current)
            current, seen = [], set()
        current.append(op)
        seen.update(op.paths)
    if current:
        batches.append(current)
    return batches


def build_update(batch: Iterable[Operation], expires: datetime) -> dict[str, dict[str, Any]]:
    """Merge a batch into one update document carrying the touch."""
    update: dict[str, dict[str, Any]] = {"$set": {"expires": expires}}
    for op in batch:
        if op.operator == "$set" and op.key == "expires":
            continue
        update.setdefault(op.operator, {})[op.key] = op.value
    return update


class CommandDispatcher:
    """Applies operations to a record's document and syncs the record.

    Args:
        store: The session store.
        on_touch: Called with the record before every store update so the
            identifier cookie can be rewritten with the refreshed expiry.
    """

    def __init__(self, store: SessionStore, on_touch: Callable[[SessionRecord], None]) -> None:
        self._store = store
        self._on_touch = on_touch

    async def dispatch(
        self,
        record: SessionRecord,
        operations: list[Operation],
        *,
        expires: datetime | None = None,
    ) -> SessionRecord:
        """Touch and mutate the stored document, then reconcile *record*.

        An empty operation list is a plain touch.

        Raises:
            NotPersistedException: The record has no stored document.
            SessionGoneException: The document vanished before the update.
        """
        require_persisted(record)
        assert record.id is not None

        for batch in plan_batches(operations) or [[]]:
            for op in batch:
                if op.operator == "$set" and op.key == "maxAge":
                    record.max_age = op.value
            record.expires_at = expires or record.compute_expiry()
            self._on_touch(record)

            update = build_update(batch, record.expires_at)
            logger.debug(
                "session_update",
                session_id=record.hex_id,
                operators=sorted(update),
            )
            document = await self._store.update(record.id, update)
            if document is None:
                record.loaded = False
                logger.warning("session_gone", session_id=record.hex_id)
                raise SessionGoneException(
                    "Session document no longer exists.",
                    code="SESSION_GONE",
                    context={"session_id": record.hex_id},
                )
            record.reconcile(document)
        return record


class SessionUpdate(Generic[T]):
    """Chainable list of field operations, executed when awaited.

    Every method validates its key immediately and returns the builder, so
    invalid keys fail before any store call::

        await session.update().set("cart", []).increment("visits").unset("flash")
    """

    def __init__(self, dispatcher: CommandDispatcher, record: SessionRecord, result: T) -> None:
        require_persisted(record)
        self._dispatcher = dispatcher
        self._record = record
        self._result = result
        self._operations: list[Operation] = []
        self._expires: datetime | None = None

    @property
    def operations(self) -> list[Operation]:
        return list(self._operations)

    def _add(self, operator: str, key: object, value: Any = None) -> SessionUpdate[T]:
        self._operations.append(Operation(operator, validate_key(key), value))
        return self

    def set(self, key: str, value: Any) -> SessionUpdate[T]:
        validate_key(key, writable_reserved=True)
        if key == "maxAge":
            value = parse_duration(value)
        elif key == "expires":
            value = coerce_expires(value)
            self._expires = value
        self._operations.append(Operation("$set", key, value))
        return self

    def unset(self, key: str) -> SessionUpdate[T]:
        return self._add("$unset", key, "")

    def increment(self, key: str, by: int | float = 1) -> SessionUpdate[T]:
        return self._add("$inc", key, by)

    def multiply(self, key: str, by: int | float) -> SessionUpdate[T]:
        return self._add("$mul", key, by)

    def minimum(self, key: str, value: Any) -> SessionUpdate[T]:
        return self._add("$min", key, value)

    def maximum(self, key: str, value: Any) -> SessionUpdate[T]:
        return self._add("$max", key, value)

    def push(self, key: str, value: Any) -> SessionUpdate[T]:
        return self._add("$push", key, value)

    def pull(self, key: str, value: Any) -> SessionUpdate[T]:
        return self._add("$pull", key, value)

    def add_to_set(self, key: str, value: Any) -> SessionUpdate[T]:
        return self._add("$addToSet", key, value)

    def pop(self, key: str, *, first: bool = False) -> SessionUpdate[T]:
        return self._add("$pop", key, -1 if first else 1)

    def rename(self, key: str, new_key: str) -> SessionUpdate[T]:
        validate_key(new_key)
        return self._add("$rename", key, new_key)

    async def execute(self) -> T:
        await self._dispatcher.dispatch(self._record, self._operations, expires=self._expires)
        return self._result

    def __await__(self) -> Generator[Any, None, T]:
        return self.execute().__await__()
