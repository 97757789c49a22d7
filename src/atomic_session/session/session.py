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
"""Session — the handle request handlers work with."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from datetime import datetime
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from atomic_session.session.commands import Operation, SessionUpdate
from atomic_session.session.record import SessionRecord

if TYPE_CHECKING:
    from atomic_session.session.coordinator import RequestSession
    from atomic_session.session.ports.outbound import CookieJar


class Session:
    """A resolved session bound to one request.

    Fields are read like a mapping (``session["cart"]``,
    ``session.get("cart")``). Writes go straight to the store as atomic
    updates; each one also refreshes the expiry and the cookie.

    Attributes:
        id: Hex identifier, or ``None`` before the first insert.
        context: The owning :class:`RequestSession`.
    """

    def __init__(self, record: SessionRecord, context: RequestSession) -> None:
        self._record = record
        self.context = context

    @property
    def record(self) -> SessionRecord:
        return self._record

    @property
    def cookies(self) -> CookieJar:
        return self.context.cookies

    @property
    def id(self) -> str | None:
        return self._record.hex_id

    @property
    def created_at(self) -> datetime | None:
        return self._record.created_at

    @property
    def expires_at(self) -> datetime | None:
        return self._record.expires_at

    @property
    def max_age(self) -> int:
        """Lifetime in milliseconds."""
        return self._record.max_age

    @property
    def secret(self) -> str | None:
        return self._record.secret

    @property
    def loaded(self) -> bool:
        return self._record.loaded

    @property
    def destroyed(self) -> bool:
        return self._record.destroyed

    @property
    def fields(self) -> Mapping[str, Any]:
        """Read-only view of the user fields."""
        return MappingProxyType(self._record.fields)

    def __getitem__(self, key: str) -> Any:
        return self._record.fields[key]

    def __contains__(self, key: object) -> bool:
        return key in self._record.fields

    def __iter__(self) -> Iterator[str]:
        return iter(self._record.fields)

    def __len__(self) -> int:
        return len(self._record.fields)

    def get(self, key: str, default: Any = None) -> Any:
        return self._record.fields.get(key, default)

    def __repr__(self) -> str:
        return f"Session(id={self.id!r}, fields={sorted(self._record.fields)!r})"

    # -- atomic commands ---------------------------------------------------

    def update(self) -> SessionUpdate[Session]:
        """Start a chain of operations sent as one update when awaited."""
        return SessionUpdate(self.context.dispatcher, self._record, self)

    async def set(self, key: str, value: Any) -> Session:
        return await self.update().set(key, value)

    async def unset(self, key: str) -> Session:
        return await self.update().unset(key)

    async def increment(self, key: str, by: int | float = 1) -> Session:
        return await self.update().increment(key, by)

    async def multiply(self, key: str, by: int | float) -> Session:
        return await self.update().multiply(key, by)

    async def minimum(self, key: str, value: Any) -> Session:
        return await self.update().minimum(key, value)

    async def maximum(self, key: str, value: Any) -> Session:
        return await self.update().maximum(key, value)

    async def push(self, key: str, value: Any) -> Session:
        return await self.update().push(key, value)

    async def pull(self, key: str, value: Any) -> Session:
        return await self.update().pull(key, value)

    async def add_to_set(self, key: str, value: Any) -> Session:
        return await self.update().add_to_set(key, value)

    async def pop(self, key: str, *, first: bool = False) -> Session:
        return await self.update().pop(key, first=first)

    async def rename(self, key: str, new_key: str) -> Session:
        return await self.update().rename(key, new_key)

    async def touch(self) -> Session:
        """Refresh the expiry in the store and in the cookie."""
        return await self.update()

    # -- lifecycle ---------------------------------------------------------

    async def destroy(self) -> None:
        await self.context.destroy(self)

    async def regenerate(self) -> Session:
        """Destroy this session and return a brand-new one for the request."""
        return await self.context.regenerate(self)

    # -- CSRF --------------------------------------------------------------

    async def csrf_token(self) -> str:
        """Issue a CSRF token bound to this session's secret.

        Documents written without a secret get one assigned atomically.
        """
        if self._record.secret is None:
            secret = self.context.csrf.tokens.create_secret()
            await self.context.dispatcher.dispatch(self._record, [Operation("$set", "secret", secret)])
        assert self._record.secret is not None
        return self.context.csrf.create_token(self._record.secret)

    def verify_csrf(self, token: str | None) -> bool:
        return self.context.csrf.verify_token(self._record.secret, token)
