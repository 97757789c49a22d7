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
"""RequestSession — resolves the session once per request.

The slot holding the session moves through three states: nothing started,
a shared in-flight task, or a resolved :class:`Session`. Only the first
caller starts the load; every other caller awaits the same task.
"""

from __future__ import annotations

import asyncio
import enum
from collections.abc import Awaitable, Callable, Generator
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog

from atomic_session.session import identifier
from atomic_session.session.commands import CommandDispatcher
from atomic_session.session.ports.outbound import CookieJar
from atomic_session.session.record import SessionRecord
from atomic_session.session.session import Session

if TYPE_CHECKING:
    from atomic_session.security.csrf import CsrfBinder
    from atomic_session.session.manager import SessionManager

logger = structlog.get_logger(__name__)


def _short(session_id: str | None) -> str | None:
    return f"{session_id[:8]}..." if session_id else session_id


class SlotState(enum.Enum):
    NOT_STARTED = "not_started"
    IN_FLIGHT = "in_flight"
    RESOLVED = "resolved"


class RequestSession:
    """Per-request session context.

    Await it (or call :meth:`resolve`) to get the :class:`Session`::

        session = await request.state.session

    Args:
        manager: The configured :class:`SessionManager`.
        cookies: The request's cookie jar.
    """

    def __init__(self, manager: SessionManager, cookies: CookieJar) -> None:
        self.manager = manager
        self.cookies = cookies
        self._session: Session | None = None
        self._task: asyncio.Future[Session] | None = None
        self._dispatcher: CommandDispatcher | None = None

    @property
    def state(self) -> SlotState:
        if self._task is not None:
            return SlotState.IN_FLIGHT
        if self._session is not None:
            return SlotState.RESOLVED
        return SlotState.NOT_STARTED

    @property
    def current(self) -> Session | None:
        """The resolved session, without triggering a load."""
        return self._session

    @property
    def dispatcher(self) -> CommandDispatcher:
        if self._dispatcher is None:
            self._dispatcher = CommandDispatcher(self.manager.store, self._write_cookie)
        return self._dispatcher

    @property
    def csrf(self) -> CsrfBinder:
        return self.manager.csrf

    def __await__(self) -> Generator[Any, None, Session]:
        return self.resolve().__await__()

    async def resolve(self) -> Session:
        """Return this request's session, loading or creating it at most once."""
        if self._task is not None:
            return await asyncio.shield(self._task)
        if self._session is not None:
            return self._session
        return await self._single_flight(self._load)

    async def _single_flight(self, factory: Callable[[], Awaitable[Session]]) -> Session:
        task = asyncio.ensure_future(factory())
        self._task = task
        task.add_done_callback(self._settle)
        return await asyncio.shield(task)

    def _settle(self, task: asyncio.Future[Session]) -> None:
        # Runs on success, failure and cancellation alike.
        if self._task is task:
            self._task = None
        if not task.cancelled():
            task.exception()

    async def _load(self) -> Session:
        manager = self.manager
        raw_id = self.cookies.get(manager.key, signed=manager.signed)
        session_id = identifier.parse(raw_id)
        if session_id is None:
            return await self._create()

        document = await manager.store.find_one(session_id)
        if document is None:
            logger.info("session_not_found", session_id=_short(raw_id))
            return await self._create()

        record = SessionRecord.from_document(document, manager.max_age)
        logger.debug("session_loaded", session_id=_short(record.hex_id))
        return self._attach(record)

    async def _create(self) -> Session:
        manager = self.manager
        now = datetime.now(UTC)
        record = SessionRecord(
            max_age=manager.max_age,
            id=identifier.generate(),
            created_at=now,
            secret=manager.csrf.tokens.create_secret(),
        )
        record.expires_at = record.compute_expiry(now)
        self._write_cookie(record)
        await manager.store.insert(record.to_document())
        record.loaded = True
        logger.info("session_created", session_id=_short(record.hex_id))
        return self._attach(record)

    def _attach(self, record: SessionRecord) -> Session:
        session = Session(record, self)
        self._session = session
        return session

    def _write_cookie(self, record: SessionRecord) -> None:
        assert record.hex_id is not None
        manager = self.manager
        self.cookies.set(
            manager.key,
            record.hex_id,
            max_age=record.max_age,
            http_only=manager.http_only,
            signed=manager.signed,
            overwrite=manager.overwrite,
        )

    def _clear_cookie(self) -> None:
        manager = self.manager
        self.cookies.set(
            manager.key,
            "",
            max_age=0,
            http_only=manager.http_only,
            signed=manager.signed,
            overwrite=manager.overwrite,
        )

    async def destroy(self, session: Session | None = None) -> None:
        """Clear the cookie, detach the session and delete its document.

        A session that was never persisted only loses its cookie.
        """
        if session is None:
            session = self._session
        if session is None or session is self._session:
            self._session = None
        self._clear_cookie()
        if session is None:
            return

        record = session.record
        persisted = record.persisted
        record.destroyed = True
        record.loaded = False
        if persisted:
            assert record.id is not None
            await self.manager.store.remove(record.id)
            logger.info("session_destroyed", session_id=_short(record.hex_id))

    async def regenerate(self, session: Session | None = None) -> Session:
        """Destroy the current session and create a new one for this request."""
        if session is None:
            session = self._session
        old_id = session.id if session is not None else None
        if session is not None and not session.destroyed:
            await self.destroy(session)
        created = await self._single_flight(self._create)
        logger.info("session_regenerated", previous=_short(old_id), session_id=_short(created.id))
        return created
