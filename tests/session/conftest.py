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
"""Shared fixtures for session tests: a fake cookie jar and a counting store."""

from __future__ import annotations

import asyncio
from collections import Counter
from typing import Any

import pytest
from bson import ObjectId

from atomic_session.session.adapters.memory import InMemorySessionStore
from atomic_session.session.coordinator import RequestSession
from atomic_session.session.manager import SessionManager


class FakeCookieJar:
    """CookieJar double recording every ``set`` call."""

    def __init__(self, incoming: dict[str, str] | None = None) -> None:
        self.incoming = dict(incoming or {})
        self.calls: list[dict[str, Any]] = []

    def get(self, name: str, *, signed: bool = False) -> str | None:
        return self.incoming.get(name)

    def set(self, name: str, value: str, **options: Any) -> None:
        self.calls.append({"name": name, "value": value, **options})

    @property
    def last(self) -> dict[str, Any]:
        return self.calls[-1]


class CountingStore(InMemorySessionStore):
    """InMemorySessionStore that counts calls and can slow down reads."""

    def __init__(self, read_delay: float = 0.0) -> None:
        super().__init__()
        self.calls: Counter[str] = Counter()
        self.updates: list[dict[str, Any]] = []
        self.read_delay = read_delay

    async def find_one(self, session_id: ObjectId) -> dict[str, Any] | None:
        self.calls["find_one"] += 1
        if self.read_delay:
            await asyncio.sleep(self.read_delay)
        return await super().find_one(session_id)

    async def insert(self, document: dict[str, Any]) -> None:
        self.calls["insert"] += 1
        if self.read_delay:
            await asyncio.sleep(self.read_delay)
        await super().insert(document)

    async def update(self, session_id: ObjectId, update: dict[str, Any]) -> dict[str, Any] | None:
        self.calls["update"] += 1
        self.updates.append(update)
        return await super().update(session_id, update)

    async def remove(self, session_id: ObjectId) -> None:
        self.calls["remove"] += 1
        await super().remove(session_id)

    @property
    def documents(self) -> dict[ObjectId, dict[str, Any]]:
        return self._documents


@pytest.fixture
def store() -> CountingStore:
    return CountingStore()


@pytest.fixture
def manager(store: CountingStore) -> SessionManager:
    return SessionManager(store, signed=False)


@pytest.fixture
def cookies() -> FakeCookieJar:
    return FakeCookieJar()


@pytest.fixture
def context(manager: SessionManager, cookies: FakeCookieJar) -> RequestSession:
    return manager.for_request(cookies)


@pytest.fixture
def slow_store() -> CountingStore:
    return CountingStore(read_delay=0.01)


@pytest.fixture
def make_cookies() -> type[FakeCookieJar]:
    return FakeCookieJar
