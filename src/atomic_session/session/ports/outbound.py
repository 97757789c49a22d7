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
"""Outbound ports: session store, cookie jar and CSRF token service."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from bson import ObjectId


@runtime_checkable
class SessionStore(Protocol):
    """Document store holding one document per session.

    ``update`` receives a MongoDB-style update document (``$set``,
    ``$unset``, ``$inc``, ...) and returns the post-update document, or
    ``None`` when no document has the identifier.
    """

    async def find_one(self, session_id: ObjectId) -> dict[str, Any] | None: ...

    async def insert(self, document: dict[str, Any]) -> None: ...

    async def update(self, session_id: ObjectId, update: dict[str, Any]) -> dict[str, Any] | None: ...

    async def remove(self, session_id: ObjectId) -> None: ...

    async def ensure_ttl_index(self, field: str = "expires", expire_after_seconds: int = 0) -> None: ...


@runtime_checkable
class CookieJar(Protocol):
    """Reads request cookies and queues response cookies.

    ``max_age`` is in milliseconds; ``0`` clears the cookie.
    """

    def get(self, name: str, *, signed: bool = False) -> str | None: ...

    def set(
        self,
        name: str,
        value: str,
        *,
        max_age: int | None = None,
        http_only: bool = True,
        signed: bool = False,
        overwrite: bool = False,
    ) -> None: ...


@runtime_checkable
class TokenService(Protocol):
    """Creates secrets and signs/verifies CSRF tokens against them."""

    def create_secret(self) -> str: ...

    def sign(self, secret: str) -> str: ...

    def verify(self, secret: str, token: str) -> bool: ...
