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
"""MongoDB session store backed by a Motor collection."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import pymongo
from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
from pymongo import ReturnDocument
from pymongo.errors import ConnectionFailure

from atomic_session.config.properties.mongodb import MongoDBProperties
from atomic_session.kernel.exceptions import StoreUnavailableException


@contextmanager
def _store_call(operation: str) -> Iterator[None]:
    try:
        yield
    except ConnectionFailure as exc:
        raise StoreUnavailableException(
            f"Session store unavailable during {operation}: {exc}",
            code="SESSION_STORE_UNAVAILABLE",
            context={"operation": operation},
        ) from exc


def create_collection(
    properties: MongoDBProperties,
    client: AsyncIOMotorClient | None = None,  # type: ignore[type-arg]
) -> AsyncIOMotorCollection:  # type: ignore[type-arg]
    """Open the session collection described by *properties*.

    A new client is created from ``properties.uri`` unless *client* is given.
    """
    if client is None:
        client = AsyncIOMotorClient(properties.uri)
    return client[properties.database][properties.collection]


class MotorSessionStore:
    """Session store over an ``AsyncIOMotorCollection``.

    The collection handle is shared by all requests; Motor does its own
    connection pooling. ``ConnectionFailure`` surfaces as
    ``StoreUnavailableException``; other driver errors propagate unchanged.
    """

    def __init__(self, collection: AsyncIOMotorCollection) -> None:  # type: ignore[type-arg]
        self._collection = collection

    @property
    def collection(self) -> AsyncIOMotorCollection:  # type: ignore[type-arg]
        return self._collection

    async def find_one(self, session_id: ObjectId) -> dict[str, Any] | None:
        with _store_call("find_one"):
            return await self._collection.find_one({"_id": session_id})

    async def insert(self, document: dict[str, Any]) -> None:
        with _store_call("insert"):
            await self._collection.insert_one(document)

    async def update(self, session_id: ObjectId, update: dict[str, Any]) -> dict[str, Any] | None:
        with _store_call("update"):
            return await self._collection.find_one_and_update(
                {"_id": session_id},
                update,
                return_document=ReturnDocument.AFTER,
            )

    async def remove(self, session_id: ObjectId) -> None:
        with _store_call("remove"):
            await self._collection.delete_one({"_id": session_id})

    async def ensure_ttl_index(self, field: str = "expires", expire_after_seconds: int = 0) -> None:
        with _store_call("ensure_ttl_index"):
            await self._collection.create_index(
                [(field, pymongo.ASCENDING)],
                expireAfterSeconds=expire_after_seconds,
                background=True,
            )
