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
"""Tests for key validation, batching and the command dispatcher."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from bson import ObjectId

from atomic_session.kernel.exceptions import (
    InvalidSessionKeyException,
    NotPersistedException,
    SessionGoneException,
)
from atomic_session.session.commands import (
    CommandDispatcher,
    Operation,
    build_update,
    coerce_expires,
    plan_batches,
    validate_key,
)
from atomic_session.session.record import SessionRecord


class TestValidateKey:
    def test_plain_key_passes(self):
        assert validate_key("cart") == "cart"

    @pytest.mark.parametrize("key", ["a.b", "$where", "", "_id", "secret", "created", "set", "id"])
    def test_rejects_invalid_keys(self, key):
        with pytest.raises(InvalidSessionKeyException):
            validate_key(key)

    def test_rejects_non_string(self):
        with pytest.raises(InvalidSessionKeyException):
            validate_key(42)

    def test_writable_reserved_keys_only_when_allowed(self):
        with pytest.raises(InvalidSessionKeyException):
            validate_key("maxAge")
        assert validate_key("maxAge", writable_reserved=True) == "maxAge"
        assert validate_key("expires", writable_reserved=True) == "expires"

    def test_writable_flag_does_not_open_other_reserved_keys(self):
        with pytest.raises(InvalidSessionKeyException):
            validate_key("secret", writable_reserved=True)

    def test_error_carries_key_and_code(self):
        with pytest.raises(InvalidSessionKeyException) as exc_info:
            validate_key("a.b")
        assert exc_info.value.code == "SESSION_KEY"


class TestPlanBatches:
    def test_disjoint_operations_share_one_batch(self):
        ops = [Operation("$set", "a", 1), Operation("$inc", "b", 1), Operation("$push", "c", 2)]
        assert plan_batches(ops) == [ops]

    def test_conflicting_paths_split_batches(self):
        ops = [Operation("$set", "a", 1), Operation("$inc", "a", 1), Operation("$set", "b", 2)]
        assert plan_batches(ops) == [[ops[0]], [ops[1], ops[2]]]

    def test_rename_target_counts_as_path(self):
        ops = [Operation("$rename", "a", "b"), Operation("$set", "b", 1)]
        assert len(plan_batches(ops)) == 2

    def test_empty(self):
        assert plan_batches([]) == []


class TestBuildUpdate:
    def test_touch_is_always_present(self):
        expires = datetime.now(UTC)
        assert build_update([], expires) == {"$set": {"expires": expires}}

    def test_merges_operators(self):
        expires = datetime.now(UTC)
        update = build_update(
            [Operation("$set", "a", 1), Operation("$unset", "b", ""), Operation("$inc", "c", 2)],
            expires,
        )
        assert update == {
            "$set": {"expires": expires, "a": 1},
            "$unset": {"b": ""},
            "$inc": {"c": 2},
        }

    def test_explicit_expires_is_carried_by_touch(self):
        expires = datetime.now(UTC)
        update = build_update([Operation("$set", "expires", expires)], expires)
        assert update == {"$set": {"expires": expires}}


class TestCoerceExpires:
    def test_naive_datetime_is_utc(self):
        assert coerce_expires(datetime(2030, 1, 1)).tzinfo is not None

    def test_epoch_milliseconds(self):
        assert coerce_expires(0) == datetime(1970, 1, 1, tzinfo=UTC)

    def test_relative_values(self):
        now = datetime(2026, 1, 1, tzinfo=UTC)
        assert coerce_expires("1h", now) == now + timedelta(hours=1)
        assert coerce_expires(timedelta(minutes=5), now) == now + timedelta(minutes=5)


@pytest.mark.asyncio
class TestCommandDispatcher:
    async def _persisted(self, store, **fields) -> SessionRecord:
        now = datetime.now(UTC)
        record = SessionRecord(max_age=60_000, id=ObjectId(), created_at=now, secret="s")
        record.expires_at = record.compute_expiry(now)
        record.fields = dict(fields)
        await store.insert(record.to_document())
        record.loaded = True
        return record

    async def test_touch_only_updates_expires(self, store):
        record = await self._persisted(store)
        touched: list[SessionRecord] = []
        dispatcher = CommandDispatcher(store, touched.append)

        await dispatcher.dispatch(record, [])

        assert store.calls["update"] == 1
        assert list(store.updates[0]) == ["$set"]
        assert list(store.updates[0]["$set"]) == ["expires"]
        assert touched == [record]

    async def test_reconciles_record_with_stored_document(self, store):
        record = await self._persisted(store, count=1, stale=True)
        dispatcher = CommandDispatcher(store, lambda r: None)
        store.documents[record.id]["added"] = "elsewhere"

        await dispatcher.dispatch(record, [Operation("$inc", "count", 2), Operation("$unset", "stale", "")])

        assert record.fields == {"count": 3, "added": "elsewhere"}

    async def test_conflicting_operations_use_separate_updates(self, store):
        record = await self._persisted(store, n=1)
        dispatcher = CommandDispatcher(store, lambda r: None)

        await dispatcher.dispatch(record, [Operation("$inc", "n", 1), Operation("$mul", "n", 10)])

        assert store.calls["update"] == 2
        assert all("expires" in update["$set"] for update in store.updates)
        assert record.fields["n"] == 20

    async def test_max_age_change_drives_expiry(self, store):
        record = await self._persisted(store)
        dispatcher = CommandDispatcher(store, lambda r: None)
        before = datetime.now(UTC)

        await dispatcher.dispatch(record, [Operation("$set", "maxAge", 1000)])

        assert record.max_age == 1000
        assert record.expires_at is not None
        assert record.expires_at <= before + timedelta(seconds=5)
        assert store.documents[record.id]["maxAge"] == 1000

    async def test_vanished_document_raises(self, store):
        record = await self._persisted(store)
        await store.remove(record.id)
        dispatcher = CommandDispatcher(store, lambda r: None)

        with pytest.raises(SessionGoneException):
            await dispatcher.dispatch(record, [Operation("$set", "a", 1)])
        assert record.loaded is False

    async def test_unpersisted_record_is_rejected(self, store):
        dispatcher = CommandDispatcher(store, lambda r: None)
        with pytest.raises(NotPersistedException):
            await dispatcher.dispatch(SessionRecord(max_age=1), [])
        assert store.calls["update"] == 0
