"""Unit tests for PostgresEventStore against a mocked pool."""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import asyncpg
import pytest

from lifeops.errors import AdapterError, NotFoundError, ValidationError
from lifeops.modules.calendar.models import Event, EventPatch, EventQuery
from lifeops.modules.calendar.store import PostgresEventStore, parse_internal_id
from tests.fakes import make_pool

pytestmark = pytest.mark.unit

_ID = uuid.UUID("11111111-1111-1111-1111-111111111111")
_START = datetime(2026, 3, 2, 10, 0, tzinfo=UTC)


def _event(**overrides) -> Event:
    data = {"title": "Standup", "start_time": _START, "end_time": _START + timedelta(hours=1)}
    data.update(overrides)
    return Event(**data)


def _row(**overrides) -> dict:
    row = {
        "id": _ID,
        "external_id": "g1",
        "title": "Standup",
        "start_time": _START,
        "end_time": _START + timedelta(hours=1),
        "description": None,
    }
    row.update(overrides)
    return row


class TestParseInternalId:
    def test_accepts_uuid_string(self):
        assert parse_internal_id(str(_ID)) == _ID

    def test_rejects_garbage(self):
        with pytest.raises(ValidationError) as excinfo:
            parse_internal_id("not-a-uuid", entity="task")
        assert excinfo.value.entity == "task"
        assert excinfo.value.fields == ["id"]


class TestInsert:
    async def test_returns_new_id(self):
        pool = make_pool(fetchrow_returns=[{"id": _ID}])
        store = PostgresEventStore(pool)

        internal_id = await store.insert(_event(external_id="g1"))

        assert internal_id == str(_ID)
        args = pool.fetchrow.await_args.args
        assert "INSERT INTO events" in args[0]
        assert args[1:] == ("g1", "Standup", _START, _START + timedelta(hours=1), None)

    async def test_duplicate_external_id_is_validation_error(self):
        pool = make_pool()
        pool.fetchrow.side_effect = asyncpg.UniqueViolationError("duplicate key")
        store = PostgresEventStore(pool)

        with pytest.raises(ValidationError) as excinfo:
            await store.insert(_event(external_id="g1"))
        assert excinfo.value.fields == ["external_id"]

    async def test_connection_failure_is_adapter_error(self):
        pool = make_pool()
        pool.fetchrow.side_effect = OSError("connection reset")
        store = PostgresEventStore(pool)

        with pytest.raises(AdapterError) as excinfo:
            await store.insert(_event(external_id="g1"))
        assert excinfo.value.operation == "event_store.insert"
        assert excinfo.value.target_id == "g1"


class TestFind:
    async def test_no_filter(self):
        pool = make_pool(fetch_returns=[[_row()]])
        store = PostgresEventStore(pool)

        events = await store.find()

        assert events == [_event(internal_id=str(_ID), external_id="g1")]
        sql = pool.fetch.await_args.args[0]
        assert "WHERE" not in sql
        assert "ORDER BY start_time, id" in sql

    async def test_builds_numbered_conditions(self):
        pool = make_pool()
        store = PostgresEventStore(pool)

        await store.find(
            EventQuery(external_id="g1", linked=True, start_after=_START, end_before=_START)
        )

        args = pool.fetch.await_args.args
        assert "external_id = $1" in args[0]
        assert "external_id IS NOT NULL" in args[0]
        assert "start_time >= $2" in args[0]
        assert "end_time <= $3" in args[0]
        assert args[1:] == ("g1", _START, _START)

    async def test_unlinked_filter(self):
        pool = make_pool()
        await PostgresEventStore(pool).find(EventQuery(linked=False))
        assert "external_id IS NULL" in pool.fetch.await_args.args[0]


class TestUpdate:
    async def test_only_changed_columns_are_written(self):
        pool = make_pool(execute_returns=["UPDATE 1"])
        store = PostgresEventStore(pool)

        await store.update(str(_ID), EventPatch(external_id="g2"))

        args = pool.execute.await_args.args
        assert args[0] == "UPDATE events SET external_id = $2, updated_at = now() WHERE id = $1"
        assert args[1:] == (_ID, "g2")

    async def test_explicit_none_clears_description(self):
        pool = make_pool(execute_returns=["UPDATE 1"])

        await PostgresEventStore(pool).update(str(_ID), EventPatch(description=None))

        args = pool.execute.await_args.args
        assert args[0] == "UPDATE events SET description = $2, updated_at = now() WHERE id = $1"
        assert args[1:] == (_ID, None)

    async def test_empty_patch_skips_the_database(self):
        pool = make_pool()
        await PostgresEventStore(pool).update(str(_ID), EventPatch())
        pool.execute.assert_not_called()

    async def test_missing_row_raises_not_found(self):
        pool = make_pool(execute_returns=["UPDATE 0"])
        with pytest.raises(NotFoundError):
            await PostgresEventStore(pool).update(str(_ID), EventPatch(title="X"))

    async def test_bad_id_raises_before_query(self):
        pool = make_pool()
        with pytest.raises(ValidationError):
            await PostgresEventStore(pool).update("nope", EventPatch(title="X"))
        pool.execute.assert_not_called()


class TestGetAndDelete:
    async def test_get_returns_event(self):
        pool = make_pool(fetchrow_returns=[_row(description="notes")])
        event = await PostgresEventStore(pool).get(str(_ID))
        assert event.description == "notes"

    async def test_get_missing_raises(self):
        with pytest.raises(NotFoundError):
            await PostgresEventStore(make_pool()).get(str(_ID))

    async def test_delete_missing_raises(self):
        pool = make_pool(execute_returns=["DELETE 0"])
        with pytest.raises(NotFoundError):
            await PostgresEventStore(pool).delete(str(_ID))


class TestSyncLock:
    async def test_takes_and_releases_advisory_lock(self):
        conn = AsyncMock()

        @asynccontextmanager
        async def _acquire():
            yield conn

        pool = make_pool()
        pool.acquire = MagicMock(side_effect=_acquire)
        store = PostgresEventStore(pool)

        async with store.sync_lock("primary"):
            assert conn.execute.await_count == 1

        statements = [call.args for call in conn.execute.await_args_list]
        assert statements == [
            ("SELECT pg_advisory_lock(hashtext($1))", "primary"),
            ("SELECT pg_advisory_unlock(hashtext($1))", "primary"),
        ]

    async def test_lock_is_released_when_block_raises(self):
        conn = AsyncMock()

        @asynccontextmanager
        async def _acquire():
            yield conn

        pool = make_pool()
        pool.acquire = MagicMock(side_effect=_acquire)
        store = PostgresEventStore(pool)

        with pytest.raises(RuntimeError):
            async with store.sync_lock("primary"):
                raise RuntimeError("boom")

        assert "pg_advisory_unlock" in conn.execute.await_args_list[-1].args[0]

    async def test_queries_inside_lock_reuse_the_locked_connection(self):
        conn = AsyncMock()
        conn.fetch = AsyncMock(return_value=[_row()])

        @asynccontextmanager
        async def _acquire():
            yield conn

        pool = make_pool()
        pool.acquire = MagicMock(side_effect=_acquire)
        store = PostgresEventStore(pool)

        async with store.sync_lock("primary"):
            events = await store.find(EventQuery(linked=True))
            await store.update(str(_ID), EventPatch(title="Renamed"))

        assert [e.title for e in events] == ["Standup"]
        conn.fetch.assert_awaited_once()
        assert "UPDATE events SET title" in conn.execute.await_args_list[1].args[0]
        pool.fetch.assert_not_awaited()
        pool.execute.assert_not_awaited()
        assert pool.acquire.call_count == 1

        await store.find()
        pool.fetch.assert_awaited_once()

    async def test_other_stores_keep_using_their_pool(self):
        conn = AsyncMock()

        @asynccontextmanager
        async def _acquire():
            yield conn

        pool = make_pool()
        pool.acquire = MagicMock(side_effect=_acquire)
        other_pool = make_pool()
        other = PostgresEventStore(other_pool)

        async with PostgresEventStore(pool).sync_lock("primary"):
            await other.find()

        other_pool.fetch.assert_awaited_once()
        conn.fetch.assert_not_awaited()
