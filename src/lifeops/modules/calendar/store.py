"""Local event store: abstract contract plus the PostgreSQL implementation."""

from __future__ import annotations

import abc
import asyncio
import contextvars
import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import asyncpg

from lifeops.db import db_operation
from lifeops.errors import NotFoundError, ValidationError
from lifeops.modules.calendar.models import Event, EventPatch, EventQuery

logger = logging.getLogger(__name__)

_EVENT_COLUMNS = "id, external_id, title, start_time, end_time, description"
_PATCHABLE_COLUMNS = ("external_id", "title", "start_time", "end_time", "description")

# Store and connection holding the sync advisory lock in the current task.
_sync_session: contextvars.ContextVar[tuple[Any, Any] | None] = contextvars.ContextVar(
    "_sync_session", default=None
)


def parse_internal_id(value: str | uuid.UUID, *, entity: str = "event") -> uuid.UUID:
    """Parse a store-assigned id, raising ``ValidationError`` on a bad format."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError as exc:
        raise ValidationError(entity, f"invalid id format: {value!r}", fields=["id"]) from exc


def _row_to_event(row: Any) -> Event:
    return Event(
        internal_id=str(row["id"]),
        external_id=row["external_id"],
        title=row["title"],
        start_time=row["start_time"],
        end_time=row["end_time"],
        description=row["description"],
    )


class EventStore(abc.ABC):
    """Persisted collection of events keyed by internal id."""

    def __init__(self) -> None:
        self._local_locks: dict[str, asyncio.Lock] = {}

    @abc.abstractmethod
    async def insert(self, event: Event) -> str:
        """Persist *event* and return its new internal id."""
        ...

    @abc.abstractmethod
    async def find(self, query: EventQuery | None = None) -> list[Event]:
        """Return events matching *query*, ordered by start time."""
        ...

    @abc.abstractmethod
    async def update(self, internal_id: str, patch: EventPatch) -> None:
        """Apply *patch* to the event. Raises ``NotFoundError`` if absent."""
        ...

    @abc.abstractmethod
    async def delete(self, internal_id: str) -> None:
        """Delete the event. Raises ``NotFoundError`` if absent."""
        ...

    @asynccontextmanager
    async def sync_lock(self, calendar_id: str) -> AsyncIterator[None]:
        """Serialize synchronization runs for *calendar_id* within this process."""
        lock = self._local_locks.setdefault(calendar_id, asyncio.Lock())
        async with lock:
            yield


class PostgresEventStore(EventStore):
    """Event store over the ``events`` table.

    *db* is any asyncpg pool-like object (``lifeops.db.Database`` or an
    ``asyncpg.Pool``) owned by the caller. Inside :meth:`sync_lock` the
    store runs its queries on the connection holding the lock, so a sync
    pass needs one pooled connection, not two.
    """

    def __init__(self, db: Any) -> None:
        super().__init__()
        self._db = db

    def _executor(self) -> Any:
        session = _sync_session.get()
        if session is not None and session[0] is self:
            return session[1]
        return self._db

    async def insert(self, event: Event) -> str:
        async with db_operation("event_store.insert", event.external_id):
            try:
                row = await self._executor().fetchrow(
                    """
                    INSERT INTO events (external_id, title, start_time, end_time, description)
                    VALUES ($1, $2, $3, $4, $5)
                    RETURNING id
                    """,
                    event.external_id,
                    event.title,
                    event.start_time,
                    event.end_time,
                    event.description,
                )
            except asyncpg.UniqueViolationError as exc:
                raise ValidationError(
                    "event",
                    f"external_id {event.external_id!r} is already linked to another event",
                    fields=["external_id"],
                ) from exc
        return str(row["id"])

    async def find(self, query: EventQuery | None = None) -> list[Event]:
        query = query or EventQuery()
        conditions: list[str] = []
        params: list[Any] = []

        if query.external_id is not None:
            params.append(query.external_id)
            conditions.append(f"external_id = ${len(params)}")
        if query.linked is True:
            conditions.append("external_id IS NOT NULL")
        elif query.linked is False:
            conditions.append("external_id IS NULL")
        if query.start_after is not None:
            params.append(query.start_after)
            conditions.append(f"start_time >= ${len(params)}")
        if query.end_before is not None:
            params.append(query.end_before)
            conditions.append(f"end_time <= ${len(params)}")

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        sql = f"SELECT {_EVENT_COLUMNS} FROM events {where} ORDER BY start_time, id"
        async with db_operation("event_store.find"):
            rows = await self._executor().fetch(sql, *params)
        return [_row_to_event(row) for row in rows]

    async def get(self, internal_id: str) -> Event:
        parsed_id = parse_internal_id(internal_id)
        async with db_operation("event_store.get", internal_id):
            row = await self._executor().fetchrow(
                f"SELECT {_EVENT_COLUMNS} FROM events WHERE id = $1", parsed_id
            )
        if row is None:
            raise NotFoundError("event", internal_id)
        return _row_to_event(row)

    async def update(self, internal_id: str, patch: EventPatch) -> None:
        parsed_id = parse_internal_id(internal_id)
        changes = patch.changes()
        assignments: list[str] = []
        params: list[Any] = [parsed_id]
        for column in _PATCHABLE_COLUMNS:
            if column in changes:
                params.append(changes[column])
                assignments.append(f"{column} = ${len(params)}")
        if not assignments:
            return
        assignments.append("updated_at = now()")

        async with db_operation("event_store.update", internal_id):
            try:
                result = await self._executor().execute(
                    f"UPDATE events SET {', '.join(assignments)} WHERE id = $1",
                    *params,
                )
            except asyncpg.UniqueViolationError as exc:
                raise ValidationError(
                    "event",
                    f"external_id {changes.get('external_id')!r} is already linked",
                    fields=["external_id"],
                ) from exc
        if result == "UPDATE 0":
            raise NotFoundError("event", internal_id)

    async def delete(self, internal_id: str) -> None:
        parsed_id = parse_internal_id(internal_id)
        async with db_operation("event_store.delete", internal_id):
            result = await self._executor().execute("DELETE FROM events WHERE id = $1", parsed_id)
        if result == "DELETE 0":
            raise NotFoundError("event", internal_id)

    @asynccontextmanager
    async def sync_lock(self, calendar_id: str) -> AsyncIterator[None]:
        """Hold a session-level advisory lock on *calendar_id* for the block.

        The in-process lock is taken first so concurrent runs inside one
        process queue up without each tying up a pool connection.
        """
        async with super().sync_lock(calendar_id), self._db.acquire() as conn:
            async with db_operation("event_store.sync_lock", calendar_id):
                await conn.execute("SELECT pg_advisory_lock(hashtext($1))", calendar_id)
            logger.debug("Acquired sync advisory lock for calendar '%s'", calendar_id)
            token = _sync_session.set((self, conn))
            try:
                yield
            finally:
                _sync_session.reset(token)
                async with db_operation("event_store.sync_unlock", calendar_id):
                    await conn.execute("SELECT pg_advisory_unlock(hashtext($1))", calendar_id)
