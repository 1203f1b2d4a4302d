"""Persistence for tasks, to-dos and study sessions."""

from __future__ import annotations

import abc
import logging
from typing import Any

from lifeops.db import db_operation
from lifeops.errors import NotFoundError, validate_record
from lifeops.modules.calendar.store import parse_internal_id
from lifeops.modules.tasks.models import MODEL_BY_KIND, ItemKind, ScheduledItem, TaskStatus

logger = logging.getLogger(__name__)

_TABLES: dict[ItemKind, str] = {
    ItemKind.TASK: "tasks",
    ItemKind.TODO: "todos",
    ItemKind.STUDY: "studies",
}

_COLUMNS: dict[ItemKind, tuple[str, ...]] = {
    ItemKind.TASK: (
        "title",
        "duration_hours",
        "scheduled_date",
        "scheduled",
        "linked_event_id",
        "status",
    ),
    ItemKind.TODO: ("title", "due_date", "scheduled", "status"),
    ItemKind.STUDY: ("title", "duration_hours", "scheduled", "status"),
}


def _row_to_item(kind: ItemKind, row: Any) -> ScheduledItem:
    data = {column: row[column] for column in _COLUMNS[kind]}
    data["id"] = str(row["id"])
    if data.get("duration_hours") is not None:
        data["duration_hours"] = float(data["duration_hours"])
    return MODEL_BY_KIND[kind].model_validate(data)


class TaskStore(abc.ABC):
    """Storage contract shared by the task manager and the scheduler."""

    @abc.abstractmethod
    async def insert(self, item: ScheduledItem) -> str:
        """Persist *item* and return its new id."""
        ...

    @abc.abstractmethod
    async def get(self, kind: ItemKind, item_id: str) -> ScheduledItem:
        """Return one item. Raises ``NotFoundError`` if absent."""
        ...

    @abc.abstractmethod
    async def find(
        self,
        kind: ItemKind,
        *,
        scheduled: bool | None = None,
        status: TaskStatus | None = None,
    ) -> list[ScheduledItem]:
        ...

    @abc.abstractmethod
    async def update(self, kind: ItemKind, item_id: str, changes: dict[str, Any]) -> ScheduledItem:
        """Apply *changes* and return the updated item. Raises ``NotFoundError``."""
        ...

    @abc.abstractmethod
    async def delete(self, kind: ItemKind, item_id: str) -> None:
        ...


class PostgresTaskStore(TaskStore):
    """Task store over the ``tasks``, ``todos`` and ``studies`` tables."""

    def __init__(self, db: Any) -> None:
        self._db = db

    async def insert(self, item: ScheduledItem) -> str:
        kind = item.kind
        columns = _COLUMNS[kind]
        values = [
            str(item.status) if column == "status" else getattr(item, column) for column in columns
        ]
        placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
        async with db_operation(f"{_TABLES[kind]}.insert"):
            row = await self._db.fetchrow(
                f"INSERT INTO {_TABLES[kind]} ({', '.join(columns)}) "
                f"VALUES ({placeholders}) RETURNING id",
                *values,
            )
        return str(row["id"])

    async def get(self, kind: ItemKind, item_id: str) -> ScheduledItem:
        parsed_id = parse_internal_id(item_id, entity=kind.value)
        async with db_operation(f"{_TABLES[kind]}.get", item_id):
            row = await self._db.fetchrow(
                f"SELECT id, {', '.join(_COLUMNS[kind])} FROM {_TABLES[kind]} WHERE id = $1",
                parsed_id,
            )
        if row is None:
            raise NotFoundError(kind.value, item_id)
        return _row_to_item(kind, row)

    async def find(
        self,
        kind: ItemKind,
        *,
        scheduled: bool | None = None,
        status: TaskStatus | None = None,
    ) -> list[ScheduledItem]:
        conditions: list[str] = []
        params: list[Any] = []
        if scheduled is not None:
            params.append(scheduled)
            conditions.append(f"scheduled = ${len(params)}")
        if status is not None:
            params.append(str(status))
            conditions.append(f"status = ${len(params)}")
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        async with db_operation(f"{_TABLES[kind]}.list"):
            rows = await self._db.fetch(
                f"SELECT id, {', '.join(_COLUMNS[kind])} FROM {_TABLES[kind]} "
                f"{where} ORDER BY created_at, id",
                *params,
            )
        return [_row_to_item(kind, row) for row in rows]

    async def update(self, kind: ItemKind, item_id: str, changes: dict[str, Any]) -> ScheduledItem:
        current = await self.get(kind, item_id)
        merged = validate_record(
            MODEL_BY_KIND[kind], {**current.model_dump(), **changes}, entity=kind.value
        )
        columns = [column for column in _COLUMNS[kind] if column in changes]
        if not columns:
            return merged

        params: list[Any] = [parse_internal_id(item_id, entity=kind.value)]
        assignments: list[str] = []
        for column in columns:
            value = getattr(merged, column)
            params.append(str(value) if column == "status" else value)
            assignments.append(f"{column} = ${len(params)}")
        assignments.append("updated_at = now()")

        async with db_operation(f"{_TABLES[kind]}.update", item_id):
            result = await self._db.execute(
                f"UPDATE {_TABLES[kind]} SET {', '.join(assignments)} WHERE id = $1",
                *params,
            )
        if result == "UPDATE 0":
            raise NotFoundError(kind.value, item_id)
        return merged

    async def delete(self, kind: ItemKind, item_id: str) -> None:
        parsed_id = parse_internal_id(item_id, entity=kind.value)
        async with db_operation(f"{_TABLES[kind]}.delete", item_id):
            result = await self._db.execute(f"DELETE FROM {_TABLES[kind]} WHERE id = $1", parsed_id)
        if result == "DELETE 0":
            raise NotFoundError(kind.value, item_id)
