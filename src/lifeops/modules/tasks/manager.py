"""Task manager: create, list, update, complete and delete schedulable items."""

from __future__ import annotations

import logging
from typing import Any

from lifeops.errors import ValidationError, validate_record
from lifeops.modules.tasks.models import (
    MODEL_BY_KIND,
    ItemKind,
    ScheduledItem,
    StudySession,
    Task,
    TaskStatus,
    ToDo,
)
from lifeops.modules.tasks.store import TaskStore

logger = logging.getLogger(__name__)

# Fields owned by the scheduler; edits go through schedule/unschedule.
_SCHEDULER_FIELDS = frozenset({"scheduled", "scheduled_date", "linked_event_id"})


class TaskManager:
    def __init__(self, store: TaskStore) -> None:
        self._store = store

    async def _create(self, model: type, payload: Any, kind: ItemKind) -> ScheduledItem:
        item = validate_record(model, payload, entity=kind.value)
        item_id = await self._store.insert(item)
        logger.info("Created %s %s", kind.value, item_id)
        return item.model_copy(update={"id": item_id})

    async def create_task(self, payload: Task | dict[str, Any]) -> Task:
        return await self._create(Task, payload, ItemKind.TASK)

    async def create_todo(self, payload: ToDo | dict[str, Any]) -> ToDo:
        return await self._create(ToDo, payload, ItemKind.TODO)

    async def create_study_session(self, payload: StudySession | dict[str, Any]) -> StudySession:
        return await self._create(StudySession, payload, ItemKind.STUDY)

    async def get(self, kind: ItemKind, item_id: str) -> ScheduledItem:
        return await self._store.get(ItemKind(kind), item_id)

    async def retrieve(
        self,
        kind: ItemKind = ItemKind.TASK,
        *,
        scheduled: bool | None = None,
        status: TaskStatus | None = None,
    ) -> list[ScheduledItem]:
        return await self._store.find(ItemKind(kind), scheduled=scheduled, status=status)

    async def update(self, kind: ItemKind, item_id: str, changes: dict[str, Any]) -> ScheduledItem:
        """Update editable fields of an item.

        Raises
        ------
        ValidationError
            If *changes* names an unknown field or a scheduler-owned field.
        NotFoundError
            If the item does not exist.
        """
        kind = ItemKind(kind)
        allowed = set(MODEL_BY_KIND[kind].model_fields) - _SCHEDULER_FIELDS - {"id"}
        rejected = sorted(set(changes) - allowed)
        if rejected:
            raise ValidationError(
                kind.value, f"fields cannot be updated: {', '.join(rejected)}", fields=rejected
            )
        updated = await self._store.update(kind, item_id, changes)
        logger.info("Updated %s %s: %s", kind.value, item_id, sorted(changes))
        return updated

    async def mark_completed(self, kind: ItemKind, item_id: str) -> ScheduledItem:
        kind = ItemKind(kind)
        updated = await self._store.update(kind, item_id, {"status": TaskStatus.COMPLETED})
        logger.info("Marked %s %s completed", kind.value, item_id)
        return updated

    async def delete(self, kind: ItemKind, item_id: str) -> None:
        kind = ItemKind(kind)
        await self._store.delete(kind, item_id)
        logger.info("Deleted %s %s", kind.value, item_id)

