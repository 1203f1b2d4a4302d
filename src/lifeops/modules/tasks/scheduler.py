"""Place tasks onto free calendar slots and take them off again."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from lifeops.errors import ValidationError
from lifeops.modules.calendar.free_time import free_intervals_for_window
from lifeops.modules.calendar.models import Event, FreeInterval, Interval
from lifeops.modules.calendar.service import CalendarService
from lifeops.modules.tasks.models import ItemKind, ScheduledItem, Task
from lifeops.modules.tasks.store import TaskStore

logger = logging.getLogger(__name__)

SUGGESTION_HORIZON_DAYS = 7
TASK_REFERENCE_PREFIX = "Task ID: "


def suggest_slots(task: Task, free_intervals: Iterable[FreeInterval]) -> list[FreeInterval]:
    """Keep the free intervals long enough for *task*, in input order."""
    required = timedelta(hours=task.duration_hours)
    return [interval for interval in free_intervals if interval.duration >= required]


def _resolve_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValidationError("timezone", f"unknown timezone: {name!r}", fields=["timezone"]) from exc


class TaskScheduler:
    """Creates and removes the calendar events backing scheduled tasks."""

    def __init__(self, store: TaskStore, calendar: CalendarService) -> None:
        self._store = store
        self._calendar = calendar

    async def get_unscheduled_tasks(self) -> list[ScheduledItem]:
        items: list[ScheduledItem] = []
        for kind in (ItemKind.TASK, ItemKind.TODO, ItemKind.STUDY):
            items.extend(await self._store.find(kind, scheduled=False))
        return items

    async def schedule_task(self, task_id: str, slot: Interval) -> Task:
        """Book *slot* for the task and link the created event to it.

        Raises
        ------
        NotFoundError
            If no task has *task_id*. Nothing is written in that case.
        """
        task = await self._store.get(ItemKind.TASK, task_id)

        created = await self._calendar.insert_event(
            Event(
                title=task.title,
                start_time=slot.start,
                end_time=slot.end,
                description=f"{TASK_REFERENCE_PREFIX}{task_id}",
            )
        )
        updated = await self._store.update(
            ItemKind.TASK,
            task_id,
            {
                "scheduled": True,
                "scheduled_date": slot.start,
                "linked_event_id": created.external_id,
            },
        )
        logger.info("Scheduled task %s as event %s", task_id, created.external_id)
        return updated

    async def unschedule_task(self, task_id: str) -> Task:
        """Remove the task's linked event from both stores and reset its fields.

        A task that is neither scheduled nor linked is returned unchanged.
        """
        task = await self._store.get(ItemKind.TASK, task_id)
        if not task.scheduled and task.linked_event_id is None:
            return task

        if task.linked_event_id is not None:
            await self._calendar.delete_linked_event(task.linked_event_id)

        updated = await self._store.update(
            ItemKind.TASK,
            task_id,
            {"scheduled": False, "scheduled_date": None, "linked_event_id": None},
        )
        logger.info("Unscheduled task %s", task_id)
        return updated

    async def suggest_time_slots(
        self,
        task_id: str,
        timezone: str = "UTC",
        *,
        now: datetime | None = None,
    ) -> list[FreeInterval]:
        """Suggest free slots over the next seven days, expressed in *timezone*."""
        tz = _resolve_timezone(timezone)
        task = await self._store.get(ItemKind.TASK, task_id)

        start = (now or datetime.now(UTC)).astimezone(tz)
        events = await self._calendar.fetch_events(
            start, start + timedelta(days=SUGGESTION_HORIZON_DAYS)
        )
        busy = [Interval.from_event(event) for event in events]
        free = free_intervals_for_window(busy, start, SUGGESTION_HORIZON_DAYS, tz)
        return [
            FreeInterval(start=slot.start.astimezone(tz), end=slot.end.astimezone(tz))
            for slot in suggest_slots(task, free)
        ]
