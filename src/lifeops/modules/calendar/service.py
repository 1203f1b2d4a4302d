"""Calendar service: dual-write event operations, sync runs and free time."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from lifeops.errors import NotFoundError, validate_record
from lifeops.modules.calendar.free_time import compute_free_intervals, end_of_day
from lifeops.modules.calendar.models import (
    DEFAULT_SYNC_WINDOW_DAYS,
    Event,
    EventPatch,
    EventQuery,
    FreeInterval,
    Interval,
)
from lifeops.modules.calendar.provider import CalendarProvider
from lifeops.modules.calendar.reconciler import SyncReport, execute_plan, synchronize
from lifeops.modules.calendar.store import EventStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class CalendarService:
    """Keeps the local event store and the remote calendar in step.

    Event writes go to the remote calendar first so the local record can be
    stored already linked by its external id.
    """

    def __init__(
        self,
        store: EventStore,
        provider: CalendarProvider,
        *,
        calendar_id: str = "primary",
        sync_window_days: int = DEFAULT_SYNC_WINDOW_DAYS,
    ) -> None:
        self._store = store
        self._provider = provider
        self._calendar_id = calendar_id
        self._sync_window = timedelta(days=sync_window_days)

    @property
    def calendar_id(self) -> str:
        return self._calendar_id

    @property
    def store(self) -> EventStore:
        return self._store

    @property
    def provider(self) -> CalendarProvider:
        return self._provider

    async def fetch_events(self, start_at: datetime, end_at: datetime) -> list[Event]:
        """List remote events in ``[start_at, end_at)``."""
        return await self._provider.list_events(
            calendar_id=self._calendar_id, start_at=start_at, end_at=end_at
        )

    async def sync_events(self, now: datetime | None = None) -> SyncReport:
        """Run one synchronization pass over the configured window.

        Remote events are listed over ``[now, now + sync_window)``. Linked local
        events outside that window are matched by id but never re-created.
        """
        start_at = now or _utcnow()
        end_at = start_at + self._sync_window

        async with self._store.sync_lock(self._calendar_id):
            remote_events = await self.fetch_events(start_at, end_at)
            local_events = await self._store.find(EventQuery(linked=True))
            plan = synchronize(
                remote_events, local_events, window=Interval(start=start_at, end=end_at)
            )
            logger.info(
                "Sync plan for calendar '%s': %d operation(s) from %d remote / %d local events",
                self._calendar_id,
                len(plan),
                len(remote_events),
                len(local_events),
            )
            report = await execute_plan(plan, self._store, self._provider, self._calendar_id)

        logger.info("Sync finished for calendar '%s': %s", self._calendar_id, report.as_dict())
        return report

    async def insert_event(self, payload: Event | dict[str, Any]) -> Event:
        """Create an event remotely, then store it locally linked.

        Returns the stored event carrying both ids.
        """
        event = validate_record(Event, payload, entity="event")
        created = await self._provider.create_event(calendar_id=self._calendar_id, event=event)
        stored = event.model_copy(update={"external_id": created.external_id})
        internal_id = await self._store.insert(stored)
        logger.info("Inserted event %s (external_id=%s)", internal_id, created.external_id)
        return stored.model_copy(update={"internal_id": internal_id})

    async def update_event(
        self,
        external_id: str,
        internal_id: str,
        patch: EventPatch | dict[str, Any],
    ) -> Event:
        """Apply *patch* to both copies of an event and return the updated event."""
        patch = validate_record(EventPatch, patch, entity="event")
        matches = await self._store.find(EventQuery(external_id=external_id))
        current = next((e for e in matches if e.internal_id == internal_id), None)
        if current is None:
            raise NotFoundError("event", internal_id)

        changes = patch.changes()
        changes.pop("external_id", None)
        merged = validate_record(
            Event, {**current.model_dump(), **changes}, entity="event"
        )
        await self._provider.update_event(
            calendar_id=self._calendar_id, external_id=external_id, event=merged
        )
        await self._store.update(internal_id, EventPatch.from_event(merged))
        logger.info("Updated event %s (external_id=%s)", internal_id, external_id)
        return merged

    async def delete_event(self, external_id: str, internal_id: str) -> None:
        """Delete an event from the remote calendar and the local store."""
        await self._provider.delete_event(calendar_id=self._calendar_id, external_id=external_id)
        await self._store.delete(internal_id)
        logger.info("Deleted event %s (external_id=%s)", internal_id, external_id)

    async def delete_linked_event(self, external_id: str) -> None:
        """Delete the remote event and every local record linked to it."""
        await self._provider.delete_event(calendar_id=self._calendar_id, external_id=external_id)
        for local in await self._store.find(EventQuery(external_id=external_id)):
            await self._store.delete(local.internal_id)
        logger.info("Deleted linked event (external_id=%s)", external_id)

    async def free_intervals(self, now: datetime | None = None) -> list[FreeInterval]:
        """Return today's free intervals from *now* until the end of the day."""
        reference = now or _utcnow()
        day_end = end_of_day(reference)
        events = await self.fetch_events(reference, day_end)
        busy = [Interval.from_event(event) for event in events]
        return compute_free_intervals(busy, day_end, reference)
