"""Calendar sync: local event store, remote provider, reconciler and free time."""

from lifeops.modules.calendar.free_time import (
    compute_free_intervals,
    end_of_day,
    free_intervals_for_window,
)
from lifeops.modules.calendar.models import (
    CalendarConfig,
    Event,
    EventPatch,
    EventQuery,
    FreeInterval,
    Interval,
)
from lifeops.modules.calendar.provider import CalendarProvider
from lifeops.modules.calendar.reconciler import (
    CreateLocal,
    CreateRemote,
    LinkLocal,
    SyncPlan,
    SyncReport,
    UpdateLocal,
    execute_plan,
    synchronize,
)
from lifeops.modules.calendar.service import CalendarService
from lifeops.modules.calendar.store import EventStore, PostgresEventStore

__all__ = [
    "CalendarConfig",
    "CalendarProvider",
    "CalendarService",
    "CreateLocal",
    "CreateRemote",
    "Event",
    "EventPatch",
    "EventQuery",
    "EventStore",
    "FreeInterval",
    "Interval",
    "LinkLocal",
    "PostgresEventStore",
    "SyncPlan",
    "SyncReport",
    "UpdateLocal",
    "compute_free_intervals",
    "end_of_day",
    "execute_plan",
    "free_intervals_for_window",
    "synchronize",
]
