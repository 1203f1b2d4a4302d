"""Tests for calendar reconciliation planning and plan execution."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from lifeops.errors import AdapterError
from lifeops.modules.calendar.models import Event, Interval
from lifeops.modules.calendar.reconciler import (
    CreateLocal,
    CreateRemote,
    LinkLocal,
    SyncPlan,
    UpdateLocal,
    execute_plan,
    synchronize,
)
from tests.fakes import FakeCalendarProvider, InMemoryEventStore

pytestmark = pytest.mark.unit

_BASE = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


def _event(
    title: str = "A",
    *,
    external_id: str | None = None,
    internal_id: str | None = None,
    hour: int = 0,
    description: str | None = None,
) -> Event:
    start = _BASE + timedelta(hours=hour)
    return Event(
        internal_id=internal_id,
        external_id=external_id,
        title=title,
        start_time=start,
        end_time=start + timedelta(hours=1),
        description=description,
    )


# ---------------------------------------------------------------------------
# synchronize (planning)
# ---------------------------------------------------------------------------


class TestSynchronize:
    def test_remote_only_event_creates_local(self):
        remote = _event(external_id="g1")
        plan = synchronize([remote], [])

        assert plan.operations == (CreateLocal(event=remote),)

    def test_linked_local_missing_remotely_creates_remote_then_links(self):
        local = _event(external_id="g1", internal_id="l1")
        plan = synchronize([], [local])

        assert plan.operations == (CreateRemote(event=local), LinkLocal(internal_id="l1"))

    def test_matching_events_produce_empty_plan(self):
        remote = _event(external_id="g1")
        local = _event(external_id="g1", internal_id="l1")

        plan = synchronize([remote], [local])

        assert plan.is_empty
        assert len(plan) == 0

    @pytest.mark.parametrize(
        "changes",
        [
            {"title": "B"},
            {"description": "moved"},
            {"start_time": _BASE - timedelta(minutes=30)},
            {"end_time": _BASE + timedelta(hours=2)},
        ],
    )
    def test_drifted_synced_field_updates_local(self, changes):
        local = _event(external_id="g1", internal_id="l1")
        remote = _event(external_id="g1").model_copy(update=changes)

        plan = synchronize([remote], [local])

        assert plan.operations == (UpdateLocal(internal_id="l1", event=remote),)

    def test_same_instant_in_other_timezone_is_not_drift(self):
        local = _event(external_id="g1", internal_id="l1")
        tokyo = ZoneInfo("Asia/Tokyo")
        remote = _event(external_id="g1").model_copy(
            update={
                "start_time": local.start_time.astimezone(tokyo),
                "end_time": local.end_time.astimezone(tokyo),
            }
        )

        assert synchronize([remote], [local]).is_empty

    def test_unlinked_local_events_are_left_alone(self):
        local = _event(internal_id="l1")
        assert synchronize([], [local]).is_empty

    def test_local_updates_come_before_remote_creates(self):
        remote_new = _event("new", external_id="g2")
        local_gone = _event(external_id="g1", internal_id="l1")

        plan = synchronize([remote_new], [local_gone])

        assert [type(op) for op in plan] == [CreateLocal, CreateRemote, LinkLocal]

    def test_counts_by_operation_type(self):
        plan = synchronize(
            [_event(external_id="g1"), _event(external_id="g2")],
            [_event(external_id="g3", internal_id="l3")],
        )
        assert plan.count(CreateLocal) == 2
        assert plan.count(CreateRemote) == 1
        assert plan.count(LinkLocal) == 1
        assert plan.count(UpdateLocal) == 0

    def test_linked_local_outside_window_is_not_recreated(self):
        window = Interval(start=_BASE, end=_BASE + timedelta(days=1))
        past = _event(external_id="g1", internal_id="l1", hour=-24)

        assert synchronize([], [past], window=window).is_empty

    def test_linked_local_inside_window_is_still_recreated(self):
        window = Interval(start=_BASE, end=_BASE + timedelta(days=1))
        local = _event(external_id="g1", internal_id="l1", hour=2)

        plan = synchronize([], [local], window=window)

        assert plan.operations == (CreateRemote(event=local), LinkLocal(internal_id="l1"))

    def test_remote_moved_into_window_updates_local_outside_it(self):
        window = Interval(start=_BASE, end=_BASE + timedelta(days=1))
        local = _event(external_id="g1", internal_id="l1", hour=-24)
        remote = _event(external_id="g1", hour=2)

        plan = synchronize([remote], [local], window=window)

        assert plan.operations == (UpdateLocal(internal_id="l1", event=remote),)


# ---------------------------------------------------------------------------
# execute_plan
# ---------------------------------------------------------------------------


class TestExecutePlan:
    async def test_create_local_inserts_linked_event(self):
        store = InMemoryEventStore()
        provider = FakeCalendarProvider()
        remote = _event(external_id="g1")

        report = await execute_plan(synchronize([remote], []), store, provider, "primary")

        stored = await store.find()
        assert len(stored) == 1
        assert stored[0].external_id == "g1"
        assert stored[0].internal_id is not None
        assert report.created_local == 1
        assert report.total == 1

    async def test_create_remote_then_link_uses_new_external_id(self):
        local = _event(external_id="gone", internal_id="l1")
        store = InMemoryEventStore([local])
        provider = FakeCalendarProvider()

        report = await execute_plan(synchronize([], [local]), store, provider, "primary")

        assert list(provider.events) == ["g1"]
        assert store.events["l1"].external_id == "g1"
        assert report.as_dict() == {
            "created_local": 0,
            "updated_local": 0,
            "created_remote": 1,
            "linked_local": 1,
        }
        assert report.applied[-1] == LinkLocal(internal_id="l1", external_id="g1")

    async def test_update_local_overwrites_synced_fields(self):
        local = _event(external_id="g1", internal_id="l1")
        store = InMemoryEventStore([local])
        remote = _event("Renamed", external_id="g1", description="notes")

        report = await execute_plan(
            synchronize([remote], [local]), store, FakeCalendarProvider(), "primary"
        )

        assert store.events["l1"].title == "Renamed"
        assert store.events["l1"].description == "notes"
        assert report.updated_local == 1

    async def test_cleared_remote_description_clears_local_and_converges(self):
        local = _event(external_id="g1", internal_id="l1", description="old")
        store = InMemoryEventStore([local])
        remote = _event(external_id="g1")

        await execute_plan(
            synchronize([remote], [local]), store, FakeCalendarProvider(), "primary"
        )

        assert store.events["l1"].description is None
        assert synchronize([remote], await store.find()).is_empty

    async def test_second_pass_after_execution_is_empty(self):
        store = InMemoryEventStore([_event("kept", external_id="gone", internal_id="l1")])
        provider = FakeCalendarProvider([_event("remote", external_id="r1", hour=3)])

        remote = await provider.list_events(
            calendar_id="primary", start_at=_BASE, end_at=_BASE + timedelta(days=1)
        )
        await execute_plan(synchronize(remote, await store.find()), store, provider, "primary")

        remote_again = await provider.list_events(
            calendar_id="primary", start_at=_BASE, end_at=_BASE + timedelta(days=1)
        )
        assert synchronize(remote_again, await store.find()).is_empty

    async def test_failure_names_operation_and_keeps_earlier_work(self):
        store = InMemoryEventStore([_event(external_id="gone", internal_id="l1")])
        provider = FakeCalendarProvider()
        provider.fail_on = "create_event"
        plan = synchronize([_event("new", external_id="g9", hour=2)], await store.find())

        with pytest.raises(AdapterError) as excinfo:
            await execute_plan(plan, store, provider, "primary")

        assert excinfo.value.operation == "create_remote"
        assert excinfo.value.target_id == "l1"
        assert isinstance(excinfo.value.__cause__, AdapterError)
        # CreateLocal ran before the failure and stays applied.
        assert any(e.external_id == "g9" for e in store.events.values())
        assert store.events["l1"].external_id == "gone"

    async def test_store_validation_failure_is_wrapped(self):
        store = InMemoryEventStore([_event(external_id="g1", internal_id="l1")])
        plan = SyncPlan(operations=(CreateLocal(event=_event(external_id="g1")),))

        with pytest.raises(AdapterError) as excinfo:
            await execute_plan(plan, store, FakeCalendarProvider(), "primary")

        assert excinfo.value.operation == "create_local"
        assert excinfo.value.target_id == "g1"

    async def test_link_without_preceding_create_fails(self):
        store = InMemoryEventStore([_event(internal_id="l1")])
        plan = SyncPlan(operations=(LinkLocal(internal_id="l1"),))

        with pytest.raises(AdapterError, match="No external id available"):
            await execute_plan(plan, store, FakeCalendarProvider(), "primary")

    async def test_empty_plan_touches_nothing(self):
        store = InMemoryEventStore()
        provider = FakeCalendarProvider()

        report = await execute_plan(SyncPlan(), store, provider, "primary")

        assert report.total == 0
        assert store.calls == []
        assert provider.calls == []
