"""Bidirectional reconciliation between the remote calendar and the local store.

Planning is pure: :func:`synchronize` turns two snapshots into an ordered
:class:`SyncPlan`. :func:`execute_plan` applies the plan against an event
store and a calendar provider, stopping at the first failure. Operations
already applied are left in place.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from lifeops.errors import AdapterError, LifeOpsError
from lifeops.modules.calendar.models import Event, EventPatch, Interval
from lifeops.modules.calendar.provider import CalendarProvider
from lifeops.modules.calendar.store import EventStore

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Plan operations
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CreateLocal:
    """Store a remote event locally, linked by its external id."""

    event: Event

    name = "create_local"

    @property
    def target_id(self) -> str | None:
        return self.event.external_id


@dataclass(frozen=True)
class UpdateLocal:
    """Overwrite a linked local event with the remote version."""

    internal_id: str
    event: Event

    name = "update_local"

    @property
    def target_id(self) -> str | None:
        return self.internal_id


@dataclass(frozen=True)
class CreateRemote:
    """Re-create a local event on the remote calendar."""

    event: Event

    name = "create_remote"

    @property
    def target_id(self) -> str | None:
        return self.event.internal_id


@dataclass(frozen=True)
class LinkLocal:
    """Point a local event at the external id produced by the preceding CreateRemote.

    ``external_id`` is unknown while planning and bound during execution.
    """

    internal_id: str
    external_id: str | None = None

    name = "link_local"

    @property
    def target_id(self) -> str | None:
        return self.internal_id


SyncOperation = CreateLocal | UpdateLocal | CreateRemote | LinkLocal


@dataclass(frozen=True)
class SyncPlan:
    """Ordered list of operations produced by :func:`synchronize`."""

    operations: tuple[SyncOperation, ...] = ()

    def __len__(self) -> int:
        return len(self.operations)

    def __iter__(self):
        return iter(self.operations)

    @property
    def is_empty(self) -> bool:
        return not self.operations

    def count(self, kind: type) -> int:
        return sum(1 for op in self.operations if isinstance(op, kind))


@dataclass
class SyncReport:
    """Outcome counts of an executed plan."""

    created_local: int = 0
    updated_local: int = 0
    created_remote: int = 0
    linked_local: int = 0
    applied: list[SyncOperation] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.applied)

    def as_dict(self) -> dict[str, int]:
        return {
            "created_local": self.created_local,
            "updated_local": self.updated_local,
            "created_remote": self.created_remote,
            "linked_local": self.linked_local,
        }


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------


def _overlaps(event: Event, window: Interval) -> bool:
    return event.start_time < window.end and event.end_time > window.start


def synchronize(
    remote_events: Sequence[Event],
    local_events: Sequence[Event],
    *,
    window: Interval | None = None,
) -> SyncPlan:
    """Plan the operations that bring both sides into agreement.

    Remote events missing locally become ``CreateLocal``; linked local
    events whose synced fields drifted become ``UpdateLocal``. Linked local
    events absent from the remote snapshot become ``CreateRemote`` followed
    by ``LinkLocal``. Unlinked local events are left alone.

    When the remote snapshot only covers *window*, pass it here: a linked
    local event outside the window cannot be told apart from a deleted one
    and is not re-created.
    """
    local_by_external: dict[str, Event] = {}
    for local in local_events:
        if local.external_id is not None:
            local_by_external[local.external_id] = local

    operations: list[SyncOperation] = []

    for remote in remote_events:
        if remote.external_id is None:
            continue
        local = local_by_external.get(remote.external_id)
        if local is None:
            operations.append(CreateLocal(event=remote))
        elif remote.differs_from(local):
            operations.append(UpdateLocal(internal_id=local.internal_id, event=remote))

    remote_ids = {remote.external_id for remote in remote_events if remote.external_id}
    for local in local_events:
        if local.external_id is None or local.external_id in remote_ids:
            continue
        if window is not None and not _overlaps(local, window):
            continue
        operations.append(CreateRemote(event=local))
        operations.append(LinkLocal(internal_id=local.internal_id))

    return SyncPlan(operations=tuple(operations))


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------


async def execute_plan(
    plan: SyncPlan,
    store: EventStore,
    provider: CalendarProvider,
    calendar_id: str,
) -> SyncReport:
    """Apply *plan* in order and return what was done.

    Raises
    ------
    AdapterError
        On the first failing operation, naming the operation and the id it
        targeted. Earlier operations stay applied.
    """
    report = SyncReport()
    pending_external_id: str | None = None

    for op in plan:
        try:
            if isinstance(op, CreateLocal):
                await store.insert(op.event.model_copy(update={"internal_id": None}))
                report.created_local += 1
            elif isinstance(op, UpdateLocal):
                await store.update(
                    op.internal_id,
                    EventPatch.from_event(op.event, external_id=op.event.external_id),
                )
                report.updated_local += 1
            elif isinstance(op, CreateRemote):
                created = await provider.create_event(calendar_id=calendar_id, event=op.event)
                pending_external_id = created.external_id
                report.created_remote += 1
            elif isinstance(op, LinkLocal):
                external_id = op.external_id or pending_external_id
                if external_id is None:
                    raise AdapterError(
                        "No external id available to link",
                        operation=op.name,
                        target_id=op.internal_id,
                    )
                await store.update(op.internal_id, EventPatch(external_id=external_id))
                pending_external_id = None
                report.linked_local += 1
                op = LinkLocal(internal_id=op.internal_id, external_id=external_id)
        except AdapterError as exc:
            if exc.operation == op.name:
                raise
            raise AdapterError(
                f"Sync operation failed: {exc.message}",
                operation=op.name,
                target_id=op.target_id,
            ) from exc
        except LifeOpsError as exc:
            raise AdapterError(
                f"Sync operation failed: {exc}",
                operation=op.name,
                target_id=op.target_id,
            ) from exc

        report.applied.append(op)
        logger.info("Applied %s (id=%s)", op.name, op.target_id)

    return report
