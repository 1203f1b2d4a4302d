"""Provider abstraction for remote calendars."""

from __future__ import annotations

import abc
from datetime import datetime

from lifeops.modules.calendar.models import Event


class CalendarProvider(abc.ABC):
    """Remote calendar CRUD within a time window.

    Implementations receive an already-established credential; acquiring
    or rotating it is not their concern. Failures surface as
    ``lifeops.errors.AdapterError`` subclasses.
    """

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Provider identifier (e.g., ``google``)."""
        ...

    @abc.abstractmethod
    async def list_events(
        self,
        *,
        calendar_id: str,
        start_at: datetime,
        end_at: datetime,
    ) -> list[Event]:
        """Return events in ``[start_at, end_at)`` with ``external_id`` set."""
        ...

    @abc.abstractmethod
    async def create_event(self, *, calendar_id: str, event: Event) -> Event:
        """Create *event* remotely and return it with its new ``external_id``."""
        ...

    @abc.abstractmethod
    async def update_event(self, *, calendar_id: str, external_id: str, event: Event) -> Event:
        """Replace the synced fields of a remote event."""
        ...

    @abc.abstractmethod
    async def delete_event(self, *, calendar_id: str, external_id: str) -> None:
        """Delete a remote event. Deleting a missing event is not an error."""
        ...

    @abc.abstractmethod
    async def shutdown(self) -> None:
        """Release provider resources."""
        ...
