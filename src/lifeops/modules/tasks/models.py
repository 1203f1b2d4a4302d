"""Task, to-do and study-session records."""

from __future__ import annotations

from datetime import date, datetime
from enum import StrEnum
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TaskStatus(StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"


class ItemKind(StrEnum):
    """Which table a schedulable item lives in."""

    TASK = "task"
    TODO = "todo"
    STUDY = "study"


def _normalize_title(value: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError("title must be a non-empty string")
    return normalized


class _Item(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str | None = None
    title: str
    scheduled: bool = False
    status: TaskStatus = TaskStatus.PENDING

    @field_validator("title")
    @classmethod
    def _check_title(cls, value: str) -> str:
        return _normalize_title(value)


class Task(_Item):
    """A unit of work with a duration that can be placed on the calendar.

    Once scheduled, ``linked_event_id`` holds the external id of the
    calendar event created for it.
    """

    kind: ClassVar[ItemKind] = ItemKind.TASK
    duration_hours: float = Field(gt=0)
    scheduled_date: datetime | None = None
    linked_event_id: str | None = None


class ToDo(_Item):
    kind: ClassVar[ItemKind] = ItemKind.TODO
    due_date: date | None = None


class StudySession(_Item):
    kind: ClassVar[ItemKind] = ItemKind.STUDY
    duration_hours: float = Field(gt=0)


ScheduledItem = Task | ToDo | StudySession

MODEL_BY_KIND: dict[ItemKind, type[_Item]] = {
    ItemKind.TASK: Task,
    ItemKind.TODO: ToDo,
    ItemKind.STUDY: StudySession,
}
