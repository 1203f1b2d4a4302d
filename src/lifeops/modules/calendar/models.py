"""Calendar data models shared by the local store and the remote provider."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from lifeops.errors import ValidationError
from lifeops.modules.calendar.errors import CalendarCredentialError

DEFAULT_SYNC_WINDOW_DAYS = 7
GOOGLE_CALENDAR_CREDENTIALS_ENV = "GOOGLE_CALENDAR_CREDENTIALS_JSON"

# Fields compared when deciding whether a linked event has drifted.
SYNCED_FIELDS = ("title", "start_time", "end_time", "description")


class GoogleCredentials(BaseModel):
    """Refresh-token credential for the Google Calendar API.

    Unknown keys in the JSON document are ignored.
    """

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True, str_min_length=1)

    client_id: str
    client_secret: str
    refresh_token: str


class CalendarConfig(BaseModel):
    """Configuration for the [calendar] section."""

    model_config = ConfigDict(extra="forbid")

    provider: Literal["google"] = "google"
    calendar_id: str = "primary"
    sync_window_days: int = Field(default=DEFAULT_SYNC_WINDOW_DAYS, ge=1, le=90)
    credentials_env: str = GOOGLE_CALENDAR_CREDENTIALS_ENV

    @field_validator("calendar_id", "credentials_env")
    @classmethod
    def _normalize_non_empty(cls, value: str, info: ValidationInfo) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError(f"{info.field_name} must be a non-empty string")
        return normalized

    def load_credentials(self) -> GoogleCredentials:
        """Parse the credential JSON held in the ``credentials_env`` variable.

        Raises
        ------
        CalendarCredentialError
            If the variable is unset or its value is not a usable credential.
        """
        raw = os.environ.get(self.credentials_env, "")
        if not raw.strip():
            raise CalendarCredentialError(
                f"Environment variable {self.credentials_env} is not set",
                operation="calendar.credentials",
            )
        try:
            return GoogleCredentials.model_validate_json(raw)
        except PydanticValidationError as exc:
            invalid = ValidationError.from_pydantic("credentials", exc)
            raise CalendarCredentialError(
                f"{self.credentials_env} holds no usable credential: {invalid.message}",
                operation="calendar.credentials",
            ) from exc


def _normalize_optional_text(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    return normalized or None


class Event(BaseModel):
    """Canonical event shape shared by both stores.

    ``internal_id`` is assigned by the local store; ``external_id`` by the
    remote provider. An event carrying an ``external_id`` is *linked*.
    """

    model_config = ConfigDict(extra="forbid")

    internal_id: str | None = None
    external_id: str | None = None
    title: str
    start_time: datetime
    end_time: datetime
    description: str | None = None

    @field_validator("title")
    @classmethod
    def _normalize_title(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("title must be a non-empty string")
        return normalized

    @field_validator("internal_id", "external_id", "description")
    @classmethod
    def _normalize_optional(cls, value: str | None) -> str | None:
        return _normalize_optional_text(value)

    @field_validator("start_time", "end_time")
    @classmethod
    def _require_timezone(cls, value: datetime, info: ValidationInfo) -> datetime:
        if value.tzinfo is None or value.utcoffset() is None:
            raise ValueError(f"{info.field_name} must be timezone-aware")
        return value

    @model_validator(mode="after")
    def _validate_window(self) -> Event:
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self

    @property
    def linked(self) -> bool:
        return self.external_id is not None

    def differs_from(self, other: Event) -> bool:
        """Return True when any synced field differs (exact equality)."""
        return any(getattr(self, name) != getattr(other, name) for name in SYNCED_FIELDS)


class EventPatch(BaseModel):
    """Partial update applied to a stored event.

    Only fields that were set are written. An explicit ``None`` clears
    ``description`` or unlinks ``external_id``; the required fields cannot
    be cleared.
    """

    model_config = ConfigDict(extra="forbid")

    external_id: str | None = None
    title: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    description: str | None = None

    @field_validator("title")
    @classmethod
    def _normalize_title(cls, value: str | None) -> str:
        if value is None or not value.strip():
            raise ValueError("title must be a non-empty string")
        return value.strip()

    @field_validator("start_time", "end_time")
    @classmethod
    def _require_timestamp(cls, value: datetime | None, info: ValidationInfo) -> datetime:
        if value is None:
            raise ValueError(f"{info.field_name} cannot be cleared")
        if value.tzinfo is None or value.utcoffset() is None:
            raise ValueError(f"{info.field_name} must be timezone-aware")
        return value

    @field_validator("description")
    @classmethod
    def _normalize_description(cls, value: str | None) -> str | None:
        return _normalize_optional_text(value)

    @model_validator(mode="after")
    def _validate_window(self) -> EventPatch:
        if (
            self.start_time is not None
            and self.end_time is not None
            and self.start_time >= self.end_time
        ):
            raise ValueError("start_time must be before end_time")
        return self

    @classmethod
    def from_event(cls, event: Event, *, external_id: str | None = None) -> EventPatch:
        """Build a patch that overwrites every synced field with *event*'s values.

        ``external_id`` is only written when *external_id* or the event's own
        is present, so the patch never unlinks a record.
        """
        fields = {name: getattr(event, name) for name in SYNCED_FIELDS}
        linked_id = external_id if external_id is not None else event.external_id
        if linked_id is not None:
            fields["external_id"] = linked_id
        return cls(**fields)

    def changes(self) -> dict[str, object]:
        return self.model_dump(exclude_unset=True)


@dataclass(frozen=True)
class EventQuery:
    """Typed filter over stored events. Unset fields do not constrain."""

    external_id: str | None = None
    linked: bool | None = None
    start_after: datetime | None = None
    end_before: datetime | None = None


@dataclass(frozen=True)
class Interval:
    """Half-open time span ``[start, end)``."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValueError(f"Interval start must be before end: {self.start} >= {self.end}")

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @classmethod
    def from_event(cls, event: Event) -> Interval:
        return cls(start=event.start_time, end=event.end_time)


# Free intervals share the Interval shape; the name documents intent.
FreeInterval = Interval
