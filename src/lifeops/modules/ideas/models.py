"""Idea records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _normalize_tags(value: list[str] | None) -> list[str]:
    tags: list[str] = []
    for raw in value or []:
        tag = raw.strip().lower()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


class Idea(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str | None = None
    title: str
    body: str | None = None
    tags: list[str] = Field(default_factory=list)
    created_at: datetime | None = None

    @field_validator("title")
    @classmethod
    def _check_title(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("title must be a non-empty string")
        return normalized

    @field_validator("tags", mode="before")
    @classmethod
    def _check_tags(cls, value: list[str] | None) -> list[str]:
        return _normalize_tags(value)


class IdeaPatch(BaseModel):
    """Unset fields are kept. ``body=None`` clears the body and ``tags=None`` empties the tags."""

    model_config = ConfigDict(extra="forbid")

    title: str | None = None
    body: str | None = None
    tags: list[str] | None = None

    @field_validator("title")
    @classmethod
    def _check_title(cls, value: str | None) -> str:
        normalized = (value or "").strip()
        if not normalized:
            raise ValueError("title must be a non-empty string")
        return normalized

    @field_validator("tags", mode="before")
    @classmethod
    def _check_tags(cls, value: list[str] | None) -> list[str]:
        return [] if value is None else _normalize_tags(value)


@dataclass(frozen=True)
class IdeaQuery:
    """Filter over stored ideas. ``text`` matches title or body, case-insensitively."""

    tag: str | None = None
    text: str | None = None
    created_after: datetime | None = None
    created_before: datetime | None = None
