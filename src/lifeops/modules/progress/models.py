"""Language-learning progress records."""

from __future__ import annotations

from datetime import date
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ProgressKind(StrEnum):
    LOG = "log"
    MONTHLY_GOAL = "monthly_goal"


class ProgressEntry(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str | None = None
    language: str
    entry_date: date
    word_count: int = Field(ge=0)
    kind: ProgressKind = ProgressKind.LOG

    @field_validator("language")
    @classmethod
    def _normalize_language(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError("language must be a non-empty string")
        return normalized


class MonthlyProgress(BaseModel):
    """Words learned in a month against that month's goal.

    ``percentage`` is ``None`` when no goal is set for the month.
    """

    language: str
    month_start: date
    total_words: int
    goal: int | None = None
    percentage: float | None = None
