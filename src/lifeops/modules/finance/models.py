"""Finance records."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


def _normalize_label(value: str) -> str:
    normalized = value.strip().lower()
    if not normalized:
        raise ValueError("must be a non-empty string")
    return normalized


class Expense(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str | None = None
    amount: Decimal = Field(gt=0, max_digits=14, decimal_places=2)
    category: str
    description: str | None = None
    occurred_on: date

    @field_validator("category")
    @classmethod
    def _check_category(cls, value: str) -> str:
        return _normalize_label(value)


class Income(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str | None = None
    amount: Decimal = Field(gt=0, max_digits=14, decimal_places=2)
    source: str | None = None
    description: str | None = None
    occurred_on: date


class ExpensePatch(BaseModel):
    """Partial update for an expense.

    Unset fields are left as-is; ``description=None`` clears the description.
    """

    model_config = ConfigDict(extra="forbid")

    amount: Decimal | None = Field(default=None, gt=0, max_digits=14, decimal_places=2)
    category: str | None = None
    description: str | None = None
    occurred_on: date | None = None

    @field_validator("category")
    @classmethod
    def _check_category(cls, value: str | None) -> str:
        if value is None:
            raise ValueError("category cannot be cleared")
        return _normalize_label(value)

    @field_validator("amount", "occurred_on")
    @classmethod
    def _required_when_given(cls, value: object, info: ValidationInfo) -> object:
        if value is None:
            raise ValueError(f"{info.field_name} cannot be cleared")
        return value
