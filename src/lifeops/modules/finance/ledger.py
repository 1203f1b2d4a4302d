"""Expense and income ledger over the ``expenses`` and ``income`` tables."""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from typing import Any

from lifeops.db import db_operation
from lifeops.errors import NotFoundError, ValidationError, validate_record
from lifeops.modules.calendar.store import parse_internal_id
from lifeops.modules.finance.models import Expense, ExpensePatch, Income

logger = logging.getLogger(__name__)

_EXPENSE_COLUMNS = "id, amount, category, description, occurred_on"


def _current_month_bounds() -> tuple[date, date]:
    """Return (start_date, end_date) for the current calendar month."""
    today = datetime.now(UTC).date()
    start = today.replace(day=1)
    if today.month == 12:
        end = date(today.year + 1, 1, 1)
    else:
        end = date(today.year, today.month + 1, 1)
    return start, end - timedelta(days=1)


def _resolve_range(start_date: date | str | None, end_date: date | str | None) -> tuple[date, date]:
    default_start, default_end = _current_month_bounds()
    try:
        start = date.fromisoformat(start_date) if isinstance(start_date, str) else start_date
        end = date.fromisoformat(end_date) if isinstance(end_date, str) else end_date
    except ValueError as exc:
        raise ValidationError(
            "date range", str(exc), fields=["start_date", "end_date"]
        ) from exc
    start = start or default_start
    end = end or default_end
    if start > end:
        raise ValidationError(
            "date range", f"start {start} is after end {end}", fields=["start_date", "end_date"]
        )
    return start, end


def _row_to_expense(row: Any) -> Expense:
    return Expense(
        id=str(row["id"]),
        amount=row["amount"],
        category=row["category"],
        description=row["description"],
        occurred_on=row["occurred_on"],
    )


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


async def log_expense(pool: Any, payload: Expense | dict[str, Any]) -> Expense:
    expense = validate_record(Expense, payload, entity="expense")
    async with db_operation("expenses.insert"):
        row = await pool.fetchrow(
            """
            INSERT INTO expenses (amount, category, description, occurred_on)
            VALUES ($1, $2, $3, $4)
            RETURNING id
            """,
            expense.amount,
            expense.category,
            expense.description,
            expense.occurred_on,
        )
    logger.info("Logged expense %s (%s %s)", row["id"], expense.category, expense.amount)
    return expense.model_copy(update={"id": str(row["id"])})


async def add_income(pool: Any, payload: Income | dict[str, Any]) -> Income:
    income = validate_record(Income, payload, entity="income")
    async with db_operation("income.insert"):
        row = await pool.fetchrow(
            """
            INSERT INTO income (amount, source, description, occurred_on)
            VALUES ($1, $2, $3, $4)
            RETURNING id
            """,
            income.amount,
            income.source,
            income.description,
            income.occurred_on,
        )
    logger.info("Added income %s (%s)", row["id"], income.amount)
    return income.model_copy(update={"id": str(row["id"])})


async def update_expense(
    pool: Any, expense_id: str, patch: ExpensePatch | dict[str, Any]
) -> Expense:
    """Apply *patch* to an expense and return the stored result.

    Raises
    ------
    NotFoundError
        If no expense has *expense_id*.
    """
    parsed_id = parse_internal_id(expense_id, entity="expense")
    changes = validate_record(ExpensePatch, patch, entity="expense").model_dump(exclude_unset=True)

    if not changes:
        async with db_operation("expenses.get", expense_id):
            row = await pool.fetchrow(
                f"SELECT {_EXPENSE_COLUMNS} FROM expenses WHERE id = $1", parsed_id
            )
    else:
        params: list[Any] = [parsed_id]
        assignments: list[str] = []
        for column, value in changes.items():
            params.append(value)
            assignments.append(f"{column} = ${len(params)}")
        async with db_operation("expenses.update", expense_id):
            row = await pool.fetchrow(
                f"UPDATE expenses SET {', '.join(assignments)}, updated_at = now() "
                f"WHERE id = $1 RETURNING {_EXPENSE_COLUMNS}",
                *params,
            )
    if row is None:
        raise NotFoundError("expense", expense_id)
    return _row_to_expense(row)


async def delete_expense(pool: Any, expense_id: str) -> None:
    parsed_id = parse_internal_id(expense_id, entity="expense")
    async with db_operation("expenses.delete", expense_id):
        result = await pool.execute("DELETE FROM expenses WHERE id = $1", parsed_id)
    if result == "DELETE 0":
        raise NotFoundError("expense", expense_id)


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


async def get_current_balance(pool: Any) -> Decimal:
    """Total income minus total expenses."""
    async with db_operation("finance.balance"):
        row = await pool.fetchrow(
            """
            SELECT
                (SELECT COALESCE(SUM(amount), 0) FROM income) AS income_total,
                (SELECT COALESCE(SUM(amount), 0) FROM expenses) AS expense_total
            """
        )
    return Decimal(row["income_total"]) - Decimal(row["expense_total"])


async def get_expense_report(
    pool: Any,
    start_date: date | str | None = None,
    end_date: date | str | None = None,
) -> list[Expense]:
    """Expenses dated within the inclusive range, oldest first.

    Defaults to the current calendar month.
    """
    start, end = _resolve_range(start_date, end_date)
    async with db_operation("expenses.report"):
        rows = await pool.fetch(
            f"""
            SELECT {_EXPENSE_COLUMNS}
            FROM expenses
            WHERE occurred_on >= $1 AND occurred_on <= $2
            ORDER BY occurred_on, created_at
            """,
            start,
            end,
        )
    return [_row_to_expense(row) for row in rows]


async def get_spending_by_category(
    pool: Any,
    start_date: date | str | None = None,
    end_date: date | str | None = None,
) -> dict[str, Decimal]:
    """Sum of expenses per category within the inclusive range, largest first."""
    start, end = _resolve_range(start_date, end_date)
    async with db_operation("expenses.by_category"):
        rows = await pool.fetch(
            """
            SELECT category, SUM(amount) AS amount
            FROM expenses
            WHERE occurred_on >= $1 AND occurred_on <= $2
            GROUP BY category
            ORDER BY amount DESC, category
            """,
            start,
            end,
        )
    return {row["category"]: Decimal(row["amount"]) for row in rows}
