"""Language tracker: daily word counts and monthly goals."""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime
from typing import Any

from lifeops.db import db_operation
from lifeops.errors import ValidationError, validate_record
from lifeops.modules.progress.models import MonthlyProgress, ProgressEntry, ProgressKind

logger = logging.getLogger(__name__)


def _today() -> date:
    return datetime.now(UTC).date()


def _month_bounds(day: date) -> tuple[date, date]:
    start = day.replace(day=1)
    if day.month == 12:
        next_month = date(day.year + 1, 1, 1)
    else:
        next_month = date(day.year, day.month + 1, 1)
    return start, next_month


async def log_words_learned(
    pool: Any,
    language: str,
    word_count: int,
    *,
    today: date | None = None,
) -> ProgressEntry:
    entry = validate_record(
        ProgressEntry,
        {"language": language, "entry_date": today or _today(), "word_count": word_count},
        entity="progress",
    )
    async with db_operation("progress.log", entry.language):
        row = await pool.fetchrow(
            """
            INSERT INTO progress_entries (language, entry_date, word_count, kind)
            VALUES ($1, $2, $3, $4)
            RETURNING id
            """,
            entry.language,
            entry.entry_date,
            entry.word_count,
            str(ProgressKind.LOG),
        )
    logger.info("Logged %d word(s) for %s on %s", entry.word_count, entry.language, entry.entry_date)
    return entry.model_copy(update={"id": str(row["id"])})


async def set_monthly_goal(
    pool: Any,
    language: str,
    word_count: int,
    *,
    today: date | None = None,
) -> ProgressEntry:
    """Create or replace the goal for the month containing *today*."""
    if word_count <= 0:
        raise ValidationError("progress", "monthly goal must be positive", fields=["word_count"])
    month_start, _ = _month_bounds(today or _today())
    entry = validate_record(
        ProgressEntry,
        {
            "language": language,
            "entry_date": month_start,
            "word_count": word_count,
            "kind": ProgressKind.MONTHLY_GOAL,
        },
        entity="progress",
    )
    async with db_operation("progress.set_goal", entry.language):
        row = await pool.fetchrow(
            """
            INSERT INTO progress_entries (language, entry_date, word_count, kind)
            VALUES ($1, $2, $3, 'monthly_goal')
            ON CONFLICT (language, entry_date) WHERE kind = 'monthly_goal'
            DO UPDATE SET word_count = EXCLUDED.word_count, updated_at = now()
            RETURNING id
            """,
            entry.language,
            entry.entry_date,
            entry.word_count,
        )
    logger.info("Set %s goal for %s to %d", entry.language, month_start, entry.word_count)
    return entry.model_copy(update={"id": str(row["id"])})


async def get_monthly_progress(
    pool: Any,
    language: str,
    *,
    today: date | None = None,
) -> MonthlyProgress:
    language = language.strip().lower()
    month_start, next_month = _month_bounds(today or _today())
    async with db_operation("progress.monthly", language):
        row = await pool.fetchrow(
            """
            SELECT
                COALESCE(SUM(word_count) FILTER (WHERE kind = 'log'), 0) AS total_words,
                MAX(word_count) FILTER (
                    WHERE kind = 'monthly_goal' AND entry_date = $2
                ) AS goal
            FROM progress_entries
            WHERE language = $1 AND entry_date >= $2 AND entry_date < $3
            """,
            language,
            month_start,
            next_month,
        )

    total = int(row["total_words"]) if row is not None else 0
    goal = row["goal"] if row is not None else None
    percentage = round(total / goal * 100, 2) if goal else None
    return MonthlyProgress(
        language=language,
        month_start=month_start,
        total_words=total,
        goal=goal,
        percentage=percentage,
    )
