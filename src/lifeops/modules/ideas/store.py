"""Idea CRUD over the ``ideas`` table."""

from __future__ import annotations

import logging
from typing import Any

from lifeops.db import db_operation
from lifeops.errors import NotFoundError, validate_record
from lifeops.modules.calendar.store import parse_internal_id
from lifeops.modules.ideas.models import Idea, IdeaPatch, IdeaQuery

logger = logging.getLogger(__name__)

_IDEA_COLUMNS = "id, title, body, tags, created_at"


def _row_to_idea(row: Any) -> Idea:
    return Idea(
        id=str(row["id"]),
        title=row["title"],
        body=row["body"],
        tags=list(row["tags"] or []),
        created_at=row["created_at"],
    )


async def log_idea(pool: Any, payload: Idea | dict[str, Any]) -> Idea:
    idea = validate_record(Idea, payload, entity="idea")
    async with db_operation("ideas.insert"):
        row = await pool.fetchrow(
            f"""
            INSERT INTO ideas (title, body, tags)
            VALUES ($1, $2, $3)
            RETURNING {_IDEA_COLUMNS}
            """,
            idea.title,
            idea.body,
            idea.tags,
        )
    logger.info("Logged idea %s", row["id"])
    return _row_to_idea(row)


async def retrieve_ideas(pool: Any, query: IdeaQuery | None = None) -> list[Idea]:
    """Return ideas matching *query*, newest first."""
    query = query or IdeaQuery()
    conditions: list[str] = []
    params: list[Any] = []

    if query.tag is not None:
        params.append(query.tag.strip().lower())
        conditions.append(f"${len(params)} = ANY(tags)")
    if query.text is not None:
        params.append(f"%{query.text.strip()}%")
        conditions.append(f"(title ILIKE ${len(params)} OR body ILIKE ${len(params)})")
    if query.created_after is not None:
        params.append(query.created_after)
        conditions.append(f"created_at >= ${len(params)}")
    if query.created_before is not None:
        params.append(query.created_before)
        conditions.append(f"created_at < ${len(params)}")

    where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
    async with db_operation("ideas.find"):
        rows = await pool.fetch(
            f"SELECT {_IDEA_COLUMNS} FROM ideas {where} ORDER BY created_at DESC, id",
            *params,
        )
    return [_row_to_idea(row) for row in rows]


async def update_idea(pool: Any, idea_id: str, patch: IdeaPatch | dict[str, Any]) -> Idea:
    parsed_id = parse_internal_id(idea_id, entity="idea")
    changes = validate_record(IdeaPatch, patch, entity="idea").model_dump(exclude_unset=True)

    params: list[Any] = [parsed_id]
    assignments: list[str] = ["updated_at = now()"]
    for column, value in changes.items():
        params.append(value)
        assignments.append(f"{column} = ${len(params)}")

    async with db_operation("ideas.update", idea_id):
        row = await pool.fetchrow(
            f"UPDATE ideas SET {', '.join(assignments)} WHERE id = $1 RETURNING {_IDEA_COLUMNS}",
            *params,
        )
    if row is None:
        raise NotFoundError("idea", idea_id)
    return _row_to_idea(row)


async def delete_idea(pool: Any, idea_id: str) -> None:
    parsed_id = parse_internal_id(idea_id, entity="idea")
    async with db_operation("ideas.delete", idea_id):
        result = await pool.execute("DELETE FROM ideas WHERE id = $1", parsed_id)
    if result == "DELETE 0":
        raise NotFoundError("idea", idea_id)
