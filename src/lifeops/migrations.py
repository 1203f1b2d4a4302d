"""Programmatic Alembic migration runner.

Lets the CLI and the test fixtures bring a database to head without shelling
out to the Alembic CLI.
"""

from __future__ import annotations

import asyncio
import logging
import re
from pathlib import Path

from alembic.config import Config

from alembic import command

logger = logging.getLogger(__name__)

# Root of the alembic directory (sibling to src/)
ALEMBIC_DIR = Path(__file__).resolve().parent.parent.parent / "alembic"

CORE_CHAIN = "core"
_TARGET_SCHEMA_OPTION = "lifeops.target_schema"
_VERSION_TABLE_SCHEMA_OPTION = "version_table_schema"
_VALID_SCHEMA_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _normalize_schema(schema: str | None) -> str | None:
    """Normalize and validate a schema name for migration execution."""
    if schema is None:
        return None
    normalized = schema.strip()
    if not normalized:
        return None
    if _VALID_SCHEMA_RE.fullmatch(normalized) is None:
        raise ValueError(f"Invalid migration schema name: {schema!r}")
    return normalized


def build_alembic_config(db_url: str, target_schema: str | None = None) -> Config:
    """Build an Alembic Config pointing at the lifeops version directory.

    Args:
        db_url: SQLAlchemy-compatible database URL.
        target_schema: Optional target schema for schema-scoped migration runs.
    """
    config = Config(str(ALEMBIC_DIR / "alembic.ini"))
    config.set_main_option("script_location", str(ALEMBIC_DIR))
    # Alembic Config uses configparser interpolation; percent-encoded DB URLs
    # must escape '%' as '%%'.
    config.set_main_option("sqlalchemy.url", db_url.replace("%", "%%"))
    normalized_schema = _normalize_schema(target_schema)
    if normalized_schema is not None:
        config.set_main_option(_TARGET_SCHEMA_OPTION, normalized_schema)
        config.set_main_option(_VERSION_TABLE_SCHEMA_OPTION, normalized_schema)
    config.set_main_option("version_locations", str(ALEMBIC_DIR / "versions" / CORE_CHAIN))
    return config


def upgrade_to_head(db_url: str, schema: str | None = None) -> None:
    """Upgrade the core chain to head (blocking)."""
    normalized_schema = _normalize_schema(schema)
    config = build_alembic_config(db_url, target_schema=normalized_schema)
    logger.info(
        "Running migration chain to head (chain=%s, schema=%s)",
        CORE_CHAIN,
        normalized_schema or "<default>",
    )
    command.upgrade(config, f"{CORE_CHAIN}@head")


async def run_migrations(db_url: str, schema: str | None = None) -> None:
    """Run migrations without blocking the event loop.

    Alembic drives a synchronous SQLAlchemy engine, so the upgrade runs in a
    worker thread.
    """
    await asyncio.to_thread(upgrade_to_head, db_url, schema)
