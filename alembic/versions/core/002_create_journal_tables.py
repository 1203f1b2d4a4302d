"""create_journal_tables

Revision ID: core_002
Revises: core_001
Create Date: 2026-01-01 00:00:00.000000

"""

from __future__ import annotations

from alembic import op

# revision identifiers, used by Alembic.
revision = "core_002"
down_revision = "core_001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE IF NOT EXISTS expenses (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            amount NUMERIC(14, 2) NOT NULL CHECK (amount > 0),
            category TEXT NOT NULL,
            description TEXT,
            occurred_on DATE NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_expenses_occurred_on ON expenses (occurred_on)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS income (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            amount NUMERIC(14, 2) NOT NULL CHECK (amount > 0),
            source TEXT,
            description TEXT,
            occurred_on DATE NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS ideas (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            title TEXT NOT NULL,
            body TEXT,
            tags TEXT[] NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_ideas_tags ON ideas USING GIN (tags)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS progress_entries (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            language TEXT NOT NULL,
            entry_date DATE NOT NULL,
            word_count INTEGER NOT NULL CHECK (word_count >= 0),
            kind TEXT NOT NULL DEFAULT 'log' CHECK (kind IN ('log', 'monthly_goal')),
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)
    op.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS idx_progress_monthly_goal
        ON progress_entries (language, entry_date)
        WHERE kind = 'monthly_goal'
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_progress_language_date
        ON progress_entries (language, entry_date)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS progress_entries")
    op.execute("DROP TABLE IF EXISTS ideas")
    op.execute("DROP TABLE IF EXISTS income")
    op.execute("DROP TABLE IF EXISTS expenses")
