"""create_events

Revision ID: 001
Revises:
Create Date: 2024-01-01 00:00:00.000000

"""

from __future__ import annotations

from alembic import op

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    if op.get_bind().dialect.name == "sqlite":
        # Timestamps are UTC text, YYYY-MM-DDTHH:MM:SS.ffffffZ.
        op.execute("""
            CREATE TABLE IF NOT EXISTS events (
                id          INTEGER PRIMARY KEY AUTOINCREMENT,
                title       TEXT NOT NULL,
                description TEXT NOT NULL DEFAULT '',
                start_time  TEXT NOT NULL,
                end_time    TEXT NOT NULL
            )
        """)
    else:
        op.execute("""
            CREATE TABLE IF NOT EXISTS events (
                id          BIGSERIAL PRIMARY KEY,
                title       TEXT        NOT NULL,
                description TEXT        NOT NULL DEFAULT '',
                start_time  TIMESTAMPTZ NOT NULL,
                end_time    TIMESTAMPTZ NOT NULL
            )
        """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS events")
