"""index_event_slots

Revision ID: 002
Revises: 001
Create Date: 2024-01-01 00:00:01.000000

"""

from __future__ import annotations

from alembic import op

# revision identifiers, used by Alembic.
revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_events_slot ON events (start_time, end_time)
    """)


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS idx_events_slot")
