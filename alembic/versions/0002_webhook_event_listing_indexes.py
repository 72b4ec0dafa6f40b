"""webhook event listing indexes

Revision ID: 0002_webhook_event_listing_indexes
Revises: 0001_init
Create Date: 2026-10-19
"""
from __future__ import annotations

from typing import Sequence

from alembic import op

revision = "0002_webhook_event_listing_indexes"
down_revision = "0001_init"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None

def upgrade() -> None:
    # dashboard pages newest-first, optionally by status
    op.create_index("ix_webhook_events_received_at_id", "webhook_events", ["received_at", "id"])
    op.create_index("ix_webhook_events_status", "webhook_events", ["status"])

def downgrade() -> None:
    op.drop_index("ix_webhook_events_status", table_name="webhook_events")
    op.drop_index("ix_webhook_events_received_at_id", table_name="webhook_events")
