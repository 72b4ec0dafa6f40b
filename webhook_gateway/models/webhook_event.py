from datetime import datetime, timezone
from uuid import UUID, uuid4

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from webhook_gateway.models.base import Base
from webhook_gateway.models.enums import EventStatus
from webhook_gateway.models.webhook_source import WebhookSource

def _now_utc() -> datetime:
    return datetime.now(timezone.utc)

class WebhookEvent(Base):
    __tablename__ = "webhook_events"
    __table_args__ = (
        # idempotency boundary, insert_event_if_absent relies on it
        sa.UniqueConstraint("source_id", "event_id", name="uq_webhook_events_source_event_id"),
        sa.Index("ix_webhook_events_received_at_id", "received_at", "id"),
        sa.Index("ix_webhook_events_status", "status"),
        sa.CheckConstraint("retry_count >= 0", name="ck_webhook_events_retry_count_nonneg"),
    )

    id: Mapped[UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid4)

    source_id: Mapped[UUID] = mapped_column(
        sa.Uuid, sa.ForeignKey("webhook_sources.id"), index=True, nullable=False
    )
    event_id: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    event_type: Mapped[str] = mapped_column(sa.String(255), nullable=False)

    signature: Mapped[str] = mapped_column(sa.Text(), nullable=False)
    payload: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    headers: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    status: Mapped[str] = mapped_column(
        sa.String(16), nullable=False, default=EventStatus.received.value, server_default="received"
    )
    error_message: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    retry_count: Mapped[int] = mapped_column(sa.Integer(), nullable=False, default=0, server_default="0")

    received_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=_now_utc, server_default=sa.func.now()
    )
    processed_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=_now_utc, server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=_now_utc, server_default=sa.func.now()
    )

    source: Mapped[WebhookSource] = relationship(lazy="joined")
