from datetime import datetime
from uuid import UUID, uuid4

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from webhook_gateway.models.base import Base

class WebhookSource(Base):
    __tablename__ = "webhook_sources"
    __table_args__ = (sa.UniqueConstraint("name", name="uq_webhook_sources_name"),)

    id: Mapped[UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid4)

    name: Mapped[str] = mapped_column(sa.String(50), nullable=False)
    secret: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    signature_header: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    is_active: Mapped[bool] = mapped_column(sa.Boolean(), nullable=False, default=True, server_default=sa.true())

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        onupdate=sa.func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        # secret stays out of reprs, they end up in logs
        return f"<WebhookSource {self.name} active={self.is_active}>"
