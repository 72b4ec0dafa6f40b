from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from webhook_gateway.models.enums import EventStatus
from webhook_gateway.models.webhook_event import WebhookEvent
from webhook_gateway.models.webhook_source import WebhookSource

logger = logging.getLogger(__name__)

@dataclass
class AdmissionResult:
    already_exists: bool
    event: WebhookEvent | None

def _now_utc() -> datetime:
    return datetime.now(timezone.utc)

def get_source(db: Session, name: str) -> WebhookSource | None:
    return db.scalar(
        select(WebhookSource).where(WebhookSource.name == name, WebhookSource.is_active.is_(True))
    )

def _find_event_id(db: Session, source_id: uuid.UUID, event_id: str) -> uuid.UUID | None:
    return db.scalar(
        select(WebhookEvent.id).where(
            WebhookEvent.source_id == source_id,
            WebhookEvent.event_id == event_id,
        )
    )

def insert_event_if_absent(
    db: Session,
    *,
    source_id: uuid.UUID,
    event_id: str,
    event_type: str,
    payload: Any,
    headers: dict[str, str],
    signature: str,
) -> AdmissionResult:
    if _find_event_id(db, source_id, event_id) is not None:
        return AdmissionResult(already_exists=True, event=None)

    now = _now_utc()
    ev = WebhookEvent(
        source_id=source_id,
        event_id=event_id,
        event_type=event_type,
        signature=signature,
        payload=payload,
        headers=headers,
        status=EventStatus.received.value,
        retry_count=0,
        received_at=now,
        created_at=now,
        updated_at=now,
    )
    db.add(ev)
    try:
        db.commit()
    except IntegrityError:
        # lost the race against an identical concurrent delivery
        db.rollback()
        logger.info("duplicate admission caught by unique constraint: source=%s event_id=%s", source_id, event_id)
        return AdmissionResult(already_exists=True, event=None)

    db.refresh(ev)
    return AdmissionResult(already_exists=False, event=ev)

def get_event(db: Session, id: uuid.UUID) -> WebhookEvent | None:
    return db.get(WebhookEvent, id)

def update_status(
    db: Session,
    id: uuid.UUID,
    status: EventStatus,
    error_message: str | None = None,
) -> bool:
    now = _now_utc()
    values: dict[str, Any] = {"status": status.value, "updated_at": now}

    # processed_at tracks status == processed exactly
    values["processed_at"] = now if status == EventStatus.processed else None

    if status == EventStatus.failed:
        values["retry_count"] = WebhookEvent.retry_count + 1

    if error_message:
        values["error_message"] = error_message[:1000]

    result = db.execute(
        update(WebhookEvent)
        .where(WebhookEvent.id == id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    # commit expires loaded instances, so they re-read the new row
    db.commit()
    return result.rowcount > 0

def _filtered(stmt, *, status: EventStatus | None, source_name: str | None):
    if status is not None:
        stmt = stmt.where(WebhookEvent.status == status.value)
    if source_name:
        stmt = stmt.join(WebhookSource, WebhookSource.id == WebhookEvent.source_id).where(
            WebhookSource.name == source_name
        )
    return stmt

def list_events(
    db: Session,
    *,
    status: EventStatus | None = None,
    source_name: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> list[WebhookEvent]:
    q = _filtered(select(WebhookEvent), status=status, source_name=source_name)
    # id as tie-breaker keeps pages stable when received_at collides
    q = q.order_by(WebhookEvent.received_at.desc(), WebhookEvent.id.desc()).limit(limit).offset(offset)
    return list(db.scalars(q).unique().all())

def count_events(
    db: Session,
    *,
    status: EventStatus | None = None,
    source_name: str | None = None,
) -> int:
    q = _filtered(select(func.count()).select_from(WebhookEvent), status=status, source_name=source_name)
    return int(db.scalar(q) or 0)
