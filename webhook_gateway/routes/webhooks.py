from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from webhook_gateway.config import settings
from webhook_gateway.db import get_db
from webhook_gateway.errors import InternalError, NotFoundError, PayloadTooLargeError, ValidationError
from webhook_gateway.models.enums import EventStatus
from webhook_gateway.models.webhook_event import WebhookEvent
from webhook_gateway.ratelimit import rate_limit
from webhook_gateway.schemas.webhooks import (
    EventListOut,
    EventOut,
    IngestOut,
    PaginationOut,
    ProbeOut,
    ReplayOut,
)
from webhook_gateway.webhooks import store
from webhook_gateway.webhooks.dispatcher import Dispatcher, get_dispatcher
from webhook_gateway.webhooks.ingest import ingest_webhook
from webhook_gateway.webhooks.providers import ProviderSpec, get_provider
from webhook_gateway.webhooks.replay import replay_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

def _provider_or_404(provider: str) -> ProviderSpec:
    spec = get_provider(provider)
    if spec is None:
        raise NotFoundError("unknown_provider")
    return spec

def _event_out(ev: WebhookEvent) -> EventOut:
    return EventOut(
        id=ev.id,
        source_id=ev.source_id,
        source=ev.source.name if ev.source is not None else None,
        event_id=ev.event_id,
        event_type=ev.event_type,
        status=ev.status,
        error_message=ev.error_message,
        retry_count=ev.retry_count,
        signature=ev.signature,
        payload=ev.payload,
        headers=ev.headers,
        received_at=ev.received_at,
        processed_at=ev.processed_at,
        created_at=ev.created_at,
        updated_at=ev.updated_at,
    )

@router.get("", response_model=EventListOut)
def list_webhook_events(
    status: str | None = None,
    source: str | None = None,
    page: int = 1,
    limit: int = settings.events_page_default_limit,
    db: Session = Depends(get_db),
    _: None = Depends(
        rate_limit(
            "api:events",
            limit_per_window=settings.rate_limit_api_per_min,
            window_seconds=60,
        )
    ),
) -> EventListOut:
    try:
        status_filter = EventStatus(status) if status else None
    except ValueError:
        raise ValidationError("invalid_status")

    page = max(1, page)
    limit = min(settings.events_page_max_limit, max(1, limit))
    offset = (page - 1) * limit

    try:
        rows = store.list_events(db, status=status_filter, source_name=source, limit=limit, offset=offset)
        total = store.count_events(db, status=status_filter, source_name=source)
    except SQLAlchemyError as e:
        logger.error("listing webhook events failed: %s", type(e).__name__)
        raise InternalError("events_query_failed") from e

    return EventListOut(
        events=[_event_out(r) for r in rows],
        pagination=PaginationOut(page=page, limit=limit, total=total),
    )

@router.post("/replay/{event_id}", response_model=ReplayOut)
def replay_webhook_event(
    event_id: str,
    db: Session = Depends(get_db),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> ReplayOut:
    try:
        event_uuid = uuid.UUID(event_id)
    except ValueError:
        raise NotFoundError("event_not_found")

    try:
        replay_event(db, dispatcher, event_uuid)
    except NotFoundError:
        raise
    except Exception as e:
        logger.error("replay of event %s failed: %s", event_uuid, type(e).__name__)
        raise InternalError("replay_failed") from e

    return ReplayOut(success=True, eventId=event_uuid)

@router.post("/{provider}", response_model=IngestOut, response_model_exclude_none=True)
async def receive_webhook(
    provider: str,
    request: Request,
    db: Session = Depends(get_db),
    dispatcher: Dispatcher = Depends(get_dispatcher),
    _: None = Depends(
        rate_limit(
            "webhooks",
            limit_per_window=settings.rate_limit_webhooks_per_min,
            window_seconds=60,
        )
    ),
) -> dict:
    spec = _provider_or_404(provider)

    raw = await request.body()
    if len(raw) > settings.max_payload_kb * 1024:
        raise PayloadTooLargeError()

    headers = {k.lower(): v for k, v in request.headers.items()}
    return ingest_webhook(db, dispatcher, spec, raw, headers)

@router.get("/{provider}", response_model=ProbeOut)
def webhook_probe(provider: str) -> ProbeOut:
    spec = _provider_or_404(provider)
    return ProbeOut(provider=spec.name, status="ok", timestamp=datetime.now(timezone.utc))
