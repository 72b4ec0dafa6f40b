from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy.orm import Session

from webhook_gateway.errors import EventMissingError, ProcessingError
from webhook_gateway.models.enums import EventStatus
from webhook_gateway.webhooks import store

logger = logging.getLogger(__name__)

GITHUB_EVENTS = {"push", "pull_request", "issues"}
STRIPE_EVENTS = {"checkout.session.completed", "payment_intent.succeeded", "invoice.payment_succeeded"}
RESEND_EVENTS = {"email.delivered", "email.bounced", "email.complained"}

def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}

def _github_summary(payload: dict[str, Any]) -> dict[str, Any]:
    return {
        "repository": _as_dict(payload.get("repository")).get("name"),
        "action": payload.get("action"),
    }

def _stripe_summary(payload: dict[str, Any]) -> dict[str, Any]:
    obj = _as_dict(_as_dict(payload.get("data")).get("object")) or payload
    return {
        "id": obj.get("id") or payload.get("id"),
        "amount": obj.get("amount_total") or obj.get("amount"),
    }

def _resend_summary(payload: dict[str, Any]) -> dict[str, Any]:
    data = _as_dict(payload.get("data"))
    to = data.get("to")
    recipients = len(to) if isinstance(to, list) else int(bool(to))
    return {"email_id": data.get("email_id"), "recipients": recipients}

_CATEGORIES = (
    ("github", GITHUB_EVENTS, _github_summary),
    ("stripe", STRIPE_EVENTS, _stripe_summary),
    ("resend", RESEND_EVENTS, _resend_summary),
)

def classify_event(provider: str | None, event_type: str, payload: Any) -> str:
    # recipient addresses are counted, not logged
    body = _as_dict(payload)
    for name, known, summarize in _CATEGORIES:
        if event_type in known and provider in (None, name):
            logger.info("processing %s %s: %s", name, event_type, summarize(body))
            return name
    logger.info("processing unknown event type: provider=%s type=%s", provider, event_type)
    return "unknown"

# received -> verified -> processed, or -> failed (retry_count + 1) on any exception
def process_event(db: Session, event_id: uuid.UUID) -> EventStatus:
    # step A
    event = store.get_event(db, event_id)
    if event is None:
        raise EventMissingError(event_id)

    if event.status == EventStatus.processed.value:
        logger.info("event %s already processed, skipping redelivery", event_id)
        return EventStatus.processed

    provider = event.source.name if event.source is not None else None
    event_type = event.event_type
    payload = event.payload

    try:
        # step B, bookkeeping only, the signature was checked at admission
        store.update_status(db, event_id, EventStatus.verified)
        # step C
        classify_event(provider, event_type, payload)
        # step D
        store.update_status(db, event_id, EventStatus.processed)
    except Exception as e:
        db.rollback()
        message = str(e) or type(e).__name__
        store.update_status(db, event_id, EventStatus.failed, message)
        logger.warning("event %s failed: %s", event_id, message)
        raise ProcessingError(event_id, message) from e

    return EventStatus.processed
