from __future__ import annotations

import logging
import uuid

from sqlalchemy.orm import Session

from webhook_gateway.errors import NotFoundError
from webhook_gateway.models.enums import EventStatus
from webhook_gateway.webhooks import store
from webhook_gateway.webhooks.dispatcher import Dispatcher

logger = logging.getLogger(__name__)

# the only way back from failed, retry_count is left alone so replays stay visible
def replay_event(db: Session, dispatcher: Dispatcher, event_id: uuid.UUID) -> uuid.UUID:
    event = store.get_event(db, event_id)
    if event is None:
        raise NotFoundError("event_not_found")

    previous = event.status
    store.update_status(db, event_id, EventStatus.received)
    dispatcher.enqueue(event_id)

    logger.info("replayed event %s (was %s, retry_count=%s)", event_id, previous, event.retry_count)
    return event_id
