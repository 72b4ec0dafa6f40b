import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel

class IngestOut(BaseModel):
    success: bool
    eventId: str | None = None
    eventType: str | None = None
    deduped: bool | None = None

class ReplayOut(BaseModel):
    success: bool
    eventId: uuid.UUID

class ProbeOut(BaseModel):
    provider: str
    status: str
    timestamp: datetime

class EventOut(BaseModel):
    id: uuid.UUID
    source_id: uuid.UUID
    source: str | None
    event_id: str
    event_type: str
    status: str
    error_message: str | None
    retry_count: int
    signature: str
    payload: Any | None
    headers: dict[str, Any] | None
    received_at: datetime
    processed_at: datetime | None
    created_at: datetime
    updated_at: datetime

class PaginationOut(BaseModel):
    page: int
    limit: int
    total: int

class EventListOut(BaseModel):
    events: list[EventOut]
    pagination: PaginationOut
