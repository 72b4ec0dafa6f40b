from __future__ import annotations

import json
import logging
import time
import uuid
from dataclasses import asdict, dataclass, field
from typing import Protocol

import redis

from webhook_gateway.config import settings
from webhook_gateway.redis_client import redis_client

logger = logging.getLogger(__name__)

@dataclass
class Job:
    event_id: str
    attempt: int = 1
    enqueued_at: float = field(default_factory=time.time)

    def dumps(self) -> str:
        return json.dumps(asdict(self), separators=(",", ":"))

    @classmethod
    def loads(cls, raw: str) -> "Job":
        data = json.loads(raw)
        if not isinstance(data, dict) or not data.get("event_id"):
            raise ValueError("job without event_id")
        return cls(
            event_id=str(data["event_id"]),
            attempt=int(data.get("attempt") or 1),
            enqueued_at=float(data.get("enqueued_at") or time.time()),
        )

class Dispatcher(Protocol):
    def enqueue(self, event_id: uuid.UUID) -> None: ...

class RedisDispatcher:
    def __init__(self, client: redis.Redis, queue_key: str) -> None:
        self.client = client
        self.queue_key = queue_key

    def enqueue(self, event_id: uuid.UUID) -> None:
        # RedisError propagates, the caller answers 500 and replay can recover the row
        self.client.lpush(self.queue_key, Job(event_id=str(event_id)).dumps())
        logger.info("enqueued webhook event %s on %s", event_id, self.queue_key)

def get_dispatcher() -> Dispatcher:
    return RedisDispatcher(redis_client, settings.webhook_queue_key)
