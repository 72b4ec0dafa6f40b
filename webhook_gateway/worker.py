from __future__ import annotations

import argparse
import logging
import time
import uuid
from typing import Callable

import redis
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from webhook_gateway.config import settings
from webhook_gateway.db import SessionLocal
from webhook_gateway.errors import EventMissingError, ProcessingError
from webhook_gateway.log import configure_logging
from webhook_gateway.redis_client import redis_client
from webhook_gateway.webhooks.dispatcher import Job
from webhook_gateway.webhooks.processor import process_event

logger = logging.getLogger(__name__)

# python -m webhook_gateway.worker [--burst]

class Worker:
    def __init__(
        self,
        client: redis.Redis,
        session_factory: Callable[[], Session] = SessionLocal,
        *,
        queue_key: str = settings.webhook_queue_key,
        delayed_key: str = settings.webhook_delayed_key,
        dead_letter_key: str = settings.webhook_dead_letter_key,
        max_attempts: int = settings.worker_max_attempts,
        backoff_base_seconds: int = settings.worker_backoff_base_seconds,
        poll_timeout_seconds: int = settings.worker_poll_timeout_seconds,
    ) -> None:
        self.client = client
        self.session_factory = session_factory
        self.queue_key = queue_key
        self.delayed_key = delayed_key
        self.dead_letter_key = dead_letter_key
        self.max_attempts = max_attempts
        self.backoff_base_seconds = backoff_base_seconds
        self.poll_timeout_seconds = poll_timeout_seconds

    def backoff_seconds(self, attempt: int) -> int:
        return self.backoff_base_seconds * (4 ** (attempt - 1))

    def promote_due(self, now: float | None = None) -> int:
        now = time.time() if now is None else now
        due = self.client.zrangebyscore(self.delayed_key, "-inf", now)
        moved = 0
        for raw in due:
            # zrem wins only once, so two workers never both promote a job
            if self.client.zrem(self.delayed_key, raw):
                self.client.lpush(self.queue_key, raw)
                moved += 1
        return moved

    def dead_letter(self, raw: str, reason: str) -> None:
        self.client.lpush(self.dead_letter_key, raw)
        logger.error("job dead-lettered (%s): %s", reason, raw)

    def handle(self, raw: str) -> str:
        try:
            job = Job.loads(raw)
            event_id = uuid.UUID(job.event_id)
        except ValueError:
            self.dead_letter(raw, "malformed job")
            return "dead_lettered"

        db = self.session_factory()
        try:
            process_event(db, event_id)
        except EventMissingError:
            self.dead_letter(raw, "event not found")
            return "dead_lettered"
        except ProcessingError as e:
            return self._retry_or_dead_letter(raw, job, event_id, e.message)
        except SQLAlchemyError as e:
            # db went away mid-attempt, the row keeps whatever state was committed
            return self._retry_or_dead_letter(raw, job, event_id, f"{type(e).__name__}: {e}")
        finally:
            db.close()

        logger.info("event %s processed (attempt %d)", event_id, job.attempt)
        return "processed"

    def _retry_or_dead_letter(self, raw: str, job: Job, event_id: uuid.UUID, message: str) -> str:
        if job.attempt >= self.max_attempts:
            logger.error(
                "event %s failed after %d attempts, waiting for replay: %s",
                event_id,
                job.attempt,
                message,
            )
            self.dead_letter(raw, "attempts exhausted")
            return "dead_lettered"

        delay = self.backoff_seconds(job.attempt)
        retry = Job(event_id=job.event_id, attempt=job.attempt + 1)
        self.client.zadd(self.delayed_key, {retry.dumps(): time.time() + delay})
        logger.warning(
            "event %s retry %d/%d in %ds: %s",
            event_id,
            retry.attempt,
            self.max_attempts,
            delay,
            message,
        )
        return "retry_scheduled"

    def run_once(self, timeout: int | None = None) -> bool:
        # False when the queue was idle
        self.promote_due()
        popped = self.client.brpop(self.queue_key, timeout=self.poll_timeout_seconds if timeout is None else timeout)
        if not popped:
            return False
        _, raw = popped
        self.handle(raw)
        return True

    def run(self, *, burst: bool = False) -> None:
        logger.info("webhook worker started queue=%s max_attempts=%d", self.queue_key, self.max_attempts)
        while True:
            try:
                busy = self.run_once(timeout=1 if burst else None)
            except redis.RedisError as e:
                logger.warning("redis unavailable, backing off: %s", e)
                time.sleep(self.poll_timeout_seconds)
                continue
            except Exception:
                # log and keep consuming
                logger.exception("unexpected error while handling a job")
                continue
            if burst and not busy:
                logger.info("queue drained, exiting")
                return

def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Process queued webhook events.")
    parser.add_argument("--burst", action="store_true", help="exit once the queue is empty")
    args = parser.parse_args(argv)

    configure_logging(settings.log_level, json_output=settings.log_json)
    Worker(redis_client).run(burst=args.burst)

if __name__ == "__main__":
    main()
