import redis
from fastapi import APIRouter
from fastapi.responses import JSONResponse

from webhook_gateway.config import settings
from webhook_gateway.db import db_ping
from webhook_gateway.redis_client import redis_client, redis_ping

router = APIRouter(tags=["health"])

@router.get("/health")
def health() -> dict:
    return {"status": "ok"}

def _queue_depth() -> dict[str, int]:
    return {
        "pending": int(redis_client.llen(settings.webhook_queue_key)),
        "delayed": int(redis_client.zcard(settings.webhook_delayed_key)),
        "dead": int(redis_client.llen(settings.webhook_dead_letter_key)),
    }

# readiness: the db holds the ledger, redis carries the job queue
@router.get("/ready")
def ready():
    checks = {"db": db_ping(), "redis": redis_ping()}
    ok = all(checks.values())

    body: dict = {"status": "ok" if ok else "unready", "checks": checks}
    if checks["redis"]:
        try:
            body["queue"] = _queue_depth()
        except redis.RedisError as e:
            body["errors"] = {"queue": e.__class__.__name__}

    return JSONResponse(status_code=200 if ok else 503, content=body)
