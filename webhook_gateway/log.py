from __future__ import annotations

import json
import logging
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

_SENSITIVE_KEY_PARTS = ("secret", "password", "token", "api_key", "apikey", "signature")
_REDACTED = "[REDACTED]"

def new_request_id() -> str:
    return uuid.uuid4().hex

def get_request_id() -> str | None:
    return request_id_ctx.get()

def mask(value: str) -> str:
    if len(value) <= 8:
        return "***"
    return f"{value[:4]}***{value[-4:]}"

def redact(value: Any, *, secrets: tuple[str, ...] = ()) -> Any:
    # sensitive-looking keys are replaced wholesale, known secrets are masked inside text
    if isinstance(value, dict):
        out: dict[str, Any] = {}
        for k, v in value.items():
            if any(part in str(k).lower() for part in _SENSITIVE_KEY_PARTS):
                out[k] = _REDACTED
            else:
                out[k] = redact(v, secrets=secrets)
        return out
    if isinstance(value, (list, tuple)):
        return [redact(v, secrets=secrets) for v in value]
    if isinstance(value, str):
        for s in secrets:
            if s:
                value = value.replace(s, _REDACTED)
        return value
    return value

class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "request_id": get_request_id(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        for key in ("provider", "event_id", "status"):
            val = getattr(record, key, None)
            if val is not None:
                entry[key] = val
        return json.dumps(entry, default=str)

class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"
        return True

def configure_logging(level: str = "INFO", *, json_output: bool = False) -> None:
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler()
    if json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.addFilter(RequestIdFilter())
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s")
        )
    root.addHandler(handler)

    for noisy in ("uvicorn.access", "sqlalchemy.engine", "httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
