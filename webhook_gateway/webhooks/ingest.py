from __future__ import annotations

import json
import logging
import time
from typing import Any

from sqlalchemy.orm import Session

from webhook_gateway.config import settings
from webhook_gateway.errors import (
    AuthenticationError,
    ConfigurationError,
    InternalError,
    ValidationError,
    WebhookError,
)
from webhook_gateway.log import redact
from webhook_gateway.webhooks import store
from webhook_gateway.webhooks.dispatcher import Dispatcher
from webhook_gateway.webhooks.providers import ProviderSpec
from webhook_gateway.webhooks.signatures import SignatureScheme, verify_signature

logger = logging.getLogger(__name__)

def _audit(provider: str, event_type: str, event_id: str, status: str) -> None:
    logger.info(
        "WEBHOOK_AUDIT provider=%s event=%s id=%s status=%s",
        provider,
        event_type,
        event_id,
        status,
        extra={"provider": provider, "event_id": event_id, "status": status},
    )

def _clean(value: Any) -> str | None:
    if value is None:
        return None
    s = str(value).strip()
    return s or None

def derive_event_type(spec: ProviderSpec, headers: dict[str, str], payload: dict[str, Any]) -> str:
    if spec.event_type_header:
        event_type = _clean(headers.get(spec.event_type_header))
    elif spec.event_type_from_payload:
        event_type = _clean(spec.event_type_from_payload(payload))
    else:
        event_type = None

    event_type = event_type or spec.default_event_type
    if not event_type:
        raise ValidationError("missing_event_type")
    return event_type

def derive_event_id(
    spec: ProviderSpec,
    headers: dict[str, str],
    payload: dict[str, Any],
    event_type: str,
    received_ms: int,
) -> str:
    # delivery header, then payload id, then "<type>_<receive millis>"
    # the last one only dedups retries landing in the same millisecond
    if spec.delivery_id_header:
        delivery = _clean(headers.get(spec.delivery_id_header))
        if delivery:
            return delivery
    if spec.event_id_from_payload:
        embedded = _clean(spec.event_id_from_payload(payload))
        if embedded:
            return embedded
    return f"{event_type}_{received_ms}"

def _verify_options(spec: ProviderSpec) -> dict[str, Any]:
    if spec.scheme == SignatureScheme.timestamped:
        return {"tolerance_seconds": settings.stripe_signature_tolerance_seconds}
    return {}

def ingest_webhook(
    db: Session,
    dispatcher: Dispatcher,
    spec: ProviderSpec,
    body: bytes,
    headers: dict[str, str],
) -> dict[str, Any]:
    received_ms = int(time.time() * 1000)

    secret = ""
    try:
        source = store.get_source(db, spec.name)

        # a registered source may carry its own header name, a missing header is a 400 either way
        header_name = (source.signature_header if source is not None else "") or spec.signature_header
        header_name = header_name.lower()
        signature = headers.get(header_name)
        if not signature:
            _audit(spec.name, "unknown", "unknown", "missing_signature")
            raise ValidationError(f"missing {header_name}")
        if spec.event_type_header and not _clean(headers.get(spec.event_type_header)):
            raise ValidationError(f"missing {spec.event_type_header}")

        if source is None:
            logger.error("no active webhook source configured for provider=%s", spec.name)
            raise ConfigurationError()
        secret = source.secret

        if not verify_signature(spec.scheme, body, signature, source.secret, **_verify_options(spec)):
            _audit(spec.name, "unknown", "unknown", "signature_failed")
            raise AuthenticationError()

        # parse only after verification, the signature covers the raw bytes
        try:
            payload = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            raise ValidationError("invalid_json")
        if not isinstance(payload, dict):
            raise ValidationError("invalid_json")

        event_type = derive_event_type(spec, headers, payload)
        event_id = derive_event_id(spec, headers, payload, event_type, received_ms)

        result = store.insert_event_if_absent(
            db,
            source_id=source.id,
            event_id=event_id,
            event_type=event_type,
            payload=payload,
            headers=dict(headers),
            signature=signature,
        )
        if result.already_exists:
            _audit(spec.name, event_type, event_id, "duplicate")
            return {"success": True, "deduped": True}

        dispatcher.enqueue(result.event.id)
        _audit(spec.name, event_type, event_id, "enqueued")
        return {"success": True, "eventId": event_id, "eventType": event_type}

    except WebhookError:
        raise
    except Exception as e:
        logger.error(
            "webhook intake failed provider=%s: %s: %s",
            spec.name,
            type(e).__name__,
            redact(str(e), secrets=(secret,)),
        )
        raise InternalError() from e
