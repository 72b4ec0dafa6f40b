from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from webhook_gateway.webhooks.signatures import SignatureScheme

PayloadLookup = Callable[[dict[str, Any]], Any]

def _payload_id(payload: dict[str, Any]) -> Any:
    return payload.get("id")

def _payload_type(payload: dict[str, Any]) -> Any:
    return payload.get("type")

def _resend_email_id(payload: dict[str, Any]) -> Any:
    data = payload.get("data")
    return data.get("email_id") if isinstance(data, dict) else None

@dataclass(frozen=True)
class ProviderSpec:
    name: str
    scheme: SignatureScheme
    signature_header: str
    # event type from a header; when None it comes from the payload
    event_type_header: str | None = None
    event_type_from_payload: PayloadLookup | None = None
    # payload has no type at all -> this value, None means reject with 400
    default_event_type: str | None = None
    delivery_id_header: str | None = None
    event_id_from_payload: PayloadLookup | None = None

PROVIDERS: dict[str, ProviderSpec] = {
    "github": ProviderSpec(
        name="github",
        scheme=SignatureScheme.github,
        signature_header="x-hub-signature-256",
        event_type_header="x-github-event",
        delivery_id_header="x-github-delivery",
        event_id_from_payload=_payload_id,
    ),
    "stripe": ProviderSpec(
        name="stripe",
        scheme=SignatureScheme.timestamped,
        signature_header="stripe-signature",
        event_type_from_payload=_payload_type,
        event_id_from_payload=_payload_id,
    ),
    "resend": ProviderSpec(
        name="resend",
        scheme=SignatureScheme.hmac_sha256,
        signature_header="resend-signature",
        event_type_from_payload=_payload_type,
        default_event_type="unknown",
        event_id_from_payload=_resend_email_id,
    ),
}

def get_provider(name: str) -> ProviderSpec | None:
    return PROVIDERS.get(name)
