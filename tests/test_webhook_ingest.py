import hashlib
import hmac
import json
import time

import redis
from sqlalchemy import func, select

from conftest import GITHUB_SECRET, RESEND_SECRET, STRIPE_SECRET
from webhook_gateway.config import settings
from webhook_gateway.models.webhook_event import WebhookEvent
from webhook_gateway.webhooks.dispatcher import get_dispatcher

def hex_sig(secret: str, raw: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), raw, hashlib.sha256).hexdigest()

def github_headers(raw: bytes, *, event: str = "push", delivery: str | None = "abc123", secret: str = GITHUB_SECRET) -> dict:
    headers = {
        "content-type": "application/json",
        "x-hub-signature-256": "sha256=" + hex_sig(secret, raw),
        "x-github-event": event,
    }
    if delivery:
        headers["x-github-delivery"] = delivery
    return headers

def stripe_sig(secret: str, raw: bytes, ts: int | None = None) -> str:
    ts = ts or int(time.time())
    return f"t={ts},v1={hex_sig(secret, f'{ts}.'.encode('utf-8') + raw)}"

def rows(db_session) -> list[WebhookEvent]:
    return list(db_session.scalars(select(WebhookEvent)).all())

PUSH = json.dumps({"ref": "refs/heads/main", "repository": {"name": "test-repo"}}).encode("utf-8")

def test_valid_delivery_is_stored_and_dispatched_then_deduped(client, db_session, sources, dispatcher):
    r1 = client.post("/webhooks/github", content=PUSH, headers=github_headers(PUSH))
    assert r1.status_code == 200, r1.text
    assert r1.json() == {"success": True, "eventId": "abc123", "eventType": "push"}

    stored = rows(db_session)
    assert len(stored) == 1
    ev = stored[0]
    assert ev.status == "received"
    assert ev.event_id == "abc123"
    assert ev.source_id == sources["github"].id
    assert ev.payload == {"ref": "refs/heads/main", "repository": {"name": "test-repo"}}
    assert ev.headers["x-github-event"] == "push"
    assert ev.signature.startswith("sha256=")
    assert dispatcher.enqueued == [ev.id]

    r2 = client.post("/webhooks/github", content=PUSH, headers=github_headers(PUSH))
    assert r2.status_code == 200
    assert r2.json() == {"success": True, "deduped": True}

    assert db_session.scalar(select(func.count()).select_from(WebhookEvent)) == 1
    assert len(dispatcher.enqueued) == 1

def test_bad_signature_is_401(client, db_session, sources, dispatcher):
    headers = github_headers(PUSH)
    headers["x-hub-signature-256"] = "sha256=deadbeef"

    r = client.post("/webhooks/github", content=PUSH, headers=headers)
    assert r.status_code == 401
    assert r.json()["detail"] == "invalid_signature"
    assert rows(db_session) == []
    assert dispatcher.enqueued == []

def test_body_tampered_after_signing_is_401(client, sources):
    headers = github_headers(PUSH)
    tampered = PUSH.replace(b"main", b"mian")
    assert client.post("/webhooks/github", content=tampered, headers=headers).status_code == 401

def test_missing_signature_header_is_400(client, db_session, sources):
    headers = github_headers(PUSH)
    del headers["x-hub-signature-256"]

    r = client.post("/webhooks/github", content=PUSH, headers=headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "missing x-hub-signature-256"
    assert rows(db_session) == []

def test_github_requires_event_header(client, sources):
    headers = github_headers(PUSH)
    del headers["x-github-event"]
    assert client.post("/webhooks/github", content=PUSH, headers=headers).status_code == 400

def test_missing_source_is_a_configuration_error(client, db_session):
    # no webhook_sources rows at all
    r = client.post("/webhooks/github", content=PUSH, headers=github_headers(PUSH))
    assert r.status_code == 500
    assert r.json()["detail"] == "source_not_configured"

def test_inactive_source_is_a_configuration_error(client, db_session, sources):
    sources["github"].is_active = False
    db_session.commit()
    r = client.post("/webhooks/github", content=PUSH, headers=github_headers(PUSH))
    assert r.status_code == 500

def test_github_event_id_falls_back_to_payload_then_timestamp(client, db_session, sources):
    raw = json.dumps({"id": 987, "zen": "keep it simple"}).encode("utf-8")
    r = client.post("/webhooks/github", content=raw, headers=github_headers(raw, event="ping", delivery=None))
    assert r.status_code == 200
    assert r.json()["eventId"] == "987"

    raw2 = json.dumps({"zen": "no id here"}).encode("utf-8")
    r2 = client.post("/webhooks/github", content=raw2, headers=github_headers(raw2, event="ping", delivery=None))
    assert r2.status_code == 200
    event_id = r2.json()["eventId"]
    prefix, _, millis = event_id.partition("_")
    assert prefix == "ping"
    assert millis.isdigit()

def test_stripe_delivery(client, db_session, sources, dispatcher):
    payload = {"id": "evt_1", "type": "payment_intent.succeeded", "data": {"object": {"id": "pi_1", "amount": 500}}}
    raw = json.dumps(payload).encode("utf-8")
    headers = {"content-type": "application/json", "stripe-signature": stripe_sig(STRIPE_SECRET, raw)}

    r = client.post("/webhooks/stripe", content=raw, headers=headers)
    assert r.status_code == 200, r.text
    assert r.json() == {"success": True, "eventId": "evt_1", "eventType": "payment_intent.succeeded"}
    assert len(dispatcher.enqueued) == 1

    r2 = client.post("/webhooks/stripe", content=raw, headers=headers)
    assert r2.json().get("deduped") is True

def test_stripe_rejects_bad_or_stale_signature(client, sources):
    raw = json.dumps({"id": "evt_2", "type": "invoice.paid"}).encode("utf-8")

    r = client.post("/webhooks/stripe", content=raw, headers={"content-type": "application/json", "stripe-signature": "t=1,v1=bad"})
    assert r.status_code == 401

    stale = stripe_sig(STRIPE_SECRET, raw, ts=int(time.time()) - 3600)
    r = client.post("/webhooks/stripe", content=raw, headers={"content-type": "application/json", "stripe-signature": stale})
    assert r.status_code == 401

def test_stripe_requires_event_type(client, sources):
    raw = json.dumps({"id": "evt_3"}).encode("utf-8")
    headers = {"content-type": "application/json", "stripe-signature": stripe_sig(STRIPE_SECRET, raw)}
    r = client.post("/webhooks/stripe", content=raw, headers=headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "missing_event_type"

def test_resend_delivery_uses_email_id(client, sources):
    payload = {"type": "email.delivered", "data": {"email_id": "em_42", "to": ["someone@example.com"]}}
    raw = json.dumps(payload).encode("utf-8")
    headers = {"content-type": "application/json", "resend-signature": "sha256=" + hex_sig(RESEND_SECRET, raw)}

    r = client.post("/webhooks/resend", content=raw, headers=headers)
    assert r.status_code == 200, r.text
    assert r.json() == {"success": True, "eventId": "em_42", "eventType": "email.delivered"}

def test_resend_without_type_is_unknown(client, sources):
    raw = json.dumps({"data": {}}).encode("utf-8")
    headers = {"content-type": "application/json", "resend-signature": hex_sig(RESEND_SECRET, raw)}
    r = client.post("/webhooks/resend", content=raw, headers=headers)
    assert r.status_code == 200
    assert r.json()["eventType"] == "unknown"
    assert r.json()["eventId"].startswith("unknown_")

def test_signed_non_json_body_is_400(client, sources):
    raw = b"not json at all"
    r = client.post("/webhooks/github", content=raw, headers=github_headers(raw))
    assert r.status_code == 400
    assert r.json()["detail"] == "invalid_json"

def test_enqueue_failure_is_500_but_event_is_kept(client, db_session, sources):
    class BrokenDispatcher:
        def enqueue(self, event_id):
            raise redis.ConnectionError(f"cannot reach queue ({GITHUB_SECRET})")

    client.app.dependency_overrides[get_dispatcher] = lambda: BrokenDispatcher()

    r = client.post("/webhooks/github", content=PUSH, headers=github_headers(PUSH))
    assert r.status_code == 500
    assert r.json() == {"detail": "webhook_processing_failed"}
    assert GITHUB_SECRET not in r.text

    stored = rows(db_session)
    assert len(stored) == 1
    assert stored[0].status == "received"

def test_unknown_provider_is_404(client):
    r = client.post("/webhooks/bitbucket", content=b"{}", headers={"content-type": "application/json"})
    assert r.status_code == 404
    assert client.get("/webhooks/bitbucket").status_code == 404

def test_probe(client):
    r = client.get("/webhooks/github")
    assert r.status_code == 200
    assert r.json()["provider"] == "github"
    assert r.json()["status"] == "ok"

def test_content_type_and_size_guards(client, sources, monkeypatch):
    headers = github_headers(PUSH)
    headers["content-type"] = "text/plain"
    r = client.post("/webhooks/github", content=PUSH, headers=headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "invalid_content_type"

    monkeypatch.setattr(settings, "max_payload_kb", 1)
    big = json.dumps({"blob": "x" * 4096}).encode("utf-8")
    r = client.post("/webhooks/github", content=big, headers=github_headers(big))
    assert r.status_code == 413

def test_request_id_is_echoed(client):
    r = client.get("/health", headers={"x-request-id": "req-123"})
    assert r.headers["x-request-id"] == "req-123"
    assert client.get("/health").headers["x-request-id"]

def test_source_signature_header_overrides_provider_default(client, db_session, sources):
    sources["github"].signature_header = "X-Signature-Relay"
    db_session.commit()

    headers = github_headers(PUSH)
    relayed = dict(headers)
    relayed["x-signature-relay"] = relayed.pop("x-hub-signature-256")

    r = client.post("/webhooks/github", content=PUSH, headers=relayed)
    assert r.status_code == 200, r.text
    assert r.json()["eventId"] == "abc123"

    r = client.post("/webhooks/github", content=PUSH, headers=headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "missing x-signature-relay"
