from __future__ import annotations

import argparse
import hashlib
import hmac
import json
import os
import time
import uuid
from typing import Any

import requests
from rich import print

BASE = os.getenv("API_BASE_URL", "http://127.0.0.1:8000")

def _hex(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()

def github_delivery(secret: str, event: str = "push") -> tuple[bytes, dict[str, str]]:
    if event == "push":
        payload: dict[str, Any] = {
            "ref": "refs/heads/main",
            "repository": {"name": "test-repo", "full_name": "someone/test-repo"},
            "pusher": {"name": "test-user"},
            "commits": [{"id": "abc123", "message": "test commit"}],
        }
    else:
        payload = {
            "action": "opened",
            "number": 1,
            "pull_request": {"id": 123456, "title": "Test PR", "user": {"login": "test-user"}},
            "repository": {"name": "test-repo", "full_name": "someone/test-repo"},
        }
    raw = json.dumps(payload).encode("utf-8")
    return raw, {
        "x-hub-signature-256": "sha256=" + _hex(secret, raw),
        "x-github-event": event,
        "x-github-delivery": str(uuid.uuid4()),
    }

def stripe_delivery(secret: str, event: str = "payment_intent.succeeded") -> tuple[bytes, dict[str, str]]:
    payload = {
        "id": f"evt_test_{uuid.uuid4().hex[:16]}",
        "type": event,
        "data": {"object": {"id": f"pi_test_{uuid.uuid4().hex[:12]}", "amount": 2000, "currency": "usd"}},
    }
    raw = json.dumps(payload).encode("utf-8")
    ts = int(time.time())
    return raw, {"stripe-signature": f"t={ts},v1={_hex(secret, f'{ts}.'.encode('utf-8') + raw)}"}

def resend_delivery(secret: str, event: str = "email.delivered") -> tuple[bytes, dict[str, str]]:
    payload = {
        "type": event,
        "created_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "data": {"email_id": str(uuid.uuid4()), "to": ["someone@example.com"], "subject": "test"},
    }
    raw = json.dumps(payload).encode("utf-8")
    return raw, {"resend-signature": "sha256=" + _hex(secret, raw)}

BUILDERS = {"github": github_delivery, "stripe": stripe_delivery, "resend": resend_delivery}

def send(provider: str, secret: str, event: str | None, *, repeat: int = 1, tamper: bool = False) -> None:
    build = BUILDERS[provider]
    raw, headers = build(secret, event) if event else build(secret)
    if tamper:
        raw = raw.replace(b"test", b"tset", 1)
    headers["content-type"] = "application/json"

    for i in range(repeat):
        r = requests.post(f"{BASE}/webhooks/{provider}", data=raw, headers=headers, timeout=10)
        print(f"[{i + 1}/{repeat}] {provider} -> {r.status_code} {r.text}")

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Send a signed test delivery to the gateway.")
    parser.add_argument("provider", choices=sorted(BUILDERS))
    parser.add_argument("--secret", default=None, help="defaults to <PROVIDER>_WEBHOOK_SECRET")
    parser.add_argument("--event", default=None)
    parser.add_argument("--repeat", type=int, default=1, help="send the identical delivery N times (dedup check)")
    parser.add_argument("--tamper", action="store_true", help="alter the body after signing (expect 401)")
    args = parser.parse_args()

    secret = args.secret or os.getenv(f"{args.provider.upper()}_WEBHOOK_SECRET")
    if not secret:
        raise SystemExit(f"no secret: pass --secret or set {args.provider.upper()}_WEBHOOK_SECRET")
    send(args.provider, secret, args.event, repeat=args.repeat, tamper=args.tamper)
