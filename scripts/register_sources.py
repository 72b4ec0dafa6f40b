from __future__ import annotations

import argparse
import secrets
from dataclasses import dataclass

from rich import print
from sqlalchemy import select
from sqlalchemy.orm import Session

from webhook_gateway.config import settings
from webhook_gateway.db import session_scope
from webhook_gateway.log import mask
from webhook_gateway.models.webhook_source import WebhookSource
from webhook_gateway.webhooks.providers import PROVIDERS

@dataclass
class RegisterResult:
    name: str
    created: bool
    is_active: bool
    secret_hint: str

def _configured_secret(name: str) -> str | None:
    return {
        "github": settings.github_webhook_secret,
        "stripe": settings.stripe_webhook_secret,
        "resend": settings.resend_webhook_secret,
    }.get(name)

def upsert_source(db: Session, name: str, secret: str, *, active: bool = True) -> RegisterResult:
    spec = PROVIDERS[name]
    src = db.scalar(select(WebhookSource).where(WebhookSource.name == name))
    created = src is None
    if src is None:
        src = WebhookSource(name=name, secret=secret, signature_header=spec.signature_header, is_active=active)
        db.add(src)
    else:
        # keep it stable if you re-run
        src.secret = secret
        src.signature_header = spec.signature_header
        src.is_active = active
    db.flush()
    return RegisterResult(name=name, created=created, is_active=active, secret_hint=mask(secret))

def register(names: list[str], *, generate: bool, deactivate: bool) -> list[RegisterResult]:
    results: list[RegisterResult] = []
    with session_scope() as db:
        for name in names:
            secret = _configured_secret(name)
            if not secret and generate:
                secret = secrets.token_hex(32)
                print(f"[yellow]{name}[/yellow]: generated secret {secret} (store it with the provider)")
            if not secret:
                print(f"[red]{name}[/red]: no secret configured ({name.upper()}_WEBHOOK_SECRET), skipped")
                continue
            results.append(upsert_source(db, name, secret, active=not deactivate))
    return results

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create or update webhook sources.")
    parser.add_argument("providers", nargs="*", default=sorted(PROVIDERS), choices=sorted(PROVIDERS))
    parser.add_argument("--generate", action="store_true", help="generate a secret when none is configured")
    parser.add_argument("--deactivate", action="store_true", help="register the sources as inactive")
    args = parser.parse_args()

    for r in register(args.providers, generate=args.generate, deactivate=args.deactivate):
        verb = "created" if r.created else "updated"
        print(f"{r.name}: {verb} active={r.is_active} secret={r.secret_hint}")
