import os

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.orm import Session, sessionmaker

from webhook_gateway.config import settings
from webhook_gateway.db import get_db, make_engine
from webhook_gateway.main import create_app
from webhook_gateway.models.base import Base
from webhook_gateway.models.webhook_source import WebhookSource
from webhook_gateway.ratelimit import InMemoryRateLimiter, get_rate_limiter
from webhook_gateway.webhooks.dispatcher import get_dispatcher
from webhook_gateway.webhooks.providers import PROVIDERS

GITHUB_SECRET = "gh_test_secret_value"
STRIPE_SECRET = "whsec_test_secret_value"
RESEND_SECRET = "re_test_secret_value"

SECRETS = {"github": GITHUB_SECRET, "stripe": STRIPE_SECRET, "resend": RESEND_SECRET}

# JSONB renders as JSON on sqlite
@compiles(JSONB, "sqlite")
def _compile_jsonb_sqlite(type_, compiler, **kw):
    return "JSON"

class RecordingDispatcher:
    def __init__(self) -> None:
        self.enqueued: list = []

    def enqueue(self, event_id) -> None:
        self.enqueued.append(event_id)

@pytest.fixture()
def session_factory():
    # TEST_DATABASE_URL can point at postgres, default is a throwaway in-memory sqlite
    url = os.environ.get("TEST_DATABASE_URL", "sqlite+pysqlite:///:memory:")
    engine = make_engine(url)

    Base.metadata.create_all(engine)
    try:
        yield sessionmaker(bind=engine, autoflush=False, autocommit=False)
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()

@pytest.fixture()
def db_session(session_factory) -> Session:
    session: Session = session_factory()
    try:
        yield session
    finally:
        session.close()

@pytest.fixture()
def sources(db_session: Session) -> dict[str, WebhookSource]:
    out: dict[str, WebhookSource] = {}
    for name, secret in SECRETS.items():
        src = WebhookSource(
            name=name,
            secret=secret,
            signature_header=PROVIDERS[name].signature_header,
            is_active=True,
        )
        db_session.add(src)
        out[name] = src
    db_session.commit()
    for src in out.values():
        db_session.refresh(src)
    return out

@pytest.fixture()
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()

@pytest.fixture()
def limiter() -> InMemoryRateLimiter:
    return InMemoryRateLimiter()

@pytest.fixture(autouse=True)
def _test_settings(monkeypatch):
    monkeypatch.setattr(settings, "rate_limit_enabled", False)
    monkeypatch.setattr(settings, "require_json_content_type", True)
    monkeypatch.setattr(settings, "stripe_signature_tolerance_seconds", 300)

@pytest.fixture()
def client(db_session: Session, dispatcher: RecordingDispatcher, limiter: InMemoryRateLimiter) -> TestClient:
    app = create_app()

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    return TestClient(app)
