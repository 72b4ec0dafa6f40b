from datetime import datetime, timedelta, timezone

from webhook_gateway.models.webhook_event import WebhookEvent

def add_events(db, source, specs):
    base = datetime(2026, 3, 1, tzinfo=timezone.utc)
    for i, (event_id, status) in enumerate(specs):
        db.add(
            WebhookEvent(
                source_id=source.id,
                event_id=event_id,
                event_type="push",
                signature="sha256=00",
                payload={"n": i},
                headers={},
                status=status,
                received_at=base + timedelta(seconds=i),
            )
        )
    db.commit()

def test_filter_failed_github_events(client, db_session, sources):
    add_events(
        db_session,
        sources["github"],
        [("g1", "failed"), ("g2", "processed"), ("g3", "failed"), ("g4", "received")],
    )
    add_events(db_session, sources["stripe"], [("s1", "failed")])

    r = client.get("/webhooks", params={"status": "failed", "source": "github"})
    assert r.status_code == 200, r.text
    body = r.json()

    assert [e["event_id"] for e in body["events"]] == ["g3", "g1"]
    assert all(e["status"] == "failed" and e["source"] == "github" for e in body["events"])
    assert body["pagination"] == {"page": 1, "limit": 20, "total": 2}

def test_event_shape(client, db_session, sources):
    add_events(db_session, sources["resend"], [("r1", "received")])
    event = client.get("/webhooks").json()["events"][0]

    for key in (
        "id",
        "source_id",
        "source",
        "event_id",
        "event_type",
        "status",
        "error_message",
        "retry_count",
        "signature",
        "payload",
        "headers",
        "received_at",
        "processed_at",
        "created_at",
        "updated_at",
    ):
        assert key in event
    assert event["payload"] == {"n": 0}
    assert event["retry_count"] == 0

def test_pagination(client, db_session, sources):
    add_events(db_session, sources["github"], [(f"e{i}", "received") for i in range(5)])

    r = client.get("/webhooks", params={"page": 2, "limit": 2})
    body = r.json()
    assert [e["event_id"] for e in body["events"]] == ["e2", "e1"]
    assert body["pagination"] == {"page": 2, "limit": 2, "total": 5}

    assert client.get("/webhooks", params={"page": 4, "limit": 2}).json()["events"] == []

def test_limit_is_clamped(client, db_session, sources):
    assert client.get("/webhooks", params={"limit": 10_000}).json()["pagination"]["limit"] == 200
    assert client.get("/webhooks", params={"limit": 0}).json()["pagination"]["limit"] == 1
    assert client.get("/webhooks", params={"page": -3}).json()["pagination"]["page"] == 1

def test_invalid_status_is_400(client):
    r = client.get("/webhooks", params={"status": "exploded"})
    assert r.status_code == 400
    assert r.json()["detail"] == "invalid_status"

def test_unknown_source_filter_is_empty(client, db_session, sources):
    add_events(db_session, sources["github"], [("g1", "received")])
    body = client.get("/webhooks", params={"source": "gitlab"}).json()
    assert body["events"] == []
    assert body["pagination"]["total"] == 0
