import json
import logging

from webhook_gateway.log import JsonFormatter, mask, redact, request_id_ctx

def test_redact_masks_sensitive_keys_recursively():
    value = {
        "name": "github",
        "secret": "gh_secret",
        "nested": {"api_key": "k", "ok": [1, {"access_token": "t"}]},
        "x-hub-signature-256": "sha256=abc",
    }
    assert redact(value) == {
        "name": "github",
        "secret": "[REDACTED]",
        "nested": {"api_key": "[REDACTED]", "ok": [1, {"access_token": "[REDACTED]"}]},
        "x-hub-signature-256": "[REDACTED]",
    }

def test_redact_replaces_known_secrets_in_text():
    msg = "connect failed for whsec_abc123 (retrying with whsec_abc123)"
    assert redact(msg, secrets=("whsec_abc123", "")) == "connect failed for [REDACTED] (retrying with [REDACTED])"

def test_mask():
    assert mask("short") == "***"
    assert mask("whsec_0123456789") == "whse***6789"

def test_json_formatter_carries_request_id_and_extras():
    record = logging.LogRecord("webhook_gateway.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
    record.provider = "stripe"

    token = request_id_ctx.set("req-9")
    try:
        line = JsonFormatter().format(record)
    finally:
        request_id_ctx.reset(token)

    entry = json.loads(line)
    assert entry["message"] == "hello world"
    assert entry["request_id"] == "req-9"
    assert entry["provider"] == "stripe"
    assert entry["level"] == "INFO"
