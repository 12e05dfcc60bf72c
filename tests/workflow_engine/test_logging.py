"""Tests for structlog configuration and secret redaction."""
import json

import structlog

from services.workflow_engine.app.core.logging import configure_structlog, get_logger


def _render(**event):
    """Run the configured processor chain over one event dict."""
    configure_structlog()
    processors = structlog.get_config()["processors"]
    event_dict = {"event": "test", **event}
    for processor in processors[:-1]:
        event_dict = processor(None, "info", event_dict)
    return json.loads(processors[-1](None, "info", event_dict))


class TestRedaction:
    def test_redacts_access_token_key(self):
        out = _render(shopify_access_token="shpat_abc123")
        assert out["shopify_access_token"] == "[REDACTED]"

    def test_redacts_shopify_header(self):
        out = _render(**{"X-Shopify-Access-Token": "shpat_abc123"})
        assert out["X-Shopify-Access-Token"] == "[REDACTED]"

    def test_redacts_token_inside_strings(self):
        out = _render(error="request with shpat_abc123 failed")
        assert "shpat_abc123" not in out["error"]
        assert "[REDACTED]" in out["error"]

    def test_redacts_bearer(self):
        out = _render(header="Bearer eyJhbGciOiJIUzI1NiJ9.x.y")
        assert out["header"] == "Bearer [REDACTED]"

    def test_plain_values_untouched(self):
        out = _render(approval_id="abc", count=3)
        assert out["approval_id"] == "abc"
        assert out["count"] == 3
        assert out["level"] == "info"


class TestGetLogger:
    def test_logger_accepts_key_values(self):
        configure_structlog()
        get_logger("test").info("approval.created", approval_id="abc")
