"""Tests for JSON logging and request correlation."""

import json
import logging

from authcore.core.logger import JSONFormatter, ensure_request_id


def _record(**extra):
    record = logging.LogRecord("authcore.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_known_extras():
    payload = json.loads(
        JSONFormatter().format(_record(event="auth.login", user_id=3, request_id="r-1", secret="x"))
    )
    assert payload["message"] == "hello world"
    assert payload["level"] == "INFO"
    assert payload["event"] == "auth.login"
    assert payload["user_id"] == 3
    assert payload["request_id"] == "r-1"
    assert "secret" not in payload


def test_request_id_prefers_incoming_header(app):
    with app.test_request_context("/", headers={"X-Correlation-ID": "corr-9"}):
        assert ensure_request_id() == "corr-9"
        assert ensure_request_id() == "corr-9"


def test_request_id_generated_and_stable_within_request(app):
    with app.test_request_context("/"):
        first = ensure_request_id()
        assert first
        assert ensure_request_id() == first
