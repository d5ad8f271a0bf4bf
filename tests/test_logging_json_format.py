import json

from fastapi.testclient import TestClient

from zoya import logging as zoya_logging
from zoya.config import settings
from zoya.main import create_app


def _json_lines(text: str) -> list[dict]:
    out = []
    for line in text.splitlines():
        line = line.strip()
        if not line.startswith("{"):
            continue
        try:
            out.append(json.loads(line))
        except json.JSONDecodeError:
            continue
    return out


def test_request_complete_is_json_with_request_id(capfd) -> None:
    with TestClient(create_app()) as client:
        client.get("/healthz", headers={"X-Request-ID": "req-42"})
    captured = capfd.readouterr()
    entries = [e for e in _json_lines(captured.err + captured.out) if e.get("event") == "request_complete"]
    assert entries, "request_complete log line not found"
    entry = entries[-1]
    assert entry["path"] == "/healthz"
    assert entry["status_code"] == 200
    assert entry["request_id"] == "req-42"
    assert entry["level"] == "info"
    assert "timestamp" in entry


def test_sensitive_keys_are_masked(monkeypatch) -> None:
    monkeypatch.setattr(settings, "openai_api_key", None)
    event = {
        "event": "x",
        "api_key": "sk-abcdefghijklmnop",
        "nested": {"password": "hunter2"},
        "other": "plain",
    }
    out = zoya_logging._sanitize_event_dict(None, "info", event)
    assert out["api_key"] == "sk-a…mnop"
    assert out["nested"]["password"] == "***"
    assert out["other"] == "plain"


def test_configured_key_is_masked_inside_messages(monkeypatch) -> None:
    monkeypatch.setattr(settings, "openai_api_key", "sk-live-1234567890")
    out = zoya_logging._sanitize_event_dict(None, "info", {"event": "x", "error": "bad key sk-live-1234567890"})
    assert out["error"] == "bad key sk-l…7890"
