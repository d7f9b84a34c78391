"""
test_logging_config.py - Logging setup tests

Checks for:
- event line parsing
- JSON line formatting
- LOG_LEVEL / LOG_FORMAT resolution
- HTTP client loggers kept quiet outside DEBUG

Usage: pytest test_logging_config.py
"""

from __future__ import annotations

import json
import logging

import pytest

from logging_config import (
    NOISY_LOGGERS,
    JsonLineFormatter,
    level_from_env,
    parse_event,
    setup_logging,
)


@pytest.fixture(autouse=True)
def _restore_logging(monkeypatch):
    monkeypatch.delenv("LOG_FORMAT", raising=False)
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    yield
    setup_logging()


def _record(message: str, *args) -> logging.LogRecord:
    return logging.LogRecord("rules", logging.INFO, __file__, 1, message, args, None)


def test_parse_event_splits_fields():
    event, fields = parse_event("rule_verdict | rule_id=gi_depth_coverage | status=WARN")
    assert event == "rule_verdict"
    assert fields == {"rule_id": "gi_depth_coverage", "status": "WARN"}


def test_parse_event_keeps_free_text_as_detail():
    event, fields = parse_event("pipeline_start | loading trips | trip_id=23")
    assert event == "pipeline_start"
    assert fields == {"trip_id": "23", "detail": "loading trips"}


def test_parse_event_without_fields():
    assert parse_event("startup") == ("startup", {})


def test_json_formatter_emits_valid_json_with_fields():
    line = JsonLineFormatter().format(
        _record('readiness_rating | trip_id=%s | rating=%s | name=%s', 23, "RED", 'say "hi"')
    )
    payload = json.loads(line)
    assert payload["event"] == "readiness_rating"
    assert payload["trip_id"] == "23"
    assert payload["rating"] == "RED"
    assert payload["name"] == 'say "hi"'
    assert payload["level"] == "INFO"
    assert payload["module"] == "rules"


def test_json_formatter_does_not_let_fields_override_metadata():
    payload = json.loads(JsonLineFormatter().format(_record("evt | level=fake")))
    assert payload["level"] == "INFO"


@pytest.mark.parametrize("raw, expected", [("DEBUG", logging.DEBUG), ("warning", logging.WARNING), ("nope", logging.INFO)])
def test_level_from_env(monkeypatch, raw, expected):
    monkeypatch.setenv("LOG_LEVEL", raw)
    assert level_from_env() == expected


def test_log_format_env_selects_json(monkeypatch):
    monkeypatch.setenv("LOG_FORMAT", "json")
    setup_logging(level=logging.INFO)
    assert isinstance(logging.getLogger().handlers[0].formatter, JsonLineFormatter)


def test_text_format_by_default():
    setup_logging(level=logging.INFO)
    assert not isinstance(logging.getLogger().handlers[0].formatter, JsonLineFormatter)
    assert len(logging.getLogger().handlers) == 1


def test_http_loggers_quiet_unless_debug():
    setup_logging(level=logging.INFO)
    assert all(logging.getLogger(name).level == logging.WARNING for name in NOISY_LOGGERS)
    setup_logging(level=logging.DEBUG)
    assert all(logging.getLogger(name).level == logging.DEBUG for name in NOISY_LOGGERS)
