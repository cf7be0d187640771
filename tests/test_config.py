# tests/test_config.py
import json
import logging
import sys

import pytest
from pydantic import ValidationError as SettingsError

from assessment_engine.config import DEFAULT_DB_PATH, get_settings
from assessment_engine.log import JSONFormatter


def test_defaults():
    settings = get_settings()
    assert settings.db_path == DEFAULT_DB_PATH
    assert settings.submit_grace_seconds == 60
    assert settings.default_max_attempts == 1


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("ASSESSMENT_SUBMIT_GRACE_SECONDS", "15")
    monkeypatch.setenv("ASSESSMENT_LOG_JSON", "false")
    settings = get_settings()
    assert settings.submit_grace_seconds == 15
    assert settings.log_json is False


def test_settings_are_cached(monkeypatch):
    first = get_settings()
    monkeypatch.setenv("ASSESSMENT_SUBMIT_GRACE_SECONDS", "5")
    assert get_settings() is first


def test_negative_grace_rejected(monkeypatch):
    monkeypatch.setenv("ASSESSMENT_SUBMIT_GRACE_SECONDS", "-1")
    with pytest.raises(SettingsError):
        get_settings()


def _record(msg="submitted", **extra):
    record = logging.LogRecord("assessment_engine.session", logging.INFO, __file__, 1, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_context():
    payload = json.loads(JSONFormatter().format(_record(attempt_id=7, student_id="s1")))
    assert payload["level"] == "INFO"
    assert payload["logger"] == "assessment_engine.session"
    assert payload["msg"] == "submitted"
    assert payload["attempt_id"] == 7
    assert payload["student_id"] == "s1"
    assert "questionnaire_id" not in payload


def test_json_formatter_includes_exception():
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())
    payload = json.loads(JSONFormatter().format(record))
    assert "RuntimeError: boom" in payload["exc_info"]


def test_json_formatter_uses_record_time():
    record = _record()
    record.created = 1767225600.12345
    assert json.loads(JSONFormatter().format(record))["ts"] == 1767225600.123
