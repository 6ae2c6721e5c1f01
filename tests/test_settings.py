import logging

import pytest

from procscribe import settings


def test_api_key_read_at_call_time(monkeypatch):
    with pytest.raises(RuntimeError):
        settings.api_key()
    monkeypatch.setenv("OPENAI_API_KEY", "k")
    assert settings.api_key() == "k"


def test_defaults():
    assert settings.MESSAGE_WINDOW > 0
    assert 0 <= settings.TEMPERATURE <= 2


def test_configure_logging(monkeypatch):
    seen = {}
    monkeypatch.setattr(logging, "basicConfig", lambda **kw: seen.update(kw))
    settings.configure_logging("DEBUG")
    assert seen["level"] == "DEBUG"
    assert "%(levelname)" in seen["format"]
