"""Tests for credential scrubbing, optional observability and env helpers."""

import pytest

from app.telemetry import init_observability, llm_trace, sentry
from app.utils.env import env_int


def test_scrub_event_redacts_google_ads_secrets():
    event = {
        "request": {
            "headers": {"Authorization": "Bearer ya29.secret", "developer-token": "dev", "Accept": "application/json"},
            "data": {"refresh_token": "1//refresh", "customer_id": "1234567890"},
        },
        "extra": {"attempts": [{"client_secret": "shh"}]},
        "message": "unchanged",
    }

    scrubbed = sentry.scrub_event(event)

    headers = scrubbed["request"]["headers"]
    assert headers["Authorization"] == sentry.REDACTED
    assert headers["developer-token"] == sentry.REDACTED
    assert headers["Accept"] == "application/json"
    assert scrubbed["request"]["data"] == {"refresh_token": sentry.REDACTED, "customer_id": "1234567890"}
    assert scrubbed["extra"]["attempts"][0]["client_secret"] == sentry.REDACTED
    assert scrubbed["message"] == "unchanged"


def test_observability_disabled_without_keys(monkeypatch):
    for name in ("SENTRY_DSN", "LANGFUSE_PUBLIC_KEY", "LANGFUSE_SECRET_KEY"):
        monkeypatch.delenv(name, raising=False)

    assert init_observability() == {"sentry": False, "langfuse": False}

    # no-ops while disabled
    llm_trace.log_generation(name="x", model="m", input_messages=[], output="")
    llm_trace.log_fallback("x", "no key")
    sentry.capture_exception(RuntimeError("boom"))
    sentry.set_google_ads_context("1234567890", None)


def test_log_fallback_records_event(monkeypatch):
    calls = []

    class FakeLangfuse:
        def create_event(self, **kwargs):
            calls.append(kwargs)

    monkeypatch.setattr(llm_trace, "_client", FakeLangfuse())

    llm_trace.log_fallback("analyze_campaigns", "Invalid JSON from model")

    assert calls == [{
        "name": "analyze_campaigns.fallback",
        "level": "WARNING",
        "status_message": "Invalid JSON from model",
    }]


def test_env_int(monkeypatch):
    monkeypatch.delenv("ADSCOPE_TEST_INT", raising=False)
    assert env_int("ADSCOPE_TEST_INT", 7) == 7

    monkeypatch.setenv("ADSCOPE_TEST_INT", "42")
    assert env_int("ADSCOPE_TEST_INT", 7) == 42

    monkeypatch.setenv("ADSCOPE_TEST_INT", "soon")
    with pytest.raises(RuntimeError):
        env_int("ADSCOPE_TEST_INT", 7)
