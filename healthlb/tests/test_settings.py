"""Unit tests for Settings parsing and validation."""

import pytest
from pydantic import ValidationError

from healthlb.settings import Settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("LB_BACKENDS", "LB_PORT", "LB_HEALTH_INTERVAL", "LB_LOG_FORMAT"):
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = Settings(backends=["http://a.test:8001"])
    assert settings.port == 8080
    assert settings.health_interval == 0.005
    assert settings.probe_timeout == 1.0
    assert settings.request_timeout == 30.0
    assert settings.log_format == "console"


def test_backends_from_comma_separated_env(monkeypatch):
    monkeypatch.setenv("LB_BACKENDS", "http://a.test:8001, http://b.test:8002/")
    monkeypatch.setenv("LB_PORT", "9000")
    settings = Settings()
    assert settings.backends == ["http://a.test:8001", "http://b.test:8002"]
    assert settings.port == 9000


def test_backends_from_json_env(monkeypatch):
    monkeypatch.setenv("LB_BACKENDS", '["http://a.test:8001"]')
    assert Settings().backends == ["http://a.test:8001"]


def test_backends_required():
    with pytest.raises(ValidationError):
        Settings()


@pytest.mark.parametrize("backends", [[], ["ftp://a.test"], ["http://a.test:8001/api"]])
def test_bad_backends_rejected(backends):
    with pytest.raises(ValidationError):
        Settings(backends=backends)


@pytest.mark.parametrize("field, value", [("port", 0), ("health_interval", 0), ("log_format", "xml")])
def test_bad_values_rejected(field, value):
    with pytest.raises(ValidationError):
        Settings(backends=["http://a.test:8001"], **{field: value})
