"""Tests for settings loading."""
import pytest

from app.config import AuthMode, ConfigurationError, PayloadMode, load_settings

REQUIRED = ("API_ADDRESS", "API_TOKEN", "SOURCE_TOKENS_PATH")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in REQUIRED + ("AUTH_MODE", "PAYLOAD_MODE", "TLS_ENABLED", "TLS_CERT_PATH", "TLS_KEY_PATH"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def required_env(monkeypatch, tmp_path):
    monkeypatch.setenv("API_ADDRESS", "https://events.example.com")
    monkeypatch.setenv("API_TOKEN", "upstream-token")
    monkeypatch.setenv("SOURCE_TOKENS_PATH", str(tmp_path / "tokens.json"))


@pytest.mark.parametrize("missing", REQUIRED)
def test_required_settings(monkeypatch, required_env, missing):
    monkeypatch.delenv(missing)

    with pytest.raises(ConfigurationError, match=missing):
        load_settings(_env_file=None)


def test_defaults(required_env):
    settings = load_settings(_env_file=None)

    assert settings.PORT == 8080
    assert settings.AUTH_MODE == AuthMode.PER_SOURCE
    assert settings.PAYLOAD_MODE == PayloadMode.ENVELOPE
    assert settings.API_IGNORE_CERT_WARNINGS is False
    assert settings.TLS_ENABLED is False
    assert settings.HANDSHAKE_CALLBACK_DELAY == 10.0
    assert settings.API_TOKEN.get_secret_value() == "upstream-token"


def test_modes_from_env(monkeypatch, required_env):
    monkeypatch.setenv("AUTH_MODE", "flat")
    monkeypatch.setenv("PAYLOAD_MODE", "data")
    monkeypatch.setenv("API_IGNORE_CERT_WARNINGS", "true")

    settings = load_settings(_env_file=None)

    assert settings.AUTH_MODE == AuthMode.FLAT
    assert settings.PAYLOAD_MODE == PayloadMode.DATA
    assert settings.API_IGNORE_CERT_WARNINGS is True


def test_invalid_mode(monkeypatch, required_env):
    monkeypatch.setenv("AUTH_MODE", "nope")

    with pytest.raises(ConfigurationError):
        load_settings(_env_file=None)


def test_tls_requires_cert_and_key(monkeypatch, required_env):
    monkeypatch.setenv("TLS_ENABLED", "true")
    monkeypatch.setenv("TLS_CERT_PATH", "/tls/tls.crt")

    with pytest.raises(ConfigurationError, match="TLS_KEY_PATH"):
        load_settings(_env_file=None)

    monkeypatch.setenv("TLS_KEY_PATH", "/tls/tls.key")
    settings = load_settings(_env_file=None)

    assert settings.TLS_ENABLED is True
    assert str(settings.TLS_KEY_PATH) == "/tls/tls.key"
