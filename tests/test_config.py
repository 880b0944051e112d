"""Tests for environment configuration."""

import pytest

from config import DashboardConfig
from core.errors import ConfigurationError


def test_defaults(monkeypatch):
    for name in ("API_PORT", "CORS_ORIGINS", "FMCD_MAX_RETRIES", "FMCD_BASE_DELAY", "FMCD_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)

    config = DashboardConfig.from_env()

    assert config.api_port == 8000
    assert config.cors_origins == ["*"]
    assert config.fmcd_max_retries == 3


def test_from_env(monkeypatch):
    monkeypatch.setenv("DATABASE_PATH", "/tmp/fmcd.db")
    monkeypatch.setenv("API_PORT", "9000")
    monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example,")
    monkeypatch.setenv("FMCD_MAX_RETRIES", "5")
    monkeypatch.setenv("FMCD_BASE_DELAY", "0.5")
    monkeypatch.setenv("FMCD_TIMEOUT", "20")

    config = DashboardConfig.from_env()

    assert config.database_path == "/tmp/fmcd.db"
    assert config.api_port == 9000
    assert config.cors_origins == ["https://a.example", "https://b.example"]

    policy = config.retry_policy()
    assert policy.max_attempts == 5
    assert policy.base_delay == 0.5
    assert policy.base_timeout == 20.0


def test_unparseable_number(monkeypatch):
    monkeypatch.setenv("FMCD_MAX_RETRIES", "many")

    with pytest.raises(ConfigurationError):
        DashboardConfig.from_env()


@pytest.mark.parametrize("overrides", [
    {"fmcd_max_retries": 0},
    {"fmcd_base_delay": -1.0},
    {"fmcd_timeout": 0},
    {"api_port": 70000},
])
def test_validate_rejects(tmp_path, overrides):
    identity_file = tmp_path / "identity.toml"
    identity_file.write_text("")
    config = DashboardConfig(identity_file=str(identity_file), **overrides)

    with pytest.raises(ConfigurationError):
        config.validate()


def test_validate_requires_identity_file(tmp_path):
    config = DashboardConfig(identity_file=str(tmp_path / "missing.toml"))

    with pytest.raises(ConfigurationError):
        config.validate()


def test_validate_accepts_defaults(tmp_path):
    identity_file = tmp_path / "identity.toml"
    identity_file.write_text("")

    DashboardConfig(identity_file=str(identity_file)).validate()
