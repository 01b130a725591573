"""Tests for configuration loading."""

from flowrunner.config import load_config
from flowrunner.registry import create_registry


def test_defaults_without_config_file():
    config = load_config()
    assert config.http.timeout == 30.0
    assert config.retry.max_attempts == 3
    assert config.scheduler.batch_size == 10
    assert config.database_url is None
    assert config.log_level == "INFO"


def test_load_config_from_env(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
http:
  timeout: 5
email:
  from_email: flows@example.com
  site_domain: flows.example.com
retry:
  maxAttempts: 5
  baseDelay: 250
scheduler:
  batch_size: 3
database_url: sqlite://flows.db
"""
    )
    monkeypatch.setenv("FLOWRUNNER_CONFIG", str(config_path))

    config = load_config()
    assert config.http.timeout == 5
    assert config.email.from_email == "flows@example.com"
    assert config.retry.max_attempts == 5
    assert config.retry.base_delay == 250
    assert config.scheduler.batch_size == 3
    assert config.database_url == "sqlite://flows.db"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("RESEND_API_KEY", "re_env")
    monkeypatch.setenv("RESEND_FROM_EMAIL", "env@example.com")
    monkeypatch.setenv("DATABASE_URL", "sqlite://env.db")
    monkeypatch.setenv("FLOWRUNNER_LOG_LEVEL", "DEBUG")

    config = load_config()
    assert config.email.api_key == "re_env"
    assert config.email.from_email == "env@example.com"
    assert config.database_url == "sqlite://env.db"
    assert config.log_level == "DEBUG"


def test_registry_uses_config(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("email:\n  api_key: re_file\n")
    registry = create_registry(load_config(str(config_path)))
    assert registry.get("send_email")._api_key == "re_file"
