"""Tests for environment settings."""

from pathlib import Path

import pytest

from ssh_steps.config import Settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove SSH_STEPS_* variables set by the host environment."""
    import os

    for key in list(os.environ):
        if key.startswith("SSH_STEPS_"):
            monkeypatch.delenv(key)


def test_defaults() -> None:
    settings = Settings.from_env()

    assert settings.log_buffer_size == 50
    assert settings.log_flush_interval_ms == 100
    assert settings.log_rate_limit == 1000
    assert settings.transport == "stdio"
    assert settings.http_port == 8000
    assert settings.log_level == "INFO"
    assert settings.include_traceback is False
    assert settings.ssh_config_path == Path.home() / ".ssh" / "config"


def test_reads_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("SSH_STEPS_LOG_BUFFER_SIZE", "10")
    monkeypatch.setenv("SSH_STEPS_LOG_FLUSH_INTERVAL_MS", "250")
    monkeypatch.setenv("SSH_STEPS_LOG_RATE_LIMIT", "0")
    monkeypatch.setenv("SSH_STEPS_WORKSPACE", str(tmp_path))
    monkeypatch.setenv("SSH_STEPS_TRANSPORT", "HTTP")
    monkeypatch.setenv("SSH_STEPS_LOG_LEVEL", "debug")
    monkeypatch.setenv("SSH_STEPS_INCLUDE_TRACEBACK", "true")

    settings = Settings.from_env()

    assert settings.log_buffer_size == 10
    assert settings.log_flush_interval_ms == 250
    assert settings.log_rate_limit == 0
    assert settings.workspace == tmp_path
    assert settings.transport == "http"
    assert settings.log_level == "DEBUG"
    assert settings.include_traceback is True


def test_invalid_int_falls_back(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SSH_STEPS_LOG_RATE_LIMIT", "lots")
    monkeypatch.setenv("SSH_STEPS_LOG_BUFFER_SIZE", "0")

    settings = Settings.from_env()

    assert settings.log_rate_limit == 1000
    assert settings.log_buffer_size == 50


def test_unknown_transport_defaults_to_stdio(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SSH_STEPS_TRANSPORT", "carrier-pigeon")
    assert Settings.from_env().transport == "stdio"
