from __future__ import annotations

import logging
import os
from pathlib import Path

import pytest

from promptrun.common.config import ServerConfig, load_config, load_env_file, load_ollama_settings

_ENV_VARS = [
    "PORT",
    "HOST",
    "STATIC_DIR",
    "SHUTDOWN_GRACE_SECONDS",
    "MAX_BODY_BYTES",
    "LOG_LEVEL",
    "OLLAMA_CONFIG",
    "OLLAMA_BASE_URL",
    "OLLAMA_MODEL",
    "OLLAMA_REQUEST_TIMEOUT",
    "OLLAMA_CALL_TIMEOUT",
    "OLLAMA_MAX_RETRIES",
    "OLLAMA_BACKOFF_BASE",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_port_defaults_with_warning(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="promptrun.config")
    config = load_config()
    assert config.port == "8080"
    assert config.bind_port == 8080
    assert config.shutdown_grace == 30.0
    assert "PORT environment variable not set" in caplog.text


def test_config_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PORT", "9000")
    monkeypatch.setenv("STATIC_DIR", "/srv/assets")
    monkeypatch.setenv("SHUTDOWN_GRACE_SECONDS", "5")
    config = load_config()
    assert config.port == "9000"
    assert config.bind_port == 9000
    assert config.static_dir == Path("/srv/assets")
    assert config.shutdown_grace == 5.0


@pytest.mark.parametrize("port", ["http", "70000", "-1"])
def test_invalid_port_rejected_at_bind(port: str) -> None:
    with pytest.raises(ValueError):
        ServerConfig(port=port).bind_port


def test_config_is_immutable() -> None:
    config = ServerConfig()
    with pytest.raises(AttributeError):
        config.port = "1"  # type: ignore[misc]


def test_ollama_settings_from_yaml_with_env_override(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    cfg = tmp_path / "ollama.yaml"
    cfg.write_text(
        "model: mistral\nmax_retries: 4\noptions:\n  temperature: 0.1\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("OLLAMA_CONFIG", str(cfg))
    monkeypatch.setenv("OLLAMA_MODEL", "llama3:8b")

    settings = load_ollama_settings()
    assert settings.model == "llama3:8b"
    assert settings.max_retries == 4
    assert settings.options == {"temperature": 0.1}
    assert settings.base_url == "http://localhost:11434"


def test_ollama_settings_without_yaml(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OLLAMA_CONFIG", str(tmp_path / "absent.yaml"))
    settings = load_ollama_settings()
    assert settings.model == "llama3"
    assert settings.options == {}


def test_env_file_populates_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / ".env").write_text("PROMPTRUN_DOTENV_CHECK=loaded\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    # register the variable so monkeypatch removes it again afterwards
    monkeypatch.setenv("PROMPTRUN_DOTENV_CHECK", "")
    monkeypatch.delenv("PROMPTRUN_DOTENV_CHECK")

    assert load_env_file() is True
    assert os.environ["PROMPTRUN_DOTENV_CHECK"] == "loaded"
