"""Process configuration read from the environment.

Values are read once at startup and frozen. A ``.env`` file, when present,
pre-populates the environment before lookup.
"""
from __future__ import annotations
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import find_dotenv, load_dotenv

LOGGER = logging.getLogger("promptrun.config")

DEFAULT_PORT = "8080"
DEFAULT_OLLAMA_CONFIG = "configs/ollama.yaml"


@dataclass(frozen=True)
class ServerConfig:
    """Settings for the HTTP front end."""
    port: str = DEFAULT_PORT
    static_dir: Path = Path("static")
    host: str = "0.0.0.0"
    shutdown_grace: float = 30.0
    max_body_bytes: int = 1024 * 1024
    log_level: str = "INFO"

    @property
    def bind_port(self) -> int:
        port = int(self.port)
        if not 0 <= port <= 65535:
            raise ValueError(f"Port out of range: {self.port}")
        return port


@dataclass(frozen=True)
class OllamaSettings:
    """Settings for the Ollama inference backend."""
    base_url: str = "http://localhost:11434"
    model: str = "llama3"
    request_timeout: float = 120.0
    call_timeout: float = 300.0
    max_retries: int = 2
    backoff_base: float = 0.5
    options: dict[str, Any] = field(default_factory=dict)


def load_env_file() -> bool:
    """Load a ``.env`` file into the process environment if one exists."""
    path = find_dotenv(usecwd=True)
    if not path:
        LOGGER.warning(".env file not found")
        return False
    load_dotenv(path)
    return True


def load_config() -> ServerConfig:
    """Build the server config from environment variables."""
    port = os.getenv("PORT", "")
    if not port:
        LOGGER.warning("PORT environment variable not set. Defaulting to %s", DEFAULT_PORT)
        port = DEFAULT_PORT

    return ServerConfig(
        port=port,
        static_dir=Path(os.getenv("STATIC_DIR", "static")),
        host=os.getenv("HOST", "0.0.0.0"),
        shutdown_grace=float(os.getenv("SHUTDOWN_GRACE_SECONDS", "30")),
        max_body_bytes=int(os.getenv("MAX_BODY_BYTES", str(1024 * 1024))),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )


def load_cfg(path: str) -> dict[str, Any]:
    """Read an optional YAML file; a missing file yields an empty mapping."""
    if not Path(path).exists():
        LOGGER.info("No backend config at %s, using defaults", path)
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a mapping in {path}")
    return data


def load_ollama_settings() -> OllamaSettings:
    """Build backend settings from the YAML file and environment overrides."""
    cfg = load_cfg(os.getenv("OLLAMA_CONFIG", DEFAULT_OLLAMA_CONFIG))
    defaults = OllamaSettings()

    return OllamaSettings(
        base_url=os.getenv("OLLAMA_BASE_URL", str(cfg.get("base_url", defaults.base_url))),
        model=os.getenv("OLLAMA_MODEL", str(cfg.get("model", defaults.model))),
        request_timeout=float(os.getenv("OLLAMA_REQUEST_TIMEOUT", cfg.get("request_timeout", defaults.request_timeout))),
        call_timeout=float(os.getenv("OLLAMA_CALL_TIMEOUT", cfg.get("call_timeout", defaults.call_timeout))),
        max_retries=int(os.getenv("OLLAMA_MAX_RETRIES", cfg.get("max_retries", defaults.max_retries))),
        backoff_base=float(os.getenv("OLLAMA_BACKOFF_BASE", cfg.get("backoff_base", defaults.backoff_base))),
        options=dict(cfg.get("options") or {}),
    )
