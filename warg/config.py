"""
Process configuration loaded from the environment (and an optional .env file).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping, Optional

from dotenv import load_dotenv

from .errors import ConfigError


@dataclass(frozen=True)
class Config:
    """Settings shared by the server, the daemon and the CLI."""

    host: str = "0.0.0.0"
    port: int = 3000
    ws_port: int = 3001
    log_level: str = "info"
    log_file: str = os.path.join("logs", "warg.log")
    browser_headless: bool = True
    browser_timeout: int = 30000  # milliseconds
    pid_file: str = field(default_factory=lambda: str(Path.cwd() / "warg.pid"))

    @property
    def browser_timeout_seconds(self) -> float:
        return self.browser_timeout / 1000.0

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Config":
        env = os.environ if env is None else env
        defaults = cls()
        return cls(
            host=env.get("HOST", defaults.host),
            port=_parse_int(env, "PORT", defaults.port),
            ws_port=_parse_int(env, "WS_PORT", defaults.ws_port),
            log_level=env.get("LOG_LEVEL", defaults.log_level),
            log_file=env.get("LOG_FILE", defaults.log_file),
            # Headless unless explicitly disabled.
            browser_headless=env.get("BROWSER_HEADLESS", "true").strip().lower() != "false",
            browser_timeout=_parse_int(env, "BROWSER_TIMEOUT", defaults.browser_timeout),
            pid_file=env.get("PID_FILE", defaults.pid_file),
        )

    def override(self, **changes: Any) -> "Config":
        """Return a copy with every non-None value in ``changes`` applied."""
        return replace(self, **{key: value for key, value in changes.items() if value is not None})


def _parse_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw, 10)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


def load_config(dotenv_path: Optional[str] = None) -> Config:
    """Load ``.env`` (without overriding real environment variables) and build a Config."""
    load_dotenv(dotenv_path)
    return Config.from_env()
