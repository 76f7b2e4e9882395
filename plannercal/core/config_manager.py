"""Configuration management for the plannercal server."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .timezone_utils import DEFAULT_TIMEZONE

logger = logging.getLogger(__name__)

DEFAULT_FEEDS_PATH = "~/.local/share/plannercal/feeds.json"

_TRUTHY = ("1", "true", "yes", "on")


@dataclass
class PlannerCalConfig:
    """Resolved server configuration.

    Consolidates every setting with explicit defaults.
    """

    timezone: str = DEFAULT_TIMEZONE
    feeds_path: str = DEFAULT_FEEDS_PATH
    host: str = "0.0.0.0"  # nosec B104 - server listens on all interfaces by default
    port: int = 8080
    request_timeout: float = 30.0
    max_retries: int = 2
    retry_backoff_factor: float = 1.5
    debug: bool = False
    log_level: str | None = None
    loaded_env_keys: list[str] = field(default_factory=list, repr=False)

    def apply_overrides(self, **overrides: Any) -> PlannerCalConfig:
        """Apply non-None overrides (e.g. from the command line) in place."""
        for key, value in overrides.items():
            if value is None:
                continue
            if not hasattr(self, key):
                logger.warning("Ignoring unknown config override %r", key)
                continue
            setattr(self, key, value)
        return self


class ConfigManager:
    """Builds configuration from environment variables and an optional .env file."""

    def __init__(self, env_file_path: Path | None = None):
        """Initialize configuration manager.

        Args:
            env_file_path: Optional path to .env file (defaults to .env in current directory)
        """
        self.env_file_path = env_file_path or Path.cwd() / ".env"

    def load_env_file(self) -> list[str]:
        """Load .env file and set environment variables.

        Only sets variables that are not already in the environment.

        Returns:
            List of environment variable keys that were loaded from .env file
        """
        if not self.env_file_path.exists():
            logger.debug("No .env file found at %s", self.env_file_path)
            return []

        set_keys = []
        try:
            content = self.env_file_path.read_text(encoding="utf-8")
        except OSError:
            logger.debug("Failed to read .env file %s", self.env_file_path, exc_info=True)
            return []

        for raw_line in content.splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue

            key, val = line.split("=", 1)
            key = key.strip()
            val = val.strip().strip('"').strip("'")

            if key and key not in os.environ:
                os.environ[key] = val
                set_keys.append(key)

        if set_keys:
            logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))
        return set_keys

    @staticmethod
    def _env_number(name: str, cast: Any) -> Any:
        raw = os.environ.get(name)
        if raw is None or raw.strip() == "":
            return None
        try:
            return cast(raw)
        except ValueError:
            logger.warning("Invalid %s=%r; ignoring", name, raw)
            return None

    def build_config_from_env(self) -> PlannerCalConfig:
        """Build configuration from environment variables.

        Recognizes:
        - PLANNERCAL_TIMEZONE -> timezone
        - PLANNERCAL_FEEDS_PATH -> feeds_path
        - PLANNERCAL_WEB_HOST / PLANNERCAL_WEB_PORT -> host / port
        - PLANNERCAL_REQUEST_TIMEOUT -> request_timeout (seconds)
        - PLANNERCAL_MAX_RETRIES -> max_retries
        - PLANNERCAL_RETRY_BACKOFF -> retry_backoff_factor
        - PLANNERCAL_DEBUG -> debug
        - PLANNERCAL_LOG_LEVEL -> log_level
        """
        cfg = PlannerCalConfig()

        cfg.apply_overrides(
            timezone=os.environ.get("PLANNERCAL_TIMEZONE") or None,
            feeds_path=os.environ.get("PLANNERCAL_FEEDS_PATH") or None,
            host=os.environ.get("PLANNERCAL_WEB_HOST") or None,
            port=self._env_number("PLANNERCAL_WEB_PORT", int),
            request_timeout=self._env_number("PLANNERCAL_REQUEST_TIMEOUT", float),
            max_retries=self._env_number("PLANNERCAL_MAX_RETRIES", int),
            retry_backoff_factor=self._env_number("PLANNERCAL_RETRY_BACKOFF", float),
            log_level=os.environ.get("PLANNERCAL_LOG_LEVEL") or None,
        )
        cfg.debug = os.environ.get("PLANNERCAL_DEBUG", "").strip().lower() in _TRUTHY
        return cfg

    def load(self) -> PlannerCalConfig:
        """Load .env defaults, then build configuration from the environment."""
        loaded = self.load_env_file()
        cfg = self.build_config_from_env()
        cfg.loaded_env_keys = loaded
        return cfg
