"""Configuration management for calpost_lite from environment variables and .env files."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from calpost_lite.core.config_loader import Config, load_config_mapping

logger = logging.getLogger(__name__)

# Environment variable -> Config field
ENV_KEY_MAP: dict[str, str] = {
    "CALENDAR_EXPORT_URL": "calendar_export_url",
    "MASTODON_INSTANCE_URL": "mastodon_instance_url",
    "MASTODON_ACCESS_TOKEN": "mastodon_access_token",
    "DAYS_AHEAD": "days_ahead",
    "MASTODON_VISIBILITY": "visibility",
    "CALPOST_LOCAL_TIMEZONE": "local_timezone",
    "CALPOST_DISPLAY_TIMEZONE": "display_timezone",
    "CALPOST_STATUS_HEADER": "status_header",
    "CALPOST_STATUS_FOOTER": "status_footer",
    "CALPOST_RULE_ERROR_POLICY": "rule_error_policy",
    "CALPOST_BATCH_POLICY": "batch_policy",
    "CALPOST_REQUEST_TIMEOUT": "request_timeout",
    "CALPOST_WEB_HOST": "server_bind",
    "CALPOST_WEB_PORT": "server_port",
    "CALPOST_LOG_LEVEL": "log_level",
}


class ConfigManager:
    """Manages application configuration from environment variables and .env files."""

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
            logger.warning("Failed to read .env file %s (continuing)", self.env_file_path, exc_info=True)
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

    def build_config_from_env(self) -> dict[str, Any]:
        """Build configuration dictionary from environment variables.

        Only variables that are set (and non-empty) appear in the result so the
        mapping can be layered over file-based configuration.
        """
        cfg: dict[str, Any] = {}
        for env_key, field_name in ENV_KEY_MAP.items():
            value = os.environ.get(env_key)
            if value:
                cfg[field_name] = value
        return cfg

    def load_full_config(self, config_path: str | Path | None = None) -> Config:
        """Load .env, the optional YAML file, and the environment.

        Environment values take precedence over the YAML file.

        Args:
            config_path: YAML path; defaults to CALPOST_CONFIG when unset

        Returns:
            Fully resolved Config
        """
        self.load_env_file()

        merged: dict[str, Any] = {}
        config_path = config_path or os.environ.get("CALPOST_CONFIG")
        if config_path:
            merged.update(load_config_mapping(config_path))
        merged.update(self.build_config_from_env())

        config = Config.from_dict(merged)
        logger.debug("Resolved configuration: %r", config)
        return config
