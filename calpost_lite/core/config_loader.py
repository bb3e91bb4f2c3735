"""calpost_lite.core.config_loader

Config loader for calpost_lite.

- Reads YAML (PyYAML) config files.
- Exposes a typed dataclass `Config` and a `load_config()` helper that accepts
  an optional path override.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

VALID_VISIBILITIES = ("public", "unlisted", "private", "direct")
VALID_RULE_ERROR_POLICIES = ("skip", "abort")
VALID_BATCH_POLICIES = ("abort", "continue")


@dataclass
class Config:
    """Typed configuration for calpost_lite.

    Fields:
        calendar_export_url: CalDAV calendar export URL (``?export`` suffix optional)
        mastodon_instance_url: base URL of the Mastodon instance
        mastodon_access_token: bearer token used for posting
        days_ahead: raw comma-separated day offsets for the day-targeted poster
        visibility: Mastodon status visibility
        local_timezone: timezone that defines calendar-day boundaries
        display_timezone: timezone used by the next-occurrence preview
        status_header: optional first line of every announcement
        status_footer: optional last line of every announcement
        rule_error_policy: "skip" or "abort" on malformed recurrence rules
        batch_policy: "abort" or "continue" after a failed post
        request_timeout: HTTP read timeout in seconds
        server_bind: host to bind the HTTP server to
        server_port: port for the HTTP server
        log_level: logging level name
    """

    calendar_export_url: str = ""
    mastodon_instance_url: str = ""
    mastodon_access_token: str = ""
    days_ahead: str = "1"
    visibility: str = "public"
    local_timezone: str = "UTC"
    display_timezone: str = "America/Vancouver"
    status_header: str = ""
    status_footer: str = ""
    rule_error_policy: str = "skip"
    batch_policy: str = "abort"
    request_timeout: int = 30
    server_bind: str = "0.0.0.0"  # nosec: B104 - default for container deployment; configurable via env/config
    server_port: int = 8080
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Config:
        """Create Config from a plain mapping, applying defaults and validation.

        Numeric-like values are coerced to int and enum-like strings are
        checked against their allowed values; bad values fall back to the
        default with a warning.
        """
        if data is None:
            data = {}
        defaults = cls()

        def _coerce_str(key: str) -> str:
            raw = data.get(key)
            if raw is None:
                return getattr(defaults, key)
            return str(raw)

        def _coerce_int(key: str) -> int:
            default = getattr(defaults, key)
            raw = data.get(key, default)
            try:
                return int(raw)
            except (TypeError, ValueError):
                logger.warning("Config %s=%r is not an int; using default %d", key, raw, default)
                return default

        def _coerce_choice(key: str, allowed: tuple[str, ...]) -> str:
            default = getattr(defaults, key)
            value = _coerce_str(key).strip().lower()
            if value not in allowed:
                logger.warning("Config %s=%r not in %s; using default %r", key, value, allowed, default)
                return default
            return value

        # DAYS_AHEAD may arrive as a YAML list of ints
        days_raw = data.get("days_ahead")
        if isinstance(days_raw, (list, tuple)):
            days_ahead = ",".join(str(d) for d in days_raw)
        elif days_raw is None:
            days_ahead = defaults.days_ahead
        else:
            days_ahead = str(days_raw)

        request_timeout = _coerce_int("request_timeout")
        if request_timeout <= 0:
            logger.warning("request_timeout %d must be positive; using default", request_timeout)
            request_timeout = defaults.request_timeout

        return cls(
            calendar_export_url=_coerce_str("calendar_export_url"),
            mastodon_instance_url=_coerce_str("mastodon_instance_url").rstrip("/"),
            mastodon_access_token=_coerce_str("mastodon_access_token"),
            days_ahead=days_ahead,
            visibility=_coerce_choice("visibility", VALID_VISIBILITIES),
            local_timezone=_coerce_str("local_timezone"),
            display_timezone=_coerce_str("display_timezone"),
            status_header=_coerce_str("status_header"),
            status_footer=_coerce_str("status_footer"),
            rule_error_policy=_coerce_choice("rule_error_policy", VALID_RULE_ERROR_POLICIES),
            batch_policy=_coerce_choice("batch_policy", VALID_BATCH_POLICIES),
            request_timeout=request_timeout,
            server_bind=_coerce_str("server_bind"),
            server_port=_coerce_int("server_port"),
            log_level=_coerce_str("log_level").upper(),
        )

    def __repr__(self) -> str:
        # Never leak the access token into logs
        token = "***" if self.mastodon_access_token else ""
        return (
            f"Config(calendar_export_url={self.calendar_export_url!r}, "
            f"mastodon_instance_url={self.mastodon_instance_url!r}, "
            f"mastodon_access_token={token!r}, days_ahead={self.days_ahead!r}, "
            f"visibility={self.visibility!r}, local_timezone={self.local_timezone!r}, "
            f"rule_error_policy={self.rule_error_policy!r}, batch_policy={self.batch_policy!r}, "
            f"server_bind={self.server_bind!r}, server_port={self.server_port}, "
            f"log_level={self.log_level!r})"
        )


def _load_yaml(path: Path) -> Any:
    """Load a mapping from a YAML file; empty files yield an empty dict."""
    loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
    if loaded is None:
        return {}
    return loaded


def load_config_mapping(path: str | Path | None = None) -> dict[str, Any]:
    """Load the raw configuration mapping from a YAML file.

    Args:
        path: Optional path to the config file. Defaults to ./calpost.yaml.

    Returns:
        The mapping (empty when the file does not exist).

    Raises:
        ValueError: If the file's top level is not a mapping.
    """
    p = Path(path) if path else Path.cwd() / "calpost.yaml"
    logger.debug("Attempting to load config from %s", p)
    if not p.exists():
        logger.info("Config file %s not found; using defaults", p)
        return {}

    raw = _load_yaml(p)
    if not isinstance(raw, dict):
        logger.warning("Config file %s parsed but top-level is not a mapping: %r", p, raw)
        raise ValueError("Config file must contain a mapping at top level")  # noqa: TRY004
    logger.info("Loaded configuration from %s", p)
    return raw


def load_config(path: str | Path | None = None) -> Config:
    """Load configuration from a YAML file and return a Config instance.

    Behavior:
    - If file is missing: returns Config() with defaults.
    - If file exists but top-level is not a mapping: raises ValueError.
    """
    cfg = Config.from_dict(load_config_mapping(path))
    logger.debug("Configuration values: %r", cfg)
    return cfg
