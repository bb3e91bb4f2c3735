"""calpost_lite - post CalDAV calendar events to Mastodon.

Fetches a calendar export, expands recurring events into occurrences inside a
date window, and announces them as Mastodon statuses, either on request
(HTTP API) or from a scheduled one-shot run.
"""

__version__ = "0.1.0"

from typing import Any, Optional


def _init_logging(level_name: Optional[str]) -> None:
    """Initialize root logging to stream to console.

    Honors CALPOST_DEBUG (truthy values: "1", "true", "yes", "on"), which
    forces DEBUG regardless of the requested level.
    """
    import logging
    import os
    import sys

    from colorlog import ColoredFormatter

    debug_env = os.environ.get("CALPOST_DEBUG", "")
    if debug_env.strip().lower() in ("1", "true", "yes", "on"):
        level_name = "DEBUG"

    root = logging.getLogger()
    # Only configure a handler if none is present to avoid duplicate output.
    if not root.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        # HH:MM:SS  LEVEL   [request-id] logger.name: message; only the level is colorized
        fmt = (
            "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s "
            "[%(request_id)s] %(name)s: %(message)s"
        )
        log_colors = {
            "DEBUG": "cyan",
            "INFO": "green",
            "WARNING": "yellow",
            "ERROR": "red",
            "CRITICAL": "bold_red",
        }
        handler.setFormatter(ColoredFormatter(fmt, datefmt="%H:%M:%S", log_colors=log_colors))
        root.addHandler(handler)

    level = logging.INFO
    if isinstance(level_name, str):
        level = getattr(logging, level_name.upper(), logging.INFO)

    from calpost_lite.core.lite_logging import configure_lite_logging

    configure_lite_logging(debug_mode=level == logging.DEBUG)
    root.setLevel(level)
    logging.getLogger(__name__).debug(
        "Logging initialized at level %s", logging.getLevelName(level)
    )


def _load_config(args: Optional[Any] = None) -> Any:
    """Load configuration from .env, YAML and environment, then apply CLI overrides."""
    import logging
    from pathlib import Path

    from calpost_lite.core.config_loader import Config
    from calpost_lite.core.config_manager import ConfigManager

    logger = logging.getLogger(__name__)

    env_file = getattr(args, "env_file", None) if args is not None else None
    manager = ConfigManager(Path(env_file) if env_file else None)
    config: Config = manager.load_full_config(getattr(args, "config", None) if args else None)

    port = getattr(args, "port", None) if args is not None else None
    if port is not None:
        config.server_port = int(port)
        logger.debug("Applied command line port override: %d", config.server_port)

    days = getattr(args, "days", None) if args is not None else None
    if days:
        config.days_ahead = days
        logger.debug("Applied command line day offsets: %s", days)

    return config


def run_server(args: Optional[Any] = None) -> None:
    """Start the HTTP server and block until SIGINT/SIGTERM.

    Args:
        args: Optional argparse namespace (--port, --config, --env-file)
    """
    import logging
    import os

    _init_logging(os.environ.get("CALPOST_LOG_LEVEL"))
    config = _load_config(args)
    logging.getLogger().setLevel(getattr(logging, config.log_level.upper(), logging.INFO))

    from calpost_lite.api.server import start_server

    start_server(config)


def run_once(args: Optional[Any] = None) -> int:
    """Run one scheduled day-targeted post and return a process exit code.

    Args:
        args: Optional argparse namespace (--days, --config, --env-file)

    Returns:
        0 on success, 1 if the run failed
    """
    import asyncio
    import os

    _init_logging(os.environ.get("CALPOST_LOG_LEVEL"))
    config = _load_config(args)

    from calpost_lite.api.server import run_scheduled_once

    return 0 if asyncio.run(run_scheduled_once(config)) else 1
