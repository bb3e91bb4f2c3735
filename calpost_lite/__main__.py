"""Command-line entry for calpost_lite.

Without flags the HTTP server runs until interrupted. ``--once`` performs a
single day-targeted post (for cron) and exits non-zero if it failed.
"""

from __future__ import annotations

import argparse
import sys
from typing import NoReturn

from . import run_once, run_server


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for calpost_lite CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="calpost",
        description="Post CalDAV calendar events to Mastodon",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  calpost                         # Start server on default port (8080)
  calpost --port 3000             # Start server on port 3000
  calpost --once                  # Post today's configured day offsets and exit
  calpost --once --days 0,1       # Post today's and tomorrow's events and exit
        """,
    )

    parser.add_argument(
        "--port",
        type=int,
        metavar="PORT",
        help="Port number for the web server (default: 8080, or from CALPOST_WEB_PORT env var)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run one scheduled day-targeted post and exit",
    )
    parser.add_argument(
        "--days",
        metavar="OFFSETS",
        help="Comma-separated day offsets for --once (overrides DAYS_AHEAD)",
    )
    parser.add_argument(
        "--config",
        metavar="PATH",
        help="YAML configuration file (default: CALPOST_CONFIG env var)",
    )
    parser.add_argument(
        "--env-file",
        metavar="PATH",
        help=".env file with default environment values (default: ./.env)",
    )

    return parser


def main(argv: list[str] | None = None) -> NoReturn:
    """Run the calpost CLI."""
    args = _create_parser().parse_args(argv)

    if args.once:
        sys.exit(run_once(args))

    run_server(args)
    sys.exit(0)


if __name__ == "__main__":
    main()
