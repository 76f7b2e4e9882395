"""Command-line entry for plannercal."""

from __future__ import annotations

import argparse
import sys
from typing import NoReturn, Optional

from . import run_server


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the plannercal CLI."""
    parser = argparse.ArgumentParser(
        prog="plannercal",
        description="plannercal - aggregate iCalendar feeds into a day planner API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m plannercal                              # Serve on 0.0.0.0:8080
  python -m plannercal --port 3000                  # Serve on port 3000
  python -m plannercal --timezone Europe/Berlin     # Bucket events by Berlin days
        """,
    )

    parser.add_argument(
        "--port",
        type=int,
        metavar="PORT",
        help="Port number for the web server (default: 8080, or PLANNERCAL_WEB_PORT)",
    )
    parser.add_argument(
        "--host",
        metavar="HOST",
        help="Interface to bind (default: 0.0.0.0, or PLANNERCAL_WEB_HOST)",
    )
    parser.add_argument(
        "--timezone",
        metavar="ZONE",
        help="IANA timezone for civil dates (default: America/Los_Angeles, or PLANNERCAL_TIMEZONE)",
    )
    parser.add_argument(
        "--feeds",
        metavar="PATH",
        help="Path to the feeds JSON file (or PLANNERCAL_FEEDS_PATH)",
    )

    return parser


def main(argv: Optional[list[str]] = None) -> NoReturn:
    """Run the plannercal CLI."""
    parser = _create_parser()
    args = parser.parse_args(argv)

    from .core.exceptions import InvalidTimezoneError

    try:
        run_server(args)
    except InvalidTimezoneError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)
    sys.exit(0)


if __name__ == "__main__":
    main()
