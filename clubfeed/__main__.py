"""Command-line entry for clubfeed.

Usage:
  python -m clubfeed                    # Start server on default port (8080)
  python -m clubfeed --port 3000        # Start server on port 3000
"""

from __future__ import annotations

import argparse
import sys
from typing import NoReturn, Optional, Sequence

from . import run_server


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the clubfeed CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="clubfeed",
        description="clubfeed - calendar and news feed API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m clubfeed                    # Start server on default port (8080)
  python -m clubfeed --port 3000        # Start server on port 3000
        """,
    )

    parser.add_argument(
        "--port",
        type=int,
        metavar="PORT",
        help="Port number for the web server (default: 8080, or from CLUBFEED_WEB_PORT env var)",
    )

    return parser


def main(argv: Optional[Sequence[str]] = None) -> NoReturn:
    """Run the clubfeed CLI."""
    parser = _create_parser()
    args = parser.parse_args(argv)
    run_server(args)
    sys.exit(0)


if __name__ == "__main__":
    main()
