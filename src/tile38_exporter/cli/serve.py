"""Exporter entry point.

Parses flags, merges them with the environment and serves the FastAPI app
with uvicorn.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

import uvicorn

from tile38_exporter.app.server import create_app
from tile38_exporter.core.settings import DEFAULT_HTTP_ADDR, DEFAULT_TILE38_ADDR, LOG_LEVELS, Settings
from tile38_exporter.utils.exceptions import ValidationError
from tile38_exporter.utils.logging import configure_root, get_logger

_log = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tile38-exporter",
        description="Publish Tile38 server statistics as Prometheus metrics",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment variables (override flags when set):
  TILE38_ADDR=<addr>          TILE38_AUTH=<auth> (or TILE38_AUTH_FILE=<path>)
  HTTP_ADDR=<addr>            METRICS_NAMESPACE=<namespace>
  POOL_MAX_CONNECTIONS=<n>    POOL_TIMEOUT_SEC=<sec>
  TILE38_TIMEOUT_SEC=<sec>    LOG_LEVEL=<level>

Examples:
  tile38-exporter --tile38-addr 10.43.12.45:9851
  TILE38_ADDR=10.43.12.45:9851 tile38-exporter
  tile38-exporter --namespace prod --http-addr :9100
        """,
    )

    # Tile38
    parser.add_argument(
        "--tile38-addr",
        default=DEFAULT_TILE38_ADDR,
        help=f"Address of the Tile38 instance (default {DEFAULT_TILE38_ADDR!r})",
    )
    parser.add_argument(
        "--tile38-auth",
        default="",
        help="Tile38 AUTH password (default \"\")",
    )
    parser.add_argument(
        "--pool-size",
        type=int,
        default=None,
        help="Maximum pooled Tile38 connections (default 5)",
    )
    parser.add_argument(
        "--pool-timeout",
        type=float,
        default=None,
        help="Seconds to wait for a free pooled connection (default: wait forever)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Tile38 socket and connect timeout in seconds (default: none)",
    )

    # HTTP
    parser.add_argument(
        "--http-addr",
        default=DEFAULT_HTTP_ADDR,
        help=f"HTTP server listening address (default {DEFAULT_HTTP_ADDR!r})",
    )

    # Output
    parser.add_argument(
        "--namespace",
        default="",
        help="Optional metrics namespace prefix (default \"\")",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=LOG_LEVELS,
        type=str.upper,
        help="Log level (default INFO)",
    )

    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    return build_parser().parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main entry point."""
    args = parse_args(argv)

    try:
        settings = Settings.load(args)
    except ValidationError as e:
        print(f"tile38-exporter: {e}", file=sys.stderr)
        sys.exit(2)

    configure_root(level=logging.getLevelName(settings.LOG_LEVEL))
    _log.info("exporter_config", extra={"settings": settings.as_dict()})

    app = create_app(settings)
    try:
        uvicorn.run(
            app,
            host=settings.http_host,
            port=settings.http_port,
            log_level=settings.LOG_LEVEL.lower(),
        )
    except KeyboardInterrupt:
        sys.exit(0)


if __name__ == "__main__":
    main()
