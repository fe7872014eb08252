"""
=============================================================================
VERSIOND CLI ENTRY POINT
=============================================================================

    # Defaults: 127.0.0.1:3000, threaded
    python -m versiond

    # One connection at a time
    python -m versiond --mode sequential

    # asyncio, all interfaces, JSON access log
    python -m versiond --mode async --host 0.0.0.0 --log-format json

    # Bound stalled clients
    python -m versiond --timeout 5

Configuration priority: CLI flags > HTTP_* environment variables >
ServerConfig defaults.

=============================================================================
"""

import argparse
import sys

from . import __version__
from .config import LOG_LEVELS, MODES, ServerConfig
from .server import HTTPServer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="versiond",
        description="Minimal HTTP/1.1 version server on raw sockets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m versiond                          # 127.0.0.1:3000, threaded
  python -m versiond --mode sequential        # One connection at a time
  python -m versiond --mode async -p 8080     # asyncio on port 8080
  curl -H 'Accept: application/json' localhost:3000/version
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Host to bind to (default: 127.0.0.1)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (default: 3000)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # SERVING ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--mode", "-m",
        choices=MODES,
        default=None,
        help="Serving mode (default: threaded)"
    )

    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=None,
        help="Max worker threads in threaded mode (default: 32)"
    )

    parser.add_argument(
        "--buffer-size",
        type=int,
        default=None,
        help="Bytes read per request (default: 1024)"
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Read/write timeout in seconds (default: none)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        choices=LOG_LEVELS,
        type=str.upper,
        default=None,
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--log-format",
        choices=("text", "json"),
        default=None,
        help="Access log format (default: text)"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"versiond {__version__}"
    )

    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """
    Environment first, then every flag that was given on top.

    Raises:
        ValueError: If an HTTP_* variable does not parse.
    """
    config = ServerConfig.from_env()

    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.mode is not None:
        config.mode = args.mode
    if args.workers is not None:
        config.max_workers = args.workers
        config.min_workers = min(config.min_workers, args.workers)
    if args.buffer_size is not None:
        config.buffer_size = args.buffer_size
    if args.timeout is not None:
        config.timeout = args.timeout
    if args.log_level is not None:
        config.log_level = args.log_level
    if args.log_format is not None:
        config.log_format = args.log_format

    return config


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = config_from_args(args)
        server = HTTPServer(config)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        server.run()
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
