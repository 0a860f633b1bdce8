"""
=============================================================================
COMMAND LINE INTERFACE
=============================================================================

    python -m rangestream --root ~/Movies --host 0.0.0.0
    rangestream --root /srv/media --port 9000 --telemetry log

Settings start from the STREAM_* environment variables (see
ServerConfig.from_env) and command line flags override them.

=============================================================================
"""

import argparse
import sys
from typing import Optional, Sequence

from . import __version__
from .config import ServerConfig, TELEMETRY_MODES
from .server import HTTPServer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rangestream",
        description="Stream media files over HTTP with byte-range support",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m rangestream --root ~/Movies              # serve on 127.0.0.1:8000
  python -m rangestream --root ~/Movies -H 0.0.0.0   # reachable from the LAN
  python -m rangestream --telemetry log              # samples to the log
  curl -r 0-1023 http://127.0.0.1:8000/movie.mp4     # first KiB
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Host to bind to (default: 127.0.0.1, use 0.0.0.0 for other devices)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (default: 8000)"
    )

    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=None,
        help="Maximum simultaneous connections (default: 16)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # MEDIA ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--root", "-r",
        default=None,
        help="Directory to serve files from (default: current directory)"
    )

    parser.add_argument(
        "--chunk-size",
        type=int,
        default=None,
        help="Bytes read from disk per chunk (default: 65536)"
    )

    parser.add_argument(
        "--telemetry", "-t",
        choices=TELEMETRY_MODES,
        default=None,
        help="Where live stream stats go (default: console)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default=None,
        help="Access log format (default: text)"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"rangestream {__version__}"
    )

    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """Environment first, then any flag that was given."""
    config = ServerConfig.from_env()

    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.workers is not None:
        config.max_workers = args.workers
        config.min_workers = min(config.min_workers, args.workers)
    if args.root is not None:
        config.media_root = args.root
    if args.chunk_size is not None:
        config.chunk_size = args.chunk_size
    if args.telemetry is not None:
        config.telemetry = args.telemetry
    if args.log_level is not None:
        config.log_level = args.log_level
    if args.log_format is not None:
        config.log_format = args.log_format

    return config


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = config_from_args(args)

    try:
        server = HTTPServer(config)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    try:
        server.run()
    except OSError as e:
        print(f"Failed to start server: {e}", file=sys.stderr)
        return 1

    print("\n🛑 Server stopped.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
