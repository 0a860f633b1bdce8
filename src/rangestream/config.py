"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Every tunable of the media server in one typed, validated dataclass.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    WHERE SETTINGS COME FROM                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │   1. Defaults          ServerConfig()                               │
    │   2. Environment       ServerConfig.from_env()   STREAM_PORT=9000   │
    │   3. Command line      python -m rangestream --port 9000            │
    │                                                                     │
    │   Later sources win. validate() runs once, at server start.         │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
STREAMING KNOBS
=============================================================================

    chunk_size          64 KiB. Upper bound on one disk read, and so on how
                        long one pull can block a worker.

    telemetry_interval  0.45 s. Minimum gap between two live samples of the
                        same stream (about twice a second).

    default_bitrate     8 Mbit/s  ┐ used only when the client leaves out
    default_fps         60        ┘ ?bitrate= / ?fps= on the URL

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


TELEMETRY_MODES = ("console", "log", "off")


@dataclass
class ServerConfig:
    """
    Configuration for the media streaming server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK     host, port, backlog, buffer_size, timeout
    HTTP        keep_alive, keep_alive_timeout, max_request_size
    THREADING   min_workers, max_workers, queue_size
    MEDIA       media_root, chunk_size, telemetry_interval,
                default_bitrate, default_fps, telemetry
    LOGGING     log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """Interface to bind. Use "0.0.0.0" so TVs and phones on the LAN can connect."""

    port: int = 8000

    backlog: int = 128
    """Pending connections the kernel queues before refusing new ones."""

    buffer_size: int = 8192
    """Bytes per recv() while reading request headers."""

    timeout: Optional[float] = 30.0
    """
    Socket timeout in seconds, for reads and for each blocking send.
    A player that stops reading for longer than this loses its stream.
    """

    # ─────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True
    keep_alive_timeout: float = 5.0
    max_request_size: int = 64 * 1024
    """GET requests carry no body, so 64 KB of headers is plenty."""

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────
    # A worker stays busy for the whole life of a stream, so max_workers
    # is also the number of movies that can play at once.

    min_workers: int = 4
    max_workers: int = 16
    queue_size: int = 100

    # ─────────────────────────────────────────────────────────────────────
    # MEDIA SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    media_root: str = "."
    """Directory that request paths are resolved against."""

    chunk_size: int = 64 * 1024
    telemetry_interval: float = 0.45
    default_bitrate: int = 8_000_000
    default_fps: int = 60

    telemetry: str = "console"
    """Where live stream samples go: "console", "log" or "off"."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    log_format: str = "text"
    """Access log format: 'text' (Apache-like) or 'json'."""

    server_name: str = "rangestream/1.0"

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        STREAM_HOST        Bind address (default: 127.0.0.1)
        STREAM_PORT        Port (default: 8000)
        STREAM_ROOT        Media directory (default: .)
        STREAM_WORKERS     Max worker threads (default: 16)
        STREAM_CHUNK_SIZE  Bytes per pull (default: 65536)
        STREAM_TELEMETRY   console | log | off (default: console)
        STREAM_LOG_LEVEL   Logging level (default: INFO)

        =====================================================================
        """
        return cls(
            host=os.getenv("STREAM_HOST", "127.0.0.1"),
            port=int(os.getenv("STREAM_PORT", "8000")),
            media_root=os.getenv("STREAM_ROOT", "."),
            max_workers=int(os.getenv("STREAM_WORKERS", "16")),
            chunk_size=int(os.getenv("STREAM_CHUNK_SIZE", str(64 * 1024))),
            telemetry=os.getenv("STREAM_TELEMETRY", "console"),
            log_level=os.getenv("STREAM_LOG_LEVEL", "INFO"),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Called by HTTPServer.__init__ so a typo fails at startup, not on the
        first request.
        """
        # Port 0 lets the OS pick a free port (used by tests)
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")

        if self.telemetry_interval < 0:
            raise ValueError("telemetry_interval must be >= 0")

        if self.default_bitrate < 0 or self.default_fps < 0:
            raise ValueError("default_bitrate and default_fps must be >= 0")

        if self.telemetry not in TELEMETRY_MODES:
            raise ValueError(
                f"telemetry must be one of {', '.join(TELEMETRY_MODES)}, got {self.telemetry!r}"
            )

        if not os.path.isdir(self.media_root):
            raise ValueError(f"media_root is not a directory: {self.media_root}")
