"""
=============================================================================
RANGESTREAM
=============================================================================

A threaded HTTP/1.1 server that streams media files from one directory,
honoring byte-range requests so players can seek, resume and buffer.

=============================================================================
ARCHITECTURE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                     │
    │   core/          SocketServer ─► ThreadPool ─► Connection           │
    │                                                   │                 │
    │   http/          RequestParser ◄──────────────────┘                 │
    │                        │                                            │
    │   middleware/    LoggingMiddleware                                  │
    │                        │                                            │
    │   handlers/      MediaStreamHandler                                 │
    │                        │  validate, parse_range, open session       │
    │                        ▼                                            │
    │   streaming/     StreamSession ─► ChunkProducer ─► socket           │
    │                        │                                            │
    │                        └─► TelemetrySampler ─► TelemetryObserver    │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
QUICK START
=============================================================================

    from rangestream import HTTPServer, ServerConfig

    server = HTTPServer(ServerConfig(host="0.0.0.0", media_root="/srv/media"))
    server.run()

    $ curl -H "Range: bytes=0-1023" http://127.0.0.1:8000/movie.mp4

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .server import HTTPServer, create_server

__all__ = ["HTTPServer", "ServerConfig", "create_server", "__version__"]
