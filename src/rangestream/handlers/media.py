"""
=============================================================================
MEDIA STREAM HANDLER
=============================================================================

Serves files from one root directory with byte-range support, streamed in
chunks instead of read into memory.

=============================================================================
REQUEST STATE MACHINE
=============================================================================

    ┌──────────┐   GET, clean path, regular file,   ┌───────────┐
    │ Received │ ─────── satisfiable range ────────►│ Validated │
    └────┬─────┘                                    └─────┬─────┘
         │                                                │ open file,
         │ anything else                                  │ build headers
         ▼                                                ▼
    ┌──────────┐                                    ┌───────────┐
    │ Rejected │  bodiless 4xx, no file opened      │ Streaming │
    └──────────┘                                    └─────┬─────┘
                                                          │ window sent, or
                                                          │ client gone, or
                                                          ▼ read error
                                                    ┌───────────┐
                                                    │ Completed │
                                                    └───────────┘

    ┌──────────────────────────────────────┬────────┬────────────────────┐
    │ Rejection                            │ Status │ Extra header       │
    ├──────────────────────────────────────┼────────┼────────────────────┤
    │ method is not GET                    │  405   │ Allow: GET         │
    │ path contains ".." or a NUL byte     │  400   │                    │
    │ resolved path is outside the root    │  403   │                    │
    │ file unreadable                      │  403   │                    │
    │ missing, directory, device, fifo     │  404   │                    │
    │ start > end or start ≥ size          │  416   │ Content-Range:     │
    │                                      │        │   bytes */<size>   │
    └──────────────────────────────────────┴────────┴────────────────────┘

=============================================================================
SECURITY
=============================================================================

Two gates, because substring checks alone are easy to get wrong:

    1. Literal ".." anywhere in the decoded path → 400.
    2. The joined path is resolve()d (following symlinks) and must still
       be inside the root → otherwise 403.

    GET /../../etc/passwd           gate 1
    GET /link-to-etc/passwd         gate 2 (symlink inside the root)

=============================================================================
"""

from pathlib import Path
from typing import Callable, Optional, Union
import logging
import stat
import time

from ..errors import (
    StreamError,
    InvalidMethod,
    PathTraversalRejected,
    FileNotFound,
    UnsatisfiableRange,
)
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder, reject
from ..http.status_codes import HTTPStatus
from ..http.mime_types import resolve_media_type
from ..streaming import (
    ByteRange,
    ChunkProducer,
    PlaybackHints,
    StreamSession,
    TelemetryObserver,
    TelemetrySampler,
    NullTelemetry,
    parse_range,
    READ_CHUNK,
)
from ..streaming.telemetry import DEFAULT_SAMPLE_INTERVAL


logger = logging.getLogger(__name__)


class MediaStreamHandler:
    """
    Range-aware media file handler.

    =========================================================================
    USAGE
    =========================================================================

        handler = MediaStreamHandler(
            "/srv/media",
            observer=ConsoleTelemetry(),
        )
        server = HTTPServer(config, handler)

    handle() never raises for a bad request: every rejection comes back as
    a bodiless HTTPResponse. A streaming response carries a ChunkProducer in
    ``response.stream``, which the server drains and closes.

    =========================================================================
    """

    ALLOWED_METHODS = ("GET",)

    def __init__(
        self,
        root_dir: Union[str, Path],
        chunk_size: int = READ_CHUNK,
        telemetry_interval: float = DEFAULT_SAMPLE_INTERVAL,
        default_hints: Optional[PlaybackHints] = None,
        observer: Optional[TelemetryObserver] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            root_dir: Directory to serve. Every request path is resolved
                against it and must stay inside it.
            chunk_size: Bytes per pull.
            telemetry_interval: Minimum seconds between samples of a stream.
            default_hints: Bitrate/fps used when the URL doesn't say.
            observer: Where samples and summaries go. Shared by all streams.
            clock: Monotonic time source, replaceable in tests.
        """
        self.root_dir = Path(root_dir).resolve()
        self.chunk_size = chunk_size
        self.telemetry_interval = telemetry_interval
        self.default_hints = default_hints or PlaybackHints()
        self.observer = observer or NullTelemetry()
        self.clock = clock

        if not self.root_dir.is_dir():
            raise ValueError(f"Media root directory does not exist: {root_dir}")

    def __call__(self, request: HTTPRequest) -> HTTPResponse:
        return self.handle(request)

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Answer one request.

        Returns:
            A 200/206 response whose ``stream`` yields the window, or a
            bodiless rejection.
        """
        try:
            return self._stream(request)
        except StreamError as e:
            logger.info(f"Rejected {request.method} {request.path}: {e} ({e.status_code})")
            return self.reject(e)

    # ─────────────────────────────────────────────────────────────────────
    # VALIDATION
    # ─────────────────────────────────────────────────────────────────────

    def check_method(self, request: HTTPRequest) -> None:
        if request.method not in self.ALLOWED_METHODS:
            raise InvalidMethod(request.method)

    def resolve_path(self, url_path: str) -> Path:
        """
        Map a URL path onto a path inside the root.

        Raises:
            PathTraversalRejected: 400 for ".." or NUL in the path, 403 if
                the resolved path escapes the root.
        """
        if ".." in url_path:
            raise PathTraversalRejected(f"Path contains '..': {url_path}")

        # os.stat() raises ValueError on embedded NUL bytes
        if "\x00" in url_path:
            raise PathTraversalRejected("Path contains a NUL byte")

        relative = url_path.lstrip("/")
        full_path = (self.root_dir / relative).resolve()

        try:
            full_path.relative_to(self.root_dir)
        except ValueError:
            logger.warning(f"Path traversal attempt: {url_path}")
            raise PathTraversalRejected(
                f"Path escapes the media root: {url_path}",
                status_code=HTTPStatus.FORBIDDEN,
            ) from None

        return full_path

    def file_size(self, path: Path) -> int:
        """
        Size of a regular file.

        Raises:
            FileNotFound: Missing, or not a regular file.
        """
        try:
            st = path.stat()
        except OSError as e:
            raise FileNotFound(f"File not found: {path.name}") from e

        if not stat.S_ISREG(st.st_mode):
            raise FileNotFound(f"Not a regular file: {path.name}")

        return st.st_size

    # ─────────────────────────────────────────────────────────────────────
    # STREAMING
    # ─────────────────────────────────────────────────────────────────────

    def _stream(self, request: HTTPRequest) -> HTTPResponse:
        self.check_method(request)
        path = self.resolve_path(request.path)
        size = self.file_size(path)

        # Raises UnsatisfiableRange before anything is opened
        window = parse_range(request.get_header("range"), size)
        hints = PlaybackHints.from_query(request, self.default_hints)

        session = self._open_session(path, window, hints, request.path)
        producer = ChunkProducer(session, self.observer)

        logger.debug(
            f"Streaming {request.path} bytes {window.start}-{window.end}/{size} "
            f"as stream {session.stream_id}"
        )
        return self.build_response(request.path, window, producer)

    def _open_session(
        self,
        path: Path,
        window: ByteRange,
        hints: PlaybackHints,
        url_path: str
    ) -> StreamSession:
        sampler = TelemetrySampler(
            interval=self.telemetry_interval,
            observer=self.observer,
            clock=self.clock,
        )
        try:
            return StreamSession(
                path,
                window,
                hints=hints,
                chunk_size=self.chunk_size,
                sampler=sampler,
                display_path=url_path,
            )
        except PermissionError as e:
            raise StreamError(f"Permission denied: {path.name}", HTTPStatus.FORBIDDEN) from e
        except OSError as e:
            # Deleted or replaced between stat() and open()
            raise FileNotFound(f"Cannot open {path.name}: {e}") from e

    def build_response(
        self,
        url_path: str,
        window: ByteRange,
        producer: ChunkProducer
    ) -> HTTPResponse:
        """
        Headers for a 200/206 media response with a streamed body.

        The Content-Type follows the name the client asked for, not the
        resolved file, so a symlinked "movie.mp4" is still video/mp4.
        """
        status = HTTPStatus.PARTIAL_CONTENT if window.is_partial else HTTPStatus.OK

        builder = (ResponseBuilder()
            .status(status)
            .content_type(resolve_media_type(url_path))
            .accept_ranges()
            .cors("*"))

        if window.is_partial:
            builder.header("Content-Range", window.content_range)

        return builder.stream(producer, length=window.length).build()

    # ─────────────────────────────────────────────────────────────────────
    # REJECTIONS
    # ─────────────────────────────────────────────────────────────────────

    def reject(self, error: StreamError) -> HTTPResponse:
        """Turn a pre-header error into a bodiless response."""
        headers = {}

        if isinstance(error, InvalidMethod):
            headers["Allow"] = ", ".join(self.ALLOWED_METHODS)
        elif isinstance(error, UnsatisfiableRange):
            headers["Content-Range"] = f"bytes */{error.size}"

        return reject(error.status_code, headers)


def serve_media(root_dir: Union[str, Path], **kwargs) -> MediaStreamHandler:
    """
    Create a media handler.

    Example:
        handler = serve_media("/srv/media", chunk_size=128 * 1024)
    """
    return MediaStreamHandler(root_dir, **kwargs)
