"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

Builds HTTP/1.1 responses (RFC 7230), including ones whose body is
streamed from disk instead of held in memory.

=============================================================================
TWO KINDS OF BODY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTPResponse                                    │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │   IN MEMORY (body=b"...")          STREAMED (stream=producer)       │
    │   ───────────────────────          ──────────────────────────       │
    │                                                                     │
    │   to_bytes() → head + body         head_bytes() → head only         │
    │   Content-Length = len(body)       Content-Length set by handler    │
    │   one sendall()                    one sendall() per chunk          │
    │                                                                     │
    │   error responses                  200 / 206 media responses        │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

A 2 GB movie never sits in memory: the head goes out first, then the
server pulls 64 KiB chunks from the stream until it runs dry.

=============================================================================
A 206 ON THE WIRE
=============================================================================

    HTTP/1.1 206 Partial Content\r\n
    Content-Type: video/mp4\r\n
    Content-Length: 1048576\r\n              ← window size, not file size
    Content-Range: bytes 0-1048575/73400320\r\n
    Accept-Ranges: bytes\r\n
    Access-Control-Allow-Origin: *\r\n
    Date: Mon, 19 Oct 2026 12:00:00 GMT\r\n
    Server: rangestream/1.0\r\n
    \r\n
    <1048576 bytes, in chunks>

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Dict, Iterator, Union

from .status_codes import HTTPStatus


@dataclass
class HTTPResponse:
    """
    Represents an HTTP response to be sent to the client.

    ``stream`` is any iterator of byte chunks. When it is set, ``body`` is
    ignored and the handler must have set Content-Length itself, since only
    the handler knows how many bytes the stream will produce.
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    stream: Optional[Iterator[bytes]] = None
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """Example: "HTTP/1.1 206 Partial Content"."""
        return f"{self.version} {int(self.status)} {HTTPStatus(self.status).phrase}"

    @property
    def is_streaming(self) -> bool:
        return self.stream is not None

    @property
    def content_length(self) -> int:
        """Declared body size: the header if set, else len(body)."""
        declared = self.headers.get("Content-Length")
        if declared is not None:
            return int(declared)
        return 0 if self.is_streaming else len(self.body)

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        self.headers[name] = value
        return self

    def head_bytes(self, server_name: str = "rangestream/1.0") -> bytes:
        """
        Serialize the status line and headers, up to and including the
        blank line that ends them.

        Adds Content-Length (in-memory bodies only), Date and Server when
        missing.
        """
        response_headers = dict(self.headers)

        if "Content-Length" not in response_headers and not self.is_streaming:
            response_headers["Content-Length"] = str(len(self.body))

        if "Date" not in response_headers:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))

        if "Server" not in response_headers:
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        return "\r\n".join(lines).encode("utf-8") + b"\r\n"

    def to_bytes(self, server_name: str = "rangestream/1.0") -> bytes:
        """
        Serialize head and in-memory body in one piece.

        Raises:
            ValueError: For streamed responses, whose body can't be
                materialized here.
        """
        if self.is_streaming:
            raise ValueError("streamed responses are sent with head_bytes() + stream")
        return self.head_bytes(server_name) + self.body


class ResponseBuilder:
    """
    Fluent builder for HTTP responses.

    Each method returns ``self`` so calls chain:

        response = (ResponseBuilder()
            .status(HTTPStatus.PARTIAL_CONTENT)
            .content_type("video/mp4")
            .header("Content-Range", "bytes 0-99/1000")
            .stream(producer, length=100)
            .cors()
            .build())
    """

    def __init__(self, server_name: str = "rangestream/1.0"):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""
        self._stream: Optional[Iterator[bytes]] = None
        self._server_name = server_name

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = status
        return self

    # =========================================================================
    # HEADER METHODS
    # =========================================================================

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def headers(self, headers: Dict[str, str]) -> "ResponseBuilder":
        self._headers.update(headers)
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.header("Content-Type", content_type)

    def content_length(self, length: int) -> "ResponseBuilder":
        return self.header("Content-Length", str(length))

    def accept_ranges(self) -> "ResponseBuilder":
        """Advertise byte-range support so players know they can seek."""
        return self.header("Accept-Ranges", "bytes")

    def cors(self, origin: str = "*") -> "ResponseBuilder":
        """
        Allow cross-origin reads.

        A web page on another host can then point <video src=...> at this
        server and read the bytes through fetch() or MSE.
        """
        return self.header("Access-Control-Allow-Origin", origin)

    def close_connection(self) -> "ResponseBuilder":
        return self.header("Connection", "close")

    # =========================================================================
    # BODY METHODS
    # =========================================================================

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        if isinstance(body, str):
            body = body.encode("utf-8")
        self._body = body
        self._stream = None
        return self

    def text(self, text: str, content_type: str = "text/plain; charset=utf-8") -> "ResponseBuilder":
        self._headers["Content-Type"] = content_type
        return self.body(text)

    def stream(self, chunks: Iterator[bytes], length: int) -> "ResponseBuilder":
        """
        Stream the body from an iterator of chunks.

        Args:
            chunks: Iterator yielding byte strings.
            length: Exact number of bytes the iterator will yield when it
                runs to completion. Becomes Content-Length.
        """
        self._stream = chunks
        self._body = b""
        return self.content_length(length)

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=dict(self._headers),
            body=self._body,
            stream=self._stream,
        )

    def to_bytes(self) -> bytes:
        return self.build().to_bytes(self._server_name)


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231).

    Format: Day, DD Mon YYYY HH:MM:SS GMT
    Example: Mon, 19 Oct 2026 12:00:00 GMT

    HTTP dates are always GMT, never local time.
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


def reject(
    status: Union[HTTPStatus, int],
    headers: Optional[Dict[str, str]] = None
) -> HTTPResponse:
    """
    Build a bodiless error response.

    Media clients never render an error page; all they look at is the
    status code (and, for 405/416, the Allow or Content-Range header).
    So every rejection is headers only, with Content-Length: 0.

    Examples:
        reject(HTTPStatus.NOT_FOUND)
        reject(HTTPStatus.METHOD_NOT_ALLOWED, {"Allow": "GET"})
        reject(HTTPStatus.RANGE_NOT_SATISFIABLE, {"Content-Range": "bytes */1000"})
    """
    builder = ResponseBuilder().status(HTTPStatus(int(status)))
    if headers:
        builder.headers(headers)
    return builder.content_length(0).build()
