"""
=============================================================================
HTTP REQUEST PARSING
=============================================================================

Turns the raw bytes of one HTTP/1.x request into an HTTPRequest.

=============================================================================
WHAT A PLAYER SENDS
=============================================================================

    GET /shows/pilot.mp4?bitrate=6000000&fps=24 HTTP/1.1\r\n    ← request line
    Host: 192.168.1.20:8000\r\n                                 ┐
    Range: bytes=1048576-\r\n                                   │ headers
    User-Agent: VLC/3.0.20 LibVLC/3.0.20\r\n                    ┘
    \r\n                                                        ← end of headers

    method        "GET"
    path          "/shows/pilot.mp4"            (URL-decoded, no query)
    query_params  {"bitrate": ["6000000"], "fps": ["24"]}
    headers       {"host": ..., "range": "bytes=1048576-", ...}

=============================================================================
SECURITY: ".." IS REJECTED HERE
=============================================================================

The path is URL-decoded first, then checked for "..". That catches the
encoded spellings too:

    GET /../etc/passwd             → 400
    GET /%2e%2e/etc/passwd         → decoded to "/../etc/passwd" → 400

The media handler checks again and also resolves the final path against
its root, so this is the first of two gates, not the only one.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Optional, Dict
from urllib.parse import parse_qs, urlparse, unquote
import re


class HTTPParseError(Exception):
    """
    Raised when HTTP request parsing fails.

    Carries the status code to answer with:

        400 Bad Request                 - Malformed syntax, ".." in path
        405 Method Not Allowed          - Unknown method
        413 Payload Too Large           - Request exceeds size limit
        505 HTTP Version Not Supported  - Not HTTP/1.0 or HTTP/1.1
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    Header names are stored lower-case (HTTP headers are case-insensitive,
    RFC 7230), so handlers look up "range", never "Range".
    """

    method: str
    path: str
    version: str = "HTTP/1.1"

    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, list[str]] = field(default_factory=dict)
    body: bytes = b""

    client_address: tuple[str, int] = ("", 0)
    raw: bytes = b""

    @property
    def host(self) -> str:
        return self.headers.get("host", "")

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def is_keep_alive(self) -> bool:
        """
        Should the connection stay open after this response?

        HTTP/1.1 keeps alive unless "Connection: close".
        HTTP/1.0 closes unless "Connection: keep-alive".

        Players lean on this heavily: every seek is a new Range request,
        usually on the same connection.
        """
        connection = self.headers.get("connection", "").lower()

        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """
        First value of a query parameter.

        Example:
            # URL: /movie.mp4?fps=24&fps=30
            request.get_query("fps")  # "24"
        """
        values = self.query_params.get(name, [])
        return values[0] if values else default


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

    ==========================================================================
    PARSING STEPS
    ==========================================================================

        raw bytes
            │
            ├─► size check                 (413)
            ├─► split at \\r\\n\\r\\n          (400 if missing)
            ├─► request line               (400 / 405 / 505)
            │     └─► decode path, reject ".."
            ├─► headers                    (lenient: bad lines skipped)
            └─► body by Content-Length     (400 if short)

    ==========================================================================
    """

    # All standard methods parse fine; the media handler decides which it
    # serves (only GET) so the client gets a proper 405 with an Allow header.
    VALID_METHODS = {
        "GET", "HEAD", "POST", "PUT", "DELETE",
        "PATCH", "OPTIONS", "TRACE", "CONNECT",
    }

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(self, max_request_size: int = 64 * 1024):
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0)
    ) -> HTTPRequest:
        """
        Parse raw HTTP request data into an HTTPRequest object.

        Args:
            data: Raw HTTP request bytes from socket.
            client_address: Client's (ip, port) tuple for logging.

        Returns:
            Parsed HTTPRequest object.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=413
            )

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        header_section = data[:header_end].decode("utf-8", errors="replace")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")

        method, path, query_params, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError("Invalid Content-Length header")

        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_params=query_params,
            body=body[:content_length],
            client_address=client_address,
            raw=data,
        )

    def _parse_request_line(
        self,
        line: str
    ) -> tuple[str, str, Dict[str, list[str]], str]:
        """
        Parse "METHOD SP REQUEST-URI SP HTTP-VERSION".

        Returns:
            Tuple of (method, path, query_params, version)

        Raises:
            HTTPParseError: If line is malformed
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line}")

        method, uri, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}", status_code=405)

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=505
            )

        parsed = urlparse(uri)
        path = unquote(parsed.path) or "/"
        query_params = parse_qs(parsed.query, keep_blank_values=True)

        # Checked after unquote() so %2e%2e can't sneak through
        if ".." in path:
            raise HTTPParseError("Invalid path: contains ..", status_code=400)

        return method, path, query_params, version

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Parse header lines into a dict with lower-case names.

        Repeated headers are joined with ", " (RFC 7230 §3.2.2). Obsolete
        line folding (continuation lines starting with whitespace) is
        appended to the previous header. Lines without a colon are skipped.
        """
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers


def parse_request(
    data: bytes,
    client_address: tuple[str, int] = ("", 0),
    max_size: int = 64 * 1024
) -> HTTPRequest:
    """Parse one request with a throwaway RequestParser."""
    return RequestParser(max_request_size=max_size).parse(data, client_address)
