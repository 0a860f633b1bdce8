"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The status codes this server can send, as an IntEnum with reason phrases.

=============================================================================
CODES A MEDIA SERVER ACTUALLY USES
=============================================================================

    ┌───────┬────────────────────────────┬───────────────────────────────┐
    │ Code  │ Phrase                     │ When                          │
    ├───────┼────────────────────────────┼───────────────────────────────┤
    │  200  │ OK                         │ whole file, no Range header   │
    │  206  │ Partial Content            │ Range request satisfied       │
    │  400  │ Bad Request                │ malformed request, ".." path  │
    │  403  │ Forbidden                  │ resolved path leaves the root │
    │  404  │ Not Found                  │ no such regular file          │
    │  405  │ Method Not Allowed         │ anything but GET              │
    │  408  │ Request Timeout            │ client never sent a request   │
    │  413  │ Payload Too Large          │ oversized request headers     │
    │  416  │ Range Not Satisfiable      │ start past end of file        │
    │  500  │ Internal Server Error      │ handler bug                   │
    │  503  │ Service Unavailable        │ thread pool saturated         │
    │  505  │ HTTP Version Not Supported │ not HTTP/1.0 or HTTP/1.1      │
    └───────┴────────────────────────────┴───────────────────────────────┘

Why IntEnum? Members compare equal to plain ints (HTTPStatus.OK == 200)
and still format as names in logs and tests.

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """HTTP status codes with reason phrases and category helpers."""

    # 2xx SUCCESS
    OK = 200
    PARTIAL_CONTENT = 206                   # Range request fulfilled

    # 4xx CLIENT ERRORS
    BAD_REQUEST = 400
    FORBIDDEN = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    REQUEST_TIMEOUT = 408
    PAYLOAD_TOO_LARGE = 413
    RANGE_NOT_SATISFIABLE = 416

    # 5xx SERVER ERRORS
    INTERNAL_SERVER_ERROR = 500
    SERVICE_UNAVAILABLE = 503
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        """Reason phrase for the status line ("HTTP/1.1 206 Partial Content")."""
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_success(self) -> bool:
        return 200 <= self < 300

    @property
    def is_client_error(self) -> bool:
        return 400 <= self < 500

    @property
    def is_server_error(self) -> bool:
        return 500 <= self < 600

    @property
    def is_error(self) -> bool:
        """4xx or 5xx. Handy for picking a log level."""
        return self >= 400


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.PARTIAL_CONTENT: "Partial Content",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.FORBIDDEN: "Forbidden",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.RANGE_NOT_SATISFIABLE: "Range Not Satisfiable",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}
