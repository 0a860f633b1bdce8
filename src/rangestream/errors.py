"""
=============================================================================
STREAMING ERROR TAXONOMY
=============================================================================

Every way a media request can fail, as exceptions that carry the HTTP
status they map to.

=============================================================================
TWO KINDS OF FAILURE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                  WHEN DID THE REQUEST FAIL?                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │   BEFORE HEADERS                   AFTER HEADERS                    │
    │   ──────────────                   ─────────────                    │
    │                                                                     │
    │   InvalidMethod        405         StreamReadFailure                │
    │   PathTraversalRejected 400/403    ClientDisconnected               │
    │   FileNotFound         404                                          │
    │   UnsatisfiableRange   416         Status line is already on the    │
    │                                    wire. The body is cut short and  │
    │   Answered with a bodiless         the connection is closed; the    │
    │   error response. No file is       player retries with a new Range. │
    │   ever opened.                                                      │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

Nothing here is fatal to the server: each failure stays inside its own
request.

=============================================================================
"""

from typing import Optional


class StreamError(Exception):
    """
    Base class for all media streaming errors.

    Like HTTPParseError, each error remembers the status code that the
    client should see, so handlers can turn any of them into a response
    without a lookup table.
    """

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


# =============================================================================
# PRE-HEADER REJECTIONS
# =============================================================================

class InvalidMethod(StreamError):
    """Anything other than GET."""

    status_code = 405

    def __init__(self, method: str):
        super().__init__(f"Method not allowed: {method}")
        self.method = method


class PathTraversalRejected(StreamError):
    """
    The request path tried to leave the media root.

    A literal ".." is a 400 (malformed request). A path that only escapes
    the root after resolution (a symlink pointing outside) is a 403.
    """

    status_code = 400


class FileNotFound(StreamError):
    """Missing file, or something that is not a regular file (directories, devices)."""

    status_code = 404


class UnsatisfiableRange(StreamError):
    """
    The Range header asked for bytes the file doesn't have.

    The file size is kept so the 416 response can advertise it with
    ``Content-Range: bytes */<size>`` (RFC 7233 §4.4).
    """

    status_code = 416

    def __init__(self, message: str, size: int):
        super().__init__(message)
        self.size = size


# =============================================================================
# POST-HEADER FAILURES
# =============================================================================

class StreamReadFailure(StreamError):
    """Disk I/O failed while a response body was being streamed."""

    status_code = 500


class ClientDisconnected(StreamError):
    """
    The socket write failed: the client went away mid-stream.

    Never answered; it keeps the inherited 500 only so that every
    StreamError maps to a real status.
    """
