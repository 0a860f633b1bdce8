"""
=============================================================================
ACCESS LOGGING MIDDLEWARE
=============================================================================

One access log line per request, with the requested range, a request ID
and the time it took to produce the response head.

=============================================================================
LOG FORMATS
=============================================================================

    TEXT (Apache-like):
    ┌─────────────────────────────────────────────────────────────────────┐
    │ 192.168.1.7 - - [19/Oct/2026:20:15:02 +0000] "GET /pilot.mp4"       │
    │ 206 1048576 "bytes=0-1048575" 0.41ms                                │
    │ ───────────────────────────────────────────────────────────────     │
    │ IP        Timestamp              Request   Status Length Range  TTFB│
    └─────────────────────────────────────────────────────────────────────┘

    JSON (for log aggregators):
    {"request_id": "a1b2c3d4", "method": "GET", "path": "/pilot.mp4",
     "range": "bytes=0-1048575", "status_code": 206,
     "content_length": 1048576, "duration_ms": 0.41, ...}

=============================================================================
WHAT THE NUMBERS MEAN FOR A STREAM
=============================================================================

The middleware runs before the body is sent. So for a media response:

    content_length   bytes the response declares (Content-Length), not
                     bytes that actually reached the client
    duration_ms      time to build the head: validation, stat(), open()

How much of the body really went out is reported by stream telemetry
(StreamSummary), which runs when the stream ends.

=============================================================================
"""

import time
import json
import uuid
import logging
from typing import Optional
from dataclasses import dataclass, asdict

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger("rangestream.access")


@dataclass
class RequestLog:
    """Structured access log entry."""

    request_id: str
    method: str
    path: str
    range: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        entry = asdict(self)
        entry["duration_ms"] = round(self.duration_ms, 2)
        return entry

    def to_text(self) -> str:
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} "{self.range}" {self.duration_ms:.2f}ms'
        )


class LoggingMiddleware(Middleware):
    """
    Request logging middleware. Add it first so it sees every request.

        pipeline.add(LoggingMiddleware(log_format="json"))

    Args:
        log_format: "text" or "json".
        include_request_id: Add an X-Request-ID header to the response, so
            a user can quote it when reporting a playback problem.
        log_level: Level for ordinary lines; 5xx responses always log at
            WARNING.
        skip_paths: Paths not to log (a player polling a playlist, say).
    """

    def __init__(
        self,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
        skip_paths: Optional[list[str]] = None,
    ):
        if log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json', got {log_format!r}")

        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level
        self.skip_paths = set(skip_paths or [])

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        request_id = str(uuid.uuid4())[:8]
        start_time = time.perf_counter()

        try:
            response = next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"Request failed: {request.method} {request.path} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
            )
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000

        if self.include_request_id:
            response.headers["X-Request-ID"] = request_id

        if request.path in self.skip_paths:
            return response

        log_entry = RequestLog(
            request_id=request_id,
            method=request.method,
            path=request.path,
            range=request.get_header("range", "-"),
            client_ip=request.client_address[0],
            user_agent=request.user_agent or "-",
            status_code=int(response.status),
            content_length=response.content_length,
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        level = logging.WARNING if log_entry.status_code >= 500 else self.log_level

        if self.log_format == "json":
            logger.log(level, json.dumps(log_entry.to_dict()))
        else:
            logger.log(level, log_entry.to_text())

        return response
