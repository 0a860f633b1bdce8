"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

The HTTP/1.1 pieces the media server needs, and nothing more.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ request.py       raw bytes → HTTPRequest                            │
    │                  lower-case headers, decoded path, ".." rejected    │
    ├─────────────────────────────────────────────────────────────────────┤
    │ response.py      HTTPResponse / ResponseBuilder                     │
    │                  in-memory or streamed bodies, bodiless reject()    │
    ├─────────────────────────────────────────────────────────────────────┤
    │ status_codes.py  HTTPStatus (200, 206, 4xx, 5xx)                    │
    ├─────────────────────────────────────────────────────────────────────┤
    │ mime_types.py    file name → Content-Type (ordered substring table) │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError, parse_request
from .response import HTTPResponse, ResponseBuilder, format_http_date, reject
from .status_codes import HTTPStatus
from .mime_types import MEDIA_TYPES, DEFAULT_MEDIA_TYPE, resolve_media_type

__all__ = [
    # Request parsing
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_request",

    # Response building
    "HTTPResponse",
    "ResponseBuilder",
    "format_http_date",
    "reject",

    # Status codes
    "HTTPStatus",

    # Media types
    "MEDIA_TYPES",
    "DEFAULT_MEDIA_TYPE",
    "resolve_media_type",
]
