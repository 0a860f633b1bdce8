"""
=============================================================================
HANDLERS MODULE
=============================================================================

A handler takes an HTTPRequest and returns an HTTPResponse. This server has
exactly one: every path is a file under the media root.

    ┌─────────┐            ┌────────────────────┐           ┌──────────────┐
    │ GET     │            │ MediaStreamHandler │           │ 206          │
    │ /a.mp4  │ ─────────► │ validate, range,   │ ────────► │ Content-Range│
    │ Range   │            │ open session       │           │ stream=...   │
    └─────────┘            └────────────────────┘           └──────────────┘

    from rangestream.handlers import serve_media

    handler = serve_media("/srv/media")

=============================================================================
"""

from .media import MediaStreamHandler, serve_media

__all__ = [
    "MediaStreamHandler",
    "serve_media",
]
