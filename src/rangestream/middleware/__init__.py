"""
=============================================================================
MIDDLEWARE
=============================================================================

Cross-cutting request processing around the media handler.

    Middleware, MiddlewarePipeline   the chain (base.py)
    LoggingMiddleware                access log + X-Request-ID (logging.py)

=============================================================================
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .logging import LoggingMiddleware, RequestLog

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",
    "LoggingMiddleware",
    "RequestLog",
]
