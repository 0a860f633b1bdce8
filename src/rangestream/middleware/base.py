"""
=============================================================================
MIDDLEWARE BASE CLASSES
=============================================================================

Middleware wraps the media handler to add behavior around every request
(access logging, request IDs) without touching the handler itself.

=============================================================================
THE CHAIN
=============================================================================

    pipeline.add(LoggingMiddleware())          first added = outermost

        ┌───────────────────────────────────────────────────┐
        │  LoggingMiddleware                                │
        │  ┌─────────────────────────────────────────────┐  │
        │  │                                             │  │
        │  │         MediaStreamHandler.handle           │  │
        │  │                                             │  │
        │  └─────────────────────────────────────────────┘  │
        └───────────────────────────────────────────────────┘

    Request flows in, response flows out. For a streamed response the
    middleware sees the response before any body byte is sent: it can add
    headers, but it must not touch ``response.stream``.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, List
import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)

NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    Abstract base class for middleware.

    Subclasses implement ``__call__(request, next)`` and usually call
    ``next(request)``; returning without calling it short-circuits the
    chain.

        class ServerTiming(Middleware):
            def __call__(self, request, next):
                response = next(request)
                response.set_header("X-Served-By", "rangestream")
                return response
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        pass

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    Chains middleware around a final handler.

        pipeline = MiddlewarePipeline()
        pipeline.add(LoggingMiddleware())
        handler = pipeline.wrap(media_handler.handle)
        response = handler(request)
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def use(self, *middleware: Middleware) -> "MiddlewarePipeline":
        for mw in middleware:
            self.add(mw)
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Build the chain: with [MW1, MW2] the result calls
        MW1 → MW2 → handler.

        Wrapping goes in reverse so the first-added middleware ends up
        outermost.
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = self._create_wrapped_handler(middleware, current)
        return current

    def _create_wrapped_handler(
        self,
        middleware: Middleware,
        next_handler: NextHandler
    ) -> NextHandler:
        def wrapped(request: HTTPRequest) -> HTTPResponse:
            return middleware(request, next_handler)
        return wrapped

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self):
        return iter(self._middleware)
