"""
=============================================================================
MEDIA STREAMING HTTP SERVER
=============================================================================

Ties the pieces together: socket server, thread pool, request parser,
middleware, the media handler, and the loop that streams response bodies.

=============================================================================
ONE CONNECTION, START TO FINISH
=============================================================================

    accept() ──► ThreadPool.submit(conn) ──► worker: _process_connection
                                                   │
        ┌──────────────────────────────────────────┘
        │  keep-alive loop
        ▼
    read_request() ──► RequestParser.parse() ──► middleware ──► handler
        ▲                                                          │
        │                                                          ▼
        │                                              HTTPResponse(stream=…)
        │                                                          │
        │              send head ──► for chunk in stream: send ◄───┘
        │                                   │
        │        all Content-Length bytes   │   a send failed, or the
        └──────── sent, keep-alive ─────────┤   stream ended short
                                            ▼
                                     close the stream, close the connection

=============================================================================
TEARDOWN IS GUARANTEED
=============================================================================

The stream is closed in a ``finally`` block, so its file handle is released
and its summary emitted whether the body finished, the client vanished, or
something raised. ChunkProducer.close() is idempotent, so closing a stream
that already closed itself at end-of-window is harmless.

A failed send is never retried: the stream is closed as
CLIENT_DISCONNECTED and the connection dropped. The player reconnects with
a fresh Range header.

=============================================================================
"""

import logging
import threading
from typing import Callable, Optional

from .config import ServerConfig
from .errors import ClientDisconnected
from .core import SocketServer, Connection, ThreadPool
from .http import HTTPRequest, RequestParser, HTTPParseError, HTTPResponse, HTTPStatus, reject
from .middleware import MiddlewarePipeline, Middleware, LoggingMiddleware
from .handlers import MediaStreamHandler
from .streaming import ChunkProducer, PlaybackHints, StreamOutcome, TelemetryObserver, build_observer


logger = logging.getLogger(__name__)

Handler = Callable[[HTTPRequest], HTTPResponse]


class HTTPServer:
    """
    Threaded HTTP/1.1 server for one request handler.

    =========================================================================
    USAGE
    =========================================================================

        config = ServerConfig(host="0.0.0.0", media_root="/srv/media")
        server = HTTPServer(config)
        server.run()            # blocks until Ctrl+C / SIGTERM / stop()

    Without an explicit handler, a MediaStreamHandler is built from the
    config (root, chunk size, telemetry interval, default hints) with the
    telemetry observer named by ``config.telemetry``. LoggingMiddleware is
    installed unless ``access_log=False``.

    =========================================================================
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        handler: Optional[Handler] = None,
        observer: Optional[TelemetryObserver] = None,
        access_log: bool = True,
    ):
        self.config = config or ServerConfig()
        self.config.validate()

        self.observer = observer or build_observer(self.config.telemetry)
        self.handler = handler or MediaStreamHandler(
            self.config.media_root,
            chunk_size=self.config.chunk_size,
            telemetry_interval=self.config.telemetry_interval,
            default_hints=PlaybackHints(
                bitrate_bps=self.config.default_bitrate,
                target_fps=self.config.default_fps,
            ),
            observer=self.observer,
        )

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
            queue_size=self.config.queue_size,
        )
        self._parser = RequestParser(max_request_size=self.config.max_request_size)
        self._middleware = MiddlewarePipeline()
        self._handler: Optional[Handler] = None
        self._running = False

        self._connections: dict[str, Connection] = {}
        self._connections_lock = threading.Lock()

        if access_log:
            self.use(LoggingMiddleware(log_format=self.config.log_format))

    def use(self, middleware: Middleware) -> "HTTPServer":
        """Add middleware. Call before run()."""
        self._middleware.add(middleware)
        return self

    # ─────────────────────────────────────────────────────────────────────
    # LIFECYCLE
    # ─────────────────────────────────────────────────────────────────────

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> tuple[str, int]:
        """Bound (host, port); the real port when configured with port 0."""
        return self._socket_server.address

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is listening. False on timeout."""
        return self._socket_server.ready.wait(timeout)

    def run(self, banner: bool = True):
        """
        Start the server. Blocks until stop(), SIGINT or SIGTERM.

        Args:
            banner: Print the startup box to stdout.
        """
        self._setup_logging()
        self._handler = self._middleware.wrap(self.handler)
        self._running = True
        self._thread_pool.start()

        on_ready = self._print_startup_banner if banner else None

        try:
            self._socket_server.start(self._handle_connection, on_ready=on_ready)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def stop(self):
        """Ask a running server to shut down. Safe from any thread."""
        self._socket_server.shutdown()

    def _print_startup_banner(self):
        host, port = self.address
        print()
        print("╔══════════════════════════════════════════════════════════════╗")
        print(f"  {self.config.server_name} streaming")
        print(f"  📁 {self.config.media_root}")
        print(f"  📍 http://{host}:{port}/<file>")
        print("     optional: ?bitrate=<bits/s>&fps=<n> for the fps estimate")
        print(f"  👷 Workers: {self.config.min_workers}-{self.config.max_workers} streams")
        print("  Press Ctrl+C to stop")
        print("╚══════════════════════════════════════════════════════════════╝")
        print()

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("rangestream").setLevel(level)

    def _shutdown(self):
        """
        Stop accepting (already done when we get here), cut open
        connections so their workers wake up, then stop the pool.

        Streams cut this way end as CLIENT_DISCONNECTED: from the stream's
        point of view the socket died.
        """
        logger.info("Shutting down server...")
        self._running = False

        with self._connections_lock:
            open_connections = list(self._connections.values())
        for conn in open_connections:
            conn.abort()

        self._thread_pool.shutdown(wait=False)
        logger.info("Server stopped")

    # ─────────────────────────────────────────────────────────────────────
    # CONNECTIONS
    # ─────────────────────────────────────────────────────────────────────

    def _handle_connection(self, conn: Connection):
        """Runs on the accept thread: hand off, or 503 when saturated."""
        submitted = self._thread_pool.submit(
            self._process_connection,
            args=(conn,),
            block=False,
        )

        if not submitted:
            logger.warning(f"[{conn.id}] Thread pool full, rejecting connection")
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE)
            conn.close()

    def _process_connection(self, conn: Connection):
        """
        The keep-alive loop for one connection (runs on a worker).

        Ends when the client closes, a request can't be parsed, a response
        can't be fully delivered, or either side asked for Connection: close.
        """
        with self._connections_lock:
            self._connections[conn.id] = conn

        try:
            with conn:
                while self._running:
                    try:
                        raw_request = conn.read_request()
                    except TimeoutError:
                        self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT)
                        break
                    except ValueError as e:
                        logger.info(f"[{conn.id}] {e}")
                        self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE)
                        break

                    if raw_request is None:
                        break

                    try:
                        request = self._parser.parse(raw_request, conn.address)
                    except HTTPParseError as e:
                        logger.info(f"[{conn.id}] Bad request: {e}")
                        self._send_error(conn, e.status_code)
                        break

                    response = self._dispatch(conn, request)
                    keep_alive = request.is_keep_alive and self.config.keep_alive

                    if keep_alive:
                        response.headers.setdefault("Connection", "keep-alive")
                        response.headers.setdefault(
                            "Keep-Alive",
                            f"timeout={int(self.config.keep_alive_timeout)}"
                        )
                    else:
                        response.headers["Connection"] = "close"

                    if not self._send(conn, response):
                        break

                    if not keep_alive:
                        break

                    conn.set_keep_alive()
        finally:
            with self._connections_lock:
                self._connections.pop(conn.id, None)

    def _dispatch(self, conn: Connection, request: HTTPRequest) -> HTTPResponse:
        try:
            return self._handler(request)
        except Exception as e:
            logger.exception(f"[{conn.id}] Handler error: {e}")
            return reject(HTTPStatus.INTERNAL_SERVER_ERROR)

    def _send(self, conn: Connection, response: HTTPResponse) -> bool:
        """
        Write a response: the head, then the body.

        Returns:
            True if every declared byte went out and the connection can
            carry another request.
        """
        head = response.head_bytes(self.config.server_name)
        stream = response.stream

        if stream is None:
            return conn.send_response(head + response.body)

        expected = response.content_length
        sent = 0
        outcome: Optional[StreamOutcome] = None

        try:
            self._write(conn, head)
            for chunk in stream:
                self._write(conn, chunk)
                sent += len(chunk)
        except ClientDisconnected as e:
            logger.warning(f"[{conn.id}] {e}")
            outcome = StreamOutcome.CLIENT_DISCONNECTED
            return False
        finally:
            self._close_stream(stream, outcome)

        if sent != expected:
            # Body cut short (read error, file shrank). Closing the
            # connection is the only way left to tell the client.
            logger.warning(f"[{conn.id}] Sent {sent} of {expected} bytes, closing connection")
            return False

        return True

    def _write(self, conn: Connection, data: bytes):
        if not conn.send_response(data):
            raise ClientDisconnected(
                f"Client went away after {conn.bytes_sent} bytes on this connection"
            )

    def _close_stream(self, stream, outcome: Optional[StreamOutcome]):
        if isinstance(stream, ChunkProducer):
            stream.close(outcome)
            return

        close = getattr(stream, "close", None)
        if close is not None:
            close()

    def _send_error(self, conn: Connection, status: int):
        """Bodiless error for failures outside the handler. Closes after."""
        headers = {"Connection": "close"}
        if status == HTTPStatus.METHOD_NOT_ALLOWED:
            headers["Allow"] = "GET"
        response = reject(status, headers)
        conn.send_response(response.to_bytes(self.config.server_name))


def create_server(
    config: Optional[ServerConfig] = None,
    **kwargs
) -> HTTPServer:
    """
    Create a media server.

    Example:
        server = create_server(ServerConfig(port=9000, media_root="/srv/media"))
        server.run()
    """
    return HTTPServer(config, **kwargs)
