"""
=============================================================================
LOW-LEVEL TCP SOCKET SERVER
=============================================================================

Binds, listens and accepts. Every accepted socket is wrapped in a
Connection and handed to a callback (the HTTP server, which queues it on
the thread pool). Nothing here knows about HTTP.

=============================================================================
SOCKET LIFECYCLE
=============================================================================

    socket() ─► setsockopt() ─► bind() ─► listen() ─► accept() loop ─► close()
                 SO_REUSEADDR                           │
                 TCP_NODELAY                            ├─► Connection(client)
                 timeout 1 s                            └─► callback(conn)

SO_REUSEADDR     restart immediately without "Address already in use"
TCP_NODELAY      send the response head at once; don't wait to coalesce it
                 with the first body chunk
1 s timeout      accept() wakes up every second to check for shutdown

=============================================================================
PORT 0
=============================================================================

Binding port 0 lets the OS pick a free port. ``bound_address`` holds the
real one after start(), and ``ready`` is set once the socket is listening,
so a test can start the server in a thread and connect as soon as it's up.

=============================================================================
"""

import socket
import signal
import logging
import threading
from typing import Optional, Callable, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


class SocketServer:
    """
    Low-level TCP socket server.

    Usage:
        def handle_connection(conn: Connection):
            ...

        server = SocketServer(config)
        server.start(handle_connection)   # blocks until shutdown()
    """

    def __init__(self, config: ServerConfig):
        self.config = config
        self._socket: Optional[socket.socket] = None
        self._running = False
        self._shutdown_event = threading.Event()
        self._original_handlers: dict = {}
        self.ready = threading.Event()
        self.bound_address: Optional[Tuple[str, int]] = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """The bound (ip, port) once started, else the configured one."""
        return self.bound_address or (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        sock.settimeout(1.0)
        return sock

    # ─────────────────────────────────────────────────────────────────────
    # SIGNALS
    # ─────────────────────────────────────────────────────────────────────

    def _setup_signals(self):
        """
        SIGTERM (docker stop, systemd) and SIGINT (Ctrl+C) trigger a graceful
        shutdown.

        Python only allows signal handlers on the main thread. When the
        server runs in a worker thread (tests, embedding) the handlers are
        skipped and the owner calls shutdown() itself.
        """
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on the main thread, signal handlers not installed")
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    # ─────────────────────────────────────────────────────────────────────
    # LIFECYCLE
    # ─────────────────────────────────────────────────────────────────────

    def start(
        self,
        connection_handler: Callable[[Connection], None],
        on_ready: Optional[Callable[[], None]] = None,
    ):
        """
        Bind, listen and run the accept loop. Blocks until shutdown().

        Args:
            connection_handler: Called with each accepted Connection. Must
                return quickly (hand off to a worker), since accepting
                stops while it runs.
            on_ready: Called once the socket is listening, before the first
                accept().

        Raises:
            OSError: The address can't be bound.
        """
        self._socket = self._create_socket()

        try:
            self._socket.bind((self.config.host, self.config.port))
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            self._socket.close()
            self._socket = None
            raise

        self._socket.listen(self.config.backlog)
        self.bound_address = self._socket.getsockname()[:2]

        self._running = True
        self._shutdown_event.clear()
        self._setup_signals()
        self.ready.set()

        host, port = self.bound_address
        logger.info(f"Server listening on {host}:{port}")

        try:
            if on_ready is not None:
                on_ready()
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._running:
                    logger.error(f"Accept error: {e}")
                break

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                keep_alive_timeout=self.config.keep_alive_timeout,
                max_request_size=self.config.max_request_size,
            )
            connection_handler(conn)

    def shutdown(self):
        """Stop the accept loop within a second. Idempotent, any thread."""
        if self._running:
            logger.info("Shutting down socket server...")
        self._running = False
        self._shutdown_event.set()

    def _cleanup(self):
        self._restore_signals()

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        self.ready.clear()
        logger.info("Socket server stopped")

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """Block until shutdown() is called. False on timeout."""
        return self._shutdown_event.wait(timeout)
