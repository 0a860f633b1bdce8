"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket: buffered request reading, writes that
report failure instead of raising, and an orderly close.

=============================================================================
TCP IS A BYTE STREAM
=============================================================================

TCP keeps bytes in order but not message boundaries. One request can arrive
in several recv() calls, and one recv() can hold the end of one request and
the start of the next (pipelining):

    recv() → b"GET /a.mp4 HTTP/1.1\\r\\nRan"
    recv() → b"ge: bytes=0-\\r\\n\\r\\nGET /a.mp4 HT"
                                  ▲
                    end of request 1; the rest stays in _buffer

So read_request() buffers until it sees \\r\\n\\r\\n and keeps any extra
bytes for the next call.

=============================================================================
WRITE FAILURE IS THE DISCONNECT SIGNAL
=============================================================================

A player that seeks simply drops the connection and opens a new one. We
only find out when the next write fails:

    send_response(chunk) ──► True    keep pulling chunks
                        └──► False   client gone: stop, close the stream

send_response() never raises for a dead peer; the caller decides what a
failed write means.

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional
import uuid


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle states, for logging and debugging."""

    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"          # headers or body chunks going out
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    A client connection.

    ┌─────────────────────────────────────────────────────────────────────┐
    │  read_request()   buffered, header terminator + Content-Length      │
    │  send_response()  sendall(), False when the peer is gone            │
    │  close()          FIN, drain, release the descriptor                │
    └─────────────────────────────────────────────────────────────────────┘

    ``timeout`` also bounds every blocking send, so a player that stops
    reading for that long loses its stream.
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW

    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    requests_handled: int = 0
    bytes_sent: int = 0

    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 64 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def client_port(self) -> int:
        return self.address[1]

    @property
    def age(self) -> float:
        """Connection age in seconds."""
        return time.time() - self.created_at

    @property
    def idle_time(self) -> float:
        return time.time() - self.last_activity

    @property
    def is_closed(self) -> bool:
        return self.state == ConnectionState.CLOSED

    # ─────────────────────────────────────────────────────────────────────
    # READING
    # ─────────────────────────────────────────────────────────────────────

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete HTTP request from the socket.

        The first request waits up to ``timeout``; later ones on a
        keep-alive connection only ``keep_alive_timeout``.

        Returns:
            Complete request bytes, or None if the client closed the
            connection (or let it idle out after a previous request).

        Raises:
            TimeoutError: The first request never arrived.
            ValueError: The request exceeds ``max_request_size``.
        """
        self.state = ConnectionState.READING
        self.last_activity = time.time()

        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            while b"\r\n\r\n" not in self._buffer:
                chunk = self._recv()
                if not chunk:
                    return None
                self._buffer += chunk
                if len(self._buffer) > self.max_request_size:
                    raise ValueError(f"Request too large: {len(self._buffer)} bytes")

            header_end = self._buffer.find(b"\r\n\r\n")
            body_start = header_end + 4
            content_length = self._parse_content_length(self._buffer[:header_end])

            if body_start + content_length > self.max_request_size:
                raise ValueError(f"Request too large: {body_start + content_length} bytes")

            while len(self._buffer) - body_start < content_length:
                chunk = self._recv()
                if not chunk:
                    break
                self._buffer += chunk

            request_end = body_start + content_length
            request_data = self._buffer[:request_end]
            self._buffer = self._buffer[request_end:]

            self.requests_handled += 1
            self.last_activity = time.time()
            self.state = ConnectionState.PROCESSING
            return request_data

        except socket.timeout:
            if self.requests_handled > 0:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            if not self.is_closed:
                self.socket.settimeout(self.timeout)

    def _recv(self) -> bytes:
        """socket.recv() that maps a reset peer to b"" (closed)."""
        try:
            data = self.socket.recv(self.buffer_size)
            self.last_activity = time.time()
            return data
        except (ConnectionResetError, BrokenPipeError):
            return b""

    def _parse_content_length(self, headers: bytes) -> int:
        """
        Content-Length from raw header bytes, 0 if absent or garbled.

        Needed before the request is parsed, to know how much body to wait
        for. Media requests are GETs, so this is nearly always 0.
        """
        header_str = headers.decode("utf-8", errors="replace").lower()
        for line in header_str.split("\r\n"):
            if line.startswith("content-length:"):
                try:
                    return max(0, int(line.split(":", 1)[1].strip()))
                except ValueError:
                    return 0
        return 0

    # ─────────────────────────────────────────────────────────────────────
    # WRITING
    # ─────────────────────────────────────────────────────────────────────

    def send_response(self, data: bytes) -> bool:
        """
        Send bytes to the client: a whole response, its head, or one body
        chunk.

        Returns:
            True if every byte was handed to the kernel, False if the
            connection is gone (reset, broken pipe, send timeout).
        """
        self.state = ConnectionState.WRITING
        self.last_activity = time.time()

        try:
            self.socket.sendall(data)
        except (ConnectionResetError, BrokenPipeError) as e:
            logger.debug(f"[{self.id}] Client went away: {e}")
            return False
        except OSError as e:
            # Includes socket.timeout: the client stopped reading
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

        self.bytes_sent += len(data)
        self.last_activity = time.time()
        return True

    # ─────────────────────────────────────────────────────────────────────
    # CLOSING
    # ─────────────────────────────────────────────────────────────────────

    def close(self):
        """
        Close gracefully: FIN to the client, drain what it still sends,
        release the descriptor. Safe to call twice.

        When a stream was cut short the client sees the FIN right after a
        partial body, and knows the response was truncated because fewer
        bytes than Content-Length arrived.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # peer already gone

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(
            f"[{self.id}] Connection closed after {self.requests_handled} requests, "
            f"{self.bytes_sent} bytes sent"
        )

    def abort(self):
        """
        Unblock a worker stuck in recv() or sendall() on this connection,
        from another thread. The worker then sees a dead socket and closes
        the connection itself.
        """
        try:
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # already closed

    def set_keep_alive(self):
        """Mark connection as waiting for its next request."""
        self.state = ConnectionState.KEEP_ALIVE

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
