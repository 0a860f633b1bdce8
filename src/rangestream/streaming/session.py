"""
=============================================================================
STREAM SESSION
=============================================================================

Per-response state: the open file, the byte window, the cursor and the
telemetry counters.

=============================================================================
ANATOMY OF A SESSION
=============================================================================

    file on disk (size 1000)
    ┌──────────────────────────────────────────────────────────────────┐
    │0                   100 ███████████████████ 199                999│
    └──────────────────────────────────────────────────────────────────┘
                          ▲           ▲
                   window.start       window.start + cursor
                                      (next byte to send)

    window        ByteRange(100, 199)      fixed for the session's life
    cursor        0 … window.length        advanced only by read_chunk()
    source        open("rb")               owned by this session alone
    counters      bytes_delivered          only ever grows
                  bytes_since_sample       zeroed by each telemetry sample

=============================================================================
OWNERSHIP
=============================================================================

    MediaStreamHandler ──creates──► StreamSession ◄──owns── ChunkProducer
                                                               │
                                          host pulls chunks ───┘

Nothing else holds a reference to the session: two requests for the same
file get two sessions and two file handles. The file is closed exactly
once, by close(), however the stream ends.

=============================================================================
"""

from pathlib import Path
from typing import Optional, Union
import itertools
import logging
import threading

from ..errors import StreamReadFailure
from .ranges import ByteRange
from .telemetry import PlaybackHints, TelemetrySampler


logger = logging.getLogger(__name__)

# Upper bound on a single disk read. Keeps every pull short so one stream
# can't hog a worker that other connections are waiting on.
READ_CHUNK = 64 * 1024

_stream_ids = itertools.count(1)


class AtomicCounter:
    """
    An integer that several threads can update safely.

    A session is normally driven by one worker, but the counters are read
    from other threads (telemetry, tests), so every update takes the lock.

    Example:
        counter = AtomicCounter()
        counter.add(512)
        counter.exchange(0)   # 512, and the counter is 0 again
    """

    def __init__(self, initial: int = 0):
        self._value = initial
        self._lock = threading.Lock()

    def add(self, amount: int) -> int:
        """Add ``amount``, return the new value."""
        with self._lock:
            self._value += amount
            return self._value

    def exchange(self, new_value: int) -> int:
        """Set a new value, return the old one."""
        with self._lock:
            old = self._value
            self._value = new_value
            return old

    @property
    def value(self) -> int:
        with self._lock:
            return self._value

    def __repr__(self) -> str:
        return f"AtomicCounter({self.value})"


class StreamSession:
    """
    A bounded, read-only view onto one file for one response.

    The file is opened in the constructor, so a session only exists once the
    request has been validated. Use as a context manager or call close().
    """

    def __init__(
        self,
        path: Union[str, Path],
        window: ByteRange,
        hints: Optional[PlaybackHints] = None,
        chunk_size: int = READ_CHUNK,
        sampler: Optional[TelemetrySampler] = None,
        display_path: Optional[str] = None,
    ):
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")

        self.path = Path(path)
        self.window = window
        self.hints = hints or PlaybackHints()
        self.chunk_size = chunk_size
        self.sampler = sampler or TelemetrySampler()
        self.display_path = display_path or self.path.name
        self.stream_id = next(_stream_ids)

        self.cursor = 0
        self.bytes_delivered = AtomicCounter()
        self.bytes_since_sample = AtomicCounter()

        self.started_at = self.sampler.clock()
        self.last_sample_time = self.started_at

        # Opened last: nothing above can fail after the handle exists
        self._source = open(self.path, "rb")
        self._closed = False

    # ─────────────────────────────────────────────────────────────────────
    # STATE
    # ─────────────────────────────────────────────────────────────────────

    @property
    def remaining(self) -> int:
        """Bytes of the window not yet delivered."""
        return self.window.length - self.cursor

    @property
    def is_complete(self) -> bool:
        """True once every byte of the window has been delivered."""
        return self.cursor >= self.window.length

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def elapsed(self) -> float:
        return self.sampler.clock() - self.started_at

    # ─────────────────────────────────────────────────────────────────────
    # READING
    # ─────────────────────────────────────────────────────────────────────

    def read_chunk(self) -> bytes:
        """
        Read the next chunk of the window.

        Seeks to the absolute offset before every read, so it doesn't matter
        which thread made the previous call or what it did to the file
        position.

        Returns:
            Up to ``chunk_size`` bytes, never past ``window.end``. An empty
            bytes object means end of stream: the window is done, the file
            ended early, or the session is closed.

        Raises:
            StreamReadFailure: The seek or read failed.
        """
        if self._closed:
            return b""

        want = min(self.chunk_size, self.remaining)
        if want <= 0:
            return b""

        offset = self.window.start + self.cursor
        try:
            self._source.seek(offset)
            chunk = self._source.read(want)
        except OSError as e:
            raise StreamReadFailure(f"Read failed at offset {offset} of {self.path}: {e}") from e

        if not chunk:
            logger.debug(f"{self.path} ended at offset {offset}, {self.remaining} bytes short")
            return b""

        size = len(chunk)

        self.bytes_delivered.add(size)
        self.bytes_since_sample.add(size)
        self.cursor += size

        self.sampler.observe(self)
        return chunk

    # ─────────────────────────────────────────────────────────────────────
    # TEARDOWN
    # ─────────────────────────────────────────────────────────────────────

    def close(self) -> None:
        """Close the file. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._source.close()

    def __enter__(self) -> "StreamSession":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"StreamSession(id={self.stream_id}, path={self.display_path!r}, "
            f"window={self.window.start}-{self.window.end}, cursor={self.cursor})"
        )
