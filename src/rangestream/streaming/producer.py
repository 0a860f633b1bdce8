"""
=============================================================================
CHUNK PRODUCER
=============================================================================

The iterator the server pulls response bytes from.

=============================================================================
CONTRACT
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  for chunk in producer:          finite: stops at end of window     │
    │      if not send(chunk):         non-restartable: once stopped,     │
    │          producer.close(           stays stopped                    │
    │            CLIENT_DISCONNECTED)                                     │
    │          break                   close(): runs its teardown exactly │
    │  producer.close()                  once, whoever calls it first     │
    └─────────────────────────────────────────────────────────────────────┘

It is a class rather than a generator function on purpose: a generator's
cleanup only runs if the generator was started, while close() here works
even when the server never pulled a single chunk (client gone before the
first write).

=============================================================================
HOW A STREAM ENDS
=============================================================================

    ┌───────────────────────────────┬─────────────────────────────────────┐
    │ What happened                 │ Outcome                             │
    ├───────────────────────────────┼─────────────────────────────────────┤
    │ window fully read             │ COMPLETED                           │
    │ file ended before the window  │ TRUNCATED                           │
    │ OSError from seek/read        │ READ_FAILURE                        │
    │ server saw a failed send      │ CLIENT_DISCONNECTED (passed in)     │
    │ close() before the end        │ ABANDONED                           │
    └───────────────────────────────┴─────────────────────────────────────┘

Whatever the outcome: the file is closed and one StreamSummary goes to the
observer.

=============================================================================
"""

from typing import Iterator, Optional
import logging
import threading

from ..errors import StreamReadFailure
from .session import StreamSession
from .telemetry import StreamOutcome, StreamSummary, TelemetryObserver


logger = logging.getLogger(__name__)


class ChunkProducer:
    """
    Pull-based, finite, non-restartable iterator of byte chunks.

    Args:
        session: The session to read from. The producer takes ownership
            and closes it.
        observer: Receives the StreamSummary. Defaults to the session
            sampler's observer, so samples and summaries share one sink.
    """

    def __init__(
        self,
        session: StreamSession,
        observer: Optional[TelemetryObserver] = None,
    ):
        self.session = session
        self.observer = observer or session.sampler.observer
        self._closed = False
        self._close_lock = threading.Lock()
        self._summary: Optional[StreamSummary] = None

    @property
    def expected_bytes(self) -> int:
        return self.session.window.length

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def summary(self) -> Optional[StreamSummary]:
        """Set once the producer has been closed."""
        return self._summary

    def __iter__(self) -> Iterator[bytes]:
        return self

    def __next__(self) -> bytes:
        if self._closed:
            raise StopIteration

        failed = False
        try:
            chunk = self.session.read_chunk()
        except StreamReadFailure as e:
            logger.warning(f"Stream {self.session.stream_id} aborted: {e}")
            failed = True
            chunk = b""

        if chunk:
            return chunk

        if failed:
            self.close(StreamOutcome.READ_FAILURE)
        elif self.session.is_complete:
            self.close(StreamOutcome.COMPLETED)
        else:
            self.close(StreamOutcome.TRUNCATED)
        raise StopIteration

    def close(self, outcome: Optional[StreamOutcome] = None) -> StreamSummary:
        """
        Tear the stream down: close the file, report the summary.

        Idempotent. Only the first call does anything; later calls (the
        server's ``finally`` after the iterator already finished, say)
        return the first call's summary.

        Args:
            outcome: Why the stream ended. When omitted it is COMPLETED if
                the whole window went out, else ABANDONED.

        Returns:
            The stream's summary.
        """
        with self._close_lock:
            if self._closed:
                return self._summary
            self._closed = True

            if outcome is None:
                outcome = (
                    StreamOutcome.COMPLETED if self.session.is_complete
                    else StreamOutcome.ABANDONED
                )

            self.session.close()

            self._summary = StreamSummary(
                stream_id=self.session.stream_id,
                path=self.session.display_path,
                bytes_total=self.session.bytes_delivered.value,
                expected_bytes=self.expected_bytes,
                outcome=outcome,
                duration=self.session.elapsed,
            )

        if outcome is not StreamOutcome.COMPLETED:
            logger.warning(
                f"Stream {self._summary.stream_id} {self._summary.path} ended "
                f"{outcome.value} after {self._summary.bytes_total}/"
                f"{self._summary.expected_bytes} bytes"
            )

        try:
            self.observer.on_complete(self._summary)
        except Exception:
            logger.exception(f"Telemetry observer failed on stream {self._summary.stream_id}")

        return self._summary

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"ChunkProducer({self.session!r}, {state})"
