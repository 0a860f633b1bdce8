"""
=============================================================================
STREAM TELEMETRY
=============================================================================

Live throughput and an estimated playback frame rate for every stream,
without ever slowing a stream down.

=============================================================================
HOW A SAMPLE IS TAKEN
=============================================================================

    ChunkProducer pull ──► StreamSession.read_chunk() ──► r bytes read
                                                           │
                          bytes_since_sample += r          │
                                                           ▼
                                        TelemetrySampler.observe(session)
                                                           │
                            elapsed = now - last_sample_time
                                                           │
                              elapsed < 0.45 s ? ──yes──► return (cheap)
                                                           │ no
                                                           ▼
                      byte_count = bytes_since_sample.exchange(0)
                      last_sample_time = now
                      throughput, fps = estimate_rates(...)
                      observer.on_sample(TelemetrySample)

Sampling is throttled by wall time, not chunk count: a LAN stream pulls
hundreds of chunks a second and nobody needs hundreds of log lines.

=============================================================================
THE FPS HEURISTIC
=============================================================================

The server has no idea what is inside the file. The client can hint at it
on the URL (?bitrate=8000000&fps=60), and from that:

    bytes_per_frame = bitrate_bps / target_fps / 8
                    = 8_000_000 / 60 / 8 ≈ 16 667 bytes

    fps_estimate    = (bytes / elapsed) / bytes_per_frame

    5 MB/s sent  →  5 * 1_048_576 / 16 667 ≈ 314 "frames" per second

An fps well above target_fps means the player is buffering ahead; one
below it means the network can't keep up. It is a display number only.

=============================================================================
OBSERVERS
=============================================================================

    ┌──────────────────┬──────────────────────────────────────────────────┐
    │ ConsoleTelemetry │ one live line, overwritten with \\r, on stdout   │
    │ LoggingTelemetry │ DEBUG per sample, INFO per finished stream       │
    │ NullTelemetry    │ nothing                                          │
    │ TelemetryFanout  │ several of the above at once                     │
    └──────────────────┴──────────────────────────────────────────────────┘

Every session shares one observer, so observers must be thread-safe.

=============================================================================
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, TextIO
import logging
import sys
import threading
import time

from ..http.request import HTTPRequest


logger = logging.getLogger(__name__)

BYTES_PER_MB = 1_048_576

DEFAULT_SAMPLE_INTERVAL = 0.45


# =============================================================================
# DATA TYPES
# =============================================================================

@dataclass(frozen=True)
class PlaybackHints:
    """
    What the client says about the media, from ?bitrate= and ?fps=.

    Only the fps estimate uses these. A missing, garbled or negative value
    silently falls back to the default; it is never worth a 400.
    """

    bitrate_bps: int = 8_000_000
    target_fps: int = 60

    @classmethod
    def from_query(
        cls,
        request: HTTPRequest,
        defaults: Optional["PlaybackHints"] = None
    ) -> "PlaybackHints":
        defaults = defaults or cls()
        return cls(
            bitrate_bps=_non_negative_int(request.get_query("bitrate"), defaults.bitrate_bps),
            target_fps=_non_negative_int(request.get_query("fps"), defaults.target_fps),
        )


def _non_negative_int(raw: Optional[str], default: int) -> int:
    if raw is None:
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        return default
    return value if value >= 0 else default


class StreamOutcome(Enum):
    """How a stream ended."""

    COMPLETED = "completed"                       # every byte of the window sent
    TRUNCATED = "truncated"                       # file shrank under us
    READ_FAILURE = "read_failure"                 # disk I/O error
    CLIENT_DISCONNECTED = "client_disconnected"   # socket write failed
    ABANDONED = "abandoned"                       # closed early, no error


@dataclass(frozen=True)
class TelemetrySample:
    """One throttled measurement of a live stream."""

    stream_id: int
    path: str
    elapsed: float
    throughput_mbps: float
    fps_estimate: float
    bytes_total: int

    @property
    def megabytes_total(self) -> float:
        return self.bytes_total / BYTES_PER_MB


@dataclass(frozen=True)
class StreamSummary:
    """Emitted exactly once per stream, when its session is torn down."""

    stream_id: int
    path: str
    bytes_total: int
    expected_bytes: int
    outcome: StreamOutcome
    duration: float

    @property
    def megabytes_total(self) -> float:
        return self.bytes_total / BYTES_PER_MB

    @property
    def is_complete(self) -> bool:
        return self.outcome is StreamOutcome.COMPLETED


# =============================================================================
# RATE MATH
# =============================================================================

def estimate_rates(
    byte_count: int,
    elapsed: float,
    hints: PlaybackHints
) -> tuple[float, float]:
    """
    Compute (throughput in MB/s, estimated frames per second).

    Examples:
        >>> estimate_rates(1_048_576, 1.0, PlaybackHints(8_000_000, 60))[0]
        1.0

        >>> estimate_rates(1_048_576, 1.0, PlaybackHints(8_000_000, 0))[1]
        0.0
    """
    if elapsed <= 0:
        return 0.0, 0.0

    bytes_per_second = byte_count / elapsed
    throughput_mbps = bytes_per_second / BYTES_PER_MB

    if hints.target_fps > 0:
        bytes_per_frame = hints.bitrate_bps / hints.target_fps / 8
    else:
        bytes_per_frame = 0.0

    fps_estimate = bytes_per_second / bytes_per_frame if bytes_per_frame > 0 else 0.0
    return throughput_mbps, fps_estimate


# =============================================================================
# OBSERVERS
# =============================================================================

class TelemetryObserver(ABC):
    """Receives samples and summaries from all streams."""

    @abstractmethod
    def on_sample(self, sample: TelemetrySample) -> None:
        pass

    @abstractmethod
    def on_complete(self, summary: StreamSummary) -> None:
        pass


class NullTelemetry(TelemetryObserver):
    def on_sample(self, sample: TelemetrySample) -> None:
        pass

    def on_complete(self, summary: StreamSummary) -> None:
        pass


class ConsoleTelemetry(TelemetryObserver):
    """
    Live status line on a terminal.

    Samples overwrite the current line with a carriage return; a summary
    ends it with a newline so the next stream starts a fresh line:

        ↑ 11.42 MB/s | ~718.6 fps (est) | sent total: 96.00 MB
        ✓ Done. Total sent: 128.00 MB

    With several streams at once the line shows whichever sampled last.
    """

    def __init__(self, stream: Optional[TextIO] = None):
        self._stream = stream
        self._lock = threading.Lock()

    @property
    def stream(self) -> TextIO:
        # Resolved lazily so pytest's capsys sees the writes
        return self._stream if self._stream is not None else sys.stdout

    def on_sample(self, sample: TelemetrySample) -> None:
        line = (
            f"\r↑ {sample.throughput_mbps:.2f} MB/s | "
            f"~{sample.fps_estimate:.1f} fps (est) | "
            f"sent total: {sample.megabytes_total:.2f} MB "
        )
        self._write(line)

    def on_complete(self, summary: StreamSummary) -> None:
        self._write(f"\n✓ Done. Total sent: {summary.megabytes_total:.2f} MB\n")

    def _write(self, text: str) -> None:
        with self._lock:
            out = self.stream
            out.write(text)
            out.flush()


class LoggingTelemetry(TelemetryObserver):
    """Telemetry through the logging module, for servers without a terminal."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logging.getLogger("rangestream.telemetry")

    def on_sample(self, sample: TelemetrySample) -> None:
        self.log.debug(
            f"stream {sample.stream_id} {sample.path}: "
            f"{sample.throughput_mbps:.2f} MB/s, ~{sample.fps_estimate:.1f} fps (est), "
            f"{sample.megabytes_total:.2f} MB sent"
        )

    def on_complete(self, summary: StreamSummary) -> None:
        self.log.info(
            f"stream {summary.stream_id} {summary.path} {summary.outcome.value}: "
            f"{summary.bytes_total}/{summary.expected_bytes} bytes "
            f"in {summary.duration:.2f}s"
        )


class TelemetryFanout(TelemetryObserver):
    """Forward every call to each wrapped observer in order."""

    def __init__(self, *observers: TelemetryObserver):
        self.observers = list(observers)

    def on_sample(self, sample: TelemetrySample) -> None:
        for observer in self.observers:
            observer.on_sample(sample)

    def on_complete(self, summary: StreamSummary) -> None:
        for observer in self.observers:
            observer.on_complete(summary)


def build_observer(mode: str, stream: Optional[TextIO] = None) -> TelemetryObserver:
    """
    Create the observer for a ``--telemetry`` mode.

    Args:
        mode: "console", "log" or "off".
        stream: Console output (default: stdout).

    Raises:
        ValueError: Unknown mode.
    """
    if mode == "console":
        return ConsoleTelemetry(stream)
    if mode == "log":
        return LoggingTelemetry()
    if mode == "off":
        return NullTelemetry()
    raise ValueError(f"Unknown telemetry mode: {mode!r}")


# =============================================================================
# SAMPLER
# =============================================================================

class TelemetrySampler:
    """
    Decides when a stream is due for a sample and takes it.

    One sampler per session. The clock is injectable so tests can step time
    by hand instead of sleeping.
    """

    def __init__(
        self,
        interval: float = DEFAULT_SAMPLE_INTERVAL,
        observer: Optional[TelemetryObserver] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.interval = interval
        self.observer = observer or NullTelemetry()
        self.clock = clock

    def observe(self, session) -> Optional[TelemetrySample]:
        """
        Take a sample if at least ``interval`` seconds have passed since the
        session's last one.

        Called by the session after every successful read. Returns the
        sample, or None when it wasn't due.
        """
        now = self.clock()
        elapsed = now - session.last_sample_time
        if elapsed < self.interval:
            return None

        byte_count = session.bytes_since_sample.exchange(0)
        session.last_sample_time = now

        throughput_mbps, fps_estimate = estimate_rates(byte_count, elapsed, session.hints)
        sample = TelemetrySample(
            stream_id=session.stream_id,
            path=session.display_path,
            elapsed=elapsed,
            throughput_mbps=throughput_mbps,
            fps_estimate=fps_estimate,
            bytes_total=session.bytes_delivered.value,
        )

        try:
            self.observer.on_sample(sample)
        except Exception:
            # A broken sink must not cut the stream short
            logger.exception(f"Telemetry observer failed on stream {session.stream_id}")

        return sample
