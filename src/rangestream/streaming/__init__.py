"""
=============================================================================
RANGE-AWARE STREAMING PIPELINE
=============================================================================

Everything between "this request wants bytes 100-199 of pilot.mp4" and the
chunks the server writes to the socket.

    Range header ──► parse_range() ──► ByteRange
                                          │
                                          ▼
                      StreamSession (file handle, cursor, counters)
                                          │
                                          ▼
                      ChunkProducer ──► 64 KiB chunks ──► socket
                                          │
                                          └─► TelemetrySampler ──► observer

    ranges.py      ByteRange, parse_range
    session.py     StreamSession, AtomicCounter, READ_CHUNK
    producer.py    ChunkProducer
    telemetry.py   PlaybackHints, TelemetrySampler, estimate_rates,
                   observers and their data types

=============================================================================
"""

from .ranges import ByteRange, parse_range
from .telemetry import (
    PlaybackHints,
    StreamOutcome,
    TelemetrySample,
    StreamSummary,
    estimate_rates,
    TelemetrySampler,
    TelemetryObserver,
    ConsoleTelemetry,
    LoggingTelemetry,
    NullTelemetry,
    TelemetryFanout,
    build_observer,
)
from .session import AtomicCounter, StreamSession, READ_CHUNK
from .producer import ChunkProducer

__all__ = [
    # Ranges
    "ByteRange",
    "parse_range",

    # Sessions
    "AtomicCounter",
    "StreamSession",
    "READ_CHUNK",
    "ChunkProducer",

    # Telemetry
    "PlaybackHints",
    "StreamOutcome",
    "TelemetrySample",
    "StreamSummary",
    "estimate_rates",
    "TelemetrySampler",
    "TelemetryObserver",
    "ConsoleTelemetry",
    "LoggingTelemetry",
    "NullTelemetry",
    "TelemetryFanout",
    "build_observer",
]
