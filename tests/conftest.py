"""
pytest configuration and fixtures.
"""

import socket
import threading
from pathlib import Path
from typing import Generator, Optional
import pytest

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from rangestream import HTTPServer, ServerConfig
from rangestream.http import HTTPRequest
from rangestream.streaming import StreamSummary, TelemetryObserver, TelemetrySample


def pattern_bytes(size: int, seed: int = 0) -> bytes:
    """Deterministic content where every offset is recognisable: byte i is (i + seed) % 251."""
    return bytes((i + seed) % 251 for i in range(size))


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingObserver(TelemetryObserver):
    """Collects every sample and summary; lets tests wait for summaries."""

    def __init__(self):
        self.samples: list[TelemetrySample] = []
        self.summaries: list[StreamSummary] = []
        self._lock = threading.Lock()
        self._changed = threading.Condition(self._lock)

    def on_sample(self, sample: TelemetrySample) -> None:
        with self._lock:
            self.samples.append(sample)

    def on_complete(self, summary: StreamSummary) -> None:
        with self._changed:
            self.summaries.append(summary)
            self._changed.notify_all()

    def wait_for_summaries(self, count: int, timeout: float = 5.0) -> list[StreamSummary]:
        with self._changed:
            self._changed.wait_for(lambda: len(self.summaries) >= count, timeout=timeout)
            return list(self.summaries)


def make_request(
    path: str = "/clip.mp4",
    method: str = "GET",
    headers: Optional[dict] = None,
    query: Optional[dict] = None,
) -> HTTPRequest:
    """Build an HTTPRequest directly, the way the parser would."""
    return HTTPRequest(
        method=method,
        path=path,
        headers={k.lower(): v for k, v in (headers or {}).items()},
        query_params={k: [v] for k, v in (query or {}).items()},
        client_address=("127.0.0.1", 50000),
    )


@pytest.fixture
def sample_range_request() -> bytes:
    """A typical seek request from a video player."""
    return (
        b"GET /shows/pilot.mp4?bitrate=6000000&fps=24 HTTP/1.1\r\n"
        b"Host: 192.168.1.20:8000\r\n"
        b"Range: bytes=1048576-\r\n"
        b"User-Agent: VLC/3.0.20 LibVLC/3.0.20\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def media_dir(tmp_path: Path) -> Path:
    """
    A media root with:

        clip.mp4        1000 bytes
        long.mp4        200 KiB (several 64 KiB chunks)
        subs.vtt        WebVTT text
        empty.bin       0 bytes
        shows/pilot.ts  4096 bytes
    """
    root = tmp_path / "media"
    root.mkdir()
    (root / "clip.mp4").write_bytes(pattern_bytes(1000))
    (root / "long.mp4").write_bytes(pattern_bytes(200 * 1024, seed=7))
    (root / "subs.vtt").write_text("WEBVTT\n\n00:00.000 --> 00:01.000\nHello\n")
    (root / "empty.bin").write_bytes(b"")
    (root / "shows").mkdir()
    (root / "shows" / "pilot.ts").write_bytes(pattern_bytes(4096, seed=3))
    return root


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recorder() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def config(media_dir: Path) -> ServerConfig:
    """Test server configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        min_workers=2,
        max_workers=8,
        timeout=5.0,
        keep_alive_timeout=1.0,
        media_root=str(media_dir),
        telemetry="off",
        log_level="WARNING",
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class TestServer:
    """Test server helper that runs in a background thread."""

    __test__ = False

    def __init__(self, server: HTTPServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        self._thread = threading.Thread(
            target=self.server.run,
            kwargs={"banner": False},
            daemon=True,
        )
        self._thread.start()

        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        self.server.stop()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)


@pytest.fixture
def test_server(config: ServerConfig, recorder: RecordingObserver) -> Generator[TestServer, None, None]:
    """A running media server over ``media_dir`` that reports to ``recorder``."""
    server = HTTPServer(config, observer=recorder)
    test_srv = TestServer(server)
    test_srv.start()

    yield test_srv

    test_srv.stop()
