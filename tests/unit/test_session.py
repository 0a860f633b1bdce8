"""
Unit tests for StreamSession and AtomicCounter.
"""

import threading

import pytest

from rangestream.errors import StreamReadFailure
from rangestream.streaming.ranges import ByteRange, parse_range
from rangestream.streaming.session import AtomicCounter, StreamSession
from rangestream.streaming.telemetry import PlaybackHints, TelemetrySampler

from conftest import pattern_bytes


class BrokenFile:
    """Stands in for the open file; every read fails."""

    def seek(self, offset):
        return offset

    def read(self, size):
        raise OSError(5, "Input/output error")

    def close(self):
        pass


def drain(session: StreamSession) -> list[bytes]:
    chunks = []
    while True:
        chunk = session.read_chunk()
        if not chunk:
            return chunks
        chunks.append(chunk)


class TestAtomicCounter:
    """Tests for AtomicCounter."""

    def test_add_returns_new_value(self):
        counter = AtomicCounter()
        assert counter.add(5) == 5
        assert counter.add(3) == 8
        assert counter.value == 8

    def test_exchange_returns_old_value(self):
        """Test that exchange() reads and resets in one step."""
        counter = AtomicCounter(10)

        assert counter.exchange(0) == 10
        assert counter.value == 0

    def test_concurrent_adds(self):
        """Test that no update is lost across threads."""
        counter = AtomicCounter()

        def worker():
            for _ in range(1000):
                counter.add(1)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert counter.value == 8000


class TestStreamSession:
    """Tests for reading a window through a session."""

    @pytest.fixture
    def clip(self, media_dir):
        return media_dir / "clip.mp4"

    def test_reads_exactly_the_window(self, clip):
        """Test that the bytes delivered are the window's bytes."""
        window = parse_range("bytes=100-199", 1000)

        with StreamSession(clip, window, chunk_size=30) as session:
            data = b"".join(drain(session))

        assert data == pattern_bytes(1000)[100:200]

    def test_chunks_bounded_by_chunk_size(self, clip):
        """Test chunk sizes: full chunks, then the remainder."""
        window = ByteRange.full(1000)

        with StreamSession(clip, window, chunk_size=300) as session:
            sizes = [len(c) for c in drain(session)]

        assert sizes == [300, 300, 300, 100]

    def test_progress_counters(self, clip):
        window = parse_range("bytes=0-99", 1000)
        session = StreamSession(clip, window, chunk_size=40)

        session.read_chunk()
        assert session.cursor == 40
        assert session.remaining == 60
        assert session.bytes_delivered.value == 40
        assert not session.is_complete

        drain(session)
        assert session.cursor == 100
        assert session.remaining == 0
        assert session.is_complete
        session.close()

    def test_end_of_window_returns_empty(self, clip):
        """Test that reads after the window is done return b""."""
        session = StreamSession(clip, parse_range("bytes=-10", 1000))

        assert len(session.read_chunk()) == 10
        assert session.read_chunk() == b""
        assert session.read_chunk() == b""
        session.close()

    def test_seeks_before_every_read(self, clip):
        """Test that moving the file position between reads does no harm."""
        window = parse_range("bytes=200-299", 1000)
        session = StreamSession(clip, window, chunk_size=50)

        first = session.read_chunk()
        session._source.seek(0)
        second = session.read_chunk()
        session.close()

        assert first + second == pattern_bytes(1000)[200:300]

    def test_file_shrinks_mid_stream(self, tmp_path):
        """Test that a truncated file ends the stream early, without error."""
        path = tmp_path / "shrinking.mp4"
        path.write_bytes(pattern_bytes(1000))
        window = parse_range("bytes=100-199", 1000)

        session = StreamSession(path, window, chunk_size=64)
        with open(path, "r+b") as f:
            f.truncate(150)

        data = b"".join(drain(session))
        session.close()

        assert data == pattern_bytes(1000)[100:150]
        assert not session.is_complete
        assert session.remaining == 50

    def test_read_error_raises_stream_read_failure(self, clip):
        session = StreamSession(clip, ByteRange.full(1000))
        session._source.close()
        session._source = BrokenFile()

        with pytest.raises(StreamReadFailure):
            session.read_chunk()

        assert session.cursor == 0

    def test_close_is_idempotent(self, clip):
        session = StreamSession(clip, ByteRange.full(1000))

        session.close()
        session.close()

        assert session.closed
        assert session.read_chunk() == b""

    def test_context_manager_closes(self, clip):
        with StreamSession(clip, ByteRange.full(1000)) as session:
            session.read_chunk()

        assert session.closed

    def test_missing_file(self, media_dir):
        with pytest.raises(FileNotFoundError):
            StreamSession(media_dir / "nope.mp4", ByteRange.full(10))

    def test_invalid_chunk_size(self, clip):
        with pytest.raises(ValueError):
            StreamSession(clip, ByteRange.full(1000), chunk_size=0)

    def test_stream_ids_are_unique(self, clip):
        a = StreamSession(clip, ByteRange.full(1000))
        b = StreamSession(clip, ByteRange.full(1000))
        a.close()
        b.close()

        assert b.stream_id > a.stream_id

    def test_display_path_defaults_to_file_name(self, clip):
        session = StreamSession(clip, ByteRange.full(1000))
        session.close()

        assert session.display_path == "clip.mp4"
        assert "clip.mp4" in repr(session)

    def test_independent_sessions_on_one_file(self, media_dir):
        """Test that two sessions on the same file don't disturb each other."""
        path = media_dir / "long.mp4"
        size = path.stat().st_size
        first = StreamSession(path, parse_range("bytes=0-99999", size), chunk_size=4096)
        second = StreamSession(path, parse_range("bytes=100000-", size), chunk_size=4096)

        parts_a, parts_b = [], []
        while True:
            a, b = first.read_chunk(), second.read_chunk()
            if not a and not b:
                break
            parts_a.append(a)
            parts_b.append(b)

        first.close()
        second.close()

        content = pattern_bytes(size, seed=7)
        assert b"".join(parts_a) == content[:100000]
        assert b"".join(parts_b) == content[100000:]


class TestSessionTelemetry:
    """Tests for how reads feed the sampler."""

    def test_sample_after_interval(self, media_dir, fake_clock, recorder):
        """Test that a read after the interval produces one sample."""
        sampler = TelemetrySampler(interval=0.45, observer=recorder, clock=fake_clock)
        session = StreamSession(
            media_dir / "clip.mp4",
            ByteRange.full(1000),
            chunk_size=100,
            sampler=sampler,
        )

        session.read_chunk()
        session.read_chunk()
        assert recorder.samples == []
        assert session.bytes_since_sample.value == 200

        fake_clock.advance(0.5)
        session.read_chunk()
        session.close()

        assert len(recorder.samples) == 1
        sample = recorder.samples[0]
        assert sample.bytes_total == 300
        assert sample.elapsed == pytest.approx(0.5)
        assert sample.path == "clip.mp4"
        assert session.bytes_since_sample.value == 0

    def test_hints_are_kept(self, media_dir):
        hints = PlaybackHints(bitrate_bps=4_000_000, target_fps=24)
        session = StreamSession(media_dir / "clip.mp4", ByteRange.full(1000), hints=hints)
        session.close()

        assert session.hints is hints

    def test_elapsed_uses_sampler_clock(self, media_dir, fake_clock):
        session = StreamSession(
            media_dir / "clip.mp4",
            ByteRange.full(1000),
            sampler=TelemetrySampler(clock=fake_clock),
        )
        fake_clock.advance(2.5)
        session.close()

        assert session.elapsed == pytest.approx(2.5)
