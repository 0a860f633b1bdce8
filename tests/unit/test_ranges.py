"""
Unit tests for Range header parsing.
"""

import pytest

from rangestream.errors import UnsatisfiableRange
from rangestream.streaming.ranges import ByteRange, parse_range


class TestByteRange:
    """Tests for the ByteRange window."""

    def test_full_window(self):
        """Test the whole-file window."""
        window = ByteRange.full(1000)

        assert window.start == 0
        assert window.end == 999
        assert window.length == 1000
        assert window.is_partial is False

    def test_empty_file_window(self):
        """Test that an empty file gets a zero-length window."""
        window = ByteRange.full(0)

        assert (window.start, window.end) == (0, -1)
        assert window.length == 0

    def test_content_range(self):
        window = ByteRange(start=100, end=199, is_partial=True, size=1000)
        assert window.content_range == "bytes 100-199/1000"

    def test_frozen(self):
        window = ByteRange.full(10)
        with pytest.raises(AttributeError):
            window.start = 5


class TestParseRange:
    """Tests for parse_range()."""

    def test_no_header_is_full_file(self):
        """Test that a missing header serves everything with 200."""
        window = parse_range(None, 1000)

        assert window == ByteRange.full(1000)
        assert not window.is_partial

    def test_blank_header_is_full_file(self):
        assert parse_range("   ", 1000) == ByteRange.full(1000)

    def test_closed_range(self):
        """Test bytes=a-b."""
        window = parse_range("bytes=100-199", 1000)

        assert (window.start, window.end) == (100, 199)
        assert window.length == 100
        assert window.is_partial
        assert window.content_range == "bytes 100-199/1000"

    def test_open_ended_range(self):
        """Test bytes=a- runs to the end of the file."""
        window = parse_range("bytes=900-", 1000)

        assert (window.start, window.end) == (900, 999)
        assert window.length == 100

    def test_suffix_range(self):
        """Test bytes=-n returns the last n bytes."""
        window = parse_range("bytes=-50", 1000)

        assert (window.start, window.end) == (950, 999)
        assert window.content_range == "bytes 950-999/1000"

    def test_suffix_longer_than_file(self):
        """Test that a suffix bigger than the file starts at 0."""
        window = parse_range("bytes=-5000", 1000)

        assert (window.start, window.end) == (0, 999)
        assert window.is_partial

    def test_end_past_file_is_clamped(self):
        """Test that an end beyond the file is cut to the last byte."""
        window = parse_range("bytes=500-5000", 1000)

        assert (window.start, window.end) == (500, 999)

    def test_single_byte(self):
        window = parse_range("bytes=0-0", 1000)
        assert window.length == 1

    def test_last_byte(self):
        window = parse_range("bytes=999-", 1000)
        assert (window.start, window.end) == (999, 999)

    def test_whitespace_and_case_tolerated(self):
        """Test that spacing and unit case don't matter."""
        window = parse_range("  Bytes = 10 - 20 ", 1000)

        assert (window.start, window.end) == (10, 20)

    def test_window_stays_inside_file(self):
        """Test 0 <= start <= end < size for a spread of headers."""
        for header in ["bytes=0-", "bytes=-1", "bytes=-999", "bytes=3-7", "bytes=998-2000"]:
            window = parse_range(header, 1000)
            assert 0 <= window.start <= window.end < 1000


class TestUnsatisfiableRange:
    """Tests for ranges that must be answered with 416."""

    @pytest.mark.parametrize("header", [
        "bytes=200-100",   # start after end
        "bytes=1000-",     # start at EOF
        "bytes=5000-6000", # start past EOF
        "bytes=-0",        # zero-length suffix
    ])
    def test_raises(self, header):
        with pytest.raises(UnsatisfiableRange) as exc_info:
            parse_range(header, 1000)

        assert exc_info.value.size == 1000
        assert exc_info.value.status_code == 416

    def test_any_range_on_empty_file(self):
        """Test that an empty file satisfies no range at all."""
        for header in ["bytes=0-", "bytes=0-0", "bytes=-10"]:
            with pytest.raises(UnsatisfiableRange):
                parse_range(header, 0)

    def test_empty_file_without_range(self):
        """Test that an empty file without a Range is still servable."""
        window = parse_range(None, 0)

        assert window.length == 0
        assert not window.is_partial


class TestMalformedRange:
    """Tests that malformed headers fall back to the whole file."""

    @pytest.mark.parametrize("header", [
        "items=0-10",
        "bytes=abc-",
        "bytes=-",
        "bytes=0-1,5-9",
        "bytes=+1-2",
        "bytes 0-10",
        "bytes=1.5-2",
        "bytes=٣-٥",  # non-ASCII digits
    ])
    def test_ignored(self, header):
        window = parse_range(header, 1000)

        assert window == ByteRange.full(1000)
        assert not window.is_partial

    @pytest.mark.parametrize("header", [
        "bytes=" + "9" * 5000 + "-",
        "bytes=0-" + "9" * 5000,
        "bytes=-" + "9" * 5000,
        "bytes=" + "1" * 20 + "-",
    ])
    def test_overlong_bounds(self, header):
        """Test that huge digit runs fall back instead of overflowing int()."""
        window = parse_range(header, 1000)

        assert window == ByteRange.full(1000)

    def test_nineteen_digit_bound(self):
        with pytest.raises(UnsatisfiableRange):
            parse_range("bytes=" + "9" * 19 + "-", 1000)
