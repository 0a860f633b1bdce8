"""
Unit tests for HTTP request parsing.
"""

import pytest

from rangestream.http.request import (
    HTTPRequest,
    RequestParser,
    HTTPParseError,
    parse_request,
)


class TestRequestParser:
    """Tests for RequestParser class."""

    def test_parse_range_request(self, sample_range_request: bytes):
        """Test parsing a player's seek request."""
        parser = RequestParser()
        request = parser.parse(sample_range_request, ("192.168.1.30", 51000))

        assert request.method == "GET"
        assert request.path == "/shows/pilot.mp4"
        assert request.version == "HTTP/1.1"
        assert request.client_address == ("192.168.1.30", 51000)
        assert request.raw == sample_range_request

    def test_parse_headers(self, sample_range_request: bytes):
        """Test that headers are parsed correctly."""
        request = parse_request(sample_range_request)

        assert request.host == "192.168.1.20:8000"
        assert request.user_agent == "VLC/3.0.20 LibVLC/3.0.20"
        assert request.get_header("Range") == "bytes=1048576-"
        assert request.is_keep_alive is True

    def test_parse_query_params(self, sample_range_request: bytes):
        """Test query parameter parsing."""
        request = parse_request(sample_range_request)

        assert request.get_query("bitrate") == "6000000"
        assert request.get_query("fps") == "24"
        assert request.get_query("missing") is None
        assert request.get_query("missing", "default") == "default"

    def test_parse_url_encoded_path(self):
        """Test that the path is URL-decoded."""
        raw = b"GET /My%20Movies/trip.mp4 HTTP/1.1\r\nHost: test\r\n\r\n"
        request = parse_request(raw)

        assert request.path == "/My Movies/trip.mp4"

    def test_parse_other_methods(self):
        """Test that non-GET methods parse; the handler answers them with 405."""
        for method in ("HEAD", "POST", "OPTIONS", "DELETE"):
            request = parse_request(f"{method} /a.mp4 HTTP/1.1\r\n\r\n".encode())
            assert request.method == method

    def test_parse_invalid_method(self):
        """Test that unknown methods are rejected."""
        raw = b"INVALID /path HTTP/1.1\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.status_code == 405

    def test_parse_invalid_request_line(self):
        """Test handling of malformed request line."""
        raw = b"GET\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.status_code == 400

    def test_parse_missing_terminator(self):
        """Test that a request without the blank line is incomplete."""
        raw = b"GET /clip.mp4 HTTP/1.1\r\nHost: test\r\n"

        with pytest.raises(HTTPParseError):
            parse_request(raw)

    @pytest.mark.parametrize("target", [
        "/../etc/passwd",
        "/shows/../../etc/passwd",
        "/%2e%2e/etc/passwd",
        "/%2E%2E%2Fetc%2Fpasswd",
    ])
    def test_parse_path_traversal_blocked(self, target):
        """Test that path traversal attempts are blocked, encoded or not."""
        raw = f"GET {target} HTTP/1.1\r\nHost: test\r\n\r\n".encode()

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.status_code == 400

    def test_parse_request_too_large(self):
        """Test request size limit."""
        raw = b"GET / HTTP/1.1\r\nX-Big: " + b"a" * 2000 + b"\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw, max_size=1024)

        assert exc_info.value.status_code == 413

    def test_http_version_parsing(self):
        """Test HTTP version handling."""
        raw_10 = b"GET /clip.mp4 HTTP/1.0\r\n\r\n"
        request = parse_request(raw_10)
        assert request.version == "HTTP/1.0"
        assert request.is_keep_alive is False

        raw_20 = b"GET /clip.mp4 HTTP/2.0\r\n\r\n"
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw_20)
        assert exc_info.value.status_code == 505

    def test_content_length_handling(self):
        """Test that the body is cut at Content-Length."""
        raw = b"GET /clip.mp4 HTTP/1.1\r\nContent-Length: 3\r\n\r\nabcdef"
        request = parse_request(raw)

        assert request.body == b"abc"

    def test_invalid_content_length(self):
        raw = b"GET /clip.mp4 HTTP/1.1\r\nContent-Length: lots\r\n\r\n"

        with pytest.raises(HTTPParseError):
            parse_request(raw)

    def test_incomplete_body(self):
        raw = b"GET /clip.mp4 HTTP/1.1\r\nContent-Length: 10\r\n\r\nabc"

        with pytest.raises(HTTPParseError):
            parse_request(raw)

    def test_case_insensitive_headers(self):
        """Test that header lookup ignores case."""
        raw = b"GET /clip.mp4 HTTP/1.1\r\nRANGE: bytes=0-9\r\n\r\n"
        request = parse_request(raw)

        assert request.get_header("range") == "bytes=0-9"
        assert request.get_header("Range") == "bytes=0-9"
        assert request.get_header("RANGE") == "bytes=0-9"

    def test_repeated_headers_joined(self):
        raw = b"GET /clip.mp4 HTTP/1.1\r\nAccept: video/mp4\r\nAccept: */*\r\n\r\n"
        request = parse_request(raw)

        assert request.get_header("accept") == "video/mp4, */*"

    def test_folded_header(self):
        """Test obsolete line folding."""
        raw = b"GET /clip.mp4 HTTP/1.1\r\nX-Note: first\r\n  second\r\n\r\n"
        request = parse_request(raw)

        assert request.get_header("x-note") == "first second"

    def test_get_header_default(self):
        request = parse_request(b"GET /clip.mp4 HTTP/1.1\r\n\r\n")

        assert request.get_header("range") is None
        assert request.get_header("range", "-") == "-"


class TestHTTPRequest:
    """Tests for HTTPRequest properties."""

    def test_keep_alive_http11(self):
        assert HTTPRequest(method="GET", path="/").is_keep_alive is True

    def test_connection_close(self):
        request = HTTPRequest(method="GET", path="/", headers={"connection": "close"})
        assert request.is_keep_alive is False

    def test_http10_keep_alive(self):
        request = HTTPRequest(
            method="GET",
            path="/",
            version="HTTP/1.0",
            headers={"connection": "Keep-Alive"},
        )
        assert request.is_keep_alive is True

    def test_query_first_value(self):
        request = HTTPRequest(method="GET", path="/", query_params={"fps": ["24", "30"]})
        assert request.get_query("fps") == "24"

    def test_missing_host_and_agent(self):
        request = HTTPRequest(method="GET", path="/")
        assert request.host == ""
        assert request.user_agent == ""
