"""
Unit tests for the middleware pipeline and access logging.
"""

import json
import logging

import pytest

from rangestream.http import HTTPStatus, ResponseBuilder, reject
from rangestream.middleware import LoggingMiddleware, Middleware, MiddlewarePipeline, RequestLog

from conftest import make_request


class Tag(Middleware):
    """Appends its name to X-Trace on the way out."""

    def __init__(self, tag, calls):
        self.tag = tag
        self.calls = calls

    def __call__(self, request, next):
        self.calls.append(self.tag)
        response = next(request)
        trace = response.headers.get("X-Trace", "")
        response.headers["X-Trace"] = (trace + " " + self.tag).strip()
        return response


def ok_handler(request):
    return ResponseBuilder().stream(iter([b"x" * 10]), length=10).build()


class TestMiddlewarePipeline:
    """Tests for MiddlewarePipeline."""

    def test_order(self):
        """Test that the first middleware added runs first."""
        calls = []
        pipeline = MiddlewarePipeline().use(Tag("outer", calls), Tag("inner", calls))

        response = pipeline.wrap(ok_handler)(make_request())

        assert calls == ["outer", "inner"]
        assert response.headers["X-Trace"] == "inner outer"

    def test_empty_pipeline(self):
        pipeline = MiddlewarePipeline()

        assert pipeline.wrap(ok_handler) is ok_handler
        assert len(pipeline) == 0

    def test_len_and_iter(self):
        first, second = Tag("a", []), Tag("b", [])
        pipeline = MiddlewarePipeline().add(first).add(second)

        assert len(pipeline) == 2
        assert list(pipeline) == [first, second]
        assert first.name == "Tag"


class TestLoggingMiddleware:
    """Tests for access logging."""

    def test_text_line(self, caplog):
        middleware = LoggingMiddleware()
        request = make_request(headers={"Range": "bytes=100-199"})

        with caplog.at_level(logging.INFO, logger="rangestream.access"):
            middleware(request, ok_handler)

        line = caplog.records[0].getMessage()
        assert '"GET /clip.mp4" 200 10 "bytes=100-199"' in line
        assert line.startswith("127.0.0.1 - - [")

    def test_json_line(self, caplog):
        middleware = LoggingMiddleware(log_format="json")

        with caplog.at_level(logging.INFO, logger="rangestream.access"):
            middleware(make_request(), ok_handler)

        entry = json.loads(caplog.records[0].getMessage())
        assert entry["method"] == "GET"
        assert entry["path"] == "/clip.mp4"
        assert entry["status_code"] == 200
        assert entry["content_length"] == 10
        assert entry["range"] == "-"

    def test_request_id_header(self):
        response = LoggingMiddleware()(make_request(), ok_handler)

        assert len(response.headers["X-Request-ID"]) == 8

    def test_request_id_optional(self):
        response = LoggingMiddleware(include_request_id=False)(make_request(), ok_handler)

        assert "X-Request-ID" not in response.headers

    def test_server_errors_logged_as_warning(self, caplog):
        middleware = LoggingMiddleware()

        with caplog.at_level(logging.INFO, logger="rangestream.access"):
            middleware(make_request(), lambda request: reject(HTTPStatus.INTERNAL_SERVER_ERROR))

        assert caplog.records[0].levelno == logging.WARNING

    def test_skip_paths(self, caplog):
        middleware = LoggingMiddleware(skip_paths=["/clip.mp4"])

        with caplog.at_level(logging.INFO, logger="rangestream.access"):
            middleware(make_request(), ok_handler)

        assert caplog.records == []

    def test_handler_error_reraised(self, caplog):
        def broken(request):
            raise RuntimeError("boom")

        with caplog.at_level(logging.INFO, logger="rangestream.access"):
            with pytest.raises(RuntimeError):
                LoggingMiddleware()(make_request(), broken)

        assert "RuntimeError: boom" in caplog.records[0].getMessage()

    def test_invalid_format(self):
        with pytest.raises(ValueError):
            LoggingMiddleware(log_format="xml")


class TestRequestLog:
    """Tests for RequestLog formatting."""

    def test_to_dict_rounds_duration(self):
        entry = RequestLog(
            request_id="abcd1234",
            method="GET",
            path="/clip.mp4",
            range="bytes=0-",
            client_ip="10.0.0.2",
            user_agent="VLC",
            status_code=206,
            content_length=1000,
            duration_ms=1.23456,
            timestamp="19/Oct/2026:12:00:00 +0000",
        )

        assert entry.to_dict()["duration_ms"] == 1.23
        assert entry.to_text() == (
            '10.0.0.2 - - [19/Oct/2026:12:00:00 +0000] '
            '"GET /clip.mp4" 206 1000 "bytes=0-" 1.23ms'
        )
