"""
Unit tests for the middleware pipeline and the access log.
"""

import json
import logging

import pytest

from userservice.http.request import Method, ParsedRequest
from userservice.http.response import ok
from userservice.middleware import AccessLogMiddleware, Middleware, MiddlewarePipeline, RequestLog


def make_request(path: str = "/users") -> ParsedRequest:
    """Helper to create a request for testing."""
    return ParsedRequest(
        method=Method.GET,
        path=path,
        headers={"user-agent": "pytest"},
        client_address=("10.0.0.5", 40000),
    )


class Recorder(Middleware):
    """Records the order it is entered and left."""

    def __init__(self, label: str, trail: list):
        self.label = label
        self.trail = trail

    def __call__(self, request, next):
        self.trail.append(f"{self.label}:before")
        response = next(request)
        self.trail.append(f"{self.label}:after")
        return response


class TestMiddlewarePipeline:
    """Tests for MiddlewarePipeline."""

    def test_first_added_is_outermost(self):
        """Test middleware nests in the order added."""
        trail = []
        pipeline = MiddlewarePipeline().use(Recorder("a", trail), Recorder("b", trail))

        def handler(request):
            trail.append("handler")
            return ok({})

        pipeline.wrap(handler)(make_request())

        assert trail == ["a:before", "b:before", "handler", "b:after", "a:after"]

    def test_empty_pipeline_is_the_handler(self):
        """Test wrapping with no middleware."""
        pipeline = MiddlewarePipeline()
        response = pipeline.wrap(lambda request: ok({"x": 1}))(make_request())

        assert response.json() == {"x": 1}
        assert len(pipeline) == 0

    def test_short_circuit(self):
        """Test middleware can answer without calling next."""
        class Deny(Middleware):
            def __call__(self, request, next):
                return ok({"denied": True})

        called = []
        pipeline = MiddlewarePipeline().add(Deny())
        response = pipeline.wrap(lambda request: called.append(1))(make_request())

        assert response.json() == {"denied": True}
        assert called == []
        assert [mw.name for mw in pipeline] == ["Deny"]


class TestAccessLogMiddleware:
    """Tests for AccessLogMiddleware."""

    def test_text_line(self, caplog):
        """Test the text access line and request id header."""
        middleware = AccessLogMiddleware()

        with caplog.at_level(logging.INFO, logger="userservice.access"):
            response = middleware(make_request(), lambda request: ok([]))

        request_id = response.headers["X-Request-ID"]
        assert len(request_id) == 8

        record = caplog.records[-1]
        assert record.name == "userservice.access"
        assert record.getMessage().startswith("10.0.0.5 - - [")
        assert '"GET /users" 200 2 ' in record.getMessage()

    def test_json_line(self, caplog):
        """Test the JSON access line fields."""
        middleware = AccessLogMiddleware(log_format="json")

        with caplog.at_level(logging.INFO, logger="userservice.access"):
            response = middleware(make_request("/users/3"), lambda request: ok({"id": 3}))

        entry = json.loads(caplog.records[-1].getMessage())
        assert entry["request_id"] == response.headers["X-Request-ID"]
        assert entry["method"] == "GET"
        assert entry["path"] == "/users/3"
        assert entry["client_ip"] == "10.0.0.5"
        assert entry["user_agent"] == "pytest"
        assert entry["status_code"] == 200
        assert entry["content_length"] == len(response.body)
        assert entry["duration_ms"] >= 0

    def test_request_id_optional(self):
        """Test the request id header can be turned off."""
        middleware = AccessLogMiddleware(include_request_id=False)
        response = middleware(make_request(), lambda request: ok([]))
        assert "X-Request-ID" not in response.headers

    def test_handler_exception_is_logged_and_reraised(self, caplog):
        """Test a failing handler is logged and re-raised."""
        def broken(request):
            raise RuntimeError("kaboom")

        with caplog.at_level(logging.INFO, logger="userservice.access"):
            with pytest.raises(RuntimeError):
                AccessLogMiddleware()(make_request(), broken)

        assert "Request failed: GET /users - RuntimeError: kaboom" in caplog.text


def test_request_log_to_text():
    """Test the text format of one entry."""
    entry = RequestLog(
        request_id="abcd1234",
        method="DELETE",
        path="/users/1",
        client_ip="127.0.0.1",
        user_agent="-",
        status_code=204,
        content_length=0,
        duration_ms=1.5,
        timestamp="18/Oct/2026:10:00:00 +0000",
    )
    assert entry.to_text() == '127.0.0.1 - - [18/Oct/2026:10:00:00 +0000] "DELETE /users/1" 204 0 1.50ms'
