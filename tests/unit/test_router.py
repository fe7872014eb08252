"""
Unit tests for the router.
"""

import pytest

from versiond.http.request import RequestLine, parse_request_line
from versiond.http.router import (
    UNKNOWN_PATH,
    BadRequest,
    NotFound,
    RouteOutcome,
    Router,
    Version,
)
from versiond.http.status_codes import HTTPStatus


def make_line(method: str, path=None) -> RequestLine:
    """Helper to create a request line for testing."""
    return RequestLine(method=method, path=path, version="HTTP/1.1")


class TestRouter:
    """Tests for Router.route()."""

    def test_version(self):
        outcome = Router().route(make_line("GET", "/version"))

        assert outcome == Version()
        assert outcome.status == HTTPStatus.OK
        assert outcome.path == "/version"

    @pytest.mark.parametrize("path", ["/", "/foo", "/version/", "/VERSION", "/version?x=1"])
    def test_other_get_paths_not_found(self, path: str):
        outcome = Router().route(make_line("GET", path))

        assert outcome == NotFound(path=path)
        assert outcome.status == HTTPStatus.NOT_FOUND

    def test_get_without_path(self):
        outcome = Router().route(make_line("GET"))

        assert outcome == NotFound(path=UNKNOWN_PATH)

    @pytest.mark.parametrize("method", ["POST", "DELETE", "PUT", "HEAD", "OPTIONS", "BREW"])
    def test_other_methods_bad_request(self, method: str):
        outcome = Router().route(make_line(method, "/version"))

        assert isinstance(outcome, BadRequest)
        assert outcome.status == HTTPStatus.BAD_REQUEST
        assert outcome.path == UNKNOWN_PATH

    def test_lowercase_get_is_bad_request(self):
        assert isinstance(Router().route(make_line("get", "/version")), BadRequest)

    def test_missing_line_is_bad_request(self):
        assert isinstance(Router().route(None), BadRequest)

    def test_route_is_pure(self):
        router = Router()
        line = make_line("GET", "/foo")

        assert router.route(line) == router.route(line)

    def test_end_to_end_with_parser(self):
        router = Router()

        assert isinstance(router.route(parse_request_line(b"GET /version HTTP/1.1\r\n")), Version)
        assert router.route(parse_request_line(b"GET /foo HTTP/1.1\r\n")) == NotFound("/foo")
        assert isinstance(router.route(parse_request_line(b"\r\n")), BadRequest)


class TestAddRoute:
    """Tests for registering extra exact routes."""

    def test_default_routes(self):
        assert Router().routes == [("GET", "/version")]

    def test_added_route_is_matched(self):
        router = Router()
        router.add_route("GET", "/ping", lambda line: NotFound(path="/ping-custom"))

        assert router.route(make_line("GET", "/ping")) == NotFound(path="/ping-custom")
        assert router.routes == [("GET", "/version"), ("GET", "/ping")]

    def test_added_route_checked_before_method_fallback(self):
        router = Router()
        router.add_route("POST", "/version", lambda line: Version())

        assert isinstance(router.route(make_line("POST", "/version")), Version)
        assert isinstance(router.route(make_line("DELETE", "/version")), BadRequest)

    def test_added_route_does_not_change_other_paths(self):
        router = Router()
        router.add_route("GET", "/ping", lambda line: Version())

        assert router.route(make_line("GET", "/foo")) == NotFound("/foo")
        assert isinstance(router.route(make_line("GET", "/version")), Version)

    def test_duplicate_route_rejected(self):
        router = Router()
        with pytest.raises(ValueError):
            router.add_route("GET", "/version", lambda line: Version())

    def test_factory_receives_request_line(self):
        seen = []

        def factory(line: RequestLine) -> RouteOutcome:
            seen.append(line)
            return Version()

        router = Router()
        router.add_route("GET", "/echo", factory)
        line = make_line("GET", "/echo")
        router.route(line)

        assert seen == [line]
