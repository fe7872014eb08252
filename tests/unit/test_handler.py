"""
Unit tests for the connection handler.

Real sockets come from socket.socketpair(); failures on the write path
use a fake socket.
"""

import asyncio
import json
import socket
import time

import pytest

from versiond.core.connection import Connection
from versiond.core.handler import ConnectionHandler, ConnectionOutcome
from versiond.handlers.pages import PageRenderer
from versiond.http.router import NotFound, Router
from versiond.http.status_codes import HTTPStatus


PEER = ("127.0.0.1", 50000)


def read_all(sock: socket.socket) -> bytes:
    chunks = []
    while True:
        chunk = sock.recv(4096)
        if not chunk:
            break
        chunks.append(chunk)
    return b"".join(chunks)


@pytest.fixture
def pair():
    client, server = socket.socketpair()
    client.settimeout(5.0)
    yield client, server
    client.close()
    server.close()


class FakeSocket:
    """Socket stand-in that returns one request, then fails on write."""

    def __init__(self, request: bytes = b"", recv_error=None, send_error=None):
        self._chunks = [request]
        self.recv_error = recv_error
        self.send_error = send_error
        self.closed = False

    def settimeout(self, timeout):
        pass

    def setblocking(self, flag):
        pass

    def recv(self, size):
        if self.recv_error is not None:
            raise self.recv_error
        return self._chunks.pop(0)[:size] if self._chunks else b""

    def sendall(self, data):
        if self.send_error is not None:
            raise self.send_error

    def shutdown(self, how):
        pass

    def close(self):
        self.closed = True


class FailingRenderer(PageRenderer):
    def render(self, outcome, wants_json=False):
        raise RuntimeError("template exploded")


class TestRespond:
    """Tests for ConnectionHandler.respond() (no I/O)."""

    def test_version_json(self, json_version_request: bytes):
        exchange = ConnectionHandler().respond(json_version_request)

        assert exchange.response.status == HTTPStatus.OK
        assert exchange.payload.startswith(b"HTTP/1.1 200 OK\r\nContent-Type: application/json\r\n")

    def test_not_found(self, not_found_request: bytes):
        exchange = ConnectionHandler().respond(not_found_request)

        assert exchange.outcome == NotFound(path="/foo")
        assert exchange.payload.startswith(b"HTTP/1.1 404 NOT FOUND\r\n")

    def test_garbled_first_line(self):
        exchange = ConnectionHandler().respond(b"\r\n\r\n")
        assert exchange.payload.startswith(b"HTTP/1.1 400 BAD REQUEST\r\n")

    def test_renderer_failure_becomes_500(self, json_version_request: bytes):
        handler = ConnectionHandler(renderer=FailingRenderer())
        exchange = handler.respond(json_version_request)

        assert exchange.response.status == HTTPStatus.INTERNAL_SERVER_ERROR
        assert exchange.payload.startswith(b"HTTP/1.1 500 INTERNAL SERVER ERROR\r\n")

    def test_custom_router(self):
        router = Router()
        router.add_route("GET", "/alias", lambda line: NotFound(path="/aliased"))
        exchange = ConnectionHandler(router=router).respond(b"GET /alias HTTP/1.1\r\n\r\n")

        assert exchange.outcome.path == "/aliased"


class TestHandle:
    """Tests for ConnectionHandler.handle() on blocking sockets."""

    def test_version_json(self, pair, json_version_request: bytes):
        client, server = pair
        client.sendall(json_version_request)
        client.shutdown(socket.SHUT_WR)

        conn = Connection(socket=server, address=PEER)
        outcome = ConnectionHandler().handle(conn)
        data = read_all(client)

        head, _, body = data.partition(b"\r\n\r\n")
        assert head.startswith(b"HTTP/1.1 200 OK\r\n")
        assert f"Content-Length: {len(body)}".encode() in head
        assert json.loads(body)["version"]

        assert outcome.ok
        assert outcome.status_text == "200 OK"
        assert outcome.path == "/version"
        assert outcome.bytes_read == len(json_version_request)
        assert outcome.peer == "127.0.0.1:50000"
        assert conn.is_closed

    def test_zero_byte_read_writes_nothing(self, pair):
        client, server = pair
        client.shutdown(socket.SHUT_WR)

        conn = Connection(socket=server, address=PEER)
        outcome = ConnectionHandler().handle(conn)

        assert read_all(client) == b""
        assert outcome.is_empty
        assert outcome.status_text == ""
        assert conn.is_closed

    def test_request_truncated_to_buffer(self, pair):
        client, server = pair
        request = b"GET /" + b"a" * 2000 + b" HTTP/1.1\r\n\r\n"
        client.sendall(request)
        client.shutdown(socket.SHUT_WR)

        conn = Connection(socket=server, address=PEER, buffer_size=1024)
        outcome = ConnectionHandler().handle(conn)
        data = read_all(client)

        assert data.startswith(b"HTTP/1.1 404 NOT FOUND\r\n")
        assert outcome.bytes_read == 1024
        assert outcome.path == "/" + "a" * 1019

    def test_close_does_not_wait_for_open_client(self, pair, html_version_request: bytes):
        client, server = pair
        # Keep-alive client: sends the request and keeps its side open
        client.sendall(html_version_request)

        conn = Connection(socket=server, address=PEER)
        start = time.monotonic()
        outcome = ConnectionHandler().handle(conn)

        assert time.monotonic() - start < 0.3
        assert outcome.ok
        assert read_all(client).startswith(b"HTTP/1.1 200 OK\r\n")

    def test_full_buffer_is_drained_before_close(self, pair):
        client, server = pair
        request = b"GET /version HTTP/1.1\r\nX-Padding: " + b"a" * 3000 + b"\r\n\r\n"
        client.sendall(request)
        client.shutdown(socket.SHUT_WR)

        conn = Connection(socket=server, address=PEER, buffer_size=64)
        outcome = ConnectionHandler().handle(conn)

        assert conn.may_have_unread_data
        assert outcome.ok
        assert read_all(client).startswith(b"HTTP/1.1 200 OK\r\n")

    def test_read_timeout_is_failure(self, pair):
        client, server = pair

        conn = Connection(socket=server, address=PEER, timeout=0.2)
        outcome = ConnectionHandler().handle(conn)

        assert not outcome.ok
        assert "timed out" in outcome.error
        assert conn.is_closed

    def test_read_error_is_failure(self):
        fake = FakeSocket(recv_error=ConnectionResetError("reset by peer"))
        conn = Connection(socket=fake, address=PEER)

        outcome = ConnectionHandler().handle(conn)

        assert outcome.error == "ConnectionResetError: reset by peer"
        assert fake.closed

    def test_write_error_is_failure(self, not_found_request: bytes):
        fake = FakeSocket(request=not_found_request, send_error=BrokenPipeError("broken pipe"))
        conn = Connection(socket=fake, address=PEER)

        outcome = ConnectionHandler().handle(conn)

        assert not outcome.ok
        assert outcome.error == "BrokenPipeError: broken pipe"
        # The response that could not be written is still reported
        assert outcome.status_text == "404 Not Found"
        assert outcome.path == "/foo"
        assert fake.closed


class TestHandleAsync:
    """Tests for ConnectionHandler.handle_async() on non-blocking sockets."""

    def test_version_html(self, pair, html_version_request: bytes):
        client, server = pair
        client.sendall(html_version_request)
        client.shutdown(socket.SHUT_WR)

        conn = Connection(socket=server, address=PEER, blocking=False)
        outcome = asyncio.run(ConnectionHandler().handle_async(conn))
        data = read_all(client)

        assert data.startswith(b"HTTP/1.1 200 OK\r\nContent-Type: text/html\r\n")
        assert outcome.ok
        assert outcome.path == "/version"
        assert conn.is_closed

    def test_zero_byte_read_writes_nothing(self, pair):
        client, server = pair
        client.shutdown(socket.SHUT_WR)

        conn = Connection(socket=server, address=PEER, blocking=False)
        outcome = asyncio.run(ConnectionHandler().handle_async(conn))

        assert read_all(client) == b""
        assert outcome.is_empty
        assert conn.is_closed

    def test_bad_request(self, pair, delete_request: bytes):
        client, server = pair
        client.sendall(delete_request)
        client.shutdown(socket.SHUT_WR)

        conn = Connection(socket=server, address=PEER, blocking=False)
        outcome = asyncio.run(ConnectionHandler().handle_async(conn))

        assert read_all(client).startswith(b"HTTP/1.1 400 BAD REQUEST\r\n")
        assert outcome.status_text == "400 Bad Request"
        assert outcome.path == "/unknown"

    def test_close_does_not_wait_for_open_client(self, pair, html_version_request: bytes):
        client, server = pair
        client.sendall(html_version_request)

        conn = Connection(socket=server, address=PEER, blocking=False)
        start = time.monotonic()
        outcome = asyncio.run(ConnectionHandler().handle_async(conn))

        assert time.monotonic() - start < 0.3
        assert outcome.ok
        assert read_all(client).startswith(b"HTTP/1.1 200 OK\r\n")

    def test_read_timeout_is_failure(self, pair):
        _, server = pair

        conn = Connection(socket=server, address=PEER, timeout=0.2, blocking=False)
        outcome = asyncio.run(ConnectionHandler().handle_async(conn))

        assert not outcome.ok
        assert outcome.error.startswith("TimeoutError")
        assert conn.is_closed


class TestConnectionOutcome:

    def test_empty(self):
        outcome = ConnectionOutcome(connection_id="abc", peer="127.0.0.1:1")

        assert outcome.ok
        assert outcome.is_empty

    def test_failure_is_not_empty(self):
        outcome = ConnectionOutcome(connection_id="abc", peer="127.0.0.1:1", error="boom")

        assert not outcome.ok
        assert not outcome.is_empty
