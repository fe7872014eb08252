"""
pytest configuration and fixtures.
"""

import socket
import threading
import time
from typing import Generator, Optional
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from versiond import HTTPServer, ServerConfig


@pytest.fixture
def json_version_request() -> bytes:
    """GET /version asking for JSON."""
    return (
        b"GET /version HTTP/1.1\r\n"
        b"Host: localhost:3000\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"\r\n"
    )


@pytest.fixture
def html_version_request() -> bytes:
    """GET /version without the JSON Accept header."""
    return (
        b"GET /version HTTP/1.1\r\n"
        b"Host: localhost:3000\r\n"
        b"User-Agent: pytest\r\n"
        b"\r\n"
    )


@pytest.fixture
def not_found_request() -> bytes:
    return b"GET /foo HTTP/1.1\r\nHost: localhost:3000\r\n\r\n"


@pytest.fixture
def delete_request() -> bytes:
    return b"DELETE / HTTP/1.1\r\nHost: localhost:3000\r\n\r\n"


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


def send_request(port: int, payload: bytes, timeout: float = 5.0) -> bytes:
    """
    Send raw bytes and read until the server closes the connection.

    Returns everything the server wrote (b"" if it wrote nothing).
    """
    with socket.create_connection(('127.0.0.1', port), timeout=timeout) as s:
        if payload:
            s.sendall(payload)
        s.shutdown(socket.SHUT_WR)
        chunks = []
        while True:
            chunk = s.recv(4096)
            if not chunk:
                break
            chunks.append(chunk)
    return b"".join(chunks)


def split_response(data: bytes):
    """Split a raw response into (status_line, headers dict, body bytes)."""
    head, _, body = data.partition(b"\r\n\r\n")
    lines = head.decode("latin-1").split("\r\n")
    headers = {}
    for line in lines[1:]:
        name, _, value = line.partition(":")
        headers[name.strip()] = value.strip()
    return lines[0], headers, body


class TestServer:
    """Test server helper that runs in a background thread."""

    # Not a test class, despite the name
    __test__ = False

    def __init__(self, server: HTTPServer, port: int):
        self.server = server
        self.port = port
        self._thread: Optional[threading.Thread] = None

    def start(self):
        """Start server in background thread."""
        self._thread = threading.Thread(
            target=self.server.run,
            kwargs={"port": self.port},
            daemon=True
        )
        self._thread.start()

        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

        # Wait for server to accept connections
        for _ in range(50):  # 5 seconds max
            try:
                with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
                    s.connect(('127.0.0.1', self.port))
                    return
            except ConnectionRefusedError:
                time.sleep(0.1)

        raise RuntimeError("Server failed to start")

    def stop(self):
        """Stop the server."""
        self.server.shutdown()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)

    def request(self, payload: bytes) -> bytes:
        return send_request(self.port, payload)


@pytest.fixture(params=["sequential", "threaded", "async"])
def test_server(request, free_port: int) -> Generator[TestServer, None, None]:
    """A running server, once per serving mode."""
    server = HTTPServer(ServerConfig(
        host="127.0.0.1",
        port=free_port,
        mode=request.param,
        min_workers=2,
        max_workers=8,
        log_level="WARNING",
    ))

    test_srv = TestServer(server, free_port)
    test_srv.start()

    yield test_srv

    test_srv.stop()


@pytest.fixture(params=["threaded", "async"])
def concurrent_server(request, free_port: int) -> Generator[TestServer, None, None]:
    """A running server in one of the concurrent modes."""
    server = HTTPServer(ServerConfig(
        host="127.0.0.1",
        port=free_port,
        mode=request.param,
        min_workers=8,
        max_workers=16,
        log_level="WARNING",
    ))

    test_srv = TestServer(server, free_port)
    test_srv.start()

    yield test_srv

    test_srv.stop()
