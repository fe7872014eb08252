"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket for its single request/response cycle.

=============================================================================
ONE READ, ONE WRITE
=============================================================================

TCP is a byte stream, not a message protocol. A full HTTP request might
arrive over several recv() calls:

    Client sends:   "GET /version HTTP/1.1\r\nAccept: application/json\r\n\r\n"

    Server might see:
        recv() → "GET /vers"
        recv() → "ion HTTP/1.1\r\nAccept: ..."

This server deliberately performs exactly ONE recv() into a fixed-size
buffer and works with whatever arrived. Real clients send the request
line and headers in one segment, so in practice the first read holds
the whole request. The consequences are accepted and documented:

    - A request longer than buffer_size is truncated.
    - A request split across segments is seen only partially.

Writing is the mirror image: the full response is framed in memory and
handed to ONE sendall(), which loops internally until every byte is out.

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    NEW ──────► READING ──────► PROCESSING ──────► WRITING
     │             │                                  │
     │             │  (0 bytes / error)               │
     ▼             ▼                                  ▼
    CLOSING ◄──────┴──────────────────────────────────┘
       │
       ▼
    CLOSED

There is no KEEP_ALIVE state: after one response the connection closes.

=============================================================================
CLOSING WITHOUT LOSING THE RESPONSE
=============================================================================

If the client sent more than we read (e.g. a 5 KB request against a 1 KB
buffer) and we close() straight away, the kernel answers the unread data
with a RST, and the client may discard our response before reading it.

close() therefore:

    1. shutdown(SHUT_WR)   → FIN: "no more data from the server"
    2. discard             → read whatever already arrived, without waiting
                             (or, when the read filled the buffer, keep
                             reading for at most DRAIN_TIMEOUT seconds)
    3. close()             → release the file descriptor

Clients that keep the connection open after reading the response never
send EOF, so close() only waits when the request was likely cut off.

=============================================================================
"""

import asyncio
import socket
import time
import logging
import uuid
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional


logger = logging.getLogger(__name__)


# Upper bound on time spent discarding unread client data in close()
DRAIN_TIMEOUT = 0.5


class ConnectionState(Enum):
    """Connection lifecycle states, used for logging and close()."""
    NEW = "new"                # Just accepted
    READING = "reading"        # Inside the single recv()
    PROCESSING = "processing"  # Parsing, routing, rendering
    WRITING = "writing"        # Inside sendall()
    CLOSING = "closing"        # Shutdown sequence running
    CLOSED = "closed"          # Socket released


@dataclass
class Connection:
    """
    One accepted client connection.

    Owned by exactly one handler invocation. Use as a context manager so
    the socket is closed on every exit path:

        with conn:
            raw = conn.read_request()
            conn.send_response(payload)

    Attributes:
        socket: The client socket returned by accept().
        address: Peer (ip, port).
        buffer_size: Capacity of the single read.
        timeout: Read/write timeout in seconds; None blocks indefinitely.
        blocking: False for sockets driven by an asyncio event loop.
        id: Short identifier for log lines.
        state: Current ConnectionState.
        created_at: time.time() when accepted.
        bytes_read: Size of the request read, once read.
    """

    socket: socket.socket
    address: tuple

    buffer_size: int = 1024
    timeout: Optional[float] = None
    blocking: bool = True

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    bytes_read: int = 0

    def __post_init__(self):
        if self.blocking:
            # settimeout(None) puts the socket in plain blocking mode
            self.socket.settimeout(self.timeout)
        else:
            self.socket.setblocking(False)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def client_ip(self) -> str:
        return self.address[0] if self.address else ""

    @property
    def client_port(self) -> int:
        return self.address[1] if self.address and len(self.address) > 1 else 0

    @property
    def peer(self) -> str:
        """"ip:port" for log lines."""
        return f"{self.client_ip}:{self.client_port}"

    @property
    def age(self) -> float:
        """Seconds since accept()."""
        return time.time() - self.created_at

    @property
    def is_closed(self) -> bool:
        return self.state == ConnectionState.CLOSED

    @property
    def may_have_unread_data(self) -> bool:
        """True when the single read filled the buffer, so the request was likely cut off."""
        return self.bytes_read >= self.buffer_size

    # =========================================================================
    # BLOCKING I/O
    # =========================================================================

    def read_request(self) -> bytes:
        """
        Perform the single bounded read.

        Returns:
            Up to buffer_size bytes. b"" means the peer closed the
            connection before sending anything.

        Raises:
            OSError: Connection reset, or socket.timeout when a timeout
                     is configured and expires.
        """
        self.state = ConnectionState.READING
        data = self.socket.recv(self.buffer_size)
        self.bytes_read = len(data)
        self.state = ConnectionState.PROCESSING
        return data

    def send_response(self, data: bytes) -> None:
        """
        Write the framed response with one sendall().

        sendall() keeps calling send() until every byte is written, so a
        short write never truncates the response.

        Raises:
            OSError: Broken pipe, reset, or timeout. Not retried.
        """
        self.state = ConnectionState.WRITING
        self.socket.sendall(data)

    def close(self):
        """
        Shut down and close the socket. Idempotent; never raises.

        See the module docstring for when the socket is drained first.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Peer already gone

        try:
            if self.may_have_unread_data:
                deadline = time.monotonic() + DRAIN_TIMEOUT
                self.socket.settimeout(DRAIN_TIMEOUT)
                while time.monotonic() < deadline and self.socket.recv(self.buffer_size):
                    pass
            else:
                self.socket.setblocking(False)
                self._discard_queued()
        except OSError:
            pass  # Includes socket.timeout
        finally:
            self._release()

    def _discard_queued(self):
        # Socket must be non-blocking: reads only what already arrived
        try:
            while self.socket.recv(self.buffer_size):
                pass
        except BlockingIOError:
            pass

    # =========================================================================
    # ASYNCIO I/O
    # =========================================================================
    # Same contract as above for non-blocking sockets driven by an event
    # loop. Suspension happens only inside sock_recv / sock_sendall.

    async def read_request_async(self, loop: asyncio.AbstractEventLoop) -> bytes:
        """Async counterpart of read_request(); honours `timeout`."""
        self.state = ConnectionState.READING
        data = await asyncio.wait_for(
            loop.sock_recv(self.socket, self.buffer_size), self.timeout
        )
        self.bytes_read = len(data)
        self.state = ConnectionState.PROCESSING
        return data

    async def send_response_async(
        self, loop: asyncio.AbstractEventLoop, data: bytes
    ) -> None:
        """Async counterpart of send_response(); honours `timeout`."""
        self.state = ConnectionState.WRITING
        await asyncio.wait_for(loop.sock_sendall(self.socket, data), self.timeout)

    async def aclose(self, loop: asyncio.AbstractEventLoop):
        """Async counterpart of close(). Idempotent; never raises."""
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass

        try:
            if not self.may_have_unread_data:
                # Already non-blocking
                self._discard_queued()
                return

            deadline = loop.time() + DRAIN_TIMEOUT
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                chunk = await asyncio.wait_for(
                    loop.sock_recv(self.socket, self.buffer_size), remaining
                )
                if not chunk:
                    break
        except (OSError, asyncio.TimeoutError):
            pass
        finally:
            # Runs on cancellation too
            self._release()

    def _release(self):
        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection from {self.peer} closed after {self.age:.3f}s")

    # =========================================================================
    # CONTEXT MANAGER
    # =========================================================================

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False  # Don't suppress exceptions
