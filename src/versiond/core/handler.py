"""
=============================================================================
CONNECTION HANDLER
=============================================================================

Serves exactly one request on one connection and reports what happened.

=============================================================================
LIFECYCLE OF ONE CONNECTION
=============================================================================

    ┌──────────────────────────────────────────────────────────────────┐
    │ handle(conn)                                                     │
    │                                                                  │
    │   with conn:                           ← close() on EVERY path   │
    │       raw = conn.read_request()        ← one recv(buffer_size)   │
    │       │                                                          │
    │       ├── OSError ─────────────────────────► failure outcome     │
    │       ├── b"" (peer closed) ───────────────► empty outcome       │
    │       │                                                          │
    │       exchange = respond(raw)          ← pure, never raises      │
    │       │    parse_request_line(raw)                               │
    │       │    router.route(line)                                    │
    │       │    renderer.render(outcome, wants_json)                  │
    │       │                                                          │
    │       conn.send_response(bytes)        ← one sendall()           │
    │       │                                                          │
    │       ├── OSError ─────────────────────────► failure outcome     │
    │       └── ok ──────────────────────────────► success outcome     │
    └──────────────────────────────────────────────────────────────────┘

Nothing escapes handle(): every failure becomes a ConnectionOutcome. The
accept loop only ever sees outcomes, and only uses them for logging.

=============================================================================
ERROR TAXONOMY AT THIS BOUNDARY
=============================================================================

    Read error (reset, timeout)     failure outcome, nothing written
    Zero-byte read                  empty outcome, nothing written
    Garbled / missing first line    NOT an error: routed to 400
    Invalid UTF-8                   NOT an error: lossy decode
    Renderer exception              logged, 500 page written instead
    Write error (broken pipe)       failure outcome, no retry

=============================================================================
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional

from ..handlers.pages import PageRenderer, Renderer, internal_error
from ..http.request import parse_request_line
from ..http.response import RenderedResponse
from ..http.router import RouteOutcome, Router
from .connection import Connection


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConnectionOutcome:
    """
    What happened on one connection. Reporting only.

    Attributes:
        connection_id: Connection.id, to correlate with debug logs.
        peer: "ip:port" of the client.
        bytes_read: Size of the single read (0 for empty connections).
        status_text: e.g. "200 OK"; empty when no response was produced.
        path: Path reported for the request ("/unknown" for bad requests).
        error: Description of the failure, or None.
        duration_ms: Time from accept to close.
    """

    connection_id: str
    peer: str
    bytes_read: int = 0
    status_text: str = ""
    path: str = ""
    error: Optional[str] = None
    duration_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def is_empty(self) -> bool:
        """Peer closed without sending anything."""
        return self.ok and self.bytes_read == 0

    @classmethod
    def empty(cls, conn: Connection) -> "ConnectionOutcome":
        return cls(
            connection_id=conn.id,
            peer=conn.peer,
            duration_ms=conn.age * 1000,
        )

    @classmethod
    def success(cls, conn: Connection, exchange: "Exchange") -> "ConnectionOutcome":
        return cls(
            connection_id=conn.id,
            peer=conn.peer,
            bytes_read=conn.bytes_read,
            status_text=exchange.response.status.status_text,
            path=exchange.outcome.path,
            duration_ms=conn.age * 1000,
        )

    @classmethod
    def failure(
        cls,
        conn: Connection,
        error: BaseException,
        exchange: Optional["Exchange"] = None,
    ) -> "ConnectionOutcome":
        return cls(
            connection_id=conn.id,
            peer=conn.peer,
            bytes_read=conn.bytes_read,
            status_text=exchange.response.status.status_text if exchange else "",
            path=exchange.outcome.path if exchange else "",
            error=_describe(error),
            duration_ms=conn.age * 1000,
        )


@dataclass(frozen=True)
class Exchange:
    """The routing decision and the response rendered for it."""

    outcome: RouteOutcome
    response: RenderedResponse

    @property
    def payload(self) -> bytes:
        return self.response.to_bytes()


def _describe(error: BaseException) -> str:
    message = str(error)
    name = type(error).__name__
    return f"{name}: {message}" if message else name


class ConnectionHandler:
    """
    Runs the read → parse → route → render → write → close cycle.

    Holds only the router and renderer, both stateless, so one instance
    is shared by every thread or task.

    Usage:
        handler = ConnectionHandler()
        outcome = handler.handle(conn)              # blocking sockets
        outcome = await handler.handle_async(conn)  # asyncio sockets
    """

    def __init__(
        self,
        router: Optional[Router] = None,
        renderer: Optional[Renderer] = None,
    ):
        self.router = router or Router()
        self.renderer = renderer or PageRenderer()

    def respond(self, raw: bytes) -> Exchange:
        """
        Compute the response for raw request bytes. No I/O.

        Args:
            raw: Bytes from the single read. Must be non-empty.

        Returns:
            The route outcome and its rendered response.
        """
        line = parse_request_line(raw)
        outcome = self.router.route(line)
        wants_json = line.wants_json if line is not None else False

        try:
            response = self.renderer.render(outcome, wants_json)
        except Exception:
            logger.exception(f"Renderer failed for {outcome!r}")
            response = internal_error()

        return Exchange(outcome=outcome, response=response)

    # =========================================================================
    # BLOCKING SOCKETS (sequential and threaded servers)
    # =========================================================================

    def handle(self, conn: Connection) -> ConnectionOutcome:
        """
        Serve one connection. Never raises for connection-level errors.

        The connection is closed before this returns.
        """
        with conn:
            try:
                raw = conn.read_request()
            except OSError as e:
                logger.debug(f"[{conn.id}] Read failed: {e}")
                return ConnectionOutcome.failure(conn, e)

            if not raw:
                logger.debug(f"[{conn.id}] Peer closed before sending data")
                return ConnectionOutcome.empty(conn)

            exchange = self.respond(raw)

            try:
                conn.send_response(exchange.payload)
            except OSError as e:
                logger.warning(f"[{conn.id}] Send failed: {e}")
                return ConnectionOutcome.failure(conn, e, exchange)

        return ConnectionOutcome.success(conn, exchange)

    # =========================================================================
    # ASYNCIO SOCKETS (async server)
    # =========================================================================

    async def handle_async(
        self,
        conn: Connection,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> ConnectionOutcome:
        """
        Async counterpart of handle(). Suspends only on read and write.

        CancelledError is not caught; the connection is still closed.
        """
        loop = loop or asyncio.get_running_loop()
        try:
            try:
                raw = await conn.read_request_async(loop)
            except (OSError, asyncio.TimeoutError) as e:
                logger.debug(f"[{conn.id}] Read failed: {e}")
                return ConnectionOutcome.failure(conn, e)

            if not raw:
                logger.debug(f"[{conn.id}] Peer closed before sending data")
                return ConnectionOutcome.empty(conn)

            exchange = self.respond(raw)

            try:
                await conn.send_response_async(loop, exchange.payload)
            except (OSError, asyncio.TimeoutError) as e:
                logger.warning(f"[{conn.id}] Send failed: {e}")
                return ConnectionOutcome.failure(conn, e, exchange)

            return ConnectionOutcome.success(conn, exchange)
        finally:
            await conn.aclose(loop)
