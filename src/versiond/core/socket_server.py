"""
=============================================================================
BLOCKING ACCEPT LOOP
=============================================================================

Owns the listening socket and turns every accepted client socket into a
Connection handed to a dispatch callback.

=============================================================================
SOCKET LIFECYCLE (Server Side)
=============================================================================

    1. socket()    Create a TCP socket
    2. bind()      Reserve host:port
    3. listen()    Kernel starts queueing completed handshakes (backlog)
    4. accept()    Pop one connection off the queue → NEW client socket
    5. close()     Release the listening socket on shutdown

                    ┌───────────────────────┐
                    │   Listening Socket    │ ◄── Created once in start()
                    │   127.0.0.1:3000      │     Only the accept loop touches it
                    └───────────┬───────────┘
                                │ accept()
        ┌───────────────────────┼───────────────────────┐
        ▼                       ▼                       ▼
    ┌───────────┐         ┌───────────┐         ┌───────────┐
    │Connection │         │Connection │         │Connection │
    │  (1 req)  │         │  (1 req)  │         │  (1 req)  │
    └───────────┘         └───────────┘         └───────────┘

=============================================================================
DISPATCH: SEQUENTIAL VS THREADED
=============================================================================

The loop itself does not know how connections are served. It calls
`dispatch(conn)` and moves on when dispatch returns:

    Sequential:  dispatch = serve inline
                 └─ returns after the response is written
                 └─ next accept() waits for the current client

    Threaded:    dispatch = thread_pool.submit(serve, conn)
                 └─ returns immediately
                 └─ next accept() runs while the worker serves

=============================================================================
FAILURES NEVER STOP THE LOOP
=============================================================================

    accept() raises OSError (EMFILE, ECONNABORTED, ...)
        └─ log, pause ACCEPT_ERROR_BACKOFF, continue

    dispatch(conn) raises
        └─ log with traceback, close conn, continue

    accept() times out after ACCEPT_POLL_INTERVAL
        └─ not an error: it only lets the loop notice shutdown()

=============================================================================
"""

import socket
import logging
import threading
import time
from typing import Optional, Callable, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


# accept() wakes up this often to check whether shutdown() was called
ACCEPT_POLL_INTERVAL = 1.0

# Pause after a failed accept() so a persistent error (fd exhaustion)
# does not spin the CPU
ACCEPT_ERROR_BACKOFF = 0.05


Dispatch = Callable[[Connection], None]


def create_listening_socket(config: ServerConfig) -> socket.socket:
    """
    Create, bind and listen.

    SO_REUSEADDR lets the server restart immediately while old
    connections sit in TIME_WAIT. TCP_NODELAY is inherited by accepted
    sockets, so the single response write goes out without Nagle delay.

    Raises:
        OSError: If the address cannot be bound.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        sock.bind((config.host, config.port))
        sock.listen(config.backlog)
    except OSError as e:
        sock.close()
        logger.error(f"Failed to bind to {config.host}:{config.port}: {e}")
        raise
    return sock


class SocketServer:
    """
    Blocking TCP accept loop.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      SocketServer Internals                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    start(dispatch)                                                   │
    │        ├──► create_listening_socket()   socket, bind, listen         │
    │        ├──► _ready.set()                address now valid            │
    │        └──► _accept_loop(dispatch)      (blocks here)                │
    │                 └──► while running:                                  │
    │                         accept()                                     │
    │                         Connection(...)                              │
    │                         dispatch(conn)                               │
    │                                                                      │
    │    shutdown()          running = False (from any thread)             │
    │    _cleanup()          close listening socket                        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    Usage:
        server = SocketServer(config)
        server.start(handler.handle)   # Blocks until shutdown()
    """

    def __init__(self, config: ServerConfig):
        self.config = config

        self._socket: Optional[socket.socket] = None
        self._running = False

        # Set once the socket is listening; used by callers that need the
        # bound port (port=0) before connecting
        self._ready = threading.Event()
        self._shutdown_event = threading.Event()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); the real port once listening, even for port=0."""
        if self._socket is not None:
            host, port = self._socket.getsockname()[:2]
            return (host, port)
        return (self.config.host, self.config.port)

    def start(self, dispatch: Dispatch):
        """
        Bind, listen and run the accept loop until shutdown().

        Args:
            dispatch: Called with each accepted Connection. Owns the
                      connection from then on.

        Raises:
            OSError: If binding fails. Errors after that are contained.
        """
        self._socket = create_listening_socket(self.config)
        self._socket.settimeout(ACCEPT_POLL_INTERVAL)

        self._running = True
        self._shutdown_event.clear()
        self._ready.set()

        host, port = self.address
        logger.info(f"Server listening on {host}:{port}")

        try:
            self._accept_loop(dispatch)
        finally:
            self._cleanup()

    def _accept_loop(self, dispatch: Dispatch):
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if not self._running:
                    break
                logger.error(f"Accept error: {e}")
                time.sleep(ACCEPT_ERROR_BACKOFF)
                continue

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
            )
            logger.debug(f"[{conn.id}] Accepted connection from {conn.peer}")

            try:
                dispatch(conn)
            except Exception:
                logger.exception(f"[{conn.id}] Dispatch failed, dropping connection")
                conn.close()

    def shutdown(self):
        """
        Ask the accept loop to stop. Safe from any thread; idempotent.

        The loop notices within ACCEPT_POLL_INTERVAL seconds. Connections
        already dispatched are not interrupted.
        """
        if self._running:
            logger.info("Shutting down accept loop...")
        self._running = False

    def _cleanup(self):
        self._running = False
        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        self._ready.clear()
        self._shutdown_event.set()
        logger.info("Socket server stopped")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is listening. Returns False on timeout."""
        return self._ready.wait(timeout)

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """Block until the loop has stopped. Returns False on timeout."""
        return self._shutdown_event.wait(timeout)
