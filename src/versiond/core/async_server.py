"""
=============================================================================
ASYNCIO ACCEPT LOOP
=============================================================================

Task-per-connection counterpart of SocketServer, on a single event loop.

=============================================================================
HOW IT DIFFERS FROM THE THREADED SHAPE
=============================================================================

    Threaded:   accept() ──► pool.submit(serve, conn) ──► worker thread
    Async:      await sock_accept() ──► create_task(serve(conn)) ──► task

The accept coroutine never awaits the task it spawns. A client that
connects and never sends suspends only its own task on sock_recv(); the
loop keeps accepting and every other task keeps running.

    ┌────────────────────────── event loop ──────────────────────────┐
    │                                                                 │
    │   _accept_loop ──► sock_accept() ──► Connection(blocking=False) │
    │        │                                   │                    │
    │        │                         create_task(_run(conn))        │
    │        │                                   │                    │
    │        └── loops immediately         ┌─────┴─────┐              │
    │                                      │  task A   │ sock_recv... │
    │                                      │  task B   │ sock_send... │
    │                                      │  task C   │ done         │
    │                                      └───────────┘              │
    └─────────────────────────────────────────────────────────────────┘

Tasks are kept in a set until they finish; the event loop itself only
holds weak references to tasks.

=============================================================================
"""

import asyncio
import logging
import threading
from typing import Awaitable, Callable, Optional, Set, Tuple

from ..config import ServerConfig
from .connection import Connection
from .socket_server import ACCEPT_ERROR_BACKOFF, ACCEPT_POLL_INTERVAL, create_listening_socket


logger = logging.getLogger(__name__)


AsyncServe = Callable[[Connection], Awaitable[None]]


class AsyncSocketServer:
    """
    asyncio accept loop with fire-and-forget dispatch.

    Usage:
        server = AsyncSocketServer(config, serve)
        server.run()        # Blocks; runs its own event loop

        # or, inside a running loop:
        await server.serve_forever()
    """

    def __init__(self, config: ServerConfig, serve: AsyncServe):
        self.config = config
        self.serve = serve

        self._socket = None
        self._running = False
        self._tasks: Set[asyncio.Task] = set()

        self._ready = threading.Event()
        self._shutdown_event = threading.Event()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); the real port once listening."""
        if self._socket is not None:
            host, port = self._socket.getsockname()[:2]
            return (host, port)
        return (self.config.host, self.config.port)

    @property
    def active_connections(self) -> int:
        return len(self._tasks)

    def run(self):
        """Run serve_forever() on a fresh event loop until shutdown()."""
        asyncio.run(self.serve_forever())

    async def serve_forever(self):
        """
        Bind, listen and accept until shutdown().

        Raises:
            OSError: If binding fails.
        """
        loop = asyncio.get_running_loop()

        self._socket = create_listening_socket(self.config)
        self._socket.setblocking(False)

        self._running = True
        self._shutdown_event.clear()
        self._ready.set()

        host, port = self.address
        logger.info(f"Server listening on {host}:{port} (asyncio)")

        try:
            await self._accept_loop(loop)
        finally:
            await self._cleanup()

    async def _accept_loop(self, loop: asyncio.AbstractEventLoop):
        # One pending accept at a time, kept across polls so a connection
        # accepted as a poll times out is never dropped
        accept: Optional[asyncio.Future] = None
        try:
            while self._running:
                if accept is None:
                    accept = asyncio.ensure_future(loop.sock_accept(self._socket))

                # Timeout only so the loop notices shutdown()
                done, _ = await asyncio.wait({accept}, timeout=ACCEPT_POLL_INTERVAL)
                if not done:
                    continue

                finished, accept = accept, None
                try:
                    client_socket, client_address = finished.result()
                except OSError as e:
                    if not self._running:
                        break
                    logger.error(f"Accept error: {e}")
                    await asyncio.sleep(ACCEPT_ERROR_BACKOFF)
                    continue

                conn = Connection(
                    socket=client_socket,
                    address=client_address,
                    buffer_size=self.config.buffer_size,
                    timeout=self.config.timeout,
                    blocking=False,
                )
                logger.debug(f"[{conn.id}] Accepted connection from {conn.peer}")

                task = asyncio.create_task(self._run(conn))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
        finally:
            if accept is not None:
                self._discard_accept(accept)

    @staticmethod
    def _discard_accept(accept: asyncio.Future):
        """Cancel a pending accept, closing the socket if it completed anyway."""
        if accept.cancel():
            return
        if not accept.cancelled() and accept.exception() is None:
            client_socket, _ = accept.result()
            client_socket.close()

    async def _run(self, conn: Connection):
        try:
            await self.serve(conn)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception(f"[{conn.id}] Connection task failed")
        finally:
            await conn.aclose(asyncio.get_running_loop())

    def shutdown(self):
        """
        Ask the accept loop to stop. Safe from any thread; idempotent.

        Noticed within ACCEPT_POLL_INTERVAL seconds. Connection tasks still
        running at that point are cancelled.
        """
        if self._running:
            logger.info("Shutting down accept loop...")
        self._running = False

    async def _cleanup(self):
        self._running = False
        if self._socket is not None:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        pending = list(self._tasks)
        if pending:
            logger.info(f"Cancelling {len(pending)} in-flight connection(s)")
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        self._ready.clear()
        self._shutdown_event.set()
        logger.info("Socket server stopped")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        return self._ready.wait(timeout)

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        return self._shutdown_event.wait(timeout)
