"""
=============================================================================
VERSION SERVER
=============================================================================

Ties the components together and picks the serving shape.

=============================================================================
ARCHITECTURE OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                          HTTPServer                                  │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   mode = "sequential"   SocketServer ──► _serve(conn)  (inline)      │
    │                                                                      │
    │   mode = "threaded"     SocketServer ──► ThreadPool.submit           │
    │                                            └──► _serve(conn)         │
    │                                                                      │
    │   mode = "async"        AsyncSocketServer ──► create_task            │
    │                                            └──► _serve_async(conn)   │
    │                                                                      │
    │   _serve*:  ConnectionHandler.handle(conn) ──► AccessLog.record()    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
REQUEST LIFECYCLE
=============================================================================

    1. ACCEPT
       └── Accept loop wraps the client socket in a Connection
    2. DISPATCH
       └── Inline, thread pool, or asyncio task depending on mode
    3. READ
       └── One recv() of up to buffer_size bytes
    4. PARSE + ROUTE
       └── First line → Version | NotFound(path) | BadRequest
    5. RENDER + WRITE
       └── Framed bytes, one sendall()
    6. CLOSE
       └── Always, then the outcome is written to the access log

=============================================================================
"""

import logging
from typing import Optional, Tuple, Union

from .access_log import AccessLog
from .config import ServerConfig
from .core import AsyncSocketServer, Connection, ConnectionHandler, SocketServer, ThreadPool


logger = logging.getLogger(__name__)


class HTTPServer:
    """
    The version server.

    Usage:
        server = HTTPServer(ServerConfig(port=3000, mode="async"))
        server.run()   # Blocks until Ctrl+C or shutdown()

    =========================================================================
    COMPONENTS
    =========================================================================

    - ConnectionHandler: read, parse, route, render, write, close
    - AccessLog: one log line per connection
    - SocketServer: blocking accept loop (sequential, threaded)
    - ThreadPool: workers for the threaded mode
    - AsyncSocketServer: event loop accept for the async mode

    =========================================================================
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        handler: Optional[ConnectionHandler] = None,
    ):
        """
        Args:
            config: Server configuration. Defaults to ServerConfig().
            handler: Connection handler; swap in one with extra routes.

        Raises:
            ValueError: If the configuration is invalid.
        """
        self.config = config or ServerConfig()
        self.config.validate()

        self.handler = handler or ConnectionHandler()
        self.access_log = AccessLog(self.config.log_format)

        # ─────────────────────────────────────────────────────────────────
        # ACCEPT LOOP (only the shape config.mode selects is built)
        # ─────────────────────────────────────────────────────────────────

        self._server: Union[SocketServer, AsyncSocketServer]
        self._thread_pool: Optional[ThreadPool] = None

        if self.mode == "async":
            self._server = AsyncSocketServer(self.config, self._serve_async)
        else:
            self._server = SocketServer(self.config)

        if self.mode == "threaded":
            self._thread_pool = ThreadPool(
                min_workers=self.config.min_workers,
                max_workers=self.config.max_workers,
            )

    @property
    def mode(self) -> str:
        return self.config.mode

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port) of the active accept loop."""
        return self._server.address

    def run(self, host: Optional[str] = None, port: Optional[int] = None):
        """
        Start the server (blocking).

        Args:
            host: Override config host.
            port: Override config port. 0 picks a free port.

        Raises:
            OSError: If the address cannot be bound.
        """
        if host:
            self.config.host = host
        if port is not None:
            self.config.port = port

        self._setup_logging()
        logger.info(
            f"Starting {self.mode} server on {self.config.host}:{self.config.port}"
        )

        try:
            if self.mode == "sequential":
                self._server.start(self._serve)
            elif self.mode == "threaded":
                self._thread_pool.start()
                self._server.start(self._dispatch_to_pool)
            else:
                self._server.run()
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def _setup_logging(self):
        """Configure logging based on config."""
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        logging.getLogger("versiond").setLevel(level)

    def shutdown(self):
        """
        Stop accepting. Safe from any thread.

        run() returns within about a second. In-flight connections are not
        drained: blocking handlers finish on their own, async tasks are
        cancelled.
        """
        self._server.shutdown()

    def _shutdown(self):
        logger.info("Shutting down server...")
        if self._thread_pool is not None:
            self._thread_pool.shutdown(wait=False)
        logger.info("Server stopped")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the active accept loop is listening."""
        return self._server.wait_until_ready(timeout)

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _serve(self, conn: Connection):
        outcome = self.handler.handle(conn)
        self.access_log.record(outcome)

    def _dispatch_to_pool(self, conn: Connection):
        # Never waits on the connection: the queue is unbounded
        self._thread_pool.submit(self._serve, args=(conn,))

    async def _serve_async(self, conn: Connection):
        outcome = await self.handler.handle_async(conn)
        self.access_log.record(outcome)


def create_app(config: Optional[ServerConfig] = None) -> HTTPServer:
    """
    Create a server instance.

    Example:
        app = create_app(ServerConfig(port=3000))
        app.run()
    """
    return HTTPServer(config)
