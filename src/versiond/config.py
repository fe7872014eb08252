"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

All tunables in one dataclass. Defaults:

    127.0.0.1:3000, one 1024-byte read per connection, no timeouts.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  Priority (highest first)                                           │
    ├─────────────────────────────────────────────────────────────────────┤
    │  1. CLI flags           python -m versiond --port 8080              │
    │  2. Environment         HTTP_PORT=8080 python -m versiond           │
    │  3. Dataclass defaults  port: int = 3000                            │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
SERVING MODES
=============================================================================

    sequential   One connection at a time on the calling thread. A client
                 that connects and never sends blocks the whole server.

    threaded     Accept loop on the calling thread, each connection handed
                 to a worker thread from the pool.

    async        One asyncio event loop, one task per connection.

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional

from .http.request import DEFAULT_BUFFER_SIZE


MODES = ("sequential", "threaded", "async")

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ServerConfig:
    """
    Configuration for the server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK     host, port, backlog
    REQUEST     buffer_size, timeout
    SCHEDULING  mode, min_workers, max_workers
    LOGGING     log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """Address to bind. Loopback by default."""

    port: int = 3000
    """Port to listen on. 0 lets the OS pick one (see HTTPServer.address)."""

    backlog: int = 128
    """Accept queue length. The only backpressure the server has."""

    # ─────────────────────────────────────────────────────────────────────
    # REQUEST SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    buffer_size: int = DEFAULT_BUFFER_SIZE
    """
    Capacity of the single read per connection.
    Longer requests are truncated, not rejected.
    """

    timeout: Optional[float] = None
    """
    Read/write timeout in seconds.
    None = wait forever (the default): a client that connects and
    never sends holds its handler indefinitely.
    """

    # ─────────────────────────────────────────────────────────────────────
    # SCHEDULING
    # ─────────────────────────────────────────────────────────────────────

    mode: str = "threaded"
    """One of MODES."""

    min_workers: int = 4
    """Worker threads started with the pool (threaded mode)."""

    max_workers: int = 32
    """Persistent worker threads (threaded mode); overflow workers go past it while all are busy."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """DEBUG adds accept/close lines and empty-connection access lines."""

    log_format: str = "text"
    """Access log format: 'text' or 'json'."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        HTTP_HOST         Bind address (default: 127.0.0.1)
        HTTP_PORT         Port (default: 3000)
        HTTP_MODE         sequential | threaded | async (default: threaded)
        HTTP_WORKERS      Max worker threads (default: 32)
        HTTP_BUFFER_SIZE  Read buffer in bytes (default: 1024)
        HTTP_TIMEOUT      Read/write timeout in seconds (default: none)
        HTTP_LOG_LEVEL    Logging level (default: INFO)
        HTTP_LOG_FORMAT   text | json (default: text)

        =====================================================================

        Raises:
            ValueError: If a numeric variable does not parse.
        """
        defaults = cls()
        timeout = os.getenv("HTTP_TIMEOUT")
        workers = int(os.getenv("HTTP_WORKERS", str(defaults.max_workers)))
        return cls(
            host=os.getenv("HTTP_HOST", defaults.host),
            port=int(os.getenv("HTTP_PORT", str(defaults.port))),
            mode=os.getenv("HTTP_MODE", defaults.mode),
            min_workers=min(defaults.min_workers, workers),
            max_workers=workers,
            buffer_size=int(os.getenv("HTTP_BUFFER_SIZE", str(defaults.buffer_size))),
            timeout=float(timeout) if timeout else None,
            log_level=os.getenv("HTTP_LOG_LEVEL", defaults.log_level),
            log_format=os.getenv("HTTP_LOG_FORMAT", defaults.log_format),
        )

    def validate(self) -> None:
        """
        Validate configuration values. Called once at server construction.

        Raises:
            ValueError: On the first invalid value found.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.buffer_size < 1:
            raise ValueError("buffer_size must be >= 1")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0 (or None for no timeout)")

        if self.mode not in MODES:
            raise ValueError(f"mode must be one of {MODES}, got {self.mode!r}")

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {LOG_LEVELS}, got {self.log_level!r}")

        if self.log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json', got {self.log_format!r}")
