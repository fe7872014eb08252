"""
Core networking: connections, accept loops, the thread pool, and the
per-connection handler.
"""

from .connection import Connection, ConnectionState
from .socket_server import SocketServer, create_listening_socket
from .async_server import AsyncSocketServer
from .thread_pool import ThreadPool
from .handler import ConnectionHandler, ConnectionOutcome, Exchange

__all__ = [
    "Connection",
    "ConnectionState",
    "SocketServer",
    "create_listening_socket",
    "AsyncSocketServer",
    "ThreadPool",
    "ConnectionHandler",
    "ConnectionOutcome",
    "Exchange",
]
