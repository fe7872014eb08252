"""
versiond: a minimal HTTP/1.1 version server on raw sockets.

Answers GET /version with build information (HTML, or JSON when the client
sends `Accept: application/json`), 404 for any other GET path, and 400 for
everything else. One request per connection.

Usage:
    from versiond import HTTPServer, ServerConfig

    server = HTTPServer(ServerConfig(port=3000, mode="threaded"))
    server.run()
"""

__version__ = "1.0.0"

# Imported after __version__: handlers.pages reads it at import time
from .config import ServerConfig
from .server import HTTPServer, create_app

__all__ = [
    "__version__",
    "HTTPServer",
    "ServerConfig",
    "create_app",
]
