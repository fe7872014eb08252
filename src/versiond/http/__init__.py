"""
=============================================================================
HTTP PROTOCOL COMPONENTS
=============================================================================

The protocol side of the server, with no socket code in it:

    raw bytes
        │
        ▼
    ┌──────────────┐     ┌──────────────┐     ┌───────────────────┐
    │ request.py   │ ──► │ router.py    │ ──► │ (renderer)        │
    │ RequestLine  │     │ RouteOutcome │     │ RenderedResponse  │
    └──────────────┘     └──────────────┘     └─────────┬─────────┘
                                                        │
                                                        ▼
                                              response.py: to_bytes()

Everything here is pure: same input, same output, no I/O. The socket
layer in versiond.core feeds bytes in and writes bytes out.

=============================================================================
"""

from .request import (
    DEFAULT_BUFFER_SIZE,
    JSON_ACCEPT_MARKER,
    RequestLine,
    parse_request_line,
)
from .response import (
    CONTENT_TYPE_HTML,
    CONTENT_TYPE_JSON,
    RenderedResponse,
)
from .router import (
    BadRequest,
    NotFound,
    RouteOutcome,
    Router,
    Version,
)
from .status_codes import HTTPStatus

__all__ = [
    # Request parsing
    "DEFAULT_BUFFER_SIZE",
    "JSON_ACCEPT_MARKER",
    "RequestLine",
    "parse_request_line",

    # Responses
    "CONTENT_TYPE_HTML",
    "CONTENT_TYPE_JSON",
    "RenderedResponse",

    # Routing
    "BadRequest",
    "NotFound",
    "RouteOutcome",
    "Router",
    "Version",

    # Status codes
    "HTTPStatus",
]
