"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The server only ever answers with a handful of statuses, so this enum is
deliberately small. Each member knows two spellings of itself:

    phrase        "Not Found"           Human-readable, used in reports
    status_line   "HTTP/1.1 404 NOT FOUND"   Exactly what goes on the wire

    HTTP/1.1 404 NOT FOUND
    ──────── ─── ─────────
       │      │      │
       │      │      └── Reason phrase (clients ignore it, RFC 7230 §3.1.2)
       │      └───────── Status code
       └──────────────── Protocol version

The wire reason phrases for error statuses are upper-case. Clients only
look at the numeric code, so this is purely cosmetic, but it is part of
the observable output and is kept stable.

=============================================================================
"""

from enum import IntEnum


HTTP_VERSION = "HTTP/1.1"


class HTTPStatus(IntEnum):
    """
    Status codes the server can produce.

    Extends IntEnum so members compare equal to plain integers:

        >>> HTTPStatus.NOT_FOUND == 404
        True
        >>> HTTPStatus.NOT_FOUND.status_line
        'HTTP/1.1 404 NOT FOUND'
    """

    OK = 200                        # /version
    BAD_REQUEST = 400               # Non-GET or unparsable request line
    NOT_FOUND = 404                 # Any other GET path
    INTERNAL_SERVER_ERROR = 500     # Renderer blew up

    @property
    def phrase(self) -> str:
        """Title-case reason phrase, e.g. "Not Found"."""
        return _STATUS_PHRASES[self]

    @property
    def status_text(self) -> str:
        """Code plus phrase, e.g. "404 Not Found" (used in access logs)."""
        return f"{int(self)} {self.phrase}"

    @property
    def status_line(self) -> str:
        """The first line of the response as written to the socket."""
        return f"{HTTP_VERSION} {int(self)} {_WIRE_PHRASES[self]}"

    @property
    def is_error(self) -> bool:
        return self >= 400


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
}

_WIRE_PHRASES = {
    status: phrase.upper() for status, phrase in _STATUS_PHRASES.items()
}
