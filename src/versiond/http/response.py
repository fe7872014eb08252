"""
=============================================================================
RENDERED RESPONSES AND WIRE FRAMING
=============================================================================

A RenderedResponse is the fully materialized answer to one request:
status, content type and body. It is built completely BEFORE anything is
written, because the header block needs the final body size.

=============================================================================
WIRE FORMAT
=============================================================================

Every response this server writes has exactly this shape:

    HTTP/1.1 200 OK\r\n                     ← status line
    Content-Type: application/json\r\n      ← always present
    Content-Length: 142\r\n                 ← always present, always exact
    \r\n                                    ← end of headers
    {"version": "1.0.0", ...}               ← body, exactly 142 bytes

No Date, no Server, no Connection header. Content-Length counts BYTES of
the UTF-8 encoded body, not characters:

    body = "café"        len(body) == 4
                         len(body.encode("utf-8")) == 5   ← this one

A client can therefore read the header block, take Content-Length, and
slice the body without ever looking for a terminator.

=============================================================================
"""

from dataclasses import dataclass

from .status_codes import HTTPStatus


CRLF = "\r\n"

CONTENT_TYPE_HTML = "text/html"
CONTENT_TYPE_JSON = "application/json"


@dataclass(frozen=True)
class RenderedResponse:
    """
    Status, content type and body for one response.

    Attributes:
        status: HTTP status.
        content_type: Value of the Content-Type header.
        body: Response body as text; encoded to UTF-8 when framed.
    """

    status: HTTPStatus
    content_type: str
    body: str

    @property
    def status_line(self) -> str:
        """e.g. "HTTP/1.1 404 NOT FOUND"."""
        return self.status.status_line

    @property
    def body_bytes(self) -> bytes:
        return self.body.encode("utf-8")

    @property
    def content_length(self) -> int:
        """Byte length of the encoded body."""
        return len(self.body_bytes)

    def header_block(self) -> str:
        """Status line and headers, including the blank line terminator."""
        return (
            f"{self.status_line}{CRLF}"
            f"Content-Type: {self.content_type}{CRLF}"
            f"Content-Length: {self.content_length}{CRLF}"
            f"{CRLF}"
        )

    def to_bytes(self) -> bytes:
        """
        Serialize the response for a single sendall().

        Returns:
            Header block followed by the encoded body.
        """
        return self.header_block().encode("latin-1") + self.body_bytes


def html(status: HTTPStatus, body: str) -> RenderedResponse:
    """Shortcut for a text/html response."""
    return RenderedResponse(status=status, content_type=CONTENT_TYPE_HTML, body=body)


def json_response(status: HTTPStatus, body: str) -> RenderedResponse:
    """Shortcut for an application/json response. `body` is already encoded JSON."""
    return RenderedResponse(status=status, content_type=CONTENT_TYPE_JSON, body=body)
