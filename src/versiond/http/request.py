"""
=============================================================================
REQUEST LINE PARSING
=============================================================================

The server reads a request with exactly ONE recv() call into a fixed-size
buffer and only ever looks at two things in those bytes:

    1. The first line           GET /version HTTP/1.1
    2. One header substring     Accept: application/json

Everything else (other headers, any body) is read off the socket and
ignored.

=============================================================================
WHAT THE FIRST LINE LOOKS LIKE
=============================================================================

    GET /version HTTP/1.1\r\n
    ─┬─ ────┬─── ────┬───
     │      │        │
   method  path   version

    method   First whitespace-delimited token ("GET", "POST", ...)
    path     Second token, or None if the line has only one token
    version  Third token, or None

Tokens are split on any run of whitespace, so "GET  /a   HTTP/1.1" parses
the same as the single-spaced form.

=============================================================================
TRUNCATION IS EXPECTED
=============================================================================

The read buffer is DEFAULT_BUFFER_SIZE (1024) bytes unless configured
otherwise. A request longer than that is simply cut off:

    ┌────────────────────────────── 1024 bytes ─────────────────────────┐
    │ GET /a-very-long-path-that-keeps-going ...                         │ ...rest never read
    └────────────────────────────────────────────────────────────────────┘

If the cut happens in the middle of the first line, the parser sees a
shorter path. That is the documented boundary condition of this server,
not an error.

=============================================================================
ENCODING
=============================================================================

Bytes are decoded as UTF-8 with errors="replace": any invalid sequence
becomes U+FFFD. Decoding therefore never raises and parsing always
proceeds.

=============================================================================
"""

from dataclasses import dataclass
from typing import Optional


# Size of the single read performed per connection.
DEFAULT_BUFFER_SIZE = 1024

# Presence of this substring anywhere in the request selects the JSON body
# for /version. Matching is literal and case-sensitive.
JSON_ACCEPT_MARKER = "Accept: application/json"


@dataclass(frozen=True)
class RequestLine:
    """
    The interpreted parts of one raw request.

    Attributes:
        method: First token of the request line.
        path: Second token, or None when the line has a single token.
        version: Third token, or None.
        headers_fragment: Everything after the first line, undecoded
                          beyond the lossy UTF-8 pass. Never parsed into
                          a header map.
        text: The whole decoded request, first line included.
    """

    method: str
    path: Optional[str] = None
    version: Optional[str] = None
    headers_fragment: str = ""
    text: str = ""

    @property
    def wants_json(self) -> bool:
        """True if the Accept marker appears anywhere in the request."""
        return JSON_ACCEPT_MARKER in self.text


def decode_request(raw: bytes) -> str:
    """Decode raw request bytes; invalid UTF-8 is replaced, never raised."""
    return raw.decode("utf-8", errors="replace")


def split_first_line(text: str) -> tuple[str, str]:
    """
    Split decoded request text into (first_line, rest).

    Lines end at LF; a trailing CR is stripped so both CRLF and bare LF
    requests work:

        "GET / HTTP/1.1\\r\\nHost: x\\r\\n"  ->  ("GET / HTTP/1.1", "Host: x\\r\\n")
    """
    first_line, _, rest = text.partition("\n")
    return first_line.rstrip("\r"), rest


def parse_request_line(raw: bytes) -> Optional[RequestLine]:
    """
    Parse the first line of a raw request.

    Args:
        raw: Bytes from a single read. May be truncated.

    Returns:
        A RequestLine, or None when there is no usable first line
        (empty input, or a first line that is blank or only whitespace).
        The router treats None as a bad request.
    """
    if not raw:
        return None

    text = decode_request(raw)
    first_line, rest = split_first_line(text)

    tokens = first_line.split()
    if not tokens:
        return None

    return RequestLine(
        method=tokens[0],
        path=tokens[1] if len(tokens) > 1 else None,
        version=tokens[2] if len(tokens) > 2 else None,
        headers_fragment=rest,
        text=text,
    )
