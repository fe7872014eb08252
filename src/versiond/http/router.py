"""
=============================================================================
ROUTER
=============================================================================

Maps a parsed request line to exactly one RouteOutcome.

=============================================================================
ROUTE OUTCOMES
=============================================================================

The set of outcomes is closed: every possible request ends up as one of
these, and nothing else.

    ┌──────────────────┬──────────────────────────┬─────────────────────┐
    │ Outcome          │ When                     │ Status              │
    ├──────────────────┼──────────────────────────┼─────────────────────┤
    │ Version          │ GET /version             │ 200 OK              │
    │ NotFound(path)   │ GET <anything else>      │ 404 Not Found       │
    │ BadRequest       │ any other method, or no  │ 400 Bad Request     │
    │                  │ usable first line        │                     │
    └──────────────────┴──────────────────────────┴─────────────────────┘

=============================================================================
MATCHING ORDER
=============================================================================

    route(line)
        │
        ├── line is None?                         ──► BadRequest
        │
        ├── (method, path) in exact route table?  ──► table entry
        │       ("GET", "/version") → Version
        │
        ├── method == "GET"?                      ──► NotFound(path or "/unknown")
        │
        └── otherwise                             ──► BadRequest

Exact routes are a dict keyed by (method, path), so a lookup either hits
or misses; there is no prefix matching. "GET /versions" and
"GET /version/" are both 404s.

The router does not pick JSON vs HTML. That is content negotiation and
belongs to the renderer.

=============================================================================
"""

from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from .request import RequestLine
from .status_codes import HTTPStatus


# Reported path for requests that did not name one.
UNKNOWN_PATH = "/unknown"

VERSION_PATH = "/version"


class RouteOutcome:
    """
    Base class for routing decisions.

    Subclasses are small frozen dataclasses. Each exposes:
        status: The HTTP status this outcome maps to.
        path:   The path reported for observability.
    """

    status: HTTPStatus
    path: str = UNKNOWN_PATH


@dataclass(frozen=True)
class Version(RouteOutcome):
    """GET /version."""

    status: HTTPStatus = HTTPStatus.OK
    path: str = VERSION_PATH


@dataclass(frozen=True)
class NotFound(RouteOutcome):
    """A GET for a path with no route. Carries the requested path."""

    path: str = UNKNOWN_PATH
    status: HTTPStatus = HTTPStatus.NOT_FOUND


@dataclass(frozen=True)
class BadRequest(RouteOutcome):
    """Anything that is not a GET, including unparsable input."""

    status: HTTPStatus = HTTPStatus.BAD_REQUEST
    path: str = UNKNOWN_PATH


# Builds the outcome for an exact route from the matched request line
OutcomeFactory = Callable[[RequestLine], RouteOutcome]


class Router:
    """
    Exact-match router with a GET fallback.

    Usage:
        router = Router()
        outcome = router.route(parse_request_line(raw))

    Extra exact routes can be registered in code:

        router.add_route("GET", "/healthz", lambda line: Healthz())

    Registered routes are checked before the GET fallback, so adding one
    never changes how existing paths are handled.
    """

    def __init__(self):
        self._routes: Dict[Tuple[str, str], OutcomeFactory] = {}
        self.add_route("GET", VERSION_PATH, lambda line: Version())

    def add_route(self, method: str, path: str, factory: OutcomeFactory) -> None:
        """
        Register an exact (method, path) route.

        Raises:
            ValueError: If the route is already registered.
        """
        key = (method, path)
        if key in self._routes:
            raise ValueError(f"Route already registered: {method} {path}")
        self._routes[key] = factory

    @property
    def routes(self) -> list[Tuple[str, str]]:
        """Registered (method, path) pairs, in registration order."""
        return list(self._routes)

    def route(self, line: Optional[RequestLine]) -> RouteOutcome:
        """
        Decide the outcome for a request line.

        Pure and total: no I/O, and every input maps to an outcome.
        """
        if line is None:
            return BadRequest()

        if line.path is not None:
            factory = self._routes.get((line.method, line.path))
            if factory is not None:
                return factory(line)

        if line.method == "GET":
            return NotFound(path=line.path or UNKNOWN_PATH)

        return BadRequest()
