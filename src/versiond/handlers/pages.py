"""
=============================================================================
PAGE RENDERER
=============================================================================

Turns a RouteOutcome into a RenderedResponse. This is pure templating:
the connection handler decides WHAT happened, this module decides what
it LOOKS like.

    ┌──────────────────┬────────────┬──────────────────┬─────────────────┐
    │ Outcome          │ wants_json │ Content-Type     │ Body            │
    ├──────────────────┼────────────┼──────────────────┼─────────────────┤
    │ Version          │ True       │ application/json │ version JSON    │
    │ Version          │ False      │ text/html        │ version page    │
    │ NotFound(path)   │ (ignored)  │ text/html        │ 404 page + path │
    │ BadRequest       │ (ignored)  │ text/html        │ 400 page        │
    └──────────────────┴────────────┴──────────────────┴─────────────────┘

The HTML version page embeds the same JSON document the JSON variant
returns, so both carry the same version string.

Templates use string.Template ($name placeholders) so the CSS braces
need no escaping.

=============================================================================
"""

import html
import json
import platform
import time
from abc import ABC, abstractmethod
from string import Template
from typing import Any, Dict

from .. import __version__
from ..http.response import RenderedResponse, html as html_response, json_response
from ..http.router import BadRequest, NotFound, RouteOutcome, Version
from ..http.status_codes import HTTPStatus


class Renderer(ABC):
    """
    Interface the connection handler renders through.

    Implementations must be safe to call from several threads at once;
    PageRenderer keeps no mutable state.
    """

    @abstractmethod
    def render(self, outcome: RouteOutcome, wants_json: bool = False) -> RenderedResponse:
        """Produce the response for one routing decision."""


def version_info() -> Dict[str, Any]:
    """
    Build the /version payload.

    built_at is the current Unix time in whole seconds, so two calls a
    second apart differ only in that field.
    """
    return {
        "version": __version__,
        "commit": "unknown",
        "branch": "main",
        "built_at": int(time.time()),
        "python_version": platform.python_version(),
        "platform": platform.system().lower() or "unknown",
        "arch": platform.machine() or "unknown",
    }


VERSION_PAGE = Template("""<!DOCTYPE html>
<html>
<head>
    <title>Version Information</title>
    <style>
        body {
            font-family: 'Courier New', monospace;
            background: #1a1a1a;
            color: #e0e0e0;
            padding: 40px;
            line-height: 1.6;
        }
        .terminal {
            background: #252525;
            border-radius: 6px;
            padding: 20px;
            border: 1px solid #333;
        }
        .info-title { color: #6ba2ff; font-size: 24px; margin: 0 0 20px 0; }
        .data-grid {
            display: grid;
            grid-template-columns: auto 1fr;
            gap: 10px;
            margin: 20px 0;
        }
        .label { color: #a0a0a0; padding-right: 20px; }
        .value { color: #6ba2ff; }
        pre {
            background: #1a1a1a;
            padding: 15px;
            border-radius: 4px;
            border: 1px solid #404040;
            overflow-x: auto;
        }
    </style>
</head>
<body>
    <div class="terminal">
        <h1 class="info-title">Server Version Information</h1>
        <div class="data-grid">
            <div class="label">Version:</div>
            <div class="value">$version</div>
            <div class="label">Platform:</div>
            <div class="value">$platform</div>
            <div class="label">Architecture:</div>
            <div class="value">$arch</div>
            <div class="label">Build Time:</div>
            <div class="value">$built_at</div>
        </div>
        <h2 class="info-title">Raw JSON Response</h2>
        <pre>$raw_json</pre>
    </div>
</body>
</html>""")


NOT_FOUND_PAGE = Template("""<!DOCTYPE html>
<html>
<head>
    <title>404 - Not Found</title>
    <style>
        body {
            font-family: 'Fira Code', monospace;
            background: #1c1c1c;
            color: #d4d4d4;
            padding: 2rem;
            margin: 0;
            line-height: 1.5;
        }
        .terminal {
            background: #252525;
            border: 1px solid #333;
            border-radius: 8px;
            padding: 2rem;
            max-width: 800px;
            margin: 2rem auto;
        }
        .error-code { color: #ff6b6b; font-size: 1.5rem; font-weight: 600; }
        .path-box {
            background: #1c1c1c;
            border: 1px solid #333;
            border-radius: 4px;
            padding: 1rem;
            margin: 1rem 0;
            color: #4d9375;
        }
        .endpoints-table { width: 100%; border-collapse: collapse; }
        .endpoints-table th { text-align: left; color: #808080; padding: 0.5rem; }
        .endpoints-table td { padding: 0.5rem; border-bottom: 1px solid #2a2a2a; }
    </style>
</head>
<body>
    <div class="terminal">
        <div class="error-code">Error: Path Not Found</div>
        <div class="status">Status: 404 Not Found</div>
        <p>The requested path does not exist:</p>
        <div class="path-box">$path</div>
        <p>Available Endpoints:</p>
        <table class="endpoints-table">
            <thead>
                <tr><th>Method</th><th>Path</th><th>Description</th><th>Response Type</th></tr>
            </thead>
            <tbody>
                <tr>
                    <td>GET</td>
                    <td>/version</td>
                    <td>Server version information</td>
                    <td>text/html or application/json</td>
                </tr>
            </tbody>
        </table>
        <p>Tip: send "Accept: application/json" to get the JSON form.</p>
    </div>
</body>
</html>""")


BAD_REQUEST_PAGE = """<!DOCTYPE html>
<html>
<head>
    <title>400 - Bad Request</title>
    <style>
        body {
            font-family: 'Courier New', monospace;
            background: #1a1a1a;
            color: #e0e0e0;
            padding: 40px;
        }
        .error-title { color: #ff6b6b; font-size: 24px; }
    </style>
</head>
<body>
    <h1 class="error-title">400 - Bad Request</h1>
    <p>The request was malformed or invalid.</p>
</body>
</html>"""


INTERNAL_ERROR_PAGE = """<!DOCTYPE html>
<html>
<head><title>500 - Internal Server Error</title></head>
<body>
    <h1>500 - Internal Server Error</h1>
    <p>The server failed to render a response.</p>
</body>
</html>"""


class PageRenderer(Renderer):
    """Default renderer: the version endpoint plus HTML error pages."""

    def render(self, outcome: RouteOutcome, wants_json: bool = False) -> RenderedResponse:
        if isinstance(outcome, Version):
            return self.render_version(wants_json)
        if isinstance(outcome, NotFound):
            return self.render_not_found(outcome.path)
        if isinstance(outcome, BadRequest):
            return self.render_bad_request()
        raise TypeError(f"No page for route outcome {outcome!r}")

    def render_version(self, wants_json: bool) -> RenderedResponse:
        info = version_info()
        raw_json = json.dumps(info, indent=4)

        if wants_json:
            return json_response(HTTPStatus.OK, raw_json)

        body = VERSION_PAGE.substitute(
            version=html.escape(info["version"]),
            platform=html.escape(info["platform"]),
            arch=html.escape(info["arch"]),
            built_at=info["built_at"],
            raw_json=html.escape(raw_json, quote=False),
        )
        return html_response(HTTPStatus.OK, body)

    def render_not_found(self, path: str) -> RenderedResponse:
        # Echoed verbatim so the body holds the exact requested path
        body = NOT_FOUND_PAGE.substitute(path=path)
        return html_response(HTTPStatus.NOT_FOUND, body)

    def render_bad_request(self) -> RenderedResponse:
        return html_response(HTTPStatus.BAD_REQUEST, BAD_REQUEST_PAGE)


def internal_error() -> RenderedResponse:
    """Fallback response when a renderer raises."""
    return html_response(HTTPStatus.INTERNAL_SERVER_ERROR, INTERNAL_ERROR_PAGE)
