"""
Response renderers.

The connection handler only depends on the Renderer interface; PageRenderer
is the implementation the server ships with.
"""

from .pages import PageRenderer, Renderer, internal_error, version_info

__all__ = [
    "PageRenderer",
    "Renderer",
    "internal_error",
    "version_info",
]
