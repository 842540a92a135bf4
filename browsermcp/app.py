"""ASGI entrypoint for serving browsermcp over streamable HTTP.

``uvicorn browsermcp.app:app`` serves the default server.  The app's lifespan
runs the server lifespan, so the shared browser starts and stops with it.
"""

from __future__ import annotations

from typing import Any, Optional

from browsermcp.config import AppConfig
from browsermcp.mcp import create_server, mcp


def create_app(config: Optional[AppConfig] = None, *, path: Optional[str] = None) -> Any:
    """Return an ASGI app for ``config`` (default: the module-level server)."""
    server = mcp if config is None else create_server(config)
    return server.http_app(path=path)


app = create_app()
