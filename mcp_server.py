"""Top-level FastMCP server entrypoint for browsermcp.

``fastmcp run mcp_server.py:mcp`` inspects a module path like this one.  This
thin wrapper re-exports the configured server from the packaged implementation.
"""

from browsermcp.mcp.server import create_server, mcp  # noqa: F401

__all__ = ["mcp", "create_server"]
