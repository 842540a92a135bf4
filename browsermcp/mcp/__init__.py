"""MCP server wiring for browsermcp."""

from .server import create_server, main, mcp

__all__ = ["create_server", "main", "mcp"]
