"""browsermcp: a shared Playwright browser and AI page analysis served over MCP."""

from .app import app
from .browser import BrowserManager, BrowserTools
from .config import AppConfig, load_config
from .mcp import create_server, mcp

__all__ = [
    "AppConfig",
    "BrowserManager",
    "BrowserTools",
    "app",
    "create_server",
    "load_config",
    "mcp",
]
