"""Browser process ownership, session registry and page tools."""

from .core import BrowserTools
from .errors import (
    BrowserError,
    Disconnected,
    ElementNotFound,
    LaunchFailure,
    NavigationFailure,
    OperationTimeout,
    PageClosed,
    PageCreationFailure,
)
from .manager import BrowserManager, BrowserState
from .registry import PageHandle, SessionRegistry

__all__ = [
    "BrowserError",
    "BrowserManager",
    "BrowserState",
    "BrowserTools",
    "Disconnected",
    "ElementNotFound",
    "LaunchFailure",
    "NavigationFailure",
    "OperationTimeout",
    "PageClosed",
    "PageCreationFailure",
    "PageHandle",
    "SessionRegistry",
]
