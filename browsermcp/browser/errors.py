"""Exception types raised by the browser session layer."""

from __future__ import annotations

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError


class BrowserError(Exception):
    """Base class for every browser-layer failure."""

    kind = "browser"


class LaunchFailure(BrowserError):
    """The browser process could not be started."""

    kind = "launch"


class PageCreationFailure(BrowserError):
    """A new tab could not be opened on a running browser."""

    kind = "page_creation"


class ElementNotFound(BrowserError):
    kind = "element_not_found"


class NavigationFailure(BrowserError):
    kind = "navigation"


class OperationTimeout(BrowserError):
    kind = "timeout"


class Disconnected(BrowserError):
    """The browser process went away while an operation was in flight."""

    kind = "disconnected"


class PageClosed(BrowserError):
    """The session's tab was closed while the browser itself stayed up."""

    kind = "page_closed"


_CLOSED_MARKERS = (
    "Target closed",
    "Target page, context or browser has been closed",
    "Browser has been closed",
    "Connection closed",
)


def translate_playwright_error(exc: BaseException) -> BaseException:
    """Map a Playwright exception onto the matching :class:`BrowserError`.

    Exceptions that are not Playwright errors (or are already translated)
    are returned unchanged.
    """
    if isinstance(exc, BrowserError):
        return exc
    if isinstance(exc, PlaywrightTimeoutError):
        return OperationTimeout(str(exc))
    if isinstance(exc, PlaywrightError):
        message = str(exc)
        if any(marker in message for marker in _CLOSED_MARKERS):
            return Disconnected(message)
    return exc


__all__ = [
    "BrowserError",
    "LaunchFailure",
    "PageCreationFailure",
    "ElementNotFound",
    "NavigationFailure",
    "OperationTimeout",
    "Disconnected",
    "PageClosed",
    "translate_playwright_error",
]
