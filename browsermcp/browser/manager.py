"""Ownership of the shared Chromium process and its session tabs.

``BrowserManager`` is the only object that launches or terminates the
browser.  Tool handlers ask it for a page with :meth:`BrowserManager.get_page`,
passing the ``session_id`` they were given (if any), and get back a
:class:`~browsermcp.browser.registry.PageHandle` that stays registered for
later calls until it is closed from either side.

The manager runs on a single asyncio loop.  Registry lookups and inserts never
await, so two tasks resolving the same known session id always see the same
page, and two tasks asking for new sessions always get distinct ones.  Only
the launch itself is serialised with a lock.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import AbstractAsyncContextManager
from enum import Enum
from functools import partial
from typing import Any, Callable, Dict, List, Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from browsermcp.config import BrowserConfig

from .errors import Disconnected, LaunchFailure, PageCreationFailure
from .registry import PageHandle, SessionRegistry

DEFAULT_TIMEOUT_MS = 30_000
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36"
)

logger = logging.getLogger(__name__)


class BrowserState(str, Enum):
    UNINITIALIZED = "uninitialized"
    RUNNING = "running"
    DISCONNECTED = "disconnected"


def build_launch_args(config: BrowserConfig) -> List[str]:
    """Return the Chromium command-line flags implied by ``config``."""
    args = [
        f"--window-size={config.window_width},{config.window_height}",
        "--no-sandbox",
        "--disable-setuid-sandbox",
    ]
    if config.debugging_port:
        args.append(f"--remote-debugging-port={config.debugging_port}")
        args.append(f"--remote-debugging-address={config.debugging_host}")
    if config.disable_security:
        args.extend(
            [
                "--disable-web-security",
                "--disable-features=IsolateOrigins,site-per-process",
                "--allow-running-insecure-content",
            ]
        )
    return args


class BrowserManager(AbstractAsyncContextManager["BrowserManager"]):
    """Launch, share and tear down one Chromium process for all sessions."""

    def __init__(
        self,
        config: Optional[BrowserConfig] = None,
        *,
        default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
        user_agent: str = DEFAULT_USER_AGENT,
        playwright_factory: Callable[[], Any] = async_playwright,
    ) -> None:
        self._config = config or BrowserConfig()
        self._default_timeout_ms = default_timeout_ms
        self._user_agent = user_agent
        self._playwright_factory = playwright_factory
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._state = BrowserState.UNINITIALIZED
        self._registry = SessionRegistry()
        self._launch_lock = asyncio.Lock()

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> "BrowserManager":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> None:
        await self.shutdown()

    @property
    def config(self) -> BrowserConfig:
        return self._config

    @property
    def state(self) -> BrowserState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is BrowserState.RUNNING

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    async def initialize(self) -> None:
        """Launch Chromium unless it is already running."""
        if self._state is BrowserState.RUNNING:
            logger.warning("Browser already initialized")
            return
        await self._ensure_running()

    async def shutdown(self) -> None:
        """Close every session, then the browser and the Playwright driver."""
        if (
            self._state is BrowserState.UNINITIALIZED
            and self._playwright is None
            and not len(self._registry)
        ):
            return
        for handle in self._registry.clear():
            try:
                await handle.page.close()
            except Exception as exc:
                logger.warning("Failed to close page %s: %s", handle.session_id, exc)
        # Ignore the disconnect event our own close is about to trigger.
        self._state = BrowserState.UNINITIALIZED
        await self._release_process()
        logger.info("Browser closed")

    # ------------------------------------------------------------------ #
    # Sessions
    # ------------------------------------------------------------------ #

    async def get_page(self, session_id: Optional[str] = None) -> PageHandle:
        """Return the page for ``session_id``, opening a new one if needed.

        An unknown or stale ``session_id`` does not raise: a new page is
        created under a freshly generated id, which callers must read back
        from the returned handle.
        """
        if self._state is not BrowserState.RUNNING:
            await self._ensure_running()
        handle = self._registry.get(session_id)
        if handle is not None:
            return handle
        if session_id:
            logger.warning("Session %s not found; opening a new session", session_id)
        return await self._open_page()

    async def close_page(self, session_id: str) -> bool:
        """Close ``session_id`` best-effort; return whether it was registered."""
        handle = self._registry.remove(session_id)
        if handle is None:
            return False
        try:
            await handle.page.close()
        except Exception as exc:
            logger.error("Failed to close page %s: %s", session_id, exc)
        else:
            logger.debug("Closed page session %s", session_id)
        return True

    async def close_idle_sessions(self, max_idle_seconds: float) -> List[str]:
        """Close sessions unused for at least ``max_idle_seconds``."""
        closed = []
        for handle in self._registry.idle_since(max_idle_seconds):
            if await self.close_page(handle.session_id):
                closed.append(handle.session_id)
        if closed:
            logger.info("Closed %d idle sessions", len(closed))
        return closed

    def sessions(self) -> List[PageHandle]:
        return list(self._registry)

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    async def _ensure_running(self) -> None:
        async with self._launch_lock:
            if self._state is BrowserState.RUNNING:
                return
            if self._state is BrowserState.DISCONNECTED:
                self._discard_dead_sessions()
                await self._release_process()
                self._state = BrowserState.UNINITIALIZED
            await self._launch()

    async def _launch(self) -> None:
        cfg = self._config
        launch_kwargs: Dict[str, Any] = {
            "headless": cfg.headless,
            "args": build_launch_args(cfg),
        }
        if cfg.chrome_path:
            launch_kwargs["executable_path"] = cfg.chrome_path
        context_kwargs: Dict[str, Any] = {
            "viewport": {"width": cfg.window_width, "height": cfg.window_height},
            "user_agent": self._user_agent,
        }
        if cfg.disable_security:
            context_kwargs["ignore_https_errors"] = True
            context_kwargs["bypass_csp"] = True

        logger.info("Launching browser...")
        try:
            self._playwright = await self._playwright_factory().start()
            chromium = self._playwright.chromium
            if cfg.persistent_session and cfg.user_data_dir:
                self._context = await chromium.launch_persistent_context(
                    cfg.user_data_dir, **launch_kwargs, **context_kwargs
                )
                self._browser = self._context.browser
            else:
                self._browser = await chromium.launch(**launch_kwargs)
                self._context = await self._browser.new_context(**context_kwargs)
        except Exception as exc:
            logger.error("Failed to launch browser: %s", exc)
            await self._release_process()
            raise LaunchFailure(f"Failed to launch browser: {exc}") from exc

        if self._browser is not None:
            self._browser.on("disconnected", self._on_disconnected)
        else:
            self._context.on("close", self._on_disconnected)
        self._state = BrowserState.RUNNING
        logger.info("Browser launched successfully")

    async def _open_page(self) -> PageHandle:
        context = self._context
        if context is None:
            raise Disconnected("Browser is not running.")
        page: Optional[Page] = None
        try:
            page = await context.new_page()
            await page.set_viewport_size(
                {"width": self._config.window_width, "height": self._config.window_height}
            )
            page.set_default_navigation_timeout(self._default_timeout_ms)
            page.set_default_timeout(self._default_timeout_ms)
        except Exception as exc:
            logger.error("Failed to create page: %s", exc)
            if page is not None:
                try:
                    await page.close()
                except Exception:
                    logger.debug("Discarding half-created page failed", exc_info=True)
            raise PageCreationFailure(f"Failed to create page: {exc}") from exc

        handle = self._registry.register(page)
        page.on("close", partial(self._on_page_closed, handle.session_id))
        logger.debug("Created new page for session %s", handle.session_id)
        return handle

    def _on_page_closed(self, session_id: str, page: Page) -> None:
        if self._registry.remove(session_id, page=page) is not None:
            logger.debug("Page session %s closed", session_id)

    def _on_disconnected(self, *_: Any) -> None:
        if self._state is not BrowserState.RUNNING:
            return
        logger.warning("Browser disconnected")
        self._state = BrowserState.DISCONNECTED
        self._browser = None
        self._context = None

    def _discard_dead_sessions(self) -> None:
        stale = self._registry.clear()
        if stale:
            logger.info("Dropping %d sessions from the disconnected browser", len(stale))

    async def _release_process(self) -> None:
        context, browser, playwright = self._context, self._browser, self._playwright
        self._context = None
        self._browser = None
        self._playwright = None
        if context is not None:
            try:
                await context.close()
            except Exception as exc:
                logger.debug("Closing browser context failed: %s", exc)
        if browser is not None:
            try:
                await browser.close()
            except Exception as exc:
                logger.error("Failed to close browser: %s", exc)
        if playwright is not None:
            try:
                await playwright.stop()
            except Exception as exc:
                logger.debug("Stopping Playwright failed: %s", exc)


__all__ = ["BrowserManager", "BrowserState", "build_launch_args", "DEFAULT_USER_AGENT"]
