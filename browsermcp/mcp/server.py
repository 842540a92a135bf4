"""FastMCP server that exposes the browser and page-analysis tools."""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional

from fastmcp import FastMCP
from playwright.async_api import Error as PlaywrightError

from browsermcp.ai import AIProviderError, AIService, PageAnalyst
from browsermcp.browser import BrowserError, BrowserManager, BrowserTools
from browsermcp.browser.errors import translate_playwright_error
from browsermcp.config import AppConfig, ConfigError, load_config, validate_config
from browsermcp.log import log_startup_info, setup_logging

logger = logging.getLogger(__name__)


async def _call_with_errors(
    operation: str, call: Callable[[], Awaitable[Dict[str, Any]]]
) -> Dict[str, Any]:
    """Await ``call`` and turn failures into ``{"error", "operation", "message"}``."""
    try:
        return await call()
    except (BrowserError, AIProviderError) as exc:
        logger.error("%s failed (%s): %s", operation, exc.kind, exc)
        return {"error": exc.kind, "operation": operation, "message": str(exc)}
    except ConfigError as exc:
        logger.error("%s failed (config): %s", operation, exc)
        return {"error": "config", "operation": operation, "message": str(exc)}
    except ValueError as exc:
        return {"error": "invalid_argument", "operation": operation, "message": str(exc)}
    except PlaywrightError as exc:
        translated = translate_playwright_error(exc)
        kind = getattr(translated, "kind", "playwright")
        logger.error("%s failed (%s): %s", operation, kind, exc)
        return {"error": kind, "operation": operation, "message": str(exc)}
    except Exception as exc:
        logger.exception("%s failed unexpectedly", operation)
        return {"error": "unexpected", "operation": operation, "message": str(exc)}


def create_server(
    config: Optional[AppConfig] = None,
    *,
    manager: Optional[BrowserManager] = None,
    ai: Optional[AIService] = None,
) -> FastMCP:
    """Build a FastMCP server whose tools share one browser manager."""
    config = config or load_config()
    manager = manager or BrowserManager(config.browser)
    ai = ai or AIService(config.ai)
    tools = BrowserTools(manager)
    analyst = PageAnalyst(tools, ai)

    @asynccontextmanager
    async def lifespan(_server: FastMCP) -> AsyncIterator[None]:
        try:
            await manager.initialize()
        except BrowserError as exc:
            # Tools retry the launch lazily on their first call.
            logger.error("Browser unavailable at startup: %s", exc)
        try:
            yield
        finally:
            await manager.shutdown()

    mcp = FastMCP(name=config.server.name, version=config.server.version, lifespan=lifespan)

    @mcp.tool
    async def browse_webpage(
        url: str,
        *,
        wait_for_selector: Optional[str] = None,
        timeout_ms: Optional[int] = None,
        session_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Navigate to ``url`` and return its title and main text content."""
        return await _call_with_errors(
            "browse_webpage",
            lambda: tools.browse_webpage(
                url,
                wait_for_selector=wait_for_selector,
                timeout_ms=timeout_ms,
                session_id=session_id,
            ),
        )

    @mcp.tool
    async def search_web(
        query: str,
        *,
        num_results: int = 5,
        site: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Search Google and return the top results."""
        return await _call_with_errors(
            "search_web",
            lambda: tools.search_web(
                query, num_results=num_results, site=site, session_id=session_id
            ),
        )

    @mcp.tool
    async def take_screenshot(
        *,
        selector: Optional[str] = None,
        full_page: bool = False,
        session_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Capture the current page, or one element, as a base64 PNG."""
        return await _call_with_errors(
            "take_screenshot",
            lambda: tools.take_screenshot(
                selector=selector, full_page=full_page, session_id=session_id
            ),
        )

    @mcp.tool
    async def click_element(
        *,
        text: Optional[str] = None,
        selector: Optional[str] = None,
        index: int = 0,
        wait_for_navigation: bool = True,
        timeout_ms: Optional[int] = None,
        session_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Click an element by visible text or CSS selector."""
        return await _call_with_errors(
            "click_element",
            lambda: tools.click_element(
                text=text,
                selector=selector,
                index=index,
                wait_for_navigation=wait_for_navigation,
                timeout_ms=timeout_ms,
                session_id=session_id,
            ),
        )

    @mcp.tool
    async def fill_form(
        fields: Dict[str, Any],
        *,
        submit: bool = False,
        submit_selector: Optional[str] = None,
        wait_for_navigation: bool = True,
        timeout_ms: Optional[int] = None,
        session_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Fill form fields by name, id, label or placeholder and optionally submit."""
        return await _call_with_errors(
            "fill_form",
            lambda: tools.fill_form(
                fields,
                submit=submit,
                submit_selector=submit_selector,
                wait_for_navigation=wait_for_navigation,
                timeout_ms=timeout_ms,
                session_id=session_id,
            ),
        )

    @mcp.tool
    async def extract_content(
        *,
        selectors: Optional[Dict[str, str]] = None,
        extract_text: bool = True,
        extract_html: bool = False,
        extract_links: bool = False,
        extract_tables: bool = False,
        session_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Extract named elements, text, HTML, links or tables from the current page."""
        return await _call_with_errors(
            "extract_content",
            lambda: tools.extract_content(
                selectors=selectors,
                extract_text=extract_text,
                extract_html=extract_html,
                extract_links=extract_links,
                extract_tables=extract_tables,
                session_id=session_id,
            ),
        )

    @mcp.tool
    async def analyze_screenshot(
        question: str,
        *,
        selector: Optional[str] = None,
        full_page: bool = False,
        temperature: float = 0.7,
        max_tokens: int = 1024,
        session_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Screenshot the current page and answer ``question`` about it."""
        return await _call_with_errors(
            "analyze_screenshot",
            lambda: analyst.analyze_screenshot(
                question,
                selector=selector,
                full_page=full_page,
                temperature=temperature,
                max_tokens=max_tokens,
                session_id=session_id,
            ),
        )

    @mcp.tool
    async def analyze_content(
        url: str,
        question: str,
        *,
        extract_html: bool = False,
        extract_tables: bool = True,
        extract_links: bool = True,
        session_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Load ``url`` and answer ``question`` from its extracted content."""
        return await _call_with_errors(
            "analyze_content",
            lambda: analyst.analyze_content(
                url,
                question,
                extract_html=extract_html,
                extract_tables=extract_tables,
                extract_links=extract_links,
                session_id=session_id,
            ),
        )

    @mcp.tool
    async def analyze_webpage(
        url: str,
        question: str,
        *,
        extract_screenshot: bool = True,
        wait_for_selector: Optional[str] = None,
        timeout_ms: Optional[int] = None,
        session_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Load ``url`` and answer ``question`` from a screenshot or the page HTML."""
        return await _call_with_errors(
            "analyze_webpage",
            lambda: analyst.analyze_webpage(
                url,
                question,
                extract_screenshot=extract_screenshot,
                wait_for_selector=wait_for_selector,
                timeout_ms=timeout_ms,
                session_id=session_id,
            ),
        )

    @mcp.tool
    async def extract_structured_data(text: str, schema: Dict[str, Any]) -> Dict[str, Any]:
        """Extract fields described by a JSON ``schema`` from free ``text``."""
        return await _call_with_errors(
            "extract_structured_data",
            lambda: analyst.extract_structured_data(text, schema),
        )

    @mcp.tool
    async def close_session(session_id: str) -> Dict[str, Any]:
        """Close the browser tab behind ``session_id``."""
        return await _call_with_errors(
            "close_session", lambda: tools.close_session(session_id)
        )

    @mcp.tool
    async def list_sessions() -> Dict[str, Any]:
        """List open browser sessions with their URL and idle time."""
        return await _call_with_errors("list_sessions", tools.list_sessions)

    @mcp.tool
    async def close_idle_sessions(max_idle_seconds: float = 600.0) -> Dict[str, Any]:
        """Close sessions that have not been used for ``max_idle_seconds``."""

        async def _close() -> Dict[str, Any]:
            if max_idle_seconds < 0:
                raise ValueError("max_idle_seconds must be non-negative.")
            closed = await manager.close_idle_sessions(max_idle_seconds)
            return {"closed": closed, "count": len(closed)}

        return await _call_with_errors("close_idle_sessions", _close)

    return mcp


def default_config() -> AppConfig:
    """Environment configuration, or the built-in defaults if it cannot be parsed."""
    try:
        return load_config()
    except ConfigError as exc:
        logger.error("Invalid configuration, using defaults: %s", exc)
        return AppConfig()


mcp = create_server(default_config())


def main() -> None:
    """Run the server over stdio using configuration from the environment."""
    try:
        config = load_config()
    except ConfigError as exc:
        setup_logging()
        logger.error("Invalid configuration: %s", exc)
        sys.exit(1)
    setup_logging(config.server.log_level)
    try:
        validate_config(config)
    except ConfigError as exc:
        logger.error("Invalid configuration: %s", exc)
        sys.exit(1)
    log_startup_info(config)
    create_server(config).run()


__all__ = ["create_server", "default_config", "main", "mcp"]
