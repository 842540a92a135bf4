"""Browser tool implementations backed by the shared session manager.

Each public coroutine on :class:`BrowserTools` resolves a page through
:meth:`BrowserManager.get_page`, performs a short sequence of Playwright
calls, and returns a JSON-friendly ``dict`` that always echoes the
``session_id`` the caller should use next time.  Failures propagate as
:mod:`browsermcp.browser.errors` exceptions; the MCP layer turns them into
structured error payloads.
"""

from __future__ import annotations

import base64
import logging
import re
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Mapping, Optional
from urllib.parse import quote_plus

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .errors import (
    Disconnected,
    ElementNotFound,
    NavigationFailure,
    PageClosed,
    translate_playwright_error,
)
from .manager import DEFAULT_TIMEOUT_MS, BrowserManager
from .registry import PageHandle

CLICKABLE_SELECTOR = (
    'a, button, [role="button"], input[type="submit"], input[type="button"]'
)
SUBMIT_SELECTOR = 'input[type="submit"], button[type="submit"]'
SEARCH_URL = "https://www.google.com/search?q={query}"

MAIN_CONTENT_SCRIPT = """
() => {
    const mainSelectors = ['main', 'article', '#main', '#content', '.main', '.content', '.article'];
    for (const selector of mainSelectors) {
        const element = document.querySelector(selector);
        if (element && element.textContent && element.textContent.trim().length > 500) {
            return element.textContent.trim();
        }
    }
    return (document.body && document.body.textContent || '').trim();
}
"""

SEARCH_RESULTS_SCRIPT = """
(numResults) => {
    const results = [];
    const items = document.querySelectorAll('#search .g');
    for (let i = 0; i < items.length && results.length < numResults; i++) {
        const item = items[i];
        const titleEl = item.querySelector('h3');
        const linkEl = item.querySelector('a');
        const snippetEl = item.querySelector('.VwiC3b');
        if (!titleEl || !linkEl || !snippetEl) {
            continue;
        }
        const title = titleEl.textContent || '';
        const url = linkEl.getAttribute('href') || '';
        const snippet = snippetEl.textContent || '';
        if (title && url && snippet) {
            results.push({ title, url, snippet });
        }
    }
    return results;
}
"""

LINKS_SCRIPT = """
() => Array.from(document.querySelectorAll('a[href]')).map((el) => ({
    text: (el.textContent || '').trim(),
    url: el.getAttribute('href') || '',
}))
"""

TABLES_SCRIPT = """
() => Array.from(document.querySelectorAll('table')).map((table) => {
    const headerRow = table.querySelector('thead tr');
    const headers = headerRow
        ? Array.from(headerRow.querySelectorAll('th')).map((th) => (th.textContent || '').trim())
        : Array.from(table.querySelectorAll('tr:first-child th, tr:first-child td'))
            .map((cell) => (cell.textContent || '').trim());
    const rows = Array.from(table.querySelectorAll('tbody tr, tr:not(:first-child)'))
        .map((row) => Array.from(row.querySelectorAll('td')).map((cell) => (cell.textContent || '').trim()));
    return { headers, rows };
})
"""

_IDENTIFIER = re.compile(r"^[A-Za-z][\w-]*$")
_WHITESPACE = re.compile(r"\s+")

logger = logging.getLogger(__name__)


def clean_text(text: str) -> str:
    """Collapse runs of whitespace into single spaces."""
    return _WHITESPACE.sub(" ", text or "").strip()


def field_selectors(name: str) -> List[str]:
    """Return candidate selectors for a form field called ``name``."""
    quoted = '"' + name.replace("\\", "\\\\").replace('"', '\\"') + '"'
    selectors = [f"input[name={quoted}]"]
    if _IDENTIFIER.match(name):
        selectors.append(f"input#{name}")
    selectors.append(f"textarea[name={quoted}]")
    if _IDENTIFIER.match(name):
        selectors.append(f"textarea#{name}")
    selectors.append(f"select[name={quoted}]")
    if _IDENTIFIER.match(name):
        selectors.append(f"select#{name}")
    selectors.append(f"[name={quoted}]")
    if _IDENTIFIER.match(name):
        selectors.append(f"#{name}")
    selectors.extend(
        [
            f"[aria-label={quoted}]",
            f"[placeholder={quoted}]",
            f"label:has-text({quoted}) + input",
            f"label:has-text({quoted}) + textarea",
            f"label:has-text({quoted}) + select",
        ]
    )
    return selectors


async def capture_png(page: Page, *, selector: Optional[str] = None, full_page: bool = False) -> bytes:
    """Screenshot the viewport, the full page, or the element at ``selector``."""
    if selector:
        element = await page.query_selector(selector)
        if element is None:
            raise ElementNotFound(f"Element not found: {selector}")
        return await element.screenshot(type="png")
    return await page.screenshot(type="png", full_page=full_page)


class BrowserTools:
    """Session-aware browser operations exposed as MCP tools."""

    def __init__(
        self,
        manager: BrowserManager,
        *,
        default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        self._manager = manager
        self._default_timeout_ms = default_timeout_ms

    @property
    def manager(self) -> BrowserManager:
        return self._manager

    @property
    def default_timeout_ms(self) -> int:
        return self._default_timeout_ms

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    async def browse_webpage(
        self,
        url: str,
        *,
        wait_for_selector: Optional[str] = None,
        timeout_ms: Optional[int] = None,
        session_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Navigate to ``url`` and return its title and main text content."""
        target = self._require_url(url)
        self._log_call(
            "browse_webpage",
            url=target,
            wait_for_selector=wait_for_selector,
            timeout_ms=timeout_ms,
            session_id=session_id,
        )
        timeout = timeout_ms or self._default_timeout_ms
        async with self.session_page(session_id) as handle:
            page = handle.page
            await self.goto(page, target, timeout=timeout)
            if wait_for_selector:
                await page.wait_for_selector(wait_for_selector, timeout=timeout)
            content = await page.evaluate(MAIN_CONTENT_SCRIPT)
            result = {
                "title": await page.title(),
                "url": page.url,
                "content": clean_text(content),
                "session_id": handle.session_id,
            }
        self._log_result("browse_webpage", result)
        return result

    async def search_web(
        self,
        query: str,
        *,
        num_results: int = 5,
        site: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Run a Google search and return the top organic results."""
        if not query or not query.strip():
            raise ValueError("Search query is required.")
        if not 1 <= num_results <= 10:
            raise ValueError("num_results must be between 1 and 10.")
        self._log_call("search_web", query=query, num_results=num_results, site=site)
        terms = f"{query} site:{site}" if site else query
        search_url = SEARCH_URL.format(query=quote_plus(terms))
        async with self.session_page(session_id) as handle:
            page = handle.page
            await page.goto(search_url, wait_until="networkidle", timeout=self._default_timeout_ms)
            await page.wait_for_selector("#search", timeout=10_000)
            results = await page.evaluate(SEARCH_RESULTS_SCRIPT, num_results)
            result = {
                "query": query,
                "results": list(results or []),
                "session_id": handle.session_id,
            }
        logger.info("search_web found %d results for %r", len(result["results"]), query)
        return result

    async def take_screenshot(
        self,
        *,
        selector: Optional[str] = None,
        full_page: bool = False,
        session_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Capture the current page (or one element) as a base64 PNG."""
        self._log_call("take_screenshot", selector=selector, full_page=full_page)
        async with self.session_page(session_id) as handle:
            page = handle.page
            data = await capture_png(page, selector=selector, full_page=full_page)
            result = {
                "image_data": base64.b64encode(data).decode("ascii"),
                "mime_type": "image/png",
                "url": page.url,
                "title": await page.title(),
                "session_id": handle.session_id,
            }
        self._log_result("take_screenshot", result)
        return result

    async def click_element(
        self,
        *,
        text: Optional[str] = None,
        selector: Optional[str] = None,
        index: int = 0,
        wait_for_navigation: bool = True,
        timeout_ms: Optional[int] = None,
        session_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Click an element located by visible ``text`` or CSS ``selector``."""
        if not text and not selector:
            raise ValueError("Either text or selector must be provided.")
        if index < 0:
            raise ValueError("index must be non-negative.")
        described = f'text "{text}"' if text else f'selector "{selector}"'
        self._log_call(
            "click_element",
            text=text,
            selector=selector,
            index=index,
            wait_for_navigation=wait_for_navigation,
        )
        timeout = timeout_ms or self._default_timeout_ms
        async with self.session_page(session_id) as handle:
            page = handle.page
            if text:
                candidates = page.locator(CLICKABLE_SELECTOR).filter(has_text=text)
                await candidates.first.wait_for(state="attached", timeout=timeout)
            else:
                await page.wait_for_selector(selector, timeout=timeout)
                candidates = page.locator(selector)
            if index >= await candidates.count():
                raise ElementNotFound(f"Element with {described} at index {index} not found")
            target = candidates.nth(index)
            await self._with_navigation(
                page,
                lambda: target.click(timeout=timeout),
                wait=wait_for_navigation,
                timeout=timeout,
                operation="click",
            )
            result = {
                "success": True,
                "message": f"Successfully clicked element with {described}",
                "new_url": page.url,
                "new_title": await page.title(),
                "session_id": handle.session_id,
            }
        self._log_result("click_element", result)
        return result

    async def fill_form(
        self,
        fields: Mapping[str, Any],
        *,
        submit: bool = False,
        submit_selector: Optional[str] = None,
        wait_for_navigation: bool = True,
        timeout_ms: Optional[int] = None,
        session_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Fill named form fields and optionally submit the form."""
        if not isinstance(fields, Mapping) or not fields:
            raise ValueError("fields must be a non-empty mapping of field name to value.")
        self._log_call(
            "fill_form",
            fields_count=len(fields),
            submit=submit,
            submit_selector=submit_selector,
        )
        timeout = timeout_ms or self._default_timeout_ms
        filled: List[str] = []
        skipped: List[str] = []
        async with self.session_page(session_id) as handle:
            page = handle.page
            for name, value in fields.items():
                if await self._fill_field(page, str(name), "" if value is None else str(value)):
                    filled.append(name)
                    logger.debug("Filled field: %s", name)
                else:
                    skipped.append(name)
                    logger.warning("Could not find field: %s", name)

            submitted = False
            submit_error: Optional[str] = None
            if submit:
                try:
                    submitted = await self._submit(
                        page,
                        submit_selector,
                        wait=wait_for_navigation,
                        timeout=timeout,
                    )
                except PlaywrightError as exc:
                    logger.error("Error submitting form: %s", exc)
                    submit_error = str(exc)
            result: Dict[str, Any] = {
                "success": bool(filled),
                "message": f"Filled {len(filled)} fields, skipped {len(skipped)} fields",
                "filled_fields": filled,
                "skipped_fields": skipped,
                "submitted": submitted,
                "new_url": page.url,
                "session_id": handle.session_id,
            }
            if submit_error:
                result["submit_error"] = submit_error
        self._log_result("fill_form", result)
        return result

    async def extract_content(
        self,
        *,
        selectors: Optional[Mapping[str, str]] = None,
        extract_text: bool = True,
        extract_html: bool = False,
        extract_links: bool = False,
        extract_tables: bool = False,
        session_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Pull named elements, text, HTML, links or tables from the current page."""
        self._log_call(
            "extract_content",
            selectors=dict(selectors) if selectors else None,
            extract_text=extract_text,
            extract_html=extract_html,
            extract_links=extract_links,
            extract_tables=extract_tables,
        )
        async with self.session_page(session_id) as handle:
            page = handle.page
            elements: Dict[str, str] = {}
            for name, selector in (selectors or {}).items():
                element = await page.query_selector(selector)
                if element is None:
                    logger.warning("Selector %r for %r not found", selector, name)
                    elements[name] = ""
                    continue
                elements[name] = ((await element.text_content()) or "").strip()

            result: Dict[str, Any] = {
                "url": page.url,
                "title": await page.title(),
                "elements": elements,
                "session_id": handle.session_id,
            }
            if extract_text:
                result["text"] = await self.page_text(page)
            if extract_html:
                result["html"] = await page.content()
            if extract_links:
                result["links"] = await self.page_links(page)
            if extract_tables:
                result["tables"] = await self.page_tables(page)
        self._log_result("extract_content", result)
        return result

    async def close_session(self, session_id: str) -> Dict[str, Any]:
        """Close the tab behind ``session_id``; unknown ids are not an error."""
        if not session_id:
            raise ValueError("session_id must be a non-empty string.")
        closed = await self._manager.close_page(session_id)
        return {"session_id": session_id, "closed": closed}

    async def list_sessions(self) -> Dict[str, Any]:
        """Describe every open session."""
        sessions = []
        now = time.monotonic()
        for handle in self._manager.sessions():
            sessions.append(
                {
                    "session_id": handle.session_id,
                    "url": handle.page.url,
                    "age_seconds": round(handle.age_seconds(now), 1),
                    "idle_seconds": round(handle.idle_seconds(now), 1),
                }
            )
        return {"sessions": sessions, "count": len(sessions)}

    # ------------------------------------------------------------------ #
    # Helpers shared with the analysis tools
    # ------------------------------------------------------------------ #

    @asynccontextmanager
    async def session_page(self, session_id: Optional[str]) -> AsyncIterator[PageHandle]:
        """Resolve ``session_id`` and translate Playwright errors raised inside.

        A target-closed error only means :class:`Disconnected` once the
        manager has seen the browser drop; while it is still running the
        session's own tab went away.
        """
        handle = await self._manager.get_page(session_id)
        try:
            yield handle
        except PlaywrightError as exc:
            translated = translate_playwright_error(exc)
            if translated is exc:
                raise
            if isinstance(translated, Disconnected) and self._manager.is_running:
                translated = PageClosed(f"Session {handle.session_id} page was closed: {exc}")
            raise translated from exc

    async def goto(self, page: Page, url: str, *, timeout: int) -> None:
        """Navigate and fail on a missing or unsuccessful main response."""
        response = await page.goto(url, wait_until="networkidle", timeout=timeout)
        if response is None:
            raise NavigationFailure(f"Failed to load: {url}")
        if not response.ok:
            raise NavigationFailure(f"HTTP error: {response.status} {response.status_text}")

    async def page_text(self, page: Page) -> str:
        return await page.evaluate("() => (document.body && document.body.innerText) || ''")

    async def page_links(self, page: Page) -> List[Dict[str, str]]:
        return list(await page.evaluate(LINKS_SCRIPT) or [])

    async def page_tables(self, page: Page) -> List[Dict[str, Any]]:
        return list(await page.evaluate(TABLES_SCRIPT) or [])

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    def _require_url(self, url: str) -> str:
        target = (url or "").strip()
        if not target:
            raise ValueError("url must be a non-empty string.")
        return target

    async def _fill_field(self, page: Page, name: str, value: str) -> bool:
        for selector in field_selectors(name):
            try:
                element = await page.query_selector(selector)
                if element is None:
                    continue
                tag = await element.evaluate("el => el.tagName.toLowerCase()")
                if tag == "select":
                    await element.select_option(value)
                    return True
                if tag == "input":
                    input_type = await element.evaluate("el => (el.type || '').toLowerCase()")
                    if input_type in ("checkbox", "radio"):
                        wanted = value.lower() == "true" or value == "1"
                        if await element.is_checked() != wanted:
                            await element.click()
                    else:
                        await element.fill(value)
                    return True
                if tag == "textarea":
                    await element.fill(value)
                    return True
            except PlaywrightError as exc:
                logger.debug("Selector %r failed for field %s: %s", selector, name, exc)
        return False

    async def _submit(
        self,
        page: Page,
        submit_selector: Optional[str],
        *,
        wait: bool,
        timeout: int,
    ) -> bool:
        if submit_selector:
            element = await page.query_selector(submit_selector)
            if element is None:
                logger.warning("Submit selector not found: %s", submit_selector)
                return False
        else:
            element = await page.query_selector(SUBMIT_SELECTOR)

        if element is not None:
            action = element.click
        else:
            async def action() -> None:
                await page.evaluate(
                    """() => {
                        const form = document.querySelector('form');
                        if (form) {
                            form.submit();
                        }
                    }"""
                )

        await self._with_navigation(page, action, wait=wait, timeout=timeout, operation="form submission")
        return True

    async def _with_navigation(
        self,
        page: Page,
        action: Callable[[], Awaitable[Any]],
        *,
        wait: bool,
        timeout: int,
        operation: str,
    ) -> None:
        """Run ``action``; when ``wait`` is set, also wait for a navigation.

        A missing navigation is only logged.  Timeouts from ``action`` itself
        still propagate.
        """
        if not wait:
            await action()
            return
        acted = False
        try:
            async with page.expect_navigation(timeout=timeout):
                await action()
                acted = True
        except PlaywrightTimeoutError:
            if not acted:
                raise
            logger.warning("Navigation did not occur after %s", operation)

    def _log_call(self, action: str, **kwargs: Any) -> None:
        logger.info("%s call: %s", action, {k: v for k, v in kwargs.items() if v is not None})

    def _log_result(self, action: str, result: Mapping[str, Any]) -> None:
        summary: Dict[str, Any] = {}
        for key, value in result.items():
            if key in ("image_data", "html", "content", "text") and isinstance(value, str):
                summary[key] = f"<{len(value)} chars>"
            elif key in ("links", "tables") and isinstance(value, list):
                summary[key] = f"<{len(value)} {key}>"
            else:
                summary[key] = value
        logger.info("%s result: %s", action, summary)


__all__ = ["BrowserTools", "capture_png", "clean_text", "field_selectors"]
