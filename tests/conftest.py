"""Shared fixtures: an in-memory stand-in for the Playwright async driver."""

from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, List, Optional

import pytest
import pytest_asyncio
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from browsermcp.browser import BrowserManager, BrowserTools
from browsermcp.config import BrowserConfig


class FakeEmitter:
    def __init__(self) -> None:
        self._handlers: Dict[str, List[Callable[..., Any]]] = defaultdict(list)

    def on(self, event: str, handler: Callable[..., Any]) -> None:
        self._handlers[event].append(handler)

    def emit(self, event: str, *args: Any) -> None:
        for handler in list(self._handlers[event]):
            handler(*args)


class FakeResponse:
    def __init__(self, status: int = 200, status_text: str = "OK") -> None:
        self.status = status
        self.status_text = status_text

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 400


class FakeElement:
    def __init__(
        self,
        tag: str = "input",
        *,
        input_type: str = "text",
        text: str = "",
        checked: bool = False,
        page: Optional["FakePage"] = None,
        href: Optional[str] = None,
    ) -> None:
        self.tag = tag
        self.input_type = input_type
        self.text = text
        self.checked = checked
        self.page = page
        self.href = href
        self.value: Optional[str] = None
        self.selected: Optional[str] = None
        self.clicks = 0

    async def evaluate(self, script: str) -> str:
        if "tagName" in script:
            return self.tag
        return self.input_type

    async def fill(self, value: str) -> None:
        self.value = value

    async def select_option(self, value: str) -> None:
        self.selected = value

    async def is_checked(self) -> bool:
        return self.checked

    async def click(self, timeout: Optional[int] = None) -> None:
        self.clicks += 1
        if self.input_type in ("checkbox", "radio"):
            self.checked = not self.checked
        if self.href and self.page is not None:
            self.page.url = self.href
            self.page.page_title = f"Page at {self.href}"

    async def text_content(self) -> str:
        return self.text

    async def screenshot(self, **kwargs: Any) -> bytes:
        return b"element-png"


class FakeLocator:
    def __init__(self, items: List[FakeElement]) -> None:
        self._items = items

    def filter(self, has_text: str) -> "FakeLocator":
        return FakeLocator([item for item in self._items if has_text in item.text])

    @property
    def first(self) -> "FakeLocator":
        return FakeLocator(self._items[:1])

    async def wait_for(self, state: str = "visible", timeout: Optional[int] = None) -> None:
        if not self._items:
            raise PlaywrightTimeoutError("Timeout waiting for locator")

    async def count(self) -> int:
        return len(self._items)

    def nth(self, index: int) -> FakeElement:
        return self._items[index]


class FakePage(FakeEmitter):
    def __init__(self, context: "FakeContext") -> None:
        super().__init__()
        self.context = context
        self.url = "about:blank"
        self.page_title = ""
        self.html = "<html><body></body></html>"
        self.body_text = ""
        self.closed = False
        self.viewport: Optional[Dict[str, int]] = None
        self.default_timeout: Optional[int] = None
        self.default_navigation_timeout: Optional[int] = None
        self.next_response: Optional[FakeResponse] = FakeResponse()
        self.goto_calls: List[Dict[str, Any]] = []
        self.elements: Dict[str, FakeElement] = {}
        self.locators: Dict[str, List[FakeElement]] = {}
        self.scripts: Dict[str, Any] = {}
        self.screenshots: List[Dict[str, Any]] = []
        self.goto_error: Optional[Exception] = None

    async def set_viewport_size(self, size: Dict[str, int]) -> None:
        self.viewport = size

    def set_default_timeout(self, timeout: int) -> None:
        self.default_timeout = timeout

    def set_default_navigation_timeout(self, timeout: int) -> None:
        self.default_navigation_timeout = timeout

    async def goto(self, url: str, **kwargs: Any) -> Optional[FakeResponse]:
        self.goto_calls.append({"url": url, **kwargs})
        if self.goto_error is not None:
            raise self.goto_error
        self.url = url
        return self.next_response

    async def title(self) -> str:
        return self.page_title

    async def content(self) -> str:
        return self.html

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        if script in self.scripts:
            value = self.scripts[script]
            return value(arg) if callable(value) else value
        if "innerText" in script:
            return self.body_text
        return None

    async def wait_for_selector(self, selector: str, timeout: Optional[int] = None) -> FakeElement:
        element = self.elements.get(selector)
        if element is None and not self.locators.get(selector):
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {selector}")
        return element

    async def query_selector(self, selector: str) -> Optional[FakeElement]:
        return self.elements.get(selector)

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(list(self.locators.get(selector, [])))

    @asynccontextmanager
    async def expect_navigation(self, timeout: Optional[int] = None):
        before = self.url
        yield
        if self.url == before:
            raise PlaywrightTimeoutError("Timeout waiting for navigation")

    async def screenshot(self, **kwargs: Any) -> bytes:
        self.screenshots.append(kwargs)
        return b"page-" + kwargs.get("type", "png").encode()

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.emit("close", self)


class FakeContext(FakeEmitter):
    def __init__(self, browser: Optional["FakeBrowser"], options: Dict[str, Any]) -> None:
        super().__init__()
        self.browser = browser
        self.options = options
        self.pages: List[FakePage] = []
        self.closed = False
        self.new_page_error: Optional[Exception] = None

    async def new_page(self) -> FakePage:
        if self.new_page_error is not None:
            raise self.new_page_error
        page = FakePage(self)
        self.pages.append(page)
        return page

    async def close(self) -> None:
        self.closed = True
        for page in list(self.pages):
            await page.close()
        self.emit("close", self)


class FakeBrowser(FakeEmitter):
    def __init__(self, options: Dict[str, Any]) -> None:
        super().__init__()
        self.options = options
        self.contexts: List[FakeContext] = []
        self.closed = False

    async def new_context(self, **kwargs: Any) -> FakeContext:
        context = FakeContext(self, kwargs)
        self.contexts.append(context)
        return context

    async def close(self) -> None:
        self.closed = True
        self.emit("disconnected", self)

    def crash(self) -> None:
        """Simulate the browser process dying underneath us."""
        self.emit("disconnected", self)


class FakeChromium:
    def __init__(self, driver: "FakeDriver") -> None:
        self._driver = driver

    async def launch(self, **kwargs: Any) -> FakeBrowser:
        self._driver.launches.append(kwargs)
        if self._driver.launch_error is not None:
            raise self._driver.launch_error
        browser = FakeBrowser(kwargs)
        self._driver.browsers.append(browser)
        return browser

    async def launch_persistent_context(self, user_data_dir: str, **kwargs: Any) -> FakeContext:
        self._driver.launches.append({"user_data_dir": user_data_dir, **kwargs})
        if self._driver.launch_error is not None:
            raise self._driver.launch_error
        context = FakeContext(None, kwargs)
        self._driver.persistent_contexts.append(context)
        return context


class FakePlaywright:
    def __init__(self, driver: "FakeDriver") -> None:
        self.chromium = FakeChromium(driver)
        self.stopped = False

    async def stop(self) -> None:
        self.stopped = True


class FakeDriver:
    """Callable standing in for ``async_playwright``."""

    def __init__(self) -> None:
        self.launches: List[Dict[str, Any]] = []
        self.browsers: List[FakeBrowser] = []
        self.persistent_contexts: List[FakeContext] = []
        self.instances: List[FakePlaywright] = []
        self.launch_error: Optional[Exception] = None

    def __call__(self) -> "FakeDriver":
        return self

    async def start(self) -> FakePlaywright:
        instance = FakePlaywright(self)
        self.instances.append(instance)
        return instance

    @property
    def browser(self) -> FakeBrowser:
        return self.browsers[-1]

    @property
    def context(self) -> FakeContext:
        return self.browser.contexts[-1]


@pytest.fixture
def driver() -> FakeDriver:
    return FakeDriver()


@pytest.fixture
def browser_config() -> BrowserConfig:
    return BrowserConfig(headless=True, window_width=1280, window_height=720)


@pytest_asyncio.fixture
async def manager(driver: FakeDriver, browser_config: BrowserConfig):
    manager = BrowserManager(browser_config, playwright_factory=driver)
    yield manager
    await manager.shutdown()


@pytest.fixture
def tools(manager: BrowserManager) -> BrowserTools:
    return BrowserTools(manager)
