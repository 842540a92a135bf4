"""CLI helper to open a headed browser session on a URL for manual checks."""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import replace

from browsermcp.browser import BrowserManager, BrowserTools
from browsermcp.config import load_config
from browsermcp.log import setup_logging


async def _open(url: str, *, headless: bool, hold: float) -> None:
    config = load_config()
    browser_config = replace(config.browser, headless=headless, debugging_port=0)
    async with BrowserManager(browser_config) as manager:
        tools = BrowserTools(manager)
        result = await tools.browse_webpage(url)
        print(
            "Opened {url} as session {session}: {title}".format(
                url=result["url"], session=result["session_id"], title=result["title"]
            )
        )
        if hold > 0:
            await asyncio.sleep(hold)


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Launch the shared browser, open a session on a URL and print its title.",
    )
    parser.add_argument("url", help="Page to open (e.g. https://example.com)")
    parser.add_argument(
        "--headless",
        action="store_true",
        help="Run without a visible window (default: headed).",
    )
    parser.add_argument(
        "--hold",
        type=float,
        default=0.0,
        help="Seconds to keep the browser open before shutting down.",
    )
    parser.add_argument("--log-level", default="info", help="Logging level (default: info).")
    args = parser.parse_args()

    setup_logging(args.log_level)
    asyncio.run(_open(args.url, headless=args.headless, hold=args.hold))


if __name__ == "__main__":
    main()
