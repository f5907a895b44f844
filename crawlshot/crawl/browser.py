"""Playwright browser lifecycle for one crawl.

Each crawl owns a single Chromium browser, one context and one page. The
context carries the device scale factor, a realistic user agent and browser
headers; authentication cookies are added to the same context.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol

from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    Playwright,
    async_playwright,
)

from crawlshot.crawl.models import CrawlConfiguration

logger = logging.getLogger(__name__)

USER_AGENTS = [
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.2 Safari/605.1.15",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 "
    "Firefox/121.0",
]

EXTRA_HTTP_HEADERS = {
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
    "Upgrade-Insecure-Requests": "1",
}

DEFAULT_VIEWPORT = {"width": 1440, "height": 900}


class BrowserSession(Protocol):
    """What the crawl engine needs from a browser."""

    @property
    def page(self) -> Page:
        """The single page used for every navigation."""
        ...

    async def add_cookies(self, cookies: list[dict[str, Any]]) -> None:
        """Add cookies to the browsing context."""
        ...


BrowserFactory = Callable[[CrawlConfiguration], AbstractAsyncContextManager[BrowserSession]]


class PlaywrightBrowser:
    """Async context manager owning a Chromium browser for one crawl.

    Args:
        config: Crawl configuration (device scale factor)
        headless: Run without a visible window

    Example:
        >>> async with PlaywrightBrowser(config) as browser:
        ...     await browser.page.goto("https://example.com")
    """

    def __init__(self, config: CrawlConfiguration, headless: bool = True) -> None:
        self._config = config
        self._headless = headless
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None

    @property
    def page(self) -> Page:
        if self._page is None:
            raise RuntimeError("Browser is not started")
        return self._page

    async def add_cookies(self, cookies: list[dict[str, Any]]) -> None:
        if self._context is None:
            raise RuntimeError("Browser is not started")
        await self._context.add_cookies(cookies)

    async def __aenter__(self) -> PlaywrightBrowser:
        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(
                headless=self._headless,
                args=["--disable-dev-shm-usage", "--no-first-run"],
            )
            self._context = await self._browser.new_context(
                user_agent=random.choice(USER_AGENTS),
                viewport=DEFAULT_VIEWPORT,
                device_scale_factor=self._config.device_scale_factor,
                extra_http_headers=EXTRA_HTTP_HEADERS,
            )
            self._page = await self._context.new_page()
        except Exception:
            await self._close()
            raise
        logger.info(
            "Browser started (headless=%s, device_scale_factor=%s)",
            self._headless,
            self._config.device_scale_factor,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self._close()

    async def _close(self) -> None:
        if self._context is not None:
            await self._context.close()
            self._context = None
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
        self._page = None


def playwright_browser_factory(headless: bool = True) -> BrowserFactory:
    """Return a factory creating a fresh Playwright browser per crawl."""

    def _factory(config: CrawlConfiguration) -> PlaywrightBrowser:
        return PlaywrightBrowser(config, headless=headless)

    return _factory
