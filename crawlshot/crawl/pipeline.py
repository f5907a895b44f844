"""Per-page state machine.

Every admitted URL goes through the same explicit stages::

    ADMITTED -> NAVIGATING -> STABILIZING -> CAPTURING -> SLICING
             -> RECORDED -> DISCOVERING -> DONE

Admission (the filter stage) and the one-time authentication bootstrap are
separate entry points so the engine can run them outside the per-page
handler timeout. Page loads are retried with a fresh timeout per attempt;
failures that survive the retries surface as ``NavigationError``,
``CaptureError`` or ``asyncio.TimeoutError`` and the engine drops the page.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from urllib.parse import urlsplit

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, Response

from crawlshot.core.config import Settings
from crawlshot.core.errors import CaptureError, NavigationError
from crawlshot.core.url_validation import is_http_url, resolve_url, same_hostname
from crawlshot.crawl.auth import Authenticator
from crawlshot.crawl.browser import BrowserSession
from crawlshot.crawl.models import CrawlConfiguration, PageRecord
from crawlshot.crawl.policy import AdmissionPolicy, LinkFilter, Verdict
from crawlshot.crawl.progress import ProgressReporter
from crawlshot.crawl.rate_limit import RateLimiter, jittered_delay_ms, requests_per_minute
from crawlshot.crawl.session import CrawlSession
from crawlshot.crawl.slicer import TileSink, slice_screenshot
from crawlshot.resilience.retry import RetryPolicy

logger = logging.getLogger(__name__)

# Statuses worth another attempt (server errors and blocking responses)
RETRYABLE_CLIENT_STATUSES = frozenset({401, 403, 429})

HIDE_STICKY_JS = """
() => {
  const pinned = Array.from(document.querySelectorAll('body *')).filter((el) => {
    const position = window.getComputedStyle(el).position;
    return position === 'fixed' || position === 'sticky';
  });
  pinned.slice(1).forEach((el) => el.style.setProperty('visibility', 'hidden', 'important'));
  return pinned.length;
}
"""

SCROLL_JS = """
async (pause) => {
  const scrollHeight = document.documentElement.scrollHeight;
  const step = Math.max(window.innerHeight, 1);
  let position = 0;
  while (position < scrollHeight) {
    position += step;
    window.scrollTo(0, position);
    await new Promise((resolve) => setTimeout(resolve, pause));
  }
}
"""

RESET_SCROLL_JS = """
() => {
  window.scrollTo(0, 0);
  document.documentElement.scrollTop = 0;
  if (document.body) document.body.scrollTop = 0;
  if (document.scrollingElement) document.scrollingElement.scrollTop = 0;
}
"""

LINKS_JS = "(anchors) => anchors.map((a) => a.getAttribute('href'))"


class PageState(str, Enum):
    """Stages of the per-page state machine."""

    ADMITTED = "admitted"
    NAVIGATING = "navigating"
    STABILIZING = "stabilizing"
    CAPTURING = "capturing"
    SLICING = "slicing"
    RECORDED = "recorded"
    DISCOVERING = "discovering"
    DONE = "done"


@dataclass
class PageContext:
    """Working state for one admitted page.

    Args:
        url: Canonical URL being processed
        page_number: Admission number of the page within the crawl
    """

    url: str
    page_number: int
    state: PageState = PageState.ADMITTED
    title: str = ""
    screenshots: tuple[str, ...] = ()
    links: list[str] = field(default_factory=list)


def scroll_pause_ms(delay_ms: int) -> int:
    """Pause between scroll steps."""
    return min(500, delay_ms // 4) if delay_ms > 0 else 500


def settle_wait_ms(delay_ms: int) -> int:
    """Wait after scrolling back to the top."""
    return min(2000, delay_ms // 2) if delay_ms > 0 else 1000


class PagePipeline:
    """Run the page stages against a shared browser page.

    Args:
        config: Crawl configuration
        settings: Runtime settings (timeouts, tile geometry)
        policy: Admission policy shared with the engine
        sink: Destination for screenshot tiles
        reporter: Progress reporter for the job
        link_filter: Blocklist applied to discovered links
        rate_limiter: Navigation rate limiter (derived from the request delay
            when omitted)
        retry_policy: Page load retry policy (derived from settings when
            omitted)
        sleep: Async sleep used for the pre-navigation delay
    """

    def __init__(
        self,
        config: CrawlConfiguration,
        settings: Settings,
        policy: AdmissionPolicy,
        sink: TileSink,
        reporter: ProgressReporter,
        link_filter: LinkFilter | None = None,
        rate_limiter: RateLimiter | None = None,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.config = config
        self.settings = settings
        self.policy = policy
        self.sink = sink
        self.reporter = reporter
        self.link_filter = link_filter or LinkFilter()
        self.rate_limiter = rate_limiter or RateLimiter(
            requests_per_minute(config.request_delay_ms), sleep=sleep
        )
        self.retry_policy = retry_policy or RetryPolicy(
            max_retries=settings.max_request_retries, sleep=sleep
        )
        self.authenticator = Authenticator(
            config.auth,
            navigation_timeout_ms=settings.navigation_timeout_seconds * 1000,
            network_idle_timeout_ms=settings.network_idle_timeout_seconds * 1000,
        )
        self._sleep = sleep

    # Filter

    def admit(self, url: str, session: CrawlSession) -> Verdict:
        """Re-run the admission checks and commit the URL if it passes."""
        verdict = self.policy.admit(url, session)
        if not verdict.admitted:
            logger.info("Skipping %s: %s", url, verdict.reason)
        return verdict

    # Authenticate

    async def authenticate(self, browser: BrowserSession, session: CrawlSession) -> None:
        """Run the authentication bootstrap once per crawl."""
        if session.authenticated or self.config.auth is None:
            return
        session.authenticated = True
        ok = await self.authenticator.bootstrap(browser, session.start_url)
        logger.info("Authentication bootstrap %s", "succeeded" if ok else "failed")

    # Per-page handler

    async def process(
        self, browser: BrowserSession, session: CrawlSession, ctx: PageContext
    ) -> PageContext:
        """Drive an admitted page from navigation to link discovery.

        Loading (navigate, stabilize, capture) is retried by the retry
        policy, and every attempt gets a fresh handler timeout. Slicing runs
        outside any timeout so a cancelled wait never leaves a tile writer
        running for a dropped page. Once the page is recorded, a discovery
        timeout only costs its links.

        Raises:
            NavigationError: If the page could not be loaded
            CaptureError: If the screenshot could not be taken or tiled
            asyncio.TimeoutError: If the last load attempt timed out
        """
        await self.reporter.report("crawling", ctx.page_number, ctx.url)

        buffer = await self.retry_policy.execute_async(
            lambda: asyncio.wait_for(
                self._load(browser.page, ctx),
                timeout=self.settings.handler_timeout_seconds,
            ),
            retryable_exceptions=(NavigationError, PlaywrightError, asyncio.TimeoutError),
            operation_name=f"Loading {ctx.url}",
        )

        ctx.state = PageState.SLICING
        await self.reporter.report("processing", ctx.page_number, ctx.url)
        urls = await asyncio.to_thread(
            slice_screenshot,
            buffer,
            ctx.url,
            self.sink,
            self.settings.max_tile_height,
            self.settings.tile_overlap,
        )
        ctx.screenshots = tuple(urls)
        logger.info("Generated %d screenshot slice(s) for %s", len(urls), ctx.url)

        ctx.state = PageState.RECORDED
        session.record(PageRecord(url=ctx.url, title=ctx.title, screenshots=ctx.screenshots))

        ctx.state = PageState.DISCOVERING
        try:
            ctx.links = await asyncio.wait_for(
                self._discover(browser.page, ctx.url, session),
                timeout=self.settings.handler_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Link discovery on %s timed out after %ss, keeping the page without links",
                ctx.url,
                self.settings.handler_timeout_seconds,
            )
            ctx.links = []

        ctx.state = PageState.DONE
        return ctx

    async def _load(self, page: Page, ctx: PageContext) -> bytes:
        """One load attempt: navigate, stabilize and take the screenshot."""
        ctx.state = PageState.NAVIGATING
        await self._navigate(page, ctx.url)

        ctx.state = PageState.STABILIZING
        await self._stabilize(page, ctx.url)

        ctx.state = PageState.CAPTURING
        return await self._capture(page, ctx)

    async def _navigate(self, page: Page, url: str) -> Response | None:
        await self.rate_limiter.acquire()
        pause = jittered_delay_ms(self.config.request_delay_ms)
        logger.debug("Waiting %dms before navigating to %s", pause, url)
        await self._sleep(pause / 1000)

        try:
            response = await page.goto(
                url,
                timeout=self.settings.navigation_timeout_seconds * 1000,
                wait_until="load",
            )
        except PlaywrightError as exc:
            raise NavigationError(url, exc.message) from exc
        if response is not None and (
            response.status >= 500 or response.status in RETRYABLE_CLIENT_STATUSES
        ):
            raise NavigationError(url, f"HTTP {response.status}")
        return response

    async def _stabilize(self, page: Page, url: str) -> None:
        try:
            await page.wait_for_load_state(
                "networkidle",
                timeout=self.settings.network_idle_timeout_seconds * 1000,
            )
        except PlaywrightError:
            logger.info("Network idle timeout for %s, continuing anyway", url)

        delay_ms = self.config.delay_ms
        if delay_ms > 0:
            logger.info("Waiting %dms for dynamic content on %s", delay_ms, url)
            await page.wait_for_timeout(delay_ms)

        try:
            hidden = await page.evaluate(HIDE_STICKY_JS)
            if hidden and hidden > 1:
                logger.debug("Hid %d pinned element(s) on %s", hidden - 1, url)
            await page.evaluate(SCROLL_JS, scroll_pause_ms(delay_ms))
            await page.evaluate(RESET_SCROLL_JS)
        except PlaywrightError as exc:
            logger.info("Scrolling failed or not needed for %s: %s", url, exc.message)

        await page.wait_for_timeout(settle_wait_ms(delay_ms))

    async def _capture(self, page: Page, ctx: PageContext) -> bytes:
        try:
            ctx.title = await page.title()
            logger.info("Crawled %s - Title: %s", ctx.url, ctx.title)
            await self.reporter.report("screenshot", ctx.page_number, ctx.url)
            return await page.screenshot(full_page=True)
        except PlaywrightError as exc:
            raise CaptureError(ctx.url, exc.message) from exc

    async def _discover(self, page: Page, url: str, session: CrawlSession) -> list[str]:
        """Collect same-hostname links that currently pass admission."""
        try:
            hrefs = await page.eval_on_selector_all("a[href]", LINKS_JS)
        except PlaywrightError as exc:
            logger.error("Failed to collect links from %s: %s", url, exc.message)
            return []

        links: list[str] = []
        seen: set[str] = set()
        for href in hrefs:
            if not href or not href.strip():
                continue
            try:
                resolved = resolve_url(url, href)
            except ValueError:
                continue
            if not is_http_url(resolved) or not same_hostname(resolved, url):
                continue
            if resolved in seen:
                continue
            seen.add(resolved)

            rule = self.link_filter.blocked_by(href, urlsplit(resolved).path)
            if rule is not None:
                logger.debug("Skipping %s due to blocked pattern (%s)", resolved, rule.name)
                continue

            verdict = self.policy.evaluate(resolved, session)
            if not verdict.admitted:
                logger.debug("Not enqueuing %s: %s", resolved, verdict.reason)
                continue
            links.append(resolved)

        logger.info("Discovered %d admissible link(s) on %s", len(links), url)
        return links
