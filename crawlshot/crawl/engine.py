"""Crawl engine: drives the page pipeline over a FIFO frontier.

The engine owns the ``CrawlSession`` for one crawl. Pages are processed one at
a time; page-level failures are logged and counted but never stop the crawl.
Anything else propagates to the caller and fails the job.

Example:
    >>> engine = CrawlEngine(settings, store)
    >>> outcome = await engine.run("https://example.com/docs", CrawlConfiguration())
    >>> len(outcome.pages)
    3
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable

from playwright.async_api import Error as PlaywrightError

from crawlshot.core.config import Settings
from crawlshot.core.errors import CaptureError, NavigationError
from crawlshot.core.url_validation import canonicalize_url
from crawlshot.crawl.browser import BrowserFactory, playwright_browser_factory
from crawlshot.crawl.language import LanguageStrategy
from crawlshot.crawl.models import CrawlConfiguration, CrawlOutcome
from crawlshot.crawl.pipeline import PageContext, PagePipeline
from crawlshot.crawl.policy import AdmissionPolicy, LinkFilter
from crawlshot.crawl.progress import ProgressReporter
from crawlshot.crawl.session import CrawlSession
from crawlshot.crawl.slicer import TileSink
from crawlshot.resilience.retry import RetryPolicy

logger = logging.getLogger(__name__)


class CrawlEngine:
    """Run one crawl with a dedicated browser.

    Args:
        settings: Runtime settings
        sink: Destination for screenshot tiles
        browser_factory: Creates the browser context manager for a crawl
            (Playwright Chromium by default)
        language: Language detection strategy for admission
        link_filter: Blocklist applied to discovered links
        retry_policy: Page load retry policy override
        sleep: Async sleep used for delays and the shutdown grace period
    """

    def __init__(
        self,
        settings: Settings,
        sink: TileSink,
        browser_factory: BrowserFactory | None = None,
        language: LanguageStrategy | None = None,
        link_filter: LinkFilter | None = None,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self.sink = sink
        self.browser_factory = browser_factory or playwright_browser_factory(
            headless=settings.headless
        )
        self.language = language
        self.link_filter = link_filter
        self.retry_policy = retry_policy
        self._sleep = sleep

    async def run(
        self,
        start_url: str,
        config: CrawlConfiguration,
        reporter: ProgressReporter | None = None,
    ) -> CrawlOutcome:
        """Crawl from ``start_url`` until the frontier or the budget runs out.

        Args:
            start_url: Absolute http(s) start URL
            config: Crawl configuration
            reporter: Progress reporter (a silent one is used when omitted)

        Returns:
            CrawlOutcome with the recorded pages in capture order
        """
        start_url = canonicalize_url(start_url)
        reporter = reporter or ProgressReporter(None, None, config.total_pages)
        policy = AdmissionPolicy(config, self.language)
        session = CrawlSession(
            start_url=start_url,
            default_language=policy.default_language(start_url),
        )
        pipeline = PagePipeline(
            config,
            self.settings,
            policy,
            self.sink,
            reporter,
            link_filter=self.link_filter,
            retry_policy=self.retry_policy,
            sleep=self._sleep,
        )

        logger.info(
            "Starting crawl of %s (budget=%s, max_depth=%s, sample_size=%s, language=%s)",
            start_url,
            config.max_requests_per_crawl or "unlimited",
            config.max_depth or "unlimited",
            config.sample_size or "unlimited",
            session.default_language,
        )
        await reporter.report("starting", 0, start_url)

        async with self.browser_factory(config) as browser:
            frontier: deque[str] = deque([start_url])
            enqueued: set[str] = {start_url}

            while frontier and not session.terminating:
                url = frontier.popleft()
                verdict = pipeline.admit(url, session)
                if not verdict.admitted:
                    continue

                await pipeline.authenticate(browser, session)

                ctx = PageContext(url=url, page_number=session.current_page)
                try:
                    await pipeline.process(browser, session, ctx)
                except (NavigationError, CaptureError) as exc:
                    session.pages_failed += 1
                    logger.error("Dropping %s at %s: %s", url, ctx.state.value, exc)
                    continue
                except asyncio.TimeoutError:
                    session.pages_failed += 1
                    logger.error(
                        "Dropping %s: last load attempt timed out after %ss (stage: %s)",
                        url,
                        self.settings.handler_timeout_seconds,
                        ctx.state.value,
                    )
                    continue
                except PlaywrightError as exc:
                    session.pages_failed += 1
                    logger.error("Dropping %s at %s: %s", url, ctx.state.value, exc.message)
                    continue

                for link in ctx.links:
                    if link not in enqueued:
                        enqueued.add(link)
                        frontier.append(link)

            if session.terminating:
                logger.info("Page budget reached, finishing crawl")
            await self._sleep(self.settings.shutdown_grace_seconds)

        logger.info(
            "Crawl of %s finished: %d page(s) captured, %d dropped",
            start_url,
            len(session.pages),
            session.pages_failed,
        )
        return CrawlOutcome(
            start_url=start_url,
            pages=tuple(session.pages),
            pages_failed=session.pages_failed,
        )
