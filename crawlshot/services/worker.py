"""Crawl worker: executes queued jobs one at a time.

The worker moves each job through ``pending -> active -> completed|failed``.
A job only completes after its manifest has been written; any exception that
escapes the crawl engine fails the job and no manifest is written.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

import httpx

from crawlshot.core.config import Settings
from crawlshot.core.errors import JobExecutionError
from crawlshot.crawl.engine import CrawlEngine
from crawlshot.crawl.models import Manifest
from crawlshot.crawl.progress import (
    HttpProgressSink,
    ProgressReporter,
    ProgressSink,
    QueueProgressSink,
)
from crawlshot.crawl.tree import build_site_tree, count_nodes
from crawlshot.services.models import CrawlJob, JobStatus, utc_timestamp
from crawlshot.services.queue import REDIS_ERRORS, QueueManager
from crawlshot.services.storage import ArtifactStore

logger = logging.getLogger(__name__)

EngineFactory = Callable[[ArtifactStore], CrawlEngine]
SinkFactory = Callable[[CrawlJob], ProgressSink]

DEQUEUE_TIMEOUT_SECONDS = 5
DEQUEUE_ERROR_BACKOFF_SECONDS = 5.0


class CrawlWorker:
    """Dequeue and execute crawl jobs.

    Args:
        settings: Runtime settings
        queue: Queue manager holding the jobs
        engine_factory: Builds a crawl engine writing to the given store
        sink_factory: Builds the progress sink for a job (chosen by the
            progress_sink setting by default)
        sleep: Async sleep used for backoffs
    """

    def __init__(
        self,
        settings: Settings,
        queue: QueueManager,
        engine_factory: EngineFactory | None = None,
        sink_factory: SinkFactory | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self.queue = queue
        self._engine_factory = engine_factory or (
            lambda store: CrawlEngine(settings, store)
        )
        if sink_factory is None:
            sink_factory = (
                self._queue_sink if settings.progress_sink == "queue" else self._http_sink
            )
        self._sink_factory = sink_factory
        self._sleep = sleep
        self._http_client: httpx.AsyncClient | None = None

    def _queue_sink(self, job: CrawlJob) -> ProgressSink:
        return QueueProgressSink(self.queue, job.id)

    def _http_sink(self, job: CrawlJob) -> ProgressSink:
        if self._http_client is None:
            headers = {}
            if self.settings.api_key:
                headers["X-API-Key"] = self.settings.api_key
            self._http_client = httpx.AsyncClient(
                timeout=self.settings.progress_timeout_seconds, headers=headers
            )
        return HttpProgressSink(self._http_client, job.output_base_url, job.id)

    async def close(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def run_job(self, job: CrawlJob) -> JobStatus:
        """Execute one job to a terminal (or re-queued) state.

        Returns:
            The status the job was left in
        """
        active = await self.queue.set_status(job.id, JobStatus.ACTIVE)
        if active is None:
            active = job.with_status(JobStatus.ACTIVE)
        logger.info(
            "Processing job %s: %s (attempt %d)", job.id, job.url, active.attempts
        )

        store = ArtifactStore(self.settings.screenshots_dir, job.output_base_url)
        reporter = ProgressReporter(
            job.id,
            self._sink_factory(job),
            job.config.total_pages,
            timeout=self.settings.progress_timeout_seconds,
        )

        try:
            outcome = await self._engine_factory(store).run(job.url, job.config, reporter)
            await reporter.report("building", len(outcome.pages), outcome.start_url)
            tree = build_site_tree(outcome.pages, outcome.start_url)
            logger.info(
                "Tree built with %d node(s) from %d page(s)",
                count_nodes(tree),
                len(outcome.pages),
            )
            manifest = Manifest(
                start_url=outcome.start_url,
                crawl_date=utc_timestamp(),
                tree=tree,
            )
            await asyncio.to_thread(store.write_manifest, job.id, manifest)
        except Exception as exc:  # noqa: BLE001
            error = JobExecutionError(job.id, exc)
            logger.error("%s", error, exc_info=exc)
            if active.attempts < self.settings.job_max_attempts:
                logger.info(
                    "Re-queueing job %s in %.1fs (attempt %d/%d)",
                    job.id,
                    self.settings.job_retry_backoff_seconds,
                    active.attempts,
                    self.settings.job_max_attempts,
                )
                await self._sleep(self.settings.job_retry_backoff_seconds)
                if await self.queue.requeue(active):
                    return JobStatus.PENDING
            await self.queue.set_status(job.id, JobStatus.FAILED, str(exc))
            return JobStatus.FAILED

        await reporter.report("completed", len(outcome.pages), outcome.start_url)
        await self.queue.set_status(job.id, JobStatus.COMPLETED)
        logger.info(
            "Job %s completed: %d page(s), manifest at %s",
            job.id,
            len(outcome.pages),
            store.manifest_url(job.id),
        )
        return JobStatus.COMPLETED

    async def run_once(self, timeout: int = DEQUEUE_TIMEOUT_SECONDS) -> JobStatus | None:
        """Process at most one job.

        Returns:
            The resulting job status, or None if no job was available
        """
        job = await self.queue.dequeue(timeout=timeout)
        if job is None:
            return None
        if job.status.is_terminal:
            logger.warning("Skipping job %s: already %s", job.id, job.status.value)
            return None
        return await self.run_job(job)

    async def run_forever(self, stop_event: asyncio.Event | None = None) -> None:
        """Process jobs until ``stop_event`` is set.

        The event is checked between jobs, so the in-flight job always
        finishes first.
        """
        stop_event = stop_event or asyncio.Event()
        logger.info("Worker started, waiting for jobs")
        while not stop_event.is_set():
            try:
                await self.run_once()
            except REDIS_ERRORS as exc:
                logger.warning(
                    "Failed to dequeue job, retrying in %.0fs: %s",
                    DEQUEUE_ERROR_BACKOFF_SECONDS,
                    exc,
                )
                await self._sleep(DEQUEUE_ERROR_BACKOFF_SECONDS)
        logger.info("Worker stopped")
