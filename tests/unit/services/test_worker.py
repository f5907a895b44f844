"""Unit tests for the crawl worker lifecycle."""

import asyncio
import json
from unittest.mock import AsyncMock

import httpx
import pytest
import respx
from redis.exceptions import ConnectionError as RedisConnectionError

from crawlshot.core.config import Settings
from crawlshot.crawl.models import CrawlOutcome, PageRecord
from crawlshot.crawl.progress import ProgressEvent, QueueProgressSink
from crawlshot.services.jobs import CrawlJobService
from crawlshot.services.models import CrawlJob, JobStatus
from crawlshot.services.queue import QueueManager
from crawlshot.services.storage import ArtifactStore
from crawlshot.services.worker import CrawlWorker
from tests.fakes import no_sleep

PAYLOAD = {"url": "https://example.com/", "outputBaseUrl": "http://localhost:3006"}


class StubEngine:
    """Engine double returning a canned outcome or raising."""

    def __init__(self, store: ArtifactStore, error: Exception | None = None) -> None:
        self.store = store
        self.error = error
        self.calls: list[str] = []

    async def run(self, start_url, config, reporter=None) -> CrawlOutcome:
        self.calls.append(start_url)
        if self.error is not None:
            raise self.error
        home = self.store.save_tile("home.png", b"png")
        about = self.store.save_tile("about.png", b"png")
        return CrawlOutcome(
            start_url=start_url,
            pages=(
                PageRecord(url=start_url, title="Home", screenshots=(home,)),
                PageRecord(url=f"{start_url}about", title="About", screenshots=(about,)),
            ),
        )


def _worker(
    settings: Settings, queue: QueueManager, error: Exception | None = None
) -> CrawlWorker:
    return CrawlWorker(
        settings,
        queue,
        engine_factory=lambda store: StubEngine(store, error),
        sink_factory=lambda job: QueueProgressSink(queue, job.id),
        sleep=no_sleep,
    )


# =============================================================================
# Job execution
# =============================================================================


@pytest.mark.asyncio
async def test_run_once_completes_job(settings: Settings, queue: QueueManager) -> None:
    """Test a successful crawl writes the manifest and completes the job."""
    job = await CrawlJobService(queue).enqueue(PAYLOAD)

    status = await _worker(settings, queue).run_once(timeout=1)

    assert status == JobStatus.COMPLETED
    stored = await queue.get_job(job.id)
    assert stored.status == JobStatus.COMPLETED
    assert stored.attempts == 1
    assert stored.finished_at is not None

    manifest = json.loads(
        (settings.screenshots_dir / f"manifest-{job.id}.json").read_text(encoding="utf-8")
    )
    assert manifest["startUrl"] == "https://example.com/"
    assert manifest["tree"]["title"] == "Home"
    assert [c["url"] for c in manifest["tree"]["children"]] == ["https://example.com/about"]
    assert manifest["tree"]["screenshot"] == ["http://localhost:3006/screenshots/home.png"]

    progress = await queue.get_progress(job.id)
    assert progress["stage"] == "completed"


@pytest.mark.asyncio
async def test_run_once_failure_leaves_no_manifest(
    settings: Settings, queue: QueueManager
) -> None:
    """Test an engine failure fails the job without writing a manifest."""
    job = await CrawlJobService(queue).enqueue(PAYLOAD)

    status = await _worker(settings, queue, RuntimeError("browser crashed")).run_once()

    assert status == JobStatus.FAILED
    stored = await queue.get_job(job.id)
    assert stored.status == JobStatus.FAILED
    assert stored.error == "browser crashed"
    assert not ArtifactStore(settings.screenshots_dir, "http://x").manifest_exists(job.id)


@pytest.mark.asyncio
async def test_failed_job_is_retried_up_to_max_attempts(
    settings: Settings, queue: QueueManager
) -> None:
    """Test a failed job is re-queued until its attempts run out."""
    retrying = settings.model_copy(update={"job_max_attempts": 2})
    job = await CrawlJobService(queue).enqueue(PAYLOAD)
    worker = _worker(retrying, queue, RuntimeError("flaky"))

    assert await worker.run_once() == JobStatus.PENDING
    requeued = await queue.get_job(job.id)
    assert requeued.status == JobStatus.PENDING
    assert await queue.get_queue_length() == 1

    assert await worker.run_once() == JobStatus.FAILED
    failed = await queue.get_job(job.id)
    assert failed.attempts == 2
    assert await queue.get_queue_length() == 0


@pytest.mark.asyncio
async def test_run_once_empty_queue(settings: Settings, queue: QueueManager) -> None:
    """Test an empty queue returns None."""
    assert await _worker(settings, queue).run_once(timeout=1) is None


@pytest.mark.asyncio
async def test_run_once_skips_finished_job(settings: Settings, queue: QueueManager) -> None:
    """Test a job that already finished is not run again."""
    job = await CrawlJobService(queue).enqueue(PAYLOAD)
    await queue.set_status(job.id, JobStatus.COMPLETED)

    assert await _worker(settings, queue).run_once() is None


@pytest.mark.asyncio
async def test_run_job_without_stored_record(
    settings: Settings, queue: QueueManager
) -> None:
    """Test a job whose record is missing still runs to completion."""
    job = CrawlJob(
        id="unstored",
        url="https://example.com/",
        output_base_url="http://localhost:3006",
        config=CrawlJobService(queue).build_job(PAYLOAD).config,
    )

    status = await _worker(settings, queue).run_job(job)

    assert status == JobStatus.COMPLETED
    assert (settings.screenshots_dir / "manifest-unstored.json").is_file()


# =============================================================================
# Worker loop
# =============================================================================


@pytest.mark.asyncio
async def test_run_forever_stops_when_event_set(settings: Settings) -> None:
    """Test the loop exits once the stop event is set."""
    stop = asyncio.Event()
    queue = AsyncMock()

    async def dequeue(timeout: int = 5):
        stop.set()
        return None

    queue.dequeue = dequeue

    await CrawlWorker(settings, queue, sleep=no_sleep).run_forever(stop)

    assert stop.is_set()


@pytest.mark.asyncio
async def test_run_forever_backs_off_on_redis_errors(settings: Settings) -> None:
    """Test dequeue failures are retried after a backoff."""
    stop = asyncio.Event()
    sleeps: list[float] = []
    queue = AsyncMock()
    queue.dequeue = AsyncMock(side_effect=RedisConnectionError("down"))

    async def sleep(seconds: float) -> None:
        sleeps.append(seconds)
        if len(sleeps) == 2:
            stop.set()

    await CrawlWorker(settings, queue, sleep=sleep).run_forever(stop)

    assert sleeps == [5.0, 5.0]
    assert queue.dequeue.await_count == 2


# =============================================================================
# HTTP progress sink
# =============================================================================


@pytest.mark.asyncio
@respx.mock
async def test_default_sink_posts_with_api_key(settings: Settings, queue: QueueManager) -> None:
    """Test the default sink posts to the job's output base with the API key."""
    route = respx.post("http://localhost:3006/progress/job-1").mock(
        return_value=httpx.Response(200, json={"message": "Progress updated"})
    )
    keyed = settings.model_copy(update={"api_key": "secret"})
    worker = CrawlWorker(keyed, queue)
    job = CrawlJob(
        id="job-1",
        url="https://example.com/",
        output_base_url="http://localhost:3006",
        config=CrawlJobService(queue).build_job(PAYLOAD).config,
    )

    try:
        await worker._sink_factory(job).push(ProgressEvent.create("crawling", 1, 10))
    finally:
        await worker.close()

    assert route.called
    assert route.calls.last.request.headers["X-API-Key"] == "secret"


# =============================================================================
# Queue progress sink
# =============================================================================


@pytest.mark.asyncio
@respx.mock
async def test_queue_sink_setting_stores_progress_in_redis(
    settings: Settings, queue: QueueManager
) -> None:
    """Test progress_sink=queue writes progress to the store without HTTP calls."""
    direct = settings.model_copy(update={"progress_sink": "queue"})
    worker = CrawlWorker(
        direct,
        queue,
        engine_factory=lambda store: StubEngine(store),
        sleep=no_sleep,
    )
    job = await CrawlJobService(queue).enqueue(PAYLOAD)

    try:
        status = await worker.run_once(timeout=1)
    finally:
        await worker.close()

    assert status == JobStatus.COMPLETED
    assert isinstance(worker._sink_factory(job), QueueProgressSink)
    assert respx.calls.call_count == 0
    progress = await queue.get_progress(job.id)
    assert progress["stage"] == "completed"
