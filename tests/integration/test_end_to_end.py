"""End-to-end crawl: API request through worker to served manifest.

Runs the real API, queue manager, worker, crawl engine and artifact store
against the in-memory Redis and browser doubles.
"""

import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from crawlshot.api.app import create_app
from crawlshot.core.config import Settings
from crawlshot.crawl.engine import CrawlEngine
from crawlshot.crawl.progress import QueueProgressSink
from crawlshot.resilience.retry import RetryPolicy
from crawlshot.services.models import JobStatus
from crawlshot.services.queue import QueueManager
from crawlshot.services.worker import CrawlWorker
from tests.fakes import FakeBrowser, FakePage, FakeSitePage, docs_site, no_sleep

pytestmark = pytest.mark.integration


def _worker(settings: Settings, queue: QueueManager, page: FakePage) -> CrawlWorker:
    return CrawlWorker(
        settings,
        queue,
        engine_factory=lambda store: CrawlEngine(
            settings,
            store,
            browser_factory=lambda config: FakeBrowser(page),
            retry_policy=RetryPolicy(max_retries=2, delays=[]),
            sleep=no_sleep,
        ),
        sink_factory=lambda job: QueueProgressSink(queue, job.id),
        sleep=no_sleep,
    )


def _track_statuses(queue: QueueManager) -> list[str]:
    seen: list[str] = []
    real_set_status = queue.set_status

    async def set_status(job_id, status, error=None):
        seen.append(status.value)
        return await real_set_status(job_id, status, error)

    queue.set_status = set_status  # type: ignore[method-assign]
    return seen


def test_crawl_request_produces_manifest(settings: Settings, queue: QueueManager) -> None:
    """Test a queued crawl is executed and its manifest is served."""
    page = FakePage(docs_site())
    client = TestClient(create_app(settings, queue=queue))
    statuses = _track_statuses(queue)

    response = client.post(
        "/crawl",
        json={
            "url": "https://site.test/docs",
            "outputBaseUrl": "http://testserver",
            "maxRequestsPerCrawl": 5,
            "maxDepth": 2,
            "sampleSize": 3,
            "requestDelay": 0,
        },
    )
    job_id = response.json()["jobId"]
    assert client.get(f"/status/{job_id}").json()["status"] == "pending"

    result = asyncio.run(_worker(settings, queue, page).run_once(timeout=1))

    assert result == JobStatus.COMPLETED
    assert statuses == ["active", "completed"]
    assert page.visited == [
        "https://site.test/docs",
        "https://site.test/docs/p1",
        "https://site.test/docs/p2",
    ]

    status = client.get(f"/status/{job_id}").json()
    assert status["status"] == "completed"
    assert status["detailedProgress"]["stage"] == "completed"
    manifest_url = status["result"]["manifestUrl"]
    assert manifest_url == f"http://testserver/screenshots/manifest-{job_id}.json"

    manifest = client.get(manifest_url).json()
    assert manifest["startUrl"] == "https://site.test/docs"
    tree = manifest["tree"]
    assert tree["url"] == "https://site.test/docs"
    assert tree["title"] == "Docs"
    assert [child["url"] for child in tree["children"]] == [
        "https://site.test/docs/p1",
        "https://site.test/docs/p2",
    ]
    tile_url = tree["screenshot"][0]
    assert client.get(tile_url).status_code == 200


def test_tall_page_is_sliced_into_tiles(settings: Settings, queue: QueueManager) -> None:
    """Test a page taller than the tile height is stored as ordered slices."""
    site = {"https://site.test/": FakeSitePage(title="Home", height=2500)}
    client = TestClient(create_app(settings, queue=queue))
    job_id = client.post(
        "/crawl",
        json={"url": "https://site.test/", "outputBaseUrl": "http://testserver"},
    ).json()["jobId"]

    asyncio.run(_worker(settings, queue, FakePage(site)).run_once(timeout=1))

    manifest_path = settings.screenshots_dir / f"manifest-{job_id}.json"
    manifest = json.loads(manifest_path.read_text(encoding="utf-8"))
    names = [url.rsplit("/", 1)[-1] for url in manifest["tree"]["screenshot"]]
    assert len(names) == 3
    assert [name.split("_slice_")[1] for name in names] == [
        "1_of_3.png",
        "2_of_3.png",
        "3_of_3.png",
    ]


def test_unreachable_start_page_gives_empty_tree(
    settings: Settings, queue: QueueManager
) -> None:
    """Test a start page that never loads completes with an empty tree."""
    page = FakePage({}, fail_urls={"https://site.test/"})
    client = TestClient(create_app(settings, queue=queue))
    job_id = client.post(
        "/crawl",
        json={"url": "https://site.test/", "outputBaseUrl": "http://testserver"},
    ).json()["jobId"]

    result = asyncio.run(_worker(settings, queue, page).run_once(timeout=1))

    status = client.get(f"/status/{job_id}").json()
    assert result == JobStatus.COMPLETED
    assert status["status"] == "completed"
    manifest = json.loads(
        (settings.screenshots_dir / f"manifest-{job_id}.json").read_text(encoding="utf-8")
    )
    assert manifest["tree"] is None
