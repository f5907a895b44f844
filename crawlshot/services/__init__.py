"""Service layer for crawl jobs: queue, storage and worker."""

from crawlshot.services.jobs import CrawlJobService, generate_job_id
from crawlshot.services.models import CrawlJob, JobStatus
from crawlshot.services.queue import QueueManager
from crawlshot.services.storage import ArtifactStore
from crawlshot.services.worker import CrawlWorker

__all__ = [
    "ArtifactStore",
    "CrawlJob",
    "CrawlJobService",
    "CrawlWorker",
    "generate_job_id",
    "JobStatus",
    "QueueManager",
]
