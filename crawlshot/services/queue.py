"""Queue manager for Redis-backed crawl jobs.

Jobs are stored as JSON records keyed by job id. The work queue is a Redis
list of job ids consumed with ``BRPOP``. Progress snapshots live in their own
key so that progress writes from the API never race status writes from the
worker.
"""

from __future__ import annotations

import inspect
import json
import logging
from collections.abc import Awaitable
from typing import Any, TypeVar

import redis.asyncio as redis
from redis.exceptions import RedisError

from crawlshot.services.models import CrawlJob, JobStatus, utc_timestamp

logger = logging.getLogger(__name__)

T = TypeVar("T")

QUEUE_KEY = "crawlshot:crawl_queue"
JOB_PREFIX = "crawlshot:job:"
PROGRESS_PREFIX = "crawlshot:job_progress:"
RECENT_LIST_KEY = "crawlshot:job_recent"
RECENT_LIST_SIZE = 50
STATUS_TTL_SECONDS = 86400

REDIS_ERRORS = (RedisError, ConnectionError, TimeoutError, OSError)


class QueueManager:
    """Manage crawl job state in Redis."""

    def __init__(self, redis_url: str) -> None:
        """Initialize the queue manager.

        Args:
            redis_url: Redis connection URL
        """
        self._client: redis.Redis = redis.from_url(redis_url, decode_responses=False)

    async def is_available(self) -> bool:
        """Check if Redis connection is available.

        Returns:
            True if Redis is reachable, False otherwise
        """
        try:
            await self._await(self._client.ping())
            return True
        except REDIS_ERRORS:
            logger.warning("Redis is unavailable - queue operations will be degraded")
            return False

    async def _await(self, result: Awaitable[T] | T) -> T:
        if inspect.isawaitable(result):
            return await result
        return result

    @staticmethod
    def _decode(raw: bytes | str) -> str:
        return raw.decode() if isinstance(raw, bytes) else raw

    async def _write_job(self, job: CrawlJob) -> None:
        # Terminal records expire and never keep credentials
        if job.status.is_terminal:
            job = job.without_auth()
            await self._await(
                self._client.set(
                    f"{JOB_PREFIX}{job.id}",
                    json.dumps(job.to_payload()),
                    ex=STATUS_TTL_SECONDS,
                )
            )
            await self._await(
                self._client.expire(f"{PROGRESS_PREFIX}{job.id}", STATUS_TTL_SECONDS)
            )
        else:
            await self._await(
                self._client.set(f"{JOB_PREFIX}{job.id}", json.dumps(job.to_payload()))
            )

    async def enqueue(self, job: CrawlJob) -> bool:
        """Store a new job and push it onto the work queue.

        Args:
            job: Pending job to enqueue

        Returns:
            True if the job was queued, False if Redis is unavailable
        """
        try:
            await self._write_job(job)
            await self._await(self._client.lpush(QUEUE_KEY, job.id))
            await self._await(self._client.lpush(RECENT_LIST_KEY, job.id))
            await self._await(self._client.ltrim(RECENT_LIST_KEY, 0, RECENT_LIST_SIZE - 1))
            return True
        except REDIS_ERRORS as exc:
            logger.warning("Failed to enqueue job %s: %s", job.id, exc)
            return False

    async def requeue(self, job: CrawlJob) -> bool:
        """Reset a job to pending and push it back onto the work queue."""
        try:
            await self._write_job(job.with_status(JobStatus.PENDING))
            await self._await(self._client.lpush(QUEUE_KEY, job.id))
            return True
        except REDIS_ERRORS as exc:
            logger.warning("Failed to requeue job %s: %s", job.id, exc)
            return False

    async def dequeue(self, timeout: int = 5) -> CrawlJob | None:
        """Dequeue the next job.

        Args:
            timeout: Seconds to block while waiting for work

        Returns:
            The next job when available, None on timeout or if the job record
            has expired

        Raises:
            ConnectionError: If Redis cannot be reached
        """
        item = await self._await(self._client.brpop([QUEUE_KEY], timeout=timeout))
        if not item:
            return None
        _, value = item
        job_id = self._decode(value)
        job = await self.get_job(job_id)
        if job is None:
            logger.warning("Dequeued job %s has no stored record, skipping", job_id)
        return job

    async def get_job(self, job_id: str) -> CrawlJob | None:
        """Fetch a job record.

        Args:
            job_id: Job identifier

        Returns:
            CrawlJob if present, None if not found or Redis unavailable
        """
        try:
            raw = await self._await(self._client.get(f"{JOB_PREFIX}{job_id}"))
            if raw is None:
                return None
            return CrawlJob.from_payload(json.loads(self._decode(raw)))
        except REDIS_ERRORS as exc:
            logger.warning("Failed to get job %s: %s", job_id, exc)
            return None

    async def set_status(
        self, job_id: str, status: JobStatus, error: str | None = None
    ) -> CrawlJob | None:
        """Move a job to a new status.

        Args:
            job_id: Job identifier
            status: New status
            error: Error message for failed jobs

        Returns:
            The updated job, or None if it does not exist or Redis is
            unavailable
        """
        job = await self.get_job(job_id)
        if job is None:
            logger.warning("Cannot set status of unknown job %s", job_id)
            return None
        if job.status.is_terminal and status != JobStatus.PENDING:
            logger.warning(
                "Job %s is already %s, ignoring transition to %s",
                job_id,
                job.status.value,
                status.value,
            )
            return job
        updated = job.with_status(status, error)
        try:
            await self._write_job(updated)
        except REDIS_ERRORS as exc:
            logger.warning("Failed to set status for job %s: %s", job_id, exc)
            return None
        return updated

    async def set_progress(self, job_id: str, progress: dict[str, Any]) -> bool:
        """Overwrite the job's progress snapshot.

        Args:
            job_id: Job identifier
            progress: Progress event payload (a ``timestamp`` is added)

        Returns:
            True if stored, False if the job is unknown or Redis unavailable
        """
        try:
            exists = await self._await(self._client.exists(f"{JOB_PREFIX}{job_id}"))
            if not exists:
                return False
            snapshot = {**progress, "timestamp": utc_timestamp()}
            await self._await(
                self._client.set(
                    f"{PROGRESS_PREFIX}{job_id}",
                    json.dumps(snapshot),
                    ex=STATUS_TTL_SECONDS,
                )
            )
            return True
        except REDIS_ERRORS as exc:
            logger.warning("Failed to set progress for job %s: %s", job_id, exc)
            return False

    async def get_progress(self, job_id: str) -> dict[str, Any] | None:
        """Return the latest progress snapshot for a job."""
        try:
            raw = await self._await(self._client.get(f"{PROGRESS_PREFIX}{job_id}"))
            if raw is None:
                return None
            return json.loads(self._decode(raw))
        except REDIS_ERRORS as exc:
            logger.warning("Failed to get progress for job %s: %s", job_id, exc)
            return None

    async def list_recent(self, limit: int = 10) -> list[CrawlJob]:
        """Return recently enqueued jobs, newest first.

        Args:
            limit: Maximum number of records to return

        Returns:
            List of CrawlJob entries that still exist
        """
        try:
            job_ids = await self._await(
                self._client.lrange(RECENT_LIST_KEY, 0, limit - 1)
            )
        except REDIS_ERRORS as exc:
            logger.warning("Failed to list recent jobs: %s", exc)
            return []
        jobs: list[CrawlJob] = []
        for raw_id in job_ids:
            job = await self.get_job(self._decode(raw_id))
            if job:
                jobs.append(job)
        return jobs

    async def close(self) -> None:
        """Close the Redis client connection."""
        await self._await(self._client.aclose())

    async def get_queue_length(self) -> int:
        """Return the current work queue length."""
        length = await self._await(self._client.llen(QUEUE_KEY))
        return int(length)
