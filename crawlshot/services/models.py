"""Service-layer data models for crawl jobs."""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from crawlshot.crawl.models import CrawlConfiguration


def utc_timestamp() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


class JobStatus(str, Enum):
    """Status values for the crawl job lifecycle."""

    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


@dataclass(frozen=True)
class CrawlJob:
    """A queued crawl request and its lifecycle state.

    Args:
        id: Job identifier
        url: Canonical start URL
        output_base_url: Public base URL for screenshots and progress posts
        config: Crawl configuration (including optional auth)
        status: Current job status
        error: Error message if the job failed
        attempts: Number of times the job has been started
        created_at: ISO timestamp of enqueue
        started_at: ISO timestamp of the latest start
        finished_at: ISO timestamp of the terminal transition
    """

    id: str
    url: str
    output_base_url: str
    config: CrawlConfiguration
    status: JobStatus = JobStatus.PENDING
    error: str | None = None
    attempts: int = 0
    created_at: str | None = None
    started_at: str | None = None
    finished_at: str | None = None

    def with_status(self, status: JobStatus, error: str | None = None) -> CrawlJob:
        """Return a copy moved to ``status`` with the matching timestamps."""
        now = utc_timestamp()
        if status == JobStatus.ACTIVE:
            return replace(
                self,
                status=status,
                error=None,
                attempts=self.attempts + 1,
                started_at=now,
                finished_at=None,
            )
        if status.is_terminal:
            return replace(self, status=status, error=error, finished_at=now)
        return replace(self, status=status, error=error)

    def without_auth(self) -> CrawlJob:
        """Return a copy with credentials removed from the configuration."""
        if self.config.auth is None:
            return self
        return replace(self, config=replace(self.config, auth=None))

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "outputBaseUrl": self.output_base_url,
            "config": self.config.to_payload(),
            "status": self.status.value,
            "error": self.error,
            "attempts": self.attempts,
            "createdAt": self.created_at,
            "startedAt": self.started_at,
            "finishedAt": self.finished_at,
        }

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> CrawlJob:
        return cls(
            id=data["id"],
            url=data["url"],
            output_base_url=data["outputBaseUrl"],
            config=CrawlConfiguration.from_payload(data.get("config") or {}),
            status=JobStatus(data.get("status", JobStatus.PENDING.value)),
            error=data.get("error"),
            attempts=int(data.get("attempts") or 0),
            created_at=data.get("createdAt"),
            started_at=data.get("startedAt"),
            finished_at=data.get("finishedAt"),
        )
