"""Best-effort crawl progress reporting.

Progress events overwrite the job's stored snapshot. Delivery is bounded by
a short timeout; a failed delivery drops the event and logs a single warning
for the rest of the job. Reporting never raises into the crawl loop.

Example:
    >>> async with httpx.AsyncClient() as client:
    ...     sink = HttpProgressSink(client, "http://localhost:3006", "42")
    ...     reporter = ProgressReporter("42", sink, total_pages=100)
    ...     await reporter.report("crawling", 3, "https://example.com/docs")
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

import httpx

from crawlshot.core.errors import ProgressReportingError

if TYPE_CHECKING:
    from crawlshot.services.queue import QueueManager

logger = logging.getLogger(__name__)

DEFAULT_PROGRESS_TIMEOUT = 2.0


@dataclass(frozen=True)
class ProgressEvent:
    """Normalized progress snapshot.

    Args:
        stage: Pipeline stage (starting, crawling, screenshot, processing,
            building, completed)
        current_page: Pages admitted so far
        total_pages: Page budget used for the percentage
        current_url: URL being processed
        percent: Integer completion percentage
    """

    stage: str
    current_page: int
    total_pages: int
    current_url: str | None
    percent: int

    @classmethod
    def create(
        cls,
        stage: str,
        current_page: int,
        total_pages: int,
        current_url: str | None = None,
    ) -> ProgressEvent:
        percent = 0
        if current_page and total_pages:
            percent = min(100, round(current_page / total_pages * 100))
        return cls(stage, current_page, total_pages, current_url, percent)

    def to_payload(self) -> dict[str, Any]:
        return {
            "stage": self.stage,
            "currentPage": self.current_page,
            "totalPages": self.total_pages,
            "currentUrl": self.current_url,
            "progress": self.percent,
        }


class ProgressSink(Protocol):
    """Destination for progress events."""

    async def push(self, event: ProgressEvent) -> None:
        """Deliver an event, raising on failure."""
        ...


class HttpProgressSink:
    """POST progress events to the API's progress endpoint.

    Args:
        client: Shared async HTTP client
        base_url: Public base URL of the API
        job_id: Job the events belong to
    """

    def __init__(self, client: httpx.AsyncClient, base_url: str, job_id: str) -> None:
        self._client = client
        self._url = f"{base_url.rstrip('/')}/progress/{job_id}"

    async def push(self, event: ProgressEvent) -> None:
        try:
            response = await self._client.post(self._url, json=event.to_payload())
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ProgressReportingError(f"POST {self._url} failed: {exc}") from exc


class QueueProgressSink:
    """Write progress events straight to the job store."""

    def __init__(self, queue: QueueManager, job_id: str) -> None:
        self._queue = queue
        self._job_id = job_id

    async def push(self, event: ProgressEvent) -> None:
        if not await self._queue.set_progress(self._job_id, event.to_payload()):
            raise ProgressReportingError(f"Job {self._job_id} progress not stored")


class ProgressReporter:
    """Best-effort notifier for one job.

    Args:
        job_id: Job identifier (None disables reporting)
        sink: Delivery target
        total_pages: Page total used for percentages
        timeout: Hard timeout per delivery in seconds
    """

    def __init__(
        self,
        job_id: str | None,
        sink: ProgressSink | None,
        total_pages: int,
        timeout: float = DEFAULT_PROGRESS_TIMEOUT,
    ) -> None:
        self.job_id = job_id
        self.total_pages = total_pages
        self._sink = sink
        self._timeout = timeout
        self._warned = False
        self.last_event: ProgressEvent | None = None

    async def report(
        self, stage: str, current_page: int, current_url: str | None = None
    ) -> None:
        """Push a progress event; never raises."""
        event = ProgressEvent.create(stage, current_page, self.total_pages, current_url)
        self.last_event = event
        if self.job_id is None or self._sink is None:
            return

        try:
            await asyncio.wait_for(self._sink.push(event), timeout=self._timeout)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            if not self._warned:
                self._warned = True
                logger.warning(
                    "Failed to update progress for job %s (further failures "
                    "suppressed): %s",
                    self.job_id,
                    exc,
                )
            else:
                logger.debug("Dropped progress event for job %s: %s", self.job_id, exc)
