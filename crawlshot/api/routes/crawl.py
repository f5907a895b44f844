"""Crawl job endpoints: enqueue, status and progress ingestion.

Example:
    POST /crawl {"url": "https://example.com", "outputBaseUrl": "http://localhost:3006"}
    Response: {"message": "Crawl job queued", "jobId": "crawl_1700000000000_1234"}
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from crawlshot.api.models.requests import CrawlRequest, ProgressRequest
from crawlshot.api.models.responses import (
    EnqueueResponse,
    MessageResponse,
    StatusResponse,
    StatusResult,
)
from crawlshot.core.config import Settings
from crawlshot.core.errors import ConfigurationError
from crawlshot.core.url_validation import UrlValidator
from crawlshot.services.jobs import CrawlJobService
from crawlshot.services.models import JobStatus
from crawlshot.services.queue import QueueManager
from crawlshot.services.storage import ArtifactStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["crawl"])

# Client-facing names for job states
STATUS_NAMES = {
    JobStatus.PENDING: "pending",
    JobStatus.ACTIVE: "processing",
    JobStatus.COMPLETED: "completed",
    JobStatus.FAILED: "failed",
}


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_queue(request: Request) -> QueueManager:
    queue = getattr(request.app.state, "queue", None)
    if queue is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Job queue is not available",
        )
    return queue


@router.post("/crawl", response_model=EnqueueResponse)
async def enqueue_crawl(
    body: CrawlRequest,
    queue: QueueManager = Depends(get_queue),
    settings: Settings = Depends(get_settings),
) -> EnqueueResponse:
    """Validate a crawl request and queue it."""
    validator = UrlValidator(
        allow_private_ips=settings.allow_private_targets,
        allow_localhost=settings.allow_private_targets,
    )
    service = CrawlJobService(queue, validator)
    try:
        job = await service.enqueue(body.to_payload())
    except ConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    if job is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Job queue is not available",
        )
    return EnqueueResponse(message="Crawl job queued", job_id=job.id)


@router.get("/status/{job_id}", response_model=StatusResponse)
async def get_status(
    job_id: str,
    queue: QueueManager = Depends(get_queue),
    settings: Settings = Depends(get_settings),
) -> StatusResponse:
    """Report a job's status, progress and manifest location."""
    job = await queue.get_job(job_id)
    if job is None:
        # Job records expire; a manifest on disk still proves completion
        store = ArtifactStore(settings.screenshots_dir, settings.public_url)
        if store.manifest_exists(job_id):
            return StatusResponse(
                job_id=job_id,
                status="completed",
                progress=100,
                result=StatusResult(manifest_url=store.manifest_url(job_id)),
            )
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")

    detailed = await queue.get_progress(job_id)
    result = None
    if job.status == JobStatus.COMPLETED:
        store = ArtifactStore(settings.screenshots_dir, job.output_base_url)
        result = StatusResult(manifest_url=store.manifest_url(job_id))

    return StatusResponse(
        job_id=job_id,
        status=STATUS_NAMES[job.status],
        progress=(
            int(detailed.get("progress", 0))
            if detailed
            else (100 if job.status == JobStatus.COMPLETED else 0)
        ),
        detailed_progress=detailed,
        result=result,
        error=job.error,
    )


@router.post("/progress/{job_id}", response_model=MessageResponse)
async def update_progress(
    job_id: str,
    body: ProgressRequest,
    queue: QueueManager = Depends(get_queue),
) -> MessageResponse:
    """Overwrite a job's progress snapshot."""
    stored = await queue.set_progress(job_id, body.model_dump(by_alias=True))
    if not stored:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    return MessageResponse(message="Progress updated")
