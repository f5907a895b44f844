"""Response models for API endpoints.

Pydantic models defining the structure of API responses.

Example:
    from crawlshot.api.models.responses import HealthResponse

    response = HealthResponse(status="healthy")
"""

from typing import Any, Literal

from pydantic import BaseModel

from crawlshot.api.models.common import CamelModel


class HealthResponse(BaseModel):
    """Health check response model.

    Attributes:
        status: Current health status ('healthy' or 'unhealthy')

    Example:
        >>> response = HealthResponse(status="healthy")
        >>> response.model_dump()
        {"status": "healthy"}
    """

    status: str


class EnqueueResponse(CamelModel):
    message: str
    job_id: str


class MessageResponse(BaseModel):
    message: str


class StatusResult(CamelModel):
    manifest_url: str


class StatusResponse(CamelModel):
    """Job status as reported to clients.

    Attributes:
        job_id: Job identifier
        status: pending, processing, completed or failed
        progress: Percentage from the latest snapshot, or 100/0 by status
            when no snapshot was stored
        detailed_progress: Latest progress snapshot, if any
        result: Manifest location, only set for completed jobs
        error: Failure reason, only set for failed jobs
    """

    job_id: str
    status: Literal["pending", "processing", "completed", "failed"]
    progress: int = 0
    detailed_progress: dict[str, Any] | None = None
    result: StatusResult | None = None
    error: str | None = None
