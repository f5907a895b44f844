"""Crawl job creation and validation."""

from __future__ import annotations

import logging
import random
import time
from typing import Any

from crawlshot.core.errors import ConfigurationError
from crawlshot.core.url_validation import UrlValidator, canonicalize_url, is_http_url
from crawlshot.crawl.models import CrawlConfiguration
from crawlshot.services.models import CrawlJob, JobStatus, utc_timestamp
from crawlshot.services.queue import QueueManager

logger = logging.getLogger(__name__)

NON_NEGATIVE_FIELDS = (
    "maxRequestsPerCrawl",
    "maxDepth",
    "sampleSize",
    "delay",
    "requestDelay",
)


def generate_job_id() -> str:
    """Generate a unique job identifier.

    Returns:
        Job identifier prefixed with "crawl_"
    """
    timestamp = int(time.time() * 1000)
    nonce = random.randint(1000, 9999)
    return f"crawl_{timestamp}_{nonce}"


def parse_configuration(payload: dict[str, Any]) -> CrawlConfiguration:
    """Build a CrawlConfiguration from an enqueue payload.

    Raises:
        ConfigurationError: If a value has the wrong type or range, or if
            ``auth`` is present but unusable
    """
    try:
        config = CrawlConfiguration.from_payload(payload)
    except (TypeError, ValueError, KeyError) as exc:
        raise ConfigurationError(f"Invalid crawl options: {exc}") from exc

    for key in NON_NEGATIVE_FIELDS:
        value = payload.get(key)
        if value is not None and int(value) < 0:
            raise ConfigurationError(f"{key} must not be negative, got {value}")
    if config.device_scale_factor <= 0:
        raise ConfigurationError(
            f"deviceScaleFactor must be positive, got {config.device_scale_factor}"
        )
    if payload.get("auth") and config.auth is None:
        raise ConfigurationError(
            "auth must be cookies with at least one cookie or complete credentials"
        )
    if config.auth is not None and config.auth.method == "credentials":
        if not is_http_url(config.auth.login_url):
            raise ConfigurationError(
                f"loginUrl must be an absolute http(s) URL: {config.auth.login_url}"
            )
    return config


class CrawlJobService:
    """Validate enqueue requests and create pending jobs.

    Args:
        queue: Queue manager used to persist and queue jobs
        validator: Target URL validator
    """

    def __init__(self, queue: QueueManager, validator: UrlValidator | None = None) -> None:
        self.queue = queue
        self.validator = validator or UrlValidator()

    def build_job(self, payload: dict[str, Any]) -> CrawlJob:
        """Validate an enqueue payload and build a pending job.

        Args:
            payload: ``{url, outputBaseUrl, ...options}`` in camelCase

        Returns:
            A pending CrawlJob

        Raises:
            ConfigurationError: If required fields are missing or invalid
        """
        url = payload.get("url")
        output_base_url = payload.get("outputBaseUrl")
        if not url or not output_base_url:
            raise ConfigurationError("URL and outputBaseUrl are required")

        self.validator.validate(url)
        if not is_http_url(output_base_url):
            raise ConfigurationError(
                f"outputBaseUrl must be an absolute http(s) URL: {output_base_url}"
            )

        config = parse_configuration(payload)
        return CrawlJob(
            id=generate_job_id(),
            url=canonicalize_url(url),
            output_base_url=output_base_url.rstrip("/"),
            config=config,
            status=JobStatus.PENDING,
            created_at=utc_timestamp(),
        )

    async def enqueue(self, payload: dict[str, Any]) -> CrawlJob | None:
        """Validate and enqueue a crawl job.

        Returns:
            The pending job, or None if the queue is unavailable

        Raises:
            ConfigurationError: If the payload is invalid (no job is created)
        """
        job = self.build_job(payload)
        if not await self.queue.enqueue(job):
            return None
        logger.info("Enqueued job %s for %s", job.id, job.url)
        return job
