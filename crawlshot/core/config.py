"""Configuration module for the crawlshot worker and API.

Provides Pydantic-based configuration management with environment variable
support and field validation.

Example:
    >>> from crawlshot.core.config import Settings
    >>> settings = Settings(screenshots_dir="/data/screenshots")
    >>> print(settings.max_tile_height)
    4096
"""

import os
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def is_running_in_docker() -> bool:
    """Detect if code is running inside a Docker container.

    Checks for Docker-specific files and environment markers.

    Returns:
        True if running inside Docker container, False otherwise.
    """
    if Path("/.dockerenv").exists():
        return True

    try:
        with Path("/proc/1/cgroup").open() as f:
            return "docker" in f.read()
    except (FileNotFoundError, PermissionError):
        pass

    return os.getenv("RUN_IN_DOCKER", "").lower() in ("true", "1", "yes")


class Settings(BaseSettings):
    """Crawl worker and API configuration.

    Environment-aware configuration that automatically uses:
    - Docker network URLs when running inside containers
    - Localhost URLs when running on host machine (CLI)

    Attributes:
        redis_url: Redis connection URL for the job queue
        public_url: Public base URL of the API (used by the CLI)
        screenshots_dir: Directory where tiles and manifests are written
        max_tile_height: Maximum screenshot tile height in pixels
        tile_overlap: Overlap between consecutive tiles in pixels
        navigation_timeout_seconds: Timeout for a single page navigation
        handler_timeout_seconds: Timeout for one page load attempt
        network_idle_timeout_seconds: Timeout for the network-idle wait
        progress_timeout_seconds: Timeout for a single progress push
        progress_sink: Where workers deliver progress: "http" posts to the
            job's output base URL, "queue" writes straight to Redis
        max_request_retries: Page load retries after the first attempt before
            a page is dropped
        shutdown_grace_seconds: Pause before the browser is torn down
        job_max_attempts: Whole-job attempts before a job stays failed
        job_retry_backoff_seconds: Delay before a failed job is re-queued
        headless: Run the browser without a visible window
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to the rotating log file
        api_key: Optional API key required in the X-API-Key header
        allow_private_targets: Allow crawling localhost and private IPs

    Raises:
        ValidationError: If values are invalid

    Example:
        >>> settings = Settings(tile_overlap=100, max_tile_height=2048)
        >>> print(settings.screenshots_dir)
        screenshots
    """

    # Service endpoints (will be set by model_validator based on environment)
    redis_url: str = ""
    public_url: str = ""

    # Artifact storage
    screenshots_dir: Path = Path("screenshots")

    # Screenshot tiling
    max_tile_height: int = 4096
    tile_overlap: int = 0

    # Timeouts
    navigation_timeout_seconds: float = 30.0
    handler_timeout_seconds: float = 45.0
    network_idle_timeout_seconds: float = 10.0
    progress_timeout_seconds: float = 2.0

    # Progress delivery
    progress_sink: str = "http"

    # Retries and shutdown
    max_request_retries: int = 3
    shutdown_grace_seconds: float = 1.0
    job_max_attempts: int = 1
    job_retry_backoff_seconds: float = 5.0

    # Browser
    headless: bool = True

    # Logging
    log_level: str = "INFO"
    log_file: Path = Path(".cache/crawlshot.log")

    # API
    api_key: str | None = None
    allow_private_targets: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    @model_validator(mode="after")
    def set_environment_aware_defaults(self) -> "Settings":
        """Set service URLs based on environment if not explicitly configured.

        Environment variable overrides take precedence.

        Returns:
            Settings instance with environment-aware URLs.
        """
        in_docker = is_running_in_docker()

        if not self.redis_url:
            self.redis_url = (
                "redis://crawlshot-queue:6379"
                if in_docker
                else "redis://localhost:6379"
            )

        if not self.public_url:
            self.public_url = (
                "http://crawlshot-api:3006"
                if in_docker
                else "http://localhost:3006"
            )

        return self

    @model_validator(mode="after")
    def validate_tile_geometry(self) -> "Settings":
        """Validate that tile overlap is smaller than the tile height.

        An overlap equal to or larger than the tile height would make every
        tile start at the same offset and the slicer could never advance.

        Returns:
            Validated Settings instance

        Raises:
            ValueError: If the overlap is not smaller than the tile height
        """
        if self.tile_overlap >= self.max_tile_height:
            raise ValueError("tile_overlap must be smaller than max_tile_height")
        return self

    @field_validator("max_tile_height")
    @classmethod
    def validate_max_tile_height(cls: type["Settings"], v: int) -> int:
        """Validate max_tile_height is positive.

        Args:
            cls: The Settings class (provided by Pydantic)
            v: Maximum tile height in pixels

        Returns:
            Validated max_tile_height

        Raises:
            ValueError: If max_tile_height is not positive
        """
        if v <= 0:
            raise ValueError("max_tile_height must be positive")
        return v

    @field_validator("tile_overlap")
    @classmethod
    def validate_tile_overlap(cls: type["Settings"], v: int) -> int:
        """Validate tile_overlap is not negative."""
        if v < 0:
            raise ValueError("tile_overlap must not be negative")
        return v

    @field_validator(
        "navigation_timeout_seconds",
        "handler_timeout_seconds",
        "network_idle_timeout_seconds",
        "progress_timeout_seconds",
    )
    @classmethod
    def validate_timeouts(cls: type["Settings"], v: float) -> float:
        """Validate timeouts are positive.

        Every suspension point in the crawl carries a bounded timeout; a zero
        or negative value would either disable the bound or fail instantly.

        Args:
            cls: The Settings class (provided by Pydantic)
            v: Timeout in seconds

        Returns:
            Validated timeout

        Raises:
            ValueError: If the timeout is not positive
        """
        if v <= 0:
            raise ValueError("timeouts must be positive")
        return v

    @field_validator("progress_sink")
    @classmethod
    def validate_progress_sink(cls: type["Settings"], v: str) -> str:
        """Validate the progress sink is http or queue."""
        sink = v.lower()
        if sink not in {"http", "queue"}:
            raise ValueError(f"progress_sink must be http or queue, got {v!r}")
        return sink

    @field_validator("max_request_retries")
    @classmethod
    def validate_retries(cls: type["Settings"], v: int) -> int:
        """Validate the retry count is not negative."""
        if v < 0:
            raise ValueError("max_request_retries must not be negative")
        return v

    @field_validator("job_max_attempts")
    @classmethod
    def validate_attempts(cls: type["Settings"], v: int) -> int:
        """Validate every job gets at least one attempt."""
        if v <= 0:
            raise ValueError("job_max_attempts must be positive")
        return v
