"""Error taxonomy for crawl jobs.

Page-level errors (navigation, authentication, capture) are isolated by the
crawl engine and never fail a job. Only ``JobExecutionError`` reaches the
worker as a job failure.
"""


class CrawlshotError(Exception):
    """Base class for all crawlshot errors."""


class ConfigurationError(CrawlshotError, ValueError):
    """Raised when an enqueue payload is invalid. No job is created."""


class NavigationError(CrawlshotError):
    """Raised when a navigation attempt fails or answers with a retryable status."""

    def __init__(self, url: str, message: str) -> None:
        super().__init__(f"Navigation to {url} failed: {message}")
        self.url = url


class AuthenticationError(CrawlshotError):
    """Raised when the authentication bootstrap fails.

    Always handled: the crawl continues unauthenticated.
    """


class CaptureError(CrawlshotError):
    """Raised when a screenshot cannot be taken or tiled."""

    def __init__(self, url: str, message: str) -> None:
        super().__init__(f"Capture of {url} failed: {message}")
        self.url = url


class SliceBoundsError(CrawlshotError):
    """Raised when a computed tile falls outside the image bounds."""


class ProgressReportingError(CrawlshotError):
    """Raised when a progress event cannot be delivered."""


class JobExecutionError(CrawlshotError):
    """Raised when a crawl job fails as a whole."""

    def __init__(self, job_id: str, cause: BaseException) -> None:
        super().__init__(f"Job {job_id} failed: {type(cause).__name__}: {cause}")
        self.job_id = job_id
        self.cause = cause
