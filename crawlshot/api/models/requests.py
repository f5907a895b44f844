"""Request models for API endpoints.

Example:
    from crawlshot.api.models.requests import CrawlRequest

    request = CrawlRequest(url="https://example.com", output_base_url="http://localhost:3006")
"""

from typing import Any, Literal

from pydantic import AliasChoices, Field

from crawlshot.api.models.common import CamelModel


class CookieModel(CamelModel):
    name: str
    value: str


class AuthModel(CamelModel):
    """Authentication options for a crawl.

    Attributes:
        method: ``cookies`` or ``credentials``
        cookies: Cookies to inject (cookie auth)
        login_url: Login page URL (credential auth)
        username: Username or email (credential auth)
        password: Password (credential auth)
    """

    method: Literal["cookies", "credentials"]
    cookies: list[CookieModel] | None = None
    login_url: str | None = None
    username: str | None = None
    password: str | None = Field(default=None, repr=False)


class CrawlRequest(CamelModel):
    """Enqueue request for a crawl job.

    ``url`` and ``output_base_url`` are optional here so that a missing value
    is reported as a 400 by the job service rather than a schema error.
    ``publicUrl`` is accepted as an alias of ``outputBaseUrl``.
    """

    url: str | None = None
    output_base_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("outputBaseUrl", "output_base_url", "publicUrl"),
    )
    max_requests_per_crawl: int | None = None
    max_depth: int | None = None
    sample_size: int | None = None
    default_language_only: bool | None = None
    delay: int | None = None
    request_delay: int | None = None
    device_scale_factor: float | None = None
    auth: AuthModel | None = None

    def to_payload(self) -> dict[str, Any]:
        """Return the camelCase payload understood by the job service."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ProgressRequest(CamelModel):
    """Progress event posted by a worker."""

    stage: str
    current_page: int | None = None
    total_pages: int | None = None
    current_url: str | None = None
    progress: int = 0
