"""Data models for a single crawl: configuration, page records and the tree."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

DEFAULT_TOTAL_PAGES = 100


@dataclass(frozen=True)
class Cookie:
    """A name/value cookie injected into the browsing context."""

    name: str
    value: str


@dataclass(frozen=True)
class CookieAuth:
    """Authenticate by injecting cookies scoped to the start URL's domain.

    Args:
        cookies: Cookies to inject before the first navigation
    """

    cookies: tuple[Cookie, ...]

    method = "cookies"


@dataclass(frozen=True)
class CredentialsAuth:
    """Authenticate by submitting a login form once.

    Args:
        login_url: URL of the login page
        username: Username or email to fill in
        password: Password to fill in (never logged)
    """

    login_url: str
    username: str
    password: str = field(repr=False)

    method = "credentials"


AuthSession = Union[CookieAuth, CredentialsAuth]


def auth_from_payload(data: dict[str, Any] | None) -> AuthSession | None:
    """Build an AuthSession from its wire representation.

    Args:
        data: ``{"method": "cookies", "cookies": [...]}`` or
            ``{"method": "credentials", "loginUrl", "username", "password"}``

    Returns:
        The matching AuthSession, or None when no usable auth was given
    """
    if not data:
        return None
    method = data.get("method")
    if method == "cookies":
        cookies = tuple(
            Cookie(name=str(item["name"]), value=str(item["value"]))
            for item in data.get("cookies") or []
        )
        return CookieAuth(cookies=cookies) if cookies else None
    if method == "credentials":
        login_url = data.get("loginUrl")
        username = data.get("username")
        password = data.get("password")
        if not (login_url and username and password):
            return None
        return CredentialsAuth(
            login_url=str(login_url), username=str(username), password=str(password)
        )
    return None


def auth_to_payload(auth: AuthSession | None) -> dict[str, Any] | None:
    """Serialize an AuthSession for the job queue."""
    if auth is None:
        return None
    if isinstance(auth, CookieAuth):
        return {
            "method": auth.method,
            "cookies": [{"name": c.name, "value": c.value} for c in auth.cookies],
        }
    return {
        "method": auth.method,
        "loginUrl": auth.login_url,
        "username": auth.username,
        "password": auth.password,
    }


@dataclass(frozen=True)
class CrawlConfiguration:
    """Immutable policy bundle for one crawl.

    Args:
        max_requests_per_crawl: Global page budget (0 = unlimited)
        max_depth: Maximum URL path depth (0 = unlimited)
        sample_size: Pages admitted per site section (0 = unlimited)
        default_language_only: Skip URLs marked with a non-default language
        request_delay_ms: Base delay before every navigation
        delay_ms: Extra wait after the page has loaded
        device_scale_factor: Browser device scale factor
        auth: Optional authentication applied once at crawl start
    """

    max_requests_per_crawl: int = 0
    max_depth: int = 0
    sample_size: int = 3
    default_language_only: bool = False
    request_delay_ms: int = 1000
    delay_ms: int = 0
    device_scale_factor: float = 1.0
    auth: AuthSession | None = None

    @property
    def total_pages(self) -> int:
        """Page total used for progress percentages."""
        return self.max_requests_per_crawl or DEFAULT_TOTAL_PAGES

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the camelCase form used on the wire and in the queue."""
        return {
            "maxRequestsPerCrawl": self.max_requests_per_crawl,
            "maxDepth": self.max_depth,
            "sampleSize": self.sample_size,
            "defaultLanguageOnly": self.default_language_only,
            "requestDelay": self.request_delay_ms,
            "delay": self.delay_ms,
            "deviceScaleFactor": self.device_scale_factor,
            "auth": auth_to_payload(self.auth),
        }

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> CrawlConfiguration:
        """Build a configuration from a camelCase payload.

        Missing or null values fall back to the defaults.
        """

        def _value(key: str, default: Any) -> Any:
            value = data.get(key)
            return default if value is None else value

        return cls(
            max_requests_per_crawl=int(_value("maxRequestsPerCrawl", 0)),
            max_depth=int(_value("maxDepth", 0)),
            sample_size=int(_value("sampleSize", 3)),
            default_language_only=bool(_value("defaultLanguageOnly", False)),
            request_delay_ms=int(_value("requestDelay", 1000)),
            delay_ms=int(_value("delay", 0)),
            device_scale_factor=float(_value("deviceScaleFactor", 1.0)),
            auth=auth_from_payload(data.get("auth")),
        )


@dataclass(frozen=True)
class PageRecord:
    """A captured page.

    Args:
        url: Canonical URL of the page
        title: Document title at capture time
        screenshots: Public URLs of the screenshot tiles, top to bottom
    """

    url: str
    title: str
    screenshots: tuple[str, ...] = ()


@dataclass
class SiteTreeNode:
    """A page in the site hierarchy with its ordered children."""

    page: PageRecord
    children: list[SiteTreeNode] = field(default_factory=list)

    @property
    def url(self) -> str:
        return self.page.url

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.page.url,
            "title": self.page.title,
            "screenshot": list(self.page.screenshots),
            "children": [child.to_dict() for child in self.children],
        }


@dataclass(frozen=True)
class Manifest:
    """The durable description of one crawl.

    Args:
        start_url: Canonical start URL
        crawl_date: ISO-8601 timestamp of manifest creation
        tree: Root of the site tree, or None when nothing was captured
    """

    start_url: str
    crawl_date: str
    tree: SiteTreeNode | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "startUrl": self.start_url,
            "crawlDate": self.crawl_date,
            "tree": self.tree.to_dict() if self.tree else None,
        }


@dataclass(frozen=True)
class CrawlOutcome:
    """Result of a finished crawl handed back to the worker.

    Args:
        start_url: Canonical start URL
        pages: Page records in capture order
        pages_failed: Number of admitted pages that were dropped
    """

    start_url: str
    pages: tuple[PageRecord, ...]
    pages_failed: int = 0
