"""In-memory test doubles for Redis and Playwright.

``FakeRedis`` implements the subset of the redis.asyncio client used by
``QueueManager``. ``FakePage`` and ``FakeBrowser`` serve a small static site
through the Playwright page API used by the crawl pipeline.
"""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from typing import Any

from PIL import Image
from playwright.async_api import Error as PlaywrightError

# =============================================================================
# Redis double
# =============================================================================


def _b(value: Any) -> bytes:
    if isinstance(value, bytes):
        return value
    return str(value).encode()


class FakeRedis:
    """Minimal in-memory subset of the redis.asyncio client API."""

    def __init__(self) -> None:
        self.values: dict[bytes, bytes] = {}
        self.lists: dict[bytes, list[bytes]] = {}
        self.ttls: dict[bytes, int] = {}
        self.closed = False

    async def ping(self) -> bool:
        return True

    async def get(self, key: str) -> bytes | None:
        return self.values.get(_b(key))

    async def set(self, key: str, value: Any, ex: int | None = None) -> bool:
        self.values[_b(key)] = _b(value)
        if ex is not None:
            self.ttls[_b(key)] = ex
        else:
            self.ttls.pop(_b(key), None)
        return True

    async def exists(self, key: str) -> int:
        return int(_b(key) in self.values)

    async def expire(self, key: str, seconds: int) -> bool:
        if _b(key) not in self.values:
            return False
        self.ttls[_b(key)] = seconds
        return True

    async def delete(self, key: str) -> int:
        return int(self.values.pop(_b(key), None) is not None)

    async def lpush(self, key: str, value: Any) -> int:
        items = self.lists.setdefault(_b(key), [])
        items.insert(0, _b(value))
        return len(items)

    async def ltrim(self, key: str, start: int, end: int) -> bool:
        items = self.lists.get(_b(key), [])
        self.lists[_b(key)] = items[start : end + 1]
        return True

    async def lrange(self, key: str, start: int, end: int) -> list[bytes]:
        items = self.lists.get(_b(key), [])
        return items[start : end + 1]

    async def llen(self, key: str) -> int:
        return len(self.lists.get(_b(key), []))

    async def brpop(self, keys: list[str], timeout: int = 0) -> tuple[bytes, bytes] | None:
        for key in keys:
            items = self.lists.get(_b(key))
            if items:
                return _b(key), items.pop()
        return None

    async def aclose(self) -> None:
        self.closed = True


async def no_sleep(_seconds: float) -> None:
    return None


# =============================================================================
# Playwright doubles
# =============================================================================


def make_png(width: int = 200, height: int = 300) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color=(255, 255, 255)).save(buffer, format="PNG")
    return buffer.getvalue()


@dataclass
class FakeSitePage:
    """One page of the fake site."""

    title: str
    links: list[str] = field(default_factory=list)
    height: int = 300
    status: int = 200


@dataclass
class FakeResponse:
    status: int


class FakeElement:
    def __init__(self, visible: bool = True) -> None:
        self._visible = visible

    async def is_visible(self) -> bool:
        return self._visible


class FakePage:
    """Serves a dict of URL -> FakeSitePage through the Playwright page API.

    Args:
        site: Pages keyed by canonical URL
        fail_urls: URLs whose navigation always raises
        elements: Selectors that resolve to a visible element
    """

    def __init__(
        self,
        site: dict[str, FakeSitePage],
        fail_urls: set[str] | None = None,
        elements: set[str] | None = None,
    ) -> None:
        self.site = site
        self.fail_urls = fail_urls or set()
        self.elements = elements or set()
        self.url = "about:blank"
        self.visited: list[str] = []
        self.filled: dict[str, str] = {}
        self.clicked: list[str] = []
        self.scripts: list[str] = []
        self.screenshot_error: Exception | None = None

    async def goto(self, url: str, timeout: float | None = None, wait_until: str = "load") -> FakeResponse:
        self.visited.append(url)
        if url in self.fail_urls:
            raise PlaywrightError(f"net::ERR_CONNECTION_REFUSED at {url}")
        self.url = url
        page = self.site.get(url)
        return FakeResponse(status=page.status if page else 404)

    async def wait_for_load_state(self, state: str = "load", timeout: float | None = None) -> None:
        return None

    async def wait_for_timeout(self, timeout: float) -> None:
        return None

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        self.scripts.append(script)
        return 1

    async def title(self) -> str:
        page = self.site.get(self.url)
        return page.title if page else "Not Found"

    async def screenshot(self, full_page: bool = False) -> bytes:
        if self.screenshot_error is not None:
            raise self.screenshot_error
        page = self.site.get(self.url)
        return make_png(height=page.height if page else 300)

    async def eval_on_selector_all(self, selector: str, script: str) -> list[str]:
        page = self.site.get(self.url)
        return list(page.links) if page else []

    async def query_selector(self, selector: str) -> FakeElement | None:
        return FakeElement() if selector in self.elements else None

    async def fill(self, selector: str, value: str) -> None:
        self.filled[selector] = value

    async def click(self, selector: str) -> None:
        self.clicked.append(selector)


class FakeBrowser:
    """Async context manager standing in for ``PlaywrightBrowser``."""

    def __init__(self, page: FakePage) -> None:
        self._page = page
        self.cookies: list[dict[str, Any]] = []
        self.entered = False
        self.exited = False

    @property
    def page(self) -> FakePage:
        return self._page

    async def add_cookies(self, cookies: list[dict[str, Any]]) -> None:
        self.cookies.extend(cookies)

    async def __aenter__(self) -> FakeBrowser:
        self.entered = True
        return self

    async def __aexit__(self, *exc: object) -> None:
        self.exited = True


def docs_site(count: int = 9) -> dict[str, FakeSitePage]:
    """A single-section site: /docs linking to /docs/p1 .. /docs/pN."""
    children = [f"/docs/p{i}" for i in range(1, count + 1)]
    site = {
        "https://site.test/docs": FakeSitePage(
            title="Docs",
            links=children + ["#top", "?page=2", "/docs/manual.pdf", "https://other.test/x"],
        )
    }
    for i in range(1, count + 1):
        site[f"https://site.test/docs/p{i}"] = FakeSitePage(
            title=f"Page {i}", links=["/docs", f"/docs/p{i % count + 1}"]
        )
    return site
