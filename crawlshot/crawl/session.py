"""Engine-local mutable state for one crawl."""

from __future__ import annotations

from dataclasses import dataclass, field

from crawlshot.crawl.models import PageRecord


@dataclass
class CrawlSession:
    """Single-writer crawl state threaded through the page pipeline.

    Only one page is in flight at a time, so the counters need no locking.

    Attributes:
        start_url: Canonical start URL
        default_language: Language of the start URL (detected or default)
        visited: Canonical URLs already admitted
        section_counts: Admitted pages per section key
        current_page: Number of admitted pages
        terminating: Set once the page budget is exhausted
        pages: Recorded pages in capture order
        pages_failed: Admitted pages that were dropped
        authenticated: Whether the authentication bootstrap has run
    """

    start_url: str
    default_language: str
    visited: set[str] = field(default_factory=set)
    section_counts: dict[str, int] = field(default_factory=dict)
    current_page: int = 0
    terminating: bool = False
    pages: list[PageRecord] = field(default_factory=list)
    pages_failed: int = 0
    authenticated: bool = False

    def admit(self, url: str, section_key: str) -> int:
        """Commit an admission and return the new page number."""
        self.visited.add(url)
        self.section_counts[section_key] = self.section_counts.get(section_key, 0) + 1
        self.current_page += 1
        return self.current_page

    def record(self, page: PageRecord) -> None:
        self.pages.append(page)
