"""Admission policy for discovered URLs.

Two layers decide whether a URL is crawled:

1. ``LinkFilter`` rejects links by shape (documents, archives, API and asset
   paths, fragment-only or query-only hrefs) before they reach admission.
2. ``AdmissionPolicy`` runs the ordered admission checks (dedup, language,
   depth, section sampling, global budget) against the live ``CrawlSession``.

Both are data-driven: link rules and language rules are plain lists that can
be replaced or extended without touching the engine.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Literal

from crawlshot.core.url_validation import path_segments, url_depth
from crawlshot.crawl.language import DEFAULT_LANGUAGE, LanguageStrategy, UrlLanguageDetector
from crawlshot.crawl.models import CrawlConfiguration
from crawlshot.crawl.session import CrawlSession

logger = logging.getLogger(__name__)

ROOT_SECTION = "root"


@dataclass(frozen=True)
class LinkRule:
    """A blocklist rule for discovered links.

    Args:
        name: Rule name used in logs
        pattern: Regex searched in the rule's target
        target: ``"path"`` matches the resolved URL path, ``"href"`` matches
            the raw href as written in the page
    """

    name: str
    pattern: re.Pattern[str]
    target: Literal["path", "href"] = "path"


DEFAULT_LINK_RULES: list[LinkRule] = [
    LinkRule(
        "document", re.compile(r"\.(pdf|doc|docx|xls|xlsx|ppt|pptx|zip|rar)$", re.I)
    ),
    LinkRule("api", re.compile(r"/api/", re.I)),
    LinkRule("assets", re.compile(r"/assets/", re.I)),
    LinkRule("images", re.compile(r"/images/", re.I)),
    LinkRule("css", re.compile(r"/css/", re.I)),
    LinkRule("js", re.compile(r"/js/", re.I)),
    LinkRule("fragment-only", re.compile(r"^\s*#"), target="href"),
    LinkRule("query-only", re.compile(r"^\s*\?"), target="href"),
]


class LinkFilter:
    """Reject discovered links whose shape is never worth capturing."""

    def __init__(self, rules: list[LinkRule] | None = None) -> None:
        self.rules = rules if rules is not None else list(DEFAULT_LINK_RULES)

    def blocked_by(self, href: str, path: str) -> LinkRule | None:
        """Return the first rule matching the link, or None.

        Args:
            href: Raw href attribute as found in the page
            path: Path of the resolved absolute URL
        """
        for rule in self.rules:
            subject = href if rule.target == "href" else path
            if rule.pattern.search(subject):
                return rule
        return None


class Check(str, Enum):
    """Admission checks, in evaluation order."""

    DEDUP = "dedup"
    LANGUAGE = "language"
    DEPTH = "depth"
    SECTION = "section"
    BUDGET = "budget"


@dataclass(frozen=True)
class Verdict:
    """Outcome of an admission evaluation.

    Args:
        admitted: Whether the URL passed every check
        section_key: Section key derived from the URL
        check: The check that rejected the URL, if any
        reason: Human-readable rejection reason
    """

    admitted: bool
    section_key: str
    check: Check | None = None
    reason: str = ""


class AdmissionPolicy:
    """Ordered, short-circuiting admission checks for canonical URLs.

    Checks are re-evaluated on every call because the session counters
    change as the crawl progresses.

    Args:
        config: Crawl configuration holding the limits
        language: Language detection strategy (defaults to
            ``UrlLanguageDetector``)
    """

    def __init__(
        self,
        config: CrawlConfiguration,
        language: LanguageStrategy | None = None,
    ) -> None:
        self.config = config
        self.language = language or UrlLanguageDetector()

    def default_language(self, start_url: str) -> str:
        return self.language.detect(start_url) or DEFAULT_LANGUAGE

    def section_key(self, url: str) -> str:
        """Derive the section key from the first meaningful path segment.

        Examples:
            >>> policy = AdmissionPolicy(CrawlConfiguration())
            >>> policy.section_key("https://example.com/")
            'root'
            >>> policy.section_key("https://example.com/en/blog/post")
            'blog'
        """
        segments = path_segments(url)
        if not segments:
            return ROOT_SECTION
        if self.language.is_language_code(segments[0]):
            return segments[1] if len(segments) > 1 else ROOT_SECTION
        return segments[0]

    def evaluate(self, url: str, session: CrawlSession) -> Verdict:
        """Run all checks against ``url`` without committing anything.

        Reaching the global budget flips ``session.terminating``.

        Args:
            url: Canonical URL
            session: Live crawl session

        Returns:
            Verdict naming the first failing check, if any
        """
        section = self.section_key(url)

        if url in session.visited:
            return Verdict(False, section, Check.DEDUP, "already visited")

        if self.config.default_language_only:
            detected = self.language.detect(url)
            if detected and detected != session.default_language:
                return Verdict(
                    False,
                    section,
                    Check.LANGUAGE,
                    f"language {detected} != {session.default_language}",
                )

        max_depth = self.config.max_depth
        if max_depth > 0:
            depth = url_depth(url)
            if depth > max_depth:
                return Verdict(
                    False, section, Check.DEPTH, f"depth {depth} > {max_depth}"
                )

        sample_size = self.config.sample_size
        if sample_size > 0:
            count = session.section_counts.get(section, 0)
            if count >= sample_size:
                return Verdict(
                    False,
                    section,
                    Check.SECTION,
                    f"section {section} already has {count} pages (max: {sample_size})",
                )

        budget = self.config.max_requests_per_crawl
        if budget > 0 and session.current_page >= budget:
            if not session.terminating:
                logger.info("Page budget of %d reached, stopping admissions", budget)
            session.terminating = True
            return Verdict(
                False, section, Check.BUDGET, f"page budget of {budget} reached"
            )

        return Verdict(True, section)

    def admit(self, url: str, session: CrawlSession) -> Verdict:
        """Evaluate ``url`` and, if it passes, commit it to the session.

        Returns:
            The verdict; on admission the URL is in ``session.visited`` and
            the section and page counters have been incremented
        """
        verdict = self.evaluate(url, session)
        if not verdict.admitted:
            return verdict

        session.admit(url, verdict.section_key)
        budget = self.config.max_requests_per_crawl
        if budget > 0 and session.current_page >= budget:
            logger.info("Admitted final page %d/%d: %s", session.current_page, budget, url)
            session.terminating = True
        return verdict
