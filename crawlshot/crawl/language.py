"""Language detection from URL structure.

Language markers are read from the URL only (path prefix, query parameter or
subdomain), never from page content. Detection is a pluggable strategy: the
engine depends on the ``LanguageStrategy`` protocol, and the default
``UrlLanguageDetector`` is built from an ordered list of rules over a fixed
allow-list of language codes.

Examples:
    >>> detector = UrlLanguageDetector()
    >>> detector.detect("https://example.com/fr/produits")
    'fr'
    >>> detector.detect("https://example.com/docs?lang=de")
    'de'
    >>> detector.detect("https://ja.example.com/")
    'ja'
    >>> detector.detect("https://example.com/about") is None
    True
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import SplitResult, urlsplit

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "en"

COMMON_LANGUAGE_CODES: frozenset[str] = frozenset(
    {"en", "fr", "de", "es", "it", "pt", "ru", "ja", "ko", "zh"}
)


class LanguageStrategy(Protocol):
    """Protocol for URL language detection used by the admission policy."""

    def detect(self, url: str) -> str | None:
        """Return the language code marked in ``url``, or None."""
        ...

    def is_language_code(self, segment: str) -> bool:
        """Return True if a path segment is a recognized language prefix."""
        ...


@dataclass(frozen=True)
class LanguageRule:
    """One detection rule: a regex applied to a part of the URL.

    Args:
        name: Human-readable rule name
        part: Extracts the URL part the pattern is matched against
        pattern: Compiled regex whose first group captures the language code
    """

    name: str
    part: Callable[[SplitResult], str]
    pattern: re.Pattern[str]


def _code_group(codes: Iterable[str]) -> str:
    return "|".join(sorted(codes))


def build_rules(codes: Iterable[str]) -> list[LanguageRule]:
    """Build the ordered rule list for an allow-list of language codes."""
    group = _code_group(codes)
    rules = [
        LanguageRule(
            name="path-prefix",
            part=lambda parts: parts.path,
            pattern=re.compile(rf"^/({group})(?:/|$)", re.IGNORECASE),
        )
    ]
    for param in ("lang", "language", "locale", "l"):
        rules.append(
            LanguageRule(
                name=f"query-{param}",
                part=lambda parts: "?" + parts.query if parts.query else "",
                pattern=re.compile(
                    rf"[?&]{param}=({group})(?:&|$)", re.IGNORECASE
                ),
            )
        )
    return rules


class UrlLanguageDetector:
    """Detect language markers in URLs from a fixed allow-list of codes.

    Attributes:
        codes: Recognized lowercase language codes
        rules: Ordered detection rules; the first match wins. The subdomain
            check runs after all rules.
    """

    def __init__(
        self,
        codes: Iterable[str] = COMMON_LANGUAGE_CODES,
        rules: list[LanguageRule] | None = None,
    ) -> None:
        self.codes = frozenset(code.lower() for code in codes)
        self.rules = rules if rules is not None else build_rules(self.codes)

    def detect(self, url: str) -> str | None:
        """Return the language code marked in ``url``, or None.

        Args:
            url: Absolute URL

        Returns:
            Lowercase language code, or None when the URL carries no marker
        """
        try:
            parts = urlsplit(url)
        except ValueError:
            logger.debug("Unparseable URL during language detection: %s", url)
            return None

        for rule in self.rules:
            match = rule.pattern.search(rule.part(parts))
            if match:
                return match.group(1).lower()

        labels = (parts.hostname or "").split(".")
        if len(labels) >= 3 and labels[0].lower() in self.codes:
            return labels[0].lower()
        return None

    def is_language_code(self, segment: str) -> bool:
        return segment.lower() in self.codes

    def default_language(self, start_url: str) -> str:
        """Language of the start URL, falling back to English."""
        return self.detect(start_url) or DEFAULT_LANGUAGE
