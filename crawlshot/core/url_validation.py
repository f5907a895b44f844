"""URL canonicalization and validation.

Every URL that enters the crawl (start URL, discovered links, page records)
is canonicalized before it is used as a dedup or lookup key. Enqueue-time
validation rejects non-HTTP schemes and, unless explicitly allowed, targets
that resolve to internal resources.
"""

from __future__ import annotations

import ipaddress
import re
from urllib.parse import quote, urljoin, urlsplit, urlunsplit

from crawlshot.core.errors import ConfigurationError

# Blocked hostnames for SSRF protection (case-insensitive)
# Note: localhost is handled separately by allow_localhost flag
BLOCKED_HOSTNAMES = {
    "metadata.google.internal",
    "metadata",
}

DEFAULT_PORTS = {"http": 80, "https": 443}

# Characters left untouched when re-encoding the path and query
_PATH_SAFE = "/%:@!$&'()*+,;=-._~"
_QUERY_SAFE = "/?%:@!$&'()*+,;=-._~"


def _remove_dot_segments(path: str) -> str:
    """Resolve ``.`` and ``..`` segments (RFC 3986 section 5.2.4)."""
    output: list[str] = []
    for segment in path.split("/"):
        if segment == "..":
            if len(output) > 1:
                output.pop()
        elif segment != ".":
            output.append(segment)
    if path.endswith(("/.", "/..")):
        output.append("")
    resolved = "/".join(output)
    return resolved if resolved.startswith("/") else "/" + resolved


def canonicalize_url(url: str) -> str:
    """Return the canonical form of an absolute http(s) URL.

    Lowercases scheme and host, drops default ports and the fragment, turns an
    empty path into ``/``, resolves dot segments and normalizes percent
    encoding. The query string is kept as-is apart from encoding.

    Args:
        url: Absolute URL

    Returns:
        Canonical URL string

    Raises:
        ValueError: If the URL has no scheme or hostname

    Examples:
        >>> canonicalize_url("HTTPS://Example.com:443/a/./b/../c#top")
        'https://example.com/a/c'
        >>> canonicalize_url("https://example.com")
        'https://example.com/'
    """
    parts = urlsplit(url.strip())
    scheme = parts.scheme.lower()
    hostname = parts.hostname
    if not scheme or not hostname:
        raise ValueError(f"Not an absolute URL: {url}")

    netloc = hostname.lower()
    if ":" in netloc:
        netloc = f"[{netloc}]"
    port = parts.port
    if port is not None and DEFAULT_PORTS.get(scheme) != port:
        netloc = f"{netloc}:{port}"
    if parts.username:
        userinfo = parts.username
        if parts.password:
            userinfo = f"{userinfo}:{parts.password}"
        netloc = f"{userinfo}@{netloc}"

    path = _remove_dot_segments(quote(parts.path or "/", safe=_PATH_SAFE))
    query = quote(parts.query, safe=_QUERY_SAFE)
    return urlunsplit((scheme, netloc, path, query, ""))


def resolve_url(base: str, href: str) -> str:
    """Resolve ``href`` against ``base`` and canonicalize the result."""
    return canonicalize_url(urljoin(base, href))


def path_segments(url: str) -> list[str]:
    """Return the non-empty path segments of a URL."""
    return [segment for segment in urlsplit(url).path.split("/") if segment]


def url_depth(url: str) -> int:
    """Count non-empty path segments from the origin.

    Examples:
        >>> url_depth("https://example.com/")
        0
        >>> url_depth("https://example.com/docs/guide/")
        2
    """
    return len(path_segments(url))


def same_hostname(url: str, other: str) -> bool:
    """Return True if both URLs share the same hostname."""
    return (urlsplit(url).hostname or "").lower() == (
        urlsplit(other).hostname or ""
    ).lower()


def parent_url(url: str) -> str:
    """Truncate the last ``/``-delimited path segment of a canonical URL.

    The root path stays ``/``. Query and fragment are dropped.

    Examples:
        >>> parent_url("https://example.com/docs/guide")
        'https://example.com/docs'
        >>> parent_url("https://example.com/docs")
        'https://example.com/'
    """
    parts = urlsplit(url)
    path = parts.path
    if path != "/":
        path = path[: path.rfind("/")] or "/"
    return urlunsplit((parts.scheme, parts.netloc, path, "", ""))


def is_http_url(url: str | None) -> bool:
    """Return True for absolute http(s) URLs with a hostname."""
    if not url:
        return False
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.hostname)


class UrlValidator:
    """Validates crawl targets and prevents SSRF attacks.

    Args:
        allow_private_ips: Allow private IP addresses (e.g., 192.168.x.x)
        allow_localhost: Allow localhost/127.0.0.1
    """

    def __init__(
        self,
        allow_private_ips: bool = False,
        allow_localhost: bool = False,
    ) -> None:
        self.allow_private_ips = allow_private_ips
        self.allow_localhost = allow_localhost

    def validate(self, url: str) -> None:
        """Validate URL and check for SSRF risks.

        Args:
            url: URL to validate

        Raises:
            ConfigurationError: If URL is invalid or poses SSRF risk
        """
        if not is_http_url(url):
            raise ConfigurationError(f"URL must be an absolute http(s) URL: {url}")

        hostname = urlsplit(url).hostname or ""
        hostname_lower = hostname.lower()

        if hostname_lower in BLOCKED_HOSTNAMES:
            raise ConfigurationError(f"Blocked hostname: {url}")

        try:
            ip = ipaddress.ip_address(hostname)
        except ValueError:
            ip = None
            # Decimal: 2130706433 = 127.0.0.1
            # Hex: 0x7f000001 = 127.0.0.1
            if re.match(r"^(0x[0-9a-fA-F]+|\d{8,})$", hostname):
                raise ConfigurationError(
                    f"IP address in alternate notation not allowed: {url}"
                )

        if not self.allow_localhost:
            if hostname_lower in ("localhost", "127.0.0.1", "::1"):
                raise ConfigurationError(f"Localhost access not allowed: {url}")
            if ip is not None and ip.is_loopback:
                raise ConfigurationError(f"Localhost access not allowed: {url}")

        if not self.allow_private_ips and ip is not None and (
            ip.is_private
            or ip.is_link_local
            or ip.is_reserved
            or ip.is_multicast
            or ip.is_unspecified
        ):
            raise ConfigurationError(f"Non-public IP addresses not allowed: {url}")
