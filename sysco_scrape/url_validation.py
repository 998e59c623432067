"""Checks applied to URLs read from Sysco pages.

Product links are only followed when they stay on a Sysco host. Image URLs
are stored as-is from any host but must still be plain http(s).
"""

import re
from typing import Iterable, Optional
from urllib.parse import urlparse

__all__ = [
    "SYSCO_HOSTS",
    "InvalidURLError",
    "clean_url",
    "validate_url",
    "validate_image_url",
]

SYSCO_HOSTS = frozenset({"shop.sysco.com", "www.sysco.com", "sysco.com"})

_BLOCKED_SCHEMES = ("javascript", "data", "vbscript", "file")
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f]")
# Path traversal (plain or percent-encoded) and inline script
_BAD_FRAGMENTS = re.compile(r"\.\./|%2e%2e|<script|javascript:", re.IGNORECASE)


class InvalidURLError(ValueError):
    """A URL read from a page is unusable or points somewhere it shouldn't."""


def clean_url(url: Optional[str]) -> str:
    """Trim and drop control characters and encoded null bytes."""
    if not url:
        return ""
    return _CONTROL_CHARS.sub("", url.strip()).replace("%00", "")


def _require_http(url: str, what: str) -> str:
    scheme = urlparse(url).scheme.lower()
    if scheme in _BLOCKED_SCHEMES:
        raise InvalidURLError(f"{what} uses blocked scheme '{scheme}': {url}")
    if scheme not in ("http", "https"):
        raise InvalidURLError(f"{what} is not http(s): {url}")
    return scheme


def validate_url(url: str, allowed_hosts: Optional[Iterable[str]] = None) -> str:
    """Return the cleaned URL if it is safe to navigate to.

    Args:
        url: Absolute URL
        allowed_hosts: Hosts to accept (default: SYSCO_HOSTS). Pass an empty
            collection to accept any host.

    Raises:
        InvalidURLError
    """
    url = clean_url(url)
    if not url:
        raise InvalidURLError("Empty URL")

    _require_http(url, "Link")

    host = (urlparse(url).hostname or "").lower()
    if not host:
        raise InvalidURLError(f"Link has no host: {url}")

    hosts = SYSCO_HOSTS if allowed_hosts is None else frozenset(h.lower() for h in allowed_hosts)
    if hosts and host not in hosts:
        raise InvalidURLError(f"Link leaves the shop ({host}): {url}")

    if _BAD_FRAGMENTS.search(url):
        raise InvalidURLError(f"Link looks malicious: {url}")

    return url


def validate_image_url(url: Optional[str]) -> str:
    """Cleaned image URL from any host, or '' when there is none."""
    url = clean_url(url)
    if url:
        _require_http(url, "Image URL")
    return url
