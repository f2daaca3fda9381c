"""Utility functions."""

import hashlib
from urllib.parse import urlsplit, urlunsplit


def normalize_site_url(url: str) -> str:
    """Canonical form of a site root URL, used as the registry key.

    Scheme and host are lowercased, and surrounding whitespace and trailing
    slashes are dropped, so that ``https://Docs.Example.com/`` and
    ``https://docs.example.com`` name the same site.
    """
    parts = urlsplit(url.strip())
    url = urlunsplit((parts.scheme.lower(), parts.netloc.lower(), parts.path, parts.query, parts.fragment))
    while url.endswith("/"):
        url = url[:-1]
    return url


def sitemap_url_for(site_url: str) -> str:
    """Location of the sitemap for a site root."""
    return f"{normalize_site_url(site_url)}/sitemap.xml"


def compute_content_hash(content: str | bytes) -> str:
    """Compute SHA256 hash of content."""
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.sha256(content).hexdigest()


def truncate_text(text: str, max_length: int, suffix: str = "...") -> str:
    """Truncate text to max length with suffix."""
    if len(text) <= max_length:
        return text
    return text[: max_length - len(suffix)] + suffix
