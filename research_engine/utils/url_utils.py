"""
URL helpers used when turning search results into sources.
"""

from typing import Optional
from urllib.parse import urlparse


def extract_domain(url: str) -> Optional[str]:
    """
    Extract the lowercase host from a URL.

    Credentials and port are dropped. A bare ``host/path`` without a scheme
    is treated as a network location. Returns None when no host is found.

    Args:
        url: URL string as reported by a search provider

    Returns:
        Domain string (e.g. ``docs.python.org``) or None
    """
    if not url:
        return None

    url = url.strip()
    if "://" not in url:
        url = f"//{url}"

    try:
        host = urlparse(url).hostname
    except ValueError:
        return None
    return host or None


def strip_trailing_slash(url: str) -> str:
    """Remove a single trailing slash (instance base URLs)."""
    return url[:-1] if url.endswith("/") else url
