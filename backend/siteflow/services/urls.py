"""URL helpers: origin filtering, deduplication and filename-safe names."""

import re
from urllib.parse import urljoin, urlparse

_DEFAULT_PORTS = {"http": 80, "https": 443}


def url_origin(url: str) -> tuple[str, str, int | None] | None:
    """Return (scheme, host, port) for a URL, or None if it has no origin.

    - Scheme and host are lowercased
    - Default ports (80 for http, 443 for https) are made explicit so that
      ``https://a.com`` and ``https://a.com:443`` share an origin
    """
    try:
        parsed = urlparse(url.strip())
        port = parsed.port
    except (ValueError, AttributeError):
        return None

    scheme = (parsed.scheme or "").lower()
    host = (parsed.hostname or "").lower()
    if not scheme or not host:
        return None

    if port is None:
        port = _DEFAULT_PORTS.get(scheme)
    return scheme, host, port


def is_same_origin(url: str, target: str) -> bool:
    origin = url_origin(url)
    return origin is not None and origin == url_origin(target)


def filter_same_origin(urls: list[str], target: str) -> list[str]:
    """Keep only URLs sharing scheme, host and port with ``target``, in order."""
    target_origin = url_origin(target)
    if target_origin is None:
        return []
    return [url for url in urls if url_origin(url) == target_origin]


def deduplicate_urls(urls: list[str]) -> list[str]:
    """Deduplicate a list of URLs, preserving first-occurrence order.

    Entries are compared as exact strings after stripping surrounding
    whitespace; blanks and non-strings are dropped.
    """
    seen: dict[str, None] = {}
    for url in urls:
        if not isinstance(url, str):
            continue
        url = url.strip()
        if url and url not in seen:
            seen[url] = None
    return list(seen)


def to_absolute_url(url: str, base: str) -> str:
    """Resolve ``url`` against ``base``; returns ``url`` unchanged on failure."""
    try:
        return urljoin(base, url)
    except ValueError:
        return url


def slugify(value: str) -> str:
    value = re.sub(r"https?://", "", value.lower())
    value = re.sub(r"[^a-z0-9]+", "-", value)
    value = value.strip("-")[:80]
    return value or "page"


def safe_url_filename(url: str) -> str:
    """Filename stem for a URL, ignoring its query string and fragment."""
    return slugify(re.sub(r"[?#].*$", "", url))
