"""
Link resolution utilities for SiteCrawl.

Turns raw ``href`` strings into absolute URLs relative to the page they were
found on (RFC 3986 reference resolution via :func:`urllib.parse.urljoin`).
"""
from __future__ import annotations

import re
from typing import Iterable, List, Optional
from urllib.parse import urljoin, urlsplit

__all__ = ("resolve_link", "resolve_links")

_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f]")
_BAD_ESCAPE_RE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def _parses(url: str) -> bool:
    try:
        urlsplit(url).port
    except ValueError:
        return False
    return True


def resolve_link(base_url: str, raw_link: str) -> Optional[str]:
    """
    Resolve *raw_link* against *base_url*.

    Handles absolute, scheme-relative (``//host``), host-relative (``/path``)
    and path-relative (``./x``, ``../``) references. Returns None when the
    link is not a parsable URI reference; such links are skipped, not errors.
    """
    link = raw_link.strip()
    if _CONTROL_RE.search(link) or _BAD_ESCAPE_RE.search(link):
        return None
    if not _parses(link):
        return None
    try:
        resolved = urljoin(base_url, link)
    except ValueError:
        return None
    if not _parses(resolved):
        return None
    return resolved


def resolve_links(base_url: str, raw_links: Iterable[str]) -> List[str]:
    """Resolve every link, silently dropping the unparsable ones. Order is kept."""
    resolved: List[str] = []
    for raw in raw_links:
        url = resolve_link(base_url, raw)
        if url is not None:
            resolved.append(url)
    return resolved
