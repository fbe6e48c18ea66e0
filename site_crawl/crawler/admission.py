"""
Admission filter: decides, once per normalized URL, whether a page is crawled.

Two criteria:

1. the URL has not been admitted before;
2. the URL belongs to the seed's base domain (subdomains included).

Query strings and fragments count: ``/blog?page=2`` is a different page from
``/blog``. A single trailing slash and the http/https distinction do not.
"""
from __future__ import annotations

from typing import Set
from urllib.parse import urlsplit, urlunsplit

__all__ = ("AdmissionFilter", "normalize_url", "base_domain")

CANONICAL_SCHEME = "https"


def normalize_url(url: str) -> str:
    """Identity key of *url*: canonical scheme, one trailing slash removed."""
    parts = urlsplit(url)
    path = parts.path[:-1] if parts.path.endswith("/") else parts.path
    return urlunsplit((CANONICAL_SCHEME, parts.netloc, path, parts.query, parts.fragment))


def base_domain(url: str) -> str:
    """
    Second-from-last label of the hostname (``sub.example.com`` -> ``example``).

    A single-label host is returned as is. Not public-suffix aware:
    ``a.co.uk`` and ``b.co.uk`` both yield ``co``.
    """
    host = urlsplit(url).hostname or ""
    labels = host.split(".")
    if len(labels) == 1:
        return labels[0]
    return labels[-2]


class AdmissionFilter:
    """Stateful gate owned by a single coordinator; not safe for concurrent use."""

    def __init__(self, seed_url: str) -> None:
        self.base_domain = base_domain(seed_url)
        self._visited: Set[str] = set()

    def visit(self, url: str) -> bool:
        """Mark *url* visited and return True, or return False if it must be skipped."""
        try:
            key = normalize_url(url)
            domain = base_domain(url)
        except ValueError:
            return False

        if key in self._visited:
            return False
        if domain != self.base_domain:
            return False

        self._visited.add(key)
        return True

    def __contains__(self, url: object) -> bool:
        if not isinstance(url, str):
            return False
        try:
            return normalize_url(url) in self._visited
        except ValueError:
            return False

    def __len__(self) -> int:
        return len(self._visited)
