"""
Typed failures raised by the page fetcher.

Both kinds are local to one fetch: the crawler logs them and treats the
target as having no outgoing links.
"""
from __future__ import annotations


class FetchError(Exception):
    """Base class for a failed page fetch."""

    def __init__(self, url: str, message: str) -> None:
        super().__init__(message)
        self.url = url


class BadResponseError(FetchError):
    """The server answered with a non-2xx status."""

    _BODY_PREVIEW = 200

    def __init__(self, url: str, status: int, body: str = "") -> None:
        preview = body.strip()[: self._BODY_PREVIEW]
        super().__init__(url, f"received status {status} fetching {url}: {preview!r}")
        self.status = status
        self.body = body


class TransportError(FetchError):
    """DNS, connection, TLS or timeout failure; no response was received."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(url, f"error getting {url}: {reason}")
        self.reason = reason
