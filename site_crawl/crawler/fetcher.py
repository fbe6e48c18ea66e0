"""
Fetcher module: downloads one page and returns the absolute links found on it.
"""
from __future__ import annotations

import asyncio
from typing import List, Optional

from aiohttp import ClientError, ClientSession, ClientTimeout

from site_crawl.crawler.errors import BadResponseError, TransportError
from site_crawl.crawler.link_extractor import resolve_links
from site_crawl.parser.html_parser import extract_hrefs


class Fetcher:
    """Fetches a page over a shared session and extracts its links.

    The session is supplied by the caller and is never closed here.
    No retries: any failure is raised once as a FetchError subclass.
    """

    def __init__(self, session: ClientSession, timeout: Optional[float] = None) -> None:
        self.session = session
        self.timeout = timeout
        self._client_timeout = ClientTimeout(total=timeout) if timeout else None

    async def fetch_links(self, url: str) -> List[str]:
        """
        GET *url* and return resolved links in document order (duplicates kept).

        Raises BadResponseError on a non-2xx status and TransportError when
        the request itself fails or times out.
        """
        kwargs = {"timeout": self._client_timeout} if self._client_timeout else {}
        try:
            async with self.session.get(url, **kwargs) as resp:
                status = resp.status
                body = await resp.text(errors="replace")
        except asyncio.TimeoutError as exc:
            raise TransportError(url, self._timeout_reason()) from exc
        except ClientError as exc:
            raise TransportError(url, str(exc) or type(exc).__name__) from exc

        if not 200 <= status < 300:
            raise BadResponseError(url, status, body)

        return resolve_links(url, extract_hrefs(body))

    def _timeout_reason(self) -> str:
        seconds = self.timeout or self.session.timeout.total
        return f"timed out after {seconds}s" if seconds else "timed out"
