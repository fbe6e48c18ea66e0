# File: tests/conftest.py
import asyncio
from collections.abc import AsyncIterator
from typing import Dict, List

import pytest
from aiohttp import web

from site_crawl.config import CrawlConfig
from site_crawl.crawler.errors import BadResponseError


async def serve_app(app: web.Application, port: int) -> AsyncIterator[str]:
    """Start *app* on *port*, yield base URL, ensure cleanup."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", port)
    await site.start()
    try:
        yield f"http://127.0.0.1:{port}"
    finally:
        await runner.cleanup()


def html_page(*hrefs: str) -> web.Response:
    body = "".join(f'<a href="{h}">{h}</a>' for h in hrefs)
    return web.Response(text=f"<html><body>{body}</body></html>", content_type="text/html")


class FakeFetcher:
    """In-memory fetcher over a link graph that records concurrency."""

    def __init__(self, site: "FakeSite") -> None:
        self.site = site

    async def fetch_links(self, url: str) -> List[str]:
        site = self.site
        site.calls.append(url)
        site.active += 1
        site.peak = max(site.peak, site.active)
        try:
            await asyncio.sleep(site.delays.get(url, site.delay))
            if url in site.failing:
                raise BadResponseError(url, 500, "boom")
            return list(site.graph.get(url, []))
        finally:
            site.active -= 1


class FakeSite:
    def __init__(self, graph: Dict[str, List[str]], delay: float = 0.01) -> None:
        self.graph = graph
        self.delay = delay
        self.delays: Dict[str, float] = {}
        self.failing: set = set()
        self.calls: List[str] = []
        self.active = 0
        self.peak = 0
        self.fetchers_created = 0

    def factory(self) -> FakeFetcher:
        self.fetchers_created += 1
        return FakeFetcher(self)


@pytest.fixture()
def make_config():
    """Return a builder for CrawlConfig with test-friendly defaults."""

    def _make(seed_url: str = "https://example.com", **kwargs) -> CrawlConfig:
        kwargs.setdefault("workers", 2)
        kwargs.setdefault("timeout", 2.0)
        kwargs.setdefault("user_agent", "TestAgent/1.0")
        return CrawlConfig(seed_url=seed_url, **kwargs)

    return _make
