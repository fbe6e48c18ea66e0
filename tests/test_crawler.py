# File: tests/test_crawler.py
# Test-suite for the SiteCrawl orchestrator
from __future__ import annotations

import asyncio
import os
import signal
import sys
import time

import pytest
from aiohttp import web

from conftest import FakeSite, html_page, serve_app
from site_crawl.config import CrawlConfig
from site_crawl.crawler.crawler import AsyncCrawler
from site_crawl.crawler.models import CrawlState
from site_crawl.engine import install_signal_handlers, start_crawl

SEED = "https://example.com"

#: number of seconds a “slow” handler sleeps in the concurrency test
SLOW_SLEEP: float = 0.5


async def run_crawler(crawler: AsyncCrawler, timeout: float = 5.0):
    return await asyncio.wait_for(crawler.crawl(), timeout=timeout)


# --------------------------------------------------------------------------- #
#                        End-to-end against a local server                    #
# --------------------------------------------------------------------------- #


def _site_app() -> web.Application:
    app = web.Application()

    async def root(_):
        return html_page("/page1", "/page1/", "http://other.com/", "/page2?x=1", "/broken")

    async def page1(_):
        return html_page("../", "./page3")

    async def page2(_):
        return html_page("/page1")

    async def page3(_):
        return html_page()

    async def broken(_):
        return web.Response(status=500, text="internal error")

    app.router.add_get("/", root)
    app.router.add_get("/page1", page1)
    app.router.add_get("/page2", page2)
    app.router.add_get("/page3", page3)
    app.router.add_get("/broken", broken)
    return app


@pytest.mark.asyncio()
async def test_basic_crawl(make_config, unused_tcp_port: int):
    async for base in serve_app(_site_app(), unused_tcp_port):
        printed = []
        async with AsyncCrawler(make_config(base), on_admit=printed.append) as crawler:
            urls = await run_crawler(crawler)

    assert urls[0] == base
    assert set(urls) == {
        base,
        f"{base}/page1",
        f"{base}/page2?x=1",
        f"{base}/broken",
        f"{base}/page3",
    }
    assert printed == urls
    assert crawler.state is CrawlState.TERMINATED
    assert crawler.stats.admitted == 5
    assert crawler.stats.fetched == 4
    assert crawler.stats.failed == 1


@pytest.mark.asyncio()
async def test_start_crawl_closes_session(make_config, unused_tcp_port: int):
    async for base in serve_app(_site_app(), unused_tcp_port):
        urls = await asyncio.wait_for(start_crawl(make_config(base, workers=4)), timeout=5)

    assert len(urls) == 5


@pytest.mark.asyncio()
async def test_concurrency(make_config, unused_tcp_port: int):
    """Two slow pages are fetched at the same time with two workers."""
    app = web.Application()

    async def slow(_):
        await asyncio.sleep(SLOW_SLEEP)
        return html_page()

    async def root(_):
        return html_page("/slow1", "/slow2")

    app.router.add_get("/", root)
    app.router.add_get("/slow1", slow)
    app.router.add_get("/slow2", slow)

    async for base in serve_app(app, unused_tcp_port):
        start = time.perf_counter()
        async with AsyncCrawler(make_config(base, workers=2)) as crawler:
            urls = await run_crawler(crawler)
        elapsed = time.perf_counter() - start

    assert elapsed < SLOW_SLEEP * 1.8
    assert set(urls) == {base, f"{base}/slow1", f"{base}/slow2"}


# --------------------------------------------------------------------------- #
#                         Orchestrator with fake fetchers                     #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio()
async def test_bounded_concurrency(make_config):
    children = [f"{SEED}/p{i}" for i in range(30)]
    site = FakeSite({SEED: children})
    crawler = AsyncCrawler(make_config(workers=3), fetcher_factory=site.factory)

    urls = await run_crawler(crawler)

    assert len(urls) == 31
    assert site.fetchers_created == 3
    assert site.peak == 3
    assert crawler.stats.peak_in_flight == 3
    assert site.active == 0


@pytest.mark.asyncio()
async def test_self_referential_page_terminates(make_config):
    site = FakeSite({SEED: [SEED, f"{SEED}/", "http://example.com"]})
    crawler = AsyncCrawler(make_config(workers=4), fetcher_factory=site.factory)

    urls = await run_crawler(crawler, timeout=2.0)

    assert urls == [SEED]
    assert site.calls == [SEED]
    assert crawler.state is CrawlState.TERMINATED


@pytest.mark.asyncio()
async def test_late_discoveries_are_not_lost(make_config):
    """The queue runs empty while a slow fetch is still about to add work."""
    site = FakeSite(
        {
            SEED: [f"{SEED}/fast", f"{SEED}/slow"],
            f"{SEED}/slow": [f"{SEED}/deep"],
            f"{SEED}/deep": [f"{SEED}/deeper"],
        }
    )
    site.delays[f"{SEED}/slow"] = 0.2
    crawler = AsyncCrawler(make_config(workers=2), fetcher_factory=site.factory)

    urls = await run_crawler(crawler)

    assert urls == [SEED, f"{SEED}/fast", f"{SEED}/slow", f"{SEED}/deep", f"{SEED}/deeper"]


@pytest.mark.asyncio()
async def test_subdomains_crawled_other_domains_skipped(make_config):
    site = FakeSite(
        {
            SEED: ["https://blog.example.com/post", "https://other.com/x", "http://example.com/"],
            "https://blog.example.com/post": ["https://www.other.org/"],
        }
    )
    crawler = AsyncCrawler(make_config(), fetcher_factory=site.factory)

    urls = await run_crawler(crawler)

    assert urls == [SEED, "https://blog.example.com/post"]
    assert "https://other.com/x" not in site.calls


@pytest.mark.asyncio()
async def test_fetch_failure_is_isolated(make_config):
    site = FakeSite(
        {
            SEED: [f"{SEED}/a", f"{SEED}/b", f"{SEED}/c"],
            f"{SEED}/a": [f"{SEED}/d"],
            f"{SEED}/b": [f"{SEED}/never"],
        }
    )
    site.failing.add(f"{SEED}/b")
    crawler = AsyncCrawler(make_config(workers=2), fetcher_factory=site.factory)

    urls = await run_crawler(crawler)

    assert set(urls) == {SEED, f"{SEED}/a", f"{SEED}/b", f"{SEED}/c", f"{SEED}/d"}
    assert crawler.stats.failed == 1
    assert crawler.stats.fetched == 4
    assert crawler.state is CrawlState.TERMINATED


@pytest.mark.asyncio()
async def test_unexpected_fetcher_exception_does_not_abort(make_config):
    class Exploding:
        async def fetch_links(self, url):
            if url != SEED:
                raise RuntimeError("bug")
            return [f"{SEED}/x", f"{SEED}/y"]

    crawler = AsyncCrawler(make_config(), fetcher_factory=Exploding)

    urls = await run_crawler(crawler)

    assert urls == [SEED, f"{SEED}/x", f"{SEED}/y"]
    assert crawler.stats.failed == 2


@pytest.mark.asyncio()
async def test_cancel_drains_in_flight_and_stops_leasing(make_config):
    slow = [f"{SEED}/slow{i}" for i in range(5)]
    site = FakeSite({SEED: slow, slow[0]: [f"{SEED}/after"]})
    for url in slow:
        site.delays[url] = 0.3
    crawler = AsyncCrawler(make_config(workers=2), fetcher_factory=site.factory)

    task = asyncio.create_task(crawler.crawl())
    await asyncio.sleep(0.1)
    assert crawler.state is CrawlState.RUNNING
    start = time.perf_counter()
    crawler.cancel()
    urls = await asyncio.wait_for(task, timeout=2.0)
    elapsed = time.perf_counter() - start

    assert elapsed < 1.0
    assert site.calls == [SEED, slow[0], slow[1]]
    assert f"{SEED}/after" not in urls
    assert site.active == 0
    assert crawler.state is CrawlState.TERMINATED


@pytest.mark.asyncio()
async def test_cancel_before_start(make_config):
    site = FakeSite({SEED: [f"{SEED}/a"]})
    crawler = AsyncCrawler(make_config(), fetcher_factory=site.factory)
    crawler.cancel()

    assert await run_crawler(crawler) == []
    assert site.calls == []
    assert crawler.state is CrawlState.TERMINATED


@pytest.mark.asyncio()
async def test_outer_cancellation_cancels_fetches(make_config):
    site = FakeSite({SEED: [f"{SEED}/a", f"{SEED}/b"]})
    site.delays.update({f"{SEED}/a": 5, f"{SEED}/b": 5})
    crawler = AsyncCrawler(make_config(), fetcher_factory=site.factory)

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(crawler.crawl(), timeout=0.2)

    assert site.active == 0
    assert crawler.state is CrawlState.TERMINATED


@pytest.mark.asyncio()
async def test_crawl_runs_once(make_config):
    site = FakeSite({})
    crawler = AsyncCrawler(make_config(), fetcher_factory=site.factory)
    await run_crawler(crawler)

    with pytest.raises(RuntimeError):
        await crawler.crawl()
    assert not hasattr(crawler, "run")


@pytest.mark.asyncio()
async def test_crawl_requires_session(make_config):
    with pytest.raises(RuntimeError, match="Session not initialized"):
        await AsyncCrawler(make_config()).crawl()


def test_rejects_non_positive_workers():
    cfg = CrawlConfig.model_construct(seed_url=SEED, workers=0, timeout=1.0, user_agent="x")
    with pytest.raises(ValueError):
        AsyncCrawler(cfg)


@pytest.mark.asyncio()
@pytest.mark.skipif(sys.platform == "win32", reason="loop signal handlers are POSIX only")
async def test_sigint_cancels_crawl(make_config):
    site = FakeSite({SEED: [f"{SEED}/a"]})
    crawler = AsyncCrawler(make_config(), fetcher_factory=site.factory)
    remove = install_signal_handlers(crawler)
    try:
        os.kill(os.getpid(), signal.SIGINT)
        await asyncio.sleep(0.05)
    finally:
        remove()

    assert await run_crawler(crawler) == []
