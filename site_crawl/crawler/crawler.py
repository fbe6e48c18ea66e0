from __future__ import annotations

import asyncio
import time
from typing import Callable, List, Optional, Protocol, Set

from aiohttp import ClientSession, ClientTimeout

from site_crawl.config import CrawlConfig
from site_crawl.crawler.admission import AdmissionFilter
from site_crawl.crawler.errors import FetchError
from site_crawl.crawler.fetcher import Fetcher
from site_crawl.crawler.models import CrawlResult, CrawlState, CrawlStats
from site_crawl.logger import logger

__all__ = ("AsyncCrawler", "LinkFetcher")


class LinkFetcher(Protocol):
    async def fetch_links(self, url: str) -> List[str]: ...


class AsyncCrawler:
    """Asynchronous crawler with a bounded worker pool and quiescence detection.

    One coordinator coroutine owns the target queue, the admission filter and
    the slot accounting. Fetches run as separate tasks and talk back only by
    returning their fetcher to the pool and posting a CrawlResult.
    """

    def __init__(
        self,
        config: CrawlConfig,
        *,
        fetcher_factory: Optional[Callable[[], LinkFetcher]] = None,
        on_admit: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.config = config
        self.workers: int = config.workers
        if self.workers < 1:
            raise ValueError("workers must be > 0")
        self.filter = AdmissionFilter(config.seed_url)
        self.state = CrawlState.IDLE
        self.stats = CrawlStats()
        self.admitted: List[str] = []
        self.session: Optional[ClientSession] = None

        self._fetcher_factory = fetcher_factory
        self._on_admit = on_admit
        self._targets: asyncio.Queue[str] = asyncio.Queue()
        self._results: asyncio.Queue[CrawlResult] = asyncio.Queue()
        self._pool: asyncio.Queue[LinkFetcher] = asyncio.Queue(maxsize=self.workers)
        self._cancelled = asyncio.Event()
        self._cancel_wait: Optional[asyncio.Future] = None
        self._in_flight: Set[asyncio.Task] = set()

    async def __aenter__(self) -> AsyncCrawler:
        self.session = ClientSession(
            timeout=ClientTimeout(total=self.config.timeout),
            headers={"User-Agent": self.config.user_agent},
            raise_for_status=False,
        )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self.session and not self.session.closed:
            await self.session.close()

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #

    def cancel(self) -> None:
        """Stop leasing workers; the crawl drains in-flight fetches and terminates."""
        if not self._cancelled.is_set():
            logger.info("Cancellation requested")
        self._cancelled.set()

    @property
    def in_flight(self) -> int:
        """Number of currently leased worker slots."""
        return self.workers - self._pool.qsize()

    async def crawl(self) -> List[str]:
        """Run the crawl to quiescence or cancellation; return admitted URLs in order."""
        if self.state is not CrawlState.IDLE:
            raise RuntimeError("crawl() can only be run once per crawler")
        for _ in range(self.workers):
            self._pool.put_nowait(self._new_fetcher())

        self.state = CrawlState.RUNNING
        logger.info("Crawl started: %s (%d workers)", self.config.seed_url, self.workers)
        start = time.monotonic()
        self._cancel_wait = asyncio.ensure_future(self._cancelled.wait())
        self._targets.put_nowait(self.config.seed_url)
        try:
            await self._dispatch_loop()
            if self.state is CrawlState.DRAINING:
                await self._drain()
        finally:
            self._cancel_wait.cancel()
            pending = list(self._in_flight)
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            self.state = CrawlState.TERMINATED

        duration = time.monotonic() - start
        logger.info(
            "Finished: %d admitted, %d fetched, %d failed, peak %d in flight, %.2f s",
            self.stats.admitted,
            self.stats.fetched,
            self.stats.failed,
            self.stats.peak_in_flight,
            duration,
        )
        return list(self.admitted)

    # ------------------------------------------------------------------ #
    # Coordinator                                                        #
    # ------------------------------------------------------------------ #

    async def _dispatch_loop(self) -> None:
        next_target: Optional[asyncio.Task] = None
        next_result: Optional[asyncio.Task] = None
        try:
            while not self._cancelled.is_set():
                if next_target is None:
                    next_target = asyncio.ensure_future(self._targets.get())
                if next_result is None:
                    next_result = asyncio.ensure_future(self._results.get())

                done, _ = await asyncio.wait(
                    {next_target, next_result, self._cancel_wait},
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if self._cancelled.is_set():
                    break

                if next_target in done:
                    url = next_target.result()
                    next_target = None
                    await self._dispatch(url)
                    if self._cancelled.is_set():
                        break

                if next_result in done:
                    self._consume(next_result.result())
                    next_result = None

                if self._quiescent(next_target, next_result):
                    return
            self.state = CrawlState.DRAINING
        finally:
            for waiter in (next_target, next_result):
                if waiter is not None:
                    waiter.cancel()

    def _quiescent(self, next_target: Optional[asyncio.Task], next_result: Optional[asyncio.Task]) -> bool:
        # a finished getter holds an item that has already left its queue
        for waiter in (next_target, next_result):
            if waiter is not None and waiter.done():
                return False
        return (
            self._targets.empty()
            and self._results.empty()
            and self._pool.qsize() == self.workers
        )

    async def _dispatch(self, url: str) -> None:
        if not self.filter.visit(url):
            return
        self._admit(url)

        fetcher = await self._lease()
        if fetcher is None:
            return
        self.stats.peak_in_flight = max(self.stats.peak_in_flight, self.in_flight)
        task = asyncio.create_task(self._fetch(fetcher, url))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    def _admit(self, url: str) -> None:
        logger.debug("Admitted %s", url)
        self.admitted.append(url)
        self.stats.admitted += 1
        if self._on_admit is not None:
            self._on_admit(url)

    async def _lease(self) -> Optional[LinkFetcher]:
        """Take a free fetcher, waiting if none is free. None if cancelled meanwhile."""
        if not self._pool.empty():
            return self._pool.get_nowait()
        waiter = asyncio.ensure_future(self._pool.get())
        done, _ = await asyncio.wait({waiter, self._cancel_wait}, return_when=asyncio.FIRST_COMPLETED)
        if self._cancel_wait in done:
            if waiter in done:
                self._pool.put_nowait(waiter.result())
            else:
                waiter.cancel()
            return None
        return waiter.result()

    def _consume(self, result: CrawlResult, *, enqueue: bool = True) -> None:
        if result.ok:
            self.stats.fetched += 1
            if enqueue:
                for link in result.links:
                    self._targets.put_nowait(link)
            return
        self.stats.failed += 1
        if isinstance(result.error, FetchError):
            logger.warning("Failed %s: %s", result.url, result.error)
        else:
            logger.error("Unexpected error fetching %s: %r", result.url, result.error)

    async def _drain(self) -> None:
        if self._in_flight:
            logger.info("Draining %d in-flight fetches", len(self._in_flight))
            await asyncio.wait(set(self._in_flight))
        while not self._results.empty():
            self._consume(self._results.get_nowait(), enqueue=False)

    # ------------------------------------------------------------------ #
    # Workers                                                            #
    # ------------------------------------------------------------------ #

    def _new_fetcher(self) -> LinkFetcher:
        if self._fetcher_factory is not None:
            return self._fetcher_factory()
        if not self.session:
            raise RuntimeError("Session not initialized")
        return Fetcher(self.session, self.config.timeout)

    async def _fetch(self, fetcher: LinkFetcher, url: str) -> None:
        result = CrawlResult(url)
        try:
            result.links = list(await fetcher.fetch_links(url))
        except Exception as exc:
            result.error = exc
        finally:
            # both puts are synchronous, so the coordinator never sees the
            # slot back without the result
            self._pool.put_nowait(fetcher)
            self._results.put_nowait(result)
