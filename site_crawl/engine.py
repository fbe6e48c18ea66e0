# File: site_crawl/engine.py
"""site_crawl.engine: runs a crawl with an HTTP session and OS signal handling."""

from __future__ import annotations

import asyncio
import signal
from typing import Callable, List, Optional

from site_crawl.config import CrawlConfig
from site_crawl.crawler.crawler import AsyncCrawler
from site_crawl.logger import logger

__all__ = ["start_crawl", "install_signal_handlers"]

_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def install_signal_handlers(crawler: AsyncCrawler) -> Callable[[], None]:
    """Route SIGINT/SIGTERM to ``crawler.cancel``; return a function undoing it."""
    loop = asyncio.get_running_loop()
    installed = []
    for sig in _SIGNALS:
        try:
            loop.add_signal_handler(sig, crawler.cancel)
        except (NotImplementedError, RuntimeError, ValueError):
            # Windows or not the main thread
            logger.debug("Cannot install handler for %s", sig.name)
            continue
        installed.append(sig)

    def _remove() -> None:
        for sig in installed:
            loop.remove_signal_handler(sig)

    return _remove


async def start_crawl(
    cfg: CrawlConfig,
    on_admit: Optional[Callable[[str], None]] = None,
) -> List[str]:
    """
    Crawl from ``cfg.seed_url`` and return the admitted URLs in admission order.

    Parameters
    ----------
    cfg : CrawlConfig
        Validated run configuration.
    on_admit : callable, optional
        Called with every URL as soon as it is admitted.
    """
    async with AsyncCrawler(cfg, on_admit=on_admit) as crawler:
        remove_handlers = install_signal_handlers(crawler)
        try:
            return await crawler.crawl()
        finally:
            remove_handlers()
