"""Crawler core: admission filter, fetcher and orchestrator."""
from site_crawl.crawler.admission import AdmissionFilter
from site_crawl.crawler.crawler import AsyncCrawler
from site_crawl.crawler.errors import BadResponseError, FetchError, TransportError
from site_crawl.crawler.fetcher import Fetcher
from site_crawl.crawler.models import CrawlResult, CrawlState, CrawlStats

__all__ = [
    "AdmissionFilter",
    "AsyncCrawler",
    "BadResponseError",
    "CrawlResult",
    "CrawlState",
    "CrawlStats",
    "FetchError",
    "Fetcher",
    "TransportError",
]
