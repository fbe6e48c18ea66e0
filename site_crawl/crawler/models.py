"""
Data models for the SiteCrawl crawler.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import List, Optional


class CrawlState(enum.Enum):
    """Lifecycle of one crawl run."""

    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"
    TERMINATED = "terminated"


@dataclass(slots=True)
class CrawlResult:
    """Outcome of one fetch: discovered links, or the error that prevented them."""

    url: str
    links: List[str] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class CrawlStats:
    """Counters kept by the crawler for its closing summary."""

    admitted: int = 0
    fetched: int = 0
    failed: int = 0
    peak_in_flight: int = 0
