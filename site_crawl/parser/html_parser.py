"""HTML anchor extraction for SiteCrawl.

BeautifulSoup does the structural parse; this module only walks the resulting
tree.  The walk uses an explicit stack instead of recursion so that deeply
nested (or hostile) markup cannot exhaust the interpreter's recursion limit.

Hrefs are returned raw, in document order, duplicates included.  Resolving
them into absolute URLs is :mod:`site_crawl.crawler.link_extractor`'s job and
deduplication belongs to the admission filter.
"""
from __future__ import annotations

from collections.abc import Sequence
from typing import List, Union

from bs4 import BeautifulSoup
from bs4.element import Tag

__all__: Sequence[str] = ("parse_html", "extract_hrefs", "walk_anchors")


def parse_html(markup: Union[str, bytes]) -> BeautifulSoup:
    """Parse *markup* into a traversable tree."""
    return BeautifulSoup(markup, "html.parser")


def walk_anchors(root: Tag) -> List[str]:
    """Collect ``href`` values of every ``<a>`` element below *root*."""
    hrefs: List[str] = []
    stack: List[Tag] = [root]
    while stack:
        node = stack.pop()
        if node.name == "a":
            href = node.get("href")
            if isinstance(href, str):
                hrefs.append(href)
        # reversed, so the first child is popped first
        stack.extend(child for child in reversed(node.contents) if isinstance(child, Tag))
    return hrefs


def extract_hrefs(markup: Union[str, bytes]) -> List[str]:
    """Return raw anchor hrefs found in *markup* in document order."""
    return walk_anchors(parse_html(markup))
