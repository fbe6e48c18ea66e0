"""Markup parsing helpers."""
from site_crawl.parser.html_parser import extract_hrefs

__all__ = ["extract_hrefs"]
