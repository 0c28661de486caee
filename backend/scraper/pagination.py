"""
Pagination Discovery

Stage 1 of the scraping pipeline: determine how many listing pages to visit.

Two DOM signals are combined with a configured minimum:
1. The highest ``?page=N`` found in any link
2. The "Last"/"Laatste" link, or the highest page inside a pagination container
Detection problems never raise; the minimum is used instead.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional

from bs4 import BeautifulSoup, Tag

from .logging_utils import get_logger

PAGE_PARAM_PATTERN = re.compile(r"\?page=(\d+)")
DEFAULT_MIN_PAGES = 40

logger = get_logger(__name__)


def _page_numbers(links: Iterable[Tag]) -> list[int]:
    numbers = []
    for link in links:
        match = PAGE_PARAM_PATTERN.search(link.get("href", ""))
        if match and int(match.group(1)) > 0:
            numbers.append(int(match.group(1)))
    return numbers


def max_page_link(soup: BeautifulSoup) -> int:
    """Highest ``?page=N`` among all links, 1 when there is none."""
    numbers = _page_numbers(soup.select('a[href*="?page="]'))
    return max(numbers) if numbers else 1


def last_page_link(soup: BeautifulSoup) -> int:
    """Page number of the "Last"/"Laatste" link or of a pagination container, 0 if absent."""
    for link in soup.find_all("a"):
        text = link.get_text()
        if ("Last" in text or "Laatste" in text) and "?page=" in link.get("href", ""):
            numbers = _page_numbers([link])
            return numbers[0] if numbers else 0

    for container in soup.select(".pagination, .pager, nav"):
        numbers = _page_numbers(container.select('a[href*="?page="]'))
        if numbers:
            return max(numbers)

    return 0


def discover_total_pages(html: Optional[str], min_pages: int = DEFAULT_MIN_PAGES) -> int:
    """
    Determine the total number of listing pages.

    Args:
        html: HTML of the first listing page (None if it could not be loaded).
        min_pages: Lower bound used whenever detection finds fewer pages.

    Returns:
        max(link signal, last-page signal, min_pages); min_pages if that is below 2.
    """
    detected = 1
    last_page = 0
    if html:
        soup = BeautifulSoup(html, "lxml")
        detected = max_page_link(soup)
        last_page = last_page_link(soup)

    logger.info("Detected %d pages via links, last-page check %d", detected, last_page)

    total = max(detected, last_page, min_pages)
    if last_page > 0 and last_page != detected:
        logger.info("Pagination signals differ (%d vs %d), using %d", detected, last_page, total)
    elif total == min_pages:
        logger.info("Using minimum page count (%d), detection found only %d", min_pages, detected)

    if total < 2:
        logger.warning("Pagination detection failed, forcing minimum of %d pages", DEFAULT_MIN_PAGES)
        total = max(min_pages, DEFAULT_MIN_PAGES)

    return total
