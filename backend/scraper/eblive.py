"""
eblive.nl scraper

EB Live lists 24 festivals per page, ordered by upcoming date. The page
count is derived from the "N festivals gevonden" heading; each page is
tried up to three times.
"""

from __future__ import annotations

import math
import re
from typing import Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from .config import ParserConfig
from .dates import to_iso_date
from .logging_utils import get_logger
from .models import EBLiveListing, ScrapeAnalysis, ScrapeMetrics
from .pipeline import ScrapingPipeline

FESTIVALS_PER_PAGE = 24
COOKIE_BUTTON = 'button:has-text("Accepteren en doorgaan")'
FESTIVAL_ID_PATTERN = re.compile(r"festival_id=(\d+)")
INFO_PATTERN = re.compile(r"(.+?)\s+([A-Za-z]+\s+\d+.*)")
LIST_QUERY = (
    "?filters%5Bsearch%5D=&filters%5Baddress%5D=&filters%5Bdistance%5D="
    "&order_by=upcoming&page_nr={page}"
)

logger = get_logger(__name__)


def _short_months(config: ParserConfig) -> dict[str, int]:
    return {name: month for name, month in config.months.items() if len(name) == 3}


def parse_eblive_date(text: str, config: ParserConfig) -> tuple[Optional[str], Optional[str]]:
    """
    Parse EB Live date text.

    "Wo 21 mei t/m do 29 mei" is a range (the end moves to next year when its
    month precedes the start month); "Zaterdag 31 mei" is a single day.
    Years are not shown on the site, so the reference year is used.

    Returns:
        Tuple of (start_date, end_date) ISO strings, None where unknown.
    """
    months = _short_months(config)
    month_pattern = re.compile("(" + "|".join(months) + ")", re.IGNORECASE)
    year = config.current_year

    if "t/m" in text:
        start_part, end_part = [part.strip() for part in text.split("t/m", 1)]
        start_date = end_date = None

        start_day = re.search(r"\d+", start_part)
        start_month = month_pattern.search(start_part)
        if start_day and start_month:
            start_date = to_iso_date(year, months[start_month.group(1).lower()], int(start_day.group(0)))

        end_day = re.search(r"\d+", end_part)
        end_month = month_pattern.search(end_part)
        if end_day and end_month:
            end_month_number = months[end_month.group(1).lower()]
            end_year = year
            if start_month and months[start_month.group(1).lower()] > end_month_number:
                end_year += 1
            end_date = to_iso_date(end_year, end_month_number, int(end_day.group(0)))

        return start_date, end_date

    parts = text.split()
    day = next((int(part) for part in parts if part.isdigit()), 0)
    month_part = next((part for part in parts if month_pattern.search(part)), None)
    if day and month_part:
        month = months[month_pattern.search(month_part).group(1).lower()]
        iso = to_iso_date(year, month, day)
        return iso, iso

    return None, None


def parse_eblive_listings(html: str, page_url: str, config: ParserConfig) -> tuple[list[EBLiveListing], int]:
    """
    Parse one EB Live listing page.

    Returns:
        Tuple of (listings, number of incomplete or broken entries).
    """
    soup = BeautifulSoup(html, "lxml")
    listings: list[EBLiveListing] = []
    errors = 0

    for element in soup.select('main > [href*="festival_id"]'):
        href = element.get("href", "")
        id_match = FESTIVAL_ID_PATTERN.search(href)
        if not id_match:
            logger.warning("Could not extract festival ID from URL %s", href)
            continue
        festival_id = id_match.group(1)

        name_element = element.find("h5")
        name = name_element.get_text(strip=True) if name_element else ""
        if not name:
            logger.warning("Could not extract festival name for ID: %s", festival_id)
            continue

        info_text = " ".join(
            text.strip() for text in element.find_all(string=True, recursive=False) if text.strip()
        )
        info_match = INFO_PATTERN.search(info_text)
        location = info_match.group(1).strip() if info_match else ""
        dates = info_match.group(2).strip() if info_match else ""

        if not location:
            logger.warning("Incomplete festival data for ID: %s", festival_id)
            errors += 1
            continue

        edition_element = soup.select_one(
            f'a[href*="festival_id={festival_id}"][href*="index"] + a[href*="Editie"]'
        )
        edition = edition_element.get_text(strip=True) if edition_element else None

        start_date, end_date = parse_eblive_date(dates, config)
        listings.append(
            EBLiveListing(
                id=festival_id,
                name=name,
                location=location,
                dates=dates,
                edition=edition or None,
                url=urljoin(page_url, href),
                start_date=start_date,
                end_date=end_date,
            )
        )

    return listings, errors


def count_eblive_pages(html: str) -> int:
    """Pages implied by the "N festivals gevonden" heading (24 per page)."""
    soup = BeautifulSoup(html, "lxml")
    for heading in soup.find_all("h5"):
        text = heading.get_text(" ", strip=True)
        if "festivals gevonden" in text:
            match = re.search(r"\d+", text.replace(".", ""))
            count = int(match.group(0)) if match else 0
            logger.info("Found approximately %d festivals", count)
            return math.ceil(count / FESTIVALS_PER_PAGE)
    return 0


def analyze_scrape_results(metrics: ScrapeMetrics, min_expected_festivals: int = 900) -> ScrapeAnalysis:
    """
    Flag suspicious scrape runs.

    Issues: fewer unique festivals than expected, pages without festivals,
    error rate above 5%.
    """
    issues: list[str] = []

    if metrics.unique_festivals < min_expected_festivals:
        issues.append(
            f"Found only {metrics.unique_festivals} festivals, expected at least {min_expected_festivals}"
        )

    empty_pages = [str(page) for page, count in sorted(metrics.festivals_by_page.items()) if count == 0]
    if empty_pages:
        issues.append(f"Found {len(empty_pages)} pages with no festivals: {', '.join(empty_pages)}")

    if metrics.total_festivals:
        error_rate = metrics.errors / metrics.total_festivals
    else:
        error_rate = 1.0 if metrics.errors else 0.0
    if error_rate > 0.05:
        issues.append(f"High error rate: {error_rate * 100:.2f}% ({metrics.errors} errors)")

    if issues:
        logger.warning("Scrape analysis found issues: %s", issues)
    else:
        logger.info("Scrape analysis: No issues found")
    return ScrapeAnalysis(success=not issues, issues=issues)


class EBLiveScraper(ScrapingPipeline):
    """Scraper for www.eblive.nl."""

    key_fields = ("source", "id", "name", "dates")
    wait_selector = 'main [href*="festival_id"]'

    def index_url(self) -> str:
        return self.config.base_url

    def page_url(self, page_number: int) -> str:
        return self.config.base_url + LIST_QUERY.format(page=page_number)

    def prepare(self) -> None:
        if self.browser.click_if_present(COOKIE_BUTTON):
            self.logger.info("Accepted cookies")

    def count_pages(self, index_html: str) -> int:
        return max(count_eblive_pages(index_html), self.config.min_pages)

    def extract_page(self, html: str, page_url: str) -> list[EBLiveListing]:
        listings, errors = parse_eblive_listings(html, page_url, self.config.parser)
        self.metrics.errors += errors
        return listings
