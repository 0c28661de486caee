"""
festivalinfo.nl scraper

Listing pages live at ``/festivals/`` (page 1) and ``/festivals/?page=N``.
Optionally visits the first ``detail_limit`` festival pages for
description, lineup, ticket link and more precise dates.
"""

from __future__ import annotations

from .models import FestivalListing
from .pagination import discover_total_pages
from .parser import extract_festival_details, extract_festival_list, normalize_festival_data
from .pipeline import ScrapingPipeline


class FestivalInfoScraper(ScrapingPipeline):
    """Scraper for www.festivalinfo.nl."""

    key_fields = ("source", "id", "name")

    def page_url(self, page_number: int) -> str:
        if page_number == 1:
            return self.config.base_url
        return f"{self.config.base_url}?page={page_number}"

    def count_pages(self, index_html: str) -> int:
        return discover_total_pages(index_html, self.config.min_pages)

    def extract_page(self, html: str, page_url: str) -> list[FestivalListing]:
        festivals = extract_festival_list(html, page_url, self.config.parser)
        return [normalize_festival_data(festival) for festival in festivals]

    def enrich(self, listings: list[FestivalListing]) -> list[FestivalListing]:
        if not self.config.extract_detail_pages:
            return listings

        limit = min(self.config.detail_limit, len(listings))
        self.logger.info("Extracting details from %d festival pages", limit)

        enriched = list(listings)
        for index, festival in enumerate(listings[:limit]):
            self.logger.info("Extracting details for %s (%d/%d)", festival.name, index + 1, limit)
            try:
                html = self.browser.fetch(festival.url, timeout_ms=self.config.page_timeout_ms)
                details = extract_festival_details(html, festival.url, self.config.parser)
                enriched[index] = normalize_festival_data(festival, details)
            except Exception as e:
                self.logger.error("Error extracting details for %s: %s", festival.name, e)
                self.metrics.errors += 1

            if self.on_progress:
                self.on_progress(0.5 + ((index + 1) / limit) * 0.5)
            self.browser.wait(self.config.detail_delay_ms)

        return enriched
