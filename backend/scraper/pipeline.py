"""
Scraping Pipeline

Orchestrates one scrape run of a listing website:
1. Pagination Discovery (how many listing pages)
2. Listing Extraction (per page, sequentially, fixed delay between pages)
3. Deduplication (per-run content hashes)
4. Optional enrichment (detail pages)
5. Snapshot writing (timestamped JSON file + metrics file)

Site modules subclass ScrapingPipeline and provide the page URLs, the page
count and the per-page parser.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

from pydantic import BaseModel

from .browser import BrowserSession
from .config import ScraperConfig
from .deduplicator import Deduplicator
from .logging_utils import get_scraper_logger
from .models import ScrapeMetrics, ScrapeResult
from .storage import write_metrics, write_snapshot


class ScrapingPipeline:
    """
    Full scraping run for a single listing website.

    Usage:
        with FestivalInfoScraper(festivalinfo_config(max_pages=2)) as scraper:
            result, festivals = scraper.run()
            print(f"Saved {result.metrics.unique_festivals} festivals")
    """

    key_fields: tuple[str, ...] = ("source", "id", "name")
    wait_selector: Optional[str] = None

    def __init__(
        self,
        config: ScraperConfig,
        browser: Optional[BrowserSession] = None,
        on_progress: Optional[Callable[[float], None]] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            config: Scraper configuration (URLs, limits, delays, parser tables).
            browser: Browser session to reuse. One is created (and closed) if omitted.
            on_progress: Called with a fraction in [0, 1] after each page.
        """
        self.config = config
        self._owns_browser = browser is None
        self.browser = browser or BrowserSession(user_agent=config.user_agent)
        self.on_progress = on_progress
        self.logger = get_scraper_logger(config.source)
        self.metrics = ScrapeMetrics()
        self.deduplicator = Deduplicator(self.key_fields)

    # ---- site hooks ----

    def index_url(self) -> str:
        """URL loaded first to detect pagination."""
        return self.page_url(1)

    def page_url(self, page_number: int) -> str:
        raise NotImplementedError

    def count_pages(self, index_html: str) -> int:
        raise NotImplementedError

    def extract_page(self, html: str, page_url: str) -> list[BaseModel]:
        raise NotImplementedError

    def prepare(self) -> None:
        """Hook run after the index page is loaded (cookie banners etc.)."""

    def enrich(self, listings: list[BaseModel]) -> list[BaseModel]:
        """Hook run on the unique listings before they are written."""
        return listings

    # ---- run ----

    def load_page(self, url: str) -> str:
        """
        Load a page, retrying up to ``config.page_retries`` times in total.

        Raises:
            Exception: The last load error when every attempt failed.
        """
        attempts = max(1, self.config.page_retries)
        for attempt in range(1, attempts + 1):
            try:
                return self.browser.fetch(url, timeout_ms=self.config.page_timeout_ms, wait_for=self.wait_selector)
            except Exception as e:
                if attempt >= attempts:
                    raise
                self.logger.warning("Failed to load %s, retry %d/%d: %s", url, attempt, attempts, e)
                self.browser.wait(self.config.delay_ms * 2)
        raise RuntimeError(f"Could not load {url}")

    def run(self) -> tuple[ScrapeResult, list[BaseModel]]:
        """
        Run the scrape.

        Never raises: failures are reported through ``ScrapeResult.error``.

        Returns:
            Tuple of (ScrapeResult, list of unique listings).
        """
        self.metrics = ScrapeMetrics()
        self.deduplicator.clear()
        unique: list[BaseModel] = []
        result = ScrapeResult(success=False, source=self.config.source, metrics=self.metrics)

        self.logger.info("Starting %s scraper", self.config.source)

        try:
            index_url = self.index_url()
            index_html = self.browser.fetch(index_url, timeout_ms=self.config.page_timeout_ms)
            self.prepare()

            total_pages = self.count_pages(index_html)
            pages_to_scrape = min(self.config.max_pages, total_pages) if self.config.max_pages > 0 else total_pages
            self.logger.info("Will scrape %d of %d pages", pages_to_scrape, total_pages)

            for page_number in range(1, pages_to_scrape + 1):
                url = self.page_url(page_number)
                self.logger.info("Processing page %d/%d: %s", page_number, pages_to_scrape, url)

                try:
                    if url == index_url and self.wait_selector is None:
                        html = index_html
                    else:
                        html = self.load_page(url)
                    listings = self.extract_page(html, url)
                except Exception as e:
                    self.logger.error("Skipping page %d: %s", page_number, e)
                    self.metrics.errors += 1
                    self.metrics.festivals_by_page[page_number] = 0
                    continue

                self.logger.info("Found %d festivals on page %d", len(listings), page_number)
                new_listings, duplicates = self.deduplicator.process(listings)
                unique.extend(new_listings)
                self.metrics.total_festivals += len(listings)
                self.metrics.unique_festivals += len(new_listings)
                self.metrics.duplicates += len(duplicates)
                for duplicate in duplicates:
                    self.logger.debug("Duplicate festival: %s", getattr(duplicate, "name", ""))

                self.metrics.festivals_by_page[page_number] = len(listings)
                self.metrics.pages += 1

                if self.on_progress:
                    self.on_progress(page_number / pages_to_scrape)

                if page_number < pages_to_scrape:
                    self.browser.wait(self.config.delay_ms)

            unique = self.enrich(unique)

            moment = datetime.now(timezone.utc)
            records = [listing.to_record() for listing in unique]
            output_path = write_snapshot(self.config.output_dir, self.config.source, records, moment)

            self.metrics.finish()
            write_metrics(
                self.config.output_dir,
                self.config.source,
                self.metrics.model_dump(by_alias=True, mode="json"),
                moment,
            )

            result.success = True
            result.output_file = output_path.name

            self.logger.info("Scrape completed in %s", self.metrics.time_elapsed)
            self.logger.info("Total festivals found: %d", self.metrics.total_festivals)
            self.logger.info("Unique festivals: %d", self.metrics.unique_festivals)
            self.logger.info("Duplicates: %d", self.metrics.duplicates)

        except Exception as e:
            self.metrics.finish()
            result.success = False
            result.error = str(e)
            self.logger.error("Error during scrape: %s", e)

        finally:
            if self._owns_browser:
                self.browser.close()

        result.metrics = self.metrics
        return result, unique

    def close(self):
        """Close the browser if this pipeline created it."""
        if self._owns_browser:
            self.browser.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
