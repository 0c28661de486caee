"""
festifind Scraper Package

Listing scrapers for Dutch festival calendars (festivalinfo.nl, eblive.nl).
"""

from .config import ParserConfig, ScraperConfig, eblive_config, festivalinfo_config
from .deduplicator import Deduplicator
from .eblive import EBLiveScraper
from .festivalinfo import FestivalInfoScraper
from .models import EBLiveListing, FestivalListing, ScrapeMetrics, ScrapeResult
from .pipeline import ScrapingPipeline

__all__ = [
    "ParserConfig",
    "ScraperConfig",
    "eblive_config",
    "festivalinfo_config",
    "Deduplicator",
    "EBLiveScraper",
    "FestivalInfoScraper",
    "EBLiveListing",
    "FestivalListing",
    "ScrapeMetrics",
    "ScrapeResult",
    "ScrapingPipeline",
]
