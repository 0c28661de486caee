"""
Scraper configuration.

Parser tables and per-site settings are plain dataclasses handed to the
parsing functions and scrapers explicitly.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

DUTCH_MONTHS: dict[str, int] = {
    "januari": 1, "jan": 1,
    "februari": 2, "feb": 2,
    "maart": 3, "mrt": 3,
    "april": 4, "apr": 4,
    "mei": 5,
    "juni": 6, "jun": 6,
    "juli": 7, "jul": 7,
    "augustus": 8, "aug": 8,
    "september": 9, "sep": 9,
    "oktober": 10, "okt": 10,
    "november": 11, "nov": 11,
    "december": 12, "dec": 12,
}

DEFAULT_DATA_DIR = Path(__file__).resolve().parent.parent / "data"
DEFAULT_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


def read_non_negative_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return max(0, int(raw))
    except ValueError:
        return default


def get_data_dir() -> Path:
    """Snapshot directory (``DATA_DIR`` env or ``backend/data``)."""
    return Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))


@dataclass
class ParserConfig:
    """Tables and bounds used when parsing Dutch listing text."""
    months: dict[str, int] = field(default_factory=lambda: dict(DUTCH_MONTHS))
    min_year: int = 2020
    max_year: int = 2030
    default_country: str = "Nederland"
    reference_year: Optional[int] = None

    @property
    def current_year(self) -> int:
        """Year used when a date carries none (defaults to today's year)."""
        return self.reference_year or datetime.now().year

    @property
    def month_pattern(self) -> str:
        # Longest names first so "juni" wins over "jun"
        names = sorted(self.months, key=len, reverse=True)
        return "|".join(names)


@dataclass
class ScraperConfig:
    """Settings for one scraper run."""
    source: str
    base_url: str
    max_pages: int = 0  # 0 = all pages
    min_pages: int = 40
    delay_ms: int = 2000
    detail_delay_ms: int = 2000
    page_timeout_ms: int = 60000
    extract_detail_pages: bool = False
    detail_limit: int = 50
    page_retries: int = 1
    output_dir: Path = field(default_factory=get_data_dir)
    user_agent: str = DEFAULT_USER_AGENT
    parser: ParserConfig = field(default_factory=ParserConfig)


def festivalinfo_config(**overrides) -> ScraperConfig:
    """Default configuration for festivalinfo.nl."""
    values = {
        "source": "festivalinfo",
        "base_url": "https://www.festivalinfo.nl/festivals/",
        "max_pages": read_non_negative_int_env("FESTIVALINFO_MAX_PAGES", 0),
        "delay_ms": read_non_negative_int_env("SCRAPER_DELAY_MS", 2000),
    }
    values.update(overrides)
    return ScraperConfig(**values)


def eblive_config(**overrides) -> ScraperConfig:
    """Default configuration for eblive.nl (24 listings per page, 3 tries per page)."""
    values = {
        "source": "eblive",
        "base_url": "https://www.eblive.nl/festivals/",
        "min_pages": 1,
        "delay_ms": read_non_negative_int_env("SCRAPER_DELAY_MS", 2000),
        "page_retries": 3,
    }
    values.update(overrides)
    return ScraperConfig(**values)
