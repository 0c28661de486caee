#!/usr/bin/env python3
"""
Scrape All Sources

Cron script to run the festival listing scrapers.
Run via cron: 0 3 * * 0 /opt/festifind/venv/bin/python /opt/festifind/backend/scrape_all.py
"""

import argparse
import sys
from datetime import datetime
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from dotenv import load_dotenv

from scraper.config import eblive_config, festivalinfo_config
from scraper.eblive import EBLiveScraper, analyze_scrape_results
from scraper.festivalinfo import FestivalInfoScraper

# Load environment variables
load_dotenv()

SCRAPERS = {
    "festivalinfo": (FestivalInfoScraper, festivalinfo_config),
    "eblive": (EBLiveScraper, eblive_config),
}


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Run festival listing scrapers")
    parser.add_argument(
        "--source",
        choices=sorted(SCRAPERS) + ["all"],
        default="all",
        help="Scraper to run (default: all)",
    )
    parser.add_argument("--max-pages", type=int, default=None, help="Limit listing pages (0 = all)")
    parser.add_argument("--details", action="store_true", help="Also visit festival detail pages")
    return parser.parse_args(argv)


def scrape_all_sources(sources: list[str], max_pages=None, details: bool = False) -> int:
    """
    Run the given scrapers one after another.

    Returns:
        Number of failed runs.
    """
    print(f"\n{'='*60}")
    print(f"[scrape_all] Starting at {datetime.now().isoformat()}")
    print(f"{'='*60}\n")

    successful = 0
    failed = 0
    total_unique = 0

    for i, source in enumerate(sources, 1):
        scraper_cls, config_factory = SCRAPERS[source]
        overrides = {"extract_detail_pages": details}
        if max_pages is not None:
            overrides["max_pages"] = max_pages
        config = config_factory(**overrides)

        print(f"\n[{i}/{len(sources)}] Processing: {source}")
        print(f"    URL: {config.base_url}")

        try:
            with scraper_cls(config) as scraper:
                result, _ = scraper.run()
        except Exception as e:
            failed += 1
            print(f"    ✗ Exception: {e}")
            continue

        if result.success:
            successful += 1
            total_unique += result.metrics.unique_festivals
            print(
                f"    ✓ Success: {result.metrics.unique_festivals} festivals "
                f"({result.metrics.duplicates} duplicates, {result.metrics.errors} errors) -> {result.output_file}"
            )
            if source == "eblive":
                analysis = analyze_scrape_results(result.metrics)
                for issue in analysis.issues:
                    print(f"    ! {issue}")
        else:
            failed += 1
            print(f"    ✗ Failed: {result.error}")

    print(f"\n{'='*60}")
    print(f"[scrape_all] Complete!")
    print(f"    Scrapers: {successful} successful, {failed} failed")
    print(f"    Festivals: {total_unique} unique")
    print(f"    Finished at {datetime.now().isoformat()}")
    print(f"{'='*60}\n")
    return failed


if __name__ == "__main__":
    args = parse_args()
    selected = sorted(SCRAPERS) if args.source == "all" else [args.source]
    sys.exit(1 if scrape_all_sources(selected, args.max_pages, args.details) else 0)
