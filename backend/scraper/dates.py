"""
Dutch date parsing for festival listings.

Handles text dates ("10 mei 2025"), ranges ("10 mei t/m 12 mei"), numeric
dates ("14/05", "14-05-25") and a bare-year fallback. All functions take a
ParserConfig so the month table and year window stay explicit.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from typing import Optional

from .config import ParserConfig

NUMERIC_DATE = r"(\d{1,2})[/\-](\d{1,2})(?:[/\-](\d{2,4}))?"
# Standalone numeric dates must not start inside a longer number or an ISO date
NUMERIC_START = r"(?<![\d/\-])"
ISO_DATE = r"\b(\d{4})-(\d{2})-(\d{2})\b"
RANGE_SEPARATOR = r"(?:t/m|tot\s+en\s+met|tot|-)"
YEAR_PATTERN = re.compile(r"\b(20\d{2})\b")


@dataclass
class DateInfo:
    """Dates found in a piece of text."""
    dates: str = ""
    start_date: Optional[str] = None
    end_date: Optional[str] = None


def to_iso_date(year: int, month: int, day: int) -> Optional[str]:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def _expand_year(raw: Optional[str], config: ParserConfig) -> int:
    if not raw:
        return config.current_year
    raw = raw.strip()
    if len(raw) == 2:
        value = int(raw)
        return 2000 + value if value < 50 else 1900 + value
    return int(raw)


def _range_years(
    start_raw: Optional[str],
    end_raw: Optional[str],
    config: ParserConfig,
) -> tuple[int, int]:
    """Years for both ends of a range; a single explicit year applies to both."""
    if end_raw:
        end_year = _expand_year(end_raw, config)
        start_year = _expand_year(start_raw, config) if start_raw else end_year
    elif start_raw:
        start_year = end_year = _expand_year(start_raw, config)
    else:
        start_year = end_year = config.current_year
    return start_year, end_year


def _ordered_range(
    start: tuple[int, int, int],
    end: tuple[int, int, int],
    start_year_explicit: bool,
    end_year_explicit: bool,
) -> tuple[Optional[str], Optional[str]]:
    """
    Build ISO start/end dates, rolling over the year boundary when needed.

    "28 dec t/m 2 jan" ends in the following year; "28 dec t/m 2 jan 2026"
    starts in the previous one.
    """
    (start_year, start_month, start_day) = start
    (end_year, end_month, end_day) = end

    if (end_month, end_day) < (start_month, start_day) and start_year == end_year:
        if end_year_explicit and not start_year_explicit:
            start_year -= 1
        elif not end_year_explicit:
            end_year += 1

    return to_iso_date(start_year, start_month, start_day), to_iso_date(end_year, end_month, end_day)


def parse_dutch_date(text: Optional[str], config: ParserConfig) -> Optional[str]:
    """
    Parse one Dutch date string into an ISO date.

    Args:
        text: e.g. "14 mei 2023", "14/05", "14-05-23" or "2024".
        config: Parser configuration (month table, reference year).

    Returns:
        ISO date string, or None when nothing usable is found.
    """
    if not text:
        return None

    iso = re.search(ISO_DATE, text)
    if iso:
        return to_iso_date(int(iso.group(1)), int(iso.group(2)), int(iso.group(3)))

    numeric = re.search(NUMERIC_START + NUMERIC_DATE, text)
    if numeric:
        day, month = int(numeric.group(1)), int(numeric.group(2))
        return to_iso_date(_expand_year(numeric.group(3), config), month, day)

    textual = re.search(r"(\d{1,2})\s+([a-zë]+)(?:\s+(\d{4}))?", text.lower())
    if textual:
        month = config.months.get(textual.group(2))
        if not month:
            return None
        return to_iso_date(_expand_year(textual.group(3), config), month, int(textual.group(1)))

    year = YEAR_PATTERN.search(text)
    if year:
        return f"{year.group(1)}-01-01"

    return None


def extract_date_info(text: Optional[str], config: ParserConfig) -> DateInfo:
    """
    Extract a start/end date from free text.

    Attempts, in order: ISO date or range, text range, numeric range,
    single text date, single numeric date, bare year (whole year).
    """
    if not text:
        return DateInfo()

    normalized = " ".join(text.lower().split())
    months = config.month_pattern

    iso_range = re.search(rf"{ISO_DATE}(?:\s*{RANGE_SEPARATOR}\s*{ISO_DATE})?", normalized)
    if iso_range:
        start = to_iso_date(int(iso_range.group(1)), int(iso_range.group(2)), int(iso_range.group(3)))
        end = start
        if iso_range.group(4):
            end = to_iso_date(int(iso_range.group(4)), int(iso_range.group(5)), int(iso_range.group(6)))
        return DateInfo(iso_range.group(0), start, end)

    text_range = re.search(
        rf"\b(\d{{1,2}})\s+({months})\b(?:\s+(\d{{4}}))?\s*{RANGE_SEPARATOR}\s*"
        rf"(\d{{1,2}})\s+({months})\b(?:\s+(\d{{4}}))?",
        normalized,
    )
    if text_range:
        start_year_raw, end_year_raw = text_range.group(3), text_range.group(6)
        start_year, end_year = _range_years(start_year_raw, end_year_raw, config)
        start, end = _ordered_range(
            (start_year, config.months[text_range.group(2)], int(text_range.group(1))),
            (end_year, config.months[text_range.group(5)], int(text_range.group(4))),
            start_year_explicit=bool(start_year_raw),
            end_year_explicit=bool(end_year_raw),
        )
        return DateInfo(text_range.group(0), start, end)

    numeric_range = re.search(
        rf"{NUMERIC_START}(\d{{1,2}})[/\-](\d{{1,2}})(?:[/\-](\d{{2,4}}))?\s*{RANGE_SEPARATOR}\s*{NUMERIC_DATE}",
        normalized,
    )
    if numeric_range:
        start_year_raw, end_year_raw = numeric_range.group(3), numeric_range.group(6)
        start_year, end_year = _range_years(start_year_raw, end_year_raw, config)
        start, end = _ordered_range(
            (start_year, int(numeric_range.group(2)), int(numeric_range.group(1))),
            (end_year, int(numeric_range.group(5)), int(numeric_range.group(4))),
            start_year_explicit=bool(start_year_raw),
            end_year_explicit=bool(end_year_raw),
        )
        return DateInfo(numeric_range.group(0), start, end)

    single_text = re.search(rf"\b(\d{{1,2}})\s+({months})\b(?:\s+(\d{{4}}))?", normalized)
    if single_text:
        iso = to_iso_date(
            _expand_year(single_text.group(3), config),
            config.months[single_text.group(2)],
            int(single_text.group(1)),
        )
        return DateInfo(single_text.group(0), iso, iso)

    single_numeric = re.search(NUMERIC_START + NUMERIC_DATE, normalized)
    if single_numeric:
        iso = parse_dutch_date(single_numeric.group(0), config)
        return DateInfo(single_numeric.group(0), iso, iso)

    year = YEAR_PATTERN.search(normalized)
    if year:
        return DateInfo(year.group(0), f"{year.group(1)}-01-01", f"{year.group(1)}-12-31")

    return DateInfo()


def extract_listing_dates(text: Optional[str], config: ParserConfig) -> DateInfo:
    """
    Dates from listing-card text.

    Only "D maand [YYYY] t/m D [maand] [YYYY]" ranges and single text dates
    yield ISO dates. A bare year is kept as the date text without dates.
    """
    if not text:
        return DateInfo()

    normalized = " ".join(text.lower().split())
    months = config.month_pattern

    range_match = re.search(
        rf"\b(\d{{1,2}})\s+({months})(\s+20\d{{2}})?\s+t/m\s+(\d{{1,2}})(\s+({months}))?(\s+20\d{{2}})?\b",
        normalized,
    )
    if range_match:
        start_month = config.months[range_match.group(2)]
        end_month = config.months[range_match.group(6)] if range_match.group(6) else start_month
        start_year_raw = range_match.group(3)
        end_year_raw = range_match.group(7)
        start_year, end_year = _range_years(start_year_raw, end_year_raw, config)
        start, end = _ordered_range(
            (start_year, start_month, int(range_match.group(1))),
            (end_year, end_month, int(range_match.group(4))),
            start_year_explicit=bool(start_year_raw),
            end_year_explicit=bool(end_year_raw),
        )
        return DateInfo(range_match.group(0), start, end)

    single = re.search(rf"\b(\d{{1,2}})\s+({months})(\s+20\d{{2}})?\b", normalized)
    if single:
        year = int(single.group(3)) if single.group(3) else config.current_year
        iso = to_iso_date(year, config.months[single.group(2)], int(single.group(1)))
        return DateInfo(single.group(0), iso, iso)

    year_match = YEAR_PATTERN.search(normalized)
    if year_match:
        return DateInfo(dates=year_match.group(0))

    return DateInfo()


def _with_year(iso: str, year: int) -> str:
    """Move an ISO date to another year; 29 February becomes the 28th when needed."""
    original = date.fromisoformat(iso[:10])
    try:
        return original.replace(year=year).isoformat()
    except ValueError:
        return date(year, 2, 28).isoformat()


def clamp_year(
    start_date: Optional[str],
    end_date: Optional[str],
    config: ParserConfig,
) -> tuple[Optional[str], Optional[str]]:
    """
    Replace an out-of-window start year with the reference year.

    Years outside [min_year, max_year] are treated as parse errors; both dates
    get the reference year and the end rolls forward if it would precede the start.
    """
    if not start_date or "-" not in start_date:
        return start_date, end_date

    year = int(start_date[:4])
    if config.min_year <= year <= config.max_year:
        return start_date, end_date

    current = config.current_year
    new_start = _with_year(start_date, current)
    new_end = _with_year(end_date, current) if end_date else None
    if new_end and new_end < new_start:
        new_end = _with_year(end_date, current + 1)
    return new_start, new_end


def calculate_duration(start_date: Optional[str], end_date: Optional[str]) -> int:
    """Inclusive number of days between two ISO dates; 1 when unknown."""
    if not start_date or not end_date:
        return 1
    try:
        start = date.fromisoformat(start_date[:10])
        end = date.fromisoformat(end_date[:10])
    except ValueError:
        return 1
    days = abs((end - start).days) + 1
    return days if days > 0 else 1
