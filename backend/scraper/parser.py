"""
Listing and detail-page parsing for festivalinfo.nl

Stage 2 and 3 of the scraping pipeline: turn a listing page into raw records,
then parse the Dutch detail text of each record into location, duration,
dates and feature flags.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from .config import ParserConfig
from .dates import calculate_duration, clamp_year, extract_date_info, extract_listing_dates
from .models import Artist, DateRange, FestivalDetails, FestivalListing, ListingRecord, Location

FESTIVAL_ID_PATTERN = re.compile(r"/festival/(\d+)/")
PAGINATION_INDICATOR = re.compile(r"\((\d+)/(\d+)\)")
CITY_COUNTRY_PATTERN = re.compile(r"^([^,0-9]+),\s*([^,0-9]+)")
CITY_ONLY_PATTERN = re.compile(r"^([^0-9]+?)(?:\s+\d|\s+dag)")
DURATION_PATTERN = re.compile(r"(\d+)\s+dag(en)?")
NUM_ACTS_PATTERN = re.compile(r"(?<!/)\b(\d+)\b(?!\s*dag)")
DATE_LIKE_PATTERN = re.compile(r"\d{1,2}\s+(jan|feb|mrt|apr|mei|jun|jul|aug|sep|okt|nov|dec)", re.IGNORECASE)
NUMERIC_DATE_LIKE = re.compile(r"\d{1,2}[/\-]\d{1,2}")
QUOTES = "\"'“”„"


@dataclass
class ParsedDetails:
    """Fields parsed out of a listing's detail text."""
    location: Location
    duration: int
    date_range: Optional[DateRange]
    dates: str
    start_date: Optional[str]
    end_date: Optional[str]
    num_acts: int
    is_free: bool
    has_camping: bool


def _clean_text(text: str) -> str:
    return " ".join(text.split()).strip(QUOTES + " ")


def _strip_quotes(value: str) -> str:
    return value.strip().strip(QUOTES).strip()


def extract_listing_records(html: str, base_url: str) -> list[ListingRecord]:
    """
    Extract raw listing records from a festivalinfo.nl listing page.

    Only festival anchors that wrap a <strong> name are listings; sidebar
    links without one are ignored.

    Args:
        html: Page HTML.
        base_url: URL the page was loaded from (for absolute links).

    Returns:
        Records with id, name, absolute url and the text left after the name.
    """
    soup = BeautifulSoup(html, "lxml")
    records: list[ListingRecord] = []

    for link in soup.select('a[href*="/festival/"]'):
        strong = link.find("strong")
        if strong is None:
            continue

        name = strong.get_text(strip=True)
        href = link.get("href", "")
        match = FESTIVAL_ID_PATTERN.search(href)
        if not match or not name:
            continue

        full_text = link.get_text(" ", strip=True)
        detail_text = _clean_text(full_text.replace(name, "", 1))

        records.append(
            ListingRecord(
                id=match.group(1),
                name=name,
                url=urljoin(base_url, href),
                raw_detail_text=detail_text,
            )
        )

    return records


def parse_location(text: str, config: ParserConfig) -> Location:
    """Split "Brussel, België 11 dagen 56" into city and country."""
    city = ""
    country = ""

    match = CITY_COUNTRY_PATTERN.search(text)
    if match:
        city = _strip_quotes(match.group(1))
        country = _strip_quotes(match.group(2))
    else:
        city_match = CITY_ONLY_PATTERN.search(text)
        if city_match:
            city = _strip_quotes(city_match.group(1))
            country = config.default_country

    return Location(city=city, country=country or config.default_country)


def parse_detail_text(text: str, config: ParserConfig) -> ParsedDetails:
    """
    Parse the free text of a listing card.

    Args:
        text: Detail text, e.g. "Amsterdam, Nederland 3 dagen 12".
        config: Parser configuration.

    Returns:
        ParsedDetails with location, duration, dates, act count and flags.
    """
    indicator = PAGINATION_INDICATOR.search(text)
    date_range = None
    if indicator:
        date_range = DateRange(current=int(indicator.group(1)), total=int(indicator.group(2)))
    clean = PAGINATION_INDICATOR.sub("", text, count=1).strip()

    location = parse_location(clean, config)

    duration_match = DURATION_PATTERN.search(clean)
    duration = int(duration_match.group(1)) if duration_match else 1

    info = extract_listing_dates(clean, config)
    start_date, end_date = clamp_year(info.start_date, info.end_date or info.start_date, config)

    acts_match = NUM_ACTS_PATTERN.search(clean)
    num_acts = int(acts_match.group(1)) if acts_match else 0

    lowered = clean.lower()
    return ParsedDetails(
        location=location,
        duration=duration,
        date_range=date_range,
        dates=info.dates,
        start_date=start_date,
        end_date=end_date,
        num_acts=num_acts,
        is_free="gratis" in lowered,
        has_camping="camping" in lowered,
    )


def build_listing(record: ListingRecord, config: ParserConfig, source: str = "festivalinfo.nl") -> FestivalListing:
    """Turn a raw record into a FestivalListing."""
    details = parse_detail_text(record.raw_detail_text, config)
    return FestivalListing(
        id=record.id,
        name=record.name,
        url=record.url,
        location=details.location,
        duration=details.duration,
        date_range=details.date_range,
        dates=details.dates,
        start_date=details.start_date,
        end_date=details.end_date,
        num_acts=details.num_acts,
        is_free=details.is_free,
        has_camping=details.has_camping,
        source=source,
    )


def extract_festival_list(html: str, base_url: str, config: ParserConfig) -> list[FestivalListing]:
    """Parse every festival on a listing page."""
    return [build_listing(record, config) for record in extract_listing_records(html, base_url)]


def _is_date_like(text: str) -> bool:
    return bool(DATE_LIKE_PATTERN.search(text) or "t/m" in text or NUMERIC_DATE_LIKE.search(text))


def _find_date_text(soup: BeautifulSoup) -> tuple[str, Optional[str]]:
    """Best date text on a detail page plus an ISO date from <time datetime>."""
    time_element = soup.select_one("time[datetime]")
    if time_element is not None:
        value = time_element.get("datetime", "")
        if "-" in value:
            return time_element.get_text(strip=True), value.split("T")[0]

    best = ""
    candidates = (
        soup.select("strong:not([class])")
        + soup.select(".date, .festival-date, .event-date")
        + soup.select("h1, h2, h3, h4, h5")
    )
    for element in candidates:
        text = element.get_text(" ", strip=True)
        if not _is_date_like(text):
            continue
        if (
            len(text) > len(best)
            or ("t/m" in text and "t/m" not in best)
        ):
            best = text
    return best, None


def _find_meta_date(soup: BeautifulSoup) -> Optional[str]:
    selector = 'meta[property="og:start_date"], meta[property="event:start_time"], meta[name="date"]'
    for meta in soup.select(selector):
        content = meta.get("content") or ""
        parts = re.split(r"[-T/]", content)
        if len(parts) >= 3 and len(parts[0]) == 4:
            return f"{parts[0]}-{parts[1]}-{parts[2][:2]}"
    return None


def _find_location_text(soup: BeautifulSoup) -> str:
    for element in soup.select("h2, .location"):
        if element.name == "h2" and "REISINFORMATIE" in element.get_text():
            sibling = element.find_next_sibling()
            if sibling is not None and sibling.name == "p":
                return sibling.get_text(" ", strip=True)
        elif "location" in (element.get("class") or []):
            return element.get_text(" ", strip=True)
    return ""


def _find_ticket_url(soup: BeautifulSoup, page_url: str) -> str:
    ticket = soup.select_one('a[href*="tickets"]')
    if ticket is None:
        for link in soup.find_all("a"):
            text = link.get_text(" ", strip=True)
            lowered = text.lower()
            if "BESTEL TICKETS" in text or "tickets" in lowered or "kaarten" in lowered:
                ticket = link
                break
    if ticket is None or not ticket.get("href"):
        return ""
    return urljoin(page_url, ticket["href"])


def extract_festival_details(html: str, page_url: str, config: ParserConfig) -> FestivalDetails:
    """
    Parse a festivalinfo.nl festival page.

    Args:
        html: Detail page HTML.
        page_url: URL of the page (for absolute artist and ticket links).
        config: Parser configuration.

    Returns:
        FestivalDetails with description, dates, location text, lineup,
        ticket link and free/camping flags.
    """
    soup = BeautifulSoup(html, "lxml")

    description_element = soup.select_one(".leftcol p")
    description = description_element.get_text(" ", strip=True) if description_element else ""

    date_text, start_date = _find_date_text(soup)
    end_date = start_date
    meta_date = _find_meta_date(soup)
    if meta_date:
        start_date = end_date = meta_date
        date_text = date_text or meta_date

    if date_text and not (start_date and end_date):
        info = extract_date_info(date_text, config)
        start_date = info.start_date
        end_date = info.end_date or info.start_date

    start_date, end_date = clamp_year(start_date, end_date, config)

    artists: list[Artist] = []
    for element in soup.select(".artist, .ActsBlock a"):
        name_element = element.find(["strong", "span"]) or element
        name = name_element.get_text(" ", strip=True)
        if name:
            href = element.get("href")
            artists.append(Artist(name=name, url=urljoin(page_url, href) if href else ""))

    body = soup.body or soup
    page_text = body.get_text(" ", strip=True).lower()

    return FestivalDetails(
        description=description,
        date_text=date_text,
        start_date=start_date,
        end_date=end_date,
        duration=calculate_duration(start_date, end_date),
        location_text=_find_location_text(soup),
        artists=artists,
        ticket_url=_find_ticket_url(soup, page_url),
        is_free="gratis" in page_text or "free entry" in page_text,
        has_camping="camping" in page_text or "kamperen" in page_text or "tent" in page_text,
    )


def normalize_festival_data(
    festival: FestivalListing,
    details: Optional[FestivalDetails] = None,
) -> FestivalListing:
    """
    Merge detail-page data into a listing and fill top-level city/country.

    Detail dates win over listing dates. Returns a new listing.
    """
    normalized = festival.model_copy(deep=True)

    if details is not None:
        if details.start_date:
            normalized.start_date = details.start_date
            normalized.normalized_at = datetime.now(timezone.utc).isoformat()
        if details.end_date:
            normalized.end_date = details.end_date
        if details.duration:
            normalized.duration = details.duration
        if details.date_text:
            normalized.dates = details.date_text

        normalized.description = details.description
        normalized.ticket_url = details.ticket_url
        normalized.artists = list(details.artists)

        if details.is_free is not None:
            normalized.is_free = details.is_free
        if details.has_camping is not None:
            normalized.has_camping = details.has_camping

    if not normalized.duration and normalized.start_date and normalized.end_date:
        normalized.duration = calculate_duration(normalized.start_date, normalized.end_date)

    if not normalized.city and normalized.location.city:
        normalized.city = normalized.location.city
    if not normalized.country and normalized.location.country:
        normalized.country = normalized.location.country

    return normalized
