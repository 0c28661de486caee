"""
Pydantic Models for the festival scrapers

Defines festival listings, detail-page data, run metrics and run results.
Snapshot files use the camelCase field names produced by ``by_alias`` dumps.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Location(CamelModel):
    """City/country pair parsed from listing text."""
    city: str = Field(default="", description="City, e.g. 'Amsterdam'")
    country: str = Field(default="Nederland", description="Country, defaults to the Netherlands")


class DateRange(CamelModel):
    """Listing-level '(N/M)' indicator."""
    current: int
    total: int


class Artist(CamelModel):
    name: str
    url: str = ""


class ListingRecord(CamelModel):
    """Raw anchor content before any text parsing."""
    id: str
    name: str
    url: str
    raw_detail_text: str = ""


class FestivalListing(CamelModel):
    """A festival parsed from a festivalinfo.nl listing page."""
    id: str = Field(..., description="Site-specific festival id")
    name: str = Field(..., description="Festival name")
    url: str = Field(..., description="Absolute URL of the festival page")
    location: Location = Field(default_factory=Location)
    city: str = ""
    country: str = ""
    duration: int = Field(default=1, description="Duration in days (inclusive)")
    date_range: Optional[DateRange] = None
    dates: str = Field(default="", description="Raw date text that was matched")
    start_date: Optional[str] = Field(None, description="ISO date YYYY-MM-DD")
    end_date: Optional[str] = Field(None, description="ISO date YYYY-MM-DD")
    num_acts: int = 0
    is_free: bool = False
    has_camping: bool = False
    source: str = "festivalinfo.nl"
    hash: Optional[str] = Field(None, description="Deduplication hash (generated)")
    scraped_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    # Only present after detail-page enrichment
    description: Optional[str] = None
    ticket_url: Optional[str] = None
    artists: Optional[list[Artist]] = None
    normalized_at: Optional[str] = None

    def to_record(self) -> dict[str, Any]:
        """Snapshot representation (camelCase, detail-only fields omitted when unset)."""
        record = self.model_dump(by_alias=True, mode="json")
        for key in ("description", "ticketUrl", "artists", "normalizedAt"):
            if record.get(key) is None:
                record.pop(key, None)
        return record


class EBLiveListing(CamelModel):
    """A festival parsed from an eblive.nl listing page."""
    id: str
    name: str
    location: str
    dates: str = ""
    edition: Optional[str] = None
    url: str
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    source: str = "eblive"
    hash: Optional[str] = None
    scraped_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class FestivalDetails(CamelModel):
    """Data scraped from a single festival detail page."""
    description: str = ""
    date_text: str = ""
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    duration: int = 1
    location_text: str = ""
    artists: list[Artist] = Field(default_factory=list)
    ticket_url: str = ""
    is_free: Optional[bool] = None
    has_camping: Optional[bool] = None


class ScrapeMetrics(CamelModel):
    """Counters collected during one scrape run."""
    total_festivals: int = 0
    unique_festivals: int = 0
    duplicates: int = 0
    errors: int = 0
    pages: int = 0
    festivals_by_page: dict[int, int] = Field(default_factory=dict)
    start_time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    end_time: Optional[datetime] = None
    time_elapsed: str = ""

    def finish(self) -> None:
        """Stamp the end time and the human-readable elapsed time ('Xm Ys')."""
        self.end_time = datetime.now(timezone.utc)
        elapsed = int((self.end_time - self.start_time).total_seconds())
        self.time_elapsed = f"{elapsed // 60}m {elapsed % 60}s"


class ScrapeResult(CamelModel):
    """Result of a scraping run."""
    success: bool
    source: str
    metrics: ScrapeMetrics = Field(default_factory=ScrapeMetrics)
    output_file: Optional[str] = None
    error: Optional[str] = None


class ScrapeAnalysis(CamelModel):
    """Post-run sanity check of scrape metrics."""
    success: bool
    issues: list[str] = Field(default_factory=list)
