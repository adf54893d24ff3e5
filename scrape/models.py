"""
Data model for a batch scrape run.

A run is the cross product of search terms and locations. Each unit
yields either records (streamed to ingestion, then dropped) or an
ErrorRecord; the RunSummary is the only thing kept for the whole run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Sequence


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    DISCONNECTED = "disconnected"
    RECOVERING = "recovering"
    FATAL = "fatal"


class Phase(str, Enum):
    NAVIGATION = "navigation"
    READINESS = "readiness"
    EXTRACTION = "extraction"
    INGEST = "ingest"


@dataclass(frozen=True)
class SearchUnit:
    """One (search term, location) pair."""
    term: str
    location_name: str
    location_id: int


def build_units(terms: Sequence[str], locations: Mapping[str, int]) -> list[SearchUnit]:
    """Expand terms x locations in nested order (outer: term, inner: location)."""
    return [
        SearchUnit(term=term, location_name=name, location_id=geo_id)
        for term in terms
        for name, geo_id in locations.items()
    ]


@dataclass(frozen=True)
class ScrapeMetadata:
    """Stamp shared by every record of one unit."""
    term: str
    location_name: str
    location_id: int
    time_window: str
    scraped_at: str  # ISO 8601 UTC, fixed once per unit

    def as_payload(self) -> dict:
        return {
            "keyword": self.term,
            "location": self.location_name,
            "geoId": self.location_id,
            "timeFilter": self.time_window,
            "scraped_at": self.scraped_at,
        }


@dataclass
class JobRecord:
    """A single listing extracted from a results page."""
    id: str
    title: str
    company: str = ''
    location: str = ''
    url: str = ''
    image_url: str | None = None
    posting_date: str | None = None
    posting_time_relative: str | None = None
    metadata: ScrapeMetadata | None = None

    def is_valid(self) -> bool:
        return bool(self.id and self.id.strip()) and bool(self.title and self.title.strip())

    def as_payload(self) -> dict:
        """Wire shape expected by the ingestion endpoint."""
        payload = {
            "job_id": self.id,
            "job_title": self.title,
            "company": self.company,
            "location": self.location,
            "url": self.url,
            "img_url": self.image_url or '',
            "posting_date": self.posting_date or '',
            "posting_time_relative": self.posting_time_relative or '',
        }
        if self.metadata is not None:
            payload["scrape_metadata"] = self.metadata.as_payload()
        return payload


@dataclass
class UnitResult:
    """Output of one successful unit. Consumed by ingestion, then discarded."""
    unit: SearchUnit
    records: list[JobRecord]
    duration_ms: int
    screenshot_paths: list[str] = field(default_factory=list)


@dataclass
class ErrorRecord:
    """A failure of one unit, recorded instead of raised."""
    unit: SearchUnit
    phase: Phase
    message: str
    session_state: SessionState
    timestamp: str
    duration_ms: int
    url: str | None = None


@dataclass
class RunSummary:
    """Totals for a whole run, built incrementally."""
    total_extracted: int = 0
    total_ingested: int = 0
    errors: list[ErrorRecord] = field(default_factory=list)
    screenshots: list[str] = field(default_factory=list)

    units_planned: int = 0
    units_attempted: int = 0
    units_empty: int = 0
    recoveries: int = 0
    stopped_early: str | None = None
    screenshot_dir: str | None = None

    @property
    def units_failed(self) -> int:
        # Identity, not equality: the same pair may legitimately repeat in a matrix
        return len({id(e.unit) for e in self.errors})
