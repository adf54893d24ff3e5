"""
Failure taxonomy for batch scraping.

Unit-level failures carry the phase they happened in so the orchestrator
can turn them into ErrorRecords at the unit boundary.
"""

from .models import Phase


class ScrapeError(Exception):
    """Base class for scrape errors."""
    pass


class ConfigurationError(ScrapeError, ValueError):
    """Bad or empty run input. Raised before any browser is launched."""
    pass


class UnitFailure(ScrapeError):
    """A single unit of work failed; recorded, never propagated past the unit."""

    phase: Phase = Phase.NAVIGATION


class NavigationFailure(UnitFailure):
    """Navigation failed, or the landing page was not the results page."""

    phase = Phase.NAVIGATION


class ReadinessTimeout(UnitFailure):
    """The results container never showed up within its bounded wait."""

    phase = Phase.READINESS


class ExtractionFailure(UnitFailure):
    """The page could not be read or parsed."""

    phase = Phase.EXTRACTION


class IngestionFailure(UnitFailure):
    """The ingestion endpoint rejected the batch or could not be reached."""

    phase = Phase.INGEST

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class SessionCrash(ScrapeError):
    """The browser process or its page went away."""
    pass


class RecoveryFailure(SessionCrash):
    """A fresh browser could not be launched. The session is now FATAL."""
    pass
