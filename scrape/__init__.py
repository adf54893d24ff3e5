"""
Resilient bulk job-listing scraper.

Primary interface:
    from scrape import run_bulk_scrape

    summary = run_bulk_scrape(
        ["Product Manager"],
        {"Dubai": 106204383, "London": 90009496},
    )

    # Returns RunSummary with:
    # - total_extracted, total_ingested
    # - errors (one ErrorRecord per failed unit)
    # - screenshots, screenshot_dir
    # - units_planned / units_attempted / units_empty, recoveries, stopped_early
"""

from .batch import BatchOrchestrator, run_bulk_scrape, validate_inputs
from .config import ScrapeConfig, SiteConfig
from .detail import scrape_job_detail
from .errors import (
    ConfigurationError,
    ExtractionFailure,
    IngestionFailure,
    NavigationFailure,
    ReadinessTimeout,
    RecoveryFailure,
    ScrapeError,
    SessionCrash,
    UnitFailure,
)
from .ingest import IngestClient, IngestSettings
from .models import (
    ErrorRecord,
    JobRecord,
    Phase,
    RunSummary,
    SearchUnit,
    SessionState,
    UnitResult,
    build_units,
)
from .normalize import normalize_url


__all__ = [
    'run_bulk_scrape',
    'scrape_job_detail',
    'BatchOrchestrator',
    'validate_inputs',
    'ScrapeConfig',
    'SiteConfig',
    'IngestClient',
    'IngestSettings',
    'normalize_url',
    'build_units',
    'SearchUnit',
    'JobRecord',
    'UnitResult',
    'ErrorRecord',
    'RunSummary',
    'SessionState',
    'Phase',
    'ScrapeError',
    'ConfigurationError',
    'UnitFailure',
    'NavigationFailure',
    'ReadinessTimeout',
    'ExtractionFailure',
    'IngestionFailure',
    'SessionCrash',
    'RecoveryFailure',
]
