"""
Batch orchestrator.

Walks the term x location matrix in fixed nested order, one unit at a
time on one browser session:

    guard -> ensure_ready -> load_unit -> extract -> normalize/stamp
          -> ingest (immediately, per unit) -> throttle -> next unit

Every unit failure is caught at the unit boundary and becomes an
ErrorRecord. Only bad input and a failed very-first launch escape run().
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Callable, Mapping, Sequence

from .config import ScrapeConfig
from .diagnostics import ERROR, build_diagnostics
from .errors import ConfigurationError, IngestionFailure, RecoveryFailure, UnitFailure
from .extraction import ExtractionAdapter, utc_now_iso
from .ingest import IngestClient, IngestSettings
from .models import ErrorRecord, Phase, RunSummary, SearchUnit, SessionState, UnitResult, build_units
from .navigation import EmptyResult, Navigator
from .session import SessionManager
from .throttle import RateLimiter, ResourceGuard


def validate_inputs(terms: Sequence[str], locations: Mapping[str, int]) -> None:
    """Fail fast on an empty or malformed matrix."""
    if isinstance(terms, str) or not isinstance(terms, Sequence) or len(terms) == 0:
        raise ConfigurationError("terms must be a non-empty list of search terms")
    for term in terms:
        if not isinstance(term, str) or not term.strip():
            raise ConfigurationError(f"Invalid search term: {term!r}")

    if not isinstance(locations, Mapping) or len(locations) == 0:
        raise ConfigurationError("locations must be a non-empty mapping of location name -> id")
    for name, geo_id in locations.items():
        if not isinstance(name, str) or not name.strip():
            raise ConfigurationError(f"Invalid location name: {name!r}")
        if isinstance(geo_id, bool) or not isinstance(geo_id, int):
            raise ConfigurationError(f"Location id for {name!r} must be an integer, got {geo_id!r}")


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class BatchOrchestrator:
    """Drives a whole batch run. Single-threaded, one unit in flight."""

    def __init__(
        self,
        config: ScrapeConfig | None = None,
        session: SessionManager | None = None,
        navigator: Navigator | None = None,
        extractor: ExtractionAdapter | None = None,
        ingest: IngestClient | None = None,
        diagnostics=None,
        limiter: RateLimiter | None = None,
        guard: ResourceGuard | None = None,
        on_unit_done: Callable[[SearchUnit], None] | None = None,
    ):
        self.config = config or ScrapeConfig()
        self.diagnostics = diagnostics or build_diagnostics(self.config)
        self.session = session or SessionManager(self.config)
        self.navigator = navigator or Navigator(self.config, self.diagnostics)
        self.extractor = extractor or ExtractionAdapter(self.config)
        self.ingest = ingest or IngestClient(IngestSettings.from_env())
        self.limiter = limiter or RateLimiter.from_config(self.config)
        self.guard = guard or ResourceGuard.from_config(self.config)
        self.on_unit_done = on_unit_done

    def run(self, terms: Sequence[str], locations: Mapping[str, int]) -> RunSummary:
        """
        Scrape every (term, location) unit and stream results to ingestion.

        Returns:
            RunSummary with best-effort totals and per-unit errors

        Raises:
            ConfigurationError: empty or malformed input (before launch)
            RecoveryFailure: the very first browser launch failed
        """
        validate_inputs(terms, locations)
        units = build_units(terms, locations)

        screenshot_dir = getattr(self.diagnostics, 'screenshot_dir', None)
        summary = RunSummary(
            units_planned=len(units),
            screenshot_dir=str(screenshot_dir) if screenshot_dir else None,
        )
        print(f"Scraping {len(terms)} term(s) x {len(locations)} location(s) = {len(units)} unit(s)")

        recoveries_before = getattr(self.session, 'recoveries', 0)
        try:
            for index, unit in enumerate(units):
                if not self.guard.check_resource_budget():
                    summary.stopped_early = "resource budget exceeded"
                    print(f"Stopping early: resource budget exceeded before unit {index + 1}/{len(units)}")
                    break

                summary.units_attempted += 1
                print(f"\n[{index + 1}/{len(units)}] \"{unit.term}\" in {unit.location_name}")
                self._run_unit(unit, summary, first=(index == 0))
                if self.on_unit_done is not None:
                    self.on_unit_done(unit)

                # Unconditional, outside the unit's error handling
                self.limiter.delay_between_units()
        finally:
            self.session.close()
            summary.recoveries = getattr(self.session, 'recoveries', 0) - recoveries_before

        print(f"\nBulk scrape completed: {summary.total_extracted} extracted, "
              f"{summary.total_ingested} ingested, {len(summary.errors)} error(s)")
        return summary

    def _run_unit(self, unit: SearchUnit, summary: RunSummary, first: bool) -> None:
        started = time.monotonic()
        screenshots: list[str] = []
        url = self.navigator.url_for(unit)

        try:
            session = self.session.ensure_ready()
        except RecoveryFailure as exc:
            if first:
                raise
            self._record(summary, unit, Phase.NAVIGATION, str(exc), started, url, self.session.state)
            print(f"  FAILED (session unavailable): {exc}")
            return

        phase = Phase.NAVIGATION
        try:
            outcome = self.navigator.load_unit(session, unit, screenshots)
            if isinstance(outcome, EmptyResult):
                summary.units_empty += 1
                print(f"  No jobs found ({_elapsed_ms(started) / 1000:.1f}s)")
                return

            phase = Phase.EXTRACTION
            scraped_at = utc_now_iso()
            raw = self.extractor.extract(session.page)
            records = self.extractor.finalize(raw, unit, scraped_at)
            result = UnitResult(
                unit=unit,
                records=records,
                duration_ms=_elapsed_ms(started),
                screenshot_paths=list(screenshots),
            )
            summary.total_extracted += len(result.records)
            print(f"  Extracted {len(result.records)} job(s) from {outcome.item_count} card(s) "
                  f"in {result.duration_ms / 1000:.1f}s")

            phase = Phase.INGEST
            self._dispatch(result, summary, url, started)
        except Exception as exc:
            self._handle_failure(unit, phase, exc, started, url, screenshots, summary)
        finally:
            summary.screenshots.extend(screenshots)

    def _dispatch(self, result: UnitResult, summary: RunSummary, url: str, started: float) -> None:
        """Send one unit's records now, so a later crash cannot lose them."""
        if not result.records:
            return
        print(f"  [ingest] sending {len(result.records)} job(s)")
        try:
            ingested = self.ingest.send_batch(result.records)
        except IngestionFailure as exc:
            print(f"  [ingest] failed for {result.unit.location_name}: {exc}")
            self._record(summary, result.unit, Phase.INGEST, str(exc), started, url, self.session.state)
            return
        summary.total_ingested += ingested.inserted
        print(f"  [ingest] inserted {ingested.inserted}")

    def _handle_failure(
        self,
        unit: SearchUnit,
        phase: Phase,
        exc: Exception,
        started: float,
        url: str,
        screenshots: list[str],
        summary: RunSummary,
    ) -> None:
        if isinstance(exc, UnitFailure):
            phase = exc.phase
        message = str(exc) or type(exc).__name__

        print(f"  FAILED after {_elapsed_ms(started) / 1000:.1f}s [{phase.value}]: {message}")
        print(f"  [diag] {self.session.describe()}")

        if self.session.is_healthy():
            path = self.diagnostics.capture(self.session.session.page, unit, ERROR)
            if path:
                screenshots.append(path)

        state = self.session.state
        if self.session.should_recover(exc):
            self.session.mark_disconnected()
            state = self.session.state
            print("  [recover] browser crash/disconnect detected, relaunching")
            try:
                self.session.recover()
                print("  [recover] browser relaunched")
            except RecoveryFailure as rexc:
                message = f"{message}; recovery failed: {rexc}"
                state = SessionState.FATAL
                print(f"  [recover] relaunch failed, remaining units will fail: {rexc}")

        self._record(summary, unit, phase, message, started, url, state)

    def _record(
        self,
        summary: RunSummary,
        unit: SearchUnit,
        phase: Phase,
        message: str,
        started: float,
        url: str,
        state: SessionState,
    ) -> None:
        summary.errors.append(ErrorRecord(
            unit=unit,
            phase=phase,
            message=message,
            session_state=state,
            timestamp=datetime.now(timezone.utc).isoformat(),
            duration_ms=_elapsed_ms(started),
            url=url,
        ))


def run_bulk_scrape(
    terms: Sequence[str],
    locations: Mapping[str, int],
    config: ScrapeConfig | None = None,
    ingest: IngestClient | None = None,
) -> RunSummary:
    """Run a batch with default components."""
    return BatchOrchestrator(config, ingest=ingest).run(terms, locations)
