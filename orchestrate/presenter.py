"""
Presentation helpers for bulk scrape output.

Keeps the CLI focused on orchestration while this module turns a
RunSummary into JSON, prints the end-of-run report and appends the
execution log.
"""

from __future__ import annotations

import json
import sys
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path

from scrape.config import ScrapeConfig
from scrape.models import ErrorRecord, RunSummary


def error_as_dict(error: ErrorRecord) -> dict:
    return {
        "keyword": error.unit.term,
        "location": error.unit.location_name,
        "geoId": error.unit.location_id,
        "phase": error.phase.value,
        "error": error.message,
        "session_state": error.session_state.value,
        "url": error.url or "not generated",
        "timestamp": error.timestamp,
        "duration": f"{error.duration_ms / 1000:.1f}s",
    }


def summary_as_dict(summary: RunSummary) -> dict:
    return {
        "success": True,
        "total_scraped": summary.total_extracted,
        "inserted": summary.total_ingested,
        "units": {
            "planned": summary.units_planned,
            "attempted": summary.units_attempted,
            "empty": summary.units_empty,
            "failed": summary.units_failed,
        },
        "recoveries": summary.recoveries,
        "stopped_early": summary.stopped_early,
        "errors": [error_as_dict(e) for e in summary.errors],
        "screenshots": list(summary.screenshots),
        "screenshot_dir": summary.screenshot_dir,
    }


def phase_counts(summary: RunSummary) -> dict[str, int]:
    return dict(Counter(e.phase.value for e in summary.errors))


def print_summary(summary: RunSummary) -> None:
    print(f"\n{'='*60}")
    print(f"Units: {summary.units_attempted}/{summary.units_planned} attempted, "
          f"{summary.units_empty} empty, {summary.units_failed} failed")
    print(f"Total jobs scraped: {summary.total_extracted}")
    print(f"Total jobs inserted: {summary.total_ingested}")
    if summary.recoveries:
        print(f"Browser recoveries: {summary.recoveries}")
    if summary.stopped_early:
        print(f"Stopped early: {summary.stopped_early}")
    if summary.errors:
        counts = ', '.join(f"{k}:{v}" for k, v in phase_counts(summary).items())
        print(f"Errors: {len(summary.errors)} ({counts})")
        for e in summary.errors:
            print(f"  - \"{e.unit.term}\" in {e.unit.location_name} [{e.phase.value}]: {e.message[:160]}")
    if summary.screenshot_dir:
        print(f"Screenshots: {len(summary.screenshots)} in {summary.screenshot_dir}")


def write_summary_json(summary: RunSummary, out_dir: Path) -> Path:
    """Write the summary next to the screenshots (or wherever asked)."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    path = out_dir / f"summary_{stamp}.json"
    path.write_text(json.dumps(summary_as_dict(summary), indent=2), encoding="utf-8")
    return path


def build_log_entry(
    summary: RunSummary,
    terms: list[str],
    locations: dict[str, int],
    config: ScrapeConfig,
    started: datetime,
    finished: datetime,
) -> dict:
    return {
        "timestamp": finished.isoformat(),
        "duration_sec": round((finished - started).total_seconds(), 1),
        "command": " ".join(sys.argv),
        "config": {
            "keywords": list(terms),
            "locations": dict(locations),
            "time_window": config.time_window,
            "headless": config.headless,
            "delay_window": [config.min_delay_sec, config.max_delay_sec],
            "memory_ceiling_mb": config.memory_ceiling_mb,
        },
        "results": {
            "units_planned": summary.units_planned,
            "units_attempted": summary.units_attempted,
            "units_empty": summary.units_empty,
            "units_failed": summary.units_failed,
            "total_extracted": summary.total_extracted,
            "total_ingested": summary.total_ingested,
            "recoveries": summary.recoveries,
            "stopped_early": summary.stopped_early,
            "error_phases": phase_counts(summary),
        },
    }


def append_execution_log(entry: dict, log_file: Path) -> Path | None:
    """Append one JSON line; a failure to log never fails the run."""
    try:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        with open(log_file, "a") as f:
            f.write(json.dumps(entry) + "\n")
        return log_file
    except Exception as exc:
        print(f"Warning: Could not write execution log: {exc}")
        return None
