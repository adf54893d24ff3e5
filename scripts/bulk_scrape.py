#!/usr/bin/env python3
"""
Bulk job-listing scrape.

Walks every (keyword, location) pair on one browser session:
- Load the search results page and verify it is ready
- Extract and normalize listings
- Send each unit's listings to the ingest endpoint right away
- Write an execution log entry (and optionally a summary JSON)

Usage:
    python scripts/bulk_scrape.py                                  # configs/defaults.yaml
    python scripts/bulk_scrape.py --keyword "Product Manager" --location London=90009496
    python scripts/bulk_scrape.py --run-config configs/gulf.yaml --time-window 7d
    python scripts/bulk_scrape.py --dry-run                        # print units, no browser
"""

import argparse
import sys
from datetime import datetime, timezone
from pathlib import Path

from tqdm import tqdm

# Add parent dir to path for scrape module
sys.path.insert(0, str(Path(__file__).parent.parent))

import orchestrate.config as oconfig
from orchestrate.config import (
    apply_cli_overrides,
    build_scrape_config,
    load_ingest_settings,
    load_run_config,
    load_search_matrix,
    parse_location_arg,
)
from orchestrate.presenter import (
    append_execution_log,
    build_log_entry,
    print_summary,
    write_summary_json,
)

from scrape.batch import BatchOrchestrator, validate_inputs
from scrape.errors import ConfigurationError, RecoveryFailure
from scrape.ingest import IngestClient
from scrape.models import build_units
from scrape.navigation import build_search_url


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Bulk scrape job listings into the ingest backend")
    parser.add_argument("--keyword", action="append", help="Search term (repeatable; overrides config keywords)")
    parser.add_argument("--location", action="append", metavar="NAME=ID",
                        help="Location name and geo id (repeatable; overrides config locations)")
    parser.add_argument("--run-config", help="Path to JSON/YAML run config (overrides defaults)")
    parser.add_argument("--time-window", help="Posting age window: 30m, 2h, 24h, 7d or r<seconds>")
    parser.add_argument("--no-headless", action="store_true", help="Run browser visibly")
    parser.add_argument("--min-delay", type=float, help="Minimum delay between units in seconds")
    parser.add_argument("--max-delay", type=float, help="Maximum delay between units in seconds")
    parser.add_argument("--memory-ceiling-mb", type=float, help="Stop the run when the process tree exceeds this")
    parser.add_argument("--screenshot-dir", help="Directory for diagnostic screenshots (default: temp dir)")
    parser.add_argument("--no-screenshots", action="store_true", help="Disable diagnostic screenshots")
    parser.add_argument("--env-file", help="Path to .env file with ingest credentials")
    parser.add_argument("--summary-json", action="store_true",
                        help="Write summary_<timestamp>.json next to the screenshots")
    parser.add_argument("--dry-run", action="store_true", help="Print the unit matrix and exit")
    parser.add_argument("--progress", action="store_true", help="Show a progress bar over units")
    return parser


def resolve_matrix(args: argparse.Namespace, cfg: dict) -> tuple[list[str], dict[str, int]]:
    """Config keywords/locations, replaced wholesale by any CLI --keyword/--location."""
    terms, locations = load_search_matrix(cfg)
    if args.keyword:
        terms = [k.strip() for k in args.keyword if k.strip()]
    if args.location:
        locations = dict(parse_location_arg(value) for value in args.location)
    return terms, locations


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    raw_args = sys.argv[1:] if argv is None else argv

    # Apply run config (unless overridden via CLI)
    provided_flags = {a.lstrip("-").split("=")[0].replace("-", "_") for a in raw_args if a.startswith("--")}
    try:
        cfg = oconfig.load_default_config()
        if args.run_config:
            cfg.update(load_run_config(args.run_config))
        config = build_scrape_config(cfg)
        config = apply_cli_overrides(config, args, provided_flags)
        terms, locations = resolve_matrix(args, cfg)
        validate_inputs(terms, locations)
    except (ConfigurationError, FileNotFoundError) as exc:
        print(f"Error: {exc}")
        return 1

    if args.dry_run:
        units = build_units(terms, locations)
        print(f"{len(units)} unit(s), time window {config.time_window}:")
        for unit in units:
            print(f"  \"{unit.term}\" in {unit.location_name} ({unit.location_id})")
            print(f"    {build_search_url(unit, config.time_window, config.site)}")
        return 0

    try:
        settings = load_ingest_settings(args.env_file)
    except FileNotFoundError as exc:
        print(f"Error: {exc}")
        return 1
    if not settings.configured:
        print("Warning: INGEST_JOB_URL / SUPABASE_SERVICE_ROLE_KEY not set, listings will not be ingested")

    run_start = datetime.now(timezone.utc)
    total_units = len(terms) * len(locations)
    pbar = tqdm(total=total_units, desc="Units", unit="unit") if args.progress else None
    orchestrator = BatchOrchestrator(
        config,
        ingest=IngestClient(settings),
        on_unit_done=(lambda unit: pbar.update(1)) if pbar else None,
    )

    try:
        summary = orchestrator.run(terms, locations)
    except (ConfigurationError, RecoveryFailure) as exc:
        print(f"Error: {exc}")
        return 1
    finally:
        if pbar:
            pbar.close()
    run_end = datetime.now(timezone.utc)

    print_summary(summary)

    if args.summary_json:
        out_dir = Path(summary.screenshot_dir) if summary.screenshot_dir else oconfig.RUNS_DIR
        path = write_summary_json(summary, out_dir)
        print(f"Summary written to: {path}")

    entry = build_log_entry(summary, terms, locations, config, run_start, run_end)
    log_file = append_execution_log(entry, oconfig.EXECUTION_LOG)
    if log_file:
        print(f"Execution logged to: {log_file}")

    if summary.units_attempted and summary.units_failed >= summary.units_attempted:
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
