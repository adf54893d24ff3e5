#!/usr/bin/env python3
"""
Scrape a single job posting and send it to the single-job ingest endpoint.

Usage:
    python scripts/scrape_job.py https://www.linkedin.com/jobs/view/4012345678/ --user-id abc123
    python scripts/scrape_job.py URL --user-id abc123 --no-ingest      # print only
"""

import argparse
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from orchestrate.config import (
    apply_cli_overrides,
    build_scrape_config,
    load_default_config,
    load_ingest_settings,
)

from scrape.detail import scrape_job_detail
from scrape.errors import ConfigurationError, ScrapeError
from scrape.ingest import IngestClient


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Scrape one job posting")
    parser.add_argument("url", help="Job posting URL")
    parser.add_argument("--user-id", required=True, help="Owner of the posting in the ingest backend")
    parser.add_argument("--no-ingest", action="store_true", help="Print the payload without sending it")
    parser.add_argument("--no-headless", action="store_true", help="Run browser visibly")
    parser.add_argument("--env-file", help="Path to .env file with ingest credentials")
    args = parser.parse_args(argv)
    raw_args = sys.argv[1:] if argv is None else argv
    provided_flags = {a.lstrip("-").split("=")[0].replace("-", "_") for a in raw_args if a.startswith("--")}

    try:
        config = build_scrape_config(load_default_config())
        config = apply_cli_overrides(config, args, provided_flags)
        ingest = None
        if not args.no_ingest:
            settings = load_ingest_settings(args.env_file)
            if not settings.configured:
                print("Error: INGEST_JOB_URL and SUPABASE_SERVICE_ROLE_KEY must be set (or pass --no-ingest)")
                return 1
            ingest = IngestClient(settings)
    except (ConfigurationError, FileNotFoundError) as exc:
        print(f"Error: {exc}")
        return 1

    try:
        payload = scrape_job_detail(args.url, args.user_id, config=config, ingest=ingest)
    except ScrapeError as exc:
        print(f"Error [{type(exc).__name__}]: {exc}")
        return 1

    print(json.dumps(payload, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
