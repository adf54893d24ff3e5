#!/usr/bin/env python3
"""
Run the HTTP scrape service.

Usage:
    python scripts/serve.py                     # PORT env var or 10000
    python scripts/serve.py --port 8080 --env-file .env.production
"""

import argparse
import os
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from orchestrate.config import load_ingest_settings
from orchestrate.server import create_app


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Serve /health, /bulk-scrape and /scrape over HTTP")
    parser.add_argument("--host", default="0.0.0.0", help="Bind address (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=int(os.environ.get("PORT", "10000")),
                        help="Port (default: $PORT or 10000)")
    parser.add_argument("--env-file", help="Path to .env file with ingest credentials and API_SECRET")
    args = parser.parse_args(argv)

    try:
        settings = load_ingest_settings(args.env_file)
    except FileNotFoundError as exc:
        print(f"Error: {exc}")
        return 1

    print(f"\n{'='*60}")
    print("Job scrape service")
    print(f"{'='*60}")
    print(f"Port: {args.port}")
    print(f"Ingest job URL: {settings.job_url or 'not set'}")
    print(f"Service role key: {'set' if settings.service_key else 'missing'}")
    print(f"API secret: {'set' if os.environ.get('API_SECRET') else 'not set (auth disabled)'}")
    if not settings.configured:
        print("Warning: ingest credentials missing, /scrape will refuse requests and /bulk-scrape will not ingest")

    app = create_app(settings=settings)
    app.run(host=args.host, port=args.port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
