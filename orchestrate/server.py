"""
HTTP scrape service.

Thin Flask layer over the bulk orchestrator and the single posting scrape,
for callers that trigger scrapes remotely.

Endpoints:
    GET  /health       liveness plus which credentials are present
    POST /bulk-scrape  run a keyword x location matrix (defaults.yaml unless overridden)
    POST /scrape       scrape one posting: {"url": ..., "user_id": ...}

The POST endpoints require an x-api-secret header equal to API_SECRET.
With API_SECRET unset the check is skipped.
"""

import os
from dataclasses import replace
from datetime import datetime, timezone
from functools import wraps

from flask import Flask, jsonify, request

from scrape.batch import BatchOrchestrator, validate_inputs
from scrape.detail import scrape_job_detail
from scrape.errors import ConfigurationError, RecoveryFailure, ScrapeError
from scrape.ingest import IngestClient, IngestSettings

from . import config as oconfig
from .config import build_scrape_config, load_ingest_settings, load_search_matrix
from .presenter import append_execution_log, build_log_entry, summary_as_dict


SECRET_HEADER = "x-api-secret"


def require_api_secret(view):
    """Reject requests whose x-api-secret header does not match API_SECRET."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        secret = os.environ.get("API_SECRET")
        if not secret:
            print("  [auth] API_SECRET not set - skipping auth")
            return view(*args, **kwargs)
        if request.headers.get(SECRET_HEADER) != secret:
            print(f"  [auth] invalid API secret for {request.path}")
            return jsonify({"error": "Unauthorized"}), 401
        return view(*args, **kwargs)
    return wrapper


def _error(exc: Exception, status: int):
    return jsonify({"error": str(exc), "type": type(exc).__name__}), status


def bulk_request_config(body: dict) -> dict:
    """Merge request overrides (keywords, locations, time_window) into defaults.yaml."""
    cfg = oconfig.load_default_config()
    for key in ("keywords", "locations"):
        if body.get(key):
            cfg[key] = body[key]
    if body.get("time_window"):
        section = dict(cfg.get("scrape") or {})
        section["time_window"] = body["time_window"]
        cfg["scrape"] = section
    return cfg


def create_app(
    settings: IngestSettings | None = None,
    env_file: str | None = None,
    orchestrator_cls=BatchOrchestrator,
    detail_scraper=scrape_job_detail,
) -> Flask:
    """
    Build the service.

    Args:
        settings: Ingest credentials (loaded from the environment / .env if None)
        env_file: .env path used when settings is None
        orchestrator_cls: Called as orchestrator_cls(config, ingest=...) per bulk request
        detail_scraper: Called as detail_scraper(url, user_id, config=..., ingest=...)
    """
    if settings is None:
        settings = load_ingest_settings(env_file)

    app = Flask(__name__)
    app.config["INGEST_SETTINGS"] = settings

    @app.route('/health')
    def health():
        """Health check endpoint."""
        return jsonify({
            'status': 'healthy',
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'config': {
                'ingestJobUrl': bool(settings.job_url),
                'serviceRoleKey': bool(settings.service_key),
                'apiSecret': bool(os.environ.get("API_SECRET")),
            },
        }), 200

    @app.route('/bulk-scrape', methods=['POST'])
    @require_api_secret
    def bulk_scrape():
        """
        Run a bulk scrape.

        Request body (all optional):
            {"keywords": [...], "locations": {"Dubai": 106204383}, "time_window": "24h"}

        Returns:
            The run summary as JSON
        """
        body = request.get_json(silent=True) or {}
        if not isinstance(body, dict):
            return jsonify({"error": "Request body must be a JSON object"}), 400

        print("\n[bulk-scrape] request received")
        try:
            cfg = bulk_request_config(body)
            config = replace(build_scrape_config(cfg), headless=True)
            terms, locations = load_search_matrix(cfg)
            validate_inputs(terms, locations)
        except ConfigurationError as exc:
            return _error(exc, 400)

        started = datetime.now(timezone.utc)
        orchestrator = orchestrator_cls(config, ingest=IngestClient(settings))
        try:
            summary = orchestrator.run(terms, locations)
        except ConfigurationError as exc:
            return _error(exc, 400)
        except RecoveryFailure as exc:
            print(f"  [bulk-scrape] browser launch failed: {exc}")
            return _error(exc, 500)
        finished = datetime.now(timezone.utc)

        entry = build_log_entry(summary, terms, locations, config, started, finished)
        entry["command"] = "POST /bulk-scrape"
        append_execution_log(entry, oconfig.EXECUTION_LOG)

        print(f"[bulk-scrape] done: {summary.total_extracted} scraped, "
              f"{summary.total_ingested} inserted, {len(summary.errors)} error(s)")
        return jsonify(summary_as_dict(summary)), 200

    @app.route('/scrape', methods=['POST'])
    @require_api_secret
    def scrape():
        """
        Scrape one posting and send it to the single-job ingest endpoint.

        Request body:
            {"url": "https://www.linkedin.com/jobs/view/...", "user_id": "..."}
        """
        body = request.get_json(silent=True) or {}
        url = body.get("url") if isinstance(body, dict) else None
        user_id = body.get("user_id") if isinstance(body, dict) else None
        if not url or not user_id:
            return jsonify({"error": "Missing required fields: url and user_id"}), 400
        if not settings.configured:
            return jsonify({"error": "INGEST_JOB_URL and SUPABASE_SERVICE_ROLE_KEY must be set"}), 503

        print(f"\n[scrape] {url} (user {user_id})")
        try:
            config = replace(build_scrape_config(oconfig.load_default_config()), headless=True)
            payload = detail_scraper(url, user_id, config=config, ingest=IngestClient(settings))
        except ScrapeError as exc:
            print(f"  [scrape] failed [{type(exc).__name__}]: {exc}")
            return _error(exc, 500)

        return jsonify({
            'success': True,
            'message': 'Job scraped and ingested successfully',
            'job': payload,
        }), 200

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Endpoint not found'}), 404

    return app
