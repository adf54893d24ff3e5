"""
Ingestion client.

One POST per unit with that unit's records. Missing credentials skip
ingestion with a warning instead of failing the run.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

import requests

from .errors import IngestionFailure
from .models import JobRecord


BULK_SUFFIX = "/ingest-scraped-jobs"
SINGLE_SUFFIX = "/ingest-job"


@dataclass(frozen=True)
class IngestSettings:
    """Endpoint and credential for the ingestion backend."""
    job_url: str | None = None
    service_key: str | None = None
    timeout: float = 30.0

    @classmethod
    def from_env(cls, timeout: float = 30.0) -> "IngestSettings":
        return cls(
            job_url=os.environ.get("INGEST_JOB_URL") or None,
            service_key=os.environ.get("SUPABASE_SERVICE_ROLE_KEY") or None,
            timeout=timeout,
        )

    @property
    def configured(self) -> bool:
        return bool(self.job_url and self.service_key)

    @property
    def bulk_url(self) -> str | None:
        if not self.job_url:
            return None
        return self.job_url.replace(SINGLE_SUFFIX, BULK_SUFFIX)


@dataclass
class IngestResult:
    """Outcome of one batch POST."""
    inserted: int
    skipped: int = 0
    message: str | None = None
    response: dict = field(default_factory=dict)


class IngestClient:
    """Sends record batches to the ingestion endpoint."""

    def __init__(self, settings: IngestSettings, http: requests.Session | None = None):
        self.settings = settings
        self.http = http or requests.Session()

    def _headers(self) -> dict:
        key = self.settings.service_key
        return {
            'Content-Type': 'application/json',
            'Authorization': f'Bearer {key}',
            'apikey': key,
        }

    def _post(self, url: str, body: dict) -> dict:
        try:
            resp = self.http.post(url, json=body, headers=self._headers(), timeout=self.settings.timeout)
        except requests.RequestException as exc:
            raise IngestionFailure(f"Ingest request failed: {type(exc).__name__}: {exc}") from exc

        if not 200 <= resp.status_code < 300:
            raise IngestionFailure(
                f"Failed to ingest: {resp.status_code} - {resp.text[:500]}",
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise IngestionFailure(
                f"Ingest returned non-JSON body: {resp.text[:200]}",
                status_code=resp.status_code,
            ) from exc
        return data if isinstance(data, dict) else {"data": data}

    def send_batch(self, records: list[JobRecord]) -> IngestResult:
        """
        POST one unit's records.

        Returns:
            IngestResult with inserted clamped to [0, len(records)]

        Raises:
            IngestionFailure: non-2xx, transport error, or non-JSON body
        """
        if not records:
            return IngestResult(inserted=0)

        if not self.settings.configured:
            print("  [ingest] skipping: INGEST_JOB_URL or SUPABASE_SERVICE_ROLE_KEY not set")
            return IngestResult(inserted=0, skipped=len(records), message="Ingest skipped - env not set")

        data = self._post(self.settings.bulk_url, {"jobs": [r.as_payload() for r in records]})

        try:
            inserted = int(data.get("inserted") or 0)
        except (TypeError, ValueError):
            inserted = 0
        inserted = max(0, min(inserted, len(records)))

        skipped = data.get("skipped")
        if not isinstance(skipped, int):
            skipped = len(records) - inserted

        return IngestResult(inserted=inserted, skipped=skipped, message=data.get("message"), response=data)

    def send_job(self, payload: dict) -> dict:
        """POST a single posting to the single-job endpoint."""
        if not self.settings.configured:
            raise IngestionFailure("INGEST_JOB_URL or SUPABASE_SERVICE_ROLE_KEY not configured")
        return self._post(self.settings.job_url, payload)
