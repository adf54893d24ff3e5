"""
Tests for scrape/ingest.py - batch and single-job POSTs.
"""

import pytest
import requests

from scrape.errors import IngestionFailure
from scrape.ingest import IngestClient, IngestSettings
from scrape.models import JobRecord, ScrapeMetadata

from fakes import FakeHttp, FakeResponse


SETTINGS = IngestSettings(
    job_url="https://proj.supabase.co/functions/v1/ingest-job",
    service_key="secret",
)

META = ScrapeMetadata("PM", "Dubai", 106204383, "r86400", "2026-01-01T00:00:00+00:00")


def records(n):
    return [JobRecord(id=str(3800000000 + i), title=f"PM {i}", metadata=META) for i in range(n)]


class TestIngestSettings:
    """Tests for IngestSettings."""

    def test_bulk_url_derived(self):
        assert SETTINGS.bulk_url == "https://proj.supabase.co/functions/v1/ingest-scraped-jobs"

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("INGEST_JOB_URL", "https://x/ingest-job")
        monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "k")
        settings = IngestSettings.from_env(timeout=5)
        assert settings.configured
        assert settings.timeout == 5

    def test_missing_env(self, monkeypatch):
        monkeypatch.delenv("INGEST_JOB_URL", raising=False)
        monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "")
        settings = IngestSettings.from_env()
        assert not settings.configured
        assert settings.bulk_url is None


class TestSendBatch:
    """Tests for IngestClient.send_batch."""

    def test_request_shape(self):
        http = FakeHttp(FakeResponse(200, {"inserted": 2}))
        IngestClient(SETTINGS, http=http).send_batch(records(2))

        post = http.posts[0]
        assert post["url"] == SETTINGS.bulk_url
        assert post["headers"]["Authorization"] == "Bearer secret"
        assert post["headers"]["apikey"] == "secret"
        assert post["headers"]["Content-Type"] == "application/json"
        jobs = post["json"]["jobs"]
        assert len(jobs) == 2
        assert jobs[0]["job_id"] == "3800000000"
        assert jobs[0]["scrape_metadata"]["geoId"] == 106204383

    def test_inserted_reported(self):
        http = FakeHttp(FakeResponse(200, {"inserted": 1, "message": "1 duplicate"}))
        result = IngestClient(SETTINGS, http=http).send_batch(records(2))
        assert result.inserted == 1
        assert result.skipped == 1
        assert result.message == "1 duplicate"

    def test_inserted_clamped(self):
        """The backend cannot report more rows than were sent."""
        http = FakeHttp(FakeResponse(200, {"inserted": 50}))
        assert IngestClient(SETTINGS, http=http).send_batch(records(3)).inserted == 3

    @pytest.mark.parametrize("body", [{}, {"inserted": None}, {"inserted": "lots"}, {"inserted": -4}, []])
    def test_odd_inserted_values(self, body):
        http = FakeHttp(FakeResponse(200, body))
        assert IngestClient(SETTINGS, http=http).send_batch(records(2)).inserted == 0

    def test_empty_batch_not_sent(self):
        http = FakeHttp()
        assert IngestClient(SETTINGS, http=http).send_batch([]).inserted == 0
        assert http.posts == []

    def test_unconfigured_skips(self):
        http = FakeHttp()
        result = IngestClient(IngestSettings(), http=http).send_batch(records(4))
        assert result.inserted == 0
        assert result.skipped == 4
        assert http.posts == []

    def test_non_2xx(self):
        http = FakeHttp(FakeResponse(401, text="Unauthorized"))
        with pytest.raises(IngestionFailure) as exc_info:
            IngestClient(SETTINGS, http=http).send_batch(records(1))
        assert exc_info.value.status_code == 401
        assert "Unauthorized" in str(exc_info.value)

    def test_transport_error(self):
        http = FakeHttp(error=requests.ConnectionError("connection refused"))
        with pytest.raises(IngestionFailure, match="ConnectionError"):
            IngestClient(SETTINGS, http=http).send_batch(records(1))

    def test_non_json_body(self):
        http = FakeHttp(FakeResponse(200, None, text="<html>gateway</html>"))
        with pytest.raises(IngestionFailure, match="non-JSON"):
            IngestClient(SETTINGS, http=http).send_batch(records(1))


class TestSendJob:
    """Tests for IngestClient.send_job."""

    def test_posts_to_single_endpoint(self):
        http = FakeHttp(FakeResponse(200, {"id": "abc"}))
        response = IngestClient(SETTINGS, http=http).send_job({"title": "PM"})
        assert response == {"id": "abc"}
        assert http.posts[0]["url"] == SETTINGS.job_url
        assert http.posts[0]["json"] == {"title": "PM"}

    def test_unconfigured_raises(self):
        with pytest.raises(IngestionFailure):
            IngestClient(IngestSettings(), http=FakeHttp()).send_job({"title": "PM"})
