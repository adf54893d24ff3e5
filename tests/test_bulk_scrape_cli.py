"""
Tests for scripts/bulk_scrape.py - argument handling and exit codes.
"""

import json

import pytest

import orchestrate.config as oconfig
from scripts import bulk_scrape
from scrape.errors import RecoveryFailure
from scrape.models import ErrorRecord, Phase, RunSummary, SearchUnit, SessionState


@pytest.fixture(autouse=True)
def isolated_paths(tmp_path, monkeypatch):
    """No repo defaults, logs go to tmp."""
    monkeypatch.setattr(oconfig, "DEFAULTS_FILE", tmp_path / "defaults.yaml")
    monkeypatch.setattr(oconfig, "RUNS_DIR", tmp_path / "runs")
    monkeypatch.setattr(oconfig, "EXECUTION_LOG", tmp_path / "runs" / "logs" / "executions.jsonl")
    for name in ("INGEST_JOB_URL", "SUPABASE_SERVICE_ROLE_KEY"):
        monkeypatch.setenv(name, "placeholder")
        monkeypatch.delenv(name)
    return tmp_path


class StubOrchestrator:
    """Stands in for BatchOrchestrator; returns a canned summary."""

    outcome = None
    calls = []

    def __init__(self, config, ingest=None, on_unit_done=None):
        self.config = config

    def run(self, terms, locations):
        StubOrchestrator.calls.append((list(terms), dict(locations), self.config))
        if isinstance(StubOrchestrator.outcome, BaseException):
            raise StubOrchestrator.outcome
        return StubOrchestrator.outcome


def failed_summary(n):
    units = [SearchUnit("PM", f"L{i}", i) for i in range(n)]
    return RunSummary(
        units_planned=n,
        units_attempted=n,
        errors=[
            ErrorRecord(u, Phase.NAVIGATION, "boom", SessionState.FATAL, "2026-01-01T00:00:00+00:00", 1)
            for u in units
        ],
    )


@pytest.fixture
def stub(monkeypatch):
    StubOrchestrator.calls = []
    StubOrchestrator.outcome = RunSummary(total_extracted=3, total_ingested=3, units_planned=1, units_attempted=1)
    monkeypatch.setattr(bulk_scrape, "BatchOrchestrator", StubOrchestrator)
    return StubOrchestrator


class TestDryRun:
    """--dry-run prints the matrix without launching anything."""

    def test_lists_units(self, capsys, stub):
        code = bulk_scrape.main(["--keyword", "PM", "--location", "Dubai=106204383",
                                 "--location", "Bern=104691271", "--time-window", "2h", "--dry-run"])
        out = capsys.readouterr().out
        assert code == 0
        assert "2 unit(s), time window r7200" in out
        assert out.index("Dubai") < out.index("Bern")
        assert stub.calls == []

    def test_run_config(self, tmp_path, capsys, stub):
        cfg = tmp_path / "run.yaml"
        cfg.write_text("keywords: [PM, Designer]\nlocations:\n  London: 90009496\n")
        assert bulk_scrape.main(["--run-config", str(cfg), "--dry-run"]) == 0
        assert "2 unit(s)" in capsys.readouterr().out


class TestExitCodes:
    """Exit codes for config errors, launch failure and failed runs."""

    def test_no_matrix(self, stub):
        assert bulk_scrape.main([]) == 1

    def test_bad_time_window(self, stub):
        assert bulk_scrape.main(["--keyword", "PM", "--location", "A=1", "--time-window", "soon"]) == 1

    def test_bad_location(self, stub):
        assert bulk_scrape.main(["--keyword", "PM", "--location", "Dubai"]) == 1

    def test_success(self, stub, isolated_paths):
        assert bulk_scrape.main(["--keyword", "PM", "--location", "A=1", "--no-headless"]) == 0
        terms, locations, config = stub.calls[0]
        assert terms == ["PM"]
        assert locations == {"A": 1}
        assert config.headless is False

        log_file = isolated_paths / "runs" / "logs" / "executions.jsonl"
        entry = json.loads(log_file.read_text().strip())
        assert entry["results"]["total_extracted"] == 3

    def test_first_launch_failure(self, stub):
        stub.outcome = RecoveryFailure("Browser launch failed: no executable")
        assert bulk_scrape.main(["--keyword", "PM", "--location", "A=1"]) == 1

    def test_all_units_failed(self, stub):
        stub.outcome = failed_summary(2)
        assert bulk_scrape.main(["--keyword", "PM", "--location", "A=1"]) == 2

    def test_summary_json(self, stub, isolated_paths):
        assert bulk_scrape.main(["--keyword", "PM", "--location", "A=1", "--summary-json"]) == 0
        written = list((isolated_paths / "runs").glob("summary_*.json"))
        assert len(written) == 1
