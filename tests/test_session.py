"""
Tests for scrape/session.py - browser lifecycle state machine.
"""

import pytest
from playwright.sync_api import Error as PlaywrightError

from scrape.config import ScrapeConfig
from scrape.errors import RecoveryFailure
from scrape.models import SessionState
from scrape.session import SessionManager, marker_predicate

from fakes import FakeLauncher


def make_manager(outcomes=None, **config_kwargs):
    launcher = FakeLauncher(outcomes)
    manager = SessionManager(ScrapeConfig(**config_kwargs), playwright_factory=launcher)
    return manager, launcher


class TestMarkerPredicate:
    """Tests for the default disconnect predicate."""

    def test_case_insensitive(self):
        pred = marker_predicate(("Target closed",))
        assert pred(PlaywrightError("TARGET CLOSED while waiting"))

    def test_default_markers(self):
        pred = marker_predicate(ScrapeConfig().disconnect_markers)
        assert pred(Exception("Navigation failed because page has been closed"))
        assert pred(Exception("Browser closed."))
        assert pred(Exception("frame was detached Frame"))
        assert not pred(Exception("Timeout 8000ms exceeded"))


class TestEnsureReady:
    """Tests for SessionManager.ensure_ready."""

    def test_first_launch(self):
        manager, launcher = make_manager()
        assert manager.state == SessionState.UNINITIALIZED

        session = manager.ensure_ready()

        assert manager.state == SessionState.READY
        assert session.page is launcher.current.page
        assert manager.launches == 1
        assert manager.recoveries == 0

    def test_launch_settings(self):
        manager, launcher = make_manager(headless=False, viewport=(1440, 900), executable_path="/opt/chrome")
        manager.ensure_ready()

        kwargs = launcher.launch_kwargs[0]
        assert kwargs["headless"] is False
        assert kwargs["executable_path"] == "/opt/chrome"
        assert "--window-size=1440,900" in kwargs["args"]
        context = launcher.current.contexts[0]
        assert context.options["viewport"] == {"width": 1440, "height": 900}
        assert context.options["user_agent"] == ScrapeConfig().user_agent

    def test_executable_from_env(self, monkeypatch):
        monkeypatch.setenv("PLAYWRIGHT_EXECUTABLE_PATH", "/usr/bin/chromium")
        manager, launcher = make_manager()
        manager.ensure_ready()
        assert launcher.launch_kwargs[0]["executable_path"] == "/usr/bin/chromium"

    def test_healthy_session_reused(self):
        manager, launcher = make_manager()
        first = manager.ensure_ready()
        second = manager.ensure_ready()
        assert first is second
        assert manager.launches == 1

    def test_unhealthy_session_relaunched(self):
        """A dead browser found at the health check is replaced once."""
        manager, launcher = make_manager()
        manager.ensure_ready()
        old = launcher.current
        old.crash()

        session = manager.ensure_ready()

        assert session.browser is not old
        assert manager.state == SessionState.READY
        assert manager.launches == 2
        assert manager.recoveries == 1

    def test_first_launch_failure_is_fatal(self):
        manager, _ = make_manager([RuntimeError("Executable doesn't exist")])
        with pytest.raises(RecoveryFailure, match="Executable"):
            manager.ensure_ready()
        assert manager.state == SessionState.FATAL

    def test_fatal_fails_fast(self):
        """No relaunch is attempted once FATAL."""
        manager, launcher = make_manager([RuntimeError("no browser")])
        with pytest.raises(RecoveryFailure):
            manager.ensure_ready()
        with pytest.raises(RecoveryFailure, match="FATAL"):
            manager.ensure_ready()
        assert len(launcher.launch_kwargs) == 1


class TestRecover:
    """Tests for SessionManager.recover and teardown."""

    def test_close_errors_swallowed(self):
        manager, launcher = make_manager()
        manager.ensure_ready()
        old = launcher.current
        old.close_error = PlaywrightError("Browser has been closed")
        old.contexts[0].close_error = PlaywrightError("Target closed")

        manager.mark_disconnected()
        manager.recover()

        assert manager.state == SessionState.READY
        assert launcher.current is not old

    def test_recover_failure_moves_to_fatal(self):
        manager, launcher = make_manager([None, RuntimeError("out of memory")])
        manager.ensure_ready()
        manager.mark_disconnected()

        with pytest.raises(RecoveryFailure):
            manager.recover()
        assert manager.state == SessionState.FATAL
        assert manager.session is None
        assert manager.recoveries == 1

    def test_playwright_stopped_on_recover(self):
        manager, launcher = make_manager()
        manager.ensure_ready()
        manager.recover()
        assert launcher.playwrights[0].stopped
        assert not launcher.playwrights[1].stopped


class TestShouldRecover:
    """Tests for the disconnect decision."""

    def test_uninitialized_never_recovers(self):
        manager, _ = make_manager()
        assert not manager.should_recover(PlaywrightError("Target closed"))

    def test_healthy_plain_timeout(self):
        """A readiness timeout on a live browser is not a disconnect."""
        manager, _ = make_manager()
        manager.ensure_ready()
        assert not manager.should_recover(PlaywrightError("Timeout 8000ms exceeded"))

    def test_marker_on_healthy_browser(self):
        manager, _ = make_manager()
        manager.ensure_ready()
        assert manager.should_recover(PlaywrightError("Target page, context or browser has been closed"))

    def test_unhealthy_browser(self):
        manager, launcher = make_manager()
        manager.ensure_ready()
        launcher.current.crash()
        assert manager.should_recover(ValueError("anything"))

    def test_custom_predicate(self):
        launcher = FakeLauncher()
        manager = SessionManager(
            ScrapeConfig(),
            playwright_factory=launcher,
            disconnect_predicate=lambda exc: "ECONNRESET" in str(exc),
        )
        manager.ensure_ready()
        assert manager.should_recover(Exception("read ECONNRESET"))
        assert not manager.should_recover(Exception("Target closed"))

    def test_fatal_never_recovers(self):
        manager, _ = make_manager([RuntimeError("no browser")])
        with pytest.raises(RecoveryFailure):
            manager.ensure_ready()
        assert not manager.should_recover(PlaywrightError("Target closed"))


class TestClose:
    """Tests for SessionManager.close."""

    def test_close_resets_state(self):
        manager, launcher = make_manager()
        manager.ensure_ready()
        manager.close()
        assert manager.state == SessionState.UNINITIALIZED
        assert manager.session is None
        assert launcher.current.closed

    def test_close_idempotent(self):
        manager, _ = make_manager()
        manager.close()
        manager.close()
        assert manager.state == SessionState.UNINITIALIZED

    def test_context_manager(self):
        launcher = FakeLauncher()
        with SessionManager(ScrapeConfig(), playwright_factory=launcher) as manager:
            manager.ensure_ready()
        assert launcher.current.closed

    def test_fatal_survives_close(self):
        manager, _ = make_manager([RuntimeError("no browser")])
        with pytest.raises(RecoveryFailure):
            manager.ensure_ready()
        manager.close()
        assert manager.state == SessionState.FATAL
