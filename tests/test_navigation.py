"""
Tests for scrape/navigation.py - URL building and the staged readiness protocol.
"""

from urllib.parse import parse_qs, urlsplit

import pytest
from playwright.sync_api import Error as PlaywrightError

from scrape.config import ScrapeConfig, SiteConfig
from scrape.diagnostics import ScreenshotCapture
from scrape.errors import NavigationFailure, ReadinessTimeout
from scrape.models import SearchUnit
from scrape.navigation import EmptyResult, Navigator, PageReady, build_search_url
from scrape.session import Session

from fakes import FakeBrowser, FakeElement, FakePage, RecordingDiagnostics


UNIT = SearchUnit("Product Manager", "Dubai", 106204383)
SITE = SiteConfig()


def make_session(page):
    browser = FakeBrowser(page)
    return Session(browser, browser.new_context(), page)


def ready_page(item_count=3, overlay=False):
    page = FakePage(item_count=item_count)
    page.present[SITE.results_selector] = FakeElement()
    if overlay:
        page.present[SITE.overlay_dismiss_selector] = FakeElement()
    return page


class TestBuildSearchUrl:
    """Tests for build_search_url."""

    def test_params(self):
        url = build_search_url(UNIT, "r86400", SITE)
        parts = urlsplit(url)
        assert url.startswith(SITE.base_url)
        assert parse_qs(parts.query) == {
            "keywords": ["Product Manager"],
            "f_TPR": ["r86400"],
            "geoId": ["106204383"],
        }

    def test_deterministic(self):
        assert build_search_url(UNIT, "r86400", SITE) == build_search_url(UNIT, "r86400", SITE)

    def test_navigator_uses_config_window(self):
        nav = Navigator(ScrapeConfig(time_window="r7200"))
        assert "f_TPR=r7200" in nav.url_for(UNIT)


class TestLoadUnit:
    """Tests for Navigator.load_unit."""

    def setup_method(self):
        self.config = ScrapeConfig()
        self.diag = RecordingDiagnostics()
        self.nav = Navigator(self.config, self.diag)

    def test_ready(self):
        page = ready_page(item_count=25)
        shots = []
        outcome = self.nav.load_unit(make_session(page), UNIT, shots)

        assert isinstance(outcome, PageReady)
        assert outcome.item_count == 25
        assert [tag for _, tag in self.diag.tags] == ["immediate", "initial", "pre-scrape"]
        assert len(shots) == 3

    def test_minimal_wait_criteria(self):
        page = ready_page()
        self.nav.load_unit(make_session(page), UNIT)
        _, wait_until, timeout = page.gotos[0]
        assert wait_until == "domcontentloaded"
        assert timeout == self.config.navigation_timeout_ms

    def test_empty_result_not_an_error(self):
        """Zero items is EmptyResult with its own checkpoint and extra delay."""
        page = ready_page(item_count=0)
        outcome = self.nav.load_unit(make_session(page), UNIT)

        assert isinstance(outcome, EmptyResult)
        assert ("Dubai", "no-results") in self.diag.tags
        assert page.waits[-1] == self.config.empty_result_delay_ms

    def test_goto_error(self):
        page = ready_page()
        page.goto_error = PlaywrightError("net::ERR_NAME_NOT_RESOLVED")
        with pytest.raises(NavigationFailure):
            self.nav.load_unit(make_session(page), UNIT)
        assert self.diag.tags == []

    def test_redirect_to_login(self):
        """Landing off the results path is a navigation failure."""
        page = ready_page()
        page.landing_url = "https://www.linkedin.com/authwall?trk=guest"
        with pytest.raises(NavigationFailure, match="Redirected"):
            self.nav.load_unit(make_session(page), UNIT)

    def test_disconnect_during_settle(self):
        page = ready_page()
        session = make_session(page)
        page.on_goto = lambda p: session.browser.crash()
        with pytest.raises(NavigationFailure, match="disconnected"):
            self.nav.load_unit(session, UNIT)

    def test_settle_wait_error(self):
        page = ready_page()
        page.wait_error = PlaywrightError("Target closed")
        with pytest.raises(NavigationFailure):
            self.nav.load_unit(make_session(page), UNIT)

    def test_readiness_timeout(self):
        """Results container never appears."""
        page = FakePage()
        with pytest.raises(ReadinessTimeout):
            self.nav.load_unit(make_session(page), UNIT)

    def test_readiness_engine_error(self):
        page = ready_page()
        page.selector_errors[SITE.results_selector] = PlaywrightError("Execution context was destroyed")
        with pytest.raises(ReadinessTimeout):
            self.nav.load_unit(make_session(page), UNIT)

    def test_count_error(self):
        page = ready_page()
        page.count_error = PlaywrightError("boom")
        with pytest.raises(ReadinessTimeout):
            self.nav.load_unit(make_session(page), UNIT)

    def test_overlay_dismissed(self):
        page = ready_page(overlay=True)
        self.nav.load_unit(make_session(page), UNIT)
        assert page.present[SITE.overlay_dismiss_selector].clicks == 1
        assert self.config.overlay_settle_ms in page.waits

    def test_overlay_click_failure_swallowed(self):
        page = ready_page()
        page.present[SITE.overlay_dismiss_selector] = FakeElement(click_error=PlaywrightError("not clickable"))
        assert isinstance(self.nav.load_unit(make_session(page), UNIT), PageReady)

    def test_screenshot_failures_do_not_fail_unit(self, tmp_path):
        page = ready_page()
        page.screenshot_error = PlaywrightError("Timeout 5000ms exceeded")
        nav = Navigator(self.config, ScreenshotCapture(tmp_path))
        shots = []
        assert isinstance(nav.load_unit(make_session(page), UNIT, shots), PageReady)
        assert shots == []
