"""
Per-unit navigation and staged readiness gates.

load_unit() walks one unit from a blank page to a page ready for
extraction:

1. navigate with minimal wait-for-load criteria
2. immediate screenshot (informational)
3. settle, then re-validate session + landing URL
4. dismiss sign-in overlay if present
5. wait for the results container
6. stabilize, count items; zero items is EmptyResult, not an error

Every wait is bounded. Failures raise NavigationFailure or
ReadinessTimeout; the orchestrator records them.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlencode

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from . import diagnostics as diag
from .config import ScrapeConfig, SiteConfig
from .errors import NavigationFailure, ReadinessTimeout
from .models import SearchUnit
from .session import Session


@dataclass
class PageReady:
    """Results are on the page; extraction can proceed."""
    url: str
    item_count: int


@dataclass
class EmptyResult:
    """The results page loaded but holds no listings. Not a failure."""
    url: str


def build_search_url(unit: SearchUnit, time_window: str, site: SiteConfig) -> str:
    """Build the results URL for a unit. Deterministic."""
    params = {
        site.keyword_param: unit.term,
        site.time_window_param: time_window,
        site.geo_param: str(unit.location_id),
    }
    return f"{site.base_url}?{urlencode(params)}"


class Navigator:
    """Drives one page through the readiness protocol for a unit."""

    def __init__(self, config: ScrapeConfig, diagnostics=None):
        self.config = config
        self.site = config.site
        self.diagnostics = diagnostics or diag.NullCapture()

    def url_for(self, unit: SearchUnit) -> str:
        return build_search_url(unit, self.config.time_window, self.site)

    def load_unit(self, session: Session, unit: SearchUnit, screenshots: list[str] | None = None) -> PageReady | EmptyResult:
        """
        Navigate to the unit's results page and wait until it is extractable.

        Args:
            session: Ready session from SessionManager.ensure_ready()
            unit: Unit to load
            screenshots: Captured screenshot paths are appended here

        Returns:
            PageReady or EmptyResult

        Raises:
            NavigationFailure: navigation error, dead session, or redirect away
            ReadinessTimeout: results container never appeared
        """
        if screenshots is None:
            screenshots = []
        config = self.config
        page = session.page
        url = self.url_for(unit)
        print(f"  [nav] {url}")

        # (a) navigate
        try:
            page.goto(url, wait_until=config.wait_until, timeout=config.navigation_timeout_ms)
        except PlaywrightError as exc:
            raise NavigationFailure(f"Navigation failed: {exc}") from exc

        # (b) pre-stabilization snapshot
        self._checkpoint(page, unit, diag.IMMEDIATE, screenshots)

        # (c) settle and re-validate
        try:
            page.wait_for_timeout(config.settle_delay_ms)
        except PlaywrightError as exc:
            raise NavigationFailure(f"Page lost during stability wait: {exc}") from exc

        if not session.is_healthy():
            raise NavigationFailure(f"Browser disconnected during navigation ({session.describe()})")

        current_url = page.url
        if self.site.results_path not in current_url:
            raise NavigationFailure(f"Redirected away from results page to: {current_url}")

        self._checkpoint(page, unit, diag.INITIAL, screenshots)

        # (d) sign-in overlay
        self._dismiss_overlay(page)

        # (e) results container
        try:
            page.wait_for_selector(
                self.site.results_selector,
                state='visible',
                timeout=config.readiness_timeout_ms,
            )
        except PlaywrightTimeoutError as exc:
            raise ReadinessTimeout(
                f"Results container {self.site.results_selector!r} not visible "
                f"after {config.readiness_timeout_ms}ms"
            ) from exc
        except PlaywrightError as exc:
            raise ReadinessTimeout(f"Readiness wait failed: {exc}") from exc

        # (f) stabilize and count
        try:
            page.wait_for_timeout(config.stabilize_delay_ms)
            item_count = page.locator(self.site.item_selector).count()
        except PlaywrightError as exc:
            raise ReadinessTimeout(f"Could not count result items: {exc}") from exc

        print(f"  [nav] {item_count} item(s) in DOM")

        if item_count == 0:
            self._checkpoint(page, unit, diag.NO_RESULTS, screenshots)
            try:
                page.wait_for_timeout(config.empty_result_delay_ms)
            except PlaywrightError:
                pass
            return EmptyResult(url=current_url)

        self._checkpoint(page, unit, diag.PRE_SCRAPE, screenshots)
        return PageReady(url=current_url, item_count=item_count)

    def _dismiss_overlay(self, page) -> None:
        selector = self.site.overlay_dismiss_selector
        if not selector:
            return
        try:
            button = page.wait_for_selector(selector, timeout=self.config.overlay_timeout_ms)
        except PlaywrightError:
            # No overlay
            return
        if button is None:
            return
        try:
            button.click()
            page.wait_for_timeout(self.config.overlay_settle_ms)
            print("  [nav] dismissed sign-in overlay")
        except PlaywrightError as exc:
            print(f"  [nav] overlay dismiss failed: {exc}")

    def _checkpoint(self, page, unit: SearchUnit, tag: str, screenshots: list[str]) -> None:
        path = self.diagnostics.capture(page, unit, tag)
        if path:
            screenshots.append(path)
