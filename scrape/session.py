"""
Browser session lifecycle.

Owns the single Playwright browser and its one open page. All liveness
checks live here; other components only receive the Session handed out
by ensure_ready() and ask it whether it is still healthy.

State machine:
    UNINITIALIZED -> READY            (first launch)
    READY -> DISCONNECTED             (health check fails / disconnect seen)
    DISCONNECTED -> RECOVERING -> READY
    RECOVERING -> FATAL               (launch failed, terminal)
"""

from __future__ import annotations

import os
from typing import Callable

from playwright.sync_api import sync_playwright

from .config import ScrapeConfig
from .errors import RecoveryFailure
from .models import SessionState


def marker_predicate(markers: tuple[str, ...]) -> Callable[[BaseException], bool]:
    """Build a predicate matching engine error messages that signal a dead browser."""
    lowered = tuple(m.lower() for m in markers)

    def is_disconnect(exc: BaseException) -> bool:
        message = str(exc).lower()
        return any(marker in message for marker in lowered)

    return is_disconnect


class Session:
    """A live browser process plus its single page."""

    def __init__(self, browser, context, page):
        self.browser = browser
        self.context = context
        self.page = page

    def is_healthy(self) -> bool:
        """Cheap, non-blocking: process connected and page still open."""
        try:
            return bool(self.browser.is_connected()) and not self.page.is_closed()
        except Exception:
            return False

    def describe(self) -> str:
        try:
            page_state = 'closed' if self.page.is_closed() else 'open'
            browser_state = 'connected' if self.browser.is_connected() else 'disconnected'
        except Exception:
            return "page=error checking, browser=error checking"
        return f"page={page_state}, browser={browser_state}"


class SessionManager:
    """
    Launches, health-checks, tears down and relaunches the browser.

    Only one browser/page pair is live at a time.
    """

    def __init__(
        self,
        config: ScrapeConfig,
        playwright_factory: Callable = sync_playwright,
        disconnect_predicate: Callable[[BaseException], bool] | None = None,
    ):
        self.config = config
        self._playwright_factory = playwright_factory
        self._is_disconnect = disconnect_predicate or marker_predicate(config.disconnect_markers)
        self._playwright = None
        self._session: Session | None = None
        self.state = SessionState.UNINITIALIZED
        self.launches = 0
        self.recoveries = 0

    @property
    def session(self) -> Session | None:
        return self._session

    def is_healthy(self) -> bool:
        return self._session is not None and self._session.is_healthy()

    def describe(self) -> str:
        if self._session is None:
            return f"state={self.state.value}, no session"
        return f"state={self.state.value}, {self._session.describe()}"

    def ensure_ready(self) -> Session:
        """
        Return a connected session with an open page, recovering first if needed.

        Raises:
            RecoveryFailure: if the session is FATAL or a fresh launch fails
        """
        if self.state == SessionState.FATAL:
            raise RecoveryFailure("Browser session is unrecoverable (FATAL)")

        if self.state == SessionState.READY and self.is_healthy():
            return self._session

        if self.state == SessionState.READY:
            print(f"  [session] health check failed ({self.describe()}), relaunching")
            self.state = SessionState.DISCONNECTED

        return self.recover()

    def should_recover(self, exc: BaseException) -> bool:
        """True if a unit failure means the browser is gone and needs relaunching."""
        if self.state in (SessionState.FATAL, SessionState.UNINITIALIZED):
            return False
        return not self.is_healthy() or self._is_disconnect(exc)

    def mark_disconnected(self) -> None:
        if self.state != SessionState.FATAL:
            self.state = SessionState.DISCONNECTED

    def recover(self) -> Session:
        """
        Tear down whatever is left and launch a fresh browser with one page.

        Close errors on the old browser are swallowed. A launch failure moves
        the session to FATAL and raises RecoveryFailure.
        """
        if self.state != SessionState.UNINITIALIZED:
            self.recoveries += 1
        self.state = SessionState.RECOVERING
        self._teardown()

        config = self.config
        executable_path = config.executable_path or os.environ.get("PLAYWRIGHT_EXECUTABLE_PATH") or None
        width, height = config.viewport

        try:
            self._playwright = self._playwright_factory().start()
            browser = self._playwright.chromium.launch(
                headless=config.headless,
                args=[*config.launch_args, f"--window-size={width},{height}"],
                executable_path=executable_path,
                timeout=config.launch_timeout_ms,
            )
            context = browser.new_context(
                viewport={'width': width, 'height': height},
                user_agent=config.user_agent,
            )
            page = context.new_page()
        except Exception as exc:
            self._teardown()
            self.state = SessionState.FATAL
            print(f"  [session] browser launch failed: {exc}")
            raise RecoveryFailure(f"Browser launch failed: {exc}") from exc

        self._session = Session(browser, context, page)
        self.state = SessionState.READY
        self.launches += 1
        print(f"  [session] browser launched (launch #{self.launches}, headless={config.headless})")
        return self._session

    def close(self) -> None:
        """Close the browser for good. Safe to call more than once."""
        had_session = self._session is not None
        self._teardown()
        if self.state != SessionState.FATAL:
            self.state = SessionState.UNINITIALIZED
        if had_session:
            print("  [session] browser closed")

    def _teardown(self) -> None:
        session, self._session = self._session, None
        if session is not None:
            for closer in (session.context.close, session.browser.close):
                try:
                    closer()
                except Exception as exc:
                    print(f"  [session] ignoring close error: {exc}")

        playwright, self._playwright = self._playwright, None
        if playwright is not None:
            try:
                playwright.stop()
            except Exception as exc:
                print(f"  [session] ignoring playwright stop error: {exc}")

    def __enter__(self) -> "SessionManager":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
