"""
Best-effort screenshot capture at named checkpoints.

Capture never raises: a failed screenshot is printed and reported as
None so it can never fail a unit.
"""

import re
import tempfile
import time
from pathlib import Path

from .config import ScrapeConfig
from .models import SearchUnit


# Checkpoint tags
IMMEDIATE = "immediate"
INITIAL = "initial"
NO_RESULTS = "no-results"
PRE_SCRAPE = "pre-scrape"
ERROR = "ERROR"


def _slug(value: str) -> str:
    """Collapse whitespace to hyphens and drop filename-unsafe characters."""
    value = re.sub(r'\s+', '-', value.strip())
    return re.sub(r'[<>:"/\\|?*]', '', value)


def screenshot_filename(unit: SearchUnit, tag: str, timestamp_ms: int | None = None) -> str:
    """Name a screenshot by term, location, checkpoint tag and timestamp."""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"{_slug(unit.term)}-{_slug(unit.location_name)}-{tag}-{timestamp_ms}.png"


class ScreenshotCapture:
    """Writes PNG screenshots into one directory for the run."""

    def __init__(self, screenshot_dir: Path | None = None, timeout_ms: int = 5000, full_page: bool = False):
        if screenshot_dir is None:
            screenshot_dir = Path(tempfile.mkdtemp(prefix="bulk-scrape-"))
        self.screenshot_dir = Path(screenshot_dir)
        self.timeout_ms = timeout_ms
        self.full_page = full_page

    @classmethod
    def from_config(cls, config: ScrapeConfig) -> "ScreenshotCapture":
        return cls(config.screenshot_dir, config.screenshot_timeout_ms, config.screenshot_full_page)

    def capture(self, page, unit: SearchUnit, tag: str) -> str | None:
        """
        Take a screenshot of page.

        Args:
            page: Playwright page object
            unit: Unit being scraped (used for the filename)
            tag: Checkpoint name

        Returns:
            Path of the saved file, or None if the page is gone or capture failed
        """
        try:
            if page is None or page.is_closed():
                print(f"  [diag] cannot screenshot {tag}: page is closed")
                return None
            self.screenshot_dir.mkdir(parents=True, exist_ok=True)
            path = self.screenshot_dir / screenshot_filename(unit, tag)
            page.screenshot(path=str(path), full_page=self.full_page, timeout=self.timeout_ms)
            print(f"  [diag] {tag} -> {path}")
            return str(path)
        except Exception as exc:
            print(f"  [diag] screenshot failed for {tag}: {exc}")
            return None


class NullCapture:
    """Diagnostics switched off."""

    screenshot_dir = None

    def capture(self, page, unit: SearchUnit, tag: str) -> str | None:
        return None


def build_diagnostics(config: ScrapeConfig) -> ScreenshotCapture | NullCapture:
    if not config.take_screenshots:
        return NullCapture()
    return ScreenshotCapture.from_config(config)
