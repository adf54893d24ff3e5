"""
Configuration and thresholds for the bulk scrape.

Everything tunable lives here and is passed explicitly into each
component at construction. Site-specific selectors live in SiteConfig so
the orchestrator never hard-codes them.
"""

from dataclasses import dataclass, field
from pathlib import Path


# Fixed browser identity for every session
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

# Chromium flags for container/CI hosts
LAUNCH_ARGS = (
    '--no-sandbox',
    '--disable-setuid-sandbox',
    '--disable-dev-shm-usage',
    '--disable-gpu',
)

# LinkedIn f_TPR codes
TIME_WINDOW_2H = "r7200"
TIME_WINDOW_24H = "r86400"
TIME_WINDOW_7D = "r604800"
DEFAULT_TIME_WINDOW = TIME_WINDOW_24H

# Substrings in engine errors that mean the browser process or page is gone
DISCONNECT_MARKERS = (
    "target closed",
    "detached frame",
    "has been closed",
    "browser closed",
    "connection closed",
)


@dataclass(frozen=True)
class SiteConfig:
    """Site-specific URL shape and DOM selectors (LinkedIn guest search by default)."""

    base_url: str = "https://www.linkedin.com/jobs/search/"
    results_path: str = "linkedin.com/jobs/search"

    # Query parameter names
    keyword_param: str = "keywords"
    time_window_param: str = "f_TPR"
    geo_param: str = "geoId"

    # Readiness gates
    results_selector: str = "ul.jobs-search__results-list"
    item_selector: str = "ul.jobs-search__results-list li"
    overlay_dismiss_selector: str = ".contextual-sign-in-modal__modal-dismiss-icon"

    # Per-item fields
    card_selector: str = "div.base-card"
    title_selector: str = "h3.base-search-card__title"
    company_selector: str = "h4.base-search-card__subtitle"
    location_selector: str = "span.job-search-card__location"
    link_selector: str = "a.base-card__full-link"
    image_selector: str = 'img[data-ghost-classes="artdeco-entity-image--ghost"]'
    time_selector: str = "time.job-search-card__listdate, time.job-search-card__listdate--new"


@dataclass(frozen=True)
class ScrapeConfig:
    """Configuration for a batch scrape run."""

    # Session
    headless: bool = True
    viewport: tuple[int, int] = (1280, 720)
    user_agent: str = USER_AGENT
    launch_args: tuple[str, ...] = LAUNCH_ARGS
    executable_path: str | None = None
    launch_timeout_ms: int = 60000

    # Navigation and readiness gates
    navigation_timeout_ms: int = 20000
    wait_until: str = "domcontentloaded"  # avoid hanging on slow sub-resources
    settle_delay_ms: int = 2000
    overlay_timeout_ms: int = 3000
    overlay_settle_ms: int = 1000
    readiness_timeout_ms: int = 8000
    stabilize_delay_ms: int = 3000
    empty_result_delay_ms: int = 3000

    # Diagnostics
    take_screenshots: bool = True
    screenshot_dir: Path | None = None  # None = scoped temp dir per run
    screenshot_timeout_ms: int = 5000
    screenshot_full_page: bool = False

    # Throttle and resource guard
    min_delay_sec: float = 2.0
    max_delay_sec: float = 5.0
    memory_ceiling_mb: float = 2048.0

    # Search
    time_window: str = DEFAULT_TIME_WINDOW
    disconnect_markers: tuple[str, ...] = DISCONNECT_MARKERS
    site: SiteConfig = field(default_factory=SiteConfig)

    # Single posting detail scrape
    detail_timeout_ms: int = 30000
    detail_wait_until: str = "networkidle"
