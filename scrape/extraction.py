"""
Extraction adapter.

Reads the rendered DOM from the live page and hands it to a pluggable
site parser. The default parser reads LinkedIn guest search result
cards with BeautifulSoup. The adapter then canonicalizes URLs and stamps
every record of the unit with the same metadata.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from playwright.sync_api import Error as PlaywrightError

from .config import ScrapeConfig, SiteConfig
from .errors import ExtractionFailure
from .models import JobRecord, ScrapeMetadata, SearchUnit
from .normalize import extract_job_id, normalize_url


# (html, page_url, site) -> records without metadata
SiteParser = Callable[[str, str, SiteConfig], list[JobRecord]]


def _text(node, selector: str) -> str:
    el = node.select_one(selector)
    return el.get_text(" ", strip=True) if el else ''


def parse_listings(html: str, base_url: str, site: SiteConfig) -> list[JobRecord]:
    """
    Parse result cards from a search results page.

    Cards without a title or a derivable id are dropped.

    Args:
        html: Rendered page HTML
        base_url: Page URL (resolves relative links)
        site: Selectors to use

    Returns:
        List of JobRecord in page order, metadata unset
    """
    soup = BeautifulSoup(html, 'lxml')
    records = []

    for item in soup.select(site.item_selector):
        title = _text(item, site.title_selector)
        if not title:
            continue

        link = item.select_one(site.link_selector)
        href = (link.get('href') or '').strip() if link else ''
        raw_url = urljoin(base_url, href) if href else ''

        card = item.select_one(site.card_selector)
        urn = (card.get('data-entity-urn') if card else None) or item.get('data-entity-urn')

        job_id = extract_job_id(raw_url, entity_urn=urn)
        if not job_id:
            continue

        img = item.select_one(site.image_selector)
        image_url = None
        if img:
            # Logos are lazy loaded; the real URL sits in data-delayed-url until scrolled into view
            image_url = img.get('src') or img.get('data-delayed-url') or None
            if image_url and image_url.startswith('data:'):
                image_url = img.get('data-delayed-url') or None

        time_el = item.select_one(site.time_selector)
        posting_date = time_el.get('datetime') if time_el else None
        posting_relative = time_el.get_text(" ", strip=True) if time_el else None

        record = JobRecord(
            id=job_id,
            title=title,
            company=_text(item, site.company_selector),
            location=_text(item, site.location_selector),
            url=raw_url,
            image_url=image_url,
            posting_date=posting_date or None,
            posting_time_relative=posting_relative or None,
        )
        if record.is_valid():
            records.append(record)

    return records


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ExtractionAdapter:
    """Runs the site parser against a live page and attaches batch metadata."""

    def __init__(self, config: ScrapeConfig, parser: SiteParser = parse_listings):
        self.config = config
        self.parser = parser

    def extract(self, page) -> list[JobRecord]:
        """
        Read the live DOM and parse it.

        Raises:
            ExtractionFailure: page content unavailable or the parser blew up
        """
        try:
            html = page.content()
            page_url = page.url
        except PlaywrightError as exc:
            raise ExtractionFailure(f"Could not read page content: {exc}") from exc

        try:
            records = self.parser(html, page_url, self.config.site)
        except Exception as exc:
            raise ExtractionFailure(f"Parser failed: {type(exc).__name__}: {exc}") from exc

        return [r for r in records if r.is_valid()]

    def finalize(self, records: list[JobRecord], unit: SearchUnit, scraped_at: str | None = None) -> list[JobRecord]:
        """Canonicalize URLs and stamp every record with one shared metadata block."""
        metadata = ScrapeMetadata(
            term=unit.term,
            location_name=unit.location_name,
            location_id=unit.location_id,
            time_window=self.config.time_window,
            scraped_at=scraped_at or utc_now_iso(),
        )
        return [
            replace(record, url=normalize_url(record.url) if record.url else record.url, metadata=metadata)
            for record in records
        ]
