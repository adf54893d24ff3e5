"""
Single posting scrape.

Opens one session, loads a job posting page, parses the detail fields
and sends the posting to the single-job ingest endpoint.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Callable

from bs4 import BeautifulSoup
from playwright.sync_api import Error as PlaywrightError

from .config import ScrapeConfig
from .errors import ExtractionFailure, NavigationFailure
from .ingest import IngestClient
from .normalize import extract_job_id
from .session import SessionManager


TITLE_SELECTORS = ['.top-card-layout__title', 'h1.topcard__title', 'h1']
COMPANY_SELECTORS = [
    '.topcard__org-name-link',
    '.top-card-layout__second-subline a',
    '.topcard__flavor--black-link',
]
LOCATION_SELECTORS = ['.topcard__flavor--bullet', '.top-card-layout__second-subline span']
DESCRIPTION_SELECTORS = [
    '.show-more-less-html__markup',
    '.description__text',
    '.core-section-container__content',
]
SKILL_SELECTOR = '.job-details-skill-match-status-item__skill-item'
POSTED_SELECTOR = '.topcard__flavor--metadata, .posted-time-ago__text'

MAX_FALLBACK_DESCRIPTION = 5000

_RELATIVE_RE = re.compile(r'(\d+)\s+(minute|hour|day|week|month)s?\s+ago', re.I)


def posted_at_from_relative(text: str | None, now: datetime | None = None) -> str | None:
    """
    Convert '3 days ago' style text into an ISO timestamp.

    Months count as 30 days. Returns None if nothing parseable is found.
    """
    if not text:
        return None
    match = _RELATIVE_RE.search(text)
    if not match:
        return None
    if now is None:
        now = datetime.now(timezone.utc)

    amount = int(match.group(1))
    unit = match.group(2).lower()
    delta = {
        'minute': timedelta(minutes=amount),
        'hour': timedelta(hours=amount),
        'day': timedelta(days=amount),
        'week': timedelta(weeks=amount),
        'month': timedelta(days=30 * amount),
    }[unit]
    return (now - delta).isoformat()


def _first_text(soup, selectors: list[str]) -> str | None:
    for selector in selectors:
        el = soup.select_one(selector)
        if el:
            text = el.get_text(" ", strip=True)
            if text:
                return text
    return None


def parse_job_detail(html: str, page_url: str, now: datetime | None = None) -> dict:
    """Parse a LinkedIn job posting page into detail fields."""
    soup = BeautifulSoup(html, 'lxml')

    employment_type = None
    seniority = None
    for item in soup.select('.description__job-criteria-item'):
        header = item.select_one('.description__job-criteria-subheader')
        value = item.select_one('.description__job-criteria-text')
        if not header or not value:
            continue
        header_text = header.get_text(" ", strip=True)
        if 'Employment type' in header_text:
            employment_type = value.get_text(" ", strip=True)
        elif 'Seniority level' in header_text:
            seniority = value.get_text(" ", strip=True)

    description = _first_text(soup, DESCRIPTION_SELECTORS)
    if description is None and soup.body:
        description = soup.body.get_text(" ", strip=True)[:MAX_FALLBACK_DESCRIPTION]

    skills = [el.get_text(" ", strip=True) for el in soup.select(SKILL_SELECTOR)]

    return {
        'title': _first_text(soup, TITLE_SELECTORS),
        'company': _first_text(soup, COMPANY_SELECTORS),
        'location': _first_text(soup, LOCATION_SELECTORS),
        'employment_type': employment_type,
        'seniority': seniority,
        'description': description,
        'skills': [s for s in skills if s] or None,
        'external_id': extract_job_id(page_url) or None,
        'posted_at': posted_at_from_relative(_first_text(soup, [POSTED_SELECTOR]), now=now),
        'url': page_url,
    }


def build_ingest_payload(detail: dict, url: str, user_id: str) -> dict:
    """Shape parsed detail fields for the single-job endpoint."""
    return {
        'source': 'linkedin',
        'external_id': detail.get('external_id'),
        'title': detail.get('title'),
        'company': detail.get('company'),
        'location': detail.get('location'),
        'employment_type': detail.get('employment_type'),
        'seniority': detail.get('seniority'),
        'url': url,
        'description': detail.get('description'),
        'skills': detail.get('skills') or [],
        'posted_at': detail.get('posted_at'),
        'user_id': user_id,
    }


def scrape_job_detail(
    url: str,
    user_id: str,
    config: ScrapeConfig | None = None,
    ingest: IngestClient | None = None,
    session: SessionManager | None = None,
    parser: Callable[[str, str], dict] = parse_job_detail,
) -> dict:
    """
    Scrape one posting and (optionally) ingest it.

    Args:
        url: Posting URL
        user_id: Owner of the posting in the ingest backend
        config: Scrape configuration
        ingest: Client for the single-job endpoint; None skips ingestion
        session: Session manager (a fresh one is created if None)
        parser: (html, page_url) -> detail dict

    Returns:
        The ingest payload

    Raises:
        NavigationFailure, ExtractionFailure, IngestionFailure, RecoveryFailure
    """
    if not url or not user_id:
        raise ValueError("url and user_id are required")
    config = config or ScrapeConfig()
    session = session or SessionManager(config)

    try:
        live = session.ensure_ready()
        print(f"  [detail] {url}")
        try:
            live.page.goto(url, wait_until=config.detail_wait_until, timeout=config.detail_timeout_ms)
        except PlaywrightError as exc:
            raise NavigationFailure(f"Navigation failed: {exc}") from exc

        try:
            html = live.page.content()
            page_url = live.page.url
        except PlaywrightError as exc:
            raise ExtractionFailure(f"Could not read page content: {exc}") from exc

        try:
            detail = parser(html, page_url)
        except Exception as exc:
            raise ExtractionFailure(f"Parser failed: {type(exc).__name__}: {exc}") from exc
        if not detail.get('title'):
            raise ExtractionFailure("Failed to extract job title from page")

        payload = build_ingest_payload(detail, url, user_id)
        print(f"  [detail] {payload['title']!r} at {payload['company'] or '?'} (id={payload['external_id']})")

        if ingest is not None:
            response = ingest.send_job(payload)
            print(f"  [ingest] single-job response: {response}")
        return payload
    finally:
        session.close()
