"""
URL canonicalization and job id derivation.

Pure functions, no I/O.
"""

import re
from urllib.parse import urlsplit


# Job view path ending in a hyphen and a 10-12 digit id
_TRAILING_ID_RE = re.compile(r'/jobs/view/.*-(\d{10,12})/?$')

# First digit run after /jobs/view/
_VIEW_ID_RE = re.compile(r'/jobs/view/.*?(\d+)')

_URN_ID_RE = re.compile(r'jobPosting:(\d+)')

DEFAULT_PORTS = {'http': 80, 'https': 443}


def _origin(url: str) -> str | None:
    """Return scheme://host[:port] or None if the URL has no usable origin.

    Userinfo is dropped, IPv6 brackets are kept and a scheme's default
    port is omitted.
    """
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError:
        return None
    if not parts.scheme or not parts.hostname:
        return None

    host = parts.netloc.rpartition('@')[2].lower()
    if port is not None:
        host = host.rsplit(':', 1)[0]
        if port != DEFAULT_PORTS.get(parts.scheme):
            host = f"{host}:{port}"
    else:
        host = host.rstrip(':')
    return f"{parts.scheme}://{host}"


def normalize_url(raw_url: str) -> str:
    """
    Canonicalize a listing URL to origin + /jobs/view/<id>.

    Tracking slugs and query strings are dropped when the path is a
    /jobs/view/ path ending in a hyphen and a 10-12 digit id. Anything
    unparseable, or any other path, comes back unchanged. Idempotent.
    """
    if not raw_url or not isinstance(raw_url, str):
        return raw_url

    origin = _origin(raw_url)
    if origin is None:
        return raw_url

    match = _TRAILING_ID_RE.search(urlsplit(raw_url).path)
    if not match:
        return raw_url

    return f"{origin}/jobs/view/{match.group(1)}"


def extract_job_id(url: str, entity_urn: str | None = None) -> str:
    """
    Derive a listing id.

    Tries the card's entity URN, then the trailing id of the URL path,
    then the first digit run after /jobs/view/. Returns '' if none found.
    """
    if entity_urn:
        match = _URN_ID_RE.search(entity_urn)
        if match:
            return match.group(1)

    if not url:
        return ''

    try:
        path = urlsplit(url).path
    except ValueError:
        path = url

    match = _TRAILING_ID_RE.search(path)
    if match:
        return match.group(1)

    match = _VIEW_ID_RE.search(path)
    if match:
        return match.group(1)

    return ''
