"""Input validation helpers for act identifiers and provider URLs."""

from __future__ import annotations

import re
from typing import Any
from urllib.parse import urlparse

# MusicBrainz identifiers are UUIDs: 8-4-4-4-12 hex digits.
_MBID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

# Only numeric artist pages are scraped for events.
_BANDSINTOWN_ARTIST_RE = re.compile(r"^https?://(?:www\.)?bandsintown\.com/a/\d+$")


def validate_mbid(mbid: Any) -> bool:
    """Return ``True`` if *mbid* is a string in MusicBrainz UUID format."""
    if not isinstance(mbid, str):
        return False
    return bool(_MBID_RE.match(mbid))


def validate_url(url: Any) -> bool:
    """Return ``True`` if *url* is an absolute http or https URL."""
    if not isinstance(url, str):
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def is_bandsintown_artist_url(url: Any) -> bool:
    """Return ``True`` for ``https://(www.)bandsintown.com/a/<digits>`` URLs."""
    if not validate_url(url):
        return False
    return bool(_BANDSINTOWN_ARTIST_RE.match(url))
