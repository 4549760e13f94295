"""LD+JSON event-listing provider.

Bandsintown artist pages embed their upcoming shows as schema.org
``MusicEvent`` objects inside ``<script type="application/ld+json">``
blocks.  This provider fetches the page with httpx and pulls those blocks
out with BeautifulSoup.  Every failure (network, HTTP status, malformed
JSON) degrades to "no events"; the act record is still useful without
them.
"""

from __future__ import annotations

import json
from typing import Any

import httpx
import structlog
from bs4 import BeautifulSoup

from src.interfaces.event_listing_provider import IEventListingProvider

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_TIMEOUT = 10.0
_DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; actPulseBot/0.1)",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}


def extract_ld_json(html: str) -> list[dict[str, Any]]:
    """Return every LD+JSON object embedded in *html*.

    Top-level arrays are flattened so callers always receive a flat list
    of objects.  Blocks that fail to parse are skipped.
    """
    if not html:
        return []

    soup = BeautifulSoup(html, "html.parser")
    blocks: list[dict[str, Any]] = []

    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        text = script.string or script.get_text()
        if not text or not text.strip():
            continue
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError:
            logger.debug("ld_json_block_malformed", length=len(text))
            continue

        if isinstance(parsed, list):
            blocks.extend(item for item in parsed if isinstance(item, dict))
        elif isinstance(parsed, dict):
            blocks.append(parsed)

    return blocks


class LdJsonEventProvider(IEventListingProvider):
    """Event-listing extraction backed by httpx + BeautifulSoup."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        timeout: float = _DEFAULT_TIMEOUT,
    ) -> None:
        self._client = http_client
        self._timeout = timeout

    async def fetch_and_extract(self, url: str) -> list[dict[str, Any]]:
        try:
            response = await self._client.get(
                url,
                headers=_DEFAULT_HEADERS,
                timeout=self._timeout,
                follow_redirects=True,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "event_listing_http_error",
                url=url,
                status=exc.response.status_code,
            )
            return []
        except httpx.HTTPError as exc:
            logger.warning("event_listing_fetch_failed", url=url, error=str(exc))
            return []

        blocks = extract_ld_json(response.text)
        logger.debug("event_listing_extracted", url=url, block_count=len(blocks))
        return blocks

    def get_provider_name(self) -> str:
        return "bandsintown"
