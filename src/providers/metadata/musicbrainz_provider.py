"""MusicBrainz provider implementing IMetadataProvider.

Queries the MusicBrainz JSON web service for an artist with its aliases
and URL relations, which carry the cross-reference links (Bandsintown,
official homepage, social profiles) the cache layer enriches from.
Enforces the MusicBrainz rate limit of 1 request per second via
asyncio-based throttling.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

import httpx
import structlog

from src.config.settings import Settings
from src.interfaces.metadata_provider import IMetadataProvider
from src.utils.errors import ProviderFetchError

logger = structlog.get_logger(logger_name=__name__)


class MusicBrainzProvider(IMetadataProvider):
    """MusicBrainz metadata provider with built-in rate limiting.

    No API key is required, but clients must identify themselves via a
    user-agent string and respect the 1 request/second rate limit.

    Attributes
    ----------
    _client : httpx.AsyncClient
        Injected HTTP client (shared connection pool, mockable in tests).
    _last_request_time : float
        Monotonic timestamp of the most recent API call, used for throttling.
    """

    _MIN_REQUEST_INTERVAL: float = 1.0  # seconds between requests

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient) -> None:
        self._base_url = settings.musicbrainz_base_url.rstrip("/")
        self._timeout = settings.http_timeout
        self._headers = {
            "User-Agent": settings.user_agent,
            "Accept": "application/json",
        }
        self._client = http_client
        self._last_request_time: float = 0.0
        self._lock = asyncio.Lock()

        logger.info(
            "musicbrainz_provider_initialized",
            base_url=self._base_url,
            user_agent=settings.user_agent,
        )

    # ------------------------------------------------------------------
    # Rate-limiting helper
    # ------------------------------------------------------------------

    async def _throttle(self) -> None:
        """Enforce the MusicBrainz 1 req/sec rate limit across interleaved callers."""
        async with self._lock:
            elapsed = time.monotonic() - self._last_request_time
            if elapsed < self._MIN_REQUEST_INTERVAL:
                await asyncio.sleep(self._MIN_REQUEST_INTERVAL - elapsed)
            self._last_request_time = time.monotonic()

    # ------------------------------------------------------------------
    # IMetadataProvider implementation
    # ------------------------------------------------------------------

    async def fetch_act(self, act_id: str) -> dict[str, Any]:
        """Fetch the raw MusicBrainz artist payload for *act_id*."""
        url = f"{self._base_url}/artist/{act_id}"
        params = {"inc": "aliases url-rels", "fmt": "json"}

        await self._throttle()
        try:
            response = await self._client.get(
                url, params=params, headers=self._headers, timeout=self._timeout
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException as exc:
            raise ProviderFetchError(
                message=f"Timeout fetching act '{act_id}': {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise ProviderFetchError(
                message=f"HTTP {exc.response.status_code} for act '{act_id}'",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderFetchError(
                message=f"HTTP error fetching act '{act_id}': {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except ValueError as exc:
            raise ProviderFetchError(
                message=f"Invalid JSON for act '{act_id}': {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if not isinstance(payload, dict):
            raise ProviderFetchError(
                message=f"Unexpected payload type for act '{act_id}'",
                provider_name=self.get_provider_name(),
            )

        logger.debug(
            "musicbrainz_act_fetched",
            act_id=act_id,
            relation_count=len(payload.get("relations") or []),
        )
        return payload

    def get_provider_name(self) -> str:
        return "musicbrainz"
