"""Abstract base class for event-listing extractors.

An event-listing provider fetches an act's public listing page and
returns the structured data objects embedded in it (schema.org
``MusicEvent`` items in LD+JSON for Bandsintown).  Event data is
enrichment, not essential: implementations never raise, they return an
empty list when anything goes wrong.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class IEventListingProvider(ABC):
    """Contract for scraping structured event objects from a listing URL."""

    @abstractmethod
    async def fetch_and_extract(self, url: str) -> list[dict[str, Any]]:
        """Fetch *url* and return every structured data object found on it.

        Returns an empty list on network failure, non-2xx responses or
        pages without structured data.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier, e.g. ``"bandsintown"``."""
