"""Abstract base class for act metadata providers.

The metadata provider is the authoritative source of an act's identity,
descriptive fields and cross-reference links (MusicBrainz in production).
It is rate limited upstream, which is why every call site in the cache
layer is paced or bounded to a single synchronous fetch.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class IMetadataProvider(ABC):
    """Contract for fetching raw act metadata."""

    @abstractmethod
    async def fetch_act(self, act_id: str) -> dict[str, Any]:
        """Fetch the raw provider payload for *act_id*.

        Raises
        ------
        src.utils.errors.ProviderFetchError
            On any network, HTTP or decoding failure.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier, e.g. ``"musicbrainz"``."""
