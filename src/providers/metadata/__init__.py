"""Act metadata providers.

MusicBrainzProvider is the only metadata source: it supplies identity,
descriptive fields, life-span status and the URL relations that point at
each act's event listing.
"""

from src.providers.metadata.musicbrainz_provider import MusicBrainzProvider

__all__ = ["MusicBrainzProvider"]
