"""Event-listing providers.

LdJsonEventProvider scrapes schema.org MusicEvent objects from an act's
Bandsintown page.  It never raises; an unreachable page yields no events.
"""

from src.providers.events.ld_json_provider import LdJsonEventProvider, extract_ld_json

__all__ = ["LdJsonEventProvider", "extract_ld_json"]
