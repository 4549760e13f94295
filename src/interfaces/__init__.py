"""Public interface definitions for all external collaborators.

Every store and upstream provider used by the cache layer is accessed
exclusively through the abstract base classes defined in this package.
Concrete adapters implement these interfaces and are injected at runtime
in ``src/main.py``, so unit tests can hand the services fakes instead.

CONCRETE PROVIDER MAP:
    Interface                  →  Concrete implementations (in src/providers/)
    ─────────────────────────────────────────────────────────────────────
    IActStore                  →  SQLiteActStore, MemoryActStore
    IMetadataProvider          →  MusicBrainzProvider
    IEventListingProvider      →  LdJsonEventProvider
"""

from src.interfaces.act_store import IActStore
from src.interfaces.event_listing_provider import IEventListingProvider
from src.interfaces.metadata_provider import IMetadataProvider

__all__ = [
    "IActStore",
    "IEventListingProvider",
    "IMetadataProvider",
]
