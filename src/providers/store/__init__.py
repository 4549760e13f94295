"""Act store providers.

SQLiteActStore persists the merged act records across restarts and is
what the application uses by default.  MemoryActStore is an LRU-bounded,
in-process store for development and tests; it is not shared across
processes.
"""

from src.config.settings import Settings
from src.interfaces.act_store import IActStore
from src.providers.store.memory_act_store import MemoryActStore
from src.providers.store.sqlite_act_store import SQLiteActStore


def build_store(settings: Settings) -> IActStore:
    """Return the act store selected by ``STORE_BACKEND`` (not yet connected)."""
    if settings.store_backend == "memory":
        return MemoryActStore()
    return SQLiteActStore(db_path=settings.store_path)


__all__ = ["MemoryActStore", "SQLiteActStore", "build_store"]
