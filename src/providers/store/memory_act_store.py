"""In-memory act store using cachetools.LRUCache.

Simple, fast store suitable for development, tests and single-process
deployments that can afford to lose the cache on restart.  Can be swapped
for the SQLite store via the IActStore interface.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable

import structlog
from cachetools import LRUCache

from src.interfaces.act_store import IActStore
from src.models.act import Act, UpdateErrorRecord
from src.utils.errors import CacheUnavailableError, InvalidInputError
from src.utils.timestamps import berlin_timestamp

logger = structlog.get_logger(logger_name=__name__)


class _EvictingActCache(LRUCache):
    """LRUCache that reports each evicted act id to *on_evict*."""

    def __init__(self, maxsize: int, on_evict: Callable[[str], None]) -> None:
        super().__init__(maxsize=maxsize)
        self._on_evict = on_evict

    def popitem(self) -> tuple[str, Act]:
        act_id, act = super().popitem()
        self._on_evict(act_id)
        return act_id, act


class MemoryActStore(IActStore):
    """Dict-style act store bounded by least-recently-used eviction.

    Parameters
    ----------
    max_size:
        Maximum number of act records kept before the least-recently-used
        record is evicted.
    """

    def __init__(self, max_size: int = 10_000) -> None:
        self._last_requested: dict[str, str] = {}
        self._updates_since_request: dict[str, int] = {}
        self._acts: LRUCache[str, Act] = _EvictingActCache(max_size, self._forget)
        self._errors: list[tuple[datetime, UpdateErrorRecord]] = []
        self._connected = False

    # ------------------------------------------------------------------
    # IActStore implementation
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        self._connected = True

    async def close(self) -> None:
        self._connected = False

    async def test_health(self) -> None:
        self._require_connected()

    async def get_act(self, act_id: str) -> Act | None:
        self._require_connected()
        act = self._acts.get(act_id)
        logger.debug("act_store_hit" if act is not None else "act_store_miss", act_id=act_id)
        return act

    async def cache_act(self, act: Act) -> None:
        self._require_connected()
        self._acts[act.musicbrainz_id] = act

    async def get_all_act_ids(self) -> list[str]:
        self._require_connected()
        return sorted(self._acts.keys())

    async def clear_cache(self) -> int:
        self._require_connected()
        deleted = len(self._acts)
        self._acts.clear()
        return deleted

    async def update_last_requested_at(self, act_ids: list[str]) -> None:
        if not act_ids:
            raise InvalidInputError(message="act_ids must be a non-empty list")
        self._require_connected()
        timestamp = berlin_timestamp()
        for act_id in act_ids:
            self._last_requested[act_id] = timestamp
            self._updates_since_request[act_id] = 0

    async def increment_updates_since_last_request(self, act_id: str) -> None:
        self._require_connected()
        self._updates_since_request[act_id] = self._updates_since_request.get(act_id, 0) + 1

    async def remove_unrequested_acts(self, threshold: int = 14) -> int:
        self._require_connected()
        stale_ids = [
            act_id
            for act_id, count in self._updates_since_request.items()
            if count >= threshold
        ]
        deleted = 0
        for act_id in stale_ids:
            if self._acts.pop(act_id, None) is not None:
                deleted += 1
            self._updates_since_request.pop(act_id, None)
            self._last_requested.pop(act_id, None)
        return deleted

    async def log_update_error(self, record: UpdateErrorRecord) -> None:
        self._require_connected()
        self._errors.append((datetime.now(timezone.utc), record))

    async def get_recent_update_errors(self, days: int = 7) -> list[UpdateErrorRecord]:
        self._require_connected()
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        recent = [(created, rec) for created, rec in self._errors if created >= cutoff]
        recent.sort(key=lambda item: item[0], reverse=True)
        return [rec for _, rec in recent]

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _forget(self, act_id: str) -> None:
        self._last_requested.pop(act_id, None)
        self._updates_since_request.pop(act_id, None)

    def _require_connected(self) -> None:
        if not self._connected:
            raise CacheUnavailableError(
                message="Act store not connected. Call connect() first.",
                provider_name="memory",
            )
