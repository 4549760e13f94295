"""Abstract base class for the act store.

Defines the contract for persisting merged act records plus the small
amount of bookkeeping the cache layer needs (request tracking, the
update-error ledger).  The orchestration services never inspect the
storage format; they only call these methods, each wrapped in a deadline.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.act import Act, UpdateErrorRecord


class IActStore(ABC):
    """Contract for act persistence backends.

    All operations are async.  Implementations raise
    :class:`~src.utils.errors.CacheUnavailableError` when the backend is
    unreachable or not connected.
    """

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    @abstractmethod
    async def connect(self) -> None:
        """Open the backend connection.  A no-op when already connected."""

    @abstractmethod
    async def close(self) -> None:
        """Release the backend connection.  A no-op when not connected."""

    @abstractmethod
    async def test_health(self) -> None:
        """Run a trivial round trip; raise if the backend is not usable."""

    # ------------------------------------------------------------------
    # Act records
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_act(self, act_id: str) -> Act | None:
        """Return the cached record for *act_id*, or ``None`` on a miss."""

    @abstractmethod
    async def cache_act(self, act: Act) -> None:
        """Insert or wholesale-replace the record keyed by ``act.musicbrainz_id``."""

    @abstractmethod
    async def get_all_act_ids(self) -> list[str]:
        """Return every cached act id, in a stable order."""

    @abstractmethod
    async def clear_cache(self) -> int:
        """Delete every cached act.  Returns the number of records removed."""

    # ------------------------------------------------------------------
    # Request tracking
    # ------------------------------------------------------------------

    @abstractmethod
    async def update_last_requested_at(self, act_ids: list[str]) -> None:
        """Stamp *act_ids* as requested now and reset their refresh counters.

        Raises
        ------
        src.utils.errors.InvalidInputError
            If *act_ids* is empty.
        """

    @abstractmethod
    async def increment_updates_since_last_request(self, act_id: str) -> None:
        """Count one more background refresh of *act_id* without a client request."""

    @abstractmethod
    async def remove_unrequested_acts(self, threshold: int = 14) -> int:
        """Delete acts refreshed *threshold* or more times since last requested.

        Returns the number of acts removed.
        """

    # ------------------------------------------------------------------
    # Update-error ledger
    # ------------------------------------------------------------------

    @abstractmethod
    async def log_update_error(self, record: UpdateErrorRecord) -> None:
        """Persist one failed background refresh."""

    @abstractmethod
    async def get_recent_update_errors(self, days: int = 7) -> list[UpdateErrorRecord]:
        """Return ledger entries from the last *days* days, newest first."""
