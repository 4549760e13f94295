"""Request-path cache orchestration.

:class:`CacheOrchestrator` answers "give me these acts" while keeping
upstream traffic bounded.  For each call it reads every id from the
store and branches on the number of misses:

    misses == 0   return the cached acts; stale ones are queued for a
                  background refresh without delaying the response
    misses == 1   enrich the missing act synchronously (one upstream
                  round trip), write it through, return everything
    misses >= 2   return a structured error with the counts and hand the
                  missing ids to the background fetch queue

# ─── CACHE HEALTH SIDE CHANNEL ─────────────────────────────────────────
#
# Any store failure on the request path flips ``cache_healthy`` to False.
# A failed read also fails the call (SVC_002).  A failed write does not:
# the fresh act is still returned.  The next call sees the flag and first
# reconnects and probes the store; if that fails too the call fails with
# HealthProbeFailedError (SVC_001) before touching the store or any
# upstream provider.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import timedelta
from typing import Any

import structlog

from src.interfaces.act_store import IActStore
from src.models.act import Act, FetchActsError, FetchActsResult
from src.services.enrichment import ActEnricher
from src.services.fetch_queue import DEFAULT_STORE_TIMEOUT, FetchQueue
from src.services.status import STALE_AFTER, is_act_stale
from src.utils.concurrency import gather_with_timeout, with_timeout
from src.utils.errors import CacheUnavailableError, HealthProbeFailedError, InvalidInputError
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

SERVICE_UNAVAILABLE_MESSAGE = "Service temporarily unavailable. Please try again later."


class CacheOrchestrator:
    """Decides per request whether to serve from cache, fetch, or defer.

    Parameters
    ----------
    store:
        Act store (read-through, write-through).
    enricher:
        Shared enrichment pipeline; the request path uses its strict mode.
    fetch_queue:
        The process-wide background queue that receives deferred ids.
    store_timeout:
        Deadline in seconds for every store call.
    stale_after:
        Age after which a cached act is refreshed in the background.
    """

    def __init__(
        self,
        store: IActStore,
        enricher: ActEnricher,
        fetch_queue: FetchQueue,
        store_timeout: float = DEFAULT_STORE_TIMEOUT,
        stale_after: timedelta = STALE_AFTER,
    ) -> None:
        self._store = store
        self._enricher = enricher
        self._fetch_queue = fetch_queue
        self._store_timeout = store_timeout
        self._stale_after = stale_after
        self._cache_healthy = True

    @property
    def cache_healthy(self) -> bool:
        return self._cache_healthy

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def fetch_multiple_acts(self, act_ids: Any) -> FetchActsResult:
        """Return the acts for *act_ids*, or an error if they are not ready yet.

        Parameters
        ----------
        act_ids:
            Non-empty sequence of act ids.  Duplicates are collapsed,
            keeping the first occurrence.

        Returns
        -------
        FetchActsResult
            ``acts`` in requested order, or ``error`` with
            ``missing_count`` / ``cached_count`` when two or more acts
            had to be deferred to the background queue.

        Raises
        ------
        InvalidInputError
            If *act_ids* is not a non-empty sequence of non-empty strings.
        HealthProbeFailedError
            If the store was flagged unhealthy and the recovery probe failed.
        CacheUnavailableError
            If reading the store failed (or timed out).
        ProviderFetchError, EventExtractionError
            If the single synchronous fetch failed.
        """
        ids = self._validate_ids(act_ids)

        await self._ensure_cache_healthy()

        cached = await self._read_cached(ids)
        cached_acts = [act for act in cached if act is not None]
        missing_ids = [act_id for act_id, act in zip(ids, cached) if act is None]

        if not missing_ids:
            self._refresh_stale(cached_acts)
            await self._track_requests(ids)
            return FetchActsResult(acts=cached_acts)

        if len(missing_ids) == 1:
            _logger.info(
                "fetching_single_missing_act",
                act_count=len(ids),
                cached_count=len(cached_acts),
                act_id=missing_ids[0],
            )
            fresh = await self._fetch_single(missing_ids[0])
            self._refresh_stale(cached_acts)
            acts = [act if act is not None else fresh for act in cached]
            await self._track_requests(ids)
            return FetchActsResult(acts=acts)

        _logger.info(
            "multiple_acts_missing_deferred",
            act_count=len(ids),
            cached_count=len(cached_acts),
            missing_count=len(missing_ids),
        )
        self._fetch_queue.trigger_background_fetch(missing_ids)
        return FetchActsResult(
            error=FetchActsError(
                message=(
                    f"{len(missing_ids)} acts not cached. Background fetch initiated. "
                    "Please try again in a few minutes."
                ),
                missing_count=len(missing_ids),
                cached_count=len(cached_acts),
            )
        )

    # ------------------------------------------------------------------
    # Request-path steps
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_ids(act_ids: Any) -> list[str]:
        if isinstance(act_ids, (str, bytes)) or not isinstance(act_ids, Sequence):
            raise InvalidInputError(message="Invalid input: act_ids must be a non-empty list")
        if not act_ids:
            raise InvalidInputError(message="Invalid input: act_ids must be a non-empty list")
        if not all(isinstance(act_id, str) and act_id.strip() for act_id in act_ids):
            raise InvalidInputError(message="Invalid input: every act id must be a non-empty string")
        return list(dict.fromkeys(act_id.strip() for act_id in act_ids))

    async def _ensure_cache_healthy(self) -> None:
        if self._cache_healthy:
            return

        _logger.warning("cache_unhealthy_attempting_recovery")
        try:
            await with_timeout(self._store.connect(), self._store_timeout, "connect")
            await with_timeout(self._store.test_health(), self._store_timeout, "test_health")
        except Exception as exc:
            _logger.error("cache_recovery_failed", error=str(exc), error_type=type(exc).__name__)
            raise HealthProbeFailedError(
                message=f"{SERVICE_UNAVAILABLE_MESSAGE} (Error: SVC_001)"
            ) from exc

        self._cache_healthy = True
        _logger.info("cache_health_recovered")

    async def _read_cached(self, ids: list[str]) -> list[Act | None]:
        try:
            return await gather_with_timeout(
                [self._store.get_act(act_id) for act_id in ids],
                self._store_timeout,
                "get_act",
            )
        except Exception as exc:
            self._cache_healthy = False
            _logger.error("cache_read_failed", error=str(exc), error_type=type(exc).__name__)
            raise CacheUnavailableError(
                message=f"{SERVICE_UNAVAILABLE_MESSAGE} (Error: SVC_002)"
            ) from exc

    async def _fetch_single(self, act_id: str) -> Act:
        act = await self._enricher.enrich_strict(act_id)
        try:
            await with_timeout(self._store.cache_act(act), self._store_timeout, "cache_act")
        except Exception as exc:
            self._cache_healthy = False
            _logger.error(
                "cache_write_failed",
                act_id=act_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
        return act

    def _refresh_stale(self, cached_acts: list[Act]) -> None:
        stale_ids = [
            act.musicbrainz_id
            for act in cached_acts
            if is_act_stale(act, stale_after=self._stale_after)
        ]
        if stale_ids:
            _logger.debug(
                "triggering_stale_refresh",
                stale_count=len(stale_ids),
                cached_count=len(cached_acts),
            )
            self._fetch_queue.trigger_background_fetch(stale_ids)

    async def _track_requests(self, ids: list[str]) -> None:
        try:
            await with_timeout(
                self._store.update_last_requested_at(ids),
                self._store_timeout,
                "update_last_requested_at",
            )
        except Exception as exc:
            self._cache_healthy = False
            _logger.warning(
                "request_tracking_failed",
                act_count=len(ids),
                error=str(exc),
                error_type=type(exc).__name__,
            )
