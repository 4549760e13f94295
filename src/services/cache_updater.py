"""Perpetual, self-paced refresh of every cached act.

:class:`CacheUpdater` sweeps the whole cache once per ``cycle_interval``
(a day by default).  Each cycle lists the cached ids, divides the interval
evenly among them, and refreshes them one at a time with one time slice
of pause after each, so a sweep takes roughly ``cycle_interval`` whatever
the cache size and the upstream provider sees a steady trickle instead of
a burst.

Failure policy: nothing escapes a cycle.  A failed refresh is logged,
recorded in the store's update-error ledger and skipped; a failed id
listing waits ``retry_delay`` and lets the next cycle try again.

The sweep runs as an ``asyncio.Task`` started once at boot
(:meth:`CacheUpdater.start_background`) and stopped through an
``asyncio.Event`` stop token (:meth:`CacheUpdater.stop`).  A refresh that
has already started always runs to completion; the token is honoured
between refreshes and during pauses.
"""

from __future__ import annotations

import asyncio

import structlog

from src.interfaces.act_store import IActStore
from src.models.act import UpdateErrorRecord
from src.services.enrichment import ActEnricher
from src.services.fetch_queue import DEFAULT_STORE_TIMEOUT
from src.utils.concurrency import Sleeper, with_timeout
from src.utils.logging import act_log_context, get_logger
from src.utils.timestamps import berlin_timestamp

_logger: structlog.BoundLogger = get_logger(__name__)

DEFAULT_CYCLE_INTERVAL = 24 * 60 * 60.0
DEFAULT_RETRY_DELAY = 60.0
DEFAULT_UNREQUESTED_THRESHOLD = 14


class CacheUpdater:
    """Background sweeper that keeps every cached act approximately fresh.

    Parameters
    ----------
    store:
        Act store to list, refresh and prune.
    enricher:
        Shared enrichment pipeline; the sweep always uses its tolerant mode.
    store_timeout:
        Deadline in seconds for each store call.
    unrequested_threshold:
        Acts refreshed this many times without a client request are
        removed at the end of a cycle.
    sleep:
        Pacing function.  Defaults to a pause that wakes early when
        :meth:`stop` is called; tests inject a fake.
    """

    def __init__(
        self,
        store: IActStore,
        enricher: ActEnricher,
        store_timeout: float = DEFAULT_STORE_TIMEOUT,
        unrequested_threshold: int = DEFAULT_UNREQUESTED_THRESHOLD,
        sleep: Sleeper | None = None,
    ) -> None:
        self._store = store
        self._enricher = enricher
        self._store_timeout = store_timeout
        self._unrequested_threshold = unrequested_threshold
        self._sleep: Sleeper = sleep or self._pause
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._cycles_run = 0

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def cycles_run(self) -> int:
        return self._cycles_run

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(
        self,
        cycle_interval: float = DEFAULT_CYCLE_INTERVAL,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        max_cycles: int | None = None,
    ) -> None:
        """Run sweep cycles until stopped, or until *max_cycles* have run.

        ``max_cycles`` exists for test harnesses; production leaves it
        ``None`` and ends the sweep with :meth:`stop`.  A :meth:`stop` that
        lands before the first cycle is honoured: the loop never starts.
        """
        _logger.info(
            "cache_updater_started",
            cycle_interval=cycle_interval,
            retry_delay=retry_delay,
            max_cycles=max_cycles,
        )

        cycles = 0
        while not self._stop_event.is_set():
            await self.run_cycle(cycle_interval, retry_delay)
            cycles += 1
            self._cycles_run += 1
            if max_cycles is not None and cycles >= max_cycles:
                break

        _logger.info("cache_updater_finished", cycles=cycles)

    def start_background(
        self,
        cycle_interval: float = DEFAULT_CYCLE_INTERVAL,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        max_cycles: int | None = None,
    ) -> asyncio.Task[None]:
        """Launch :meth:`start` as a task on the running loop and return it."""
        if self.is_running:
            raise RuntimeError("Cache updater is already running")
        self._stop_event.clear()
        self._task = asyncio.get_running_loop().create_task(
            self.start(cycle_interval, retry_delay, max_cycles),
            name="act-cache-updater",
        )
        return self._task

    async def stop(self) -> None:
        """Signal the sweep to end and wait for the in-flight refresh to finish."""
        self._stop_event.set()
        task = self._task
        if task is not None and not task.done():
            await task
        _logger.info("cache_updater_stopped", cycles_run=self._cycles_run)

    # ------------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------------

    async def run_cycle(
        self,
        cycle_interval: float = DEFAULT_CYCLE_INTERVAL,
        retry_delay: float = DEFAULT_RETRY_DELAY,
    ) -> None:
        """Refresh every cached act once, spreading the work over *cycle_interval*."""
        try:
            act_ids = await with_timeout(
                self._store.get_all_act_ids(), self._store_timeout, "get_all_act_ids"
            )
        except Exception as exc:
            _logger.error("cache_updater_cycle_error", error=str(exc), error_type=type(exc).__name__)
            await self._sleep(retry_delay)
            return

        if not act_ids:
            _logger.debug("cache_updater_cache_empty", sleep=cycle_interval)
            await self._sleep(cycle_interval)
            return

        time_slice = cycle_interval / len(act_ids)
        _logger.info("cache_updater_cycle_started", act_count=len(act_ids), time_slice=time_slice)

        updated = 0
        for act_id in act_ids:
            if self._stop_event.is_set():
                break
            if await self.update_act(act_id):
                updated += 1
            await self._sleep(time_slice)

        await self._prune_unrequested()
        _logger.info(
            "cache_updater_cycle_completed",
            act_count=len(act_ids),
            updated=updated,
            failed=len(act_ids) - updated,
        )

    async def update_act(self, act_id: str) -> bool:
        """Refresh *act_id* unconditionally, replacing its cached record.

        Returns ``True`` when the fresh record was written.  Never raises:
        failures are logged and recorded in the update-error ledger.
        """
        with act_log_context(act_id, task="cache_updater"):
            try:
                act = await self._enricher.enrich_tolerant(act_id)
            except Exception as exc:
                _logger.error("act_update_failed", stage="fetch", error=str(exc))
                await self._record_error(act_id, exc, source="musicbrainz")
                return False

            try:
                await with_timeout(self._store.cache_act(act), self._store_timeout, "cache_act")
            except Exception as exc:
                _logger.error("act_update_failed", stage="cache", error=str(exc))
                await self._record_error(act_id, exc, source="cache")
                return False

            try:
                await with_timeout(
                    self._store.increment_updates_since_last_request(act_id),
                    self._store_timeout,
                    "increment_updates_since_last_request",
                )
            except Exception as exc:
                _logger.warning("update_counter_failed", error=str(exc))

            _logger.debug("act_updated", status=str(act.status.value), event_count=len(act.events))
            return True

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _record_error(self, act_id: str, exc: Exception, source: str) -> None:
        record = UpdateErrorRecord(
            timestamp=berlin_timestamp(),
            act_id=act_id,
            error_message=str(exc),
            error_source=source,
        )
        try:
            await with_timeout(
                self._store.log_update_error(record), self._store_timeout, "log_update_error"
            )
        except Exception as log_exc:
            _logger.warning("update_error_not_recorded", error=str(log_exc))

    async def _prune_unrequested(self) -> None:
        try:
            removed = await with_timeout(
                self._store.remove_unrequested_acts(self._unrequested_threshold),
                self._store_timeout,
                "remove_unrequested_acts",
            )
        except Exception as exc:
            _logger.warning("unrequested_prune_failed", error=str(exc))
            return
        if removed:
            _logger.info("unrequested_acts_pruned", removed=removed)

    async def _pause(self, seconds: float) -> None:
        """Sleep for *seconds*, returning early if :meth:`stop` is called."""
        if seconds <= 0 or self._stop_event.is_set():
            return
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
