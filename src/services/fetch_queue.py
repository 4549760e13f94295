"""Coalescing, rate-limited background fetch queue.

When a request needs more acts than the request path may fetch
synchronously, the missing ids are handed to :class:`FetchQueue` and the
request returns immediately.  The queue drains its pending set one id at
a time with a fixed pause between upstream calls, so the metadata
provider sees at most one background request per ``delay`` seconds no
matter how many clients ask.

Coordination state lives on the instance (one per process, built in
``src/main.py``):

- ``pending`` -- ordered set of ids waiting for (or undergoing) a refresh.
  An id appears once; it leaves the set as soon as its refresh attempt
  finishes, successfully or not.
- ``is_running`` -- whether a drain loop is active.  A trigger while the
  loop runs only adds ids; it never starts a second loop.

Both are mutated only between ``await`` points on the event loop thread,
so no lock is needed.
"""

from __future__ import annotations

import asyncio
from typing import Iterable

import structlog

from src.interfaces.act_store import IActStore
from src.services.enrichment import ActEnricher
from src.utils.concurrency import Sleeper, with_timeout
from src.utils.logging import act_log_context, get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

DEFAULT_QUEUE_DELAY = 30.0
DEFAULT_STORE_TIMEOUT = 0.5


class FetchQueue:
    """Background refresher for act ids the request path could not serve.

    Parameters
    ----------
    enricher:
        Shared enrichment pipeline; the queue always uses its tolerant mode.
    store:
        Act store receiving the refreshed records.
    delay:
        Seconds to pause between two consecutive fetches.
    store_timeout:
        Deadline in seconds for each store write.
    sleep:
        Pacing function, ``asyncio.sleep`` unless a test injects a fake.
    """

    def __init__(
        self,
        enricher: ActEnricher,
        store: IActStore,
        delay: float = DEFAULT_QUEUE_DELAY,
        store_timeout: float = DEFAULT_STORE_TIMEOUT,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self._enricher = enricher
        self._store = store
        self._delay = delay
        self._store_timeout = store_timeout
        self._sleep = sleep

        # dict preserves insertion order and gives O(1) membership: an ordered set.
        self._pending: dict[str, None] = {}
        self._is_running = False
        self._task: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def pending(self) -> tuple[str, ...]:
        """Ids currently queued, in the order they will be processed."""
        return tuple(self._pending)

    @property
    def is_running(self) -> bool:
        return self._is_running

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def trigger_background_fetch(self, act_ids: Iterable[str]) -> None:
        """Queue *act_ids* and start the drain loop unless one is already running.

        Returns immediately.  Ids already pending are not added twice.
        Must be called from within the running event loop.
        """
        added = 0
        for act_id in act_ids:
            if act_id not in self._pending:
                self._pending[act_id] = None
                added += 1

        if self._is_running:
            _logger.debug("fetch_queue_ids_added", added=added, pending=len(self._pending))
            return

        if not self._pending:
            return

        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="act-fetch-queue"
        )
        self._is_running = True
        _logger.info("fetch_queue_started", pending=len(self._pending))

    async def process_fetch_queue(self) -> None:
        """Drain the pending set now, or wait for the running drain loop.

        Each id is enriched in tolerant mode and written through to the
        store.  A failure is logged and the id is dropped for this pass;
        the loop always moves on to the next id.  While a triggered loop
        is active this only waits for it, so one id is never fetched by
        two loops.
        """
        if self._is_running:
            await self.join()
            return

        self._is_running = True
        try:
            await self._drain()
        finally:
            self._is_running = False

    async def join(self) -> None:
        """Wait until the current drain loop (if any) has finished."""
        task = self._task
        if task is not None and not task.done():
            await asyncio.shield(task)

    async def stop(self) -> None:
        """Cancel the drain loop and drop whatever is still pending.

        Called at shutdown before the store and HTTP client are closed, so
        no refresh runs against released resources.
        """
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._is_running = False
        dropped = len(self._pending)
        self._pending.clear()
        _logger.info("fetch_queue_stopped", dropped=dropped)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _drain(self) -> None:
        while self._pending:
            act_id = next(iter(self._pending))
            try:
                await self._refresh(act_id)
            finally:
                self._pending.pop(act_id, None)

            if self._pending:
                await self._sleep(self._delay)

    async def _run(self) -> None:
        try:
            await self._drain()
        except asyncio.CancelledError:
            _logger.info("fetch_queue_cancelled", pending=len(self._pending))
            raise
        except Exception:
            _logger.exception("fetch_queue_crashed", pending=len(self._pending))
        finally:
            self._is_running = False
            _logger.info("fetch_queue_drained", pending=len(self._pending))

    async def _refresh(self, act_id: str) -> None:
        with act_log_context(act_id, task="fetch_queue"):
            try:
                act = await self._enricher.enrich_tolerant(act_id)
                await with_timeout(
                    self._store.cache_act(act), self._store_timeout, "cache_act"
                )
            except Exception as exc:
                _logger.warning(
                    "background_fetch_failed",
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                return
            _logger.info("background_fetch_cached")
