"""Unit tests for the coalescing background FetchQueue."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.services.fetch_queue import FetchQueue
from src.utils.errors import CacheUnavailableError, ProviderFetchError
from tests.factories import make_act


def _queue(enricher: MagicMock, store: AsyncMock, sleep, delay: float = 30.0) -> FetchQueue:
    return FetchQueue(enricher=enricher, store=store, delay=delay, store_timeout=0.5, sleep=sleep)


class TestFetchQueue:
    @pytest.mark.asyncio
    async def test_processes_every_pending_id_in_order(
        self, mock_enricher: MagicMock, mock_store: AsyncMock, fake_sleep
    ) -> None:
        queue = _queue(mock_enricher, mock_store, fake_sleep)

        queue.trigger_background_fetch(["A", "B", "C"])
        await queue.join()

        assert [c.args[0] for c in mock_enricher.enrich_tolerant.await_args_list] == ["A", "B", "C"]
        assert mock_store.cache_act.await_count == 3
        assert queue.pending == ()
        assert queue.is_running is False

    @pytest.mark.asyncio
    async def test_sleeps_only_between_fetches(
        self, mock_enricher: MagicMock, mock_store: AsyncMock, fake_sleep
    ) -> None:
        queue = _queue(mock_enricher, mock_store, fake_sleep, delay=30.0)

        queue.trigger_background_fetch(["A", "B", "C"])
        await queue.join()

        assert fake_sleep.calls == [30.0, 30.0]

    @pytest.mark.asyncio
    async def test_trigger_returns_immediately_and_starts_one_loop(
        self, mock_enricher: MagicMock, mock_store: AsyncMock, fake_sleep
    ) -> None:
        queue = _queue(mock_enricher, mock_store, fake_sleep)

        queue.trigger_background_fetch(["A"])

        assert queue.is_running is True
        assert queue.pending == ("A",)
        mock_enricher.enrich_tolerant.assert_not_awaited()
        await queue.join()

    @pytest.mark.asyncio
    async def test_duplicate_triggers_coalesce(
        self, mock_enricher: MagicMock, mock_store: AsyncMock, fake_sleep
    ) -> None:
        queue = _queue(mock_enricher, mock_store, fake_sleep)

        queue.trigger_background_fetch(["A", "B"])
        queue.trigger_background_fetch(["B", "C", "A"])
        assert queue.pending == ("A", "B", "C")
        await queue.join()

        fetched = [c.args[0] for c in mock_enricher.enrich_tolerant.await_args_list]
        assert sorted(fetched) == ["A", "B", "C"]

    @pytest.mark.asyncio
    async def test_trigger_while_running_does_not_start_second_loop(
        self, mock_store: AsyncMock, fake_sleep
    ) -> None:
        release = asyncio.Event()
        in_flight = 0
        max_in_flight = 0

        async def slow_enrich(act_id: str):
            nonlocal in_flight, max_in_flight
            in_flight += 1
            max_in_flight = max(max_in_flight, in_flight)
            await release.wait()
            in_flight -= 1
            return make_act(act_id=act_id)

        enricher = MagicMock()
        enricher.enrich_tolerant = AsyncMock(side_effect=slow_enrich)
        queue = _queue(enricher, mock_store, fake_sleep)

        queue.trigger_background_fetch(["A"])
        await asyncio.sleep(0)
        queue.trigger_background_fetch(["B"])
        queue.trigger_background_fetch(["A"])  # A is still pending while in flight
        assert queue.pending == ("A", "B")

        release.set()
        await queue.join()

        assert max_in_flight == 1
        assert [c.args[0] for c in enricher.enrich_tolerant.await_args_list] == ["A", "B"]

    @pytest.mark.asyncio
    async def test_failures_are_skipped(
        self, mock_enricher: MagicMock, mock_store: AsyncMock, fake_sleep
    ) -> None:
        def enrich(act_id: str):
            if act_id == "B":
                raise ProviderFetchError(message="HTTP 503", provider_name="musicbrainz")
            return make_act(act_id=act_id)

        mock_enricher.enrich_tolerant.side_effect = enrich
        mock_store.cache_act.side_effect = [CacheUnavailableError("disk full"), None]
        queue = _queue(mock_enricher, mock_store, fake_sleep)

        queue.trigger_background_fetch(["A", "B", "C"])
        await queue.join()

        assert mock_enricher.enrich_tolerant.await_count == 3
        assert mock_store.cache_act.await_count == 2
        assert queue.pending == ()
        assert queue.is_running is False

    @pytest.mark.asyncio
    async def test_can_restart_after_draining(
        self, mock_enricher: MagicMock, mock_store: AsyncMock, fake_sleep
    ) -> None:
        queue = _queue(mock_enricher, mock_store, fake_sleep)

        queue.trigger_background_fetch(["A"])
        await queue.join()
        queue.trigger_background_fetch(["B"])
        await queue.join()

        assert mock_enricher.enrich_tolerant.await_count == 2

    @pytest.mark.asyncio
    async def test_empty_trigger_is_noop(
        self, mock_enricher: MagicMock, mock_store: AsyncMock, fake_sleep
    ) -> None:
        queue = _queue(mock_enricher, mock_store, fake_sleep)
        queue.trigger_background_fetch([])
        assert queue.is_running is False

    @pytest.mark.asyncio
    async def test_process_fetch_queue_can_be_awaited_directly(
        self, mock_enricher: MagicMock, mock_store: AsyncMock, fake_sleep
    ) -> None:
        queue = _queue(mock_enricher, mock_store, fake_sleep)
        queue._pending.update(dict.fromkeys(["X", "Y"]))

        await queue.process_fetch_queue()

        assert mock_store.cache_act.await_count == 2
        assert fake_sleep.calls == [30.0]

    @pytest.mark.asyncio
    async def test_direct_drain_while_triggered_loop_runs_waits_for_it(
        self, mock_enricher: MagicMock, mock_store: AsyncMock, fake_sleep
    ) -> None:
        queue = _queue(mock_enricher, mock_store, fake_sleep)

        queue.trigger_background_fetch(["A", "B"])
        await queue.process_fetch_queue()

        assert [c.args[0] for c in mock_enricher.enrich_tolerant.await_args_list] == ["A", "B"]
        assert queue.pending == ()


class TestFetchQueueStop:
    @pytest.mark.asyncio
    async def test_stop_cancels_loop_and_drops_pending(
        self, mock_enricher: MagicMock, mock_store: AsyncMock
    ) -> None:
        queue = FetchQueue(enricher=mock_enricher, store=mock_store, delay=3600.0)

        queue.trigger_background_fetch(["A", "B", "C"])
        await asyncio.sleep(0.05)
        await asyncio.wait_for(queue.stop(), timeout=1.0)

        assert [c.args[0] for c in mock_enricher.enrich_tolerant.await_args_list] == ["A"]
        assert queue.is_running is False
        assert queue.pending == ()

    @pytest.mark.asyncio
    async def test_stop_before_loop_starts(
        self, mock_enricher: MagicMock, mock_store: AsyncMock, fake_sleep
    ) -> None:
        queue = _queue(mock_enricher, mock_store, fake_sleep)

        queue.trigger_background_fetch(["A"])
        await queue.stop()

        mock_enricher.enrich_tolerant.assert_not_awaited()
        assert queue.is_running is False

    @pytest.mark.asyncio
    async def test_stop_when_idle_is_noop(
        self, mock_enricher: MagicMock, mock_store: AsyncMock, fake_sleep
    ) -> None:
        queue = _queue(mock_enricher, mock_store, fake_sleep)
        await queue.stop()
        assert queue.is_running is False


def test_trigger_outside_event_loop_leaves_queue_restartable(
    mock_enricher: MagicMock, mock_store: AsyncMock
) -> None:
    queue = FetchQueue(enricher=mock_enricher, store=mock_store, delay=0.0)

    with pytest.raises(RuntimeError):
        queue.trigger_background_fetch(["A"])

    assert queue.is_running is False

    async def _drain_later() -> None:
        queue.trigger_background_fetch(["B"])
        await queue.join()

    asyncio.run(_drain_later())
    assert [c.args[0] for c in mock_enricher.enrich_tolerant.await_args_list] == ["A", "B"]
