"""Shared pytest fixtures for the actPulse test suite."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.interfaces.act_store import IActStore
from src.interfaces.event_listing_provider import IEventListingProvider
from src.interfaces.metadata_provider import IMetadataProvider
from tests.factories import make_act, musicbrainz_payload


# ---------------------------------------------------------------------------
# Collaborator mocks
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_store() -> AsyncMock:
    """Return an IActStore mock with an empty cache that succeeds at everything."""
    store = AsyncMock(spec=IActStore)
    store.get_act.return_value = None
    store.get_all_act_ids.return_value = []
    store.remove_unrequested_acts.return_value = 0
    store.get_recent_update_errors.return_value = []
    store.clear_cache.return_value = 0
    return store


@pytest.fixture
def mock_metadata_provider() -> AsyncMock:
    provider = AsyncMock(spec=IMetadataProvider)
    provider.fetch_act.side_effect = lambda act_id: musicbrainz_payload(act_id=act_id)
    provider.get_provider_name = MagicMock(return_value="musicbrainz")
    return provider


@pytest.fixture
def mock_event_provider() -> AsyncMock:
    provider = AsyncMock(spec=IEventListingProvider)
    provider.fetch_and_extract.return_value = []
    provider.get_provider_name = MagicMock(return_value="bandsintown")
    return provider


@pytest.fixture
def mock_enricher() -> MagicMock:
    """Return an ActEnricher stand-in whose two entry points build fresh acts."""
    enricher = MagicMock()
    enricher.enrich_strict = AsyncMock(side_effect=lambda act_id: make_act(act_id=act_id))
    enricher.enrich_tolerant = AsyncMock(side_effect=lambda act_id: make_act(act_id=act_id))
    return enricher


class SleepRecorder:
    """Fake ``asyncio.sleep`` that records requested delays and returns at once."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        await asyncio.sleep(0)


@pytest.fixture
def fake_sleep() -> SleepRecorder:
    return SleepRecorder()
