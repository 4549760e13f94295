"""Integration tests for the actPulse HTTP surface using TestClient.

The app is built with ``create_app`` so the real middleware stack and
404 handler are exercised; services on ``app.state`` are mocks, and the
lifespan only runs in :class:`TestLifespan`.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from src.config.settings import Settings
from src.interfaces.act_store import IActStore
from src.main import create_app
from src.models.act import FetchActsError, FetchActsResult
from src.services.cache_orchestrator import CacheOrchestrator
from src.services.cache_updater import CacheUpdater
from src.services.fetch_queue import FetchQueue
from src.utils.errors import (
    CacheUnavailableError,
    HealthProbeFailedError,
    InvalidInputError,
    ProviderFetchError,
)
from tests.factories import KINKS_ID, RADIOHEAD_ID, SLAYER_ID, make_act

META = {"attribution": {"sources": ["MusicBrainz"]}, "license": "AGPL-3.0"}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _settings(**overrides) -> Settings:
    defaults = {"store_backend": "memory", "updater_enabled": False, "_env_file": None}
    defaults.update(overrides)
    return Settings(**defaults)


def _create_test_app() -> tuple:
    """Create the app with mocked services placed on ``app.state``."""
    app = create_app(_settings())

    orchestrator = MagicMock(spec=CacheOrchestrator)
    orchestrator.fetch_multiple_acts = AsyncMock(
        return_value=FetchActsResult(acts=[make_act(KINKS_ID)])
    )
    orchestrator.cache_healthy = True

    store = AsyncMock(spec=IActStore)
    store.test_health.return_value = None

    fetch_queue = MagicMock(spec=FetchQueue)
    fetch_queue.pending = (SLAYER_ID,)
    fetch_queue.is_running = True

    updater = MagicMock(spec=CacheUpdater)
    updater.is_running = True
    updater.cycles_run = 4

    app.state.orchestrator = orchestrator
    app.state.store = store
    app.state.fetch_queue = fetch_queue
    app.state.updater = updater
    app.state.store_timeout = 0.5
    app.state.response_meta = META
    return app, orchestrator, store


@pytest.fixture()
def api():
    app, orchestrator, store = _create_test_app()
    return TestClient(app, raise_server_exceptions=False), orchestrator, store


# ======================================================================
# GET /acts/{ids}
# ======================================================================


class TestGetActs:
    def test_returns_acts_envelope(self, api) -> None:
        client, orchestrator, _ = api

        resp = client.get(f"/acts/{KINKS_ID}")

        assert resp.status_code == 200
        body = resp.json()
        assert body["type"] == "acts"
        assert body["meta"] == META
        assert body["acts"][0]["musicbrainz_id"] == KINKS_ID
        orchestrator.fetch_multiple_acts.assert_awaited_once_with([KINKS_ID])

    def test_response_carries_no_index_and_no_cache_headers(self, api) -> None:
        client, _, _ = api

        resp = client.get(f"/acts/{KINKS_ID}")

        assert resp.headers["X-Robots-Tag"] == "noindex, nofollow, noarchive, nosnippet"
        assert "no-store" in resp.headers["Cache-Control"]
        assert resp.headers["Pragma"] == "no-cache"

    def test_splits_and_trims_comma_separated_ids(self, api) -> None:
        client, orchestrator, _ = api

        client.get(f"/acts/{KINKS_ID}, {RADIOHEAD_ID}")

        orchestrator.fetch_multiple_acts.assert_awaited_once_with([KINKS_ID, RADIOHEAD_ID])

    def test_pretty_output_is_indented(self, api) -> None:
        client, _, _ = api

        resp = client.get(f"/acts/{KINKS_ID}?pretty")

        assert resp.status_code == 200
        assert "\n  " in resp.text
        assert json.loads(resp.text)["type"] == "acts"

    def test_compact_output_by_default(self, api) -> None:
        client, _, _ = api
        assert "\n" not in client.get(f"/acts/{KINKS_ID}").text

    def test_invalid_id_returns_400(self, api) -> None:
        client, orchestrator, _ = api

        resp = client.get(f"/acts/{KINKS_ID},not-an-id")

        assert resp.status_code == 400
        body = resp.json()
        assert body["type"] == "error"
        assert body["error"] == {"message": "Invalid act id(s): not-an-id"}
        orchestrator.fetch_multiple_acts.assert_not_awaited()

    def test_deferred_fetch_returns_503_with_counts(self, api) -> None:
        client, orchestrator, _ = api
        orchestrator.fetch_multiple_acts.return_value = FetchActsResult(
            error=FetchActsError(
                message="Acts are being fetched, please retry later",
                missing_count=2,
                cached_count=1,
            )
        )

        resp = client.get(f"/acts/{KINKS_ID},{RADIOHEAD_ID},{SLAYER_ID}")

        assert resp.status_code == 503
        error = resp.json()["error"]
        assert error["missing_count"] == 2
        assert error["cached_count"] == 1
        assert "details" not in error

    @pytest.mark.parametrize(
        ("exc", "status"),
        [
            (HealthProbeFailedError(), 503),
            (CacheUnavailableError(), 503),
            (InvalidInputError("act_ids must not be empty"), 400),
        ],
    )
    def test_orchestrator_errors_map_to_status(self, api, exc, status: int) -> None:
        client, orchestrator, _ = api
        orchestrator.fetch_multiple_acts.side_effect = exc

        resp = client.get(f"/acts/{KINKS_ID}")

        assert resp.status_code == status
        assert resp.json()["error"]["message"] == exc.message

    def test_upstream_failure_returns_500(self, api) -> None:
        client, orchestrator, _ = api
        orchestrator.fetch_multiple_acts.side_effect = ProviderFetchError(
            message="HTTP 503", provider_name="musicbrainz"
        )

        resp = client.get(f"/acts/{KINKS_ID}")

        assert resp.status_code == 500
        assert resp.json()["error"] == {"message": "Failed to fetch act data", "details": "HTTP 503"}


# ======================================================================
# System endpoints
# ======================================================================


class TestHealth:
    def test_healthy(self, api) -> None:
        client, _, _ = api

        resp = client.get("/health")

        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "healthy"
        assert body["store"] is True
        assert body["fetch_queue"] == {"pending": 1, "running": True}
        assert body["updater"] == {"running": True, "cycles_run": 4}

    def test_degraded_when_request_path_flags_cache(self, api) -> None:
        client, orchestrator, _ = api
        orchestrator.cache_healthy = False

        body = client.get("/health").json()

        assert body["status"] == "degraded"
        assert body["cache_healthy"] is False

    def test_unhealthy_when_store_probe_fails(self, api) -> None:
        client, _, store = api
        store.test_health.side_effect = CacheUnavailableError("gone")

        resp = client.get("/health")

        assert resp.status_code == 503
        assert resp.json()["status"] == "unhealthy"


class TestMiscRoutes:
    def test_robots_txt_disallows_everything(self, api) -> None:
        client, _, _ = api

        resp = client.get("/robots.txt")

        assert resp.status_code == 200
        assert resp.text == "User-agent: *\nDisallow: /\n"

    def test_unknown_path_returns_json_404(self, api) -> None:
        client, _, _ = api

        resp = client.get("/nope")

        assert resp.status_code == 404
        assert resp.json() == {"error": "Not found", "status": 404}

    def test_correlation_id_is_echoed(self, api) -> None:
        client, _, _ = api

        resp = client.get("/robots.txt", headers={"X-Correlation-ID": "abc123"})

        assert resp.headers["X-Correlation-ID"] == "abc123"

    def test_correlation_id_is_generated(self, api) -> None:
        client, _, _ = api
        assert len(client.get("/robots.txt").headers["X-Correlation-ID"]) == 32


class TestErrorHandlingMiddleware:
    def test_uncaught_application_error_becomes_json(self) -> None:
        app, _, _ = _create_test_app()

        @app.get("/boom")
        async def boom() -> None:
            raise CacheUnavailableError("store went away")

        client = TestClient(app, raise_server_exceptions=False)
        resp = client.get("/boom")

        assert resp.status_code == 503
        assert resp.json() == {"error": "CacheUnavailableError", "detail": "store went away"}


# ======================================================================
# Lifespan
# ======================================================================


class TestLifespan:
    def test_startup_wires_real_services(self) -> None:
        app = create_app(_settings())

        with TestClient(app) as client:
            resp = client.get("/health")
            assert isinstance(app.state.orchestrator, CacheOrchestrator)
            assert app.state.updater.is_running is False

        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"
        assert resp.json()["fetch_queue"] == {"pending": 0, "running": False}

    def test_shutdown_stops_background_fetches_before_closing_client(self) -> None:
        app = create_app(_settings(queue_delay=3600.0))
        fetched: list[tuple[str, bool]] = []

        async def enrich(act_id: str):
            fetched.append((act_id, app.state.http_client.is_closed))
            return make_act(act_id)

        with patch(
            "src.services.enrichment.ActEnricher.enrich_tolerant", new=AsyncMock(side_effect=enrich)
        ):
            with TestClient(app) as client:
                resp = client.get(f"/acts/{KINKS_ID},{RADIOHEAD_ID}")
                assert resp.status_code == 503
                fetch_queue = app.state.fetch_queue

        assert all(closed is False for _, closed in fetched)
        assert len(fetched) <= 1
        assert fetch_queue.is_running is False
        assert fetch_queue.pending == ()
