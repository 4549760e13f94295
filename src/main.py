"""actPulse FastAPI application entry point.

Wires providers and services together via dependency injection, loads
configuration from ``.env`` and ``config/config.yaml``, configures
structured logging, and owns the lifetime of the two background workers:
the coalescing fetch queue (started on demand by requests) and the
perpetual cache updater (started at boot, stopped at shutdown).
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import API_VERSION
from src.api.routes import router as api_router
from src.config.loader import load_config
from src.config.settings import Settings
from src.interfaces.act_store import IActStore
from src.providers.events.ld_json_provider import LdJsonEventProvider
from src.providers.metadata.musicbrainz_provider import MusicBrainzProvider
from src.providers.store import build_store
from src.services.cache_orchestrator import CacheOrchestrator
from src.services.cache_updater import CacheUpdater
from src.services.enrichment import ActEnricher
from src.services.fetch_queue import FetchQueue
from src.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Full DI assembly
# ---------------------------------------------------------------------------


def _build_all(app_settings: Settings) -> dict[str, Any]:
    """Construct every provider and service instance for the application.

    Returns a flat dict of named components to be stored on ``app.state``.
    The fetch queue is built exactly once here; the orchestrator receives
    it by reference so every request shares one pending set.
    """
    config = load_config(settings=app_settings)

    # -- Shared resources --
    http_client = httpx.AsyncClient(timeout=app_settings.http_timeout)
    store = build_store(app_settings)

    # -- Providers --
    metadata_provider = MusicBrainzProvider(settings=app_settings, http_client=http_client)
    event_provider = LdJsonEventProvider(http_client=http_client, timeout=app_settings.http_timeout)

    # -- Services --
    enricher = ActEnricher(metadata_provider=metadata_provider, event_provider=event_provider)
    fetch_queue = FetchQueue(
        enricher=enricher,
        store=store,
        delay=app_settings.queue_delay,
        store_timeout=app_settings.store_timeout,
    )
    orchestrator = CacheOrchestrator(
        store=store,
        enricher=enricher,
        fetch_queue=fetch_queue,
        store_timeout=app_settings.store_timeout,
        stale_after=timedelta(hours=app_settings.stale_after_hours),
    )
    updater = CacheUpdater(
        store=store,
        enricher=enricher,
        store_timeout=app_settings.store_timeout,
        unrequested_threshold=app_settings.unrequested_update_threshold,
    )

    return {
        "http_client": http_client,
        "store": store,
        "store_timeout": app_settings.store_timeout,
        "enricher": enricher,
        "fetch_queue": fetch_queue,
        "orchestrator": orchestrator,
        "updater": updater,
        "response_meta": config.get("response", {}).get("meta", {}),
    }


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


def _make_lifespan(app_settings: Settings):  # noqa: ANN202
    @asynccontextmanager
    async def _lifespan(application: FastAPI):  # noqa: ANN202
        """Connect the store and start the sweep on startup; tear down on shutdown."""
        components = _build_all(app_settings)
        for key, value in components.items():
            setattr(application.state, key, value)

        store: IActStore = components["store"]
        await store.connect()

        updater: CacheUpdater = components["updater"]
        if app_settings.updater_enabled:
            updater.start_background(
                cycle_interval=app_settings.cycle_interval,
                retry_delay=app_settings.retry_delay,
            )

        _logger.info(
            "app_startup",
            version=API_VERSION,
            environment=app_settings.app_env,
            store_backend=app_settings.store_backend,
            updater_enabled=app_settings.updater_enabled,
        )

        yield

        # -- Shutdown: stop both workers before releasing the store and HTTP client --
        fetch_queue: FetchQueue = components["fetch_queue"]
        await updater.stop()
        await fetch_queue.stop()
        await store.close()
        http_client: httpx.AsyncClient = components["http_client"]
        await http_client.aclose()
        _logger.info("app_shutdown")

    return _lifespan


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        return JSONResponse(status_code=404, content={"error": "Not found", "status": 404})
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail, "status": exc.status_code})


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """Build and configure the FastAPI application."""
    app_settings = app_settings or settings
    application = FastAPI(
        title="actPulse API",
        version=API_VERSION,
        description=(
            "Music act metadata and upcoming tour events, served from a "
            "self-refreshing cache in front of MusicBrainz and Bandsintown."
        ),
        lifespan=_make_lifespan(app_settings),
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)

    application.add_exception_handler(StarletteHTTPException, _http_error)
    application.include_router(api_router)

    return application


app = create_app()

# ---------------------------------------------------------------------------
# Direct execution: python -m src.main
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
