"""FastAPI routes for the actPulse API.

# ─── API ROUTE MAP ─────────────────────────────────────────────────────
#
# Endpoint            Method  Description
# ─────────────────────────────────────────────────────────────────────
# /acts/{ids}         GET     Comma-separated MusicBrainz ids -> act records
# /health             GET     Store health, queue and sweep state
# /robots.txt         GET     Disallow all crawlers
#
# Services are resolved from ``app.state`` (populated in main.py's
# _lifespan) through ``Annotated[..., Depends(...)]`` aliases, so tests
# can swap them with ``app.dependency_overrides``.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import json
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse

from src.api.middleware import status_code_for
from src.api.schemas import ActsErrorDetail, ActsErrorResponse, ActsResponse, HealthResponse
from src.interfaces.act_store import IActStore
from src.services.cache_orchestrator import CacheOrchestrator
from src.services.cache_updater import CacheUpdater
from src.services.fetch_queue import FetchQueue
from src.utils.concurrency import with_timeout
from src.utils.errors import (
    ActPulseError,
    CacheUnavailableError,
    HealthProbeFailedError,
    InvalidInputError,
)
from src.utils.logging import get_logger
from src.utils.validation import validate_mbid

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter()

_RESPONSE_HEADERS = {
    "X-Robots-Tag": "noindex, nofollow, noarchive, nosnippet",
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

_ROBOTS_TXT = "User-agent: *\nDisallow: /\n"

API_VERSION = "0.1.0"


# ---------------------------------------------------------------------------
# Dependency helpers
# ---------------------------------------------------------------------------


def _get_orchestrator(request: Request) -> CacheOrchestrator:
    return request.app.state.orchestrator


def _get_store(request: Request) -> IActStore:
    return request.app.state.store


def _get_fetch_queue(request: Request) -> FetchQueue:
    return request.app.state.fetch_queue


def _get_updater(request: Request) -> CacheUpdater | None:
    return getattr(request.app.state, "updater", None)


def _get_response_meta(request: Request) -> dict[str, Any]:
    return getattr(request.app.state, "response_meta", {})


OrchestratorDep = Annotated[CacheOrchestrator, Depends(_get_orchestrator)]
StoreDep = Annotated[IActStore, Depends(_get_store)]
FetchQueueDep = Annotated[FetchQueue, Depends(_get_fetch_queue)]
UpdaterDep = Annotated[CacheUpdater | None, Depends(_get_updater)]
MetaDep = Annotated[dict[str, Any], Depends(_get_response_meta)]


def _envelope(status_code: int, body: dict[str, Any], pretty: bool) -> Response:
    """Render *body* as JSON with the no-index / no-cache headers attached."""
    if pretty:
        response: Response = Response(
            content=json.dumps(body, indent=2, ensure_ascii=False),
            status_code=status_code,
            media_type="application/json",
        )
    else:
        response = JSONResponse(content=body, status_code=status_code)
    response.headers.update(_RESPONSE_HEADERS)
    return response


def _error_envelope(
    status_code: int,
    meta: dict[str, Any],
    detail: ActsErrorDetail,
    pretty: bool,
) -> Response:
    body = ActsErrorResponse(meta=meta, error=detail)
    return _envelope(status_code, body.model_dump(mode="json", exclude_none=True), pretty)


# ---------------------------------------------------------------------------
# Acts
# ---------------------------------------------------------------------------


@router.get("/acts/{ids}", summary="Fetch one or more acts by MusicBrainz id")
async def get_acts(
    ids: str,
    request: Request,
    orchestrator: OrchestratorDep,
    meta: MetaDep,
) -> Response:
    """Return cached or freshly enriched acts for comma-separated *ids*.

    Responds 200 with the acts, 503 when two or more acts had to be
    deferred to the background queue (retry later) or the store is
    unavailable, 400 for malformed ids, and 500 when the single
    synchronous upstream fetch failed.  ``?pretty`` indents the JSON.
    """
    pretty = "pretty" in request.query_params
    act_ids = [part.strip() for part in ids.split(",")]

    invalid = [act_id for act_id in act_ids if not validate_mbid(act_id)]
    if invalid:
        return _error_envelope(
            400,
            meta,
            ActsErrorDetail(message=f"Invalid act id(s): {', '.join(invalid)}"),
            pretty,
        )

    try:
        result = await orchestrator.fetch_multiple_acts(act_ids)
    except (InvalidInputError, HealthProbeFailedError, CacheUnavailableError) as exc:
        return _error_envelope(status_code_for(exc), meta, ActsErrorDetail(message=exc.message), pretty)
    except ActPulseError as exc:
        _logger.error(
            "act_fetch_failed",
            act_ids=act_ids,
            error_type=type(exc).__name__,
            error=exc.message,
            provider=exc.provider_name,
        )
        return _error_envelope(
            500,
            meta,
            ActsErrorDetail(message="Failed to fetch act data", details=exc.message),
            pretty,
        )

    if result.error is not None:
        return _error_envelope(
            503,
            meta,
            ActsErrorDetail(**result.error.model_dump()),
            pretty,
        )

    body = ActsResponse(meta=meta, acts=result.acts or [])
    return _envelope(200, body.model_dump(mode="json"), pretty)


# ---------------------------------------------------------------------------
# System endpoints
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, summary="Application health check")
async def health_check(
    request: Request,
    orchestrator: OrchestratorDep,
    store: StoreDep,
    fetch_queue: FetchQueueDep,
    updater: UpdaterDep,
) -> JSONResponse:
    """Probe the store and report queue and sweep state.

    ``unhealthy`` (503) when the store probe fails; ``degraded`` when the
    probe passes but the request path still has the store flagged.
    """
    timeout = getattr(request.app.state, "store_timeout", 0.5)
    try:
        await with_timeout(store.test_health(), timeout, "test_health")
        store_ok = True
    except Exception as exc:
        _logger.warning("health_probe_failed", error=str(exc), error_type=type(exc).__name__)
        store_ok = False

    if not store_ok:
        status = "unhealthy"
    elif not orchestrator.cache_healthy:
        status = "degraded"
    else:
        status = "healthy"

    body = HealthResponse(
        status=status,
        version=API_VERSION,
        cache_healthy=orchestrator.cache_healthy,
        store=store_ok,
        fetch_queue={"pending": len(fetch_queue.pending), "running": fetch_queue.is_running},
        updater={
            "running": updater.is_running if updater is not None else False,
            "cycles_run": updater.cycles_run if updater is not None else 0,
        },
    )
    return JSONResponse(status_code=200 if store_ok else 503, content=body.model_dump())


@router.get("/robots.txt", include_in_schema=False)
async def robots_txt() -> PlainTextResponse:
    return PlainTextResponse(_ROBOTS_TXT)
