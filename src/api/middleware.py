"""API middleware: CORS, request logging, and error handling.

Starlette runs middleware last-added-first, so ``create_app`` adds
``ErrorHandlingMiddleware`` before ``RequestLoggingMiddleware`` and the
request log sees the final status code, including error bodies produced
here.
"""

from __future__ import annotations

import time
import uuid

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.api.schemas import ErrorResponse
from src.utils.errors import (
    ActPulseError,
    CacheUnavailableError,
    HealthProbeFailedError,
    InvalidInputError,
)
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Allow read-only cross-origin access; ``["*"]`` unless origins are given."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins or ["*"],
        allow_credentials=False,
        allow_methods=["GET"],
        allow_headers=["*"],
    )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with a correlation id, status code and duration.

    The id is taken from an incoming ``X-Correlation-ID`` header when
    present, bound into structlog's context variables for the lifetime of
    the request, and echoed back on the response.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        correlation_id = request.headers.get("X-Correlation-ID") or uuid.uuid4().hex
        start = time.perf_counter()
        response: Response | None = None

        with structlog.contextvars.bound_contextvars(correlation_id=correlation_id):
            try:
                response = await call_next(request)
                response.headers["X-Correlation-ID"] = correlation_id
                return response
            finally:
                duration_ms = round((time.perf_counter() - start) * 1000, 2)
                _logger.info(
                    "http_request",
                    method=request.method,
                    path=str(request.url.path),
                    status=response.status_code if response else 500,
                    duration_ms=duration_ms,
                )


def status_code_for(exc: ActPulseError) -> int:
    """Map an application error onto the HTTP status it is reported with."""
    if isinstance(exc, InvalidInputError):
        return 400
    if isinstance(exc, (HealthProbeFailedError, CacheUnavailableError)):
        return 503
    return 500


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Turn uncaught ``ActPulseError`` subclasses into JSON ``ErrorResponse`` bodies.

    Details stay in the server log; the client sees only the error class
    name and its caller-facing message.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except ActPulseError as exc:
            _logger.error(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                path=str(request.url.path),
            )
            body = ErrorResponse(error=type(exc).__name__, detail=exc.message)
            return JSONResponse(status_code=status_code_for(exc), content=body.model_dump())
