"""Pydantic response schemas for the actPulse API.

Every ``/acts`` body is an envelope: the attribution ``meta`` block, a
``type`` discriminator (``"acts"`` or ``"error"``), and the payload.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from src.models.act import Act


class ActsResponse(BaseModel):
    """Successful ``GET /acts/{ids}`` body."""

    meta: dict[str, Any] = Field(default_factory=dict)
    type: Literal["acts"] = "acts"
    acts: list[Act]


class ActsErrorDetail(BaseModel):
    """Error payload inside an ``/acts`` envelope.

    ``missing_count`` / ``cached_count`` are only present when the acts
    were deferred to the background fetch queue; ``details`` only when an
    upstream failure is being reported.
    """

    message: str
    missing_count: int | None = None
    cached_count: int | None = None
    details: str | None = None


class ActsErrorResponse(BaseModel):
    """Failed ``GET /acts/{ids}`` body."""

    meta: dict[str, Any] = Field(default_factory=dict)
    type: Literal["error"] = "error"
    error: ActsErrorDetail


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    cache_healthy: bool
    store: bool
    fetch_queue: dict[str, Any]
    updater: dict[str, Any]


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
