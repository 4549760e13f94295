"""actPulse API layer: routes, schemas and middleware."""

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import router
from src.api.schemas import (
    ActsErrorDetail,
    ActsErrorResponse,
    ActsResponse,
    ErrorResponse,
    HealthResponse,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "router",
    "ActsErrorDetail",
    "ActsErrorResponse",
    "ActsResponse",
    "ErrorResponse",
    "HealthResponse",
]
