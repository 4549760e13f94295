"""Utility modules for actPulse.

Available utility modules (all re-exported here for convenience):

- **errors** -- Domain-specific exception hierarchy rooted at ActPulseError;
  the request path propagates them, the background loops log and absorb them.
- **concurrency** -- ``with_timeout`` deadline guard for store calls and the
  ``Sleeper`` type used to inject pacing delays.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **timestamps** -- Europe/Berlin refresh timestamps and their parser.
- **validation** -- MusicBrainz id and provider URL checks.
"""

# -- Domain exception hierarchy --------------------------------------------
from src.utils.errors import (
    ActPulseError,
    CacheUnavailableError,
    ConfigurationError,
    EventExtractionError,
    HealthProbeFailedError,
    InvalidInputError,
    OperationTimeoutError,
    ProviderFetchError,
)

# -- Async helpers -----------------------------------------------------------
from src.utils.concurrency import Sleeper, gather_with_timeout, with_timeout

# -- Structured logging setup ----------------------------------------------
from src.utils.logging import act_log_context, configure_logging, get_logger

# -- Timestamps and validation -----------------------------------------------
from src.utils.timestamps import berlin_timestamp, parse_timestamp
from src.utils.validation import is_bandsintown_artist_url, validate_mbid, validate_url

__all__ = [
    "ActPulseError",
    "CacheUnavailableError",
    "ConfigurationError",
    "EventExtractionError",
    "HealthProbeFailedError",
    "InvalidInputError",
    "OperationTimeoutError",
    "ProviderFetchError",
    "Sleeper",
    "act_log_context",
    "berlin_timestamp",
    "configure_logging",
    "gather_with_timeout",
    "get_logger",
    "is_bandsintown_artist_url",
    "parse_timestamp",
    "validate_mbid",
    "validate_url",
    "with_timeout",
]
