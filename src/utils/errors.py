"""Custom exception hierarchy for actPulse.

All application exceptions inherit from :class:`ActPulseError`, which
carries an optional ``provider_name`` so error handlers can identify which
collaborator (e.g. "musicbrainz", "bandsintown", "sqlite") caused the failure.

The hierarchy is organized by where the failure happens:

    ActPulseError  (base -- catch-all for any actPulse error)
    +-- InvalidInputError        (bad call shape; never retried)
    +-- CacheUnavailableError    (store read/write failure)
    |   +-- OperationTimeoutError  (store call exceeded its deadline)
    +-- HealthProbeFailedError   (reconnect + health probe failed)
    +-- ProviderFetchError       (metadata provider fetch failed)
    +-- EventExtractionError     (event-listing scrape failed)
    +-- ConfigurationError       (startup / missing config)

Request-path code lets these propagate to the boundary; the background
loops (fetch queue, cache updater) log and absorb them per item.
"""


class ActPulseError(Exception):
    """Base exception for all actPulse errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[musicbrainz] HTTP 503``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Caller errors
# ---------------------------------------------------------------------------

class InvalidInputError(ActPulseError):
    """Raised when a call is made with a malformed argument (e.g. empty id list)."""

    def __init__(
        self,
        message: str = "Invalid input",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Store errors
# ---------------------------------------------------------------------------

class CacheUnavailableError(ActPulseError):
    """Raised when the act store cannot be read from or written to."""

    def __init__(
        self,
        message: str = "Cache is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class OperationTimeoutError(CacheUnavailableError):
    """Raised when a guarded store operation does not settle before its deadline.

    Subclasses :class:`CacheUnavailableError` so every handler that treats
    the store as down also covers a hung connection.
    """

    def __init__(
        self,
        message: str = "Database operation timeout",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class HealthProbeFailedError(ActPulseError):
    """Raised when reconnecting to the store and probing its health fails."""

    def __init__(
        self,
        message: str = "Cache health probe failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Upstream provider errors
# ---------------------------------------------------------------------------

class ProviderFetchError(ActPulseError):
    """Raised when the metadata provider request fails or returns unusable data."""

    def __init__(
        self,
        message: str = "Provider fetch failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EventExtractionError(ActPulseError):
    """Raised when fetching or transforming an act's event listing fails.

    Only the strict enrichment path lets this escape; the tolerant path
    swaps it for an empty event list.
    """

    def __init__(
        self,
        message: str = "Event extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------

class ConfigurationError(ActPulseError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
