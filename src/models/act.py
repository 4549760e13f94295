"""Pydantic v2 models for cached act records and their tour events.

All models use frozen config (immutable): an :class:`Act` snapshot is
replaced wholesale on every refresh, never patched in place.

Key relationships:
    - Act has many Event objects (ordered as the listing returned them)
    - Event carries an optional Location with an optional Geo pair
    - FetchActsResult is what the cache orchestrator hands the boundary
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ActStatus(str, Enum):  # noqa: UP042  StrEnum requires Python 3.11+
    """Display status of an act.

    ``ACTIVE`` / ``DISBANDED`` come from the metadata provider's life-span
    data; ``ON_TOUR`` / ``TOUR_PLANNED`` are derived from upcoming events
    and take precedence when an event is close enough.
    """

    ACTIVE = "active"
    DISBANDED = "disbanded"
    ON_TOUR = "on tour"
    TOUR_PLANNED = "tour planned"


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

class Geo(BaseModel):
    """Latitude/longitude pair of an event venue."""

    model_config = ConfigDict(frozen=True)

    lat: float
    lon: float


class Location(BaseModel):
    """Where an event takes place."""

    model_config = ConfigDict(frozen=True)

    address: str | None = None
    geo: Geo | None = None


class Event(BaseModel):
    """A single upcoming (or just-past) show of an act."""

    model_config = ConfigDict(frozen=True)

    name: str
    date: str = ""                      # "YYYY-MM-DD"; empty when upstream had no usable date
    local_time: str | None = None       # "HH:MM:SS" in the venue's local time
    location: Location = Field(default_factory=Location)


class RejectedEvent(BaseModel):
    """An event-listing item dropped during transformation, with the reason."""

    model_config = ConfigDict(frozen=True)

    reason: str                         # wrong_type | date_out_of_range | missing_name
    name: str | None = None
    date: str | None = None
    type: str | None = None


# ---------------------------------------------------------------------------
# Acts
# ---------------------------------------------------------------------------

class Act(BaseModel):
    """The merged, cached record for one act.

    ``musicbrainz_id`` is the cache key.  ``relations`` maps a normalized
    relation type (``"bandsintown"``, ``"officialhomepage"``,
    ``"instagram"``...) to its URL.
    """

    model_config = ConfigDict(frozen=True)

    musicbrainz_id: str = Field(min_length=1)
    name: str
    country: str | None = None
    region: str | None = None
    disambiguation: str | None = None
    relations: dict[str, str] = Field(default_factory=dict)
    status: ActStatus
    events: list[Event] = Field(default_factory=list)
    updated_at: str                     # ISO-8601 with Europe/Berlin offset


# ---------------------------------------------------------------------------
# Orchestrator results
# ---------------------------------------------------------------------------

class FetchActsError(BaseModel):
    """Structured error returned when acts cannot be served right now."""

    model_config = ConfigDict(frozen=True)

    message: str
    missing_count: int = 0
    cached_count: int = 0


class FetchActsResult(BaseModel):
    """Either the requested acts, or an error explaining why they are pending."""

    model_config = ConfigDict(frozen=True)

    acts: list[Act] | None = None
    error: FetchActsError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


# ---------------------------------------------------------------------------
# Update-error ledger
# ---------------------------------------------------------------------------

class UpdateErrorRecord(BaseModel):
    """One failed background refresh, kept for a week for diagnostics."""

    model_config = ConfigDict(frozen=True)

    timestamp: str
    act_id: str
    error_message: str
    error_source: str                   # "musicbrainz" | "cache"
