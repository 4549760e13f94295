"""Act status derivation and cache staleness policy.

Both are pure functions of their inputs (plus an injectable "now"), so
the orchestrator, the fetch queue and the cache updater all agree on
what "on tour" and "stale" mean.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any, Iterable

from src.models.act import Act, ActStatus, Event
from src.utils.timestamps import parse_timestamp

ON_TOUR_WINDOW = timedelta(days=90)
TOUR_PLANNED_WINDOW = timedelta(days=270)

STALE_AFTER = timedelta(hours=24)


def _event_day(event: Any) -> date | None:
    """Return the calendar date of *event*, or ``None`` if it has no usable date."""
    raw = event.date if isinstance(event, Event) else (
        event.get("date") if isinstance(event, dict) else None
    )
    if not raw or not isinstance(raw, str):
        return None
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        return None


def nearest_upcoming_event_date(
    events: Iterable[Any] | None,
    today: date | None = None,
) -> date | None:
    """Return the earliest event date on or after *today*, ignoring unusable dates."""
    today = today or datetime.now(timezone.utc).date()
    nearest: date | None = None
    for event in events or []:
        day = _event_day(event)
        if day is None or day < today:
            continue
        if nearest is None or day < nearest:
            nearest = day
    return nearest


def determine_status(
    events: Iterable[Any] | None,
    provider_status: ActStatus | str,
    today: date | None = None,
) -> ActStatus | str:
    """Derive the display status of an act from its upcoming events.

    The nearest future event decides: within 90 days the act is
    ``"on tour"``, within 270 days ``"tour planned"``.  With no future
    event (none at all, only past ones, or only malformed dates) the
    provider's own status is returned unchanged.
    """
    today = today or datetime.now(timezone.utc).date()
    nearest = nearest_upcoming_event_date(events, today)
    if nearest is None:
        return provider_status

    distance = nearest - today
    if distance <= ON_TOUR_WINDOW:
        return ActStatus.ON_TOUR
    if distance <= TOUR_PLANNED_WINDOW:
        return ActStatus.TOUR_PLANNED
    return provider_status


def is_timestamp_stale(
    updated_at: str | None,
    now: datetime | None = None,
    stale_after: timedelta = STALE_AFTER,
) -> bool:
    """Return ``True`` once *updated_at* is older than *stale_after*.

    A missing or unparseable timestamp counts as stale so the record gets
    rewritten with a proper one.
    """
    refreshed = parse_timestamp(updated_at)
    if refreshed is None:
        return True
    now = now or datetime.now(timezone.utc)
    return now - refreshed > stale_after


def is_act_stale(
    act: Act,
    now: datetime | None = None,
    stale_after: timedelta = STALE_AFTER,
) -> bool:
    """Return ``True`` if the cached *act* is due for a background refresh."""
    return is_timestamp_stale(act.updated_at, now=now, stale_after=stale_after)
