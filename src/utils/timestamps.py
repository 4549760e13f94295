"""Timestamp helpers.

Refresh timestamps are stored as ISO-8601 strings carrying the
Europe/Berlin offset (``+01:00`` in winter, ``+02:00`` in summer), which is
what the act records have always exposed to clients.
"""

from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

BERLIN = ZoneInfo("Europe/Berlin")


def berlin_now() -> datetime:
    """Return the current time as an aware datetime in Europe/Berlin."""
    return datetime.now(timezone.utc).astimezone(BERLIN)


def berlin_timestamp(moment: datetime | None = None) -> str:
    """Format *moment* (default: now) as ``YYYY-MM-DDTHH:MM:SS+HH:MM`` in Berlin time."""
    if moment is None:
        moment = berlin_now()
    elif moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(BERLIN).isoformat(timespec="seconds")


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse a stored refresh timestamp into an aware datetime.

    Accepts the ISO form written by :func:`berlin_timestamp` as well as the
    legacy space-separated form (``2025-01-01 10:00:00+01:00``).  Naive
    values are treated as UTC.  Returns ``None`` for missing or unparseable
    input.
    """
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
