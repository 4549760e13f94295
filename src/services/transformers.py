"""Pure transformers from raw provider payloads to the unified act shape.

``transform_act_data`` maps a MusicBrainz artist payload to the act's
descriptive fields; ``transform_events`` maps LD+JSON objects scraped from
an event listing to :class:`~src.models.act.Event` models, reporting every
dropped item as a :class:`~src.models.act.RejectedEvent`.

Both functions are stateless and deterministic given ``today``.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from typing import Any

from src.models.act import ActStatus, Event, Geo, Location, RejectedEvent
from src.utils.errors import ProviderFetchError

# Relation types that never reach the act record.
_EXCLUDED_RELATION_TYPES = frozenset(
    {"free streaming", "streaming", "purchase for download", "other databases"}
)

_SOCIAL_PLATFORM_RE = re.compile(r"(twitter|facebook|instagram|tiktok)\.com")

_DATE_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})")
_TIME_RE = re.compile(r"T(\d{2}:\d{2}:\d{2})")

# Events whose date lies more than this many days in the past are dropped.
_PAST_EVENT_GRACE_DAYS = 2


# ---------------------------------------------------------------------------
# Metadata (MusicBrainz)
# ---------------------------------------------------------------------------

def _detect_social_platform(url: str) -> str | None:
    match = _SOCIAL_PLATFORM_RE.search(url)
    return match.group(1) if match else None


def _relation_key(relation_type: str) -> str:
    return relation_type.lower().replace(" ", "").replace(".", "")


def transform_relations(relations: list[dict[str, Any]] | None) -> dict[str, str]:
    """Flatten MusicBrainz URL relations into ``{normalized_type: url}``.

    Streaming/purchase/database links are dropped.  ``social network``
    links are keyed by platform, and dropped when the platform is not one
    of twitter, facebook, instagram or tiktok.  When a type occurs more
    than once the last URL wins.
    """
    result: dict[str, str] = {}
    for relation in relations or []:
        relation_type = relation.get("type")
        url = (relation.get("url") or {}).get("resource")
        if not relation_type or not url:
            continue
        if relation_type in _EXCLUDED_RELATION_TYPES:
            continue
        if relation_type == "social network":
            platform = _detect_social_platform(url)
            if platform:
                result[platform] = url
            continue
        result[_relation_key(relation_type)] = url
    return result


def transform_act_data(raw: dict[str, Any]) -> dict[str, Any]:
    """Map a raw MusicBrainz artist payload to act fields.

    Returns a dict with ``musicbrainz_id``, ``name``, ``country``,
    ``region``, ``disambiguation``, ``relations`` and the provider
    ``status`` (``disbanded`` when the life-span has an end date or is
    flagged ended, ``active`` otherwise).  Events, derived status and the
    refresh timestamp are added by the enrichment pipeline.

    Raises
    ------
    ProviderFetchError
        If the payload carries no artist id.
    """
    act_id = raw.get("id")
    if not act_id:
        raise ProviderFetchError(
            message="MusicBrainz payload has no artist id",
            provider_name="musicbrainz",
        )

    life_span = raw.get("life-span") or {}
    ended = bool(life_span.get("end")) or bool(life_span.get("ended"))

    return {
        "musicbrainz_id": act_id,
        "name": raw.get("name") or "",
        "country": (raw.get("area") or {}).get("name"),
        "region": (raw.get("begin-area") or {}).get("name"),
        "disambiguation": raw.get("disambiguation") or None,
        "relations": transform_relations(raw.get("relations")),
        "status": ActStatus.DISBANDED if ended else ActStatus.ACTIVE,
    }


# ---------------------------------------------------------------------------
# Events (LD+JSON MusicEvent)
# ---------------------------------------------------------------------------

def extract_date(start_date: Any) -> str:
    """``"2025-11-25T18:00:00"`` -> ``"2025-11-25"``; empty string when unusable."""
    if not isinstance(start_date, str):
        return ""
    match = _DATE_RE.match(start_date)
    return match.group(1) if match else ""


def extract_local_time(start_date: Any) -> str | None:
    """``"2025-11-25T18:00:00"`` -> ``"18:00:00"``; ``None`` when absent."""
    if not isinstance(start_date, str):
        return None
    match = _TIME_RE.search(start_date)
    return match.group(1) if match else None


def build_address(address: Any) -> str | None:
    """Join the parts of a schema.org PostalAddress, skipping empty ones."""
    if isinstance(address, str):
        return address.strip() or None
    if not isinstance(address, dict):
        return None
    parts = [
        address.get("streetAddress"),
        address.get("postalCode"),
        address.get("addressLocality"),
        address.get("addressCountry"),
    ]
    joined = ", ".join(str(part) for part in parts if part)
    return joined or None


def extract_geo(location: Any) -> Geo | None:
    """Return the venue coordinates only when both are real numbers."""
    if not isinstance(location, dict):
        return None
    geo = location.get("geo")
    if not isinstance(geo, dict):
        return None
    lat, lon = geo.get("latitude"), geo.get("longitude")
    if isinstance(lat, bool) or isinstance(lon, bool):
        return None
    if not isinstance(lat, (int, float)) or not isinstance(lon, (int, float)):
        return None
    return Geo(lat=float(lat), lon=float(lon))


def is_event_within_range(start_date: Any, today: date | None = None) -> bool:
    """Return ``True`` if the event is no more than two days in the past (UTC)."""
    day = extract_date(start_date)
    if not day:
        return False
    try:
        event_day = date.fromisoformat(day)
    except ValueError:
        return False
    today = today or datetime.now(timezone.utc).date()
    return event_day >= today - timedelta(days=_PAST_EVENT_GRACE_DAYS)


def transform_event(item: dict[str, Any]) -> Event:
    """Map one LD+JSON ``MusicEvent`` to an :class:`Event`."""
    start_date = item.get("startDate")
    location = item.get("location") if isinstance(item.get("location"), dict) else {}
    return Event(
        name=item["name"],
        date=extract_date(start_date),
        local_time=extract_local_time(start_date),
        location=Location(
            address=build_address(location.get("address")),
            geo=extract_geo(location),
        ),
    )


def transform_events(
    ld_json: Any,
    today: date | None = None,
) -> tuple[list[Event], list[RejectedEvent]]:
    """Split LD+JSON objects into accepted events and rejected items.

    Items are accepted when they are ``MusicEvent`` objects, dated no more
    than two days in the past, and named.  The first failed check is the
    rejection reason.
    """
    if not isinstance(ld_json, list):
        return [], []

    events: list[Event] = []
    rejected: list[RejectedEvent] = []

    for item in ld_json:
        if not isinstance(item, dict):
            rejected.append(RejectedEvent(reason="wrong_type", type=type(item).__name__))
            continue

        name = item.get("name")
        start_date = item.get("startDate")
        item_type = item.get("@type")

        if item_type != "MusicEvent":
            rejected.append(
                RejectedEvent(
                    reason="wrong_type",
                    type=str(item_type) if item_type is not None else None,
                    name=name if isinstance(name, str) else "unknown",
                )
            )
        elif not is_event_within_range(start_date, today):
            rejected.append(
                RejectedEvent(
                    reason="date_out_of_range",
                    date=start_date if isinstance(start_date, str) else None,
                    name=name if isinstance(name, str) else "unknown",
                )
            )
        elif not name or not isinstance(name, str):
            rejected.append(
                RejectedEvent(
                    reason="missing_name",
                    date=start_date if isinstance(start_date, str) else None,
                )
            )
        else:
            events.append(transform_event(item))

    return events, rejected
