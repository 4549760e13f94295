"""Shared "fetch -> merge events -> derive status" pipeline.

Every writer of act records (the request-path orchestrator, the
background fetch queue and the periodic cache updater) builds the record
through :class:`ActEnricher`, so a cached act always has the same shape
no matter which path refreshed it.

The two entry points differ only in how an event-listing failure is
treated:

- :meth:`ActEnricher.enrich_strict` -- the failure propagates as
  :class:`~src.utils.errors.EventExtractionError` (foreground callers).
- :meth:`ActEnricher.enrich_tolerant` -- the failure degrades to an empty
  event list (background callers).

A metadata provider failure always propagates; there is no act record
without it.
"""

from __future__ import annotations

from typing import Any

import structlog

from src.interfaces.event_listing_provider import IEventListingProvider
from src.interfaces.metadata_provider import IMetadataProvider
from src.models.act import Act, Event
from src.services.status import determine_status
from src.services.transformers import transform_act_data, transform_events
from src.utils.errors import EventExtractionError
from src.utils.logging import get_logger
from src.utils.timestamps import berlin_timestamp
from src.utils.validation import is_bandsintown_artist_url

_logger: structlog.BoundLogger = get_logger(__name__)


class ActEnricher:
    """Builds complete act records from the two upstream providers.

    Parameters
    ----------
    metadata_provider:
        Source of identity, descriptive fields and relations.
    event_provider:
        Scraper for the act's event listing page.
    """

    def __init__(
        self,
        metadata_provider: IMetadataProvider,
        event_provider: IEventListingProvider,
    ) -> None:
        self._metadata = metadata_provider
        self._events = event_provider

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    async def enrich_strict(self, act_id: str) -> Act:
        """Fetch and enrich *act_id*; any event-listing failure propagates.

        Raises
        ------
        ProviderFetchError
            If the metadata provider fails.
        EventExtractionError
            If the event listing cannot be fetched or transformed.
        """
        return await self._enrich(act_id, tolerate_event_errors=False)

    async def enrich_tolerant(self, act_id: str) -> Act:
        """Fetch and enrich *act_id*; event-listing failures yield no events.

        Raises
        ------
        ProviderFetchError
            If the metadata provider fails.
        """
        return await self._enrich(act_id, tolerate_event_errors=True)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _enrich(self, act_id: str, tolerate_event_errors: bool) -> Act:
        raw = await self._metadata.fetch_act(act_id)
        fields = transform_act_data(raw)

        try:
            events = await self._fetch_events(act_id, fields["relations"])
        except EventExtractionError as exc:
            if not tolerate_event_errors:
                raise
            _logger.warning("event_extraction_tolerated", act_id=act_id, error=str(exc))
            events = []

        status = determine_status(events, fields["status"])

        _logger.info(
            "act_enrichment_completed",
            act_id=act_id,
            has_bandsintown="bandsintown" in fields["relations"],
            has_songkick="songkick" in fields["relations"],
            event_count=len(events),
            final_status=str(getattr(status, "value", status)),
        )

        return Act(
            **{**fields, "status": status},
            events=events,
            updated_at=berlin_timestamp(),
        )

    async def _fetch_events(self, act_id: str, relations: dict[str, str]) -> list[Event]:
        url = relations.get("bandsintown")
        if not url:
            return []

        if not is_bandsintown_artist_url(url):
            _logger.error(
                "invalid_event_listing_url",
                act_id=act_id,
                invalid_url=url,
                issue="invalid_bandsintown_url",
            )
            return []

        try:
            ld_json: list[dict[str, Any]] = await self._events.fetch_and_extract(url)
            events, rejected = transform_events(ld_json)
        except Exception as exc:
            raise EventExtractionError(
                message=f"Event listing failed for act '{act_id}': {exc}",
                provider_name=self._events.get_provider_name(),
            ) from exc

        if rejected:
            _logger.warning(
                "event_items_rejected",
                act_id=act_id,
                rejected_count=len(rejected),
                rejected_events=[item.model_dump(exclude_none=True) for item in rejected],
                issue="broken_event_data",
            )

        return events
