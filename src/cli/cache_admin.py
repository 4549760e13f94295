"""Operator CLI for the act cache.

Usage::

    # Delete every cached act (metadata and error ledger are kept)
    python -m src.cli clear-cache

    # Show update failures recorded by the cache updater
    python -m src.cli errors --days 3

    # Refresh specific acts now, the same way the daily sweep does
    python -m src.cli refresh 5b11f4ce-a62d-471e-81fc-a69a8278c7da

    # Evict acts nobody requested during the last N sweeps
    python -m src.cli prune --threshold 14

The store is selected and configured from the same environment as the
server (``STORE_BACKEND``, ``STORE_PATH``, ...).
"""

from __future__ import annotations

import argparse
import asyncio
import sys

import httpx

from src.config.settings import Settings
from src.providers.store import build_store
from src.utils.errors import ActPulseError
from src.utils.logging import configure_logging
from src.utils.validation import validate_mbid


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


async def _handle_clear_cache(args: argparse.Namespace, settings: Settings) -> int:
    """Delete every cached act record."""
    store = build_store(settings)
    await store.connect()
    try:
        deleted = await store.clear_cache()
    finally:
        await store.close()
    print(f"Deleted {deleted} act(s) from cache")
    return 0


async def _handle_errors(args: argparse.Namespace, settings: Settings) -> int:
    """Print update errors recorded during the last ``--days`` days."""
    store = build_store(settings)
    await store.connect()
    try:
        records = await store.get_recent_update_errors(days=args.days)
    finally:
        await store.close()

    if not records:
        print(f"No update errors in the last {args.days} day(s)")
        return 0

    print(f"{len(records)} update error(s) in the last {args.days} day(s):")
    for record in records:
        print(f"  {record.timestamp}  {record.act_id}  [{record.error_source}]  {record.error_message}")
    return 0


async def _handle_refresh(args: argparse.Namespace, settings: Settings) -> int:
    """Re-enrich and re-cache the given acts immediately."""
    from src.providers.events.ld_json_provider import LdJsonEventProvider
    from src.providers.metadata.musicbrainz_provider import MusicBrainzProvider
    from src.services.cache_updater import CacheUpdater
    from src.services.enrichment import ActEnricher

    invalid = [act_id for act_id in args.act_ids if not validate_mbid(act_id)]
    if invalid:
        print(f"Error: invalid act id(s): {', '.join(invalid)}", file=sys.stderr)
        return 1

    store = build_store(settings)
    await store.connect()
    try:
        async with httpx.AsyncClient(timeout=settings.http_timeout) as client:
            enricher = ActEnricher(
                metadata_provider=MusicBrainzProvider(settings=settings, http_client=client),
                event_provider=LdJsonEventProvider(http_client=client, timeout=settings.http_timeout),
            )
            updater = CacheUpdater(
                store=store,
                enricher=enricher,
                store_timeout=settings.store_timeout,
                unrequested_threshold=settings.unrequested_update_threshold,
            )
            failed = 0
            for act_id in args.act_ids:
                ok = await updater.update_act(act_id)
                print(f"  {'refreshed' if ok else 'FAILED   '}  {act_id}")
                failed += 0 if ok else 1
    finally:
        await store.close()

    return 1 if failed else 0


async def _handle_prune(args: argparse.Namespace, settings: Settings) -> int:
    """Remove acts refreshed ``--threshold`` times without being requested."""
    store = build_store(settings)
    await store.connect()
    try:
        removed = await store.remove_unrequested_acts(args.threshold)
    finally:
        await store.close()
    print(f"Removed {removed} unrequested act(s) (threshold: {args.threshold})")
    return 0


_HANDLERS = {
    "clear-cache": _handle_clear_cache,
    "errors": _handle_errors,
    "refresh": _handle_refresh,
    "prune": _handle_prune,
}


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m src.cli",
        description="Inspect and maintain the actPulse act cache.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Cache admin commands")

    subparsers.add_parser("clear-cache", help="Delete every cached act")

    errors_parser = subparsers.add_parser("errors", help="Show recent update errors")
    errors_parser.add_argument(
        "--days", type=int, default=7, help="How many days back to look (default: 7)"
    )

    refresh_parser = subparsers.add_parser("refresh", help="Refresh specific acts now")
    refresh_parser.add_argument("act_ids", nargs="+", metavar="ACT_ID", help="MusicBrainz id(s)")

    prune_parser = subparsers.add_parser("prune", help="Evict acts nobody requests any more")
    prune_parser.add_argument(
        "--threshold",
        type=int,
        default=settings.unrequested_update_threshold,
        help="Refreshes without a request before eviction (default: %(default)s)",
    )

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    """CLI entry point; returns the process exit code."""
    settings = Settings()
    configure_logging(log_level=settings.log_level, json_output=False)

    parser = _build_parser(settings)
    args = parser.parse_args(argv)

    handler = _HANDLERS.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    try:
        return asyncio.run(handler(args, settings))
    except ActPulseError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
