"""Unit tests for the shared utilities: timeouts, validation, timestamps, errors."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

import pytest
import structlog

from src.utils.concurrency import gather_with_timeout, with_timeout
from src.utils.errors import (
    ActPulseError,
    CacheUnavailableError,
    OperationTimeoutError,
    ProviderFetchError,
)
from src.utils.logging import act_log_context, configure_logging
from src.utils.timestamps import berlin_timestamp, parse_timestamp
from src.utils.validation import is_bandsintown_artist_url, validate_mbid, validate_url


async def _value(value, delay: float = 0.0):
    await asyncio.sleep(delay)
    return value


# ======================================================================
# with_timeout / gather_with_timeout
# ======================================================================


class TestWithTimeout:
    @pytest.mark.asyncio
    async def test_returns_result_before_deadline(self) -> None:
        assert await with_timeout(_value(42), timeout=1.0) == 42

    @pytest.mark.asyncio
    async def test_raises_timeout_error_after_deadline(self) -> None:
        with pytest.raises(OperationTimeoutError) as exc_info:
            await with_timeout(_value(1, delay=1.0), timeout=0.01, operation="get_act")
        assert exc_info.value.message == "get_act timeout after 0.01s"

    @pytest.mark.asyncio
    async def test_timeout_is_a_cache_failure(self) -> None:
        with pytest.raises(CacheUnavailableError):
            await with_timeout(_value(1, delay=1.0), timeout=0.01)

    @pytest.mark.asyncio
    async def test_operation_errors_propagate_unchanged(self) -> None:
        async def boom():
            raise ValueError("bad row")

        with pytest.raises(ValueError, match="bad row"):
            await with_timeout(boom(), timeout=1.0)

    @pytest.mark.asyncio
    async def test_gather_keeps_input_order(self) -> None:
        results = await gather_with_timeout(
            [_value("a", 0.03), _value("b", 0.0), _value("c", 0.01)], timeout=1.0
        )
        assert results == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_gather_fails_when_any_item_times_out(self) -> None:
        with pytest.raises(OperationTimeoutError):
            await gather_with_timeout([_value("a"), _value("b", delay=1.0)], timeout=0.02)


# ======================================================================
# Validation
# ======================================================================


class TestValidation:
    @pytest.mark.parametrize(
        "mbid",
        ["17b53d9f-5c63-4a09-a593-dde4608e0db9", "A74B1B7F-71A5-4011-9441-D0B5E4122711"],
    )
    def test_valid_mbids(self, mbid: str) -> None:
        assert validate_mbid(mbid) is True

    @pytest.mark.parametrize(
        "mbid",
        ["", "not-an-id", "17b53d9f5c634a09a593dde4608e0db9", "17b53d9f-5c63-4a09-a593-dde4608e0db9x", None, 123],
    )
    def test_invalid_mbids(self, mbid) -> None:
        assert validate_mbid(mbid) is False

    def test_validate_url(self) -> None:
        assert validate_url("https://example.com/path") is True
        assert validate_url("http://example.com") is True
        assert validate_url("ftp://example.com") is False
        assert validate_url("javascript:alert(1)") is False
        assert validate_url("https://") is False
        assert validate_url(None) is False

    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("https://www.bandsintown.com/a/1234", True),
            ("https://bandsintown.com/a/99", True),
            ("https://www.bandsintown.com/a/the-kinks", False),
            ("https://www.bandsintown.com/en/a/1234", False),
            ("https://evil.example/bandsintown.com/a/1", False),
            ("not a url", False),
        ],
    )
    def test_bandsintown_artist_urls(self, url: str, expected: bool) -> None:
        assert is_bandsintown_artist_url(url) is expected


# ======================================================================
# Timestamps
# ======================================================================


class TestTimestamps:
    def test_berlin_winter_offset(self) -> None:
        moment = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)
        assert berlin_timestamp(moment) == "2025-01-15T13:00:00+01:00"

    def test_berlin_summer_offset(self) -> None:
        moment = datetime(2025, 7, 15, 12, 0, tzinfo=timezone.utc)
        assert berlin_timestamp(moment) == "2025-07-15T14:00:00+02:00"

    def test_naive_moment_is_treated_as_utc(self) -> None:
        assert berlin_timestamp(datetime(2025, 1, 15, 12, 0)) == "2025-01-15T13:00:00+01:00"

    def test_parse_round_trip(self) -> None:
        moment = datetime(2025, 7, 15, 12, 0, tzinfo=timezone.utc)
        assert parse_timestamp(berlin_timestamp(moment)) == moment

    def test_parse_legacy_space_separated_form(self) -> None:
        parsed = parse_timestamp("2025-01-01 10:00:00+01:00")
        assert parsed == datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, "", "garbage"])
    def test_parse_invalid(self, value) -> None:
        assert parse_timestamp(value) is None


# ======================================================================
# Errors and logging context
# ======================================================================


class TestErrors:
    def test_str_includes_provider(self) -> None:
        exc = ProviderFetchError(message="HTTP 503", provider_name="musicbrainz")
        assert str(exc) == "[musicbrainz] HTTP 503"
        assert exc.message == "HTTP 503"

    def test_str_without_provider(self) -> None:
        assert str(ActPulseError("plain")) == "plain"

    def test_timeout_default_message(self) -> None:
        assert OperationTimeoutError().message == "Database operation timeout"


class TestActLogContext:
    def test_binds_and_clears_act_id(self) -> None:
        structlog.contextvars.clear_contextvars()

        with act_log_context("A", task="fetch_queue"):
            bound = structlog.contextvars.get_contextvars()
            assert bound["act_id"] == "A"
            assert bound["task"] == "fetch_queue"

        assert "act_id" not in structlog.contextvars.get_contextvars()


class TestConfigureLogging:
    def test_chatty_libraries_held_at_warning(self) -> None:
        configure_logging(log_level="INFO")
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("aiosqlite").level == logging.WARNING

    def test_debug_level_releases_libraries(self) -> None:
        configure_logging(log_level="debug")
        try:
            assert logging.getLogger("httpx").level == logging.DEBUG
        finally:
            configure_logging(log_level="INFO")

    def test_unknown_level_falls_back_to_info(self) -> None:
        configure_logging(log_level="chatty")
        assert logging.getLogger().level == logging.INFO
