"""SQLite-backed act store.

Persists merged act records, per-act request tracking and the
update-error ledger to a local SQLite database at ``data/acts.db``.
Uses ``aiosqlite`` for async I/O over a single long-lived connection,
which ``connect()`` opens and ``close()`` releases so the orchestrator's
reconnect-and-probe path has something real to reconnect.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import aiosqlite
import structlog

from src.interfaces.act_store import IActStore
from src.models.act import Act, UpdateErrorRecord
from src.utils.errors import CacheUnavailableError, InvalidInputError
from src.utils.timestamps import berlin_timestamp

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/acts.db")
_PROVIDER_NAME = "sqlite"

_CREATE_ACTS_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS acts (
    act_id      TEXT PRIMARY KEY,
    data        TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);
"""

_CREATE_ACT_METADATA_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS act_metadata (
    act_id                      TEXT PRIMARY KEY,
    last_requested_at           TEXT,
    updates_since_last_request  INTEGER NOT NULL DEFAULT 0
);
"""

_CREATE_UPDATE_ERRORS_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS update_errors (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp      TEXT NOT NULL,
    act_id         TEXT NOT NULL,
    error_message  TEXT NOT NULL,
    error_source   TEXT NOT NULL,
    created_at     TEXT NOT NULL
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_update_errors_created ON update_errors(created_at);",
    "CREATE INDEX IF NOT EXISTS idx_act_metadata_updates ON act_metadata(updates_since_last_request);",
]

_UPSERT_ACT_SQL = """\
INSERT INTO acts (act_id, data, updated_at) VALUES (?, ?, ?)
ON CONFLICT(act_id) DO UPDATE SET data = excluded.data, updated_at = excluded.updated_at;
"""

_SELECT_ACT_SQL = "SELECT data FROM acts WHERE act_id = ?;"
_SELECT_ACT_IDS_SQL = "SELECT act_id FROM acts ORDER BY act_id;"
_DELETE_ALL_ACTS_SQL = "DELETE FROM acts;"

_MARK_REQUESTED_SQL = """\
INSERT INTO act_metadata (act_id, last_requested_at, updates_since_last_request)
VALUES (?, ?, 0)
ON CONFLICT(act_id) DO UPDATE SET
    last_requested_at = excluded.last_requested_at,
    updates_since_last_request = 0;
"""

_INCREMENT_UPDATES_SQL = """\
INSERT INTO act_metadata (act_id, last_requested_at, updates_since_last_request)
VALUES (?, NULL, 1)
ON CONFLICT(act_id) DO UPDATE SET
    updates_since_last_request = updates_since_last_request + 1;
"""

_SELECT_UNREQUESTED_SQL = """\
SELECT act_id FROM act_metadata WHERE updates_since_last_request >= ?;
"""

_INSERT_UPDATE_ERROR_SQL = """\
INSERT INTO update_errors (timestamp, act_id, error_message, error_source, created_at)
VALUES (?, ?, ?, ?, ?);
"""

_SELECT_RECENT_ERRORS_SQL = """\
SELECT timestamp, act_id, error_message, error_source
FROM update_errors
WHERE created_at >= ?
ORDER BY created_at DESC, id DESC;
"""


class SQLiteActStore(IActStore):
    """SQLite persistence for act records.

    Parameters
    ----------
    db_path:
        Database file path, or ``":memory:"`` for a throwaway database.
    """

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = str(db_path)
        self._db: aiosqlite.Connection | None = None

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the connection and create tables and indices if needed."""
        if self._db is not None:
            return

        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)

        try:
            db = await aiosqlite.connect(self._db_path)
            await db.execute(_CREATE_ACTS_TABLE_SQL)
            await db.execute(_CREATE_ACT_METADATA_TABLE_SQL)
            await db.execute(_CREATE_UPDATE_ERRORS_TABLE_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        except (aiosqlite.Error, OSError) as exc:
            raise CacheUnavailableError(
                message=f"Could not open act store at {self._db_path}: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc

        self._db = db
        logger.info("act_store_connected", path=self._db_path)

    async def close(self) -> None:
        if self._db is None:
            return
        db, self._db = self._db, None
        await db.close()
        logger.info("act_store_closed", path=self._db_path)

    async def test_health(self) -> None:
        db = self._require_db()
        try:
            async with db.execute("SELECT 1;") as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise CacheUnavailableError(
                message=f"Health check failed: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc
        if not row or row[0] != 1:
            raise CacheUnavailableError(
                message="Health check returned an unexpected result",
                provider_name=_PROVIDER_NAME,
            )

    # ------------------------------------------------------------------
    # Act records
    # ------------------------------------------------------------------

    async def get_act(self, act_id: str) -> Act | None:
        db = self._require_db()
        try:
            async with db.execute(_SELECT_ACT_SQL, (act_id,)) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise self._wrap("get_act", exc) from exc

        if row is None:
            return None
        return Act.model_validate(json.loads(row[0]))

    async def cache_act(self, act: Act) -> None:
        db = self._require_db()
        payload = json.dumps(act.model_dump(mode="json"))
        try:
            await db.execute(_UPSERT_ACT_SQL, (act.musicbrainz_id, payload, act.updated_at))
            await db.commit()
        except aiosqlite.Error as exc:
            raise self._wrap("cache_act", exc) from exc
        logger.debug("act_cached", act_id=act.musicbrainz_id)

    async def get_all_act_ids(self) -> list[str]:
        db = self._require_db()
        try:
            async with db.execute(_SELECT_ACT_IDS_SQL) as cursor:
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise self._wrap("get_all_act_ids", exc) from exc
        return [row[0] for row in rows]

    async def clear_cache(self) -> int:
        db = self._require_db()
        try:
            cursor = await db.execute(_DELETE_ALL_ACTS_SQL)
            await db.commit()
        except aiosqlite.Error as exc:
            raise self._wrap("clear_cache", exc) from exc
        deleted = cursor.rowcount
        logger.info("act_cache_cleared", deleted_count=deleted)
        return deleted

    # ------------------------------------------------------------------
    # Request tracking
    # ------------------------------------------------------------------

    async def update_last_requested_at(self, act_ids: list[str]) -> None:
        if not act_ids:
            raise InvalidInputError(
                message="act_ids must be a non-empty list",
                provider_name=_PROVIDER_NAME,
            )
        db = self._require_db()
        timestamp = berlin_timestamp()
        try:
            await db.executemany(
                _MARK_REQUESTED_SQL,
                [(act_id, timestamp) for act_id in act_ids],
            )
            await db.commit()
        except aiosqlite.Error as exc:
            raise self._wrap("update_last_requested_at", exc) from exc
        logger.debug("last_requested_at_updated", count=len(act_ids))

    async def increment_updates_since_last_request(self, act_id: str) -> None:
        db = self._require_db()
        try:
            await db.execute(_INCREMENT_UPDATES_SQL, (act_id,))
            await db.commit()
        except aiosqlite.Error as exc:
            raise self._wrap("increment_updates_since_last_request", exc) from exc

    async def remove_unrequested_acts(self, threshold: int = 14) -> int:
        db = self._require_db()
        try:
            async with db.execute(_SELECT_UNREQUESTED_SQL, (threshold,)) as cursor:
                rows = await cursor.fetchall()
            act_ids = [row[0] for row in rows]
            if not act_ids:
                logger.debug("no_unrequested_acts", threshold=threshold)
                return 0

            placeholders = ", ".join("?" for _ in act_ids)
            cursor = await db.execute(
                f"DELETE FROM acts WHERE act_id IN ({placeholders});", act_ids
            )
            deleted = cursor.rowcount
            await db.execute(
                f"DELETE FROM act_metadata WHERE act_id IN ({placeholders});", act_ids
            )
            await db.commit()
        except aiosqlite.Error as exc:
            raise self._wrap("remove_unrequested_acts", exc) from exc

        logger.info("unrequested_acts_removed", deleted_count=deleted, threshold=threshold)
        return deleted

    # ------------------------------------------------------------------
    # Update-error ledger
    # ------------------------------------------------------------------

    async def log_update_error(self, record: UpdateErrorRecord) -> None:
        db = self._require_db()
        created_at = datetime.now(timezone.utc).isoformat()
        try:
            await db.execute(
                _INSERT_UPDATE_ERROR_SQL,
                (
                    record.timestamp,
                    record.act_id,
                    record.error_message,
                    record.error_source,
                    created_at,
                ),
            )
            await db.commit()
        except aiosqlite.Error as exc:
            raise self._wrap("log_update_error", exc) from exc

    async def get_recent_update_errors(self, days: int = 7) -> list[UpdateErrorRecord]:
        db = self._require_db()
        cutoff = (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()
        try:
            async with db.execute(_SELECT_RECENT_ERRORS_SQL, (cutoff,)) as cursor:
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise self._wrap("get_recent_update_errors", exc) from exc

        return [
            UpdateErrorRecord(
                timestamp=row[0],
                act_id=row[1],
                error_message=row[2],
                error_source=row[3],
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _require_db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise CacheUnavailableError(
                message="Act store not connected. Call connect() first.",
                provider_name=_PROVIDER_NAME,
            )
        return self._db

    @staticmethod
    def _wrap(operation: str, exc: Exception) -> CacheUnavailableError:
        logger.warning("act_store_operation_failed", operation=operation, error=str(exc))
        return CacheUnavailableError(
            message=f"{operation} failed: {exc}",
            provider_name=_PROVIDER_NAME,
        )
