"""
SQLite-backed ``KeyValueStore``.

Values are stored as JSON text. Expiry is lazy: an expired row is treated as
missing on read and deleted at that point, and ``purge_expired()`` clears the
rest in one statement.

Prefix scans compare ``substr(key, 1, len(prefix))`` instead of ``LIKE``
because catalog keys contain ``_``, which ``LIKE`` treats as a wildcard.

Every ``sqlite3.Error`` (and any undecodable stored value) surfaces as
``StoreUnavailableError`` so callers handle one failure type.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import time
from typing import Any, Callable, Optional

from admission_forecaster.db.kv_store import StoreUnavailableError
from admission_forecaster.db.repositories.base import BaseRepository
from admission_forecaster.utils.time_utils import utcnow_iso

logger = logging.getLogger(__name__)


class SqliteKeyValueStore(BaseRepository):
    """Read/write access to the ``kv_store`` table.

    Args:
        conn:  Open connection with the schema applied.
        clock: Returns the current unix time in seconds; injectable for tests.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(conn)
        self._clock = clock

    def get(self, key: str) -> Optional[Any]:
        try:
            row = self.fetchone(
                "SELECT value, expires_at FROM kv_store WHERE key = ?;", (key,)
            )
            if row is None:
                return None
            if row["expires_at"] is not None and row["expires_at"] <= self._clock():
                self.execute("DELETE FROM kv_store WHERE key = ?;", (key,))
                logger.debug("Expired key dropped on read: %s", key)
                return None
            return json.loads(row["value"])
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"Could not read key {key!r}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise StoreUnavailableError(f"Stored value for {key!r} is not valid JSON") from exc

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds else None
        payload = json.dumps(value, ensure_ascii=False)
        try:
            self.execute(
                """
                INSERT INTO kv_store (key, value, expires_at, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value      = excluded.value,
                    expires_at = excluded.expires_at,
                    updated_at = excluded.updated_at;
                """,
                (key, payload, expires_at, utcnow_iso()),
            )
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"Could not write key {key!r}: {exc}") from exc

    def delete(self, key: str) -> bool:
        try:
            cur = self.execute("DELETE FROM kv_store WHERE key = ?;", (key,))
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"Could not delete key {key!r}: {exc}") from exc
        return cur.rowcount > 0

    def scan_prefix(self, prefix: str) -> list[str]:
        """Return live (unexpired) keys starting with ``prefix``, sorted."""
        try:
            rows = self.fetchall(
                """
                SELECT key FROM kv_store
                WHERE substr(key, 1, ?) = ?
                  AND (expires_at IS NULL OR expires_at > ?)
                ORDER BY key;
                """,
                (len(prefix), prefix, self._clock()),
            )
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"Could not scan prefix {prefix!r}: {exc}") from exc
        return [row["key"] for row in rows]

    def purge_expired(self) -> int:
        """Delete every expired row; return the number removed."""
        try:
            cur = self.execute(
                "DELETE FROM kv_store WHERE expires_at IS NOT NULL AND expires_at <= ?;",
                (self._clock(),),
            )
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"Could not purge expired keys: {exc}") from exc
        if cur.rowcount:
            logger.info("Purged %d expired key(s).", cur.rowcount)
        return cur.rowcount
