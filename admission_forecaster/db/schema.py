"""
SQLite schema DDL for the key-value store.

Every statement uses ``IF NOT EXISTS``, so ``apply_schema()`` is idempotent
and safe to run on each start-up and in every test.

One table holds everything: catalog snapshots, band indexes, the staging
buffer, cached result sets and saved student scores are all JSON values under
string keys (see ``catalog/keys.py``).

    kv_store
        key         TEXT  primary key
        value       TEXT  JSON document
        expires_at  REAL  unix seconds, NULL = never expires
        updated_at  TEXT  ISO-8601 UTC of the last write
"""

from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

_DDL_KV_STORE = """
CREATE TABLE IF NOT EXISTS kv_store (
    key         TEXT PRIMARY KEY,
    value       TEXT NOT NULL,
    expires_at  REAL,
    updated_at  TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);
"""

_DDL_KV_STORE_INDEXES = """
CREATE INDEX IF NOT EXISTS idx_kv_store_expires
    ON kv_store(expires_at)
    WHERE expires_at IS NOT NULL;
"""

_ALL_DDL = [
    _DDL_KV_STORE,
    _DDL_KV_STORE_INDEXES,
]

ALL_TABLE_NAMES = [
    "kv_store",
]


def apply_schema(conn: sqlite3.Connection) -> None:
    """Create every table and index on ``conn`` (idempotent)."""
    for ddl in _ALL_DDL:
        for statement in _split_ddl(ddl):
            conn.execute(statement)

    conn.commit()
    logger.debug("Schema applied: %d table(s).", len(ALL_TABLE_NAMES))


def _split_ddl(ddl: str) -> list[str]:
    return [s.strip() for s in ddl.split(";") if s.strip()]


def get_existing_tables(conn: sqlite3.Connection) -> list[str]:
    """Return table names present in the database, sorted alphabetically."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name;"
    ).fetchall()
    return [row["name"] for row in rows]


def get_existing_indexes(conn: sqlite3.Connection) -> list[str]:
    """Return explicitly created index names, sorted alphabetically."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='index' AND sql IS NOT NULL "
        "ORDER BY name;"
    ).fetchall()
    return [row["name"] for row in rows]
