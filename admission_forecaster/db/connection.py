"""
SQLite connection management for the key-value store.

``get_connection()`` yields a configured connection and:
  - creates the database file's parent directory on first use,
  - switches file databases to WAL so CLI reads do not block an upload,
  - sets a busy timeout for lock contention,
  - uses ``sqlite3.Row`` so rows behave like dicts,
  - optionally applies the schema before yielding,
  - commits on clean exit and rolls back on exception.

Usage::

    from admission_forecaster.db.connection import get_connection

    with get_connection("data/db/admission_forecaster.db", ensure_schema=True) as conn:
        store = SqliteKeyValueStore(conn)
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"


@contextmanager
def get_connection(
    db_path: str,
    wal_mode: bool = True,
    busy_timeout_ms: int = 5000,
    ensure_schema: bool = False,
) -> Generator[sqlite3.Connection, None, None]:
    """Context manager yielding a configured SQLite connection.

    Args:
        db_path: Database file path, or ``":memory:"`` for a throwaway database.
        wal_mode: Enable WAL journaling (ignored for in-memory databases).
        busy_timeout_ms: How long to wait on a locked database before
            ``sqlite3.OperationalError`` is raised.
        ensure_schema: Run ``apply_schema`` before yielding.

    Yields:
        An open ``sqlite3.Connection``.

    Raises:
        sqlite3.OperationalError: If the database cannot be opened or stays locked.
    """
    in_memory = db_path == MEMORY_DB
    if not in_memory:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path, timeout=busy_timeout_ms / 1000)
    conn.row_factory = sqlite3.Row

    try:
        conn.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)};")
        if wal_mode and not in_memory:
            conn.execute("PRAGMA journal_mode = WAL;")

        if ensure_schema:
            from admission_forecaster.db.schema import apply_schema

            apply_schema(conn)

        logger.debug("Opened SQLite connection: %s", db_path)
        yield conn
        conn.commit()

    except Exception:
        conn.rollback()
        raise

    finally:
        conn.close()
