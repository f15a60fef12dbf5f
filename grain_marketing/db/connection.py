"""
SQLite connection management.

``get_connection()`` yields a connection that:
  - Enforces foreign keys (OFF by default in SQLite).
  - Uses WAL journal mode so the CLI can read while the scheduler writes.
  - Waits ``busy_timeout_ms`` on lock contention.
  - Returns ``sqlite3.Row`` rows (dict-like access).
  - Commits on clean exit, rolls back on exception.

``connect(config)`` is the same thing driven by ``DatabaseConfig``, and
``init_database(config)`` creates tables and applies pending migrations.

Usage::

    from grain_marketing.db.connection import connect

    with connect(config.database) as conn:
        SignalRepository(conn).list_active(business_id=1)
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import AbstractContextManager, contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Generator

if TYPE_CHECKING:
    from grain_marketing.config import DatabaseConfig

logger = logging.getLogger(__name__)


@contextmanager
def get_connection(
    db_path: str,
    wal_mode: bool = True,
    busy_timeout_ms: int = 5000,
) -> Generator[sqlite3.Connection, None, None]:
    """Context manager yielding a configured SQLite connection.

    The database file and its parent directories are created if missing.

    Args:
        db_path: Path to the SQLite file, or ``":memory:"`` (tests).
        wal_mode: Enable WAL journal mode.
        busy_timeout_ms: Milliseconds to wait on a locked database.

    Raises:
        sqlite3.OperationalError: If the database cannot be opened or is locked.
    """
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path, timeout=busy_timeout_ms / 1000)
    conn.row_factory = sqlite3.Row

    try:
        conn.execute("PRAGMA foreign_keys = ON;")
        conn.execute(f"PRAGMA busy_timeout = {busy_timeout_ms};")
        if wal_mode and db_path != ":memory:":
            conn.execute("PRAGMA journal_mode = WAL;")

        yield conn
        conn.commit()

    except Exception:
        conn.rollback()
        raise

    finally:
        conn.close()


def connect(config: "DatabaseConfig") -> AbstractContextManager[sqlite3.Connection]:
    return get_connection(
        config.db_path,
        wal_mode=config.wal_mode,
        busy_timeout_ms=config.busy_timeout_ms,
    )


def init_database(config: "DatabaseConfig") -> list[str]:
    """Create all tables and apply migrations; return the table names present."""
    from grain_marketing.db.migrations import run_migrations
    from grain_marketing.db.schema import apply_schema, get_existing_tables

    with connect(config) as conn:
        apply_schema(conn)
        applied = run_migrations(conn)
        tables = get_existing_tables(conn)
    logger.info("Database ready at %s (%d migration(s) applied).", config.db_path, applied)
    return tables
