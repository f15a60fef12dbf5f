"""
Base repository with shared SQLite helpers.

Repositories receive an open ``sqlite3.Connection`` (from ``get_connection()``)
and never commit on their own; the connection context manager owns the
transaction. SQL is explicit and lives in repository methods; callers get
pydantic models back, never rows.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Iterator, Optional

logger = logging.getLogger(__name__)

Params = tuple[Any, ...] | dict[str, Any]


class BaseRepository:
    """Shared SQL execution helpers for all repository classes.

    Attributes:
        conn: The active ``sqlite3.Connection``.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def execute(self, sql: str, params: Params = ()) -> sqlite3.Cursor:
        logger.debug("SQL: %s | params: %s", sql.strip(), params)
        return self.conn.execute(sql, params)

    def executemany(self, sql: str, params_list: list[Params]) -> sqlite3.Cursor:
        logger.debug("SQL (many): %s | count: %d", sql.strip(), len(params_list))
        return self.conn.executemany(sql, params_list)

    def fetchone(self, sql: str, params: Params = ()) -> Optional[sqlite3.Row]:
        return self.execute(sql, params).fetchone()

    def fetchall(self, sql: str, params: Params = ()) -> list[sqlite3.Row]:
        return self.execute(sql, params).fetchall()

    def last_insert_rowid(self) -> int:
        row = self.fetchone("SELECT last_insert_rowid() AS rowid;")
        assert row is not None
        return int(row["rowid"])

    @contextmanager
    def savepoint(self, name: str) -> Iterator[None]:
        """Group writes so an exception undoes them without ending the transaction.

        Opens a transaction first when none is active, so ``RELEASE`` never
        commits; the connection owner still decides when to commit.
        """
        if not self.conn.in_transaction:
            self.conn.execute("BEGIN;")
        self.conn.execute(f"SAVEPOINT {name};")
        try:
            yield
        except Exception:
            self.conn.execute(f"ROLLBACK TO {name};")
            self.conn.execute(f"RELEASE {name};")
            raise
        self.conn.execute(f"RELEASE {name};")


# ── Column codecs ──────────────────────────────────────────────────────────────


def iso(value: Optional[date | datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def parse_date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO timestamp; SQLite's ``...Z`` default is read as UTC."""
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)
