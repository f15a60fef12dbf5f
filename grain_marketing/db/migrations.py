"""
Sequential schema migrations.

Not a migration framework (no Alembic, no down migrations):

  1. A ``schema_versions`` table tracks applied migration IDs.
  2. Each migration is a function taking a ``sqlite3.Connection``.
  3. ``run_migrations()`` applies any migration not yet recorded, in
     ``MIGRATIONS`` insertion order.

The current schema is created by ``apply_schema()``; migrations only bring
databases created by older releases up to date, so each one must be a
no-op against a fresh schema.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable

logger = logging.getLogger(__name__)

MigrationFn = Callable[[sqlite3.Connection], None]


def _ensure_version_table(conn: sqlite3.Connection) -> None:
    conn.execute("""
        CREATE TABLE IF NOT EXISTS schema_versions (
            version_id  TEXT    NOT NULL PRIMARY KEY,
            applied_at  TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
            description TEXT
        );
    """)
    conn.commit()


def _get_applied_versions(conn: sqlite3.Connection) -> set[str]:
    rows = conn.execute("SELECT version_id FROM schema_versions;").fetchall()
    return {row["version_id"] for row in rows}


def _mark_applied(conn: sqlite3.Connection, version_id: str, description: str) -> None:
    conn.execute(
        "INSERT INTO schema_versions(version_id, description) VALUES (?, ?);",
        (version_id, description),
    )
    conn.commit()


def _columns(conn: sqlite3.Connection, table: str) -> set[str]:
    return {row[1] for row in conn.execute(f"PRAGMA table_info({table});").fetchall()}


# ── Migration functions ────────────────────────────────────────────────────────


def migration_0001_baseline(conn: sqlite3.Connection) -> None:
    """Anchor the version history; the schema itself comes from apply_schema()."""


def migration_0002_euro_expiration_flag(conn: sqlite3.Connection) -> None:
    """Track whether a EURO accumulator's expiration doubling has been applied."""
    if "euro_expiration_processed" not in _columns(conn, "accumulator_contracts"):
        conn.execute(
            "ALTER TABLE accumulator_contracts "
            "ADD COLUMN euro_expiration_processed INTEGER NOT NULL DEFAULT 0;"
        )
    conn.commit()


def migration_0003_signal_dismiss_reason(conn: sqlite3.Connection) -> None:
    """Add dismiss_reason and updated_at to marketing_signals."""
    existing = _columns(conn, "marketing_signals")
    if "dismiss_reason" not in existing:
        conn.execute("ALTER TABLE marketing_signals ADD COLUMN dismiss_reason TEXT;")
    if "updated_at" not in existing:
        conn.execute("ALTER TABLE marketing_signals ADD COLUMN updated_at TEXT;")
    conn.commit()


# ── Registry ──────────────────────────────────────────────────────────────────

MIGRATIONS: dict[str, tuple[MigrationFn, str]] = {
    "0001_baseline": (
        migration_0001_baseline,
        "Baseline: schema_versions table created",
    ),
    "0002_euro_expiration_flag": (
        migration_0002_euro_expiration_flag,
        "Add euro_expiration_processed to accumulator_contracts",
    ),
    "0003_signal_dismiss_reason": (
        migration_0003_signal_dismiss_reason,
        "Add dismiss_reason, updated_at to marketing_signals",
    ),
}


def run_migrations(conn: sqlite3.Connection) -> int:
    """Apply all pending migrations and return how many ran."""
    _ensure_version_table(conn)
    applied = _get_applied_versions(conn)

    count = 0
    for version_id, (fn, description) in MIGRATIONS.items():
        if version_id in applied:
            logger.debug("Migration %s already applied; skipping.", version_id)
            continue

        logger.info("Applying migration %s: %s", version_id, description)
        try:
            fn(conn)
            _mark_applied(conn, version_id, description)
            count += 1
        except Exception as exc:
            conn.rollback()
            logger.error("Migration %s FAILED: %s", version_id, exc)
            raise

    if count:
        logger.info("Applied %d migration(s).", count)
    else:
        logger.debug("No pending migrations.")

    return count
