"""
SQLite schema DDL: all CREATE TABLE and CREATE INDEX statements.

All statements use ``IF NOT EXISTS`` so ``apply_schema()`` is **idempotent**:
safe to call on an already-initialized database (e.g. after restart or in tests).

Table creation order respects foreign key dependencies:
  1. businesses             (no FKs)
  2. entities               (→ businesses)
  3. farms                  (→ businesses, entities)
  4. fertilizer_products, chemical_products, seed_products  (→ businesses)
  5. farm_fertilizer_usage, farm_chemical_usage, farm_seed_usage  (→ farms, products)
  6. farm_other_costs, farm_entity_splits  (→ farms, entities)
  7. land_loans (→ farms), operating_loans (→ businesses)
  8. production_estimates   (→ entities)
  9. grain_contracts        (→ businesses, entities)
  10. marketing_preferences, personalized_thresholds, old_crop_inventory  (→ businesses)
  11. futures_quotes, basis_history, fundamental_snapshots, news_events  (no FKs)
  12. marketing_signals     (→ businesses)
  13. accumulator_contracts (→ businesses); accumulator_daily_entries (→ accumulator_contracts)
  14. run_metadata          (no FKs)

Timestamps are ISO-8601 TEXT; dates are ``YYYY-MM-DD``; enums are stored
by value; booleans are 0/1 INTEGER.
"""

from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

_NOW = "(strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))"

# ── DDL statements ─────────────────────────────────────────────────────────────

_DDL_BUSINESSES = f"""
CREATE TABLE IF NOT EXISTS businesses (
    business_id     INTEGER PRIMARY KEY AUTOINCREMENT,
    name            TEXT    NOT NULL,
    created_at      TEXT    NOT NULL DEFAULT {_NOW}
);
"""

_DDL_ENTITIES = f"""
CREATE TABLE IF NOT EXISTS entities (
    entity_id       INTEGER PRIMARY KEY AUTOINCREMENT,
    business_id     INTEGER NOT NULL REFERENCES businesses(business_id),
    name            TEXT    NOT NULL,
    created_at      TEXT    NOT NULL DEFAULT {_NOW}
);

CREATE INDEX IF NOT EXISTS idx_entities_business ON entities(business_id);
"""

_DDL_FARMS = f"""
CREATE TABLE IF NOT EXISTS farms (
    farm_id            INTEGER PRIMARY KEY AUTOINCREMENT,
    business_id        INTEGER NOT NULL REFERENCES businesses(business_id),
    primary_entity_id  INTEGER NOT NULL REFERENCES entities(entity_id),
    name               TEXT    NOT NULL,
    commodity          TEXT    NOT NULL,
    year               INTEGER NOT NULL,
    acres              REAL    NOT NULL DEFAULT 0,
    projected_yield    REAL,
    created_at         TEXT    NOT NULL DEFAULT {_NOW}
);

CREATE INDEX IF NOT EXISTS idx_farms_business_year ON farms(business_id, year);
"""

_DDL_PRODUCTS = """
CREATE TABLE IF NOT EXISTS fertilizer_products (
    product_id      INTEGER PRIMARY KEY AUTOINCREMENT,
    business_id     INTEGER NOT NULL REFERENCES businesses(business_id),
    name            TEXT    NOT NULL,
    price_per_unit  REAL    NOT NULL,
    unit            TEXT    NOT NULL DEFAULT 'lb',
    nitrogen_pct    REAL    NOT NULL DEFAULT 0,
    phosphorus_pct  REAL    NOT NULL DEFAULT 0,
    potassium_pct   REAL    NOT NULL DEFAULT 0,
    sulfur_pct      REAL    NOT NULL DEFAULT 0,
    lbs_per_gallon  REAL,
    is_manure       INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS chemical_products (
    product_id      INTEGER PRIMARY KEY AUTOINCREMENT,
    business_id     INTEGER NOT NULL REFERENCES businesses(business_id),
    name            TEXT    NOT NULL,
    price_per_unit  REAL    NOT NULL,
    is_liquid       INTEGER NOT NULL DEFAULT 1
);

CREATE TABLE IF NOT EXISTS seed_products (
    product_id      INTEGER PRIMARY KEY AUTOINCREMENT,
    business_id     INTEGER NOT NULL REFERENCES businesses(business_id),
    name            TEXT    NOT NULL,
    price_per_bag   REAL    NOT NULL,
    seeds_per_bag   REAL    NOT NULL DEFAULT 80000
);
"""

_DDL_USAGE = """
CREATE TABLE IF NOT EXISTS farm_fertilizer_usage (
    usage_id        INTEGER PRIMARY KEY AUTOINCREMENT,
    farm_id         INTEGER NOT NULL REFERENCES farms(farm_id),
    product_id      INTEGER NOT NULL REFERENCES fertilizer_products(product_id),
    amount_used     REAL,
    rate_per_acre   REAL,
    rate_unit       TEXT    NOT NULL DEFAULT 'lb',
    acres_applied   REAL
);

CREATE TABLE IF NOT EXISTS farm_chemical_usage (
    usage_id        INTEGER PRIMARY KEY AUTOINCREMENT,
    farm_id         INTEGER NOT NULL REFERENCES farms(farm_id),
    product_id      INTEGER NOT NULL REFERENCES chemical_products(product_id),
    amount_used     REAL,
    rate_per_acre   REAL,
    rate_unit       TEXT    NOT NULL DEFAULT 'gal',
    acres_applied   REAL
);

CREATE TABLE IF NOT EXISTS farm_seed_usage (
    usage_id        INTEGER PRIMARY KEY AUTOINCREMENT,
    farm_id         INTEGER NOT NULL REFERENCES farms(farm_id),
    product_id      INTEGER NOT NULL REFERENCES seed_products(product_id),
    bags_used       REAL,
    rate_per_acre   REAL,
    acres_applied   REAL
);

CREATE INDEX IF NOT EXISTS idx_fert_usage_farm ON farm_fertilizer_usage(farm_id);
CREATE INDEX IF NOT EXISTS idx_chem_usage_farm ON farm_chemical_usage(farm_id);
CREATE INDEX IF NOT EXISTS idx_seed_usage_farm ON farm_seed_usage(farm_id);
"""

_DDL_FARM_COSTS = """
CREATE TABLE IF NOT EXISTS farm_other_costs (
    cost_id         INTEGER PRIMARY KEY AUTOINCREMENT,
    farm_id         INTEGER NOT NULL REFERENCES farms(farm_id),
    description     TEXT    NOT NULL DEFAULT '',
    cost_type       TEXT    NOT NULL DEFAULT 'other',
    amount          REAL    NOT NULL,
    is_per_acre     INTEGER NOT NULL DEFAULT 1
);

CREATE TABLE IF NOT EXISTS farm_entity_splits (
    farm_id         INTEGER NOT NULL REFERENCES farms(farm_id),
    entity_id       INTEGER NOT NULL REFERENCES entities(entity_id),
    percentage      REAL    NOT NULL,
    PRIMARY KEY (farm_id, entity_id)
);
"""

_DDL_LOANS = """
CREATE TABLE IF NOT EXISTS land_loans (
    loan_id           INTEGER PRIMARY KEY AUTOINCREMENT,
    farm_id           INTEGER NOT NULL REFERENCES farms(farm_id),
    annual_interest   REAL    NOT NULL DEFAULT 0,
    annual_principal  REAL    NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS operating_loans (
    business_id                   INTEGER NOT NULL REFERENCES businesses(business_id),
    year                          INTEGER NOT NULL,
    operating_interest_total      REAL    NOT NULL DEFAULT 0,
    equipment_interest_per_acre   REAL    NOT NULL DEFAULT 0,
    equipment_principal_per_acre  REAL    NOT NULL DEFAULT 0,
    PRIMARY KEY (business_id, year)
);
"""

_DDL_PRODUCTION_ESTIMATES = """
CREATE TABLE IF NOT EXISTS production_estimates (
    estimate_id       INTEGER PRIMARY KEY AUTOINCREMENT,
    entity_id         INTEGER NOT NULL REFERENCES entities(entity_id),
    commodity         TEXT    NOT NULL,
    year              INTEGER NOT NULL,
    acres             REAL    NOT NULL DEFAULT 0,
    bushels_per_acre  REAL    NOT NULL DEFAULT 0,
    UNIQUE (entity_id, commodity, year)
);
"""

_DDL_GRAIN_CONTRACTS = f"""
CREATE TABLE IF NOT EXISTS grain_contracts (
    contract_id     INTEGER PRIMARY KEY AUTOINCREMENT,
    business_id     INTEGER NOT NULL REFERENCES businesses(business_id),
    entity_id       INTEGER REFERENCES entities(entity_id),
    commodity       TEXT    NOT NULL,
    crop_year       INTEGER NOT NULL,
    contract_type   TEXT    NOT NULL DEFAULT 'cash',
    bushels         REAL    NOT NULL,
    price           REAL,
    delivery_date   TEXT,
    is_deleted      INTEGER NOT NULL DEFAULT 0,
    created_at      TEXT    NOT NULL DEFAULT {_NOW}
);

CREATE INDEX IF NOT EXISTS idx_grain_contracts_business
    ON grain_contracts(business_id, commodity, crop_year);
"""

_DDL_PREFERENCES = f"""
CREATE TABLE IF NOT EXISTS marketing_preferences (
    business_id     INTEGER PRIMARY KEY REFERENCES businesses(business_id),
    payload         TEXT    NOT NULL,
    updated_at      TEXT    NOT NULL DEFAULT {_NOW}
);

CREATE TABLE IF NOT EXISTS personalized_thresholds (
    threshold_id          INTEGER PRIMARY KEY AUTOINCREMENT,
    business_id           INTEGER NOT NULL REFERENCES businesses(business_id),
    commodity             TEXT    NOT NULL,
    signal_type           TEXT    NOT NULL,
    buy_threshold         REAL    NOT NULL,
    strong_buy_threshold  REAL    NOT NULL,
    confidence            REAL    NOT NULL DEFAULT 0,
    data_points           INTEGER NOT NULL DEFAULT 0,
    UNIQUE (business_id, commodity, signal_type)
);

CREATE TABLE IF NOT EXISTS old_crop_inventory (
    business_id       INTEGER NOT NULL REFERENCES businesses(business_id),
    commodity         TEXT    NOT NULL,
    crop_year         INTEGER NOT NULL,
    unpriced_bushels  REAL    NOT NULL DEFAULT 0,
    PRIMARY KEY (business_id, commodity, crop_year)
);
"""

_DDL_MARKET_DATA = """
CREATE TABLE IF NOT EXISTS futures_quotes (
    quote_id        INTEGER PRIMARY KEY AUTOINCREMENT,
    commodity       TEXT    NOT NULL,
    quote_date      TEXT    NOT NULL,
    contract_month  TEXT    NOT NULL,
    contract_year   INTEGER NOT NULL,
    price           REAL    NOT NULL,
    UNIQUE (commodity, quote_date, contract_month, contract_year)
);

CREATE INDEX IF NOT EXISTS idx_futures_commodity_date
    ON futures_quotes(commodity, quote_date DESC);

CREATE TABLE IF NOT EXISTS basis_history (
    basis_id        INTEGER PRIMARY KEY AUTOINCREMENT,
    commodity       TEXT    NOT NULL,
    observed_on     TEXT    NOT NULL,
    basis           REAL    NOT NULL,
    location        TEXT    NOT NULL DEFAULT '',
    UNIQUE (commodity, observed_on, location)
);

CREATE TABLE IF NOT EXISTS fundamental_snapshots (
    commodity       TEXT    NOT NULL,
    as_of           TEXT    NOT NULL,
    payload         TEXT    NOT NULL,
    PRIMARY KEY (commodity, as_of)
);

CREATE TABLE IF NOT EXISTS news_events (
    event_id          INTEGER PRIMARY KEY AUTOINCREMENT,
    commodity         TEXT,
    headline          TEXT    NOT NULL,
    sentiment         TEXT    NOT NULL DEFAULT 'neutral',
    urgency           TEXT    NOT NULL DEFAULT 'monitor',
    is_trade_policy   INTEGER NOT NULL DEFAULT 0,
    price_impact_pct  TEXT,
    published_on      TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_news_published ON news_events(published_on DESC);
"""

_DDL_MARKETING_SIGNALS = f"""
CREATE TABLE IF NOT EXISTS marketing_signals (
    signal_id                 INTEGER PRIMARY KEY AUTOINCREMENT,
    business_id               INTEGER NOT NULL REFERENCES businesses(business_id),
    entity_id                 INTEGER,
    signal_type               TEXT    NOT NULL,
    commodity                 TEXT    NOT NULL,
    crop_year                 INTEGER NOT NULL,
    is_new_crop               INTEGER NOT NULL DEFAULT 1,
    strength                  TEXT    NOT NULL,
    status                    TEXT    NOT NULL DEFAULT 'active',
    current_price             REAL    NOT NULL,
    break_even_price          REAL    NOT NULL DEFAULT 0,
    target_price              REAL,
    price_above_break_even    REAL    NOT NULL DEFAULT 0,
    percent_above_break_even  REAL    NOT NULL DEFAULT 0,
    recommended_bushels       REAL,
    title                     TEXT    NOT NULL,
    summary                   TEXT    NOT NULL,
    rationale                 TEXT    NOT NULL DEFAULT '',
    context                   TEXT,
    created_at                TEXT    NOT NULL DEFAULT {_NOW},
    updated_at                TEXT,
    expires_at                TEXT    NOT NULL,
    viewed_at                 TEXT,
    action_taken              TEXT,
    action_taken_at           TEXT,
    dismissed_at              TEXT,
    dismiss_reason            TEXT
);

CREATE INDEX IF NOT EXISTS idx_signals_dedup
    ON marketing_signals(business_id, signal_type, commodity, status, created_at DESC);

CREATE INDEX IF NOT EXISTS idx_signals_expiry
    ON marketing_signals(status, expires_at);
"""

_DDL_ACCUMULATORS = f"""
CREATE TABLE IF NOT EXISTS accumulator_contracts (
    contract_id                INTEGER PRIMARY KEY AUTOINCREMENT,
    business_id                INTEGER NOT NULL REFERENCES businesses(business_id),
    entity_id                  INTEGER,
    commodity                  TEXT    NOT NULL,
    accumulator_type           TEXT    NOT NULL DEFAULT 'daily',
    contract_month             TEXT    NOT NULL DEFAULT '',
    start_date                 TEXT    NOT NULL,
    end_date                   TEXT    NOT NULL,
    total_bushels              REAL    NOT NULL,
    base_price                 REAL    NOT NULL,
    knockout_price             REAL    NOT NULL,
    double_up_price            REAL    NOT NULL,
    daily_bushels              REAL    NOT NULL,
    weekly_bushels             REAL,
    is_active                  INTEGER NOT NULL DEFAULT 1,
    total_bushels_marketed     REAL    NOT NULL DEFAULT 0,
    total_doubled_bushels      REAL    NOT NULL DEFAULT 0,
    is_currently_doubled       INTEGER NOT NULL DEFAULT 0,
    knockout_reached           INTEGER NOT NULL DEFAULT 0,
    knockout_date              TEXT,
    last_processed_date        TEXT,
    euro_expiration_processed  INTEGER NOT NULL DEFAULT 0,
    created_at                 TEXT    NOT NULL DEFAULT {_NOW},
    CHECK (knockout_price < double_up_price),
    CHECK (start_date <= end_date)
);

CREATE INDEX IF NOT EXISTS idx_accumulators_active
    ON accumulator_contracts(is_active, knockout_reached);

CREATE TABLE IF NOT EXISTS accumulator_daily_entries (
    entry_id          INTEGER PRIMARY KEY AUTOINCREMENT,
    contract_id       INTEGER NOT NULL REFERENCES accumulator_contracts(contract_id),
    entry_date        TEXT    NOT NULL,
    bushels_marketed  REAL    NOT NULL,
    market_price      REAL    NOT NULL,
    was_doubled       INTEGER NOT NULL DEFAULT 0,
    notes             TEXT    NOT NULL DEFAULT '',
    UNIQUE (contract_id, entry_date)
);
"""

_DDL_RUN_METADATA = f"""
CREATE TABLE IF NOT EXISTS run_metadata (
    run_id           INTEGER PRIMARY KEY AUTOINCREMENT,
    run_slug         TEXT    NOT NULL UNIQUE,
    pipeline_stage   TEXT    NOT NULL,
    status           TEXT    NOT NULL DEFAULT 'started',
    business_id      INTEGER,
    config_snapshot  TEXT    NOT NULL,
    rows_processed   INTEGER NOT NULL DEFAULT 0,
    error_message    TEXT,
    started_at       TEXT    NOT NULL,
    finished_at      TEXT,
    created_at       TEXT    NOT NULL DEFAULT {_NOW}
);

CREATE INDEX IF NOT EXISTS idx_run_stage_time
    ON run_metadata(pipeline_stage, started_at DESC);
"""

_ALL_DDL: list[str] = [
    _DDL_BUSINESSES,
    _DDL_ENTITIES,
    _DDL_FARMS,
    _DDL_PRODUCTS,
    _DDL_USAGE,
    _DDL_FARM_COSTS,
    _DDL_LOANS,
    _DDL_PRODUCTION_ESTIMATES,
    _DDL_GRAIN_CONTRACTS,
    _DDL_PREFERENCES,
    _DDL_MARKET_DATA,
    _DDL_MARKETING_SIGNALS,
    _DDL_ACCUMULATORS,
    _DDL_RUN_METADATA,
]

ALL_TABLE_NAMES = [
    "businesses",
    "entities",
    "farms",
    "fertilizer_products",
    "chemical_products",
    "seed_products",
    "farm_fertilizer_usage",
    "farm_chemical_usage",
    "farm_seed_usage",
    "farm_other_costs",
    "farm_entity_splits",
    "land_loans",
    "operating_loans",
    "production_estimates",
    "grain_contracts",
    "marketing_preferences",
    "personalized_thresholds",
    "old_crop_inventory",
    "futures_quotes",
    "basis_history",
    "fundamental_snapshots",
    "news_events",
    "marketing_signals",
    "accumulator_contracts",
    "accumulator_daily_entries",
    "run_metadata",
]


def apply_schema(conn: sqlite3.Connection) -> None:
    """Apply all DDL statements to ``conn``.

    Idempotent: each statement uses ``IF NOT EXISTS`` guards.

    Args:
        conn: An open ``sqlite3.Connection`` (FK enforcement should be ON).
    """
    logger.debug("Applying schema to database...")

    for ddl in _ALL_DDL:
        for statement in _split_ddl(ddl):
            conn.execute(statement)

    conn.commit()
    logger.info("Schema applied: %d tables, indexes created/verified.", len(ALL_TABLE_NAMES))


def _split_ddl(ddl: str) -> list[str]:
    """Split a multi-statement DDL block on semicolons."""
    return [s.strip() for s in ddl.split(";") if s.strip()]


def get_existing_tables(conn: sqlite3.Connection) -> list[str]:
    """Return user table names in the database, sorted alphabetically.

    SQLite internals such as ``sqlite_sequence`` are excluded.
    """
    rows = conn.execute(
        "SELECT name FROM sqlite_master "
        "WHERE type='table' AND name NOT LIKE 'sqlite_%' ORDER BY name;"
    ).fetchall()
    return [row["name"] for row in rows]
