"""
Repository for ``accumulator_contracts`` and ``accumulator_daily_entries``.

Contract terms and running state share one row; they are read and written
as separate models. Daily entries are upserted on ``(contract_id, entry_date)``
so re-processing a trading day replaces, never appends.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import date
from typing import Optional

from grain_marketing.db.repositories.base import BaseRepository, iso, parse_date
from grain_marketing.models.accumulator import (
    AccumulatorContract,
    AccumulatorDailyEntry,
    AccumulatorState,
)
from grain_marketing.taxonomy.marketing_taxonomy import AccumulatorType, Commodity

logger = logging.getLogger(__name__)


class AccumulatorRepository(BaseRepository):
    """Read/write access to accumulator contracts, state and daily entries."""

    def insert_contract(self, contract: AccumulatorContract) -> int:
        self.execute(
            """
            INSERT INTO accumulator_contracts (
                business_id, entity_id, commodity, accumulator_type, contract_month,
                start_date, end_date, total_bushels, base_price, knockout_price,
                double_up_price, daily_bushels, weekly_bushels, is_active
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                contract.business_id,
                contract.entity_id,
                contract.commodity.value,
                contract.accumulator_type.value,
                contract.contract_month,
                contract.start_date.isoformat(),
                contract.end_date.isoformat(),
                contract.total_bushels,
                contract.base_price,
                contract.knockout_price,
                contract.double_up_price,
                contract.daily_bushels,
                contract.weekly_bushels,
                int(contract.is_active),
            ),
        )
        return self.last_insert_rowid()

    def get_contract(self, contract_id: int) -> Optional[AccumulatorContract]:
        row = self.fetchone(
            "SELECT * FROM accumulator_contracts WHERE contract_id = ?;", (contract_id,)
        )
        return _row_to_contract(row) if row else None

    def get_processable_contracts(self, as_of: date) -> list[AccumulatorContract]:
        """Active, not knocked-out contracts whose window covers ``as_of``.

        EURO contracts stay processable past their end date until the
        expiration settlement has been applied.
        """
        rows = self.fetchall(
            """
            SELECT * FROM accumulator_contracts
            WHERE is_active = 1 AND knockout_reached = 0 AND start_date <= ?
              AND (end_date >= ?
                   OR (accumulator_type = ? AND euro_expiration_processed = 0))
            ORDER BY contract_id;
            """,
            (as_of.isoformat(), as_of.isoformat(), AccumulatorType.EURO.value),
        )
        return [_row_to_contract(r) for r in rows]

    def get_active_for_business(
        self,
        business_id: int,
        commodity: Optional[Commodity] = None,
    ) -> list[AccumulatorContract]:
        """Active, not knocked-out contracts for a business."""
        sql = (
            "SELECT * FROM accumulator_contracts "
            "WHERE business_id = ? AND is_active = 1 AND knockout_reached = 0"
        )
        params: tuple[object, ...] = (business_id,)
        if commodity is not None:
            sql += " AND commodity = ?"
            params = (business_id, commodity.value)
        rows = self.fetchall(sql + " ORDER BY contract_id;", params)
        return [_row_to_contract(r) for r in rows]

    def get_state(self, contract_id: int) -> Optional[AccumulatorState]:
        row = self.fetchone(
            "SELECT * FROM accumulator_contracts WHERE contract_id = ?;", (contract_id,)
        )
        return _row_to_state(row) if row else None

    def save_state(self, state: AccumulatorState) -> None:
        """Persist running totals, doubled flag, knockout and last-processed date.

        Raises:
            ValueError: If ``state.contract_id`` is ``None``.
        """
        if state.contract_id is None:
            raise ValueError("Cannot save AccumulatorState without a contract_id.")
        self.execute(
            """
            UPDATE accumulator_contracts SET
                total_bushels_marketed    = ?,
                total_doubled_bushels     = ?,
                is_currently_doubled      = ?,
                knockout_reached          = ?,
                knockout_date             = ?,
                last_processed_date       = ?,
                euro_expiration_processed = ?
            WHERE contract_id = ?;
            """,
            (
                state.total_bushels_marketed,
                state.total_doubled_bushels,
                int(state.is_currently_doubled),
                int(state.knockout_reached),
                iso(state.knockout_date),
                iso(state.last_processed_date),
                int(state.euro_expiration_processed),
                state.contract_id,
            ),
        )

    def upsert_entry(self, entry: AccumulatorDailyEntry) -> None:
        self.execute(
            """
            INSERT INTO accumulator_daily_entries (
                contract_id, entry_date, bushels_marketed, market_price, was_doubled, notes
            ) VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(contract_id, entry_date) DO UPDATE SET
                bushels_marketed = excluded.bushels_marketed,
                market_price     = excluded.market_price,
                was_doubled      = excluded.was_doubled,
                notes            = excluded.notes;
            """,
            (
                entry.contract_id,
                entry.entry_date.isoformat(),
                entry.bushels_marketed,
                entry.market_price,
                int(entry.was_doubled),
                entry.notes,
            ),
        )

    def get_entries(self, contract_id: int) -> list[AccumulatorDailyEntry]:
        rows = self.fetchall(
            """
            SELECT * FROM accumulator_daily_entries
            WHERE contract_id = ?
            ORDER BY entry_date;
            """,
            (contract_id,),
        )
        return [_row_to_entry(r) for r in rows]


# ── Private helpers ────────────────────────────────────────────────────────────


def _row_to_contract(row: sqlite3.Row) -> AccumulatorContract:
    return AccumulatorContract(
        contract_id=row["contract_id"],
        business_id=row["business_id"],
        entity_id=row["entity_id"],
        commodity=Commodity(row["commodity"]),
        accumulator_type=AccumulatorType(row["accumulator_type"]),
        contract_month=row["contract_month"],
        start_date=date.fromisoformat(row["start_date"]),
        end_date=date.fromisoformat(row["end_date"]),
        total_bushels=row["total_bushels"],
        base_price=row["base_price"],
        knockout_price=row["knockout_price"],
        double_up_price=row["double_up_price"],
        daily_bushels=row["daily_bushels"],
        weekly_bushels=row["weekly_bushels"],
        is_active=bool(row["is_active"]),
    )


def _row_to_state(row: sqlite3.Row) -> AccumulatorState:
    return AccumulatorState(
        contract_id=row["contract_id"],
        total_bushels_marketed=row["total_bushels_marketed"],
        total_doubled_bushels=row["total_doubled_bushels"],
        is_currently_doubled=bool(row["is_currently_doubled"]),
        knockout_reached=bool(row["knockout_reached"]),
        knockout_date=parse_date(row["knockout_date"]),
        last_processed_date=parse_date(row["last_processed_date"]),
        euro_expiration_processed=bool(row["euro_expiration_processed"]),
    )


def _row_to_entry(row: sqlite3.Row) -> AccumulatorDailyEntry:
    return AccumulatorDailyEntry(
        entry_id=row["entry_id"],
        contract_id=row["contract_id"],
        entry_date=date.fromisoformat(row["entry_date"]),
        bushels_marketed=row["bushels_marketed"],
        market_price=row["market_price"],
        was_doubled=bool(row["was_doubled"]),
        notes=row["notes"],
    )
