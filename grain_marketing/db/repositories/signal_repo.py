"""
Repository for ``marketing_signals``.

Context payloads are stored as JSON and re-validated into the tagged
union on read. Timestamps are normalized to UTC before they are written.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime
from typing import Optional

from pydantic import TypeAdapter

from grain_marketing.db.repositories.base import BaseRepository, iso, parse_datetime
from grain_marketing.models.signal import MarketingSignal, SignalContext
from grain_marketing.taxonomy.marketing_taxonomy import (
    Commodity,
    SignalStatus,
    SignalType,
)
from grain_marketing.utils.time_utils import to_utc

logger = logging.getLogger(__name__)

_CONTEXT_ADAPTER: TypeAdapter[SignalContext] = TypeAdapter(SignalContext)


def _ts(value: Optional[datetime]) -> Optional[str]:
    return iso(to_utc(value)) if value is not None else None


class SignalRepository(BaseRepository):
    """Read/write access to ``marketing_signals``."""

    def insert(self, signal: MarketingSignal) -> int:
        """Insert a signal and return its ``signal_id``."""
        self.execute(
            """
            INSERT INTO marketing_signals (
                business_id, entity_id, signal_type, commodity, crop_year,
                is_new_crop, strength, status, current_price, break_even_price,
                target_price, price_above_break_even, percent_above_break_even,
                recommended_bushels, title, summary, rationale, context,
                created_at, updated_at, expires_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                signal.business_id,
                signal.entity_id,
                signal.signal_type.value,
                signal.commodity.value,
                signal.crop_year,
                int(signal.is_new_crop),
                signal.strength.value,
                signal.status.value,
                signal.current_price,
                signal.break_even_price,
                signal.target_price,
                signal.price_above_break_even,
                signal.percent_above_break_even,
                signal.recommended_bushels,
                signal.title,
                signal.summary,
                signal.rationale,
                signal.context.model_dump_json() if signal.context is not None else None,
                _ts(signal.created_at),
                _ts(signal.updated_at),
                _ts(signal.expires_at),
            ),
        )
        return self.last_insert_rowid()

    def update_evaluation(self, signal: MarketingSignal) -> None:
        """Overwrite the evaluated fields of an existing ACTIVE signal in place.

        Raises:
            ValueError: If ``signal.signal_id`` is ``None``.
        """
        if signal.signal_id is None:
            raise ValueError("Cannot update a MarketingSignal without a signal_id.")
        self.execute(
            """
            UPDATE marketing_signals SET
                strength                 = ?,
                current_price            = ?,
                break_even_price         = ?,
                target_price             = ?,
                price_above_break_even   = ?,
                percent_above_break_even = ?,
                recommended_bushels      = ?,
                title                    = ?,
                summary                  = ?,
                rationale                = ?,
                context                  = ?,
                updated_at               = ?
            WHERE signal_id = ?;
            """,
            (
                signal.strength.value,
                signal.current_price,
                signal.break_even_price,
                signal.target_price,
                signal.price_above_break_even,
                signal.percent_above_break_even,
                signal.recommended_bushels,
                signal.title,
                signal.summary,
                signal.rationale,
                signal.context.model_dump_json() if signal.context is not None else None,
                _ts(signal.updated_at),
                signal.signal_id,
            ),
        )

    def update_status(self, signal: MarketingSignal) -> None:
        """Persist lifecycle fields (status, view/action/dismiss timestamps)."""
        if signal.signal_id is None:
            raise ValueError("Cannot update a MarketingSignal without a signal_id.")
        self.execute(
            """
            UPDATE marketing_signals SET
                status          = ?,
                viewed_at       = ?,
                action_taken    = ?,
                action_taken_at = ?,
                dismissed_at    = ?,
                dismiss_reason  = ?,
                updated_at      = ?
            WHERE signal_id = ?;
            """,
            (
                signal.status.value,
                _ts(signal.viewed_at),
                signal.action_taken,
                _ts(signal.action_taken_at),
                _ts(signal.dismissed_at),
                signal.dismiss_reason,
                _ts(signal.updated_at),
                signal.signal_id,
            ),
        )

    def get(self, signal_id: int) -> Optional[MarketingSignal]:
        row = self.fetchone(
            "SELECT * FROM marketing_signals WHERE signal_id = ?;", (signal_id,)
        )
        return _row_to_signal(row) if row else None

    def find_active(
        self,
        business_id: int,
        signal_type: SignalType,
        commodity: Commodity,
    ) -> list[MarketingSignal]:
        """ACTIVE signals for one business/instrument/commodity, newest first."""
        rows = self.fetchall(
            """
            SELECT * FROM marketing_signals
            WHERE business_id = ? AND signal_type = ? AND commodity = ? AND status = ?
            ORDER BY created_at DESC, signal_id DESC;
            """,
            (business_id, signal_type.value, commodity.value, SignalStatus.ACTIVE.value),
        )
        return [_row_to_signal(r) for r in rows]

    def list_signals(
        self,
        business_id: Optional[int] = None,
        status: Optional[SignalStatus] = None,
        limit: int = 50,
    ) -> list[MarketingSignal]:
        clauses: list[str] = []
        params: list[object] = []
        if business_id is not None:
            clauses.append("business_id = ?")
            params.append(business_id)
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self.fetchall(
            f"SELECT * FROM marketing_signals {where} "
            "ORDER BY created_at DESC, signal_id DESC LIMIT ?;",
            (*params, limit),
        )
        return [_row_to_signal(r) for r in rows]

    def list_active(self, business_id: Optional[int] = None) -> list[MarketingSignal]:
        return self.list_signals(business_id, SignalStatus.ACTIVE, limit=-1)


# ── Private helpers ────────────────────────────────────────────────────────────


def _row_to_signal(row: sqlite3.Row) -> MarketingSignal:
    context = (
        _CONTEXT_ADAPTER.validate_python(json.loads(row["context"]))
        if row["context"]
        else None
    )
    return MarketingSignal(
        signal_id=row["signal_id"],
        business_id=row["business_id"],
        entity_id=row["entity_id"],
        signal_type=SignalType(row["signal_type"]),
        commodity=Commodity(row["commodity"]),
        crop_year=row["crop_year"],
        is_new_crop=bool(row["is_new_crop"]),
        strength=row["strength"],
        status=SignalStatus(row["status"]),
        current_price=row["current_price"],
        break_even_price=row["break_even_price"],
        target_price=row["target_price"],
        price_above_break_even=row["price_above_break_even"],
        percent_above_break_even=row["percent_above_break_even"],
        recommended_bushels=row["recommended_bushels"],
        title=row["title"],
        summary=row["summary"],
        rationale=row["rationale"],
        context=context,
        created_at=parse_datetime(row["created_at"]),
        updated_at=parse_datetime(row["updated_at"]),
        expires_at=parse_datetime(row["expires_at"]),
        viewed_at=parse_datetime(row["viewed_at"]),
        action_taken=row["action_taken"],
        action_taken_at=parse_datetime(row["action_taken_at"]),
        dismissed_at=parse_datetime(row["dismissed_at"]),
        dismiss_reason=row["dismiss_reason"],
    )
