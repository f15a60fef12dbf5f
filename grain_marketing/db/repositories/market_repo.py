"""
Repository for stored market data: futures settlements, basis history,
fundamental snapshots and news events.

Futures quotes are upserted on ``(commodity, quote_date, contract_month,
contract_year)`` and basis on ``(commodity, observed_on, location)``, so
re-importing a day's data is idempotent.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import date
from typing import Optional

from grain_marketing.db.repositories.base import BaseRepository
from grain_marketing.market.fundamentals import FundamentalInputs
from grain_marketing.models.market import BasisObservation, FuturesQuote, TradePolicyEvent
from grain_marketing.taxonomy.marketing_taxonomy import Commodity, NewsUrgency, Outlook

logger = logging.getLogger(__name__)

_MONTH_INDEX = {
    m: i for i, m in enumerate(
        ("JAN", "FEB", "MAR", "APR", "MAY", "JUN", "JUL", "AUG", "SEP", "OCT", "NOV", "DEC"),
        start=1,
    )
}


def _expiry_key(quote: FuturesQuote) -> tuple[int, int]:
    return quote.contract_year, _MONTH_INDEX[quote.contract_month]


class MarketRepository(BaseRepository):
    """Read/write access to the market data tables."""

    # ── Futures ──────────────────────────────────────────────────────────────

    def upsert_quote(self, quote: FuturesQuote) -> None:
        self.execute(
            """
            INSERT INTO futures_quotes (commodity, quote_date, contract_month, contract_year, price)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(commodity, quote_date, contract_month, contract_year) DO UPDATE SET
                price = excluded.price;
            """,
            (
                quote.commodity.value,
                quote.quote_date.isoformat(),
                quote.contract_month,
                quote.contract_year,
                quote.price,
            ),
        )

    def quotes_on(self, commodity: Commodity, quote_date: date) -> list[FuturesQuote]:
        rows = self.fetchall(
            "SELECT * FROM futures_quotes WHERE commodity = ? AND quote_date = ?;",
            (commodity.value, quote_date.isoformat()),
        )
        return [_row_to_quote(r) for r in rows]

    def latest_quote_date(self, commodity: Commodity, as_of: date) -> Optional[date]:
        row = self.fetchone(
            """
            SELECT MAX(quote_date) AS quote_date FROM futures_quotes
            WHERE commodity = ? AND quote_date <= ?;
            """,
            (commodity.value, as_of.isoformat()),
        )
        return date.fromisoformat(row["quote_date"]) if row and row["quote_date"] else None

    def nearest_quote(self, commodity: Commodity, quote_date: date) -> Optional[FuturesQuote]:
        """The front contract (earliest expiry) quoted on ``quote_date``."""
        quotes = self.quotes_on(commodity, quote_date)
        return min(quotes, key=_expiry_key) if quotes else None

    def front_month_closes(
        self,
        commodity: Commodity,
        as_of: date,
        limit: int = 60,
    ) -> list[float]:
        """Front-contract settlements up to ``as_of``, oldest first."""
        rows = self.fetchall(
            """
            SELECT quote_date FROM futures_quotes
            WHERE commodity = ? AND quote_date <= ?
            GROUP BY quote_date
            ORDER BY quote_date DESC LIMIT ?;
            """,
            (commodity.value, as_of.isoformat(), limit),
        )
        closes: list[float] = []
        for r in reversed(rows):
            quote = self.nearest_quote(commodity, date.fromisoformat(r["quote_date"]))
            if quote is not None:
                closes.append(quote.price)
        return closes

    # ── Basis ────────────────────────────────────────────────────────────────

    def upsert_basis(self, obs: BasisObservation) -> None:
        self.execute(
            """
            INSERT INTO basis_history (commodity, observed_on, basis, location)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(commodity, observed_on, location) DO UPDATE SET
                basis = excluded.basis;
            """,
            (obs.commodity.value, obs.observed_on.isoformat(), obs.basis, obs.location),
        )

    def latest_average_basis(self, commodity: Commodity, as_of: date) -> Optional[float]:
        """Mean basis across locations on the most recent observation date."""
        row = self.fetchone(
            """
            SELECT AVG(basis) AS avg_basis FROM basis_history
            WHERE commodity = ? AND observed_on = (
                SELECT MAX(observed_on) FROM basis_history
                WHERE commodity = ? AND observed_on <= ?
            );
            """,
            (commodity.value, commodity.value, as_of.isoformat()),
        )
        return row["avg_basis"] if row and row["avg_basis"] is not None else None

    def basis_between(self, commodity: Commodity, start: date, end: date) -> list[float]:
        rows = self.fetchall(
            """
            SELECT basis FROM basis_history
            WHERE commodity = ? AND observed_on >= ? AND observed_on <= ?
            ORDER BY observed_on;
            """,
            (commodity.value, start.isoformat(), end.isoformat()),
        )
        return [r["basis"] for r in rows]

    # ── Fundamentals ─────────────────────────────────────────────────────────

    def save_fundamentals(self, inputs: FundamentalInputs, as_of: date) -> None:
        self.execute(
            """
            INSERT INTO fundamental_snapshots (commodity, as_of, payload)
            VALUES (?, ?, ?)
            ON CONFLICT(commodity, as_of) DO UPDATE SET payload = excluded.payload;
            """,
            (inputs.commodity.value, as_of.isoformat(), inputs.model_dump_json()),
        )

    def latest_fundamentals(
        self,
        commodity: Commodity,
        as_of: date,
    ) -> Optional[FundamentalInputs]:
        row = self.fetchone(
            """
            SELECT payload FROM fundamental_snapshots
            WHERE commodity = ? AND as_of <= ?
            ORDER BY as_of DESC LIMIT 1;
            """,
            (commodity.value, as_of.isoformat()),
        )
        return FundamentalInputs.model_validate_json(row["payload"]) if row else None

    # ── News ─────────────────────────────────────────────────────────────────

    def insert_news(
        self,
        headline: str,
        published_on: date,
        commodity: Optional[Commodity] = None,
        sentiment: Outlook = Outlook.NEUTRAL,
        urgency: NewsUrgency = NewsUrgency.MONITOR,
        price_impact_pct: Optional[dict[Commodity, float]] = None,
    ) -> int:
        """Store a news item; items with a price impact map are trade-policy events."""
        self.execute(
            """
            INSERT INTO news_events (
                commodity, headline, sentiment, urgency, is_trade_policy,
                price_impact_pct, published_on
            ) VALUES (?, ?, ?, ?, ?, ?, ?);
            """,
            (
                commodity.value if commodity else None,
                headline,
                sentiment.value,
                urgency.value,
                int(price_impact_pct is not None),
                json.dumps({k.value: v for k, v in price_impact_pct.items()})
                if price_impact_pct is not None
                else None,
                published_on.isoformat(),
            ),
        )
        return self.last_insert_rowid()

    def recent_sentiments(
        self,
        commodity: Commodity,
        since: date,
        until: date,
    ) -> list[sqlite3.Row]:
        """Non-trade-policy headlines for ``commodity`` (or all commodities), newest first."""
        return self.fetchall(
            """
            SELECT * FROM news_events
            WHERE is_trade_policy = 0
              AND (commodity = ? OR commodity IS NULL)
              AND published_on >= ? AND published_on <= ?
            ORDER BY published_on DESC, event_id DESC;
            """,
            (commodity.value, since.isoformat(), until.isoformat()),
        )

    def recent_trade_policy(self, since: date, until: date) -> list[TradePolicyEvent]:
        rows = self.fetchall(
            """
            SELECT * FROM news_events
            WHERE is_trade_policy = 1 AND published_on >= ? AND published_on <= ?
            ORDER BY published_on DESC, event_id DESC;
            """,
            (since.isoformat(), until.isoformat()),
        )
        return [
            TradePolicyEvent(
                event_id=r["event_id"],
                headline=r["headline"],
                urgency=NewsUrgency(r["urgency"]),
                price_impact_pct={
                    Commodity(k): v for k, v in json.loads(r["price_impact_pct"] or "{}").items()
                },
                published_on=date.fromisoformat(r["published_on"]),
            )
            for r in rows
        ]


def _row_to_quote(row: sqlite3.Row) -> FuturesQuote:
    return FuturesQuote(
        quote_id=row["quote_id"],
        commodity=Commodity(row["commodity"]),
        quote_date=date.fromisoformat(row["quote_date"]),
        contract_month=row["contract_month"],
        contract_year=row["contract_year"],
        price=row["price"],
    )
