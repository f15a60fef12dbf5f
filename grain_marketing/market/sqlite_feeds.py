"""
Feed implementations over the market data stored in SQLite.

  - ``SqliteMarketDataFeed``  : futures quotes, basis history, indicators.
  - ``SqliteFundamentalFeed`` : latest fundamental snapshot, scored.
  - ``SqliteNewsFeed``        : recent headlines and trade-policy events.

News sentiment over the lookback window is the majority label among
bullish/bearish headlines (ties are NEUTRAL); urgency is the most urgent
headline's, and the headline reported is the most recent one.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Optional

from grain_marketing.db.repositories.market_repo import MarketRepository
from grain_marketing.market.basis import BASIS_LOOKBACK_DAYS, basis_percentile
from grain_marketing.market.fundamentals import build_fundamental_context
from grain_marketing.market.indicators import analyze_trend
from grain_marketing.models.market import (
    FundamentalContext,
    FuturesQuote,
    NewsSentiment,
    TradePolicyEvent,
    TrendAnalysis,
)
from grain_marketing.taxonomy.marketing_taxonomy import Commodity, NewsUrgency, Outlook

logger = logging.getLogger(__name__)

TREND_LOOKBACK_SESSIONS = 60
NEWS_LOOKBACK_DAYS = 3
TRADE_POLICY_LOOKBACK_DAYS = 7

_URGENCY_RANK = {NewsUrgency.IMMEDIATE: 0, NewsUrgency.SOON: 1, NewsUrgency.MONITOR: 2}


class SqliteMarketDataFeed:
    def __init__(self, repo: MarketRepository) -> None:
        self.repo = repo

    def nearest_futures_quote(self, commodity: Commodity, as_of: date) -> Optional[FuturesQuote]:
        quote_date = self.repo.latest_quote_date(commodity, as_of)
        if quote_date is None:
            return None
        return self.repo.nearest_quote(commodity, quote_date)

    def average_basis(self, commodity: Commodity, as_of: date) -> Optional[float]:
        return self.repo.latest_average_basis(commodity, as_of)

    def trend_analysis(self, commodity: Commodity, as_of: date) -> TrendAnalysis:
        closes = self.repo.front_month_closes(commodity, as_of, TREND_LOOKBACK_SESSIONS)
        return analyze_trend(closes)

    def basis_percentile(self, commodity: Commodity, basis: float, as_of: date) -> float:
        history = self.repo.basis_between(
            commodity, as_of - timedelta(days=BASIS_LOOKBACK_DAYS), as_of
        )
        return basis_percentile(basis, history)

    def settlement_price(self, commodity: Commodity, day: date) -> Optional[float]:
        quote = self.repo.nearest_quote(commodity, day)
        return quote.price if quote is not None else None


class SqliteFundamentalFeed:
    def __init__(self, repo: MarketRepository) -> None:
        self.repo = repo

    def fundamental_context(
        self, commodity: Commodity, as_of: date
    ) -> Optional[FundamentalContext]:
        inputs = self.repo.latest_fundamentals(commodity, as_of)
        return build_fundamental_context(inputs) if inputs is not None else None


class SqliteNewsFeed:
    def __init__(self, repo: MarketRepository) -> None:
        self.repo = repo

    def sentiment(self, commodity: Commodity, as_of: date) -> Optional[NewsSentiment]:
        rows = self.repo.recent_sentiments(
            commodity, as_of - timedelta(days=NEWS_LOOKBACK_DAYS), as_of
        )
        if not rows:
            return None

        labels = [Outlook(r["sentiment"]) for r in rows]
        bullish = labels.count(Outlook.BULLISH)
        bearish = labels.count(Outlook.BEARISH)
        if bullish > bearish:
            label = Outlook.BULLISH
        elif bearish > bullish:
            label = Outlook.BEARISH
        else:
            label = Outlook.NEUTRAL

        urgency = min((NewsUrgency(r["urgency"]) for r in rows), key=_URGENCY_RANK.__getitem__)
        return NewsSentiment(
            commodity=commodity,
            label=label,
            urgency=urgency,
            headline=rows[0]["headline"],
        )

    def trade_policy_events(self, commodity: Commodity, as_of: date) -> list[TradePolicyEvent]:
        events = self.repo.recent_trade_policy(
            as_of - timedelta(days=TRADE_POLICY_LOOKBACK_DAYS), as_of
        )
        return [e for e in events if commodity in e.price_impact_pct]
