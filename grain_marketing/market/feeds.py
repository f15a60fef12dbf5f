"""
Read interfaces the decision engine consumes.

Each feed is a structural ``Protocol``: the SQLite-backed implementations
in ``sqlite_feeds`` and the built-in seasonal tables satisfy them, and
tests can pass any object with the same methods. Feeds may raise; the
assembler treats a raising fundamental or news feed as "no data".
"""

from __future__ import annotations

from datetime import date
from typing import Optional, Protocol

from grain_marketing.models.market import (
    FundamentalContext,
    FuturesQuote,
    NewsSentiment,
    SeasonalContext,
    TradePolicyEvent,
    TrendAnalysis,
)
from grain_marketing.taxonomy.marketing_taxonomy import Commodity


class MarketDataFeed(Protocol):
    def nearest_futures_quote(self, commodity: Commodity, as_of: date) -> Optional[FuturesQuote]:
        ...

    def average_basis(self, commodity: Commodity, as_of: date) -> Optional[float]:
        ...

    def trend_analysis(self, commodity: Commodity, as_of: date) -> TrendAnalysis:
        ...

    def basis_percentile(self, commodity: Commodity, basis: float, as_of: date) -> float:
        ...

    def settlement_price(self, commodity: Commodity, day: date) -> Optional[float]:
        """Front-contract settlement on exactly ``day``, or ``None``."""
        ...


class FundamentalFeed(Protocol):
    def fundamental_context(
        self, commodity: Commodity, as_of: date
    ) -> Optional[FundamentalContext]:
        ...


class SeasonalFeed(Protocol):
    def seasonal_context(
        self, commodity: Commodity, month: int, price: Optional[float] = None
    ) -> SeasonalContext:
        ...


class NewsSentimentFeed(Protocol):
    def sentiment(self, commodity: Commodity, as_of: date) -> Optional[NewsSentiment]:
        ...

    def trade_policy_events(self, commodity: Commodity, as_of: date) -> list[TradePolicyEvent]:
        ...
