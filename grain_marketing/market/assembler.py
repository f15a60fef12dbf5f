"""
Market context assembly: one frozen ``MarketContext`` per commodity.

Failure policy:
  - No futures quote → ``None``; the caller skips the commodity this run.
  - No basis observation → basis 0.0 (cash price = futures) and
    ``has_basis`` False, so basis-driven instruments are skipped.
  - Seasonal, fundamental or news feed raises → that section is left empty (neutral)
    and a WARNING is logged; the commodity is still evaluated.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from grain_marketing.market.basis import basis_strength
from grain_marketing.market.feeds import (
    FundamentalFeed,
    MarketDataFeed,
    NewsSentimentFeed,
    SeasonalFeed,
)
from grain_marketing.models.market import (
    FundamentalContext,
    MarketContext,
    NewsSentiment,
    SeasonalContext,
    TradePolicyEvent,
)
from grain_marketing.taxonomy.marketing_taxonomy import Commodity
from grain_marketing.utils.logging import unit_context

logger = logging.getLogger(__name__)


class MarketContextAssembler:
    """Combines the four feeds into a ``MarketContext``.

    Args:
        market: Futures, basis and trend source (required).
        seasonal: Seasonal pattern source (required).
        fundamentals: Optional fundamental source.
        news: Optional news / trade-policy source.
    """

    def __init__(
        self,
        market: MarketDataFeed,
        seasonal: SeasonalFeed,
        fundamentals: Optional[FundamentalFeed] = None,
        news: Optional[NewsSentimentFeed] = None,
    ) -> None:
        self.market = market
        self.seasonal = seasonal
        self.fundamentals = fundamentals
        self.news = news

    def assemble(self, commodity: Commodity, as_of: date) -> Optional[MarketContext]:
        quote = self.market.nearest_futures_quote(commodity, as_of)
        if quote is None:
            logger.warning(
                "No futures quote on or before %s; skipping.",
                as_of,
                extra=unit_context(commodity=commodity.value),
            )
            return None

        basis = self.market.average_basis(commodity, as_of)
        has_basis = basis is not None
        if basis is None:
            logger.debug("No basis history for %s; using 0.0.", commodity.value)
            basis = 0.0

        return MarketContext(
            commodity=commodity,
            as_of=as_of,
            futures_price=quote.price,
            contract_month=quote.contract_month,
            contract_year=quote.contract_year,
            basis=basis,
            has_basis=has_basis,
            basis_percentile=self.market.basis_percentile(commodity, basis, as_of),
            basis_strength=basis_strength(basis),
            trend=self.market.trend_analysis(commodity, as_of),
            fundamental=self._fundamental(commodity, as_of),
            seasonal=self._seasonal(commodity, as_of, quote.price),
            news=self._news(commodity, as_of),
            trade_policy_events=self._trade_policy(commodity, as_of),
        )

    def _seasonal(
        self, commodity: Commodity, as_of: date, price: float
    ) -> Optional[SeasonalContext]:
        try:
            return self.seasonal.seasonal_context(commodity, as_of.month, price)
        except Exception as exc:
            logger.warning(
                "Seasonal feed failed (%s); treating as neutral.",
                exc,
                extra=unit_context(commodity=commodity.value),
            )
            return None

    def _fundamental(self, commodity: Commodity, as_of: date) -> Optional[FundamentalContext]:
        if self.fundamentals is None:
            return None
        try:
            return self.fundamentals.fundamental_context(commodity, as_of)
        except Exception as exc:
            logger.warning(
                "Fundamental feed failed (%s); treating as neutral.",
                exc,
                extra=unit_context(commodity=commodity.value),
            )
            return None

    def _news(self, commodity: Commodity, as_of: date) -> Optional[NewsSentiment]:
        if self.news is None:
            return None
        try:
            return self.news.sentiment(commodity, as_of)
        except Exception as exc:
            logger.warning(
                "News feed failed (%s); treating as neutral.",
                exc,
                extra=unit_context(commodity=commodity.value),
            )
            return None

    def _trade_policy(self, commodity: Commodity, as_of: date) -> list[TradePolicyEvent]:
        if self.news is None:
            return []
        try:
            return self.news.trade_policy_events(commodity, as_of)
        except Exception as exc:
            logger.warning(
                "Trade policy feed failed (%s); no events.",
                exc,
                extra=unit_context(commodity=commodity.value),
            )
            return []
