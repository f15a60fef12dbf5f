"""
Tests for grain_marketing/market/assembler.py and market/sqlite_feeds.py.

What we test
------------
MarketContextAssembler:
  - Full context from the SQLite feeds (quote, basis, percentile, seasonal).
  - No quote → None; no basis → 0.0 with has_basis False.
  - A raising seasonal feed leaves the seasonal section empty with a WARNING.
  - A raising fundamental or news feed degrades to neutral with a WARNING.
SqliteMarketDataFeed:
  - Front contract chosen by earliest expiry; latest date on or before as_of.
  - settlement_price only matches the exact day.
SqliteNewsFeed:
  - Majority sentiment label, most urgent urgency, newest headline.
  - Trade policy events filtered to the commodity.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta

import pytest

from grain_marketing.db.repositories.market_repo import MarketRepository
from grain_marketing.market.assembler import MarketContextAssembler
from grain_marketing.market.fundamentals import FundamentalInputs, SupplyDemandSummary
from grain_marketing.market.seasonal import HistoricalSeasonalFeed
from grain_marketing.market.sqlite_feeds import (
    SqliteFundamentalFeed,
    SqliteMarketDataFeed,
    SqliteNewsFeed,
)
from grain_marketing.models.market import BasisObservation, FuturesQuote
from grain_marketing.taxonomy.marketing_taxonomy import (
    BasisStrength,
    Commodity,
    MarketingImplication,
    NewsUrgency,
    Outlook,
)

AS_OF = date(2025, 6, 2)


class _RaisingFeed:
    def fundamental_context(self, commodity, as_of):
        raise ConnectionError("feed down")

    def sentiment(self, commodity, as_of):
        raise ConnectionError("feed down")

    def trade_policy_events(self, commodity, as_of):
        raise ConnectionError("feed down")


class _RaisingSeasonalFeed:
    def seasonal_context(self, commodity, month, price):
        raise ConnectionError("seasonal feed down")


def _quote(price: float, month: str = "DEC", year: int = 2025, day: date = AS_OF) -> FuturesQuote:
    return FuturesQuote(
        commodity=Commodity.CORN, quote_date=day, contract_month=month, contract_year=year, price=price
    )


@pytest.fixture
def repo(in_memory_db) -> MarketRepository:
    return MarketRepository(in_memory_db)


def _assembler(repo: MarketRepository, **kw) -> MarketContextAssembler:
    return MarketContextAssembler(
        market=SqliteMarketDataFeed(repo), seasonal=HistoricalSeasonalFeed(), **kw
    )


class TestSqliteMarketDataFeed:
    def test_front_contract_by_expiry(self, repo):
        repo.upsert_quote(_quote(5.90, "MAR", 2026))
        repo.upsert_quote(_quote(5.75, "DEC", 2025))
        repo.upsert_quote(_quote(5.60, "JUL", 2025))
        quote = SqliteMarketDataFeed(repo).nearest_futures_quote(Commodity.CORN, AS_OF)
        assert quote is not None
        assert quote.label == "JUL25"

    def test_latest_date_on_or_before(self, repo):
        repo.upsert_quote(_quote(5.50, day=AS_OF - timedelta(days=3)))
        repo.upsert_quote(_quote(6.00, day=AS_OF + timedelta(days=1)))
        quote = SqliteMarketDataFeed(repo).nearest_futures_quote(Commodity.CORN, AS_OF)
        assert quote is not None
        assert quote.price == 5.50

    def test_upsert_is_idempotent(self, repo):
        repo.upsert_quote(_quote(5.50))
        repo.upsert_quote(_quote(5.55))
        assert [q.price for q in repo.quotes_on(Commodity.CORN, AS_OF)] == [5.55]

    def test_settlement_price_exact_day(self, repo):
        repo.upsert_quote(_quote(5.50, day=AS_OF - timedelta(days=1)))
        feed = SqliteMarketDataFeed(repo)
        assert feed.settlement_price(Commodity.CORN, AS_OF - timedelta(days=1)) == 5.50
        assert feed.settlement_price(Commodity.CORN, AS_OF) is None

    def test_trend_from_closes(self, repo):
        for i in range(30):
            repo.upsert_quote(_quote(4.00 + 0.05 * i, day=AS_OF - timedelta(days=29 - i)))
        trend = SqliteMarketDataFeed(repo).trend_analysis(Commodity.CORN, AS_OF)
        assert trend.direction.value == "up"
        assert trend.rsi == 100.0


class TestAssembler:
    def test_full_context(self, repo):
        repo.upsert_quote(_quote(5.75))
        for days_back, basis in [(300, -0.50), (200, -0.40), (100, -0.30)]:
            repo.upsert_basis(
                BasisObservation(
                    commodity=Commodity.CORN,
                    observed_on=AS_OF - timedelta(days=days_back),
                    basis=basis,
                )
            )
        repo.upsert_basis(BasisObservation(commodity=Commodity.CORN, observed_on=AS_OF, basis=-0.10, location="A"))
        repo.upsert_basis(BasisObservation(commodity=Commodity.CORN, observed_on=AS_OF, basis=-0.20, location="B"))

        ctx = _assembler(repo).assemble(Commodity.CORN, AS_OF)

        assert ctx is not None
        assert ctx.futures_price == 5.75
        assert ctx.basis == pytest.approx(-0.15)
        assert ctx.cash_price == pytest.approx(5.60)
        assert ctx.has_basis is True
        assert ctx.basis_strength is BasisStrength.AVERAGE
        # −0.50, −0.40, −0.30, −0.20 of five observations are below −0.15
        assert ctx.basis_percentile == pytest.approx(80.0)
        assert ctx.seasonal is not None
        assert ctx.seasonal.marketing_implication is MarketingImplication.FAVORABLE_SELL
        assert ctx.fundamental is None
        assert ctx.trade_policy_events == []

    def test_no_quote_returns_none(self, repo):
        assert _assembler(repo).assemble(Commodity.SOYBEANS, AS_OF) is None

    def test_no_basis_defaults_to_zero(self, repo):
        repo.upsert_quote(_quote(5.00))
        ctx = _assembler(repo).assemble(Commodity.CORN, AS_OF)
        assert ctx is not None
        assert ctx.basis == 0.0
        assert ctx.basis_percentile == 50.0
        assert ctx.has_basis is False
        assert ctx.cash_price == 5.00

    def test_fundamentals_from_snapshot(self, repo):
        repo.upsert_quote(_quote(5.00))
        repo.save_fundamentals(
            FundamentalInputs(
                commodity=Commodity.CORN,
                supply_demand=SupplyDemandSummary(outlook=Outlook.BULLISH),
            ),
            AS_OF - timedelta(days=5),
        )
        ctx = _assembler(repo, fundamentals=SqliteFundamentalFeed(repo)).assemble(
            Commodity.CORN, AS_OF
        )
        assert ctx is not None
        assert ctx.fundamental_score == 35.0

    def test_failing_feeds_degrade_to_neutral(self, repo, caplog):
        repo.upsert_quote(_quote(5.00))
        raising = _RaisingFeed()
        with caplog.at_level(logging.WARNING, logger="grain_marketing.market.assembler"):
            ctx = _assembler(repo, fundamentals=raising, news=raising).assemble(
                Commodity.CORN, AS_OF
            )
        assert ctx is not None
        assert ctx.fundamental is None
        assert ctx.news is None
        assert ctx.trade_policy_events == []
        assert len(caplog.records) == 3
        assert caplog.records[0].commodity == "corn"

    def test_failing_seasonal_feed_degrades_to_neutral(self, repo, caplog):
        repo.upsert_quote(_quote(5.00))
        with caplog.at_level(logging.WARNING, logger="grain_marketing.market.assembler"):
            ctx = MarketContextAssembler(
                market=SqliteMarketDataFeed(repo), seasonal=_RaisingSeasonalFeed()
            ).assemble(Commodity.CORN, AS_OF)

        assert ctx is not None
        assert ctx.seasonal is None
        assert ctx.futures_price == 5.00
        [record] = caplog.records
        assert "Seasonal feed failed" in record.getMessage()
        assert record.commodity == "corn"


class TestSqliteNewsFeed:
    def test_sentiment_majority(self, repo):
        repo.insert_news("Export sales strong", AS_OF - timedelta(days=2), Commodity.CORN,
                         sentiment=Outlook.BULLISH)
        repo.insert_news("Dry forecast for the Corn Belt", AS_OF - timedelta(days=1), None,
                         sentiment=Outlook.BULLISH, urgency=NewsUrgency.SOON)
        repo.insert_news("Ethanol demand soft", AS_OF, Commodity.CORN, sentiment=Outlook.BEARISH)
        repo.insert_news("Old story", AS_OF - timedelta(days=10), Commodity.CORN,
                         sentiment=Outlook.BEARISH, urgency=NewsUrgency.IMMEDIATE)

        sentiment = SqliteNewsFeed(repo).sentiment(Commodity.CORN, AS_OF)

        assert sentiment is not None
        assert sentiment.label is Outlook.BULLISH
        assert sentiment.urgency is NewsUrgency.SOON
        assert sentiment.headline == "Ethanol demand soft"

    def test_tie_is_neutral(self, repo):
        repo.insert_news("Up", AS_OF, Commodity.CORN, sentiment=Outlook.BULLISH)
        repo.insert_news("Down", AS_OF, Commodity.CORN, sentiment=Outlook.BEARISH)
        sentiment = SqliteNewsFeed(repo).sentiment(Commodity.CORN, AS_OF)
        assert sentiment is not None
        assert sentiment.label is Outlook.NEUTRAL

    def test_no_news(self, repo):
        assert SqliteNewsFeed(repo).sentiment(Commodity.CORN, AS_OF) is None

    def test_trade_policy_filtered_by_commodity(self, repo):
        repo.insert_news(
            "Tariffs on soybean imports", AS_OF - timedelta(days=1),
            urgency=NewsUrgency.IMMEDIATE, price_impact_pct={Commodity.SOYBEANS: -6.0},
        )
        repo.insert_news(
            "Trade deal includes corn purchases", AS_OF,
            urgency=NewsUrgency.SOON, price_impact_pct={Commodity.CORN: 4.0, Commodity.SOYBEANS: 2.0},
        )
        feed = SqliteNewsFeed(repo)
        corn_events = feed.trade_policy_events(Commodity.CORN, AS_OF)
        assert [e.headline for e in corn_events] == ["Trade deal includes corn purchases"]
        assert corn_events[0].impact_for(Commodity.CORN) == 4.0
        assert len(feed.trade_policy_events(Commodity.SOYBEANS, AS_OF)) == 2
        # trade-policy items are not counted as sentiment headlines
        assert feed.sentiment(Commodity.CORN, AS_OF) is None
