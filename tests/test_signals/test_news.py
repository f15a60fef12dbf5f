"""
Tests for grain_marketing/signals/news.py.

What we test
------------
  - classify_trade_event urgency/impact rungs.
  - IMMEDIATE −4 % tariff → STRONG_BUY, 10 %, 1-day expiry.
  - SOON −2.5 % → BUY, 5 %, default 3-day expiry.
  - Strongest qualifying event wins; bullish events ignored.
  - New crop below break-even gets nothing; old crop skips the price gate.
  - Breaking news needs bearish sentiment, a downtrend and the cash BUY premium.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from grain_marketing.models.market import NewsSentiment, TradePolicyEvent
from grain_marketing.signals.crop_year import CropYearInfo
from grain_marketing.signals.news import (
    classify_trade_event,
    evaluate_breaking_news,
    evaluate_trade_policy,
)
from grain_marketing.taxonomy.marketing_taxonomy import (
    Commodity,
    NewsUrgency,
    Outlook,
    SignalStrength,
    SignalType,
    TrendDirection,
)

NOW = datetime(2025, 6, 2, 12, 0, 0, tzinfo=timezone.utc)


def _event(headline: str, urgency: NewsUrgency, impact: float) -> TradePolicyEvent:
    return TradePolicyEvent(
        headline=headline, urgency=urgency, price_impact_pct={Commodity.CORN: impact}
    )


def _bearish_news() -> NewsSentiment:
    return NewsSentiment(
        commodity=Commodity.CORN,
        label=Outlook.BEARISH,
        urgency=NewsUrgency.SOON,
        headline="Record South American crop weighs on corn",
    )


class TestClassifyTradeEvent:
    @pytest.mark.parametrize(
        "urgency, impact, expected",
        [
            (NewsUrgency.IMMEDIATE, -3.0, SignalStrength.STRONG_BUY),
            (NewsUrgency.IMMEDIATE, -2.5, SignalStrength.HOLD),
            (NewsUrgency.SOON, -2.0, SignalStrength.BUY),
            (NewsUrgency.SOON, -1.0, SignalStrength.HOLD),
            (NewsUrgency.MONITOR, -10.0, SignalStrength.HOLD),
            (NewsUrgency.IMMEDIATE, 5.0, SignalStrength.HOLD),
        ],
    )
    def test_rungs(self, urgency, impact, expected):
        event = _event("x", urgency, impact)
        assert classify_trade_event(event, impact) is expected


class TestTradePolicy:
    def test_immediate_tariff(self, make_input):
        inp = make_input(
            market={
                "futures_price": 5.20,
                "trade_policy_events": [_event("New tariffs on US corn", NewsUrgency.IMMEDIATE, -4.0)],
            }
        )
        draft = evaluate_trade_policy(inp)
        assert draft is not None
        assert draft.signal_type is SignalType.TRADE_POLICY
        assert draft.strength is SignalStrength.STRONG_BUY
        assert draft.recommended_bushels == 8_000
        assert draft.expires_at == NOW + timedelta(days=1)
        assert draft.context.price_impact_pct == -4.0

    def test_soon_event(self, make_input):
        inp = make_input(
            market={
                "futures_price": 5.20,
                "trade_policy_events": [_event("Talks stall", NewsUrgency.SOON, -2.5)],
            }
        )
        draft = evaluate_trade_policy(inp)
        assert draft is not None
        assert draft.strength is SignalStrength.BUY
        assert draft.recommended_bushels == 4_000
        assert draft.expires_at == NOW + timedelta(days=3)

    def test_strongest_event_wins(self, make_input):
        events = [
            _event("Talks stall", NewsUrgency.SOON, -2.5),
            _event("Retaliation announced", NewsUrgency.IMMEDIATE, -3.5),
            _event("Tariffs doubled", NewsUrgency.IMMEDIATE, -6.0),
            _event("Deal signed", NewsUrgency.IMMEDIATE, 4.0),
        ]
        draft = evaluate_trade_policy(
            make_input(market={"futures_price": 5.20, "trade_policy_events": events})
        )
        assert draft is not None
        assert draft.context.headline == "Tariffs doubled"

    def test_below_break_even(self, make_input):
        inp = make_input(
            market={
                "futures_price": 4.90,
                "trade_policy_events": [_event("Tariffs", NewsUrgency.IMMEDIATE, -5.0)],
            }
        )
        assert evaluate_trade_policy(inp) is None

    def test_old_crop_skips_price_gate(self, make_input):
        inp = make_input(
            market={
                "futures_price": 4.50,
                "contract_month": "JUL",
                "trade_policy_events": [_event("Tariffs", NewsUrgency.IMMEDIATE, -5.0)],
            },
            crop=CropYearInfo(crop_year=2024, is_new_crop=False),
            break_even=0.0,
            position=None,
            old_crop_bushels=20_000.0,
        )
        draft = evaluate_trade_policy(inp)
        assert draft is not None
        assert draft.recommended_bushels == 2_000

    def test_no_events(self, make_input):
        assert evaluate_trade_policy(make_input(market={"futures_price": 5.50})) is None


class TestBreakingNews:
    def test_bearish_downtrend_above_threshold(self, make_input):
        inp = make_input(
            market={"futures_price": 5.55, "trend": TrendDirection.DOWN, "news": _bearish_news()}
        )
        draft = evaluate_breaking_news(inp)
        assert draft is not None
        assert draft.signal_type is SignalType.BREAKING_NEWS
        assert draft.strength is SignalStrength.BUY
        assert draft.recommended_bushels == 8_000
        assert draft.rationale == "Record South American crop weighs on corn"
        assert draft.expires_at == NOW + timedelta(days=1)

    def test_requires_downtrend(self, make_input):
        inp = make_input(market={"futures_price": 5.55, "news": _bearish_news()})
        assert evaluate_breaking_news(inp) is None

    def test_requires_premium(self, make_input):
        inp = make_input(
            market={"futures_price": 5.30, "trend": TrendDirection.DOWN, "news": _bearish_news()}
        )
        assert evaluate_breaking_news(inp) is None

    def test_requires_bearish_label(self, make_input):
        news = _bearish_news().model_copy(update={"label": Outlook.BULLISH})
        inp = make_input(market={"futures_price": 5.55, "trend": TrendDirection.DOWN, "news": news})
        assert evaluate_breaking_news(inp) is None
