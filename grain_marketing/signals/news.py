"""
News-driven evaluators: trade policy and breaking news.

Trade policy (bearish events only, price ≥ break-even for new crop)::

    IMMEDIATE and impact ≤ −3 %  → STRONG_BUY, 10 %, expires in 1 day
    SOON      and impact ≤ −2 %  → BUY,        5 %,  expires in 3 days

When several events qualify the strongest rung wins, then the largest
negative impact.

Breaking news::

    sentiment BEARISH and trend DOWN and pct ≥ cash BUY threshold → BUY, 10 %

Old-crop inventory has no break-even, so the price gates are skipped.
"""

from __future__ import annotations

from typing import Optional

from grain_marketing.models.market import TradePolicyEvent
from grain_marketing.models.signal import SignalDraft, TradePolicyContext
from grain_marketing.signals.evaluation import EvaluationInput
from grain_marketing.signals.thresholds import DEFAULT_THRESHOLDS
from grain_marketing.taxonomy.marketing_taxonomy import (
    NewsUrgency,
    Outlook,
    SignalStrength,
    SignalType,
    TrendDirection,
)

IMMEDIATE_IMPACT_PCT = -3.0
SOON_IMPACT_PCT = -2.0
TRADE_STRONG_FRACTION = 0.10
TRADE_BUY_FRACTION = 0.05
BREAKING_NEWS_FRACTION = 0.10


def classify_trade_event(event: TradePolicyEvent, impact_pct: float) -> SignalStrength:
    if event.urgency == NewsUrgency.IMMEDIATE and impact_pct <= IMMEDIATE_IMPACT_PCT:
        return SignalStrength.STRONG_BUY
    if event.urgency == NewsUrgency.SOON and impact_pct <= SOON_IMPACT_PCT:
        return SignalStrength.BUY
    return SignalStrength.HOLD


def _price_gate(inp: EvaluationInput) -> bool:
    if not inp.is_new_crop:
        return True
    return inp.break_even > 0 and inp.cash_price >= inp.break_even


def evaluate_trade_policy(inp: EvaluationInput) -> Optional[SignalDraft]:
    if not inp.market.trade_policy_events or not _price_gate(inp):
        return None

    best: Optional[tuple[SignalStrength, float, TradePolicyEvent]] = None
    for event in inp.market.trade_policy_events:
        impact = event.impact_for(inp.commodity)
        strength = classify_trade_event(event, impact)
        if strength == SignalStrength.HOLD:
            continue
        if best is None:
            best = (strength, impact, event)
            continue
        stronger = strength == SignalStrength.STRONG_BUY and best[0] != SignalStrength.STRONG_BUY
        same_rung_worse = strength == best[0] and impact < best[1]
        if stronger or same_rung_worse:
            best = (strength, impact, event)

    if best is None:
        return None

    strength, impact, event = best
    strong = strength == SignalStrength.STRONG_BUY
    bushels = inp.size(TRADE_STRONG_FRACTION if strong else TRADE_BUY_FRACTION)
    return inp.draft(
        SignalType.TRADE_POLICY,
        strength,
        title=(
            f"Urgent {inp.label} Trade Policy Alert" if strong
            else f"{inp.label} Trade Policy Signal"
        ),
        summary=f"Consider pricing {bushels:,.0f} bu ahead of an expected {impact:.1f}% move.",
        rationale=f"{event.headline} (urgency {event.urgency.value}).",
        context=TradePolicyContext(
            headline=event.headline,
            urgency=event.urgency,
            price_impact_pct=impact,
            sentiment=Outlook.BEARISH,
        ),
        recommended_bushels=bushels,
        expiry_days=inp.config.immediate_news_expiry_days if strong else None,
    )


def evaluate_breaking_news(inp: EvaluationInput) -> Optional[SignalDraft]:
    news = inp.market.news
    if news is None or news.label != Outlook.BEARISH:
        return None
    if inp.market.trend.direction != TrendDirection.DOWN:
        return None
    if inp.is_new_crop:
        if inp.break_even <= 0:
            return None
        buy = inp.thresholds(SignalType.CASH_SALE, DEFAULT_THRESHOLDS[SignalType.CASH_SALE]).buy
        if inp.percent_above_break_even() < buy:
            return None

    bushels = inp.size(BREAKING_NEWS_FRACTION)
    return inp.draft(
        SignalType.BREAKING_NEWS,
        SignalStrength.BUY,
        title=f"{inp.label} Breaking News Alert",
        summary=f"Bearish news in a falling market; consider selling {bushels:,.0f} bu.",
        rationale=news.headline or "Recent news sentiment has turned bearish.",
        context=TradePolicyContext(
            headline=news.headline,
            urgency=news.urgency,
            price_impact_pct=0.0,
            sentiment=news.label,
        ),
        recommended_bushels=bushels,
    )
