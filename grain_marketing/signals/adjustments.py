"""
Fundamental and seasonal adjustments to thresholds and sale sizes.

Both calculators are pure. A threshold multiplier below 1 makes a signal
easier to trigger; a positive percentage adjustment makes the sale larger.

Fundamental (score in [−100, 100], positive = bullish):

    |score| ≥ 60 → modifier ±2     |score| ≥ 25 → modifier ±1     else 0
    threshold multiplier  = 1 + 0.05 × modifier
    percentage adjustment = −0.025 × modifier
    outlook BULLISH ≥ 25, BEARISH ≤ −25; strongly bearish at modifier −2

Seasonal, first matching rule wins:

    FAVORABLE_SELL,   percentile ≥ 60  → ×0.90, +0.050, urgency
    FAVORABLE_SELL                     → ×0.95, +0.025
    UNFAVORABLE_SELL, percentile ≥ 75  → ×1.00, +0.000  (price already high)
    UNFAVORABLE_SELL                   → ×1.10, −0.025, wait
    score ≥ 25                         → ×1.05, −0.025
    score ≤ −25                        → ×0.95, +0.025
    otherwise                          → ×1.00, +0.000
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from grain_marketing.models.market import FundamentalContext, SeasonalContext
from grain_marketing.taxonomy.marketing_taxonomy import MarketingImplication, Outlook

STRONG_FUNDAMENTAL_SCORE = 60.0
MODERATE_FUNDAMENTAL_SCORE = 25.0
SEASONAL_SCORE_BAND = 25.0


@dataclass(frozen=True)
class FundamentalAdjustment:
    """Effect of the fundamental score on one evaluation.

    Attributes:
        strength_modifier: −2 … +2.
        threshold_multiplier: Applied to every sale threshold.
        percentage_adjustment: Added to the desired sale fraction.
        outlook: BULLISH / BEARISH / NEUTRAL.
        strongly_bearish: ``strength_modifier == −2``.
    """

    strength_modifier: int = 0
    threshold_multiplier: float = 1.0
    percentage_adjustment: float = 0.0
    outlook: Outlook = Outlook.NEUTRAL
    strongly_bearish: bool = False


@dataclass(frozen=True)
class SeasonalAdjustment:
    threshold_multiplier: float = 1.0
    percentage_adjustment: float = 0.0
    urgency: bool = False
    wait: bool = False
    rationale: str = "Neutral seasonal period"


NEUTRAL_FUNDAMENTAL = FundamentalAdjustment()
NEUTRAL_SEASONAL = SeasonalAdjustment()


def fundamental_adjustment(score: float) -> FundamentalAdjustment:
    if score >= STRONG_FUNDAMENTAL_SCORE:
        modifier = 2
    elif score >= MODERATE_FUNDAMENTAL_SCORE:
        modifier = 1
    elif score <= -STRONG_FUNDAMENTAL_SCORE:
        modifier = -2
    elif score <= -MODERATE_FUNDAMENTAL_SCORE:
        modifier = -1
    else:
        modifier = 0

    if score >= MODERATE_FUNDAMENTAL_SCORE:
        outlook = Outlook.BULLISH
    elif score <= -MODERATE_FUNDAMENTAL_SCORE:
        outlook = Outlook.BEARISH
    else:
        outlook = Outlook.NEUTRAL

    return FundamentalAdjustment(
        strength_modifier=modifier,
        threshold_multiplier=1.0 + 0.05 * modifier,
        percentage_adjustment=-0.025 * modifier,
        outlook=outlook,
        strongly_bearish=modifier == -2,
    )


def fundamental_adjustment_for(context: Optional[FundamentalContext]) -> FundamentalAdjustment:
    return fundamental_adjustment(context.score) if context is not None else NEUTRAL_FUNDAMENTAL


def seasonal_adjustment(seasonal: Optional[SeasonalContext]) -> SeasonalAdjustment:
    if seasonal is None:
        return NEUTRAL_SEASONAL

    implication = seasonal.marketing_implication
    percentile = seasonal.historical_price_percentile

    if implication == MarketingImplication.FAVORABLE_SELL:
        if percentile >= 60:
            return SeasonalAdjustment(
                threshold_multiplier=0.90,
                percentage_adjustment=0.05,
                urgency=True,
                rationale=(
                    f"Favorable seasonal window with prices at the "
                    f"{percentile:.0f}th historical percentile"
                ),
            )
        return SeasonalAdjustment(
            threshold_multiplier=0.95,
            percentage_adjustment=0.025,
            rationale="Historically favorable selling window",
        )

    if implication == MarketingImplication.UNFAVORABLE_SELL:
        if percentile >= 75:
            return SeasonalAdjustment(
                rationale=(
                    f"Unfavorable seasonal window, but prices are at the "
                    f"{percentile:.0f}th historical percentile"
                ),
            )
        return SeasonalAdjustment(
            threshold_multiplier=1.10,
            percentage_adjustment=-0.025,
            wait=True,
            rationale="Historically weak selling window; seasonal rally often follows",
        )

    if seasonal.seasonal_score >= SEASONAL_SCORE_BAND:
        return SeasonalAdjustment(
            threshold_multiplier=1.05,
            percentage_adjustment=-0.025,
            rationale="Seasonal pattern points to higher prices ahead",
        )
    if seasonal.seasonal_score <= -SEASONAL_SCORE_BAND:
        return SeasonalAdjustment(
            threshold_multiplier=0.95,
            percentage_adjustment=0.025,
            rationale="Seasonal pattern points to lower prices ahead",
        )
    return NEUTRAL_SEASONAL
