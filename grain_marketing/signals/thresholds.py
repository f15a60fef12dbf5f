"""
Signal thresholds: defaults, risk scaling, personalization and learning.

Effective thresholds for one evaluation are built in a fixed order:

    1. risk-scale the default        default × RISK_MULTIPLIERS[tolerance]
    2. blend with personalized       d + (p − d) × confidence / 100
    3. × fundamental multiplier
    4. × seasonal multiplier
    5. cap at 100 for percentile thresholds

CONSERVATIVE (×1.5) makes every signal harder to trigger, AGGRESSIVE (×0.7)
easier. A personalized threshold backed by fewer than the configured
minimum data points carries zero confidence, i.e. the default is used.

Learning from history (``learn_threshold``), from at least 3 sales::

    buy        = max(0.05, avg_premium − 0.02)
    strong_buy = avg_premium + 0.05
    confidence = min(100, n / 10 × 100)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from grain_marketing.models.preferences import PersonalizedThreshold
from grain_marketing.signals.adjustments import FundamentalAdjustment, SeasonalAdjustment
from grain_marketing.taxonomy.marketing_taxonomy import RiskTolerance, SignalType

RISK_MULTIPLIERS: dict[RiskTolerance, float] = {
    RiskTolerance.CONSERVATIVE: 1.5,
    RiskTolerance.MODERATE: 1.0,
    RiskTolerance.AGGRESSIVE: 0.7,
}

MIN_LEARNING_SALES = 3
MIN_LEARNED_BUY = 0.05
PERCENTILE_CAP = 100.0


@dataclass(frozen=True)
class DefaultThreshold:
    strong_buy: float
    buy: float
    is_percentile: bool = False


DEFAULT_THRESHOLDS: dict[SignalType, DefaultThreshold] = {
    SignalType.CASH_SALE: DefaultThreshold(strong_buy=0.15, buy=0.10),
    SignalType.BASIS_CONTRACT: DefaultThreshold(strong_buy=75.0, buy=50.0, is_percentile=True),
    SignalType.HTA: DefaultThreshold(strong_buy=0.15, buy=0.10),
}


@dataclass(frozen=True)
class SignalThresholds:
    """Effective thresholds for one instrument/commodity evaluation."""

    strong_buy: float
    buy: float
    personalized_confidence: float = 0.0


@dataclass(frozen=True)
class LearnedThreshold:
    buy: float
    strong_buy: float
    confidence: float
    data_points: int
    average_premium: float


def blend_threshold(default: float, personalized: float, confidence: float) -> float:
    confidence = max(0.0, min(100.0, confidence))
    if confidence == 0.0:
        return default
    if confidence == 100.0:
        return personalized
    return default + (personalized - default) * confidence / 100.0


def effective_confidence(
    personalized: Optional[PersonalizedThreshold],
    min_data_points: int,
) -> float:
    if personalized is None or personalized.data_points < min_data_points:
        return 0.0
    return personalized.confidence


def build_thresholds(
    default: DefaultThreshold,
    risk_tolerance: RiskTolerance,
    personalized: Optional[PersonalizedThreshold] = None,
    fundamental: FundamentalAdjustment = FundamentalAdjustment(),
    seasonal: SeasonalAdjustment = SeasonalAdjustment(),
    min_data_points: int = 5,
) -> SignalThresholds:
    """Apply risk, personalization, fundamental and seasonal adjustments."""
    risk = RISK_MULTIPLIERS[risk_tolerance]
    strong = default.strong_buy * risk
    buy = default.buy * risk

    confidence = effective_confidence(personalized, min_data_points)
    if personalized is not None and confidence > 0:
        strong = blend_threshold(strong, personalized.strong_buy_threshold, confidence)
        buy = blend_threshold(buy, personalized.buy_threshold, confidence)

    multiplier = fundamental.threshold_multiplier * seasonal.threshold_multiplier
    strong *= multiplier
    buy *= multiplier

    if default.is_percentile:
        strong = min(PERCENTILE_CAP, strong)
        buy = min(PERCENTILE_CAP, buy)

    return SignalThresholds(strong_buy=strong, buy=buy, personalized_confidence=confidence)


def learn_threshold(sale_premiums: Sequence[float]) -> Optional[LearnedThreshold]:
    """Learn cash-sale thresholds from historical premiums over break-even.

    Returns ``None`` with fewer than ``MIN_LEARNING_SALES`` sales.
    """
    n = len(sale_premiums)
    if n < MIN_LEARNING_SALES:
        return None
    avg = sum(sale_premiums) / n
    return LearnedThreshold(
        buy=max(MIN_LEARNED_BUY, avg - 0.02),
        strong_buy=avg + 0.05,
        confidence=min(100.0, n / 10 * 100),
        data_points=n,
        average_premium=avg,
    )
