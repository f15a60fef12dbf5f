"""
Historical seasonal price patterns for CBOT grains.

Each commodity has one ``MonthlyPattern`` per calendar month (multi-year
CBOT averages) and a table of historical settlement percentiles
(p10, p25, p50, p75, p90) per month.

Seasonal score (−100 … +100, positive = prices typically rise):

    score  = (rally_probability − 50) × 1.5
           + (next_month.avg_pct − this_month.avg_pct) × 10
           − 15 if this month is a favorable selling window
           + 15 if this month is an unfavorable selling window
    clamp to [−100, 100]

Outlook is BULLISH at score ≥ 20, BEARISH at score ≤ −20.

Price percentile is a piecewise-linear interpolation through the table:
≤ p10 → 10, then 10→25→50→75→90 between the table points, and above p90
90 + min(10, (price − p90) / p90 × 50).

``HistoricalSeasonalFeed`` serves these tables through the seasonal feed
interface.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from grain_marketing.models.market import SeasonalContext
from grain_marketing.taxonomy.marketing_taxonomy import (
    Commodity,
    MarketingImplication,
    Outlook,
)

_F = MarketingImplication.FAVORABLE_SELL
_U = MarketingImplication.UNFAVORABLE_SELL
_N = MarketingImplication.NEUTRAL

MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June", "July",
    "August", "September", "October", "November", "December",
)

SEASONAL_OUTLOOK_THRESHOLD = 20.0


@dataclass(frozen=True)
class MonthlyPattern:
    month: int                    # 1-12
    avg_pct_from_yearly_mean: float
    rally_probability: float
    implication: MarketingImplication
    volatility: str
    key_factors: tuple[str, ...]

    @property
    def decline_probability(self) -> float:
        return 100.0 - self.rally_probability

    @property
    def month_name(self) -> str:
        return MONTH_NAMES[self.month - 1]


def _patterns(rows: list[tuple]) -> tuple[MonthlyPattern, ...]:
    return tuple(
        MonthlyPattern(i + 1, avg, rally, implication, vol, tuple(factors))
        for i, (avg, rally, implication, vol, factors) in enumerate(rows)
    )


SEASONAL_PATTERNS: dict[Commodity, tuple[MonthlyPattern, ...]] = {
    Commodity.CORN: _patterns([
        (-2, 55, _N, "moderate", ["South American crop development", "Export demand assessment", "USDA annual reports"]),
        (-1, 52, _N, "moderate", ["USDA Outlook Forum", "Planting intentions speculation", "South American harvest begins"]),
        (1, 58, _N, "high", ["Prospective Plantings report", "Early planting weather concerns", "Fund positioning"]),
        (3, 60, _F, "high", ["Planting progress concerns", "Weather market begins", "Acreage shifts"]),
        (5, 62, _F, "high", ["Planting delays/progress", "Weather premium building", "Prevent plant concerns"]),
        (6, 55, _F, "high", ["Acreage report", "Crop condition ratings begin", "Pre-pollination weather"]),
        (4, 48, _F, "high", ["Pollination - critical period", "Weather market peak", "Yield estimates begin"]),
        (0, 42, _N, "high", ["Pro Farmer crop tour", "Yield estimates solidify", "Harvest prep begins"]),
        (-4, 38, _U, "moderate", ["Harvest pressure begins", "Supply becoming known", "Basis weakens"]),
        (-6, 35, _U, "moderate", ["Peak harvest pressure", "Basis at seasonal lows", "Storage decisions"]),
        (-5, 45, _U, "moderate", ["Harvest wrapping up", "Final yield reports", "South American planting"]),
        (-3, 50, _N, "low", ["Tax selling considerations", "Year-end positioning", "South American weather"]),
    ]),
    Commodity.SOYBEANS: _patterns([
        (-1, 52, _N, "moderate", ["South American crop critical stage", "Chinese demand signals", "USDA annual reports"]),
        (0, 55, _N, "high", ["Brazil harvest begins", "Argentine weather", "USDA Outlook Forum"]),
        (1, 50, _N, "high", ["Brazil harvest pressure", "Prospective Plantings", "Acreage battle with corn"]),
        (2, 55, _N, "moderate", ["U.S. planting begins", "Brazil logistics issues", "Chinese buying patterns"]),
        (4, 58, _F, "moderate", ["Planting progress", "Weather market developing", "Acreage shifts"]),
        (5, 55, _F, "high", ["Acreage report", "Crop emergence", "Weather premium building"]),
        (6, 52, _F, "high", ["Pod-setting begins", "Peak weather sensitivity", "August weather outlook"]),
        (3, 45, _N, "high", ["Pod fill critical", "Pro Farmer tour", "Yield becoming visible"]),
        (-2, 40, _U, "moderate", ["Early harvest begins", "Yield estimates firm", "Harvest pressure building"]),
        (-5, 38, _U, "moderate", ["Peak harvest pressure", "South American planting", "Basis weakest"]),
        (-4, 48, _U, "moderate", ["Harvest ending", "South American weather focus", "China trade developments"]),
        (-2, 50, _N, "low", ["South American crop development", "Year-end positioning", "Export pace"]),
    ]),
    Commodity.WHEAT: _patterns([
        (0, 50, _N, "low", ["Winter wheat dormancy", "Global supply assessment", "USDA annual reports"]),
        (1, 52, _N, "moderate", ["Winter kill concerns", "USDA Outlook Forum", "Global export competition"]),
        (3, 58, _F, "moderate", ["Winter wheat emerges from dormancy", "Condition ratings begin", "Spring wheat planting outlook"]),
        (4, 55, _F, "high", ["Spring wheat planting", "Winter wheat jointing", "Global weather concerns"]),
        (5, 52, _F, "high", ["Winter wheat heading", "Spring wheat emergence", "Disease pressure"]),
        (2, 45, _N, "high", ["Winter wheat harvest begins", "Spring wheat development", "Harvest pressure starting"]),
        (-3, 40, _U, "moderate", ["Winter wheat harvest peak", "Global harvest pressure", "Spring wheat filling"]),
        (-4, 42, _U, "moderate", ["Spring wheat harvest", "Global supply known", "Basis pressure"]),
        (-3, 48, _U, "low", ["Harvest complete", "Winter wheat planting begins", "Export competition"]),
        (-2, 50, _N, "low", ["Winter wheat emergence", "Global demand assessment", "Southern hemisphere planting"]),
        (-1, 52, _N, "low", ["Winter wheat establishment", "Argentine/Australian crop progress", "Export pace"]),
        (0, 50, _N, "low", ["Winter wheat dormancy begins", "Southern hemisphere harvest", "Year-end positioning"]),
    ]),
}

# (p10, p25, p50, p75, p90) settlement prices in $/bu, January first.
HISTORICAL_PRICE_PERCENTILES: dict[Commodity, tuple[tuple[float, ...], ...]] = {
    Commodity.CORN: (
        (3.40, 3.70, 4.10, 4.60, 5.20),
        (3.45, 3.75, 4.15, 4.65, 5.25),
        (3.50, 3.80, 4.25, 4.80, 5.40),
        (3.55, 3.90, 4.35, 4.90, 5.55),
        (3.60, 4.00, 4.45, 5.00, 5.70),
        (3.65, 4.05, 4.50, 5.10, 5.80),
        (3.55, 3.95, 4.40, 5.00, 5.70),
        (3.40, 3.75, 4.20, 4.75, 5.40),
        (3.25, 3.55, 3.95, 4.50, 5.10),
        (3.15, 3.45, 3.85, 4.40, 5.00),
        (3.20, 3.50, 3.90, 4.45, 5.05),
        (3.30, 3.60, 4.00, 4.50, 5.10),
    ),
    Commodity.SOYBEANS: (
        (9.00, 9.80, 10.80, 12.00, 13.50),
        (9.10, 9.90, 10.90, 12.10, 13.60),
        (9.20, 10.00, 11.00, 12.20, 13.70),
        (9.30, 10.10, 11.10, 12.30, 13.80),
        (9.50, 10.30, 11.30, 12.50, 14.00),
        (9.60, 10.40, 11.50, 12.70, 14.20),
        (9.70, 10.50, 11.60, 12.80, 14.30),
        (9.40, 10.20, 11.30, 12.50, 14.00),
        (9.00, 9.80, 10.80, 12.00, 13.50),
        (8.80, 9.60, 10.60, 11.80, 13.30),
        (8.90, 9.70, 10.70, 11.90, 13.40),
        (9.00, 9.80, 10.80, 12.00, 13.50),
    ),
    Commodity.WHEAT: (
        (4.50, 5.00, 5.60, 6.40, 7.50),
        (4.55, 5.05, 5.70, 6.50, 7.60),
        (4.65, 5.20, 5.85, 6.70, 7.80),
        (4.70, 5.25, 5.95, 6.80, 7.90),
        (4.75, 5.30, 6.00, 6.90, 8.00),
        (4.60, 5.15, 5.80, 6.65, 7.75),
        (4.40, 4.90, 5.50, 6.30, 7.40),
        (4.35, 4.85, 5.45, 6.25, 7.35),
        (4.40, 4.90, 5.50, 6.30, 7.40),
        (4.45, 4.95, 5.55, 6.35, 7.45),
        (4.50, 5.00, 5.60, 6.40, 7.50),
        (4.50, 5.00, 5.60, 6.40, 7.50),
    ),
}

_PERCENTILE_POINTS = (10.0, 25.0, 50.0, 75.0, 90.0)


def monthly_pattern(commodity: Commodity, month: int) -> MonthlyPattern:
    return SEASONAL_PATTERNS[commodity][month - 1]


def seasonal_score(current: MonthlyPattern, following: MonthlyPattern) -> float:
    score = (current.rally_probability - 50.0) * 1.5
    score += (following.avg_pct_from_yearly_mean - current.avg_pct_from_yearly_mean) * 10.0
    if current.implication == MarketingImplication.FAVORABLE_SELL:
        score -= 15.0
    elif current.implication == MarketingImplication.UNFAVORABLE_SELL:
        score += 15.0
    return max(-100.0, min(100.0, score))


def price_percentile(commodity: Commodity, month: int, price: float) -> float:
    """Where ``price`` sits in the historical distribution for ``month``."""
    points = HISTORICAL_PRICE_PERCENTILES[commodity][month - 1]
    if price <= points[0]:
        return _PERCENTILE_POINTS[0]
    for (lo, hi), (p_lo, p_hi) in zip(
        zip(points, points[1:]), zip(_PERCENTILE_POINTS, _PERCENTILE_POINTS[1:])
    ):
        if price <= hi:
            return p_lo + (price - lo) / (hi - lo) * (p_hi - p_lo)
    p90 = points[-1]
    return 90.0 + min(10.0, (price - p90) / p90 * 50.0)


def historical_median_price(commodity: Commodity, month: int) -> float:
    return HISTORICAL_PRICE_PERCENTILES[commodity][month - 1][2]


def _recommended_action(
    current: MonthlyPattern,
    following: MonthlyPattern,
    outlook: Outlook,
    percentile: float,
) -> str:
    high_price = percentile >= 70

    if current.implication == MarketingImplication.FAVORABLE_SELL:
        if high_price:
            return (
                f"Seasonally favorable selling window and prices in the "
                f"{percentile:.0f}th percentile. Strong consideration for sales."
            )
        return (
            f"Seasonal patterns favor selling in {current.month_name}. "
            f"{current.rally_probability:.0f}% probability of higher prices, but this "
            f"is often a good selling window."
        )

    if current.implication == MarketingImplication.UNFAVORABLE_SELL:
        if high_price:
            return (
                f"Despite harvest pressure, prices are elevated ({percentile:.0f}th "
                f"percentile). Consider partial sales if profitable."
            )
        return (
            f"Seasonal patterns suggest waiting if possible. {current.month_name} "
            f"typically sees harvest pressure; better opportunities may arise in "
            f"{following.month_name}."
        )

    if outlook == Outlook.BULLISH:
        return (
            f"Seasonal patterns are bullish with {current.rally_probability:.0f}% "
            f"probability of a rally. Consider holding, protected by floor prices."
        )
    if outlook == Outlook.BEARISH:
        return (
            f"Seasonal patterns are bearish with {current.decline_probability:.0f}% "
            f"probability of lower prices. Consider incremental sales."
        )
    return "Neutral seasonal period. Focus on break-even levels and fundamentals."


def compute_seasonal_context(
    commodity: Commodity,
    month: int,
    price: Optional[float] = None,
) -> SeasonalContext:
    """Build the ``SeasonalContext`` for ``commodity`` in calendar ``month``.

    Args:
        commodity: Commodity to look up.
        month: Calendar month, 1-12.
        price: Current futures price; percentile defaults to 50 without it.
    """
    current = monthly_pattern(commodity, month)
    following = monthly_pattern(commodity, month % 12 + 1)

    score = seasonal_score(current, following)
    if score >= SEASONAL_OUTLOOK_THRESHOLD:
        outlook = Outlook.BULLISH
    elif score <= -SEASONAL_OUTLOOK_THRESHOLD:
        outlook = Outlook.BEARISH
    else:
        outlook = Outlook.NEUTRAL

    percentile = price_percentile(commodity, month, price) if price else 50.0
    sign = "+" if current.avg_pct_from_yearly_mean >= 0 else ""

    return SeasonalContext(
        commodity=commodity,
        month=month,
        seasonal_score=score,
        outlook=outlook,
        historical_price_percentile=percentile,
        rally_probability=current.rally_probability,
        decline_probability=current.decline_probability,
        marketing_implication=current.implication,
        recommended_action=_recommended_action(current, following, outlook, percentile),
        key_factors=[
            *current.key_factors[:2],
            f"{current.rally_probability:.0f}% historical probability of rally in next 30-60 days",
            f"Prices typically {sign}{current.avg_pct_from_yearly_mean:.0f}% vs yearly average "
            f"in {current.month_name}",
        ],
    )


class HistoricalSeasonalFeed:
    """Seasonal feed backed by the built-in historical tables."""

    def seasonal_context(
        self,
        commodity: Commodity,
        month: int,
        price: Optional[float] = None,
    ) -> SeasonalContext:
        return compute_seasonal_context(commodity, month, price)
