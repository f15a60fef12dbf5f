"""
Fundamental scoring: supply/demand, crop condition, exports, seasonality,
fund positioning and news rolled into one score in [−100, 100].

Positive scores are bullish (prices expected to rise → sell less now).

    Supply/demand outlook     BULLISH +35 / BEARISH −35
    Ending stocks change      cut > 50 mbu +10 / raised > 50 mbu −10
    Crop condition (G/E %)    < 55 +20 / > 65 −15
    Condition trend (wk/wk)   declining > 2 pts +5 / improving > 2 pts −5
    Export pace vs USDA       > +5 % +15 / < −5 % −15
    Seasonal period           typical high +10 / typical low −10
    Fund positioning          BULLISH +10 / BEARISH −10
    News sentiment            BULLISH +10 / BEARISH −10

Every non-zero contribution (except improving conditions) records a
human-readable factor string.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from grain_marketing.models.market import FundamentalContext
from grain_marketing.taxonomy.marketing_taxonomy import Commodity, Outlook

POOR_CONDITION_PCT = 55.0
GOOD_CONDITION_PCT = 65.0
CONDITION_TREND_POINTS = 2.0
EXPORT_PACE_BAND = 0.05
STOCKS_CHANGE_MBU = 50.0


class SupplyDemandSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    outlook: Outlook = Outlook.NEUTRAL
    stocks_to_use_ratio: float = 0.0
    stocks_change_mbu: float = 0.0


class CropConditionSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    good_excellent_pct: float = Field(ge=0, le=100)
    previous_good_excellent_pct: Optional[float] = Field(default=None, ge=0, le=100)

    @property
    def yield_implication(self) -> str:
        if self.good_excellent_pct < POOR_CONDITION_PCT:
            return "negative"
        if self.good_excellent_pct > GOOD_CONDITION_PCT:
            return "positive"
        return "neutral"

    @property
    def trend(self) -> str:
        if self.previous_good_excellent_pct is None:
            return "stable"
        delta = self.good_excellent_pct - self.previous_good_excellent_pct
        if delta > CONDITION_TREND_POINTS:
            return "improving"
        if delta < -CONDITION_TREND_POINTS:
            return "declining"
        return "stable"


class ExportPaceSummary(BaseModel):
    """``pace_vs_usda`` is the fractional deviation from USDA's projected pace."""

    model_config = ConfigDict(frozen=True)

    pace_vs_usda: float = 0.0

    @property
    def demand_outlook(self) -> str:
        if self.pace_vs_usda > EXPORT_PACE_BAND:
            return "strong"
        if self.pace_vs_usda < -EXPORT_PACE_BAND:
            return "weak"
        return "average"


class FundamentalInputs(BaseModel):
    """Raw fundamental data for one commodity; every section is optional."""

    model_config = ConfigDict(frozen=True)

    commodity: Commodity
    supply_demand: Optional[SupplyDemandSummary] = None
    crop_condition: Optional[CropConditionSummary] = None
    export_pace: Optional[ExportPaceSummary] = None
    is_typical_seasonal_high: bool = False
    is_typical_seasonal_low: bool = False
    fund_sentiment: Outlook = Outlook.NEUTRAL
    news_sentiment: Outlook = Outlook.NEUTRAL


def compute_fundamental_score(inputs: FundamentalInputs) -> tuple[float, list[str]]:
    """Return ``(score, factors)`` with score clamped to [−100, 100]."""
    score = 0.0
    factors: list[str] = []

    sd = inputs.supply_demand
    if sd is not None:
        ratio_pct = sd.stocks_to_use_ratio * 100
        if sd.outlook == Outlook.BULLISH:
            score += 35
            factors.append(f"Tight S/U ratio ({ratio_pct:.1f}%) supports prices")
        elif sd.outlook == Outlook.BEARISH:
            score -= 35
            factors.append(f"Ample S/U ratio ({ratio_pct:.1f}%) weighs on prices")

        if sd.stocks_change_mbu < -STOCKS_CHANGE_MBU:
            score += 10
            factors.append(f"Ending stocks cut {abs(sd.stocks_change_mbu):.0f} million bushels")
        elif sd.stocks_change_mbu > STOCKS_CHANGE_MBU:
            score -= 10
            factors.append(f"Ending stocks raised {sd.stocks_change_mbu:.0f} million bushels")

    cc = inputs.crop_condition
    if cc is not None:
        if cc.yield_implication == "negative":
            score += 20
            factors.append(f"Poor crop conditions ({cc.good_excellent_pct:.0f}% G/E) threaten yield")
        elif cc.yield_implication == "positive":
            score -= 15
            factors.append(f"Excellent crop conditions ({cc.good_excellent_pct:.0f}% G/E) support yield")

        if cc.trend == "declining":
            score += 5
            factors.append("Crop conditions declining week-over-week")
        elif cc.trend == "improving":
            score -= 5

    ex = inputs.export_pace
    if ex is not None:
        if ex.demand_outlook == "strong":
            score += 15
            factors.append(f"Export pace {ex.pace_vs_usda * 100:.0f}% ahead of USDA projection")
        elif ex.demand_outlook == "weak":
            score -= 15
            factors.append(f"Export pace {abs(ex.pace_vs_usda) * 100:.0f}% behind USDA projection")

    if inputs.is_typical_seasonal_high:
        score += 10
        factors.append("Historically favorable seasonal period")
    elif inputs.is_typical_seasonal_low:
        score -= 10
        factors.append("Historically weak seasonal period")

    if inputs.fund_sentiment == Outlook.BULLISH:
        score += 10
        factors.append("Fund positioning suggests upside potential")
    elif inputs.fund_sentiment == Outlook.BEARISH:
        score -= 10
        factors.append("Fund positioning suggests downside risk")

    if inputs.news_sentiment == Outlook.BULLISH:
        score += 10
        factors.append("Recent news sentiment is bullish")
    elif inputs.news_sentiment == Outlook.BEARISH:
        score -= 10
        factors.append("Recent news sentiment is bearish")

    return max(-100.0, min(100.0, score)), factors


def build_fundamental_context(inputs: FundamentalInputs) -> FundamentalContext:
    score, factors = compute_fundamental_score(inputs)
    return FundamentalContext(
        commodity=inputs.commodity,
        supply_demand_outlook=(
            inputs.supply_demand.outlook if inputs.supply_demand else Outlook.NEUTRAL
        ),
        crop_condition=(
            inputs.crop_condition.yield_implication if inputs.crop_condition else "neutral"
        ),
        export_pace=inputs.export_pace.demand_outlook if inputs.export_pace else "average",
        score=score,
        factors=factors,
    )
