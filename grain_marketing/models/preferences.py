"""
Per-business marketing preferences, learned thresholds and old-crop stock.

``MarketingPreferences`` drives which commodities and instruments a
business is evaluated for and the default margins the ladders use. A
missing preferences row is replaced by ``MarketingPreferences(business_id=…)``
defaults and saved.

Risk learning::

    avg sale premium  > 0.20 → score 30   (holds out for high prices)
                      > 0.15 → 40
                      > 0.10 → 50
                      > 0.05 → 60
                      else   → 70         (sells close to break-even)

``effective_risk_tolerance`` prefers the declared tolerance until the
learned score has at least 30 % confidence.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from grain_marketing.taxonomy.marketing_taxonomy import (
    Commodity,
    RiskTolerance,
    SignalType,
)

MIN_LEARNED_CONFIDENCE = 30.0


class MarketingPreferences(BaseModel):
    """Marketing preferences for one business.

    Attributes:
        business_id: Business these preferences belong to.
        risk_tolerance: Declared risk appetite.
        enabled_commodities: Commodities to evaluate.
        enable_*: Per-instrument switches.
        target_profit_margin: $/bu over break-even the BUY rung requires.
        min_above_break_even: Minimum fractional premium before HOLD.
        pre_harvest_targets: Fraction of projection to have sold by harvest.
        max_single_sale_fraction: Cap on one sale as a share of projection.
        accumulator_percent_above_break_even: Inquiry trigger.
        accumulator_marketing_percent: Share of remaining offered to an accumulator.
        accumulator_min_price: Optional futures floor for inquiries.
        learned_risk_score: 0-100 score from sale history, if learned.
        learned_risk_confidence: Confidence in that score, 0-100.
    """

    model_config = ConfigDict(frozen=True)

    business_id: int
    risk_tolerance: RiskTolerance = RiskTolerance.MODERATE
    enabled_commodities: list[Commodity] = [
        Commodity.CORN, Commodity.SOYBEANS, Commodity.WHEAT,
    ]
    enable_cash_sales: bool = True
    enable_basis_contracts: bool = True
    enable_hta: bool = True
    enable_call_options: bool = True
    enable_accumulator_inquiry: bool = True
    enable_accumulator_strategy: bool = True
    enable_trade_policy: bool = True
    enable_breaking_news: bool = True
    target_profit_margin: float = Field(default=0.30, ge=0)
    min_above_break_even: float = Field(default=0.05, ge=0)
    pre_harvest_targets: dict[Commodity, float] = {
        Commodity.CORN: 0.50,
        Commodity.SOYBEANS: 0.50,
        Commodity.WHEAT: 0.50,
    }
    max_single_sale_fraction: float = Field(default=0.25, gt=0, le=1)
    accumulator_percent_above_break_even: float = Field(default=0.10, ge=0)
    accumulator_marketing_percent: float = Field(default=0.20, ge=0, le=1)
    accumulator_min_price: Optional[float] = Field(default=None, ge=0)
    learned_risk_score: Optional[float] = Field(default=None, ge=0, le=100)
    learned_risk_confidence: float = Field(default=0.0, ge=0, le=100)
    updated_at: Optional[datetime] = None

    @field_validator("pre_harvest_targets")
    @classmethod
    def validate_targets(cls, v: dict[Commodity, float]) -> dict[Commodity, float]:
        bad = {k: t for k, t in v.items() if not 0 <= t <= 1}
        if bad:
            raise ValueError(f"pre_harvest_targets must be within [0, 1], got {bad}.")
        return v

    def pre_harvest_target(self, commodity: Commodity) -> float:
        return self.pre_harvest_targets.get(commodity, 0.50)

    def is_enabled(self, signal_type: SignalType) -> bool:
        flags = {
            SignalType.CASH_SALE: self.enable_cash_sales,
            SignalType.BASIS_CONTRACT: self.enable_basis_contracts,
            SignalType.HTA: self.enable_hta,
            SignalType.CALL_OPTION: self.enable_call_options,
            SignalType.ACCUMULATOR_INQUIRY: self.enable_accumulator_inquiry,
            SignalType.ACCUMULATOR_STRATEGY: self.enable_accumulator_strategy,
            SignalType.TRADE_POLICY: self.enable_trade_policy,
            SignalType.BREAKING_NEWS: self.enable_breaking_news,
        }
        return flags[signal_type]

    @property
    def effective_risk_tolerance(self) -> RiskTolerance:
        return effective_risk_tolerance(
            self.risk_tolerance, self.learned_risk_score, self.learned_risk_confidence
        )


class PersonalizedThreshold(BaseModel):
    """Thresholds learned from a business's own sale history.

    Units follow the instrument: fractions above break-even for cash / HTA /
    accumulator, percentile points for basis.
    """

    model_config = ConfigDict(frozen=True)

    threshold_id: Optional[int] = None
    business_id: int
    commodity: Commodity
    signal_type: SignalType
    buy_threshold: float
    strong_buy_threshold: float
    confidence: float = Field(default=0.0, ge=0, le=100)
    data_points: int = Field(default=0, ge=0)


class OldCropInventory(BaseModel):
    """Unpriced bushels left in the bin from a prior crop year."""

    model_config = ConfigDict(frozen=True)

    business_id: int
    commodity: Commodity
    crop_year: int
    unpriced_bushels: float = Field(ge=0)


def learned_risk_score(avg_sale_premium: float) -> float:
    if avg_sale_premium > 0.20:
        return 30.0
    if avg_sale_premium > 0.15:
        return 40.0
    if avg_sale_premium > 0.10:
        return 50.0
    if avg_sale_premium > 0.05:
        return 60.0
    return 70.0


def effective_risk_tolerance(
    declared: RiskTolerance,
    learned_score: Optional[float],
    confidence: float,
) -> RiskTolerance:
    """Map a learned 0-100 score to a tolerance, falling back to ``declared``."""
    if learned_score is None or confidence < MIN_LEARNED_CONFIDENCE:
        return declared
    if learned_score < 40:
        return RiskTolerance.CONSERVATIVE
    if learned_score < 60:
        return RiskTolerance.MODERATE
    return RiskTolerance.AGGRESSIVE
