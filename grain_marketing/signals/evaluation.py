"""
Per-commodity evaluation input shared by every evaluator.

``EvaluationInput`` is built once per commodity by the engine and handed,
read-only, to each evaluator. It owns the derived numbers every ladder
needs (cash price, premium over break-even, effective thresholds, expiry)
so the evaluators only express their decision rules.

Percentages and thresholds are rounded to 6 decimals before comparison so
a price sitting exactly on a threshold (e.g. 15 % above) classifies the
same way regardless of float noise.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from grain_marketing.config import SignalConfig
from grain_marketing.models.market import MarketContext
from grain_marketing.models.position import MarketingPosition
from grain_marketing.models.preferences import MarketingPreferences, PersonalizedThreshold
from grain_marketing.models.signal import SignalContext, SignalDraft
from grain_marketing.signals.adjustments import (
    FundamentalAdjustment,
    SeasonalAdjustment,
)
from grain_marketing.signals.crop_year import CropYearInfo
from grain_marketing.signals.sizing import recommend_bushels, recommend_old_crop_bushels
from grain_marketing.signals.thresholds import (
    DefaultThreshold,
    SignalThresholds,
    build_thresholds,
)
from grain_marketing.taxonomy.marketing_taxonomy import (
    Commodity,
    SignalStrength,
    SignalType,
)
from grain_marketing.utils.time_utils import expires_after

COMPARISON_DECIMALS = 6


def rounded(value: float) -> float:
    return round(value, COMPARISON_DECIMALS)


@dataclass(frozen=True)
class EvaluationInput:
    """Everything an evaluator may read for one business/commodity.

    Attributes:
        business_id: Business being evaluated.
        commodity: Commodity being evaluated.
        market: Assembled market context.
        crop: Crop-year classification of the quoted contract.
        preferences: Business marketing preferences.
        config: Signal configuration (expiry days, cutoffs).
        now: Evaluation timestamp (UTC); drives ``expires_at``.
        break_even: Operation break-even for the crop year ($/bu, 0 if unknown).
        position: New-crop marketing position, if any.
        old_crop_bushels: Unpriced old-crop inventory.
        fundamental: Fundamental adjustment.
        seasonal: Seasonal adjustment.
        personalized: Personalized thresholds by instrument.
    """

    business_id: int
    commodity: Commodity
    market: MarketContext
    crop: CropYearInfo
    preferences: MarketingPreferences
    config: SignalConfig
    now: datetime
    break_even: float = 0.0
    position: Optional[MarketingPosition] = None
    old_crop_bushels: float = 0.0
    fundamental: FundamentalAdjustment = FundamentalAdjustment()
    seasonal: SeasonalAdjustment = SeasonalAdjustment()
    personalized: dict[SignalType, PersonalizedThreshold] = field(default_factory=dict)

    @property
    def is_new_crop(self) -> bool:
        return self.crop.is_new_crop

    @property
    def cash_price(self) -> float:
        return self.market.cash_price

    def price_above_break_even(
        self, price: Optional[float] = None, break_even: Optional[float] = None
    ) -> float:
        price = self.cash_price if price is None else price
        break_even = self.break_even if break_even is None else break_even
        return price - break_even if break_even > 0 else 0.0

    def percent_above_break_even(
        self, price: Optional[float] = None, break_even: Optional[float] = None
    ) -> float:
        break_even = self.break_even if break_even is None else break_even
        if break_even <= 0:
            return 0.0
        return rounded(self.price_above_break_even(price, break_even) / break_even)

    def thresholds(self, signal_type: SignalType, default: DefaultThreshold) -> SignalThresholds:
        raw = build_thresholds(
            default,
            self.preferences.effective_risk_tolerance,
            personalized=self.personalized.get(signal_type),
            fundamental=self.fundamental,
            seasonal=self.seasonal,
            min_data_points=self.config.min_personalized_data_points,
        )
        return SignalThresholds(
            strong_buy=rounded(raw.strong_buy),
            buy=rounded(raw.buy),
            personalized_confidence=raw.personalized_confidence,
        )

    def size(self, desired_fraction: float) -> float:
        """Recommended bushels for the new-crop position or old-crop inventory."""
        if not self.is_new_crop:
            return recommend_old_crop_bushels(
                desired_fraction,
                self.old_crop_bushels,
                self.preferences.max_single_sale_fraction,
            )
        if self.position is None:
            return 0.0
        return recommend_bushels(
            desired_fraction, self.position, self.preferences.max_single_sale_fraction
        )

    def expires_at(self, signal_type: SignalType, days: Optional[int] = None) -> datetime:
        return expires_after(self.now, days if days is not None else self.config.expiry_for(signal_type))

    def draft(
        self,
        signal_type: SignalType,
        strength: SignalStrength,
        title: str,
        summary: str,
        rationale: str = "",
        context: Optional[SignalContext] = None,
        recommended_bushels: Optional[float] = None,
        current_price: Optional[float] = None,
        target_price: Optional[float] = None,
        expiry_days: Optional[int] = None,
        break_even: Optional[float] = None,
    ) -> SignalDraft:
        price = self.cash_price if current_price is None else current_price
        break_even = self.break_even if break_even is None else break_even
        return SignalDraft(
            business_id=self.business_id,
            signal_type=signal_type,
            commodity=self.commodity,
            crop_year=self.crop.crop_year,
            is_new_crop=self.is_new_crop,
            strength=strength,
            current_price=price,
            break_even_price=break_even,
            target_price=target_price,
            price_above_break_even=self.price_above_break_even(price, break_even),
            percent_above_break_even=self.percent_above_break_even(price, break_even),
            recommended_bushels=(
                round(recommended_bushels) if recommended_bushels is not None else None
            ),
            title=title,
            summary=summary,
            rationale=rationale,
            context=context,
            expires_at=self.expires_at(signal_type, expiry_days),
        )

    @property
    def label(self) -> str:
        return self.commodity.value.capitalize()
