"""
Market-side domain models: futures quotes, basis observations, technical
trend analysis, fundamental and seasonal context, news sentiment, and the
assembled ``MarketContext`` handed to the scoring engine.

``MarketContext`` is frozen: scoring reads it and never mutates it.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from grain_marketing.taxonomy.marketing_taxonomy import (
    BasisStrength,
    Commodity,
    MarketingImplication,
    NewsUrgency,
    Outlook,
    TrendDirection,
)

VALID_CONTRACT_MONTHS = frozenset({
    "JAN", "FEB", "MAR", "APR", "MAY", "JUN", "JUL", "AUG", "SEP", "OCT", "NOV", "DEC",
})


class FuturesQuote(BaseModel):
    """Daily settlement for one futures contract month.

    Attributes:
        commodity: Underlying commodity.
        quote_date: Trading date of the settlement.
        contract_month: Three-letter month code, e.g. ``"DEC"``.
        contract_year: Four-digit delivery year.
        price: Settlement price in $/bu.
    """

    model_config = ConfigDict(frozen=True)

    quote_id: Optional[int] = None
    commodity: Commodity
    quote_date: date
    contract_month: str
    contract_year: int
    price: float = Field(gt=0)

    @field_validator("contract_month")
    @classmethod
    def validate_contract_month(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in VALID_CONTRACT_MONTHS:
            raise ValueError(f"Unknown contract month '{v}'.")
        return v

    @property
    def label(self) -> str:
        return f"{self.contract_month}{self.contract_year % 100:02d}"


class BasisObservation(BaseModel):
    """Local basis (cash − futures) recorded on a date."""

    model_config = ConfigDict(frozen=True)

    basis_id: Optional[int] = None
    commodity: Commodity
    observed_on: date
    basis: float
    location: str = ""


class TrendAnalysis(BaseModel):
    """Technical indicators over recent settlements."""

    model_config = ConfigDict(frozen=True)

    direction: TrendDirection = TrendDirection.NEUTRAL
    rsi: float = Field(default=50.0, ge=0, le=100)
    ma_20: float = 0.0
    ma_50: float = 0.0
    volatility: float = Field(default=0.02, ge=0)


class FundamentalContext(BaseModel):
    """Supply/demand backdrop with an aggregate score in [−100, 100]."""

    model_config = ConfigDict(frozen=True)

    commodity: Commodity
    supply_demand_outlook: Outlook = Outlook.NEUTRAL
    crop_condition: str = "neutral"
    export_pace: str = "average"
    score: float = Field(default=0.0, ge=-100, le=100)
    factors: list[str] = []


class SeasonalContext(BaseModel):
    """Historical seasonal tendencies for a commodity in a calendar month."""

    model_config = ConfigDict(frozen=True)

    commodity: Commodity
    month: int = Field(ge=1, le=12)
    seasonal_score: float = Field(default=0.0, ge=-100, le=100)
    outlook: Outlook = Outlook.NEUTRAL
    historical_price_percentile: float = Field(default=50.0, ge=0, le=100)
    rally_probability: float = Field(default=50.0, ge=0, le=100)
    decline_probability: float = Field(default=50.0, ge=0, le=100)
    marketing_implication: MarketingImplication = MarketingImplication.NEUTRAL
    recommended_action: str = ""
    key_factors: list[str] = []


class TradePolicyEvent(BaseModel):
    """A tariff / trade-deal headline with estimated price impact.

    ``price_impact_pct`` is the expected move in percent, per commodity
    (negative is bearish).
    """

    model_config = ConfigDict(frozen=True)

    event_id: Optional[int] = None
    headline: str
    urgency: NewsUrgency = NewsUrgency.MONITOR
    price_impact_pct: dict[Commodity, float] = {}
    published_on: Optional[date] = None

    def impact_for(self, commodity: Commodity) -> float:
        return self.price_impact_pct.get(commodity, 0.0)


class NewsSentiment(BaseModel):
    model_config = ConfigDict(frozen=True)

    commodity: Commodity
    label: Outlook = Outlook.NEUTRAL
    urgency: NewsUrgency = NewsUrgency.MONITOR
    headline: str = ""


class MarketContext(BaseModel):
    """Everything the scoring engine knows about one commodity's market.

    Attributes:
        commodity: Commodity this snapshot describes.
        as_of: Evaluation date.
        futures_price: Nearest futures settlement ($/bu).
        contract_month: Month code of that quote.
        contract_year: Delivery year of that quote.
        basis: Average local basis ($/bu).
        has_basis: Whether ``basis`` came from observations rather than the
            0.0 stand-in.
        basis_percentile: Where the current basis sits in the past year (0-100).
        basis_strength: Label derived from ``basis``.
        trend: Technical indicators.
        fundamental: Supply/demand context.
        seasonal: Seasonal context for ``as_of.month``.
        news: News sentiment label.
        trade_policy_events: Recent trade policy headlines.
    """

    model_config = ConfigDict(frozen=True)

    commodity: Commodity
    as_of: date
    futures_price: float
    contract_month: str
    contract_year: int
    basis: float = 0.0
    has_basis: bool = False
    basis_percentile: float = Field(default=50.0, ge=0, le=100)
    basis_strength: BasisStrength = BasisStrength.AVERAGE
    trend: TrendAnalysis = TrendAnalysis()
    fundamental: Optional[FundamentalContext] = None
    seasonal: Optional[SeasonalContext] = None
    news: Optional[NewsSentiment] = None
    trade_policy_events: list[TradePolicyEvent] = []

    @property
    def cash_price(self) -> float:
        return self.futures_price + self.basis

    @property
    def fundamental_score(self) -> float:
        return self.fundamental.score if self.fundamental is not None else 0.0
