"""
Marketing signal models.

``SignalDraft`` is what an evaluator returns; the lifecycle manager turns
drafts into persisted ``MarketingSignal`` rows. A draft can only carry an
actionable strength (BUY / STRONG_BUY): HOLD, SELL and STRONG_SELL are
ladder outcomes for internal use and never leave the evaluators.

Market context attached to a signal is a closed, tagged union discriminated
on ``kind``; each instrument's evaluator builds exactly one variant.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from grain_marketing.taxonomy.marketing_taxonomy import (
    ACTIONABLE_STRENGTHS,
    TERMINAL_STATUSES,
    BasisStrength,
    Commodity,
    NewsUrgency,
    Outlook,
    SignalStatus,
    SignalStrength,
    SignalType,
    TrendDirection,
)

# ── Context union ──────────────────────────────────────────────────────────────


class CashSaleContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["cash_sale"] = "cash_sale"
    futures_price: float
    basis: float
    contract: str
    trend: TrendDirection
    rsi: float
    fundamental_score: float = 0.0
    seasonal_score: float = 0.0
    strong_threshold: float
    buy_threshold: float
    remaining_bushels: float
    harvest_complete: bool
    defensive: bool = False
    old_crop: bool = False


class BasisContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["basis"] = "basis"
    basis: float
    basis_percentile: float
    basis_strength: BasisStrength
    strong_threshold: float
    buy_threshold: float


class HtaContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["hta"] = "hta"
    futures_price: float
    basis: float
    contract: str
    futures_above_break_even_pct: float
    basis_is_weak: bool
    strong_threshold: float
    buy_threshold: float


class AccumulatorContext(BaseModel):
    """Accumulator terms: estimated (inquiry) or actual (existing contract)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["accumulator"] = "accumulator"
    futures_price: float
    knockout_price: float
    double_up_price: float
    accumulator_contract_id: Optional[int] = None
    knockout_distance_pct: float
    near_knockout: bool = False
    is_currently_doubled: bool = False
    bushels_marketed: float = 0.0
    is_estimate: bool = True


class CallOptionContext(BaseModel):
    """Heuristic call-option terms; not a pricing model."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["call_option"] = "call_option"
    futures_price: float
    strike_price: float
    estimated_premium: float
    contracts: int
    covered_bushels: float
    days_to_expiration: int
    volatility: float


class TradePolicyContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["trade_policy"] = "trade_policy"
    headline: str
    urgency: NewsUrgency
    price_impact_pct: float
    sentiment: Outlook


SignalContext = Annotated[
    Union[
        CashSaleContext,
        BasisContext,
        HtaContext,
        AccumulatorContext,
        CallOptionContext,
        TradePolicyContext,
    ],
    Field(discriminator="kind"),
]


# ── Signals ────────────────────────────────────────────────────────────────────


class SignalDraft(BaseModel):
    """An actionable recommendation produced by one evaluator.

    Attributes:
        business_id: Business the signal is for.
        entity_id: Optional legal entity.
        signal_type: Marketing instrument.
        commodity: Commodity to market.
        crop_year: Crop year the bushels belong to.
        is_new_crop: ``False`` for old-crop inventory.
        strength: BUY or STRONG_BUY.
        current_price: Price the evaluation used ($/bu).
        break_even_price: Break-even, 0 when not applicable (old crop).
        target_price: Price objective, if any.
        price_above_break_even: ``current_price − break_even_price``.
        percent_above_break_even: Same as a fraction of break-even.
        recommended_bushels: Sale size, ≥ 0.
        title / summary / rationale: Human-readable explanation.
        context: Instrument-specific market context.
        expires_at: When the signal lapses if not acted on.
    """

    model_config = ConfigDict(frozen=True)

    business_id: int
    entity_id: Optional[int] = None
    signal_type: SignalType
    commodity: Commodity
    crop_year: int
    is_new_crop: bool = True
    strength: SignalStrength
    current_price: float
    break_even_price: float = 0.0
    target_price: Optional[float] = None
    price_above_break_even: float = 0.0
    percent_above_break_even: float = 0.0
    recommended_bushels: Optional[float] = Field(default=None, ge=0)
    title: str
    summary: str
    rationale: str = ""
    context: Optional[SignalContext] = None
    expires_at: datetime

    @field_validator("strength")
    @classmethod
    def validate_actionable(cls, v: SignalStrength) -> SignalStrength:
        if v not in ACTIONABLE_STRENGTHS:
            raise ValueError(f"Only BUY/STRONG_BUY drafts are emitted, got '{v}'.")
        return v


class MarketingSignal(SignalDraft):
    """A persisted signal with lifecycle state.

    TRIGGERED, DISMISSED and EXPIRED are terminal.
    """

    signal_id: Optional[int] = None
    status: SignalStatus = SignalStatus.ACTIVE
    created_at: datetime
    updated_at: Optional[datetime] = None
    viewed_at: Optional[datetime] = None
    action_taken: Optional[str] = None
    action_taken_at: Optional[datetime] = None
    dismissed_at: Optional[datetime] = None
    dismiss_reason: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
