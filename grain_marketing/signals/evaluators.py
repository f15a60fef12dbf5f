"""
Per-instrument signal evaluators.

Every evaluator takes an ``EvaluationInput`` and returns a ``SignalDraft``
or ``None``. Ladders are computed in full by the ``classify_*`` functions
(all five strengths); only BUY / STRONG_BUY ever become drafts.

Cash sale ladder (new crop, pct = (cash − BE) / BE)
---------------------------------------------------
    1. STRONG_BUY : pct ≥ strong  AND trend DOWN AND RSI > 70     size 25 %
    2. BUY        : pct ≥ buy     AND cash − BE ≥ target margin   size 12.5 %
    3. HOLD       : pct ≥ min_above_break_even
                    → defensive BUY at half the BUY size when pct < buy and
                      fundamentals are strongly bearish or the seasonal
                      window is urgent
    4. SELL       : 0 ≤ pct < min_above_break_even
    5. STRONG_SELL: pct < 0

Sizes are desired fractions of remaining bushels, shifted by the
fundamental and seasonal percentage adjustments before the caps in
``sizing.recommend_bushels`` apply.

Old crop (no break-even)
------------------------
    STRONG_BUY : (trend DOWN AND RSI > 70) OR (strongly bearish AND RSI > 60)
    BUY        : (RSI > 60 AND trend not UP) OR bearish outlook OR seasonal urgency
    HOLD       : otherwise

Basis:   percentile ≥ strong (75) → 20 %,  ≥ buy (50) → 10 %
HTA:     pct ≥ strong (0.15) → 17.5 %, ≥ buy (0.10) → 10 %, basis must be weak
Calls:   ≥ 20 % sold, cash > BE, bullish fundamentals and/or rally ≥ 55 %
         premium ≈ 0.4 × σ × √(T / 365) × futures
Accumulator inquiry: pct ≥ accumulator threshold, trend not DOWN
Accumulator strategy: futures < double-up trigger on a contract not doubled
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from grain_marketing.models.accumulator import AccumulatorContract, AccumulatorState
from grain_marketing.models.signal import (
    AccumulatorContext,
    BasisContext,
    CallOptionContext,
    CashSaleContext,
    HtaContext,
    SignalDraft,
)
from grain_marketing.signals.evaluation import EvaluationInput, rounded
from grain_marketing.signals.sizing import clamp_fraction
from grain_marketing.signals.thresholds import DEFAULT_THRESHOLDS, DefaultThreshold, SignalThresholds
from grain_marketing.taxonomy.marketing_taxonomy import (
    ACTIONABLE_STRENGTHS,
    Outlook,
    SignalStrength,
    SignalType,
    TrendDirection,
)

# ── Constants ─────────────────────────────────────────────────────────────────

OVERBOUGHT_RSI = 70.0
ELEVATED_RSI = 60.0

CASH_STRONG_FRACTION = 0.25
CASH_BUY_FRACTION = 0.125
DEFENSIVE_FACTOR = 0.5

BASIS_STRONG_FRACTION = 0.20
BASIS_BUY_FRACTION = 0.10

HTA_STRONG_FRACTION = 0.175
HTA_BUY_FRACTION = 0.10

CALL_MIN_PERCENT_SOLD = 0.20
CALL_COVER_FRACTION = 0.25
CALL_CONTRACT_BUSHELS = 5000
CALL_DAYS_TO_EXPIRATION = 60
CALL_PREMIUM_FACTOR = 0.4
CALL_MIN_VOLATILITY = 0.15
CALL_RALLY_PROBABILITY = 55.0
STRIKE_INCREMENT = 0.10

ACCUMULATOR_KNOCKOUT_FACTOR = 0.85
ACCUMULATOR_DOUBLE_UP_FACTOR = 0.95
ACCUMULATOR_STRONG_MULTIPLE = 1.5


@dataclass(frozen=True)
class LadderResult:
    """Outcome of one ladder: strength plus the desired sale fraction."""

    strength: SignalStrength
    desired_fraction: float = 0.0
    defensive: bool = False

    @property
    def is_actionable(self) -> bool:
        return self.strength in ACTIONABLE_STRENGTHS


def _adjusted(inp: EvaluationInput, base_fraction: float) -> float:
    return clamp_fraction(
        base_fraction
        + inp.fundamental.percentage_adjustment
        + inp.seasonal.percentage_adjustment
    )


def _rationale(*parts: str) -> str:
    return " ".join(p for p in parts if p)


def _fundamental_note(inp: EvaluationInput) -> str:
    if inp.market.fundamental is None:
        return ""
    return f"Fundamental outlook {inp.fundamental.outlook.value} (score {inp.market.fundamental.score:.0f})."


def _seasonal_note(inp: EvaluationInput) -> str:
    return f"{inp.seasonal.rationale}." if inp.market.seasonal is not None else ""


# ── Cash sale ─────────────────────────────────────────────────────────────────


def classify_cash_sale(
    percent_above: float,
    price_above: float,
    thresholds: SignalThresholds,
    trend: TrendDirection,
    rsi: float,
    min_above_break_even: float,
    target_margin: float,
) -> SignalStrength:
    """Pure new-crop cash-sale ladder; returns any of the five strengths."""
    percent_above = rounded(percent_above)
    if (
        percent_above >= thresholds.strong_buy
        and trend == TrendDirection.DOWN
        and rsi > OVERBOUGHT_RSI
    ):
        return SignalStrength.STRONG_BUY
    if percent_above >= thresholds.buy and rounded(price_above) >= rounded(target_margin):
        return SignalStrength.BUY
    if percent_above >= rounded(min_above_break_even):
        return SignalStrength.HOLD
    if percent_above >= 0:
        return SignalStrength.SELL
    return SignalStrength.STRONG_SELL


def cash_sale_ladder(inp: EvaluationInput) -> LadderResult:
    thresholds = inp.thresholds(SignalType.CASH_SALE, DEFAULT_THRESHOLDS[SignalType.CASH_SALE])
    strength = classify_cash_sale(
        inp.percent_above_break_even(),
        inp.price_above_break_even(),
        thresholds,
        inp.market.trend.direction,
        inp.market.trend.rsi,
        inp.preferences.min_above_break_even,
        inp.preferences.target_profit_margin,
    )
    if strength == SignalStrength.STRONG_BUY:
        return LadderResult(strength, _adjusted(inp, CASH_STRONG_FRACTION))
    if strength == SignalStrength.BUY:
        return LadderResult(strength, _adjusted(inp, CASH_BUY_FRACTION))
    # defensive sales only inside the HOLD band below the buy threshold
    in_hold_band = rounded(inp.percent_above_break_even()) < thresholds.buy
    if (
        strength == SignalStrength.HOLD
        and in_hold_band
        and (inp.fundamental.strongly_bearish or inp.seasonal.urgency)
    ):
        return LadderResult(
            SignalStrength.BUY,
            DEFENSIVE_FACTOR * _adjusted(inp, CASH_BUY_FRACTION),
            defensive=True,
        )
    return LadderResult(strength)


def evaluate_cash_sale(inp: EvaluationInput) -> Optional[SignalDraft]:
    if not inp.is_new_crop or inp.break_even <= 0 or inp.position is None:
        return None
    result = cash_sale_ladder(inp)
    if not result.is_actionable:
        return None

    thresholds = inp.thresholds(SignalType.CASH_SALE, DEFAULT_THRESHOLDS[SignalType.CASH_SALE])
    pct = inp.percent_above_break_even()
    bushels = inp.size(result.desired_fraction)
    market = inp.market

    if result.strength == SignalStrength.STRONG_BUY:
        title = f"Strong {inp.label} Cash Sale Opportunity"
        lead = (
            f"Cash ${inp.cash_price:.2f} is {pct:.1%} above break-even with a "
            f"downtrend and RSI {market.trend.rsi:.0f}; prices look overbought."
        )
    elif result.defensive:
        title = f"{inp.label} Defensive Cash Sale"
        lead = (
            f"Cash ${inp.cash_price:.2f} is only {pct:.1%} above break-even, "
            f"but conditions favour reducing exposure now."
        )
    else:
        title = f"{inp.label} Cash Sale Signal"
        lead = (
            f"Cash ${inp.cash_price:.2f} is {pct:.1%} above break-even "
            f"(${inp.price_above_break_even():.2f}/bu margin)."
        )

    return inp.draft(
        SignalType.CASH_SALE,
        result.strength,
        title=title,
        summary=f"Consider selling {bushels:,.0f} bu of {inp.commodity.value}.",
        rationale=_rationale(lead, _fundamental_note(inp), _seasonal_note(inp)),
        context=CashSaleContext(
            futures_price=market.futures_price,
            basis=market.basis,
            contract=f"{market.contract_month}{market.contract_year % 100:02d}",
            trend=market.trend.direction,
            rsi=market.trend.rsi,
            fundamental_score=market.fundamental_score,
            seasonal_score=market.seasonal.seasonal_score if market.seasonal else 0.0,
            strong_threshold=thresholds.strong_buy,
            buy_threshold=thresholds.buy,
            remaining_bushels=inp.position.remaining_bushels,
            harvest_complete=inp.position.harvest_complete,
            defensive=result.defensive,
        ),
        recommended_bushels=bushels,
        target_price=inp.break_even + inp.preferences.target_profit_margin,
    )


# ── Old crop ──────────────────────────────────────────────────────────────────


def classify_old_crop(
    trend: TrendDirection,
    rsi: float,
    outlook: Outlook,
    strongly_bearish: bool,
    seasonal_urgency: bool,
) -> SignalStrength:
    if (trend == TrendDirection.DOWN and rsi > OVERBOUGHT_RSI) or (
        strongly_bearish and rsi > ELEVATED_RSI
    ):
        return SignalStrength.STRONG_BUY
    if (
        (rsi > ELEVATED_RSI and trend != TrendDirection.UP)
        or outlook == Outlook.BEARISH
        or seasonal_urgency
    ):
        return SignalStrength.BUY
    return SignalStrength.HOLD


def evaluate_old_crop(inp: EvaluationInput) -> Optional[SignalDraft]:
    """Old-crop cash sale sized against unpriced inventory."""
    if inp.is_new_crop:
        return None
    market = inp.market
    strength = classify_old_crop(
        market.trend.direction,
        market.trend.rsi,
        inp.fundamental.outlook,
        inp.fundamental.strongly_bearish,
        inp.seasonal.urgency,
    )
    if strength not in ACTIONABLE_STRENGTHS:
        return None

    base = CASH_STRONG_FRACTION if strength == SignalStrength.STRONG_BUY else CASH_BUY_FRACTION
    bushels = inp.size(_adjusted(inp, base))
    prefix = "Strong " if strength == SignalStrength.STRONG_BUY else ""
    return inp.draft(
        SignalType.CASH_SALE,
        strength,
        title=f"{prefix}{inp.label} Old Crop Sale Signal",
        summary=(
            f"Consider selling {bushels:,.0f} bu of {inp.crop.crop_year} "
            f"{inp.commodity.value} from storage."
        ),
        rationale=_rationale(
            f"Trend {market.trend.direction.value}, RSI {market.trend.rsi:.0f}.",
            _fundamental_note(inp),
            _seasonal_note(inp),
        ),
        context=CashSaleContext(
            futures_price=market.futures_price,
            basis=market.basis,
            contract=f"{market.contract_month}{market.contract_year % 100:02d}",
            trend=market.trend.direction,
            rsi=market.trend.rsi,
            fundamental_score=market.fundamental_score,
            seasonal_score=market.seasonal.seasonal_score if market.seasonal else 0.0,
            strong_threshold=OVERBOUGHT_RSI,
            buy_threshold=ELEVATED_RSI,
            remaining_bushels=inp.old_crop_bushels,
            harvest_complete=True,
            old_crop=True,
        ),
        recommended_bushels=bushels,
        break_even=0.0,
    )


# ── Basis contract ────────────────────────────────────────────────────────────


def classify_threshold(value: float, thresholds: SignalThresholds) -> SignalStrength:
    value = rounded(value)
    if value >= thresholds.strong_buy:
        return SignalStrength.STRONG_BUY
    if value >= thresholds.buy:
        return SignalStrength.BUY
    return SignalStrength.HOLD


def evaluate_basis(inp: EvaluationInput) -> Optional[SignalDraft]:
    market = inp.market
    if not market.has_basis:
        return None
    thresholds = inp.thresholds(
        SignalType.BASIS_CONTRACT, DEFAULT_THRESHOLDS[SignalType.BASIS_CONTRACT]
    )
    strength = classify_threshold(market.basis_percentile, thresholds)
    if strength not in ACTIONABLE_STRENGTHS:
        return None

    strong = strength == SignalStrength.STRONG_BUY
    bushels = inp.size(BASIS_STRONG_FRACTION if strong else BASIS_BUY_FRACTION)
    title = (
        f"Excellent {inp.label} Basis Opportunity" if strong else f"{inp.label} Basis Signal"
    )
    return inp.draft(
        SignalType.BASIS_CONTRACT,
        strength,
        title=title,
        summary=f"Lock basis on {bushels:,.0f} bu; price futures later.",
        rationale=(
            f"Basis {market.basis:+.2f} sits at the {market.basis_percentile:.0f}th "
            f"percentile of the past year ({market.basis_strength.value})."
        ),
        context=BasisContext(
            basis=market.basis,
            basis_percentile=market.basis_percentile,
            basis_strength=market.basis_strength,
            strong_threshold=thresholds.strong_buy,
            buy_threshold=thresholds.buy,
        ),
        recommended_bushels=bushels,
    )


# ── Hedge-to-arrive ───────────────────────────────────────────────────────────


def evaluate_hta(inp: EvaluationInput) -> Optional[SignalDraft]:
    if not inp.is_new_crop or inp.break_even <= 0:
        return None
    market = inp.market
    basis_is_weak = market.basis < inp.config.weak_basis_cutoff
    if not basis_is_weak:
        return None

    thresholds = inp.thresholds(SignalType.HTA, DEFAULT_THRESHOLDS[SignalType.HTA])
    futures_above = rounded(
        (market.futures_price + market.basis - inp.break_even) / inp.break_even
    )
    strength = classify_threshold(futures_above, thresholds)
    if strength not in ACTIONABLE_STRENGTHS:
        return None

    strong = strength == SignalStrength.STRONG_BUY
    bushels = inp.size(HTA_STRONG_FRACTION if strong else HTA_BUY_FRACTION)
    contract = f"{market.contract_month}{market.contract_year % 100:02d}"
    return inp.draft(
        SignalType.HTA,
        strength,
        title=f"Strong {inp.label} HTA Opportunity" if strong else f"{inp.label} HTA Signal",
        summary=f"Lock {contract} futures at ${market.futures_price:.2f} on {bushels:,.0f} bu; set basis later.",
        rationale=(
            f"Futures are {futures_above:.1%} above break-even while basis "
            f"{market.basis:+.2f} is weak enough to wait on."
        ),
        context=HtaContext(
            futures_price=market.futures_price,
            basis=market.basis,
            contract=contract,
            futures_above_break_even_pct=futures_above,
            basis_is_weak=basis_is_weak,
            strong_threshold=thresholds.strong_buy,
            buy_threshold=thresholds.buy,
        ),
        recommended_bushels=bushels,
        target_price=market.futures_price,
    )


# ── Call options ──────────────────────────────────────────────────────────────


def round_strike(futures_price: float) -> float:
    """Round up to the next ``STRIKE_INCREMENT``."""
    steps = math.ceil(rounded(futures_price / STRIKE_INCREMENT))
    return round(steps * STRIKE_INCREMENT, 2)


def estimate_call_premium(
    futures_price: float,
    volatility: float,
    days_to_expiration: int = CALL_DAYS_TO_EXPIRATION,
) -> float:
    """Coarse at-the-money premium; deliberately not an options pricing model."""
    sigma = max(volatility, CALL_MIN_VOLATILITY)
    return round(
        CALL_PREMIUM_FACTOR * sigma * math.sqrt(days_to_expiration / 365) * futures_price, 4
    )


def evaluate_call_option(inp: EvaluationInput) -> Optional[SignalDraft]:
    position = inp.position
    if not inp.is_new_crop or position is None or inp.break_even <= 0:
        return None
    if position.percent_sold < CALL_MIN_PERCENT_SOLD or inp.cash_price <= inp.break_even:
        return None

    market = inp.market
    bullish = inp.fundamental.outlook == Outlook.BULLISH
    rally = (
        market.seasonal is not None
        and market.seasonal.rally_probability >= CALL_RALLY_PROBABILITY
    )
    if not (bullish or rally):
        return None

    contracts = math.floor(position.total_sold * CALL_COVER_FRACTION / CALL_CONTRACT_BUSHELS)
    if contracts <= 0:
        return None

    cash_buy = inp.thresholds(SignalType.CASH_SALE, DEFAULT_THRESHOLDS[SignalType.CASH_SALE]).buy
    if bullish and rally and inp.percent_above_break_even() >= cash_buy:
        strength = SignalStrength.STRONG_BUY
    else:
        strength = SignalStrength.BUY

    strike = round_strike(market.futures_price)
    premium = estimate_call_premium(market.futures_price, market.trend.volatility)
    covered = contracts * CALL_CONTRACT_BUSHELS
    reasons = []
    if bullish:
        reasons.append("bullish fundamentals")
    if rally:
        reasons.append(f"{market.seasonal.rally_probability:.0f}% seasonal rally odds")

    return inp.draft(
        SignalType.CALL_OPTION,
        strength,
        title=f"{inp.label} Call Option Opportunity",
        summary=(
            f"Buy {contracts} ${strike:.2f} call(s) to re-own upside on "
            f"{covered:,} sold bu (est. premium ${premium:.2f}/bu)."
        ),
        rationale=_rationale(
            f"{position.percent_sold:.0%} of the crop is sold above break-even;",
            " and ".join(reasons) + " suggest upside remains.",
        ),
        context=CallOptionContext(
            futures_price=market.futures_price,
            strike_price=strike,
            estimated_premium=premium,
            contracts=contracts,
            covered_bushels=float(covered),
            days_to_expiration=CALL_DAYS_TO_EXPIRATION,
            volatility=market.trend.volatility,
        ),
        recommended_bushels=float(covered),
        target_price=strike,
    )


# ── Accumulators ──────────────────────────────────────────────────────────────


def knockout_distance(price: float, knockout_price: float) -> float:
    """Fractional distance of ``price`` above the knockout; 0 without a knockout."""
    if knockout_price <= 0:
        return 0.0
    return rounded((price - knockout_price) / knockout_price)


def evaluate_accumulator_inquiry(inp: EvaluationInput) -> Optional[SignalDraft]:
    if not inp.is_new_crop or inp.break_even <= 0 or inp.position is None:
        return None
    prefs = inp.preferences
    market = inp.market
    if prefs.accumulator_min_price is not None and market.futures_price < prefs.accumulator_min_price:
        return None
    if market.trend.direction == TrendDirection.DOWN or inp.fundamental.strongly_bearish:
        return None

    base = prefs.accumulator_percent_above_break_even
    thresholds = inp.thresholds(
        SignalType.ACCUMULATOR_INQUIRY,
        DefaultThreshold(strong_buy=base * ACCUMULATOR_STRONG_MULTIPLE, buy=base),
    )
    strength = classify_threshold(inp.percent_above_break_even(), thresholds)
    if strength not in ACTIONABLE_STRENGTHS:
        return None

    knockout = round(market.futures_price * ACCUMULATOR_KNOCKOUT_FACTOR, 4)
    double_up = round(market.futures_price * ACCUMULATOR_DOUBLE_UP_FACTOR, 4)
    bushels = inp.size(prefs.accumulator_marketing_percent)
    return inp.draft(
        SignalType.ACCUMULATOR_INQUIRY,
        strength,
        title=f"{inp.label} Accumulator Inquiry",
        summary=f"Ask your elevator for accumulator pricing on {bushels:,.0f} bu.",
        rationale=(
            f"Cash is {inp.percent_above_break_even():.1%} above break-even in a "
            f"{market.trend.direction.value} market. Indicative terms: knockout "
            f"${knockout:.2f}, double-up ${double_up:.2f}."
        ),
        context=AccumulatorContext(
            futures_price=market.futures_price,
            knockout_price=knockout,
            double_up_price=double_up,
            knockout_distance_pct=knockout_distance(market.futures_price, knockout),
            is_estimate=True,
        ),
        recommended_bushels=bushels,
        target_price=market.futures_price,
    )


def evaluate_accumulator_strategy(
    inp: EvaluationInput,
    contract: AccumulatorContract,
    state: AccumulatorState,
    knockout_warning_distance: float,
) -> Optional[SignalDraft]:
    """Advise on an accumulator the business already holds."""
    if contract.commodity != inp.commodity or not contract.is_active or state.knockout_reached:
        return None
    price = inp.market.futures_price
    if price >= contract.double_up_price or state.is_currently_doubled:
        return None

    distance = knockout_distance(price, contract.knockout_price)
    near = distance <= rounded(knockout_warning_distance)
    warning = (
        f" Futures are within {distance:.1%} of the ${contract.knockout_price:.2f} knockout."
        if near
        else ""
    )
    return inp.draft(
        SignalType.ACCUMULATOR_STRATEGY,
        SignalStrength.BUY,
        title=f"{inp.label} Accumulator Double-Up Active",
        summary=(
            f"Futures ${price:.2f} are below the ${contract.double_up_price:.2f} "
            f"double-up trigger on accumulator #{contract.contract_id}."
        ),
        rationale=(
            f"Accrual doubles at this level; review remaining exposure on "
            f"{contract.total_bushels - state.total_bushels_marketed:,.0f} bu.{warning}"
        ),
        context=AccumulatorContext(
            futures_price=price,
            knockout_price=contract.knockout_price,
            double_up_price=contract.double_up_price,
            accumulator_contract_id=contract.contract_id,
            knockout_distance_pct=distance,
            near_knockout=near,
            is_currently_doubled=state.is_currently_doubled,
            bushels_marketed=state.total_bushels_marketed,
            is_estimate=False,
        ),
        current_price=price,
        break_even=contract.base_price,
    )
