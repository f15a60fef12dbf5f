"""
Marketing taxonomy for grain sale decisions.

Dimensions that describe every recommendation and contract:
  - ``Commodity``      : which grain is being marketed.
  - ``SignalType``     : which marketing instrument the recommendation uses.
  - ``SignalStrength`` : the ordered decision-ladder outcome.
  - ``SignalStatus``   : lifecycle state of a persisted signal.

Supporting enums cover risk appetite, accumulator variants, market trend
and outlook labels, news urgency, and cost bucket types.

Usage example::

    from grain_marketing.taxonomy.marketing_taxonomy import Commodity, SignalType

    commodity = Commodity.CORN
    signal_type = SignalType.CASH_SALE

This module has NO imports from any other ``grain_marketing`` package.
"""

from enum import StrEnum


class Commodity(StrEnum):
    """Grain commodities the engine can market."""

    CORN = "corn"
    SOYBEANS = "soybeans"
    WHEAT = "wheat"


class SignalType(StrEnum):
    """Marketing instrument a signal recommends."""

    CASH_SALE = "cash_sale"
    """Spot sale of physical grain at the local cash price."""

    BASIS_CONTRACT = "basis_contract"
    """Lock the basis now, price futures later."""

    HTA = "hta"
    """Hedge-to-arrive: lock futures now, leave basis open."""

    ACCUMULATOR_STRATEGY = "accumulator_strategy"
    """Action on an accumulator contract the business already holds."""

    ACCUMULATOR_INQUIRY = "accumulator_inquiry"
    """Ask the elevator for accumulator pricing on unsold bushels."""

    CALL_OPTION = "call_option"
    """Buy calls against sold bushels to keep upside exposure."""

    TRADE_POLICY = "trade_policy"
    """Respond to tariff or trade-deal news."""

    BREAKING_NEWS = "breaking_news"
    """Respond to breaking market news."""


class SignalStrength(StrEnum):
    """Ordered outcome of a strength decision ladder."""

    STRONG_BUY = "strong_buy"
    BUY = "buy"
    HOLD = "hold"
    SELL = "sell"
    STRONG_SELL = "strong_sell"


ACTIONABLE_STRENGTHS = frozenset({SignalStrength.STRONG_BUY, SignalStrength.BUY})


class SignalStatus(StrEnum):
    """Lifecycle state of a persisted signal."""

    ACTIVE = "active"
    TRIGGERED = "triggered"
    """User acted on the signal (terminal)."""

    DISMISSED = "dismissed"
    """User rejected the signal (terminal)."""

    EXPIRED = "expired"
    """Expiration timestamp passed while still active (terminal)."""


TERMINAL_STATUSES = frozenset({
    SignalStatus.TRIGGERED, SignalStatus.DISMISSED, SignalStatus.EXPIRED,
})


class RiskTolerance(StrEnum):
    """Business risk appetite; scales every default threshold."""

    CONSERVATIVE = "conservative"
    MODERATE = "moderate"
    AGGRESSIVE = "aggressive"


class AccumulatorType(StrEnum):
    """Accumulator contract variant."""

    DAILY = "daily"
    """Accrues every trading day; doubles daily when below the trigger."""

    WEEKLY = "weekly"
    """Accrues once a week on the settlement weekday."""

    EURO = "euro"
    """Accrues daily; doubling is decided once, at expiration."""


class ContractType(StrEnum):
    """Executed grain contract type counted toward sold bushels."""

    CASH = "cash"
    BASIS = "basis"
    HTA = "hta"
    ACCUMULATOR = "accumulator"
    FUTURES = "futures"


class TrendDirection(StrEnum):
    UP = "up"
    DOWN = "down"
    NEUTRAL = "neutral"


class Outlook(StrEnum):
    """Directional market view, shared by fundamental, seasonal and news inputs."""

    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class MarketingImplication(StrEnum):
    """Historical seasonal tendency for a calendar month."""

    FAVORABLE_SELL = "favorable_sell"
    UNFAVORABLE_SELL = "unfavorable_sell"
    NEUTRAL = "neutral"


class NewsUrgency(StrEnum):
    IMMEDIATE = "immediate"
    SOON = "soon"
    MONITOR = "monitor"


class BasisStrength(StrEnum):
    STRONG = "strong"
    AVERAGE = "average"
    WEAK = "weak"


class OtherCostType(StrEnum):
    """Bucket a flat or per-acre cost lands in on the break-even sheet."""

    LAND_RENT = "land_rent"
    INSURANCE = "insurance"
    TRUCKING = "trucking"
    OTHER = "other"


class FertilizerUnit(StrEnum):
    """Unit a fertilizer product is priced in."""

    LB = "lb"
    TON = "ton"
    GAL = "gal"


class ApplicationRateUnit(StrEnum):
    """Unit an applied fertilizer rate is entered in."""

    LB = "lb"
    GAL = "gal"
    LBS_N = "lbs_n"
    """Pounds of actual nitrogen; converted through the product's N content."""


class LiquidUnit(StrEnum):
    """Chemical usage units; all convert to gallons."""

    GAL = "gal"
    QUART = "quart"
    PINT = "pint"
    OZ = "oz"
