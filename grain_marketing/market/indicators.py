"""
Technical indicators over a chronological list of settlement prices.

  - ``sma``          : simple moving average of the last N prices.
  - ``rsi``          : 14-period relative strength index (simple averages).
                        Fewer than period + 1 prices → 50; no losses → 100.
  - ``volatility``   : population std / mean over the last 20 prices.
  - ``trend``        : UP if price > MA20 > MA50, DOWN if price < MA20 < MA50.

``analyze_trend`` needs at least 20 prices; with fewer it returns the
neutral default (NEUTRAL, RSI 50, volatility 0.02). MA50 uses however many
prices are available up to 50.

All functions are pure; prices are oldest first.
"""

from __future__ import annotations

import math
from typing import Sequence

from grain_marketing.models.market import TrendAnalysis
from grain_marketing.taxonomy.marketing_taxonomy import TrendDirection

RSI_PERIOD = 14
MIN_TREND_PRICES = 20
DEFAULT_VOLATILITY = 0.02


def sma(prices: Sequence[float], window: int) -> float:
    if not prices or window < 1:
        return 0.0
    tail = prices[-window:]
    return sum(tail) / len(tail)


def rsi(prices: Sequence[float], period: int = RSI_PERIOD) -> float:
    if len(prices) < period + 1:
        return 50.0

    recent = prices[-(period + 1):]
    gains = 0.0
    losses = 0.0
    for prev, cur in zip(recent, recent[1:]):
        change = cur - prev
        if change > 0:
            gains += change
        else:
            losses -= change

    avg_gain = gains / period
    avg_loss = losses / period
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


def volatility(prices: Sequence[float], window: int = 20) -> float:
    tail = prices[-window:]
    if len(tail) < 2:
        return DEFAULT_VOLATILITY
    mean = sum(tail) / len(tail)
    if mean <= 0:
        return DEFAULT_VOLATILITY
    variance = sum((p - mean) ** 2 for p in tail) / len(tail)
    return math.sqrt(variance) / mean


def trend_direction(price: float, ma_20: float, ma_50: float) -> TrendDirection:
    if price > ma_20 > ma_50:
        return TrendDirection.UP
    if price < ma_20 < ma_50:
        return TrendDirection.DOWN
    return TrendDirection.NEUTRAL


def analyze_trend(prices: Sequence[float]) -> TrendAnalysis:
    """Compute a ``TrendAnalysis`` from settlement prices (oldest first)."""
    if len(prices) < MIN_TREND_PRICES:
        last = prices[-1] if prices else 0.0
        return TrendAnalysis(ma_20=last, ma_50=last)

    ma_20 = sma(prices, 20)
    ma_50 = sma(prices, min(50, len(prices)))
    return TrendAnalysis(
        direction=trend_direction(prices[-1], ma_20, ma_50),
        rsi=rsi(prices),
        ma_20=ma_20,
        ma_50=ma_50,
        volatility=volatility(prices),
    )
