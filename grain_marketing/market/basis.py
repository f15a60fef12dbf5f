"""
Basis helpers.

    percentile = share of history strictly below the current basis × 100
                 (50 when there is no history)
    strength   = STRONG  if basis > −0.10
                 AVERAGE if basis > −0.20
                 WEAK    otherwise
"""

from __future__ import annotations

from typing import Sequence

from grain_marketing.taxonomy.marketing_taxonomy import BasisStrength

BASIS_LOOKBACK_DAYS = 365
STRONG_BASIS_ABOVE = -0.10
AVERAGE_BASIS_ABOVE = -0.20


def basis_percentile(current: float, history: Sequence[float]) -> float:
    if not history:
        return 50.0
    below = sum(1 for b in history if b < current)
    return below / len(history) * 100.0


def basis_strength(basis: float) -> BasisStrength:
    if basis > STRONG_BASIS_ABOVE:
        return BasisStrength.STRONG
    if basis > AVERAGE_BASIS_ABOVE:
        return BasisStrength.AVERAGE
    return BasisStrength.WEAK
