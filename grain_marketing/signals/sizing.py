"""
Sale sizing.

New crop::

    bushels = min(desired_fraction × remaining,
                  remaining,
                  max_single_sale_fraction × projected,
                  bushels_to_target            (only before harvest completes))
    floored at 0

Old crop sizes against the unpriced inventory instead of a position.
A zero result still yields a signal: the recommendation stands, there is
just nothing left to sell.
"""

from __future__ import annotations

from grain_marketing.models.position import MarketingPosition


def clamp_fraction(value: float) -> float:
    return max(0.0, min(1.0, value))


def recommend_bushels(
    desired_fraction: float,
    position: MarketingPosition,
    max_single_sale_fraction: float,
) -> float:
    remaining = position.remaining_bushels
    caps = [
        clamp_fraction(desired_fraction) * remaining,
        remaining,
        max_single_sale_fraction * position.total_projected,
    ]
    if not position.harvest_complete:
        caps.append(position.bushels_to_target)
    return max(0.0, min(caps))


def recommend_old_crop_bushels(
    desired_fraction: float,
    unpriced_bushels: float,
    max_single_sale_fraction: float,
) -> float:
    return max(
        0.0,
        min(
            clamp_fraction(desired_fraction) * unpriced_bushels,
            max_single_sale_fraction * unpriced_bushels,
        ),
    )
