"""
Position tracking: projected production vs contracted bushels.

    total_projected   = Σ production-estimate bushels (acres × bu/acre)
    total_sold        = Σ bushels on non-deleted contracts
    remaining         = total_projected − total_sold      (NOT clamped)
    percent_sold      = total_sold / total_projected      (0 when nothing projected)
    bushels_to_target = max(0, target_fraction × total_projected − total_sold)
    average_price     = bushel-weighted mean over priced contracts (0 when none)

Harvest-complete is a calendar heuristic: a crop year's harvest counts as
complete from the first month of the commodity's harvest window onward
(corn/soybeans September, wheat June) and for every later calendar year.
Pre-harvest target caps on sale size only apply before that point.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable

from grain_marketing.models.costs import ProductionEstimate
from grain_marketing.models.position import GrainContract, MarketingPosition
from grain_marketing.taxonomy.marketing_taxonomy import Commodity
from grain_marketing.utils.time_utils import harvest_start_month

DEFAULT_PRE_HARVEST_TARGET = 0.50


def is_harvest_complete(commodity: Commodity, crop_year: int, as_of: date) -> bool:
    if as_of.year > crop_year:
        return True
    if as_of.year < crop_year:
        return False
    return as_of.month >= harvest_start_month(commodity)


def build_position(
    commodity: Commodity,
    year: int,
    estimates: Iterable[ProductionEstimate],
    contracts: Iterable[GrainContract],
    as_of: date,
    target_fraction: float = DEFAULT_PRE_HARVEST_TARGET,
) -> MarketingPosition:
    """Build the marketing position for one commodity/crop year.

    Estimates and contracts for other commodities or years are ignored, as
    are soft-deleted contracts.

    Args:
        commodity: Commodity to track.
        year: Crop year.
        estimates: Production estimates (any entity).
        contracts: Executed contracts (any entity).
        as_of: Calendar date used for the harvest-complete heuristic.
        target_fraction: Pre-harvest sale target as a fraction of projected.

    Returns:
        ``MarketingPosition``; remaining bushels may be negative.
    """
    projected = sum(
        e.total_bushels for e in estimates if e.commodity == commodity and e.year == year
    )
    live = [
        c for c in contracts
        if c.commodity == commodity and c.crop_year == year and not c.is_deleted
    ]
    sold = sum(c.bushels for c in live)

    priced = [c for c in live if c.price is not None and c.bushels > 0]
    priced_bushels = sum(c.bushels for c in priced)
    average_price = (
        sum(c.bushels * c.price for c in priced) / priced_bushels  # type: ignore[operator]
        if priced_bushels > 0
        else 0.0
    )

    return MarketingPosition(
        commodity=commodity,
        year=year,
        total_projected=projected,
        total_sold=sold,
        remaining_bushels=projected - sold,
        percent_sold=sold / projected if projected > 0 else 0.0,
        target_fraction=target_fraction,
        bushels_to_target=max(0.0, target_fraction * projected - sold),
        harvest_complete=is_harvest_complete(commodity, year, as_of),
        average_price=average_price,
    )
