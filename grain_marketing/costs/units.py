"""
Unit conversion at the cost input boundary.

Every usage line is reduced to a quantity in the unit its product is priced
in, so the aggregator only ever multiplies quantity × unit price.

Fertilizer conversions go through pounds of product:

  - ``LB``    → pounds as entered
  - ``GAL``   → gallons × ``lbs_per_gallon``
  - ``LBS_N`` → commercial product: lbs N ÷ (N% / 100);
                manure: lbs N ÷ N content per pricing unit, which is already
                a quantity in the pricing unit (manure is priced per load,
                per ton or per 1,000 gal, and its analysis is given on that
                basis rather than as a weight percentage)

then from pounds to the pricing unit (``TON`` = 2,000 lb, ``GAL`` via
``lbs_per_gallon``). Chemical rates convert to gallons.
"""

from __future__ import annotations

from typing import Optional

from grain_marketing.taxonomy.marketing_taxonomy import (
    ApplicationRateUnit,
    FertilizerUnit,
    LiquidUnit,
)

LBS_PER_TON = 2000.0

GALLON_FACTORS: dict[LiquidUnit, float] = {
    LiquidUnit.GAL: 1.0,
    LiquidUnit.QUART: 1.0 / 4.0,
    LiquidUnit.PINT: 1.0 / 8.0,
    LiquidUnit.OZ: 1.0 / 128.0,
}


def to_gallons(amount: float, unit: LiquidUnit) -> float:
    return amount * GALLON_FACTORS[unit]


def fertilizer_quantity(
    amount: float,
    rate_unit: ApplicationRateUnit,
    pricing_unit: FertilizerUnit,
    nitrogen_pct: float = 0.0,
    lbs_per_gallon: Optional[float] = None,
    is_manure: bool = False,
) -> float:
    """Convert an applied fertilizer amount into the product's pricing unit.

    Args:
        amount: Amount applied, in ``rate_unit``.
        rate_unit: Unit of ``amount``.
        pricing_unit: Unit the product's price is quoted in.
        nitrogen_pct: Commercial products: N as % of product weight.
            Manure: lbs N per pricing unit.
        lbs_per_gallon: Density for liquid products.
        is_manure: Whether N content is on a per-unit nutrient basis.

    Returns:
        Quantity in ``pricing_unit``.

    Raises:
        ValueError: If the conversion needs a density or N content the
            product does not define.
    """
    if amount == 0:
        return 0.0

    if rate_unit == ApplicationRateUnit.LBS_N:
        if nitrogen_pct <= 0:
            raise ValueError("Rate entered as lbs N but product has no nitrogen content.")
        if is_manure:
            return amount / nitrogen_pct
        pounds = amount / (nitrogen_pct / 100.0)
    elif rate_unit == ApplicationRateUnit.GAL:
        if pricing_unit == FertilizerUnit.GAL:
            return amount
        pounds = amount * _require_density(lbs_per_gallon)
    else:
        pounds = amount

    if pricing_unit == FertilizerUnit.LB:
        return pounds
    if pricing_unit == FertilizerUnit.TON:
        return pounds / LBS_PER_TON
    return pounds / _require_density(lbs_per_gallon)


def _require_density(lbs_per_gallon: Optional[float]) -> float:
    if lbs_per_gallon is None or lbs_per_gallon <= 0:
        raise ValueError("Liquid conversion requires a positive lbs_per_gallon.")
    return lbs_per_gallon
