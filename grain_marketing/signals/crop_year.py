"""
Crop-year classification of a futures contract month.

    new-crop month → crop year = contract year
    old-crop month → crop year = contract year − 1
    other month    → current year once the calendar is past the harvest
                     start month, else the previous year

A crop year is "new crop" when it is the current calendar year or later.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from grain_marketing.taxonomy.marketing_taxonomy import Commodity
from grain_marketing.utils.time_utils import harvest_start_month

NEW_CROP_MONTHS: dict[Commodity, frozenset[str]] = {
    Commodity.CORN: frozenset({"SEP", "DEC"}),
    Commodity.SOYBEANS: frozenset({"AUG", "SEP", "NOV"}),
    Commodity.WHEAT: frozenset({"JUL", "SEP", "DEC"}),
}

OLD_CROP_MONTHS: dict[Commodity, frozenset[str]] = {
    Commodity.CORN: frozenset({"MAR", "MAY", "JUL"}),
    Commodity.SOYBEANS: frozenset({"JAN", "MAR", "MAY", "JUL"}),
    Commodity.WHEAT: frozenset({"MAR", "MAY"}),
}


@dataclass(frozen=True)
class CropYearInfo:
    crop_year: int
    is_new_crop: bool


def classify_crop_year(
    commodity: Commodity,
    contract_month: str,
    contract_year: int,
    today: date,
) -> CropYearInfo:
    month = contract_month.upper()
    if month in NEW_CROP_MONTHS[commodity]:
        crop_year = contract_year
    elif month in OLD_CROP_MONTHS[commodity]:
        crop_year = contract_year - 1
    elif today.month > harvest_start_month(commodity):
        crop_year = today.year
    else:
        crop_year = today.year - 1
    return CropYearInfo(crop_year=crop_year, is_new_crop=crop_year >= today.year)
