"""
Loan cost allocation to farms for one crop year.

  - Land loans are tied to a specific farm and pass through as-is.
  - Operating loan interest is a business-wide figure, spread across farms
    by acreage share.
  - Equipment loans are charged per acre.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from grain_marketing.models.costs import FarmRecord, LoanAllocation


@dataclass(frozen=True)
class LandLoanCharge:
    farm_id: int
    annual_interest: float
    annual_principal: float


def allocate_loans(
    year: int,
    farms: Iterable[FarmRecord],
    land_loans: Iterable[LandLoanCharge] = (),
    operating_interest_total: float = 0.0,
    equipment_interest_per_acre: float = 0.0,
    equipment_principal_per_acre: float = 0.0,
) -> list[LoanAllocation]:
    """Build one ``LoanAllocation`` per farm planted in ``year``.

    Farms with zero acres receive no operating interest share; when the
    whole operation has zero acres nothing is allocated.
    """
    year_farms = [f for f in farms if f.year == year]
    total_acres = sum(f.acres for f in year_farms)

    land_by_farm: dict[int, tuple[float, float]] = {}
    for charge in land_loans:
        interest, principal = land_by_farm.get(charge.farm_id, (0.0, 0.0))
        land_by_farm[charge.farm_id] = (
            interest + charge.annual_interest,
            principal + charge.annual_principal,
        )

    allocations: list[LoanAllocation] = []
    for farm in year_farms:
        share = farm.acres / total_acres if total_acres > 0 else 0.0
        land_interest, land_principal = land_by_farm.get(farm.farm_id, (0.0, 0.0))
        allocations.append(
            LoanAllocation(
                farm_id=farm.farm_id,
                year=year,
                land_loan_interest=land_interest,
                land_loan_principal=land_principal,
                operating_loan_interest=operating_interest_total * share,
                equipment_loan_interest=equipment_interest_per_acre * farm.acres,
                equipment_loan_principal=equipment_principal_per_acre * farm.acres,
            )
        )
    return allocations
