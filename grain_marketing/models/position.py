"""
Executed grain contracts and the derived marketing position.

``MarketingPosition.remaining_bushels`` is deliberately signed: an
over-contracted operation reports a negative number.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from grain_marketing.taxonomy.marketing_taxonomy import Commodity, ContractType


class GrainContract(BaseModel):
    """An executed sale/pricing contract counted toward sold bushels.

    Attributes:
        contract_id: DB PK; ``None`` before insertion.
        business_id: Owning business.
        entity_id: Legal entity on the contract.
        commodity: Grain sold.
        crop_year: Crop year the bushels come from.
        contract_type: Cash, basis, HTA, accumulator or futures.
        bushels: Committed bushels.
        price: Agreed price per bushel, if priced.
        delivery_date: Expected delivery.
        is_deleted: Soft-deleted contracts are ignored everywhere.
    """

    model_config = ConfigDict(frozen=True)

    contract_id: Optional[int] = None
    business_id: int
    entity_id: Optional[int] = None
    commodity: Commodity
    crop_year: int
    contract_type: ContractType = ContractType.CASH
    bushels: float = Field(ge=0)
    price: Optional[float] = None
    delivery_date: Optional[date] = None
    is_deleted: bool = False


class MarketingPosition(BaseModel):
    """Sold vs projected state for one commodity/crop year."""

    model_config = ConfigDict(frozen=True)

    commodity: Commodity
    year: int
    total_projected: float
    total_sold: float
    remaining_bushels: float
    percent_sold: float
    target_fraction: float = 0.50
    bushels_to_target: float = Field(ge=0)
    harvest_complete: bool
    average_price: float = 0.0

    @property
    def is_over_contracted(self) -> bool:
        return self.remaining_bushels < 0
