"""
Accumulator contract models.

``AccumulatorContract`` holds the immutable contract terms and is validated
at construction: rates are non-negative, the knockout sits strictly below
the double-up trigger, and the contract window is non-empty.

``AccumulatorState`` is the mutable-by-replacement running state (totals,
doubled flag, knockout). The state machine returns new instances; it never
edits one in place.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from grain_marketing.taxonomy.marketing_taxonomy import AccumulatorType, Commodity


class AccumulatorContract(BaseModel):
    """Terms of an accumulator contract.

    Attributes:
        contract_id: DB PK; ``None`` before insertion.
        business_id: Owning business.
        entity_id: Optional legal entity.
        commodity: Underlying commodity.
        accumulator_type: DAILY, WEEKLY or EURO.
        contract_month: Futures month the contract references, e.g. ``"DEC"``.
        start_date / end_date: Inclusive accrual window.
        total_bushels: Committed bushels; accrual caps here.
        base_price: Contract price per bushel.
        knockout_price: At or below this settlement the contract terminates.
        double_up_price: At or below this settlement accrual doubles.
        daily_bushels: Per-day accrual rate.
        weekly_bushels: Per-week accrual rate (WEEKLY only); defaults to
            ``daily_bushels × weekly_rate_multiplier`` when unset.
        is_active: ``False`` once closed out by the user.
    """

    model_config = ConfigDict(frozen=True)

    contract_id: Optional[int] = None
    business_id: int
    entity_id: Optional[int] = None
    commodity: Commodity
    accumulator_type: AccumulatorType = AccumulatorType.DAILY
    contract_month: str = ""
    start_date: date
    end_date: date
    total_bushels: float = Field(gt=0)
    base_price: float = Field(gt=0)
    knockout_price: float = Field(ge=0)
    double_up_price: float = Field(gt=0)
    daily_bushels: float = Field(ge=0)
    weekly_bushels: Optional[float] = Field(default=None, ge=0)
    is_active: bool = True

    @model_validator(mode="after")
    def validate_terms(self) -> "AccumulatorContract":
        if self.knockout_price >= self.double_up_price:
            raise ValueError(
                f"knockout_price ({self.knockout_price}) must be below "
                f"double_up_price ({self.double_up_price})."
            )
        if self.start_date > self.end_date:
            raise ValueError(
                f"start_date ({self.start_date}) must be <= end_date ({self.end_date})."
            )
        return self

    def weekly_rate(self, multiplier: float) -> float:
        if self.weekly_bushels is not None:
            return self.weekly_bushels
        return self.daily_bushels * multiplier

    def is_in_window(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


class AccumulatorState(BaseModel):
    """Running totals for one contract."""

    model_config = ConfigDict(frozen=True)

    contract_id: Optional[int] = None
    total_bushels_marketed: float = Field(default=0.0, ge=0)
    total_doubled_bushels: float = Field(default=0.0, ge=0)
    is_currently_doubled: bool = False
    knockout_reached: bool = False
    knockout_date: Optional[date] = None
    last_processed_date: Optional[date] = None
    euro_expiration_processed: bool = False


class AccumulatorDailyEntry(BaseModel):
    """One accrual day; unique per (contract_id, entry_date)."""

    model_config = ConfigDict(frozen=True)

    entry_id: Optional[int] = None
    contract_id: Optional[int] = None
    entry_date: date
    bushels_marketed: float = Field(ge=0)
    market_price: float
    was_doubled: bool = False
    notes: str = ""
