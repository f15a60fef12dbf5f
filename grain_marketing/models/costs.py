"""
Cost-side domain models: farm records, input usage lines, entity splits,
loan allocations and the derived break-even cost.

Input models validate at construction time, so a farm that reaches the
aggregator is internally consistent: every usage line can be costed, splits
sum to 100 %, nothing is negative. ``BreakEvenCost`` and the roll-up models
are derived values and are never persisted.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from grain_marketing.costs.units import fertilizer_quantity, to_gallons
from grain_marketing.taxonomy.marketing_taxonomy import (
    ApplicationRateUnit,
    Commodity,
    FertilizerUnit,
    LiquidUnit,
    OtherCostType,
)

SPLIT_TOLERANCE_PCT = 0.01


def _applied_acres(acres_applied: Optional[float], farm_acres: float) -> float:
    return acres_applied if acres_applied is not None else farm_acres


# ── Products ───────────────────────────────────────────────────────────────────


class FertilizerProduct(BaseModel):
    """A fertilizer product and its price.

    Attributes:
        name: Product name, e.g. ``"UREA 46-0-0"``.
        price_per_unit: Price per ``unit``.
        unit: Pricing unit.
        nitrogen_pct: N as % of product weight; for manure, lbs N per unit.
        phosphorus_pct: P2O5 %, informational.
        potassium_pct: K2O %, informational.
        sulfur_pct: S %, informational.
        lbs_per_gallon: Density for liquids; required for gal↔lb conversion.
        is_manure: Nutrient content is stated per pricing unit.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    price_per_unit: float = Field(ge=0)
    unit: FertilizerUnit = FertilizerUnit.LB
    nitrogen_pct: float = Field(default=0.0, ge=0)
    phosphorus_pct: float = Field(default=0.0, ge=0)
    potassium_pct: float = Field(default=0.0, ge=0)
    sulfur_pct: float = Field(default=0.0, ge=0)
    lbs_per_gallon: Optional[float] = Field(default=None, gt=0)
    is_manure: bool = False

    @model_validator(mode="after")
    def validate_percentages(self) -> "FertilizerProduct":
        if not self.is_manure and self.nitrogen_pct > 100:
            raise ValueError(f"nitrogen_pct must be <= 100 for '{self.name}'.")
        return self


class ChemicalProduct(BaseModel):
    """A crop-protection chemical priced per gallon (or per dry unit)."""

    model_config = ConfigDict(frozen=True)

    name: str
    price_per_unit: float = Field(ge=0)
    is_liquid: bool = True


class SeedProduct(BaseModel):
    """A seed hybrid/variety priced per bag."""

    model_config = ConfigDict(frozen=True)

    name: str
    price_per_bag: float = Field(ge=0)
    seeds_per_bag: float = Field(default=80_000, gt=0)


# ── Usage lines ────────────────────────────────────────────────────────────────


class FertilizerUsage(BaseModel):
    """One fertilizer application on a farm.

    Either ``amount_used`` (already in the product's pricing unit) or a
    ``rate_per_acre`` in ``rate_unit`` applied over ``acres_applied``
    (defaulting to the whole farm) must be given.
    """

    model_config = ConfigDict(frozen=True)

    product: FertilizerProduct
    amount_used: Optional[float] = Field(default=None, ge=0)
    rate_per_acre: Optional[float] = Field(default=None, ge=0)
    rate_unit: ApplicationRateUnit = ApplicationRateUnit.LB
    acres_applied: Optional[float] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def validate_quantity_source(self) -> "FertilizerUsage":
        if self.amount_used is None and self.rate_per_acre is None:
            raise ValueError(
                f"Fertilizer usage of '{self.product.name}' needs amount_used or rate_per_acre."
            )
        if self.amount_used is None:
            # raises ValueError for unconvertible units
            self.quantity(farm_acres=1.0)
        return self

    def quantity(self, farm_acres: float) -> float:
        """Quantity in the product's pricing unit."""
        if self.amount_used is not None:
            return self.amount_used
        assert self.rate_per_acre is not None
        applied = self.rate_per_acre * _applied_acres(self.acres_applied, farm_acres)
        return fertilizer_quantity(
            applied,
            rate_unit=self.rate_unit,
            pricing_unit=self.product.unit,
            nitrogen_pct=self.product.nitrogen_pct,
            lbs_per_gallon=self.product.lbs_per_gallon,
            is_manure=self.product.is_manure,
        )

    def cost(self, farm_acres: float) -> float:
        return self.quantity(farm_acres) * self.product.price_per_unit


class ChemicalUsage(BaseModel):
    """One chemical pass; liquid rates are converted to gallons."""

    model_config = ConfigDict(frozen=True)

    product: ChemicalProduct
    amount_used: Optional[float] = Field(default=None, ge=0)
    rate_per_acre: Optional[float] = Field(default=None, ge=0)
    rate_unit: LiquidUnit = LiquidUnit.GAL
    acres_applied: Optional[float] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def validate_quantity_source(self) -> "ChemicalUsage":
        if self.amount_used is None and self.rate_per_acre is None:
            raise ValueError(
                f"Chemical usage of '{self.product.name}' needs amount_used or rate_per_acre."
            )
        return self

    def quantity(self, farm_acres: float) -> float:
        if self.amount_used is not None:
            return self.amount_used
        assert self.rate_per_acre is not None
        applied = self.rate_per_acre * _applied_acres(self.acres_applied, farm_acres)
        return to_gallons(applied, self.rate_unit) if self.product.is_liquid else applied

    def cost(self, farm_acres: float) -> float:
        return self.quantity(farm_acres) * self.product.price_per_unit


class SeedUsage(BaseModel):
    """Seed planted; ``rate_per_acre`` is the population in seeds per acre."""

    model_config = ConfigDict(frozen=True)

    product: SeedProduct
    bags_used: Optional[float] = Field(default=None, ge=0)
    rate_per_acre: Optional[float] = Field(default=None, ge=0)
    acres_applied: Optional[float] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def validate_quantity_source(self) -> "SeedUsage":
        if self.bags_used is None and self.rate_per_acre is None:
            raise ValueError(
                f"Seed usage of '{self.product.name}' needs bags_used or rate_per_acre."
            )
        return self

    def bags(self, farm_acres: float) -> float:
        if self.bags_used is not None:
            return self.bags_used
        assert self.rate_per_acre is not None
        seeds = self.rate_per_acre * _applied_acres(self.acres_applied, farm_acres)
        return seeds / self.product.seeds_per_bag

    def cost(self, farm_acres: float) -> float:
        return self.bags(farm_acres) * self.product.price_per_bag


class OtherCost(BaseModel):
    """A flat or per-acre cost such as cash rent or crop insurance."""

    model_config = ConfigDict(frozen=True)

    description: str = ""
    cost_type: OtherCostType = OtherCostType.OTHER
    amount: float = Field(ge=0)
    is_per_acre: bool = True

    def total(self, farm_acres: float) -> float:
        return self.amount * farm_acres if self.is_per_acre else self.amount


class EntitySplit(BaseModel):
    """Percentage of a farm attributed to one legal entity."""

    model_config = ConfigDict(frozen=True)

    entity_id: int
    percentage: float = Field(gt=0, le=100)

    @property
    def fraction(self) -> float:
        return self.percentage / 100.0


class LoanAllocation(BaseModel):
    """Loan interest and principal charged to one farm for one year."""

    model_config = ConfigDict(frozen=True)

    farm_id: int
    year: int
    land_loan_interest: float = Field(default=0.0, ge=0)
    land_loan_principal: float = Field(default=0.0, ge=0)
    operating_loan_interest: float = Field(default=0.0, ge=0)
    equipment_loan_interest: float = Field(default=0.0, ge=0)
    equipment_loan_principal: float = Field(default=0.0, ge=0)


class ProductionEstimate(BaseModel):
    """Expected production for an entity/commodity/year."""

    model_config = ConfigDict(frozen=True)

    estimate_id: Optional[int] = None
    entity_id: int
    commodity: Commodity
    year: int
    acres: float = Field(ge=0)
    bushels_per_acre: float = Field(ge=0)

    @property
    def total_bushels(self) -> float:
        return self.acres * self.bushels_per_acre


class FarmRecord(BaseModel):
    """A field/farm unit with its cost inputs for one crop year.

    Attributes:
        farm_id: DB PK.
        name: Display name.
        primary_entity_id: Entity credited with 100 % when no splits exist.
        commodity: Crop grown.
        year: Crop year.
        acres: Planted acres.
        projected_yield: Farm-specific yield (bu/acre); overrides estimates.
        splits: Percentage attribution to legal entities; must sum to 100.
    """

    model_config = ConfigDict(frozen=True)

    farm_id: int
    name: str
    primary_entity_id: int
    commodity: Commodity
    year: int
    acres: float = Field(ge=0)
    projected_yield: Optional[float] = Field(default=None, ge=0)
    fertilizer_usage: list[FertilizerUsage] = []
    chemical_usage: list[ChemicalUsage] = []
    seed_usage: list[SeedUsage] = []
    other_costs: list[OtherCost] = []
    splits: list[EntitySplit] = []

    @field_validator("splits")
    @classmethod
    def validate_splits(cls, v: list[EntitySplit]) -> list[EntitySplit]:
        if not v:
            return v
        total = sum(s.percentage for s in v)
        if abs(total - 100.0) > SPLIT_TOLERANCE_PCT:
            raise ValueError(f"Entity splits must sum to 100%, got {total:.2f}%.")
        if len({s.entity_id for s in v}) != len(v):
            raise ValueError("Entity splits must not repeat an entity.")
        return v


# ── Derived ────────────────────────────────────────────────────────────────────


class BreakEvenCost(BaseModel):
    """Break-even economics for one farm, or one entity's share of a farm.

    ``split_fraction`` is 1.0 for the whole farm. All buckets, ``acres`` and
    ``expected_bushels`` are already multiplied by it.
    """

    model_config = ConfigDict(frozen=True)

    farm_id: int
    farm_name: str = ""
    entity_id: int
    commodity: Commodity
    year: int
    split_fraction: float = 1.0
    acres: float
    fertilizer_cost: float = 0.0
    chemical_cost: float = 0.0
    seed_cost: float = 0.0
    land_rent: float = 0.0
    insurance: float = 0.0
    trucking: float = 0.0
    other_costs: float = 0.0
    land_loan_interest: float = 0.0
    land_loan_principal: float = 0.0
    operating_loan_interest: float = 0.0
    equipment_loan_interest: float = 0.0
    equipment_loan_principal: float = 0.0
    total_cost: float
    cost_per_acre: float
    expected_yield: float
    expected_bushels: float
    break_even_price: float = Field(ge=0)


COST_BUCKETS: tuple[str, ...] = (
    "fertilizer_cost", "chemical_cost", "seed_cost", "land_rent", "insurance",
    "trucking", "other_costs", "land_loan_interest", "land_loan_principal",
    "operating_loan_interest", "equipment_loan_interest", "equipment_loan_principal",
)


class BreakEvenRollup(BaseModel):
    """Summed break-even for an entity/commodity or a whole commodity."""

    model_config = ConfigDict(frozen=True)

    commodity: Commodity
    year: int
    entity_id: Optional[int] = None
    farm_count: int
    acres: float
    total_cost: float
    expected_bushels: float
    cost_per_acre: float
    break_even_price: float = Field(ge=0)
