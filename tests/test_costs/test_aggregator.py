"""
Tests for grain_marketing/costs/aggregator.py.

What we test
------------
compute_farm_break_even():
  - 500 acres × 180 bu/acre at $450,000 total → $5.00/bu.
  - Cost buckets: fertilizer, chemical, seed, other costs by type, loans.
  - Yield precedence: farm projected yield > production estimate > default.
  - Zero acres / zero bushels → cost per acre and break-even are 0, no error.

apply_entity_splits():
  - Shares scale every additive field and sum back to the farm total.
  - Per-bushel break-even is unchanged by a split.
  - No splits → the farm itself, attributed to the primary entity.

CostAggregator.build():
  - Entity and commodity rollups; farms from other years ignored.
  - break_even_for() is 0 for an unplanted commodity.
"""

from __future__ import annotations

import pytest

from grain_marketing.costs.aggregator import (
    CostAggregator,
    apply_entity_splits,
    compute_farm_break_even,
)
from grain_marketing.models.costs import (
    ChemicalProduct,
    ChemicalUsage,
    EntitySplit,
    FarmRecord,
    FertilizerProduct,
    FertilizerUsage,
    LoanAllocation,
    OtherCost,
    ProductionEstimate,
    SeedProduct,
    SeedUsage,
)
from grain_marketing.taxonomy.marketing_taxonomy import (
    ApplicationRateUnit,
    Commodity,
    LiquidUnit,
    OtherCostType,
)

DEFAULT_YIELDS = {Commodity.CORN: 180.0, Commodity.SOYBEANS: 55.0, Commodity.WHEAT: 70.0}


def _farm(**overrides) -> FarmRecord:
    fields = dict(
        farm_id=1,
        name="North 80",
        primary_entity_id=10,
        commodity=Commodity.CORN,
        year=2025,
        acres=100.0,
    )
    fields.update(overrides)
    return FarmRecord(**fields)


class TestComputeFarmBreakEven:
    def test_five_hundred_acre_example(self, sample_farm):
        cost = compute_farm_break_even(sample_farm)
        assert cost.total_cost == pytest.approx(450_000.0)
        assert cost.expected_bushels == pytest.approx(90_000.0)
        assert cost.break_even_price == pytest.approx(5.00)
        assert cost.cost_per_acre == pytest.approx(900.0)
        assert cost.entity_id == sample_farm.primary_entity_id
        assert cost.split_fraction == 1.0

    def test_buckets(self):
        farm = _farm(
            projected_yield=200.0,
            fertilizer_usage=[
                FertilizerUsage(
                    product=FertilizerProduct(name="UREA 46-0-0", price_per_unit=0.40, nitrogen_pct=46),
                    rate_per_acre=46.0,
                    rate_unit=ApplicationRateUnit.LBS_N,
                )
            ],
            chemical_usage=[
                ChemicalUsage(
                    product=ChemicalProduct(name="Glyphosate", price_per_unit=20.0),
                    rate_per_acre=32.0,
                    rate_unit=LiquidUnit.OZ,
                )
            ],
            seed_usage=[
                SeedUsage(
                    product=SeedProduct(name="P1197", price_per_bag=300.0, seeds_per_bag=80_000),
                    rate_per_acre=32_000.0,
                )
            ],
            other_costs=[
                OtherCost(cost_type=OtherCostType.LAND_RENT, amount=250.0),
                OtherCost(cost_type=OtherCostType.INSURANCE, amount=25.0),
                OtherCost(cost_type=OtherCostType.TRUCKING, amount=1_000.0, is_per_acre=False),
            ],
        )
        loan = LoanAllocation(
            farm_id=1,
            year=2025,
            land_loan_interest=2_000.0,
            operating_loan_interest=500.0,
        )

        cost = compute_farm_break_even(farm, loan=loan)

        # 46 lbs N / 46 % = 100 lb product/acre × 100 acres × $0.40
        assert cost.fertilizer_cost == pytest.approx(4_000.0)
        # 32 oz × 100 acres = 25 gal × $20
        assert cost.chemical_cost == pytest.approx(500.0)
        # 3.2M seeds / 80k = 40 bags × $300
        assert cost.seed_cost == pytest.approx(12_000.0)
        assert cost.land_rent == pytest.approx(25_000.0)
        assert cost.insurance == pytest.approx(2_500.0)
        assert cost.trucking == pytest.approx(1_000.0)
        assert cost.land_loan_interest == pytest.approx(2_000.0)
        assert cost.operating_loan_interest == pytest.approx(500.0)
        assert cost.total_cost == pytest.approx(47_500.0)
        assert cost.break_even_price == pytest.approx(47_500.0 / 20_000.0)

    def test_farm_yield_beats_estimate_and_default(self):
        farm = _farm(projected_yield=150.0)
        cost = compute_farm_break_even(farm, production_yield=170.0, default_yield=180.0)
        assert cost.expected_yield == 150.0

    def test_estimate_beats_default(self):
        cost = compute_farm_break_even(_farm(), production_yield=170.0, default_yield=180.0)
        assert cost.expected_yield == 170.0

    def test_default_yield_used_last(self):
        cost = compute_farm_break_even(_farm(), default_yield=180.0)
        assert cost.expected_yield == 180.0

    def test_zero_acres_yields_zero_break_even(self):
        farm = _farm(
            acres=0.0,
            other_costs=[OtherCost(cost_type=OtherCostType.OTHER, amount=5_000.0, is_per_acre=False)],
        )
        cost = compute_farm_break_even(farm, default_yield=180.0)
        assert cost.total_cost == pytest.approx(5_000.0)
        assert cost.cost_per_acre == 0.0
        assert cost.expected_bushels == 0.0
        assert cost.break_even_price == 0.0

    def test_zero_yield_yields_zero_break_even(self):
        farm = _farm(other_costs=[OtherCost(amount=100.0)])
        cost = compute_farm_break_even(farm, default_yield=0.0)
        assert cost.break_even_price == 0.0


class TestEntitySplits:
    def test_no_splits_returns_farm(self, sample_farm):
        whole = compute_farm_break_even(sample_farm)
        assert apply_entity_splits(whole, []) == [whole]

    def test_shares_sum_to_farm_total(self, sample_farm):
        whole = compute_farm_break_even(sample_farm)
        splits = [
            EntitySplit(entity_id=1, percentage=33.33),
            EntitySplit(entity_id=2, percentage=33.33),
            EntitySplit(entity_id=3, percentage=33.34),
        ]
        shares = apply_entity_splits(whole, splits)

        assert [s.entity_id for s in shares] == [1, 2, 3]
        assert sum(s.total_cost for s in shares) == pytest.approx(whole.total_cost)
        assert sum(s.acres for s in shares) == pytest.approx(whole.acres)
        assert sum(s.expected_bushels for s in shares) == pytest.approx(whole.expected_bushels)

    def test_split_scales_buckets_not_break_even(self, sample_farm):
        whole = compute_farm_break_even(sample_farm)
        shares = apply_entity_splits(
            whole,
            [EntitySplit(entity_id=1, percentage=60), EntitySplit(entity_id=2, percentage=40)],
        )
        first, second = shares
        assert first.split_fraction == pytest.approx(0.60)
        assert first.total_cost == pytest.approx(270_000.0)
        assert second.land_rent == pytest.approx(whole.land_rent * 0.40)
        assert first.break_even_price == whole.break_even_price
        assert second.break_even_price == whole.break_even_price


class TestCostAggregator:
    def test_rollups_by_entity_and_commodity(self):
        farms = [
            _farm(
                farm_id=1,
                acres=100.0,
                projected_yield=200.0,
                other_costs=[OtherCost(amount=800.0)],
                splits=[
                    EntitySplit(entity_id=10, percentage=50),
                    EntitySplit(entity_id=20, percentage=50),
                ],
            ),
            _farm(
                farm_id=2,
                primary_entity_id=20,
                acres=100.0,
                projected_yield=200.0,
                other_costs=[OtherCost(amount=1_000.0)],
            ),
            _farm(
                farm_id=3,
                commodity=Commodity.SOYBEANS,
                acres=50.0,
                projected_yield=60.0,
                other_costs=[OtherCost(amount=600.0)],
            ),
            _farm(farm_id=4, year=2024, acres=999.0, other_costs=[OtherCost(amount=1.0)]),
        ]

        snapshot = CostAggregator(DEFAULT_YIELDS).build(2025, farms)

        corn = snapshot.by_commodity[Commodity.CORN]
        assert corn.farm_count == 2
        assert corn.acres == pytest.approx(200.0)
        assert corn.total_cost == pytest.approx(180_000.0)
        assert corn.break_even_price == pytest.approx(180_000.0 / 40_000.0)
        assert snapshot.break_even_for(Commodity.SOYBEANS) == pytest.approx(10.0)
        assert snapshot.break_even_for(Commodity.WHEAT) == 0.0

        by_entity = {(r.entity_id, r.commodity): r for r in snapshot.by_entity}
        assert by_entity[(10, Commodity.CORN)].total_cost == pytest.approx(40_000.0)
        assert by_entity[(20, Commodity.CORN)].total_cost == pytest.approx(140_000.0)
        assert by_entity[(20, Commodity.CORN)].farm_count == 2

    def test_production_estimate_yield_for_primary_entity(self):
        farm = _farm(other_costs=[OtherCost(amount=850.0)])
        estimate = ProductionEstimate(
            entity_id=10, commodity=Commodity.CORN, year=2025, acres=100.0, bushels_per_acre=170.0
        )
        snapshot = CostAggregator(DEFAULT_YIELDS).build(2025, [farm], estimates=[estimate])
        assert snapshot.break_even_for(Commodity.CORN) == pytest.approx(5.00)

    def test_loans_matched_by_farm(self):
        farm = _farm(projected_yield=100.0)
        loans = [
            LoanAllocation(farm_id=1, year=2025, land_loan_principal=5_000.0),
            LoanAllocation(farm_id=99, year=2025, land_loan_principal=1_000_000.0),
        ]
        snapshot = CostAggregator(DEFAULT_YIELDS).build(2025, [farm], loans=loans)
        assert snapshot.break_even_for(Commodity.CORN) == pytest.approx(0.50)

    def test_empty_operation(self):
        snapshot = CostAggregator(DEFAULT_YIELDS).build(2025, [])
        assert snapshot.by_commodity == {}
        assert snapshot.break_even_for(Commodity.CORN) == 0.0
