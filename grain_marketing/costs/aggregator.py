"""
Break-even cost aggregation: farm → entity share → entity → commodity.

Per farm:

    fertilizer  = Σ quantity × price per unit     (quantities unit-converted)
    chemical    = Σ quantity × price per unit
    seed        = Σ bags × price per bag
    other costs = Σ amount × acres  (per-acre)  |  amount  (flat)
                  bucketed by type: land rent, insurance, trucking, other
    loans       = land interest/principal, operating interest,
                  equipment interest/principal from the loan allocation

    total_cost       = Σ all buckets
    cost_per_acre    = total_cost / acres               (0 when acres = 0)
    expected_bushels = expected_yield × acres
    break_even_price = total_cost / expected_bushels    (0 when bushels = 0)

Expected yield precedence: the farm's own projected yield, then the
primary entity's production estimate for the commodity/year, then the
configured commodity default.

A farm split across entities is apportioned pro-rata per split (every
bucket, acres and bushels) before rolling up; with no splits the primary
entity receives 100 %. The last split takes the remainder so shares always
sum back to the farm total.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable, Optional

from grain_marketing.models.costs import (
    COST_BUCKETS,
    BreakEvenCost,
    BreakEvenRollup,
    EntitySplit,
    FarmRecord,
    LoanAllocation,
    ProductionEstimate,
)
from grain_marketing.taxonomy.marketing_taxonomy import Commodity, OtherCostType

logger = logging.getLogger(__name__)

_OTHER_COST_BUCKET: dict[OtherCostType, str] = {
    OtherCostType.LAND_RENT: "land_rent",
    OtherCostType.INSURANCE: "insurance",
    OtherCostType.TRUCKING: "trucking",
    OtherCostType.OTHER: "other_costs",
}

_SCALED_FIELDS: tuple[str, ...] = COST_BUCKETS + ("acres", "total_cost", "expected_bushels")


def _safe_div(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator > 0 else 0.0


def compute_farm_break_even(
    farm: FarmRecord,
    loan: Optional[LoanAllocation] = None,
    production_yield: Optional[float] = None,
    default_yield: float = 0.0,
) -> BreakEvenCost:
    """Compute the whole-farm break-even (attributed to the primary entity).

    Args:
        farm: Validated farm record with usage lines.
        loan: Loan allocation for this farm/year, if any.
        production_yield: Bushels/acre from the production estimate.
        default_yield: Commodity default bushels/acre.

    Returns:
        ``BreakEvenCost`` with ``split_fraction = 1.0``.
    """
    acres = farm.acres
    buckets: dict[str, float] = {name: 0.0 for name in COST_BUCKETS}

    buckets["fertilizer_cost"] = sum(u.cost(acres) for u in farm.fertilizer_usage)
    buckets["chemical_cost"] = sum(u.cost(acres) for u in farm.chemical_usage)
    buckets["seed_cost"] = sum(u.cost(acres) for u in farm.seed_usage)
    for cost in farm.other_costs:
        buckets[_OTHER_COST_BUCKET[cost.cost_type]] += cost.total(acres)

    if loan is not None:
        buckets["land_loan_interest"] = loan.land_loan_interest
        buckets["land_loan_principal"] = loan.land_loan_principal
        buckets["operating_loan_interest"] = loan.operating_loan_interest
        buckets["equipment_loan_interest"] = loan.equipment_loan_interest
        buckets["equipment_loan_principal"] = loan.equipment_loan_principal

    if farm.projected_yield is not None:
        expected_yield = farm.projected_yield
    elif production_yield is not None:
        expected_yield = production_yield
    else:
        expected_yield = default_yield

    total_cost = sum(buckets.values())
    expected_bushels = expected_yield * acres

    return BreakEvenCost(
        farm_id=farm.farm_id,
        farm_name=farm.name,
        entity_id=farm.primary_entity_id,
        commodity=farm.commodity,
        year=farm.year,
        acres=acres,
        total_cost=total_cost,
        cost_per_acre=_safe_div(total_cost, acres),
        expected_yield=expected_yield,
        expected_bushels=expected_bushels,
        break_even_price=max(0.0, _safe_div(total_cost, expected_bushels)),
        **buckets,
    )


def apply_entity_splits(
    cost: BreakEvenCost,
    splits: list[EntitySplit],
) -> list[BreakEvenCost]:
    """Apportion a whole-farm cost across entity splits.

    Per-acre and per-bushel ratios are unchanged by a split; only the
    additive fields are scaled.

    Args:
        cost: Whole-farm ``BreakEvenCost`` (``split_fraction = 1.0``).
        splits: Entity splits summing to 100 %, or empty.

    Returns:
        One ``BreakEvenCost`` per split (or ``[cost]`` when unsplit).
    """
    if not splits:
        return [cost]

    remaining = {name: getattr(cost, name) for name in _SCALED_FIELDS}
    shares: list[BreakEvenCost] = []
    for i, split in enumerate(splits):
        is_last = i == len(splits) - 1
        scaled: dict[str, float] = {}
        for name in _SCALED_FIELDS:
            value = remaining[name] if is_last else getattr(cost, name) * split.fraction
            scaled[name] = value
            remaining[name] -= value
        shares.append(
            cost.model_copy(
                update={"entity_id": split.entity_id, "split_fraction": split.fraction, **scaled}
            )
        )
    return shares


def _rollup(
    shares: list[BreakEvenCost],
    commodity: Commodity,
    year: int,
    entity_id: Optional[int],
) -> BreakEvenRollup:
    acres = sum(s.acres for s in shares)
    total_cost = sum(s.total_cost for s in shares)
    bushels = sum(s.expected_bushels for s in shares)
    return BreakEvenRollup(
        commodity=commodity,
        year=year,
        entity_id=entity_id,
        farm_count=len({s.farm_id for s in shares}),
        acres=acres,
        total_cost=total_cost,
        expected_bushels=bushels,
        cost_per_acre=_safe_div(total_cost, acres),
        break_even_price=max(0.0, _safe_div(total_cost, bushels)),
    )


def aggregate_by_entity(shares: Iterable[BreakEvenCost]) -> list[BreakEvenRollup]:
    """Roll farm shares up to (entity, commodity, year)."""
    groups: dict[tuple[int, Commodity, int], list[BreakEvenCost]] = defaultdict(list)
    for share in shares:
        groups[(share.entity_id, share.commodity, share.year)].append(share)
    return [
        _rollup(group, commodity, year, entity_id)
        for (entity_id, commodity, year), group in sorted(groups.items())
    ]


def aggregate_by_commodity(shares: Iterable[BreakEvenCost]) -> dict[Commodity, BreakEvenRollup]:
    """Roll farm shares up to one operation-wide figure per commodity.

    Shares for several years are not mixed: callers pass one year's shares.
    """
    groups: dict[Commodity, list[BreakEvenCost]] = defaultdict(list)
    for share in shares:
        groups[share.commodity].append(share)
    return {
        commodity: _rollup(group, commodity, group[0].year, None)
        for commodity, group in groups.items()
    }


@dataclass(frozen=True)
class OperationBreakEven:
    """Break-even snapshot for one business and year."""

    year: int
    shares: list[BreakEvenCost] = field(default_factory=list)
    by_entity: list[BreakEvenRollup] = field(default_factory=list)
    by_commodity: dict[Commodity, BreakEvenRollup] = field(default_factory=dict)

    def break_even_for(self, commodity: Commodity) -> float:
        """Operation-level break-even price, or 0.0 when nothing is planted."""
        rollup = self.by_commodity.get(commodity)
        return rollup.break_even_price if rollup is not None else 0.0


class CostAggregator:
    """Builds an ``OperationBreakEven`` from farms, loans and estimates.

    Args:
        default_yields: Bushels/acre used when neither the farm nor a
            production estimate supplies a yield.
    """

    def __init__(self, default_yields: dict[Commodity, float]) -> None:
        self.default_yields = default_yields

    def build(
        self,
        year: int,
        farms: Iterable[FarmRecord],
        loans: Iterable[LoanAllocation] = (),
        estimates: Iterable[ProductionEstimate] = (),
    ) -> OperationBreakEven:
        loan_by_farm = {(l.farm_id, l.year): l for l in loans}
        yield_by_entity = {
            (e.entity_id, e.commodity, e.year): e.bushels_per_acre for e in estimates
        }

        shares: list[BreakEvenCost] = []
        for farm in farms:
            if farm.year != year:
                continue
            whole = compute_farm_break_even(
                farm,
                loan=loan_by_farm.get((farm.farm_id, farm.year)),
                production_yield=yield_by_entity.get(
                    (farm.primary_entity_id, farm.commodity, farm.year)
                ),
                default_yield=self.default_yields.get(farm.commodity, 0.0),
            )
            if whole.expected_bushels == 0:
                logger.debug("Farm %d has no expected bushels; break-even is 0.", farm.farm_id)
            shares.extend(apply_entity_splits(whole, farm.splits))

        return OperationBreakEven(
            year=year,
            shares=shares,
            by_entity=aggregate_by_entity(shares),
            by_commodity=aggregate_by_commodity(shares),
        )
