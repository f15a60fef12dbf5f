"""
Learning personalized thresholds and risk appetite from sale history.

A "sale" is a priced, non-deleted cash contract whose crop year has a
known break-even. Its premium is ``(price − BE) / BE``.

    per commodity, ≥ 3 sales  → PersonalizedThreshold (CASH_SALE), see
                                ``thresholds.learn_threshold``
    all commodities, ≥ 5 sales → learned risk score
                                 (``preferences.learned_risk_score``),
                                 confidence = min(100, n / 20 × 100)
"""

from __future__ import annotations

import logging
import sqlite3
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable, Optional

from grain_marketing.config import AppConfig
from grain_marketing.costs.aggregator import CostAggregator
from grain_marketing.db.repositories.contract_repo import ContractRepository
from grain_marketing.db.repositories.cost_repo import CostRepository
from grain_marketing.db.repositories.preferences_repo import PreferencesRepository
from grain_marketing.models.position import GrainContract
from grain_marketing.models.preferences import PersonalizedThreshold, learned_risk_score
from grain_marketing.signals.thresholds import learn_threshold
from grain_marketing.taxonomy.marketing_taxonomy import Commodity, ContractType, SignalType
from grain_marketing.utils.logging import unit_context

logger = logging.getLogger(__name__)

MIN_RISK_LEARNING_SALES = 5
FULL_RISK_CONFIDENCE_SALES = 20


def sale_premiums(
    contracts: Iterable[GrainContract],
    break_evens: dict[tuple[Commodity, int], float],
) -> dict[Commodity, list[float]]:
    """Premium over break-even for each priced cash sale, grouped by commodity."""
    premiums: dict[Commodity, list[float]] = defaultdict(list)
    for c in contracts:
        if c.is_deleted or c.price is None or c.contract_type != ContractType.CASH:
            continue
        be = break_evens.get((c.commodity, c.crop_year), 0.0)
        if be <= 0:
            continue
        premiums[c.commodity].append((c.price - be) / be)
    return dict(premiums)


def risk_confidence(n_sales: int) -> float:
    return min(100.0, n_sales / FULL_RISK_CONFIDENCE_SALES * 100)


@dataclass
class LearningResult:
    business_id: int
    thresholds: list[PersonalizedThreshold] = field(default_factory=list)
    risk_score: Optional[float] = None
    risk_confidence: float = 0.0
    sales_used: int = 0


class ThresholdLearner:
    """Recomputes and stores a business's learned thresholds and risk score."""

    def __init__(self, conn: sqlite3.Connection, config: AppConfig) -> None:
        self.costs = CostRepository(conn)
        self.contracts = ContractRepository(conn)
        self.preferences = PreferencesRepository(conn)
        self._aggregator = CostAggregator(config.costs.default_yields)

    def _break_evens(
        self, business_id: int, contracts: list[GrainContract]
    ) -> dict[tuple[Commodity, int], float]:
        result: dict[tuple[Commodity, int], float] = {}
        for year in sorted({c.crop_year for c in contracts}):
            farms = self.costs.get_farms(business_id, year)
            snapshot = self._aggregator.build(
                year,
                farms,
                loans=self.costs.get_loan_allocations(business_id, year, farms),
                estimates=self.costs.get_production_estimates(business_id, year),
            )
            for commodity, rollup in snapshot.by_commodity.items():
                result[(commodity, year)] = rollup.break_even_price
        return result

    def learn(self, business_id: int) -> LearningResult:
        contracts = self.contracts.get_for_business(business_id)
        premiums = sale_premiums(contracts, self._break_evens(business_id, contracts))
        result = LearningResult(business_id=business_id)

        for commodity, values in premiums.items():
            learned = learn_threshold(values)
            if learned is None:
                continue
            threshold = PersonalizedThreshold(
                business_id=business_id,
                commodity=commodity,
                signal_type=SignalType.CASH_SALE,
                buy_threshold=learned.buy,
                strong_buy_threshold=learned.strong_buy,
                confidence=learned.confidence,
                data_points=learned.data_points,
            )
            self.preferences.upsert_threshold(threshold)
            result.thresholds.append(threshold)
            logger.info(
                "Learned cash thresholds buy=%.3f strong=%.3f from %d sale(s)",
                learned.buy, learned.strong_buy, learned.data_points,
                extra=unit_context(business_id=business_id, commodity=commodity.value),
            )

        everything = [p for values in premiums.values() for p in values]
        result.sales_used = len(everything)
        if len(everything) >= MIN_RISK_LEARNING_SALES:
            result.risk_score = learned_risk_score(sum(everything) / len(everything))
            result.risk_confidence = risk_confidence(len(everything))
            prefs = self.preferences.get_or_create(business_id)
            self.preferences.save(
                prefs.model_copy(
                    update={
                        "learned_risk_score": result.risk_score,
                        "learned_risk_confidence": result.risk_confidence,
                    }
                )
            )
        return result
