"""
Signal scoring engine: one business, every enabled commodity and instrument.

Flow for ``generate_for_business``
----------------------------------
  1. Load preferences (a missing row is created with defaults).
  2. For each commodity enabled in both config and preferences:
       a. Assemble the market context (no quote ⇒ skip the commodity).
       b. Classify the quoted contract as new or old crop.
       c. New crop: build the break-even snapshot and marketing position
          for that crop year (no production estimate ⇒ skip).
          Old crop: load unpriced inventory for that crop year.
       d. Derive fundamental / seasonal adjustments, load personalized
          thresholds, run every enabled evaluator.
     Any exception inside one commodity is logged with business and
     commodity and the remaining commodities still run.
  3. Hand all drafts to the lifecycle manager for dedup-upsert.

Instruments per crop classification::

    new crop: cash sale, basis, HTA, call option, accumulator inquiry,
              accumulator strategy, trade policy, breaking news
    old crop: old-crop cash sale, basis, accumulator strategy,
              trade policy, breaking news
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Optional

from grain_marketing.config import AppConfig
from grain_marketing.costs.aggregator import CostAggregator, OperationBreakEven
from grain_marketing.db.repositories.accumulator_repo import AccumulatorRepository
from grain_marketing.db.repositories.contract_repo import ContractRepository
from grain_marketing.db.repositories.cost_repo import CostRepository
from grain_marketing.db.repositories.market_repo import MarketRepository
from grain_marketing.db.repositories.preferences_repo import PreferencesRepository
from grain_marketing.db.repositories.signal_repo import SignalRepository
from grain_marketing.market.assembler import MarketContextAssembler
from grain_marketing.market.seasonal import HistoricalSeasonalFeed
from grain_marketing.market.sqlite_feeds import (
    SqliteFundamentalFeed,
    SqliteMarketDataFeed,
    SqliteNewsFeed,
)
from grain_marketing.models.accumulator import AccumulatorState
from grain_marketing.models.costs import ProductionEstimate
from grain_marketing.models.preferences import MarketingPreferences
from grain_marketing.models.signal import SignalDraft
from grain_marketing.positions.tracker import build_position
from grain_marketing.signals.adjustments import fundamental_adjustment_for, seasonal_adjustment
from grain_marketing.signals.crop_year import classify_crop_year
from grain_marketing.signals.evaluation import EvaluationInput
from grain_marketing.signals.evaluators import (
    evaluate_accumulator_inquiry,
    evaluate_accumulator_strategy,
    evaluate_basis,
    evaluate_call_option,
    evaluate_cash_sale,
    evaluate_hta,
    evaluate_old_crop,
)
from grain_marketing.signals.lifecycle import SignalLifecycleManager, UpsertOutcome
from grain_marketing.signals.news import evaluate_breaking_news, evaluate_trade_policy
from grain_marketing.taxonomy.marketing_taxonomy import Commodity, SignalType
from grain_marketing.utils.logging import unit_context
from grain_marketing.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

Evaluator = Callable[[EvaluationInput], Optional[SignalDraft]]

NEW_CROP_EVALUATORS: tuple[tuple[SignalType, Evaluator], ...] = (
    (SignalType.CASH_SALE, evaluate_cash_sale),
    (SignalType.BASIS_CONTRACT, evaluate_basis),
    (SignalType.HTA, evaluate_hta),
    (SignalType.CALL_OPTION, evaluate_call_option),
    (SignalType.ACCUMULATOR_INQUIRY, evaluate_accumulator_inquiry),
    (SignalType.TRADE_POLICY, evaluate_trade_policy),
    (SignalType.BREAKING_NEWS, evaluate_breaking_news),
)

OLD_CROP_EVALUATORS: tuple[tuple[SignalType, Evaluator], ...] = (
    (SignalType.CASH_SALE, evaluate_old_crop),
    (SignalType.BASIS_CONTRACT, evaluate_basis),
    (SignalType.TRADE_POLICY, evaluate_trade_policy),
    (SignalType.BREAKING_NEWS, evaluate_breaking_news),
)


@dataclass
class GenerationResult:
    """Summary of one ``generate_for_business`` pass."""

    business_id: int
    drafts: list[SignalDraft] = field(default_factory=list)
    outcome: UpsertOutcome = field(default_factory=UpsertOutcome)
    skipped: list[Commodity] = field(default_factory=list)
    failed: list[Commodity] = field(default_factory=list)


class SignalEngine:
    """Evaluates every enabled instrument for one business.

    Args:
        conn: Open SQLite connection; all repositories share it.
        config: Application configuration.
        assembler: Market context source. Defaults to the SQLite-backed
            feeds plus the historical seasonal tables.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        config: AppConfig,
        assembler: Optional[MarketContextAssembler] = None,
    ) -> None:
        self.config = config
        self.costs = CostRepository(conn)
        self.contracts = ContractRepository(conn)
        self.preferences = PreferencesRepository(conn)
        self.accumulators = AccumulatorRepository(conn)
        self.lifecycle = SignalLifecycleManager(
            SignalRepository(conn), config.signals.dedup_window_hours
        )
        if assembler is None:
            market = MarketRepository(conn)
            assembler = MarketContextAssembler(
                SqliteMarketDataFeed(market),
                HistoricalSeasonalFeed(),
                fundamentals=SqliteFundamentalFeed(market),
                news=SqliteNewsFeed(market),
            )
        self.assembler = assembler
        self._aggregator = CostAggregator(config.costs.default_yields)

    def generate_for_business(
        self,
        business_id: int,
        as_of: date,
        now: Optional[datetime] = None,
    ) -> GenerationResult:
        now = now or utcnow()
        result = GenerationResult(business_id=business_id)
        prefs = self.preferences.get_or_create(business_id)
        break_evens: dict[int, OperationBreakEven] = {}

        for commodity in self.config.signals.commodities:
            if commodity not in prefs.enabled_commodities:
                continue
            try:
                drafts = self.evaluate_commodity(prefs, commodity, as_of, now, break_evens)
            except Exception:
                logger.exception(
                    "Signal evaluation failed for business %d / %s",
                    business_id, commodity.value,
                    extra=unit_context(business_id=business_id, commodity=commodity.value),
                )
                result.failed.append(commodity)
                continue
            if drafts is None:
                result.skipped.append(commodity)
                continue
            result.drafts.extend(drafts)

        result.outcome = self.lifecycle.upsert_drafts(result.drafts, now)
        logger.info(
            "Business %d: %d draft(s), %d created, %d updated, %d reused",
            business_id,
            len(result.drafts),
            len(result.outcome.created),
            len(result.outcome.updated),
            len(result.outcome.reused),
            extra=unit_context(business_id=business_id),
        )
        return result

    def evaluate_commodity(
        self,
        prefs: MarketingPreferences,
        commodity: Commodity,
        as_of: date,
        now: datetime,
        break_evens: Optional[dict[int, OperationBreakEven]] = None,
    ) -> Optional[list[SignalDraft]]:
        """Drafts for one commodity, or ``None`` when a required input is missing."""
        business_id = prefs.business_id
        ctx = unit_context(business_id=business_id, commodity=commodity.value)

        market = self.assembler.assemble(commodity, as_of)
        if market is None:
            return None

        crop = classify_crop_year(commodity, market.contract_month, market.contract_year, as_of)
        break_even = 0.0
        position = None
        old_crop_bushels = 0.0
        if crop.is_new_crop:
            estimates = self.costs.get_production_estimates(business_id, crop.crop_year)
            if not any(e.commodity == commodity for e in estimates):
                logger.warning(
                    "No %d production estimate; skipping.", crop.crop_year, extra=ctx
                )
                return None
            snapshot = self._break_even(business_id, crop.crop_year, estimates, break_evens)
            break_even = snapshot.break_even_for(commodity)
            position = build_position(
                commodity,
                crop.crop_year,
                estimates,
                self.contracts.get_for_business(business_id, crop.crop_year),
                as_of,
                prefs.pre_harvest_target(commodity),
            )
        else:
            inventory = self.preferences.get_old_crop(business_id, commodity, crop.crop_year)
            if inventory is None:
                logger.info("No %d old-crop inventory on record.", crop.crop_year, extra=ctx)
            old_crop_bushels = inventory.unpriced_bushels if inventory else 0.0

        inp = EvaluationInput(
            business_id=business_id,
            commodity=commodity,
            market=market,
            crop=crop,
            preferences=prefs,
            config=self.config.signals,
            now=now,
            fundamental=fundamental_adjustment_for(market.fundamental),
            seasonal=seasonal_adjustment(market.seasonal),
            break_even=break_even,
            position=position,
            old_crop_bushels=old_crop_bushels,
            personalized=self.preferences.get_thresholds(business_id, commodity),
        )

        evaluators = NEW_CROP_EVALUATORS if crop.is_new_crop else OLD_CROP_EVALUATORS
        drafts: list[SignalDraft] = []
        for signal_type, evaluate in evaluators:
            if not prefs.is_enabled(signal_type):
                continue
            draft = evaluate(inp)
            if draft is not None:
                drafts.append(draft)

        if prefs.is_enabled(SignalType.ACCUMULATOR_STRATEGY):
            draft = self._accumulator_strategy(inp)
            if draft is not None:
                drafts.append(draft)

        logger.debug(
            "%s crop %d: %d draft(s)",
            "New" if crop.is_new_crop else "Old", crop.crop_year, len(drafts), extra=ctx,
        )
        return drafts

    def _break_even(
        self,
        business_id: int,
        year: int,
        estimates: list[ProductionEstimate],
        cache: Optional[dict[int, OperationBreakEven]],
    ) -> OperationBreakEven:
        if cache is not None and year in cache:
            return cache[year]
        farms = self.costs.get_farms(business_id, year)
        snapshot = self._aggregator.build(
            year,
            farms,
            loans=self.costs.get_loan_allocations(business_id, year, farms),
            estimates=estimates,
        )
        if cache is not None:
            cache[year] = snapshot
        return snapshot

    def _accumulator_strategy(self, inp: EvaluationInput) -> Optional[SignalDraft]:
        """First qualifying held accumulator; one signal per commodity."""
        for contract in self.accumulators.get_active_for_business(inp.business_id, inp.commodity):
            assert contract.contract_id is not None
            state = self.accumulators.get_state(contract.contract_id) or AccumulatorState(
                contract_id=contract.contract_id
            )
            draft = evaluate_accumulator_strategy(
                inp, contract, state, self.config.accumulator.knockout_warning_distance
            )
            if draft is not None:
                return draft
        return None
