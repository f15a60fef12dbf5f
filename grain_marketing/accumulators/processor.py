"""
Daily accumulator sweep.

For every active, not knocked-out contract whose window has opened:

  1. fetch the day's settlement for the contract's commodity
     (missing ⇒ skip; the day is NOT marked processed and retries next run)
  2. ``apply_daily_price`` and upsert the day's entry
  3. EURO contracts on or after their end date: ``apply_euro_expiration``
  4. persist the state

Each contract's writes run inside a savepoint. A failure on one contract
rolls back only that contract's writes, is logged with its id, and the
sweep continues.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import date

from grain_marketing.accumulators.state_machine import (
    TransitionStatus,
    apply_daily_price,
    apply_euro_expiration,
)
from grain_marketing.config import AccumulatorConfig
from grain_marketing.db.repositories.accumulator_repo import AccumulatorRepository
from grain_marketing.market.feeds import MarketDataFeed
from grain_marketing.models.accumulator import AccumulatorContract, AccumulatorState
from grain_marketing.taxonomy.marketing_taxonomy import AccumulatorType
from grain_marketing.utils.logging import unit_context

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    day: date
    processed: list[int] = field(default_factory=list)
    knocked_out: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)


class AccumulatorProcessor:
    """Runs the daily transition across all processable contracts.

    Args:
        conn: Open SQLite connection.
        market: Source of daily settlement prices.
        config: Accumulator settings (weekly settlement weekday, rate multiplier).
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        market: MarketDataFeed,
        config: AccumulatorConfig,
    ) -> None:
        self.repo = AccumulatorRepository(conn)
        self.market = market
        self.config = config

    def process_all(self, day: date) -> SweepResult:
        result = SweepResult(day=day)
        contracts = self.repo.get_processable_contracts(day)
        logger.info("Processing %d accumulator(s) for %s", len(contracts), day)

        for contract in contracts:
            assert contract.contract_id is not None
            try:
                with self.repo.savepoint("accumulator_contract"):
                    status = self.process_contract(contract, day)
            except Exception:
                logger.exception(
                    "Accumulator %d failed for %s",
                    contract.contract_id, day,
                    extra=unit_context(
                        business_id=contract.business_id,
                        commodity=contract.commodity.value,
                        contract_id=contract.contract_id,
                    ),
                )
                result.failed.append(contract.contract_id)
                continue

            if status == TransitionStatus.KNOCKED_OUT:
                result.knocked_out.append(contract.contract_id)
            elif status in (TransitionStatus.SKIPPED, TransitionStatus.INACTIVE):
                result.skipped.append(contract.contract_id)
            else:
                result.processed.append(contract.contract_id)

        logger.info(
            "Accumulator sweep %s: %d processed, %d knocked out, %d skipped, %d failed",
            day,
            len(result.processed),
            len(result.knocked_out),
            len(result.skipped),
            len(result.failed),
        )
        return result

    def process_contract(self, contract: AccumulatorContract, day: date) -> TransitionStatus:
        assert contract.contract_id is not None
        ctx = unit_context(
            business_id=contract.business_id,
            commodity=contract.commodity.value,
            contract_id=contract.contract_id,
        )

        price = self.market.settlement_price(contract.commodity, day)
        if price is None:
            logger.warning("No settlement for %s; will retry next run.", day, extra=ctx)
            return TransitionStatus.SKIPPED

        state = self.repo.get_state(contract.contract_id) or AccumulatorState(
            contract_id=contract.contract_id
        )
        transition = apply_daily_price(
            contract,
            state,
            self.repo.get_entries(contract.contract_id),
            day,
            price,
            settlement_weekday=self.config.weekly_settlement_weekday,
            weekly_rate_multiplier=self.config.weekly_rate_multiplier,
        )
        if transition.entry is not None:
            self.repo.upsert_entry(transition.entry)

        new_state = transition.state
        if contract.accumulator_type == AccumulatorType.EURO and day >= contract.end_date:
            new_state = apply_euro_expiration(contract, new_state, price)
            if new_state.euro_expiration_processed and not state.euro_expiration_processed:
                logger.info(
                    "EURO expiration at %.4f: total %.0f -> %.0f bu",
                    price, transition.state.total_bushels_marketed,
                    new_state.total_bushels_marketed, extra=ctx,
                )

        if new_state != state:
            self.repo.save_state(new_state)

        if transition.status == TransitionStatus.KNOCKED_OUT:
            logger.warning("Knocked out at %.4f on %s", price, day, extra=ctx)
        else:
            logger.debug(
                "%s: +%.0f bu (total %.0f)",
                transition.status, transition.bushels_added,
                new_state.total_bushels_marketed, extra=ctx,
            )
        return transition.status
