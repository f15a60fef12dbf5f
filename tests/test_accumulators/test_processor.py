"""
Tests for grain_marketing/accumulators/processor.py against an in-memory DB.

What we test
------------
AccumulatorProcessor.process_all():
  - A settlement accrues, persists the entry and the state.
  - Re-running the same day leaves one entry and the same totals.
  - Missing settlement → skipped, day not marked processed.
  - A feed error on one contract fails only that contract.
  - Knockout is persisted and the contract drops out of later sweeps.
  - Contracts whose window has not opened are not picked up.
  - EURO contracts double at the first settlement on/after end_date.
  - A contract whose writes fail mid-way leaves no entry and no state change.
  - Contracts past their end date drop out, except unexpired EURO contracts.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import date

import pytest

from grain_marketing.accumulators.processor import AccumulatorProcessor
from grain_marketing.config import AccumulatorConfig
from grain_marketing.db.repositories.accumulator_repo import AccumulatorRepository
from grain_marketing.db.repositories.cost_repo import CostRepository
from grain_marketing.models.accumulator import AccumulatorContract
from grain_marketing.taxonomy.marketing_taxonomy import AccumulatorType, Commodity

DAY = date(2025, 6, 2)


class _Settlements:
    """Settlement-only market feed keyed by (commodity, day)."""

    def __init__(self, prices=None, failing=()):
        self.prices = prices or {}
        self.failing = set(failing)

    def settlement_price(self, commodity, day):
        if commodity in self.failing:
            raise ConnectionError(f"{commodity.value} feed down")
        return self.prices.get((commodity, day))


@pytest.fixture
def business_id(in_memory_db) -> int:
    return CostRepository(in_memory_db).insert_business("Prairie Farms")


@pytest.fixture
def repo(in_memory_db) -> AccumulatorRepository:
    return AccumulatorRepository(in_memory_db)


def _contract(business_id: int, **overrides) -> AccumulatorContract:
    fields = {
        "business_id": business_id,
        "commodity": Commodity.CORN,
        "start_date": date(2025, 5, 1),
        "end_date": date(2025, 8, 29),
        "total_bushels": 50_000.0,
        "base_price": 4.80,
        "knockout_price": 3.50,
        "double_up_price": 4.20,
        "daily_bushels": 1_000.0,
    }
    fields.update(overrides)
    return AccumulatorContract(**fields)


def _processor(conn, feed) -> AccumulatorProcessor:
    return AccumulatorProcessor(conn, feed, AccumulatorConfig())


class TestProcessAll:
    def test_accrues_and_persists(self, in_memory_db, repo, business_id):
        contract_id = repo.insert_contract(_contract(business_id))
        feed = _Settlements({(Commodity.CORN, DAY): 4.00})

        result = _processor(in_memory_db, feed).process_all(DAY)

        assert result.processed == [contract_id]
        state = repo.get_state(contract_id)
        assert state.total_bushels_marketed == pytest.approx(2_000)
        assert state.is_currently_doubled is True
        assert state.last_processed_date == DAY
        [entry] = repo.get_entries(contract_id)
        assert entry.entry_date == DAY
        assert entry.was_doubled is True

    def test_rerun_is_idempotent(self, in_memory_db, repo, business_id):
        contract_id = repo.insert_contract(_contract(business_id))
        processor = _processor(in_memory_db, _Settlements({(Commodity.CORN, DAY): 4.00}))

        processor.process_all(DAY)
        first = repo.get_state(contract_id)
        processor.process_all(DAY)

        assert repo.get_state(contract_id) == first
        assert len(repo.get_entries(contract_id)) == 1

    def test_missing_settlement_skips(self, in_memory_db, repo, business_id, caplog):
        contract_id = repo.insert_contract(_contract(business_id))

        with caplog.at_level(logging.WARNING, logger="grain_marketing.accumulators.processor"):
            result = _processor(in_memory_db, _Settlements()).process_all(DAY)

        assert result.skipped == [contract_id]
        assert repo.get_state(contract_id).last_processed_date is None
        assert repo.get_entries(contract_id) == []
        assert caplog.records[0].contract_id == contract_id

    def test_failure_isolated(self, in_memory_db, repo, business_id):
        wheat_id = repo.insert_contract(
            _contract(business_id, commodity=Commodity.WHEAT, knockout_price=4.50,
                      double_up_price=5.40, base_price=6.00)
        )
        corn_id = repo.insert_contract(_contract(business_id))
        feed = _Settlements({(Commodity.CORN, DAY): 4.50}, failing={Commodity.WHEAT})

        result = _processor(in_memory_db, feed).process_all(DAY)

        assert result.failed == [wheat_id]
        assert result.processed == [corn_id]
        assert repo.get_state(corn_id).total_bushels_marketed == pytest.approx(1_000)

    def test_knockout_persisted(self, in_memory_db, repo, business_id):
        contract_id = repo.insert_contract(_contract(business_id))
        processor = _processor(in_memory_db, _Settlements({(Commodity.CORN, DAY): 3.40}))

        result = processor.process_all(DAY)

        assert result.knocked_out == [contract_id]
        state = repo.get_state(contract_id)
        assert state.knockout_reached is True
        assert state.knockout_date == DAY
        assert repo.get_processable_contracts(date(2025, 6, 3)) == []

    def test_not_yet_open(self, in_memory_db, repo, business_id):
        repo.insert_contract(_contract(business_id, start_date=date(2025, 6, 10)))
        result = _processor(in_memory_db, _Settlements()).process_all(DAY)
        assert result.processed == result.skipped == result.failed == []

    def test_euro_expiration(self, in_memory_db, repo, business_id):
        end = date(2025, 6, 6)
        contract_id = repo.insert_contract(
            _contract(
                business_id,
                accumulator_type=AccumulatorType.EURO,
                start_date=date(2025, 6, 2),
                end_date=end,
            )
        )
        prices = {(Commodity.CORN, date(2025, 6, d)): 4.50 for d in range(2, 6)}
        prices[(Commodity.CORN, end)] = 4.10
        processor = _processor(in_memory_db, _Settlements(prices))

        for d in range(2, 7):
            processor.process_all(date(2025, 6, d))

        state = repo.get_state(contract_id)
        assert state.euro_expiration_processed is True
        assert state.total_bushels_marketed == pytest.approx(10_000)
        assert state.total_doubled_bushels == pytest.approx(5_000)

    def test_failed_contract_leaves_no_partial_writes(
        self, in_memory_db, repo, business_id, monkeypatch
    ):
        contract_id = repo.insert_contract(_contract(business_id))

        def _fail(self, state):
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr(AccumulatorRepository, "save_state", _fail)
        result = _processor(
            in_memory_db, _Settlements({(Commodity.CORN, DAY): 4.50})
        ).process_all(DAY)

        assert result.failed == [contract_id]
        assert repo.get_entries(contract_id) == []
        state = repo.get_state(contract_id)
        assert state.total_bushels_marketed == 0
        assert state.last_processed_date is None

    def test_failure_keeps_other_contracts_writes(
        self, in_memory_db, repo, business_id, monkeypatch
    ):
        first_id = repo.insert_contract(_contract(business_id))
        second_id = repo.insert_contract(_contract(business_id))
        original = AccumulatorRepository.save_state

        def _fail_second(self, state):
            if state.contract_id == second_id:
                raise sqlite3.OperationalError("disk I/O error")
            original(self, state)

        monkeypatch.setattr(AccumulatorRepository, "save_state", _fail_second)
        result = _processor(
            in_memory_db, _Settlements({(Commodity.CORN, DAY): 4.50})
        ).process_all(DAY)

        assert result.processed == [first_id]
        assert result.failed == [second_id]
        assert len(repo.get_entries(first_id)) == 1
        assert repo.get_state(first_id).total_bushels_marketed == pytest.approx(1_000)
        assert repo.get_entries(second_id) == []

    def test_ended_contracts_not_picked_up(self, in_memory_db, repo, business_id):
        repo.insert_contract(_contract(business_id, end_date=date(2025, 5, 30)))
        feed = _Settlements({(Commodity.CORN, DAY): 4.50})

        result = _processor(in_memory_db, feed).process_all(DAY)

        assert result.processed == result.skipped == result.failed == []

    def test_euro_stays_processable_until_expiration_applied(
        self, in_memory_db, repo, business_id
    ):
        end = date(2025, 5, 30)
        contract_id = repo.insert_contract(
            _contract(business_id, accumulator_type=AccumulatorType.EURO, end_date=end)
        )
        assert [c.contract_id for c in repo.get_processable_contracts(DAY)] == [contract_id]

        _processor(
            in_memory_db, _Settlements({(Commodity.CORN, DAY): 4.10})
        ).process_all(DAY)

        assert repo.get_state(contract_id).euro_expiration_processed is True
        assert repo.get_processable_contracts(date(2025, 6, 3)) == []
