"""
Tests for grain_marketing/accumulators/state_machine.py.

What we test
------------
apply_daily_price():
  - DAILY: nine days at $4.50 then $4.00 (≤ $4.20 double-up) → 11,000 bu,
    the last entry 2,000 bu marked doubled.
  - Re-running a processed day with the same price changes nothing.
  - Re-running a day with a new price replaces that day's entry.
  - Back-filling an earlier day never moves last_processed_date backwards.
  - Settlement ≤ knockout → KNOCKED_OUT, no entry; later days are INACTIVE.
  - Days outside the contract window → SKIPPED, state untouched.
  - WEEKLY accrues only on the settlement weekday at 5 × daily (or the
    explicit weekly rate); other days record NO_ACCRUAL.
  - EURO accrues the plain daily rate even below the double-up trigger.
  - The cumulative total never exceeds total_bushels.

apply_euro_expiration():
  - 50,000 bu at a doubled expiration → 100,000 bu (or the contract total).
  - Above the trigger: flagged processed, totals unchanged.
  - Runs once; non-EURO contracts are untouched.

performance_summary():
  - Day counts, doubled percentage, remaining and average price.
"""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from grain_marketing.accumulators.state_machine import (
    CAPPED_NOTE,
    DOUBLED_NOTE,
    TransitionStatus,
    apply_daily_price,
    apply_euro_expiration,
    performance_summary,
)
from grain_marketing.models.accumulator import AccumulatorContract, AccumulatorState
from grain_marketing.taxonomy.marketing_taxonomy import AccumulatorType, Commodity

START = date(2025, 3, 3)  # Monday


def _contract(**overrides) -> AccumulatorContract:
    fields = {
        "contract_id": 7,
        "business_id": 1,
        "commodity": Commodity.CORN,
        "start_date": START,
        "end_date": date(2025, 6, 30),
        "total_bushels": 100_000.0,
        "base_price": 4.80,
        "knockout_price": 3.50,
        "double_up_price": 4.20,
        "daily_bushels": 1_000.0,
    }
    fields.update(overrides)
    return AccumulatorContract(**fields)


def _run(contract, prices, state=None, entries=None):
    """Apply consecutive calendar days from START; returns (state, entries, results)."""
    state = state or AccumulatorState(contract_id=contract.contract_id)
    entries = list(entries or [])
    results = []
    for offset, price in enumerate(prices):
        day = START + timedelta(days=offset)
        result = apply_daily_price(contract, state, entries, day, price)
        if result.entry is not None:
            entries = [e for e in entries if e.entry_date != day] + [result.entry]
        state = result.state
        results.append(result)
    return state, entries, results


class TestDailyAccrual:
    def test_doubling_on_day_ten(self):
        state, entries, results = _run(_contract(), [4.50] * 9 + [4.00])

        assert state.total_bushels_marketed == pytest.approx(11_000)
        assert state.total_doubled_bushels == pytest.approx(1_000)
        assert state.is_currently_doubled is True
        assert state.last_processed_date == START + timedelta(days=9)
        assert len(entries) == 10

        last = entries[-1]
        assert last.bushels_marketed == pytest.approx(2_000)
        assert last.was_doubled is True
        assert last.notes == DOUBLED_NOTE
        assert results[-1].status is TransitionStatus.ACCRUED
        assert results[-1].bushels_added == pytest.approx(2_000)

    def test_exactly_at_double_up_doubles(self):
        state, entries, _ = _run(_contract(), [4.20])
        assert entries[0].was_doubled is True
        assert state.total_bushels_marketed == pytest.approx(2_000)

    def test_same_day_rerun_is_idempotent(self):
        contract = _contract()
        state, entries, _ = _run(contract, [4.50, 4.00])
        day = START + timedelta(days=1)

        again = apply_daily_price(contract, state, entries, day, 4.00)

        assert again.state == state
        assert again.entry == entries[-1]

    def test_same_day_new_price_replaces_entry(self):
        contract = _contract()
        state, entries, _ = _run(contract, [4.50, 4.00])
        day = START + timedelta(days=1)

        again = apply_daily_price(contract, state, entries, day, 4.60)

        assert again.entry.bushels_marketed == pytest.approx(1_000)
        assert again.state.total_bushels_marketed == pytest.approx(2_000)
        assert again.state.total_doubled_bushels == 0.0
        assert again.state.is_currently_doubled is False

    def test_backfill_keeps_latest_processed_date(self):
        contract = _contract()
        state, entries, _ = _run(contract, [4.50, 4.50, 4.50])

        again = apply_daily_price(contract, state, entries, START, 4.40)

        assert again.status is TransitionStatus.ACCRUED
        assert again.state.last_processed_date == START + timedelta(days=2)
        assert again.state.total_bushels_marketed == pytest.approx(3_000)

    def test_backfill_with_no_accrual_keeps_latest_processed_date(self):
        contract = _contract(accumulator_type=AccumulatorType.WEEKLY)
        state, entries, _ = _run(contract, [4.50] * 5)

        again = apply_daily_price(contract, state, entries, START, 4.50)

        assert again.status is TransitionStatus.NO_ACCRUAL
        assert again.state.last_processed_date == START + timedelta(days=4)


class TestKnockout:
    def test_knockout_is_terminal(self):
        state, entries, results = _run(_contract(), [4.50, 3.50, 4.50])

        assert [r.status for r in results] == [
            TransitionStatus.ACCRUED,
            TransitionStatus.KNOCKED_OUT,
            TransitionStatus.INACTIVE,
        ]
        assert state.knockout_reached is True
        assert state.knockout_date == START + timedelta(days=1)
        assert state.total_bushels_marketed == pytest.approx(1_000)
        assert len(entries) == 1
        assert results[1].entry is None
        assert results[2].processed is False

    def test_knockout_beats_doubling(self):
        result = apply_daily_price(
            _contract(), AccumulatorState(contract_id=7), [], START, 3.20
        )
        assert result.status is TransitionStatus.KNOCKED_OUT
        assert result.bushels_added == 0.0


class TestWindow:
    @pytest.mark.parametrize("day", [START - timedelta(days=1), date(2025, 7, 1)])
    def test_outside_window_skipped(self, day):
        state = AccumulatorState(contract_id=7)
        result = apply_daily_price(_contract(), state, [], day, 4.00)
        assert result.status is TransitionStatus.SKIPPED
        assert result.state is state
        assert result.processed is False


class TestVariants:
    def test_weekly_settles_on_friday_only(self):
        contract = _contract(accumulator_type=AccumulatorType.WEEKLY)
        # Mon..Fri, doubled on Friday
        state, entries, results = _run(contract, [4.50, 4.50, 4.50, 4.50, 4.10])

        assert [r.status for r in results[:4]] == [TransitionStatus.NO_ACCRUAL] * 4
        assert results[0].processed is True
        assert len(entries) == 1
        assert entries[0].entry_date == date(2025, 3, 7)
        assert entries[0].bushels_marketed == pytest.approx(10_000)
        assert state.total_doubled_bushels == pytest.approx(5_000)

    def test_weekly_explicit_rate(self):
        contract = _contract(accumulator_type=AccumulatorType.WEEKLY, weekly_bushels=3_000.0)
        result = apply_daily_price(
            contract, AccumulatorState(contract_id=7), [], date(2025, 3, 7), 4.50
        )
        assert result.bushels_added == pytest.approx(3_000)

    def test_euro_never_doubles_daily(self):
        contract = _contract(accumulator_type=AccumulatorType.EURO)
        state, entries, _ = _run(contract, [4.00, 4.00])
        assert state.total_bushels_marketed == pytest.approx(2_000)
        assert state.total_doubled_bushels == 0.0
        assert not any(e.was_doubled for e in entries)


class TestCap:
    def test_total_never_exceeded(self):
        contract = _contract(total_bushels=10_500.0)
        state, entries, results = _run(contract, [4.50] * 10 + [4.00, 4.00])

        assert state.total_bushels_marketed == pytest.approx(10_500)
        assert entries[10].bushels_marketed == pytest.approx(500)
        assert entries[10].notes == f"{DOUBLED_NOTE}; {CAPPED_NOTE}"
        assert entries[11].bushels_marketed == 0.0
        assert results[11].bushels_added == 0.0


class TestEuroExpiration:
    def _euro(self, total=120_000.0):
        return _contract(accumulator_type=AccumulatorType.EURO, total_bushels=total)

    def test_doubles_at_expiration(self):
        state = AccumulatorState(contract_id=7, total_bushels_marketed=50_000.0)
        result = apply_euro_expiration(self._euro(), state, 4.10)
        assert result.total_bushels_marketed == pytest.approx(100_000)
        assert result.total_doubled_bushels == pytest.approx(50_000)
        assert result.is_currently_doubled is True
        assert result.euro_expiration_processed is True

    def test_capped_at_contract_total(self):
        state = AccumulatorState(contract_id=7, total_bushels_marketed=50_000.0)
        result = apply_euro_expiration(self._euro(total=80_000.0), state, 4.10)
        assert result.total_bushels_marketed == pytest.approx(80_000)
        assert result.total_doubled_bushels == pytest.approx(30_000)

    def test_above_trigger_only_flags(self):
        state = AccumulatorState(contract_id=7, total_bushels_marketed=50_000.0)
        result = apply_euro_expiration(self._euro(), state, 4.50)
        assert result.total_bushels_marketed == pytest.approx(50_000)
        assert result.euro_expiration_processed is True
        assert result.is_currently_doubled is False

    def test_runs_once(self):
        state = AccumulatorState(contract_id=7, total_bushels_marketed=50_000.0)
        once = apply_euro_expiration(self._euro(), state, 4.10)
        assert apply_euro_expiration(self._euro(), once, 4.10) == once

    def test_non_euro_untouched(self):
        state = AccumulatorState(contract_id=7, total_bushels_marketed=50_000.0)
        assert apply_euro_expiration(_contract(), state, 4.10) is state

    def test_daily_accrual_stops_after_expiration(self):
        state = AccumulatorState(contract_id=7, euro_expiration_processed=True)
        result = apply_daily_price(self._euro(), state, [], START, 4.50)
        assert result.status is TransitionStatus.INACTIVE


class TestPerformanceSummary:
    def test_summary(self):
        contract = _contract()
        state, entries, _ = _run(contract, [4.50] * 9 + [4.00])
        summary = performance_summary(contract, state, entries)

        assert summary.total_days == 10
        assert summary.days_doubled == 1
        assert summary.doubled_percentage == pytest.approx(10.0)
        assert summary.remaining_bushels == pytest.approx(89_000)
        assert summary.average_daily_bushels == pytest.approx(1_100)
        assert summary.average_market_price == pytest.approx(4.45)

    def test_empty(self):
        contract = _contract()
        summary = performance_summary(contract, AccumulatorState(contract_id=7), [])
        assert summary.total_days == 0
        assert summary.doubled_percentage == 0.0
        assert summary.remaining_bushels == pytest.approx(100_000)
