"""
Accumulator contract state machine.

States::

    ACTIVE ──(settlement ≤ knockout)──► KNOCKED_OUT   (terminal)
      └── sub-state: currently doubled (settlement ≤ double-up trigger)

Daily transition (``apply_daily_price``), once per contract per trading day:

    1. day outside [start_date, end_date]       → SKIPPED, state untouched
    2. knocked out or EURO already expired      → INACTIVE, state untouched
    3. price ≤ knockout                         → KNOCKED_OUT, nothing accrues
    4. doubled = price ≤ double-up
    5. accrual by variant
         DAILY   daily rate        × (2 if doubled)
         WEEKLY  weekly rate       × (2 if doubled), settlement weekday only
         EURO    daily rate, never doubled here (see apply_euro_expiration)
    6. bushels capped so the cumulative total never exceeds total_bushels
    7. the entry for ``day`` replaces any earlier entry for the same day and
       the totals are recomputed from the entry log, so re-running a day
       with the same price leaves the state unchanged.

``total_doubled_bushels`` counts the extra bushels that doubling added.

All functions are pure: they return new ``AccumulatorState`` instances and
never touch the database.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import StrEnum
from typing import Optional, Sequence

from grain_marketing.models.accumulator import (
    AccumulatorContract,
    AccumulatorDailyEntry,
    AccumulatorState,
)
from grain_marketing.taxonomy.marketing_taxonomy import AccumulatorType

DOUBLED_NOTE = "Price at or below double-up trigger"
CAPPED_NOTE = "Contract quantity reached"


class TransitionStatus(StrEnum):
    SKIPPED = "skipped"
    INACTIVE = "inactive"
    KNOCKED_OUT = "knocked_out"
    ACCRUED = "accrued"
    NO_ACCRUAL = "no_accrual"


@dataclass(frozen=True)
class DailyTransitionResult:
    """Outcome of one daily transition.

    Attributes:
        status: What happened on ``day``.
        state: State after the transition (the input state when untouched).
        entry: Daily-entry row to upsert, if the day accrued.
        bushels_added: Bushels credited for ``day``.
    """

    status: TransitionStatus
    state: AccumulatorState
    entry: Optional[AccumulatorDailyEntry] = None
    bushels_added: float = 0.0

    @property
    def processed(self) -> bool:
        """``True`` when ``day`` counts as processed and should be persisted."""
        return self.status not in (TransitionStatus.SKIPPED, TransitionStatus.INACTIVE)


@dataclass(frozen=True)
class AccumulatorPerformance:
    contract_id: Optional[int]
    accumulator_type: AccumulatorType
    total_days: int
    days_doubled: int
    doubled_percentage: float
    total_bushels_marketed: float
    total_doubled_bushels: float
    remaining_bushels: float
    average_daily_bushels: float
    average_market_price: float
    is_currently_doubled: bool
    knockout_reached: bool
    knockout_date: Optional[date]


def _latest(state: AccumulatorState, day: date) -> date:
    """``last_processed_date`` never moves backwards when an earlier day is re-run."""
    return max(state.last_processed_date or day, day)


def _accrual(
    contract: AccumulatorContract,
    day: date,
    doubled: bool,
    settlement_weekday: int,
    weekly_rate_multiplier: float,
) -> tuple[float, bool]:
    """Raw bushels for ``day`` and whether they were doubled."""
    if contract.accumulator_type == AccumulatorType.EURO:
        return contract.daily_bushels, False
    if contract.accumulator_type == AccumulatorType.WEEKLY:
        if day.weekday() != settlement_weekday:
            return 0.0, False
        base = contract.weekly_rate(weekly_rate_multiplier)
    else:
        base = contract.daily_bushels
    return (base * 2, True) if doubled else (base, False)


def apply_daily_price(
    contract: AccumulatorContract,
    state: AccumulatorState,
    entries: Sequence[AccumulatorDailyEntry],
    day: date,
    price: float,
    settlement_weekday: int = 4,
    weekly_rate_multiplier: float = 5.0,
) -> DailyTransitionResult:
    """Apply one day's settlement price to a contract."""
    if not contract.is_in_window(day):
        return DailyTransitionResult(TransitionStatus.SKIPPED, state)
    if state.knockout_reached or state.euro_expiration_processed:
        return DailyTransitionResult(TransitionStatus.INACTIVE, state)

    if price <= contract.knockout_price:
        knocked = state.model_copy(
            update={
                "knockout_reached": True,
                "knockout_date": day,
                "last_processed_date": _latest(state, day),
            }
        )
        return DailyTransitionResult(TransitionStatus.KNOCKED_OUT, knocked)

    doubled = price <= contract.double_up_price
    raw, was_doubled = _accrual(
        contract, day, doubled, settlement_weekday, weekly_rate_multiplier
    )

    if raw <= 0:
        return DailyTransitionResult(
            TransitionStatus.NO_ACCRUAL,
            state.model_copy(
                update={
                    "is_currently_doubled": doubled,
                    "last_processed_date": _latest(state, day),
                }
            ),
        )

    others = [e for e in entries if e.entry_date != day]
    prior_marketed = sum(e.bushels_marketed for e in others)
    prior_doubled = sum(e.bushels_marketed / 2 for e in others if e.was_doubled)
    bushels = min(raw, max(0.0, contract.total_bushels - prior_marketed))

    notes = []
    if was_doubled:
        notes.append(DOUBLED_NOTE)
    if bushels < raw:
        notes.append(CAPPED_NOTE)

    entry = AccumulatorDailyEntry(
        contract_id=contract.contract_id,
        entry_date=day,
        bushels_marketed=bushels,
        market_price=price,
        was_doubled=was_doubled,
        notes="; ".join(notes),
    )
    new_state = state.model_copy(
        update={
            "total_bushels_marketed": prior_marketed + bushels,
            "total_doubled_bushels": prior_doubled + (bushels / 2 if was_doubled else 0.0),
            "is_currently_doubled": doubled,
            "last_processed_date": _latest(state, day),
        }
    )
    return DailyTransitionResult(TransitionStatus.ACCRUED, new_state, entry, bushels)


def apply_euro_expiration(
    contract: AccumulatorContract,
    state: AccumulatorState,
    price: float,
) -> AccumulatorState:
    """Double the whole EURO total when expiration settles at or below double-up.

    Runs at most once per contract; non-EURO and knocked-out contracts are
    returned unchanged.
    """
    if (
        contract.accumulator_type != AccumulatorType.EURO
        or state.knockout_reached
        or state.euro_expiration_processed
    ):
        return state

    update: dict[str, object] = {"euro_expiration_processed": True}
    if price <= contract.double_up_price:
        current = state.total_bushels_marketed
        doubled_total = min(current * 2, contract.total_bushels)
        update.update(
            total_bushels_marketed=doubled_total,
            total_doubled_bushels=state.total_doubled_bushels + (doubled_total - current),
            is_currently_doubled=True,
        )
    return state.model_copy(update=update)


def performance_summary(
    contract: AccumulatorContract,
    state: AccumulatorState,
    entries: Sequence[AccumulatorDailyEntry],
) -> AccumulatorPerformance:
    total_days = len(entries)
    days_doubled = sum(1 for e in entries if e.was_doubled)
    marketed_from_entries = sum(e.bushels_marketed for e in entries)
    return AccumulatorPerformance(
        contract_id=contract.contract_id,
        accumulator_type=contract.accumulator_type,
        total_days=total_days,
        days_doubled=days_doubled,
        doubled_percentage=days_doubled / total_days * 100 if total_days else 0.0,
        total_bushels_marketed=state.total_bushels_marketed,
        total_doubled_bushels=state.total_doubled_bushels,
        remaining_bushels=max(0.0, contract.total_bushels - state.total_bushels_marketed),
        average_daily_bushels=marketed_from_entries / total_days if total_days else 0.0,
        average_market_price=(
            sum(e.market_price for e in entries) / total_days if total_days else 0.0
        ),
        is_currently_doubled=state.is_currently_doubled,
        knockout_reached=state.knockout_reached,
        knockout_date=state.knockout_date,
    )
