"""
Signal lifecycle: dedup-upsert of drafts, expiry sweep, user transitions.

    draft ──► ACTIVE ──► TRIGGERED   (record_action)
                    ├──► DISMISSED   (dismiss)
                    └──► EXPIRED     (expire_due, once expires_at < now)

Dedup: an ACTIVE signal for the same business / instrument / commodity
created within the dedup window is the match for a new draft. Same
strength ⇒ reuse it untouched; different strength ⇒ overwrite its
evaluated fields in place; no match ⇒ insert a new ACTIVE signal.

Timestamp comparisons are done on parsed UTC datetimes, never on stored
strings.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Optional

from grain_marketing.db.repositories.signal_repo import SignalRepository
from grain_marketing.models.signal import MarketingSignal, SignalDraft
from grain_marketing.taxonomy.marketing_taxonomy import SignalStatus
from grain_marketing.utils.logging import unit_context
from grain_marketing.utils.time_utils import to_utc

logger = logging.getLogger(__name__)


class SignalTransitionError(RuntimeError):
    """Raised when a lifecycle transition is attempted from a terminal status."""


@dataclass
class UpsertOutcome:
    """Counts and ids from one ``upsert_drafts`` call."""

    created: list[int] = field(default_factory=list)
    updated: list[int] = field(default_factory=list)
    reused: list[int] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.created) + len(self.updated) + len(self.reused)


class SignalLifecycleManager:
    """Applies lifecycle rules on top of ``SignalRepository``."""

    def __init__(self, repo: SignalRepository, dedup_window_hours: int = 24) -> None:
        self._repo = repo
        self._window = timedelta(hours=dedup_window_hours)

    def find_duplicate(self, draft: SignalDraft, now: datetime) -> Optional[MarketingSignal]:
        cutoff = to_utc(now) - self._window
        for existing in self._repo.find_active(draft.business_id, draft.signal_type, draft.commodity):
            if to_utc(existing.created_at) >= cutoff:
                return existing
        return None

    def upsert_drafts(self, drafts: Iterable[SignalDraft], now: datetime) -> UpsertOutcome:
        outcome = UpsertOutcome()
        now = to_utc(now)
        for draft in drafts:
            existing = self.find_duplicate(draft, now)
            if existing is None:
                signal = MarketingSignal(
                    **draft.model_dump(),
                    status=SignalStatus.ACTIVE,
                    created_at=now,
                    updated_at=now,
                )
                signal_id = self._repo.insert(signal)
                outcome.created.append(signal_id)
                logger.info(
                    "Created %s %s signal %d for business %d",
                    draft.strength, draft.signal_type, signal_id, draft.business_id,
                    extra=unit_context(
                        business_id=draft.business_id,
                        commodity=draft.commodity.value,
                        signal_id=signal_id,
                    ),
                )
                continue

            assert existing.signal_id is not None
            if existing.strength == draft.strength:
                outcome.reused.append(existing.signal_id)
                continue

            updated = existing.model_copy(
                update={
                    "strength": draft.strength,
                    "current_price": draft.current_price,
                    "break_even_price": draft.break_even_price,
                    "target_price": draft.target_price,
                    "price_above_break_even": draft.price_above_break_even,
                    "percent_above_break_even": draft.percent_above_break_even,
                    "recommended_bushels": draft.recommended_bushels,
                    "title": draft.title,
                    "summary": draft.summary,
                    "rationale": draft.rationale,
                    "context": draft.context,
                    "updated_at": now,
                }
            )
            self._repo.update_evaluation(updated)
            outcome.updated.append(existing.signal_id)
            logger.info(
                "Signal %d strength %s -> %s",
                existing.signal_id, existing.strength, draft.strength,
                extra=unit_context(
                    business_id=draft.business_id,
                    commodity=draft.commodity.value,
                    signal_id=existing.signal_id,
                ),
            )
        return outcome

    def expire_due(self, now: datetime, business_id: Optional[int] = None) -> int:
        """Mark ACTIVE signals with ``expires_at < now`` as EXPIRED."""
        now = to_utc(now)
        expired = 0
        for signal in self._repo.list_active(business_id):
            if to_utc(signal.expires_at) < now:
                self._repo.update_status(
                    signal.model_copy(update={"status": SignalStatus.EXPIRED, "updated_at": now})
                )
                expired += 1
        if expired:
            logger.info("Expired %d signal(s)", expired)
        return expired

    def _require_active(self, signal_id: int) -> MarketingSignal:
        signal = self._repo.get(signal_id)
        if signal is None:
            raise KeyError(f"Signal {signal_id} not found.")
        if signal.status != SignalStatus.ACTIVE:
            raise SignalTransitionError(
                f"Signal {signal_id} is {signal.status}; only ACTIVE signals can transition."
            )
        return signal

    def dismiss(self, signal_id: int, reason: Optional[str], at: datetime) -> MarketingSignal:
        signal = self._require_active(signal_id)
        at = to_utc(at)
        dismissed = signal.model_copy(
            update={
                "status": SignalStatus.DISMISSED,
                "dismissed_at": at,
                "dismiss_reason": reason,
                "updated_at": at,
            }
        )
        self._repo.update_status(dismissed)
        return dismissed

    def record_action(self, signal_id: int, action: str, at: datetime) -> MarketingSignal:
        signal = self._require_active(signal_id)
        at = to_utc(at)
        triggered = signal.model_copy(
            update={
                "status": SignalStatus.TRIGGERED,
                "action_taken": action,
                "action_taken_at": at,
                "updated_at": at,
            }
        )
        self._repo.update_status(triggered)
        return triggered

    def mark_viewed(self, signal_id: int, at: datetime) -> MarketingSignal:
        """Stamp the first view; later views are no-ops."""
        signal = self._repo.get(signal_id)
        if signal is None:
            raise KeyError(f"Signal {signal_id} not found.")
        if signal.viewed_at is not None:
            return signal
        viewed = signal.model_copy(update={"viewed_at": to_utc(at)})
        self._repo.update_status(viewed)
        return viewed
