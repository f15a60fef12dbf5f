"""
GenerateSignalsStage: run the scoring engine for one or every business.

Each business gets its own ``SignalEngine`` pass; a business whose pass
raises is logged and the remaining businesses still run. Returns the number
of signals created, updated or reused.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Optional

from grain_marketing.models.meta import RunMetadata
from grain_marketing.pipeline.base import PipelineStage
from grain_marketing.utils.logging import unit_context
from grain_marketing.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


class GenerateSignalsStage(PipelineStage):
    """Evaluate every enabled instrument and upsert the resulting signals."""

    stage_name = "generate_signals"

    def _execute(
        self,
        run: RunMetadata,
        business_id: Optional[int] = None,
        as_of: Optional[date] = None,
        now: Optional[datetime] = None,
        **kwargs: Any,
    ) -> int:
        from grain_marketing.db.repositories.cost_repo import CostRepository
        from grain_marketing.signals.engine import SignalEngine

        now = now or utcnow()
        as_of = as_of or now.date()
        total = 0

        with self._connect() as conn:
            costs = CostRepository(conn)
            if business_id is not None:
                if not costs.business_exists(business_id):
                    raise ValueError(f"Unknown business_id {business_id}.")
                business_ids = [business_id]
            else:
                business_ids = costs.list_business_ids()

            engine = SignalEngine(conn, self.config)
            for bid in business_ids:
                try:
                    result = engine.generate_for_business(bid, as_of, now)
                except Exception:
                    logger.exception(
                        "Signal generation failed for business %d", bid,
                        extra=unit_context(business_id=bid, run_slug=run.run_slug),
                    )
                    continue
                total += result.outcome.total

        return total
