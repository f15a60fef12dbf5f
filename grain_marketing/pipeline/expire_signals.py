"""ExpireSignalsStage: sweep ACTIVE signals past their expiration to EXPIRED."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from grain_marketing.models.meta import RunMetadata
from grain_marketing.pipeline.base import PipelineStage
from grain_marketing.utils.time_utils import utcnow


class ExpireSignalsStage(PipelineStage):
    stage_name = "expire_signals"

    def _execute(
        self,
        run: RunMetadata,
        now: Optional[datetime] = None,
        business_id: Optional[int] = None,
        **kwargs: Any,
    ) -> int:
        from grain_marketing.db.repositories.signal_repo import SignalRepository
        from grain_marketing.signals.lifecycle import SignalLifecycleManager

        with self._connect() as conn:
            manager = SignalLifecycleManager(
                SignalRepository(conn), self.config.signals.dedup_window_hours
            )
            return manager.expire_due(now or utcnow(), business_id=business_id)
