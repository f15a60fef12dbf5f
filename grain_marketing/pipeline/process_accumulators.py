"""
ProcessAccumulatorsStage: daily accumulator sweep for one trading day.

Defaults to today (UTC). Non-trading days are a no-op. Returns the number
of contracts whose day was processed, knockouts included.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional

from grain_marketing.models.meta import RunMetadata
from grain_marketing.pipeline.base import PipelineStage
from grain_marketing.utils.time_utils import is_trading_day, utcnow

logger = logging.getLogger(__name__)


class ProcessAccumulatorsStage(PipelineStage):
    stage_name = "process_accumulators"

    def _execute(
        self,
        run: RunMetadata,
        day: Optional[date] = None,
        **kwargs: Any,
    ) -> int:
        from grain_marketing.accumulators.processor import AccumulatorProcessor
        from grain_marketing.db.repositories.market_repo import MarketRepository
        from grain_marketing.market.sqlite_feeds import SqliteMarketDataFeed

        day = day or utcnow().date()
        if not is_trading_day(day):
            logger.info("%s is not a trading day; nothing to process.", day)
            return 0

        with self._connect() as conn:
            processor = AccumulatorProcessor(
                conn, SqliteMarketDataFeed(MarketRepository(conn)), self.config.accumulator
            )
            result = processor.process_all(day)

        if result.failed:
            run.error_message = f"{len(result.failed)} contract(s) failed: {result.failed}"
        return len(result.processed) + len(result.knocked_out)
