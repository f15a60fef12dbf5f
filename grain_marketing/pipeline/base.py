"""
Abstract base class for all pipeline stages.

Every stage follows the same contract:
  1. Receive ``AppConfig`` at construction.
  2. ``run(**kwargs)`` is the sole public API.
  3. ``run()`` creates a ``RunMetadata`` record, calls ``_execute()``,
     and persists the run record with final status.
  4. ``_execute()`` is the stage-specific implementation.

A failing ``_execute()`` is recorded as ``status='failed'`` and re-raised;
stages never swallow their own errors. Per-unit isolation (one commodity,
one contract) happens inside the engine and processor, not here.

Usage::

    class MyStage(PipelineStage):
        stage_name = "expire_signals"

        def _execute(self, run: RunMetadata, **kwargs) -> int:
            return 3

    run = MyStage(config=app_config).run()
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any
from uuid import uuid4

from grain_marketing.config import AppConfig
from grain_marketing.models.meta import RunMetadata
from grain_marketing.utils.logging import unit_context
from grain_marketing.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


class PipelineStage(ABC):
    """Abstract base for all pipeline stages.

    Attributes:
        stage_name: Identifier matching a valid ``RunMetadata.pipeline_stage``.
        config: The application configuration for this run.
        db_path: SQLite path (defaults to ``config.database.db_path``).
    """

    stage_name: str

    def __init__(self, config: AppConfig, db_path: str | None = None) -> None:
        self.config = config
        self.db_path = db_path or config.database.db_path

    def run(self, **kwargs: Any) -> RunMetadata:
        """Execute this stage and return the finalized run record.

        Raises:
            Exception: Re-raises any exception from ``_execute()`` after
                recording ``status='failed'``.
        """
        run = RunMetadata(
            run_slug=str(uuid4()),
            pipeline_stage=self.stage_name,
            business_id=kwargs.get("business_id"),
            config_snapshot=self.config.model_dump(mode="json"),
            started_at=utcnow(),
        )
        logger.info(
            "Stage [%s] starting | run_slug=%s",
            self.stage_name, run.run_slug,
            extra=unit_context(run_slug=run.run_slug, business_id=run.business_id),
        )

        try:
            rows = self._execute(run=run, **kwargs)
        except Exception as exc:
            run.status = "failed"
            run.error_message = str(exc)
            run.finished_at = utcnow()
            logger.error(
                "Stage [%s] FAILED: %s | run_slug=%s",
                self.stage_name, exc, run.run_slug,
                extra=unit_context(run_slug=run.run_slug),
            )
            self._persist_run(run)
            raise

        run.status = "success"
        run.rows_processed = rows
        run.finished_at = utcnow()
        logger.info(
            "Stage [%s] completed | rows=%d | run_slug=%s",
            self.stage_name, rows, run.run_slug,
            extra=unit_context(run_slug=run.run_slug),
        )
        self._persist_run(run)
        return run

    @abstractmethod
    def _execute(self, run: RunMetadata, **kwargs: Any) -> int:
        """Stage-specific work; returns the number of units processed."""
        ...

    def _connect(self):
        from grain_marketing.db.connection import get_connection

        db = self.config.database
        return get_connection(
            self.db_path, wal_mode=db.wal_mode, busy_timeout_ms=db.busy_timeout_ms
        )

    def _persist_run(self, run: RunMetadata) -> None:
        """Write or update the run record.

        Persistence failures are logged, not raised, so they never mask the
        stage's own error.
        """
        try:
            from grain_marketing.db.repositories.run_repo import RunMetadataRepository

            with self._connect() as conn:
                repo = RunMetadataRepository(conn)
                if run.run_id is None:
                    run.run_id = repo.insert_run(run)
                else:
                    repo.update_run(run)
        except Exception as exc:
            logger.error(
                "Failed to persist RunMetadata for run_slug=%s: %s",
                run.run_slug, exc,
            )
