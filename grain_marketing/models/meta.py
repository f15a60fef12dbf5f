"""
Run metadata: the audit log of every pipeline stage execution.

Each run records a ``config_snapshot`` (full ``AppConfig`` as a dict) so a
past signal sweep or accumulator pass can be reproduced against the same
settings.

``RunMetadata`` is the only model in the package that is NOT frozen: its
``status``, ``rows_processed``, ``error_message`` and ``finished_at`` are
updated while the stage executes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator

VALID_PIPELINE_STAGES = frozenset({
    "generate_signals", "expire_signals", "process_accumulators",
})
VALID_RUN_STATUSES = frozenset({"started", "success", "failed", "skipped"})


class RunMetadata(BaseModel):
    """Pipeline execution audit record.

    Attributes:
        run_id: Auto-assigned DB PK; ``None`` before insertion.
        run_slug: UUID4 string identifying this run.
        pipeline_stage: Which stage produced this record.
        status: started / success / failed / skipped.
        business_id: Business processed, or ``None`` for sweeps.
        config_snapshot: ``AppConfig.model_dump()`` at run start.
        rows_processed: Units produced (signals upserted, contracts processed …).
        error_message: Set when ``status == "failed"``.
        started_at / finished_at: UTC timestamps.
    """

    model_config = ConfigDict(frozen=False)

    run_id: Optional[int] = None
    run_slug: str
    pipeline_stage: str
    status: str = "started"
    business_id: Optional[int] = None
    config_snapshot: dict[str, Any]
    rows_processed: int = 0
    error_message: Optional[str] = None
    started_at: datetime
    finished_at: Optional[datetime] = None

    @field_validator("pipeline_stage")
    @classmethod
    def validate_pipeline_stage(cls, v: str) -> str:
        if v not in VALID_PIPELINE_STAGES:
            raise ValueError(
                f"Unknown pipeline_stage '{v}'. Must be one of {sorted(VALID_PIPELINE_STAGES)}."
            )
        return v

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        if v not in VALID_RUN_STATUSES:
            raise ValueError(
                f"Unknown status '{v}'. Must be one of {sorted(VALID_RUN_STATUSES)}."
            )
        return v
