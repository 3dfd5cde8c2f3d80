"""
Pipeline run models: orchestrator states, run statistics and outcomes,
and the retention cleanup report.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class RunState(str, Enum):
    """Orchestrator state machine."""
    IDLE = "idle"
    ACQUIRING_LOCK = "acquiring_lock"
    SKIPPED = "skipped"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    LOCK_RELEASED = "lock_released"


class SkipReason(str, Enum):
    LOCKED = "locked"
    TOO_SOON = "too_soon"
    NO_NEW_ITEMS = "no_new_items"


class PipelineStats(BaseModel):
    """Aggregate counters for one pipeline run."""
    articles_fetched: int = 0
    articles_inserted: int = 0
    clusters_created: int = 0
    clusters_updated: int = 0
    summaries_generated: int = 0
    summaries_flagged: int = 0
    clusters_published: int = 0
    errors: List[Dict[str, str]] = Field(default_factory=list)  # {stage, message}


class PipelineOutcome(BaseModel):
    """What a trigger returns: skipped, completed with stats, or failed."""
    run_id: Optional[str] = None
    ok: bool = True
    skipped: bool = False
    reason: Optional[SkipReason] = None
    state: RunState = RunState.IDLE
    states: List[RunState] = Field(default_factory=list)
    stats: Optional[PipelineStats] = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        use_enum_values = True


class RetentionStep(BaseModel):
    """One explicit deletion step of a retention purge."""
    name: str  # summaries | cluster_articles | article_links | clusters
    rows: int = 0


class RetentionReport(BaseModel):
    """Result of purging incidents created before the cutoff."""
    cutoff: datetime
    deleted_count: int = 0
    deleted_ids: List[str] = Field(default_factory=list)
    steps: List[RetentionStep] = Field(default_factory=list)
    failed_step: Optional[str] = None
    error: Optional[str] = None
