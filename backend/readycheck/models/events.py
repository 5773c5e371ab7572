"""Run event models for real-time progress streaming."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel


class BaseEvent(BaseModel):
    """Base event model for all run events."""

    type: str
    execution_id: str
    timestamp: datetime = None

    def model_post_init(self, __context):
        if self.timestamp is None:
            self.timestamp = datetime.utcnow()

    def model_dump(self, **kwargs):
        """Override to always serialize datetimes as ISO strings for JSON safety."""
        kwargs.setdefault("mode", "json")
        return super().model_dump(**kwargs)


class RunStartedEvent(BaseEvent):
    """Emitted when execute_validation() begins."""

    type: Literal["run_started"] = "run_started"
    enabled_phases: list[str]
    registered_roles: list[str]


class PhaseStartedEvent(BaseEvent):
    """Emitted when an engine-backed phase begins."""

    type: Literal["phase_started"] = "phase_started"
    phase_id: str
    phase_name: str
    engine: str


class PhaseSkippedEvent(BaseEvent):
    """Emitted when a phase is disabled or has no engine."""

    type: Literal["phase_skipped"] = "phase_skipped"
    phase_id: str
    phase_name: str
    reason: Literal["disabled", "no_engine"]


class PhaseCompletedEvent(BaseEvent):
    """Emitted when a phase result has been stored."""

    type: Literal["phase_completed"] = "phase_completed"
    phase_id: str
    phase_name: str
    status: str
    findings_total: int
    findings_critical: int
    duration_ms: float
    failed: bool = False


class ProgressEvent(BaseEvent):
    """Emitted after each phase to carry an updated progress snapshot."""

    type: Literal["progress"] = "progress"
    completed_steps: int
    total_steps: int
    percent_complete: float
    estimated_time_remaining_ms: Optional[float] = None


class RunCompletedEvent(BaseEvent):
    """Emitted once the final assessment has been computed."""

    type: Literal["run_completed"] = "run_completed"
    overall_status: str
    production_readiness: str
    confidence_level: str
    total_issues: int
    duration_ms: float


class ErrorEvent(BaseEvent):
    """Emitted when a phase or the run fails."""

    type: Literal["error"] = "error"
    message: str
    phase_id: Optional[str] = None
    recoverable: bool = True
