"""Run-level models — aggregate result, progress snapshots and log summaries."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from readycheck.models.execution import ExecutionConfig, LogLevel, PhaseId, PhaseOutcome
from readycheck.models.findings import Category, Finding, PhaseResult, Severity, Status, utcnow

VALIDATION_VERSION = "1.0.0"


class ProductionReadiness(str, Enum):
    PRODUCTION_READY = "PRODUCTION_READY"
    NEEDS_FIXES = "NEEDS_FIXES"
    MAJOR_ISSUES = "MAJOR_ISSUES"
    NOT_READY = "NOT_READY"


class ConfidenceLevel(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class HealthRating(str, Enum):
    EXCELLENT = "EXCELLENT"
    GOOD = "GOOD"
    ACCEPTABLE = "ACCEPTABLE"
    POOR = "POOR"
    CRITICAL = "CRITICAL"


# AggregateResult attribute holding each phase's result
PHASE_SLOTS: dict[PhaseId, str] = {
    PhaseId.STATIC_ANALYSIS: "static_analysis_phase",
    PhaseId.DATABASE_SIMULATION: "database_simulation_phase",
    PhaseId.SECURITY_AUDIT: "security_audit_phase",
    PhaseId.PERFORMANCE_ANALYSIS: "performance_analysis_phase",
    PhaseId.CONFIGURATION_AUDIT: "configuration_audit_phase",
}


def _zero_counts(enum_cls) -> dict[str, int]:
    return {member.value: 0 for member in enum_cls}


class AggregateResult(BaseModel):
    """Whole-run accumulator and final verdict."""

    execution_id: str
    execution_timestamp: datetime = Field(default_factory=utcnow)
    validation_version: str = VALIDATION_VERSION

    # Phase results, one optional slot per phase
    static_analysis_phase: Optional[PhaseResult] = None
    database_simulation_phase: Optional[PhaseResult] = None
    security_audit_phase: Optional[PhaseResult] = None
    performance_analysis_phase: Optional[PhaseResult] = None
    configuration_audit_phase: Optional[PhaseResult] = None
    phase_outcomes: dict[str, PhaseOutcome] = Field(default_factory=dict)  # keyed by PhaseId value

    # Verdict
    overall_status: Status = Status.PENDING
    production_readiness: ProductionReadiness = ProductionReadiness.NOT_READY
    confidence_level: ConfidenceLevel = ConfidenceLevel.LOW
    health_score: float = 0.0
    health_rating: HealthRating = HealthRating.CRITICAL
    critical_issues: list[Finding] = Field(default_factory=list)
    all_recommendations: list[str] = Field(default_factory=list)

    # Metrics
    total_execution_time_ms: float = 0.0
    total_issues_found: int = 0
    issues_by_category: dict[str, int] = Field(default_factory=lambda: _zero_counts(Category))
    issues_by_severity: dict[str, int] = Field(default_factory=lambda: _zero_counts(Severity))

    model_config = {"use_enum_values": True, "validate_default": True}

    def get_phase(self, phase_id: PhaseId) -> Optional[PhaseResult]:
        return getattr(self, PHASE_SLOTS[PhaseId(phase_id)])

    def set_phase(self, phase_id: PhaseId, result: Optional[PhaseResult]) -> None:
        setattr(self, PHASE_SLOTS[PhaseId(phase_id)], result)

    def present_phases(self) -> list[PhaseResult]:
        """Phase results that exist, in declared order."""
        return [r for r in (self.get_phase(p) for p in PHASE_SLOTS) if r is not None]


class ProgressSnapshot(BaseModel):
    """Point-in-time read model of the progress tracker."""

    current_phase: str = "Not Started"
    current_step: str = "Not Started"
    completed_steps: int = 0
    total_steps: int = 0
    percent_complete: float = 0.0
    estimated_time_remaining_ms: Optional[float] = None
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class PhaseProgress(BaseModel):
    phase_id: PhaseId
    phase_name: str
    completed_steps: int
    total_steps: int
    percent_complete: float
    duration_ms: Optional[float] = None


class PhaseSummary(BaseModel):
    phase_id: PhaseId
    phase_name: str
    enabled: bool
    completed: bool
    duration_ms: Optional[float] = None
    step_count: int
    completed_steps: int


class ProgressSummary(BaseModel):
    total_duration_ms: Optional[float] = None
    phase_summaries: list[PhaseSummary] = Field(default_factory=list)
    total_errors: int = 0
    total_warnings: int = 0


class LogEntry(BaseModel):
    """One structured entry in an execution log buffer."""

    timestamp: datetime = Field(default_factory=utcnow)
    level: LogLevel
    category: str
    message: str
    details: Any = None
    execution_id: Optional[str] = None
    phase: Optional[str] = None
    step: Optional[str] = None

    model_config = {"use_enum_values": True, "frozen": True}


class LogSummary(BaseModel):
    total_logs: int = 0
    by_level: dict[str, int] = Field(default_factory=lambda: _zero_counts(LogLevel))
    by_category: dict[str, int] = Field(default_factory=dict)
    errors: list[LogEntry] = Field(default_factory=list)
    warnings: list[LogEntry] = Field(default_factory=list)


class ExecutionSummary(BaseModel):
    """Everything a caller needs after a run, without re-scanning the log buffer."""

    execution_id: str
    config: ExecutionConfig
    progress: ProgressSummary
    logs: LogSummary
    result: Optional[AggregateResult] = None
