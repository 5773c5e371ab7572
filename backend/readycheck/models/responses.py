"""API response models."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel

from readycheck.models.results import ProgressSnapshot

RunStatus = Literal["pending", "running", "complete", "error"]


class CreateRunResponse(BaseModel):
    """Response after creating a new run."""

    run_id: str
    status: RunStatus = "pending"
    created_at: datetime
    websocket_url: str
    enabled_phases: list[str]
    engines: list[str]


class RunVerdict(BaseModel):
    """The three-part verdict plus the health score, once a run has finished."""

    overall_status: str
    production_readiness: str
    confidence_level: str
    health_score: float
    health_rating: str
    total_issues_found: int
    critical_issues: int


class RunStatusResponse(BaseModel):
    """Run status with live progress and, when finished, the verdict."""

    run_id: str
    status: RunStatus
    progress: ProgressSnapshot
    verdict: Optional[RunVerdict] = None
    error: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None


class PhaseStepResponse(BaseModel):
    id: str
    name: str
    estimated_duration_ms: int


class PhaseResponse(BaseModel):
    """One catalog entry."""

    id: str
    name: str
    category: str
    estimated_duration_ms: int
    dependencies: list[str]
    steps: list[PhaseStepResponse]


class HealthDependency(BaseModel):
    """Health status of a single dependency."""

    status: Literal["healthy", "unhealthy", "degraded"]
    latency_ms: Optional[float] = None
    message: Optional[str] = None


class HealthResponse(BaseModel):
    """System health check response."""

    status: Literal["healthy", "unhealthy", "degraded"]
    version: str = "1.0.0"
    uptime_seconds: float
    dependencies: dict[str, HealthDependency]
