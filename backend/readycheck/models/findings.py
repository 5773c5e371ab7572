"""Finding models — statuses, severities, categories, findings and phase results.

A Finding is the atomic output of an analysis engine. A PhaseResult is the
rolled-up outcome of one engine's validate() call.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Status(str, Enum):
    """Outcome of a finding, a phase or a whole run."""

    PASS = "PASS"
    FAIL = "FAIL"
    CONDITIONAL = "CONDITIONAL"
    PENDING = "PENDING"  # Aggregate has not been assessed yet
    SKIPPED = "SKIPPED"


class Severity(str, Enum):
    """Finding severity levels, most severe first."""

    CRITICAL = "CRITICAL"  # Blocks production outright
    HIGH = "HIGH"          # Will cause production incidents
    MEDIUM = "MEDIUM"      # Should be fixed, not blocking
    LOW = "LOW"            # Improvement
    INFO = "INFO"          # Confirmation / informational


class Category(str, Enum):
    """Area of the target system a finding belongs to."""

    NATIVE = "NATIVE"
    BRIDGE = "BRIDGE"
    DATABASE = "DATABASE"
    SECURITY = "SECURITY"
    PERFORMANCE = "PERFORMANCE"
    CONFIG = "CONFIG"


class EvidenceType(str, Enum):
    CODE_REFERENCE = "CODE_REFERENCE"
    TEST_RESULT = "TEST_RESULT"
    PERFORMANCE_METRIC = "PERFORMANCE_METRIC"
    SECURITY_FINDING = "SECURITY_FINDING"
    CONFIG_ISSUE = "CONFIG_ISSUE"


# Higher rank = worse. PENDING/SKIPPED never make a roll-up worse than PASS.
STATUS_RANK = {
    Status.PASS: 0,
    Status.PENDING: 0,
    Status.SKIPPED: 0,
    Status.CONDITIONAL: 1,
    Status.FAIL: 2,
}

# Statuses a PhaseResult may carry
PHASE_STATUSES = (Status.PASS, Status.CONDITIONAL, Status.FAIL)


def worst_status(statuses: Iterable[Union[Status, str]]) -> Status:
    """Roll up statuses: any FAIL => FAIL, else any CONDITIONAL => CONDITIONAL, else PASS."""
    worst = Status.PASS
    for status in statuses:
        status = Status(status)
        if STATUS_RANK[status] > STATUS_RANK[worst]:
            worst = status
    return worst


class Evidence(BaseModel):
    """A piece of supporting evidence attached to a finding."""

    type: EvidenceType
    location: str
    details: str
    severity: Severity
    line_number: Optional[int] = None
    code_snippet: Optional[str] = None

    model_config = {"use_enum_values": True, "frozen": True}


class Finding(BaseModel):
    """A single validation finding produced by an engine."""

    id: str
    name: str
    status: Status
    severity: Severity
    category: Category
    message: str
    details: Optional[Union[str, dict[str, Any]]] = None
    evidence: list[Evidence] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    execution_time_ms: Optional[float] = None
    timestamp: datetime = Field(default_factory=utcnow)

    model_config = {"use_enum_values": True, "frozen": True}


def _field(item: Any, name: str) -> Any:
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


class PhaseResult(BaseModel):
    """Outcome of one engine's validate() call."""

    phase_name: str
    status: Status
    start_time: datetime = Field(default_factory=utcnow)
    end_time: Optional[datetime] = None
    duration_ms: Optional[float] = None
    results: list[Finding] = Field(default_factory=list)
    critical_issues: list[Finding] = Field(default_factory=list)
    summary: str = ""
    recommendations: list[str] = Field(default_factory=list)

    model_config = {"use_enum_values": True, "frozen": True}

    @model_validator(mode="before")
    @classmethod
    def _roll_up(cls, data: Any) -> Any:
        """Never report a status better than the worst finding; derive the critical subset.

        critical_issues is always the CRITICAL-severity subset of results;
        a list supplied by the engine is replaced.
        """
        if not isinstance(data, dict):
            return data
        data = dict(data)
        results = data.get("results") or []
        declared = data.get("status")
        if declared is not None and results:
            worst = worst_status(_field(r, "status") for r in results)
            if STATUS_RANK[worst] > STATUS_RANK[Status(declared)]:
                data["status"] = worst
        data["critical_issues"] = [
            r for r in results if _field(r, "severity") == Severity.CRITICAL
        ]
        return data

    @field_validator("status")
    @classmethod
    def _check_phase_status(cls, v: Status) -> Status:
        if Status(v) not in PHASE_STATUSES:
            raise ValueError(f"Phase status must be PASS, FAIL or CONDITIONAL, got {Status(v).value}")
        return v

    @classmethod
    def build(
        cls,
        phase_name: str,
        findings: list[Finding],
        start_time: datetime,
        end_time: Optional[datetime] = None,
        recommendations: Optional[list[str]] = None,
        summary: Optional[str] = None,
    ) -> "PhaseResult":
        """Build a phase result whose status is the roll-up of its findings."""
        end_time = end_time or utcnow()
        status = worst_status(f.status for f in findings)
        failed = sum(1 for f in findings if f.status == Status.FAIL)
        conditional = sum(1 for f in findings if f.status == Status.CONDITIONAL)

        if summary is None:
            summary = (
                f"{phase_name}: {len(findings)} checks, "
                f"{failed} failed, {conditional} conditional"
            )

        # Collect finding-level recommendations after the phase-level ones
        recs = list(recommendations or [])
        for f in findings:
            for rec in f.recommendations:
                if rec not in recs:
                    recs.append(rec)

        return cls(
            phase_name=phase_name,
            status=status,
            start_time=start_time,
            end_time=end_time,
            duration_ms=round((end_time - start_time).total_seconds() * 1000, 2),
            results=findings,
            summary=summary,
            recommendations=recs,
        )
