"""Assessment policy — every verdict threshold and score penalty in one place.

The final assessment is a pure function of the aggregate result and this
policy, so thresholds can be tuned and tested without touching control flow.
"""

from typing import Iterable

from pydantic import BaseModel, Field

from readycheck.models.findings import PhaseResult, Severity, Status, worst_status
from readycheck.models.results import ConfidenceLevel, HealthRating, ProductionReadiness


class AssessmentPolicy(BaseModel):
    """Thresholds for readiness, confidence and health scoring."""

    # Readiness
    major_issues_high_threshold: int = Field(default=3, description="HIGH count above this => MAJOR_ISSUES")

    # Confidence
    low_confidence_completion: float = Field(default=0.6, description="Completion rate below this => LOW")
    medium_confidence_completion: float = Field(default=0.8, description="Completion rate below this => MEDIUM")
    medium_confidence_high_threshold: int = Field(default=2, description="HIGH count above this => MEDIUM")

    # Health score: starts at 100, penalties subtracted, bonus per passing phase
    health_penalties: dict[str, float] = Field(
        default_factory=lambda: {
            Severity.CRITICAL.value: 25,
            Severity.HIGH.value: 10,
            Severity.MEDIUM.value: 5,
            Severity.LOW.value: 0,
            Severity.INFO.value: 0,
        }
    )
    passing_phase_bonus: float = 5
    health_cutoffs: dict[str, float] = Field(
        default_factory=lambda: {
            HealthRating.EXCELLENT.value: 90,
            HealthRating.GOOD.value: 75,
            HealthRating.ACCEPTABLE.value: 60,
            HealthRating.POOR.value: 30,
        }
    )

    model_config = {"frozen": True}

    def overall_status(self, phases: Iterable[PhaseResult]) -> Status:
        """FAIL if any phase failed, CONDITIONAL if any conditional, else PASS.

        Zero phases means zero evidence: FAIL, never a vacuous PASS.
        """
        statuses = [p.status for p in phases]
        if not statuses:
            return Status.FAIL
        return worst_status(statuses)

    def production_readiness(self, overall: Status, by_severity: dict[str, int]) -> ProductionReadiness:
        critical = by_severity.get(Severity.CRITICAL.value, 0)
        high = by_severity.get(Severity.HIGH.value, 0)

        if overall == Status.FAIL or critical > 0:
            return ProductionReadiness.NOT_READY
        if overall == Status.CONDITIONAL or high > self.major_issues_high_threshold:
            return ProductionReadiness.MAJOR_ISSUES
        if high > 0:
            return ProductionReadiness.NEEDS_FIXES
        return ProductionReadiness.PRODUCTION_READY

    def confidence_level(self, completed: int, enabled: int, by_severity: dict[str, int]) -> ConfidenceLevel:
        """How much of the intended analysis actually ran, independent of how clean it was."""
        completion_rate = completed / enabled if enabled else 0.0
        critical = by_severity.get(Severity.CRITICAL.value, 0)
        high = by_severity.get(Severity.HIGH.value, 0)

        if completion_rate < self.low_confidence_completion or critical > 0:
            return ConfidenceLevel.LOW
        if completion_rate < self.medium_confidence_completion or high > self.medium_confidence_high_threshold:
            return ConfidenceLevel.MEDIUM
        return ConfidenceLevel.HIGH

    def health_score(self, by_severity: dict[str, int], phases: Iterable[PhaseResult]) -> float:
        score = 100.0
        for severity, count in by_severity.items():
            score -= self.health_penalties.get(severity, 0) * count
        score += self.passing_phase_bonus * sum(1 for p in phases if p.status == Status.PASS)
        return round(max(0.0, min(100.0, score)), 1)

    def health_rating(self, score: float) -> HealthRating:
        for rating, cutoff in sorted(self.health_cutoffs.items(), key=lambda kv: -kv[1]):
            if score >= cutoff:
                return HealthRating(rating)
        return HealthRating.CRITICAL


DEFAULT_POLICY = AssessmentPolicy()
