"""Phase catalog — the fixed phases, their steps and estimated durations.

Estimated durations feed ETA arithmetic only; they never drive scheduling.
"""

from dataclasses import dataclass, field

from readycheck.errors import UnknownPhaseError
from readycheck.models.execution import PhaseId
from readycheck.models.findings import Category
from readycheck.models.results import PHASE_SLOTS


@dataclass(frozen=True)
class StepDefinition:
    id: str
    name: str
    phase: PhaseId
    estimated_duration_ms: int
    optional: bool = False


@dataclass(frozen=True)
class PhaseDefinition:
    id: PhaseId
    name: str
    category: Category  # Category of a synthesized error finding
    steps: tuple[StepDefinition, ...]
    dependencies: tuple[PhaseId, ...] = field(default_factory=tuple)

    @property
    def estimated_duration_ms(self) -> int:
        return sum(s.estimated_duration_ms for s in self.steps)

    @property
    def slot(self) -> str:
        return PHASE_SLOTS[self.id]


def _steps(phase: PhaseId, *specs: tuple) -> tuple[StepDefinition, ...]:
    return tuple(StepDefinition(step_id, name, phase, ms) for step_id, name, ms in specs)


PHASE_CATALOG: tuple[PhaseDefinition, ...] = (
    PhaseDefinition(
        id=PhaseId.STATIC_ANALYSIS,
        name="Static Analysis",
        category=Category.NATIVE,
        steps=_steps(
            PhaseId.STATIC_ANALYSIS,
            ("analyze_ios_modules", "Analyze iOS Native Modules", 60_000),
            ("analyze_android_modules", "Analyze Android Native Modules", 60_000),
            ("analyze_bridge_layer", "Analyze JavaScript Bridge Layer", 90_000),
            ("validate_interfaces", "Validate Module Interfaces", 30_000),
            ("check_code_quality", "Check Code Quality", 60_000),
        ),
    ),
    PhaseDefinition(
        id=PhaseId.DATABASE_SIMULATION,
        name="Database Simulation",
        category=Category.DATABASE,
        dependencies=(PhaseId.STATIC_ANALYSIS,),
        steps=_steps(
            PhaseId.DATABASE_SIMULATION,
            ("validate_db_functions", "Validate Database Functions", 60_000),
            ("simulate_flows", "Simulate End-to-End Flows", 90_000),
            ("test_concurrency", "Test Concurrent Operations", 90_000),
        ),
    ),
    PhaseDefinition(
        id=PhaseId.SECURITY_AUDIT,
        name="Security Audit",
        category=Category.SECURITY,
        steps=_steps(
            PhaseId.SECURITY_AUDIT,
            ("audit_token_security", "Audit Token Security", 60_000),
            ("audit_database_security", "Audit Database Security", 60_000),
            ("audit_payload_security", "Audit Payload Security", 60_000),
        ),
    ),
    PhaseDefinition(
        id=PhaseId.PERFORMANCE_ANALYSIS,
        name="Performance Analysis",
        category=Category.PERFORMANCE,
        dependencies=(PhaseId.DATABASE_SIMULATION,),
        steps=_steps(
            PhaseId.PERFORMANCE_ANALYSIS,
            ("analyze_scalability", "Analyze Scalability", 120_000),
            ("estimate_resources", "Estimate Resource Usage", 90_000),
            ("identify_bottlenecks", "Identify Performance Bottlenecks", 90_000),
        ),
    ),
    PhaseDefinition(
        id=PhaseId.CONFIGURATION_AUDIT,
        name="Configuration Audit",
        category=Category.CONFIG,
        steps=_steps(
            PhaseId.CONFIGURATION_AUDIT,
            ("audit_app_config", "Audit App Configuration", 30_000),
            ("audit_build_config", "Audit Build Configuration", 30_000),
            ("audit_permissions", "Audit Permissions", 30_000),
            ("validate_deployment", "Validate Deployment Readiness", 30_000),
        ),
    ),
)

_BY_ID = {p.id: p for p in PHASE_CATALOG}


def parse_phase_id(value) -> PhaseId:
    """Coerce a string or PhaseId, raising UnknownPhaseError for anything else."""
    try:
        return PhaseId(value)
    except ValueError:
        raise UnknownPhaseError(
            f"Unknown phase '{value}'. Use one of: {', '.join(p.value for p in PhaseId)}"
        ) from None


def get_phase(phase_id) -> PhaseDefinition:
    return _BY_ID[parse_phase_id(phase_id)]


def phase_order() -> list[PhaseId]:
    return [p.id for p in PHASE_CATALOG]


def category_for_phase(phase_id) -> Category:
    return get_phase(phase_id).category


def all_steps(catalog: tuple[PhaseDefinition, ...] = PHASE_CATALOG) -> list[StepDefinition]:
    return [step for phase in catalog for step in phase.steps]
