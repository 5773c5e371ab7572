"""Phase catalog endpoint."""

from fastapi import APIRouter

from readycheck.models.responses import PhaseResponse, PhaseStepResponse
from readycheck.orchestration.phases import PHASE_CATALOG

router = APIRouter()


@router.get("/phases", response_model=list[PhaseResponse])
async def list_phases():
    """List the phases in execution order with their steps and estimates."""
    return [
        PhaseResponse(
            id=phase.id.value,
            name=phase.name,
            category=phase.category.value,
            estimated_duration_ms=phase.estimated_duration_ms,
            dependencies=[d.value for d in phase.dependencies],
            steps=[
                PhaseStepResponse(id=s.id, name=s.name, estimated_duration_ms=s.estimated_duration_ms)
                for s in phase.steps
            ],
        )
        for phase in PHASE_CATALOG
    ]
