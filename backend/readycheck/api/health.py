"""Health check endpoint."""

import time

from fastapi import APIRouter

from readycheck.config import get_settings
from readycheck.engines.loader import resolve_engine_class
from readycheck.errors import EngineLoadError
from readycheck.models.responses import HealthDependency, HealthResponse

router = APIRouter()

_start_time = time.time()


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Service health, with one dependency entry per configured engine."""
    dependencies = {}

    for role, path in get_settings().ENGINES.items():
        start = time.time()
        try:
            resolve_engine_class(path)
            latency = (time.time() - start) * 1000
            dependencies[f"engine:{role}"] = HealthDependency(status="healthy", latency_ms=round(latency, 2))
        except EngineLoadError as e:
            dependencies[f"engine:{role}"] = HealthDependency(status="unhealthy", message=str(e))

    if all(d.status == "healthy" for d in dependencies.values()):
        status = "healthy"
    elif any(d.status == "healthy" for d in dependencies.values()):
        status = "degraded"
    else:
        status = "unhealthy"

    return HealthResponse(
        status=status,
        uptime_seconds=round(time.time() - _start_time, 2),
        dependencies=dependencies,
    )
