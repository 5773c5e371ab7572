"""Runs API — start a run, poll status and progress, fetch results and logs."""

from typing import Optional

import structlog
from fastapi import APIRouter, BackgroundTasks, HTTPException, Query, Request
from fastapi.responses import Response

from readycheck.config import get_settings
from readycheck.engines.loader import load_engines
from readycheck.errors import NoResultError
from readycheck.models.execution import ExecutionConfig, LogLevel, OutputFormat
from readycheck.models.requests import CreateRunRequest
from readycheck.models.responses import CreateRunResponse, RunStatusResponse, RunVerdict
from readycheck.models.results import LogEntry, ProgressSnapshot
from readycheck.services.rate_limiter import rate_limiter
from readycheck.services.run_manager import RunManager, RunRecord

logger = structlog.get_logger()

router = APIRouter()

MEDIA_TYPES = {
    OutputFormat.JSON: "application/json",
    OutputFormat.MARKDOWN: "text/markdown",
    OutputFormat.HTML: "text/html",
    OutputFormat.CSV: "text/csv",
}


def _run_manager(request: Request) -> RunManager:
    return request.app.state.run_manager


def _status_response(record: RunRecord) -> RunStatusResponse:
    verdict = None
    result = record.controller.get_current_result() if record.finished else None
    if result is not None:
        verdict = RunVerdict(
            overall_status=result.overall_status,
            production_readiness=result.production_readiness,
            confidence_level=result.confidence_level,
            health_score=result.health_score,
            health_rating=result.health_rating,
            total_issues_found=result.total_issues_found,
            critical_issues=len(result.critical_issues),
        )

    return RunStatusResponse(
        run_id=record.run_id,
        status=record.status,
        progress=record.controller.get_progress(),
        verdict=verdict,
        error=record.error,
        created_at=record.created_at,
        completed_at=record.completed_at,
    )


# ─── Endpoints ───


@router.post("/runs", status_code=202, response_model=CreateRunResponse)
async def create_run(
    request_body: CreateRunRequest,
    background_tasks: BackgroundTasks,
    request: Request,
):
    """Start a validation run in the background.

    Connect to the WebSocket endpoint to receive phase events as they happen.
    """
    client_ip = request.client.host if request.client else "unknown"
    if not rate_limiter.allow_request(client_ip):
        raise HTTPException(
            status_code=429,
            detail={
                "error": "Rate limit exceeded",
                "message": f"Maximum {rate_limiter.max_tokens} runs per window. Try again later.",
                "remaining": rate_limiter.remaining_tokens(client_ip),
                "retry_after_seconds": int(rate_limiter.reset_time(client_ip)),
            },
        )

    config = ExecutionConfig.from_settings(
        enabled_phases=request_body.enabled_phases,
        max_concurrent_users=request_body.max_concurrent_users,
        timeout_ms=request_body.timeout_ms,
        phase_timeout_ms=request_body.phase_timeout_ms,
        skip_optional_checks=request_body.skip_optional_checks,
        output_format=request_body.output_format,
        log_level=request_body.log_level,
    )
    engine_paths = request_body.engines if request_body.engines is not None else get_settings().ENGINES
    engines = load_engines(engine_paths)

    run_manager = _run_manager(request)
    record = run_manager.create_run(config, engines, client=client_ip)
    background_tasks.add_task(run_manager.execute, record.run_id)

    logger.info("run_requested", run_id=record.run_id, client_ip=client_ip)

    return CreateRunResponse(
        run_id=record.run_id,
        status=record.status,
        created_at=record.created_at,
        websocket_url=f"/ws/runs/{record.run_id}",
        enabled_phases=[p.value for p in config.enabled_phases],
        engines=[p.value for p in record.controller.registered_roles()],
    )


@router.get("/runs", response_model=list[RunStatusResponse])
async def list_runs(request: Request, limit: int = Query(default=20, ge=1, le=100)):
    """List recent runs, newest first."""
    return [_status_response(r) for r in _run_manager(request).list_runs(limit)]


@router.get("/runs/{run_id}", response_model=RunStatusResponse)
async def get_run(run_id: str, request: Request):
    return _status_response(_run_manager(request).get(run_id))


@router.get("/runs/{run_id}/progress", response_model=ProgressSnapshot)
async def get_run_progress(run_id: str, request: Request):
    """Live progress snapshot; safe to poll while the run is executing."""
    return _run_manager(request).get(run_id).controller.get_progress()


@router.get("/runs/{run_id}/result")
async def get_run_result(
    run_id: str,
    request: Request,
    format: Optional[str] = Query(default=None, description="JSON, MARKDOWN, HTML or CSV"),
):
    """Export the finished run's result in the requested format."""
    record = _run_manager(request).get(run_id)
    if not record.finished:
        raise NoResultError(f"Run {run_id} is not finished. Current status: {record.status}")

    fmt = OutputFormat(format.upper()) if format else OutputFormat(record.controller.config.output_format)
    return Response(
        content=record.controller.export_results(fmt),
        media_type=MEDIA_TYPES[fmt],
    )


@router.get("/runs/{run_id}/logs", response_model=list[LogEntry])
async def get_run_logs(
    run_id: str,
    request: Request,
    level: Optional[str] = Query(default=None, description="Exact level to filter by"),
):
    controller = _run_manager(request).get(run_id).controller
    return controller.logger.get_logs(LogLevel(level.upper()) if level else None)
