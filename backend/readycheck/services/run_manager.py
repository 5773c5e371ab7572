"""Run manager — in-memory registry of validation runs served by the API."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Mapping, Optional

import structlog

from readycheck.engines.base import AnalysisEngine
from readycheck.errors import RunNotFoundError
from readycheck.models.execution import ExecutionConfig, PhaseId
from readycheck.models.findings import utcnow
from readycheck.orchestration.controller import ValidationController
from readycheck.services.event_bus import EventBus

logger = structlog.get_logger()

FINISHED_STATUSES = ("complete", "error")


@dataclass
class RunRecord:
    """Bookkeeping for one run; the controller holds the run state itself."""

    run_id: str
    controller: ValidationController
    status: str = "pending"  # pending | running | complete | error
    created_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    error: Optional[str] = None
    client: str = "unknown"
    task: Optional[asyncio.Task] = field(default=None, repr=False)

    @property
    def finished(self) -> bool:
        return self.status in FINISHED_STATUSES


class RunManager:
    """Creates controllers, executes them and keeps a bounded run history.

    Oldest finished runs are evicted first; running runs are never evicted.
    """

    def __init__(self, event_bus: EventBus, max_history: int = 50):
        self.event_bus = event_bus
        self.max_history = max_history
        self._runs: dict[str, RunRecord] = {}

    def create_run(
        self,
        config: ExecutionConfig,
        engines: Mapping[PhaseId, AnalysisEngine],
        client: str = "unknown",
    ) -> RunRecord:
        controller = ValidationController(config)
        controller.event_callback = self.event_bus.create_callback(controller.execution_id)
        for role, engine in engines.items():
            controller.register_engine(role, engine)

        record = RunRecord(run_id=controller.execution_id, controller=controller, client=client)
        self._runs[record.run_id] = record
        self._evict()

        logger.info(
            "run_created",
            run_id=record.run_id,
            enabled_phases=[p.value for p in config.enabled_phases],
            engines=[p.value for p in controller.registered_roles()],
        )
        return record

    def get(self, run_id: str) -> RunRecord:
        record = self._runs.get(run_id)
        if record is None:
            raise RunNotFoundError(f"Run {run_id} not found")
        return record

    def list_runs(self, limit: Optional[int] = None) -> list[RunRecord]:
        """Runs newest first."""
        runs = sorted(self._runs.values(), key=lambda r: r.created_at, reverse=True)
        return runs[:limit] if limit else runs

    async def execute(self, run_id: str) -> None:
        """Execute a run to completion, then release its engines."""
        record = self.get(run_id)
        record.status = "running"
        logger.info("run_started", run_id=run_id)

        try:
            result = await record.controller.execute_validation()
            record.status = "complete"
            logger.info(
                "run_complete",
                run_id=run_id,
                overall_status=result.overall_status,
                production_readiness=result.production_readiness,
            )
        except Exception as e:
            record.status = "error"
            record.error = str(e)
            logger.error("run_failed", run_id=run_id, error=str(e), error_type=type(e).__name__)
            await self.event_bus.publish(run_id, {
                "type": "error",
                "execution_id": run_id,
                "message": f"Run failed: {e}",
                "recoverable": False,
            })
        finally:
            record.completed_at = utcnow()
            await record.controller.cleanup()

    def start(self, run_id: str) -> asyncio.Task:
        """Schedule execute() on the running event loop."""
        record = self.get(run_id)
        record.task = asyncio.create_task(self.execute(run_id))
        return record.task

    def _evict(self) -> None:
        if len(self._runs) <= self.max_history:
            return
        finished = sorted(
            (r for r in self._runs.values() if r.finished),
            key=lambda r: r.created_at,
        )
        for record in finished[: len(self._runs) - self.max_history]:
            del self._runs[record.run_id]
            self.event_bus.cleanup(record.run_id)
            logger.debug("run_evicted", run_id=record.run_id)
