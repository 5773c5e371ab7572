"""Validation controller — drives the phase pipeline and computes the final verdict.

This is the main entry point for a validation run. Engines are registered by
role; execute_validation() walks the fixed phase order, isolates per-phase
failures and folds every phase's findings into one AggregateResult.

Usage:
    controller = ValidationController(ExecutionConfig(enabled_phases=["security_audit"]))
    controller.register_engine("security_audit", SecurityAuditEngine())
    result = await controller.execute_validation()
    if result.production_readiness == "NOT_READY":
        ...
"""

import asyncio
import inspect
import time
import uuid
from typing import Any, Awaitable, Callable, Optional, Union

import structlog
from tenacity import AsyncRetrying, retry_if_not_exception_type, stop_after_attempt, wait_exponential

from readycheck.engines.base import AnalysisEngine, EngineContext
from readycheck.errors import NoResultError, PhaseTimeoutError
from readycheck.models.events import (
    BaseEvent,
    ErrorEvent,
    PhaseCompletedEvent,
    PhaseSkippedEvent,
    PhaseStartedEvent,
    ProgressEvent,
    RunCompletedEvent,
    RunStartedEvent,
)
from readycheck.models.execution import ExecutionConfig, OutputFormat, PhaseId, PhaseOutcome
from readycheck.models.findings import Finding, PhaseResult, Severity, Status, utcnow
from readycheck.models.results import (
    AggregateResult,
    ConfidenceLevel,
    ExecutionSummary,
    ProductionReadiness,
    ProgressSnapshot,
)
from readycheck.orchestration.phases import PHASE_CATALOG, PhaseDefinition, parse_phase_id
from readycheck.orchestration.policy import DEFAULT_POLICY, AssessmentPolicy
from readycheck.orchestration.progress import ProgressTracker
from readycheck.orchestration.run_logger import ExecutionLogger
from readycheck.orchestration.serializer import ResultSerializer

logger = structlog.get_logger()

EventCallback = Optional[Callable[[dict], Awaitable[None]]]


def _generate_execution_id() -> str:
    return f"run_{uuid.uuid4().hex[:12]}"


async def _resolve(value: Any) -> Any:
    """Await coroutine results; pass plain values through (sync engines)."""
    if inspect.isawaitable(value):
        return await value
    return value


async def _resolve_in_thread(fn: Callable, *args) -> Any:
    return await _resolve(await asyncio.to_thread(fn, *args))


class ValidationController:
    """Orchestrates registered engines and produces one AggregateResult per run.

    One controller serves one run: the aggregate result and log buffer are
    not designed for concurrent execute_validation() calls. get_progress()
    is safe to call while a run is in flight.
    """

    def __init__(
        self,
        config: Optional[ExecutionConfig] = None,
        *,
        policy: Optional[AssessmentPolicy] = None,
        event_callback: EventCallback = None,
        execution_id: Optional[str] = None,
    ):
        self.execution_id = execution_id or _generate_execution_id()
        self.config = config or ExecutionConfig.from_settings()
        self.policy = policy or DEFAULT_POLICY
        self.event_callback = event_callback
        self.logger = ExecutionLogger(self.execution_id, self.config.log_level)
        self.progress_tracker = ProgressTracker()
        self.serializer = ResultSerializer()

        self._engines: dict[PhaseId, AnalysisEngine] = {}
        self._result: Optional[AggregateResult] = None
        self._started_at: Optional[float] = None
        self._deadline: Optional[float] = None

        self.logger.info("CONTROLLER_INIT", "ValidationController initialized", {
            "execution_id": self.execution_id,
            "config": self.config.model_dump(mode="json"),
        })

    # ── Engine registration ──

    def register_engine(self, role: Union[PhaseId, str], engine: AnalysisEngine) -> None:
        """Register the engine for a phase role. Last registration wins."""
        phase_id = parse_phase_id(role)
        if not isinstance(engine, AnalysisEngine):
            raise TypeError(
                f"{type(engine).__name__} does not implement the engine contract "
                "(engine_name, initialize, validate, cleanup)"
            )

        previous = self._engines.get(phase_id)
        if previous is not None:
            self.logger.warn(
                "ENGINE_REPLACED",
                f"Replacing {phase_id.value} engine {previous.engine_name} with {engine.engine_name}",
            )

        self._engines[phase_id] = engine
        self.logger.info("ENGINE_REGISTER", f"Registered {phase_id.value} engine: {engine.engine_name}")

    def unregister_engine(self, role: Union[PhaseId, str]) -> Optional[AnalysisEngine]:
        return self._engines.pop(parse_phase_id(role), None)

    def registered_roles(self) -> list[PhaseId]:
        """Roles with an engine, in declared phase order."""
        return [p.id for p in PHASE_CATALOG if p.id in self._engines]

    def get_engine(self, role: Union[PhaseId, str]) -> Optional[AnalysisEngine]:
        return self._engines.get(parse_phase_id(role))

    # ── Execution ──

    async def execute_validation(self) -> AggregateResult:
        """Run every enabled, engine-backed phase in order and compute the verdict.

        Returns a snapshot of the AggregateResult. Once the result exists, any
        failure downgrades it to FAIL / NOT_READY / LOW instead of raising.
        """
        self._result = None
        self._started_at = time.perf_counter()
        self._deadline = self._started_at + self.config.timeout_ms / 1000
        self.progress_tracker.start_execution(self.config.enabled_phases)

        self.logger.info("VALIDATION_START", "Starting system validation", {
            "enabled_phases": [p.value for p in self.config.enabled_phases],
            "registered_roles": [p.value for p in self.registered_roles()],
            "max_concurrent_users": self.config.max_concurrent_users,
        })

        try:
            self._result = AggregateResult(execution_id=self.execution_id)
            await self._emit(RunStartedEvent(
                execution_id=self.execution_id,
                enabled_phases=[p.value for p in self.config.enabled_phases],
                registered_roles=[p.value for p in self.registered_roles()],
            ))

            await self._execute_phases()
            self._calculate_final_assessment()

            self.logger.info("VALIDATION_COMPLETE", "System validation completed", {
                "duration_ms": self._result.total_execution_time_ms,
                "overall_status": self._result.overall_status,
                "production_readiness": self._result.production_readiness,
                "total_issues": self._result.total_issues_found,
            })
            await self._emit(RunCompletedEvent(
                execution_id=self.execution_id,
                overall_status=self._result.overall_status,
                production_readiness=self._result.production_readiness,
                confidence_level=self._result.confidence_level,
                total_issues=self._result.total_issues_found,
                duration_ms=self._result.total_execution_time_ms,
            ))
            return self._result.model_copy(deep=True)

        except Exception as e:
            self.logger.error("VALIDATION_ERROR", "Validation execution failed", e)
            self.progress_tracker.add_error(f"Validation failed: {e}")

            if self._result is None:
                raise

            # Partial result is kept, downgraded to the worst verdict
            self._result.overall_status = Status.FAIL.value
            self._result.production_readiness = ProductionReadiness.NOT_READY.value
            self._result.confidence_level = ConfidenceLevel.LOW.value
            self._result.total_execution_time_ms = self._elapsed_ms()
            await self._emit(ErrorEvent(
                execution_id=self.execution_id,
                message=f"Validation execution failed: {e}",
                recoverable=False,
            ))
            return self._result.model_copy(deep=True)

    async def _execute_phases(self) -> None:
        enabled = set(self.config.enabled_phases)

        for definition in PHASE_CATALOG:
            if definition.id not in enabled:
                self.logger.info("PHASE_SKIP", f"Skipping disabled phase: {definition.name}")
                self._result.phase_outcomes[definition.id.value] = PhaseOutcome.SKIPPED.value
                await self._emit(PhaseSkippedEvent(
                    execution_id=self.execution_id,
                    phase_id=definition.id.value,
                    phase_name=definition.name,
                    reason="disabled",
                ))
                continue

            engine = self._engines.get(definition.id)
            if engine is None:
                self.logger.warn("PHASE_NO_ENGINE", f"No engine registered for phase: {definition.name}")
                self.progress_tracker.add_warning(f"No engine available for {definition.name}")
                self.progress_tracker.skip_phase(definition.id)
                self._result.phase_outcomes[definition.id.value] = PhaseOutcome.NO_ENGINE.value
                await self._emit(PhaseSkippedEvent(
                    execution_id=self.execution_id,
                    phase_id=definition.id.value,
                    phase_name=definition.name,
                    reason="no_engine",
                ))
                continue

            await self._execute_phase(definition, engine)

    async def _execute_phase(self, definition: PhaseDefinition, engine: AnalysisEngine) -> None:
        """Run initialize -> validate -> cleanup; any exception becomes a FAIL phase result."""
        self.logger.set_phase(definition.name)
        self.progress_tracker.start_phase(definition.id)
        await self._emit(PhaseStartedEvent(
            execution_id=self.execution_id,
            phase_id=definition.id.value,
            phase_name=definition.name,
            engine=engine.engine_name,
        ))

        start_time = utcnow()
        phase_deadline = self._phase_deadline()
        phase_error: Optional[BaseException] = None
        result: Optional[PhaseResult] = None

        self.logger.info("PHASE_START", f"Starting {definition.name} phase", {"engine": engine.engine_name})
        try:
            await self._initialize_engine(definition, engine, phase_deadline)
            raw = await self._call(definition, "validate", engine.validate, deadline=phase_deadline)
            result = raw if isinstance(raw, PhaseResult) else PhaseResult.model_validate(raw)
        except Exception as e:
            phase_error = e

        # Cleanup is attempted even when initialize/validate failed
        try:
            await self._call(definition, "cleanup", engine.cleanup, deadline=self._cleanup_deadline())
        except Exception as e:
            if phase_error is None:
                phase_error = e
            else:
                self.logger.warn(
                    "ENGINE_CLEANUP_ERROR",
                    f"Error cleaning up {engine.engine_name} after a failed phase",
                    e,
                )

        if phase_error is not None:
            self.logger.error("PHASE_ERROR", f"Error in {definition.name} phase", phase_error)
            self.progress_tracker.add_error(f"{definition.name} phase failed: {phase_error}")
            result = self._error_result(definition, phase_error, start_time)
            outcome = PhaseOutcome.FAILED
            await self._emit(ErrorEvent(
                execution_id=self.execution_id,
                message=f"{definition.name} phase failed: {phase_error}",
                phase_id=definition.id.value,
            ))
        else:
            outcome = PhaseOutcome.RAN
            self.logger.info("PHASE_COMPLETE", f"Completed {definition.name} phase", {
                "status": result.status,
                "results_count": len(result.results),
                "critical_issues": len(result.critical_issues),
                "duration_ms": result.duration_ms,
            })

        self._store_phase_result(definition.id, result, outcome)
        self.progress_tracker.complete_phase(definition.id)
        self.logger.set_phase(None)

        await self._emit(PhaseCompletedEvent(
            execution_id=self.execution_id,
            phase_id=definition.id.value,
            phase_name=definition.name,
            status=result.status,
            findings_total=len(result.results),
            findings_critical=len(result.critical_issues),
            duration_ms=result.duration_ms or 0.0,
            failed=outcome == PhaseOutcome.FAILED,
        ))
        progress = self.progress_tracker.get_progress()
        await self._emit(ProgressEvent(
            execution_id=self.execution_id,
            completed_steps=progress.completed_steps,
            total_steps=progress.total_steps,
            percent_complete=progress.percent_complete,
            estimated_time_remaining_ms=progress.estimated_time_remaining_ms,
        ))

    async def _initialize_engine(
        self,
        definition: PhaseDefinition,
        engine: AnalysisEngine,
        deadline: float,
    ) -> None:
        """Initialize with retries for transient failures; timeouts are not retried."""
        context = self._engine_context(definition)

        def log_retry(retry_state) -> None:
            self.logger.warn(
                "ENGINE_INIT_RETRY",
                f"Retrying initialize() of {engine.engine_name}",
                {
                    "attempt": retry_state.attempt_number,
                    "error": str(retry_state.outcome.exception()),
                },
            )

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.config.init_attempts),
            wait=wait_exponential(multiplier=self.config.init_backoff_seconds, max=30),
            retry=retry_if_not_exception_type(PhaseTimeoutError),
            before_sleep=log_retry,
            reraise=True,
        ):
            with attempt:
                await self._call(definition, "initialize", engine.initialize, context, deadline=deadline)

    async def _call(self, definition: PhaseDefinition, name: str, fn: Callable, *args, deadline: Optional[float]) -> Any:
        """Invoke one engine lifecycle call under the remaining time budget.

        Plain functions run in a worker thread so the deadline applies to
        them too. A thread that overruns is abandoned, not interrupted.
        """
        budget = None
        if deadline is not None:
            budget = deadline - time.perf_counter()
            if budget <= 0:
                raise PhaseTimeoutError(definition.id.value, name, 0)

        if inspect.iscoroutinefunction(fn):
            outcome = fn(*args)
        else:
            outcome = _resolve_in_thread(fn, *args)
        try:
            return await asyncio.wait_for(outcome, timeout=budget)
        except asyncio.TimeoutError:
            raise PhaseTimeoutError(definition.id.value, name, budget * 1000) from None

    def _engine_context(self, definition: PhaseDefinition) -> EngineContext:
        def on_step_start(step_id: str) -> None:
            self.progress_tracker.start_step(step_id)
            self.logger.set_step(step_id)

        def on_step_complete(step_id: str, success: bool) -> None:
            self.progress_tracker.complete_step(step_id, success)
            if not success:
                self.progress_tracker.add_warning(f"Step {step_id} of {definition.name} did not succeed")

        return EngineContext(
            phase_id=definition.id,
            config=self.config,
            max_concurrent_users=(
                self.config.max_concurrent_users
                if definition.id == PhaseId.DATABASE_SIMULATION
                else None
            ),
            on_step_start=on_step_start,
            on_step_complete=on_step_complete,
            logger=logger.bind(execution_id=self.execution_id, phase=definition.id.value),
        )

    def _phase_deadline(self) -> float:
        deadline = self._deadline
        if self.config.phase_timeout_ms is not None:
            deadline = min(deadline, time.perf_counter() + self.config.phase_timeout_ms / 1000)
        return deadline

    def _cleanup_deadline(self) -> Optional[float]:
        # Cleanup always gets a chance to run, bounded only by the per-phase cap
        if self.config.phase_timeout_ms is None:
            return None
        return time.perf_counter() + self.config.phase_timeout_ms / 1000

    def _error_result(self, definition: PhaseDefinition, error: BaseException, start_time) -> PhaseResult:
        end_time = utcnow()
        finding = Finding(
            id=f"{definition.id.value}_error",
            name=f"{definition.name} Phase Error",
            status=Status.FAIL,
            severity=Severity.CRITICAL,
            category=definition.category,
            message=f"Phase execution failed: {error}",
            details={"error_type": type(error).__name__, "error": str(error)},
            timestamp=end_time,
        )
        return PhaseResult(
            phase_name=definition.name,
            status=Status.FAIL,
            start_time=start_time,
            end_time=end_time,
            duration_ms=round((end_time - start_time).total_seconds() * 1000, 2),
            results=[finding],
            summary=f"Phase failed due to execution error: {error}",
            recommendations=[f"Fix {definition.name} phase execution error before proceeding"],
        )

    # ── Aggregation ──

    def _store_phase_result(self, phase_id: PhaseId, result: PhaseResult, outcome: PhaseOutcome) -> None:
        """Store a phase's result exactly once and fold it into the running totals."""
        aggregate = self._result
        aggregate.set_phase(phase_id, result)
        aggregate.phase_outcomes[phase_id.value] = outcome.value

        aggregate.critical_issues.extend(f for f in result.results if f.severity == Severity.CRITICAL)
        for rec in result.recommendations:
            if rec not in aggregate.all_recommendations:
                aggregate.all_recommendations.append(rec)

        for finding in result.results:
            aggregate.total_issues_found += 1
            aggregate.issues_by_category[finding.category] += 1
            aggregate.issues_by_severity[finding.severity] += 1

    def _calculate_final_assessment(self) -> None:
        aggregate = self._result
        phases = aggregate.present_phases()

        aggregate.total_execution_time_ms = self._elapsed_ms()
        overall = self.policy.overall_status(phases)
        aggregate.overall_status = overall.value
        aggregate.production_readiness = self.policy.production_readiness(
            overall, aggregate.issues_by_severity
        ).value
        aggregate.confidence_level = self.policy.confidence_level(
            completed=len(phases),
            enabled=len(self.config.enabled_phases),
            by_severity=aggregate.issues_by_severity,
        ).value
        aggregate.health_score = self.policy.health_score(aggregate.issues_by_severity, phases)
        aggregate.health_rating = self.policy.health_rating(aggregate.health_score).value

        self.logger.info("ASSESSMENT_COMPLETE", "Final assessment calculated", {
            "overall_status": aggregate.overall_status,
            "production_readiness": aggregate.production_readiness,
            "confidence_level": aggregate.confidence_level,
            "health_score": aggregate.health_score,
            "critical_issues": len(aggregate.critical_issues),
        })

    def _elapsed_ms(self) -> float:
        if self._started_at is None:
            return 0.0
        return round((time.perf_counter() - self._started_at) * 1000, 2)

    async def _emit(self, event: BaseEvent) -> None:
        if self.event_callback is None:
            return
        try:
            await self.event_callback(event.model_dump())
        except Exception as e:
            logger.warning("event_callback_failed", execution_id=self.execution_id, event=event.type, error=str(e))

    # ── Progress and results ──

    def get_progress(self) -> ProgressSnapshot:
        return self.progress_tracker.get_progress()

    def get_current_result(self) -> Optional[AggregateResult]:
        if self._result is None:
            return None
        return self._result.model_copy(deep=True)

    def export_results(self, fmt: Optional[Union[OutputFormat, str]] = None) -> str:
        if self._result is None:
            raise NoResultError("No validation results available for export")
        return self.serializer.serialize_result(self._result, fmt or self.config.output_format)

    def export_logs(self) -> str:
        if self._result is None:
            raise NoResultError("No validation run has produced logs for export")
        return self.logger.export_logs()

    def get_execution_summary(self) -> ExecutionSummary:
        return ExecutionSummary(
            execution_id=self.execution_id,
            config=self.config,
            progress=self.progress_tracker.get_execution_summary(),
            logs=self.logger.get_log_summary(),
            result=self.get_current_result(),
        )

    # ── Teardown ──

    async def cleanup(self) -> None:
        """Clean up every registered engine; one failure never blocks the others."""
        self.logger.info("CONTROLLER_CLEANUP", "Cleaning up validation controller")
        for phase_id in self.registered_roles():
            engine = self._engines[phase_id]
            try:
                await _resolve(engine.cleanup())
            except Exception as e:
                self.logger.warn("ENGINE_CLEANUP_ERROR", f"Error cleaning up engine {engine.engine_name}", e)
