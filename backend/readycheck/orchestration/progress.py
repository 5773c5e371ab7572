"""Progress tracker — step-level completion, percent complete and ETA.

Completion is scoped to the phases enabled for the run. Enabled phases that
cannot run (no engine) are settled via skip_phase() so a finished run reaches
100%. All mutable state sits behind a lock: get_progress() may be called from
another thread while a run is writing.
"""

import threading
import time
from typing import Iterable, Optional

from readycheck.models.execution import PhaseId
from readycheck.models.results import (
    PhaseProgress,
    PhaseSummary,
    ProgressSnapshot,
    ProgressSummary,
)
from readycheck.orchestration.phases import PHASE_CATALOG, PhaseDefinition, StepDefinition


def _now_ms() -> float:
    return time.monotonic() * 1000


class ProgressTracker:
    """Tracks phase/step progress against a static catalog of estimates."""

    def __init__(self, catalog: tuple[PhaseDefinition, ...] = PHASE_CATALOG):
        self.phases = catalog
        self._steps: dict[str, StepDefinition] = {s.id: s for p in catalog for s in p.steps}
        self._lock = threading.Lock()
        self._enabled: set[PhaseId] = {p.id for p in catalog}
        self._reset()

    def _reset(self) -> None:
        self._start: Optional[float] = None
        self._current_phase: Optional[PhaseId] = None
        self._current_step: Optional[str] = None
        self._completed: set[str] = set()
        self._settled: set[str] = set()  # Counted as done, never timed
        self._phase_starts: dict[PhaseId, float] = {}
        self._phase_ends: dict[PhaseId, float] = {}
        self._step_starts: dict[str, float] = {}
        self._step_durations: dict[str, float] = {}
        self._errors: list[str] = []
        self._warnings: list[str] = []

    # ── Writers ──

    def start_execution(self, enabled_phases: Optional[Iterable[PhaseId]] = None) -> None:
        with self._lock:
            self._reset()
            self._start = _now_ms()
            if enabled_phases is not None:
                self._enabled = {PhaseId(p) for p in enabled_phases}

    def start_phase(self, phase_id: PhaseId) -> None:
        phase_id = PhaseId(phase_id)
        with self._lock:
            self._current_phase = phase_id
            self._current_step = None
            self._phase_starts[phase_id] = _now_ms()

    def start_step(self, step_id: str) -> None:
        with self._lock:
            self._current_step = step_id
            self._step_starts[step_id] = _now_ms()

    def complete_step(self, step_id: str, success: bool = True) -> None:
        """Record a step's actual duration; only successful steps count as completed."""
        with self._lock:
            started = self._step_starts.get(step_id)
            if started is not None:
                self._step_durations[step_id] = _now_ms() - started
            if success:
                self._completed.add(step_id)
            if self._current_step == step_id:
                self._current_step = None

    def complete_phase(self, phase_id: PhaseId) -> None:
        """Close a phase; steps the engine did not report are settled at their estimate."""
        phase_id = PhaseId(phase_id)
        with self._lock:
            self._phase_ends[phase_id] = _now_ms()
            for step in self._phase(phase_id).steps:
                if step.id not in self._completed:
                    self._settled.add(step.id)
            if self._current_phase == phase_id:
                self._current_phase = None
                self._current_step = None

    def skip_phase(self, phase_id: PhaseId) -> None:
        """Settle an enabled phase that will not run so it stops counting as pending."""
        phase_id = PhaseId(phase_id)
        with self._lock:
            for step in self._phase(phase_id).steps:
                self._settled.add(step.id)

    def add_error(self, error: str) -> None:
        with self._lock:
            self._errors.append(error)

    def add_warning(self, warning: str) -> None:
        with self._lock:
            self._warnings.append(warning)

    # ── Readers ──

    def get_progress(self) -> ProgressSnapshot:
        with self._lock:
            scoped = self._scoped_steps()
            done = [s for s in scoped if self._is_done(s.id)]
            total = len(scoped)
            percent = (len(done) / total * 100) if total else 0.0

            current_phase = "Not Started"
            if self._current_phase is not None:
                current_phase = self._phase(self._current_phase).name
            current_step = "Not Started"
            if self._current_step is not None:
                step = self._steps.get(self._current_step)
                current_step = step.name if step else self._current_step

            return ProgressSnapshot(
                current_phase=current_phase,
                current_step=current_step,
                completed_steps=len(done),
                total_steps=total,
                percent_complete=round(percent, 2),
                estimated_time_remaining_ms=self._estimate_remaining(scoped),
                errors=list(self._errors),
                warnings=list(self._warnings),
            )

    def get_phase_progress(self, phase_id: PhaseId) -> PhaseProgress:
        phase_id = PhaseId(phase_id)
        with self._lock:
            phase = self._phase(phase_id)
            completed = sum(1 for s in phase.steps if self._is_done(s.id))
            total = len(phase.steps)
            return PhaseProgress(
                phase_id=phase_id,
                phase_name=phase.name,
                completed_steps=completed,
                total_steps=total,
                percent_complete=round(completed / total * 100, 2) if total else 0.0,
                duration_ms=self._phase_duration(phase_id),
            )

    def get_execution_summary(self) -> ProgressSummary:
        with self._lock:
            summaries = []
            for phase in self.phases:
                completed = sum(1 for s in phase.steps if s.id in self._completed)
                summaries.append(PhaseSummary(
                    phase_id=phase.id,
                    phase_name=phase.name,
                    enabled=phase.id in self._enabled,
                    completed=phase.id in self._phase_ends,
                    duration_ms=self._phase_duration(phase.id),
                    step_count=len(phase.steps),
                    completed_steps=completed,
                ))
            return ProgressSummary(
                total_duration_ms=round(_now_ms() - self._start, 2) if self._start is not None else None,
                phase_summaries=summaries,
                total_errors=len(self._errors),
                total_warnings=len(self._warnings),
            )

    # ── Internals (caller holds the lock) ──

    def _phase(self, phase_id: PhaseId) -> PhaseDefinition:
        for phase in self.phases:
            if phase.id == phase_id:
                return phase
        raise KeyError(phase_id)

    def _scoped_steps(self) -> list[StepDefinition]:
        return [s for p in self.phases if p.id in self._enabled for s in p.steps]

    def _is_done(self, step_id: str) -> bool:
        return step_id in self._completed or step_id in self._settled

    def _phase_duration(self, phase_id: PhaseId) -> Optional[float]:
        started = self._phase_starts.get(phase_id)
        if started is None:
            return None
        return round(self._phase_ends.get(phase_id, _now_ms()) - started, 2)

    def _estimate_remaining(self, scoped: list[StepDefinition]) -> Optional[float]:
        """Total estimate minus what done steps consumed (actual duration when known)."""
        if self._start is None:
            return None
        if all(self._is_done(s.id) for s in scoped):
            return 0.0
        total_estimated = sum(s.estimated_duration_ms for s in scoped)
        consumed = 0.0
        for step in scoped:
            if not self._is_done(step.id):
                continue
            actual = self._step_durations.get(step.id)
            consumed += actual if actual is not None and step.id in self._completed else step.estimated_duration_ms
        return round(max(0.0, total_estimated - consumed), 2)
