"""Base analysis engine — the plugin contract every phase engine satisfies.

Each engine is a standalone, independently testable unit. New engines are
registered with the controller without modifying it.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional, Protocol, Union, runtime_checkable

from readycheck.models.execution import ExecutionConfig, PhaseId
from readycheck.models.findings import (
    Category,
    Evidence,
    Finding,
    PhaseResult,
    Severity,
    Status,
    utcnow,
)


@runtime_checkable
class AnalysisEngine(Protocol):
    """Minimal capability set the controller relies on.

    Any object with these members may be registered; lifecycle methods may
    be coroutines or plain functions.
    """

    engine_name: str

    def initialize(self, context: Optional["EngineContext"] = None) -> Any: ...

    def validate(self) -> Any: ...

    def cleanup(self) -> Any: ...


def _noop(*args, **kwargs) -> None:
    return None


@dataclass
class EngineContext:
    """Handed to initialize(): run config plus optional step-level reporting."""

    phase_id: PhaseId
    config: ExecutionConfig
    max_concurrent_users: Optional[int] = None  # Only set for database_simulation
    on_step_start: Callable[[str], None] = field(default=_noop, repr=False)
    on_step_complete: Callable[[str, bool], None] = field(default=_noop, repr=False)
    logger: Any = field(default=None, repr=False)

    def start_step(self, step_id: str) -> None:
        self.on_step_start(step_id)

    def complete_step(self, step_id: str, success: bool = True) -> None:
        self.on_step_complete(step_id, success)


class BaseAnalysisEngine(ABC):
    """Abstract base for all phase engines.

    Contract:
        - validate() returns a PhaseResult; expected negative findings are
          FAIL/CONDITIONAL findings inside it, never exceptions
        - validate() raises only when the engine itself could not run
        - cleanup() is safe to call even if initialize() never ran or
          validate() raised
    """

    version: str = "1.0.0"
    category: Category = Category.NATIVE

    def __init__(self):
        self.context: Optional[EngineContext] = None

    @property
    @abstractmethod
    def engine_name(self) -> str:
        """Human-readable name for logging."""
        ...

    @property
    def phase_name(self) -> str:
        return self.engine_name

    async def initialize(self, context: Optional[EngineContext] = None) -> None:
        """Acquire resources. Default keeps the context for step reporting."""
        self.context = context

    @abstractmethod
    async def validate(self) -> PhaseResult:
        """Run the phase's checks and return its result."""
        ...

    async def cleanup(self) -> None:
        """Release resources. Default has nothing to release."""
        return None

    # ── Helper Methods ──

    def _finding(
        self,
        id: str,
        name: str,
        status: Union[Status, str],
        severity: Union[Severity, str],
        message: str,
        category: Optional[Union[Category, str]] = None,
        details: Optional[Union[str, dict]] = None,
        evidence: Optional[list[Evidence]] = None,
        recommendations: Optional[list[str]] = None,
    ) -> Finding:
        """Convenience method to create a Finding in this engine's category."""
        return Finding(
            id=id,
            name=name,
            status=status,
            severity=severity,
            category=category or self.category,
            message=message,
            details=details,
            evidence=evidence or [],
            recommendations=recommendations or [],
        )

    def _phase_result(
        self,
        findings: list[Finding],
        start_time: datetime,
        recommendations: Optional[list[str]] = None,
        summary: Optional[str] = None,
    ) -> PhaseResult:
        """Roll findings up into a PhaseResult stamped with now as the end time."""
        return PhaseResult.build(
            phase_name=self.phase_name,
            findings=findings,
            start_time=start_time,
            end_time=utcnow(),
            recommendations=recommendations,
            summary=summary,
        )

    def _step(self, step_id: str) -> "_StepScope":
        """Context manager reporting a step boundary when a context is attached."""
        return _StepScope(self.context, step_id)


class _StepScope:
    def __init__(self, context: Optional[EngineContext], step_id: str):
        self.context = context
        self.step_id = step_id

    def __enter__(self):
        if self.context:
            self.context.start_step(self.step_id)
        return self

    def __exit__(self, exc_type, exc, tb):
        if self.context:
            self.context.complete_step(self.step_id, exc_type is None)
        return False
