"""Exception types raised by the orchestration layer."""


class ReadycheckError(Exception):
    """Base class for all readycheck errors."""


class NoResultError(ReadycheckError):
    """Raised when exporting before any execution has produced a result."""


class EngineLoadError(ReadycheckError):
    """Raised when an engine cannot be imported or does not satisfy the contract."""


class UnknownPhaseError(ReadycheckError, ValueError):
    """Raised for a phase identifier outside the catalog."""


class PhaseTimeoutError(ReadycheckError):
    """Raised when an engine lifecycle call exceeds its time budget."""

    def __init__(self, phase: str, call: str, budget_ms: float):
        self.phase = phase
        self.call = call
        self.budget_ms = budget_ms
        super().__init__(f"{call}() of phase '{phase}' exceeded {budget_ms:.0f}ms budget")


class RunNotFoundError(ReadycheckError):
    """Raised when a run id is not known to the run manager."""
