"""Execution logger — append-only structured log buffer scoped to one run.

Every accepted entry is kept in memory for export and also forwarded to
structlog so it reaches the process log stream.
"""

import json
import threading
from typing import Any, Optional

import structlog

from readycheck.models.execution import LogLevel
from readycheck.models.results import LogEntry, LogSummary

logger = structlog.get_logger()

# ExecutionLogger level -> structlog method
_STRUCTLOG_METHODS = {
    LogLevel.DEBUG: "debug",
    LogLevel.INFO: "info",
    LogLevel.WARN: "warning",
    LogLevel.ERROR: "error",
    LogLevel.CRITICAL: "critical",
}


def _json_safe(details: Any) -> Any:
    """Make details JSON-serializable; exceptions become {error, error_type}."""
    if details is None:
        return None
    if isinstance(details, BaseException):
        return {"error": str(details), "error_type": type(details).__name__}
    try:
        return json.loads(json.dumps(details, default=str))
    except (TypeError, ValueError):
        return str(details)


class ExecutionLogger:
    """Structured log buffer keyed by an execution identifier.

    Level is fixed at construction: entries below it are dropped at write
    time and cannot be recovered later.
    """

    def __init__(self, execution_id: str, level: LogLevel = LogLevel.INFO):
        self.execution_id = execution_id
        self.level = LogLevel(level)
        self._logs: list[LogEntry] = []
        self._lock = threading.Lock()
        self._phase: Optional[str] = None
        self._step: Optional[str] = None
        self._log = logger.bind(execution_id=execution_id)

    # ── Ambient context ──

    def set_phase(self, phase: Optional[str]) -> None:
        """Set the phase attached to subsequent entries; clears the step."""
        self._phase = phase
        self._step = None
        if phase:
            self.info("PHASE_CONTEXT", f"Entering validation phase: {phase}")

    def set_step(self, step: Optional[str]) -> None:
        self._step = step
        if step:
            self.debug("STEP_START", f"Starting step: {step}")

    # ── Writers ──

    def debug(self, category: str, message: str, details: Any = None) -> None:
        self._write(LogLevel.DEBUG, category, message, details)

    def info(self, category: str, message: str, details: Any = None) -> None:
        self._write(LogLevel.INFO, category, message, details)

    def warn(self, category: str, message: str, details: Any = None) -> None:
        self._write(LogLevel.WARN, category, message, details)

    def error(self, category: str, message: str, details: Any = None) -> None:
        self._write(LogLevel.ERROR, category, message, details)

    def critical(self, category: str, message: str, details: Any = None) -> None:
        self._write(LogLevel.CRITICAL, category, message, details)

    def should_log(self, level: LogLevel) -> bool:
        return LogLevel(level).rank >= self.level.rank

    def _write(self, level: LogLevel, category: str, message: str, details: Any) -> None:
        if not self.should_log(level):
            return

        entry = LogEntry(
            level=level,
            category=category,
            message=message,
            details=_json_safe(details),
            execution_id=self.execution_id,
            phase=self._phase,
            step=self._step,
        )
        with self._lock:
            self._logs.append(entry)

        getattr(self._log, _STRUCTLOG_METHODS[level])(
            category.lower(),
            message=message,
            phase=entry.phase,
            step=entry.step,
            details=entry.details,
        )

    # ── Readers ──

    def get_logs(self, level: Optional[LogLevel] = None) -> list[LogEntry]:
        with self._lock:
            logs = list(self._logs)
        if level is None:
            return logs
        level = LogLevel(level)
        return [entry for entry in logs if entry.level == level]

    def get_logs_by_category(self, category: str) -> list[LogEntry]:
        return [entry for entry in self.get_logs() if entry.category == category]

    def get_logs_by_phase(self, phase: str) -> list[LogEntry]:
        return [entry for entry in self.get_logs() if entry.phase == phase]

    def export_logs(self) -> str:
        """Full JSON export of the buffer."""
        return json.dumps([entry.model_dump(mode="json") for entry in self.get_logs()], indent=2)

    def get_log_summary(self) -> LogSummary:
        logs = self.get_logs()
        summary = LogSummary(total_logs=len(logs))
        for entry in logs:
            summary.by_level[entry.level] += 1
            summary.by_category[entry.category] = summary.by_category.get(entry.category, 0) + 1
        summary.errors = [e for e in logs if e.level in (LogLevel.ERROR, LogLevel.CRITICAL)]
        summary.warnings = [e for e in logs if e.level == LogLevel.WARN]
        return summary

    def clear(self) -> None:
        with self._lock:
            self._logs = []
