"""Execution models — phase identifiers, per-run configuration and phase outcomes."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from readycheck.config import get_settings


class PhaseId(str, Enum):
    """The five top-level phases, in declared execution order."""

    STATIC_ANALYSIS = "static_analysis"
    DATABASE_SIMULATION = "database_simulation"
    SECURITY_AUDIT = "security_audit"
    PERFORMANCE_ANALYSIS = "performance_analysis"
    CONFIGURATION_AUDIT = "configuration_audit"


ALL_PHASES: tuple[PhaseId, ...] = tuple(PhaseId)


class PhaseOutcome(str, Enum):
    """What happened to a phase during a run."""

    SKIPPED = "SKIPPED"      # Not in enabled_phases
    NO_ENGINE = "NO_ENGINE"  # Enabled, but nothing registered for the role
    RAN = "RAN"              # Engine ran and returned a PhaseResult
    FAILED = "FAILED"        # Engine raised or timed out; result was synthesized


class OutputFormat(str, Enum):
    JSON = "JSON"
    MARKDOWN = "MARKDOWN"
    HTML = "HTML"
    CSV = "CSV"


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return LOG_LEVEL_ORDER.index(self)


LOG_LEVEL_ORDER = [LogLevel.DEBUG, LogLevel.INFO, LogLevel.WARN, LogLevel.ERROR, LogLevel.CRITICAL]


class ExecutionConfig(BaseModel):
    """Immutable per-run settings. Created once per controller."""

    enabled_phases: list[PhaseId] = Field(default_factory=lambda: list(ALL_PHASES))
    skip_optional_checks: bool = False
    max_concurrent_users: int = Field(default=150, ge=1)
    timeout_ms: int = Field(default=1_800_000, gt=0, description="Overall run budget")
    phase_timeout_ms: Optional[int] = Field(default=None, gt=0, description="Per-phase cap")
    output_format: OutputFormat = OutputFormat.JSON
    log_level: LogLevel = LogLevel.INFO
    init_attempts: int = Field(default=1, ge=1, le=10)
    init_backoff_seconds: float = Field(default=0.5, ge=0)

    model_config = {"frozen": True}

    @field_validator("enabled_phases", mode="before")
    @classmethod
    def _normalize_phases(cls, value):
        """Accept a comma separated string or any iterable; drop duplicates, keep order."""
        if isinstance(value, str):
            value = [v.strip() for v in value.split(",") if v.strip()]
        seen: list[PhaseId] = []
        for item in value:
            phase = PhaseId(item)
            if phase not in seen:
                seen.append(phase)
        return seen

    @field_validator("output_format", "log_level", mode="before")
    @classmethod
    def _upper(cls, value):
        return value.upper() if isinstance(value, str) else value

    @classmethod
    def from_settings(cls, **overrides) -> "ExecutionConfig":
        """Build a config from environment defaults, then apply explicit overrides."""
        settings = get_settings()
        values = {
            "enabled_phases": settings.DEFAULT_ENABLED_PHASES,
            "max_concurrent_users": settings.DEFAULT_MAX_CONCURRENT_USERS,
            "timeout_ms": settings.DEFAULT_TIMEOUT_MS,
            "output_format": settings.DEFAULT_OUTPUT_FORMAT,
            "log_level": settings.DEFAULT_LOG_LEVEL,
            "init_attempts": settings.ENGINE_INIT_ATTEMPTS,
            "init_backoff_seconds": settings.ENGINE_INIT_BACKOFF_SECONDS,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
