"""API request models."""

from typing import Literal, Optional

from pydantic import BaseModel, Field


class CreateRunRequest(BaseModel):
    """Request to start a new validation run. Unset fields fall back to Settings."""

    enabled_phases: Optional[list[str]] = Field(
        default=None,
        description="Phase ids to run, in any order; execution order is fixed",
        examples=[["static_analysis", "security_audit"]],
    )
    engines: Optional[dict[str, str]] = Field(
        default=None,
        description="Role -> 'package.module:Class'. Defaults to the ENGINES setting",
    )
    max_concurrent_users: Optional[int] = Field(default=None, ge=1)
    timeout_ms: Optional[int] = Field(default=None, gt=0)
    phase_timeout_ms: Optional[int] = Field(default=None, gt=0)
    skip_optional_checks: bool = False
    output_format: Optional[Literal["JSON", "MARKDOWN", "HTML", "CSV"]] = None
    log_level: Optional[Literal["DEBUG", "INFO", "WARN", "ERROR", "CRITICAL"]] = None
