"""Orchestration layer — phase catalog, controller, progress, logging and serialization.

Usage:
    from readycheck.orchestration import ValidationController

    controller = ValidationController()
    controller.register_engine("static_analysis", StaticAnalysisEngine())
    result = await controller.execute_validation()
    print(controller.export_results("MARKDOWN"))
"""

from readycheck.orchestration.controller import ValidationController
from readycheck.orchestration.phases import PHASE_CATALOG, get_phase, parse_phase_id
from readycheck.orchestration.policy import DEFAULT_POLICY, AssessmentPolicy
from readycheck.orchestration.progress import ProgressTracker
from readycheck.orchestration.run_logger import ExecutionLogger
from readycheck.orchestration.serializer import ResultSerializer, SerializationOptions

__all__ = [
    "AssessmentPolicy",
    "DEFAULT_POLICY",
    "ExecutionLogger",
    "PHASE_CATALOG",
    "ProgressTracker",
    "ResultSerializer",
    "SerializationOptions",
    "ValidationController",
    "get_phase",
    "parse_phase_id",
]
