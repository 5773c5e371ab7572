"""Engine loader — resolves engines from dotted import paths.

Paths look like "package.module:ClassName" (or "package.module.ClassName").
Imported classes are cached so repeated runs do not re-import.
"""

import importlib
from typing import Any, Mapping

import structlog

from readycheck.engines.base import AnalysisEngine
from readycheck.errors import EngineLoadError
from readycheck.models.execution import PhaseId
from readycheck.orchestration.phases import parse_phase_id

logger = structlog.get_logger()

# Cache resolved classes to avoid repeated imports
_class_cache: dict[str, type] = {}


def _split_path(path: str) -> tuple[str, str]:
    if ":" in path:
        module_name, _, attr = path.partition(":")
    else:
        module_name, _, attr = path.rpartition(".")
    if not module_name or not attr:
        raise EngineLoadError(f"Invalid engine path '{path}'. Use 'package.module:ClassName'")
    return module_name, attr


def resolve_engine_class(path: str) -> type:
    """Import and cache the engine class named by a dotted path."""
    if path in _class_cache:
        return _class_cache[path]

    module_name, attr = _split_path(path)
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise EngineLoadError(f"Cannot import engine module '{module_name}': {e}") from e

    try:
        engine_cls = getattr(module, attr)
    except AttributeError:
        raise EngineLoadError(f"Module '{module_name}' has no attribute '{attr}'") from None

    _class_cache[path] = engine_cls
    return engine_cls


def load_engine(path: str, **kwargs: Any) -> AnalysisEngine:
    """Instantiate the engine at `path` and check it satisfies the contract."""
    engine_cls = resolve_engine_class(path)
    try:
        engine = engine_cls(**kwargs)
    except Exception as e:
        raise EngineLoadError(f"Cannot instantiate engine '{path}': {e}") from e

    if not isinstance(engine, AnalysisEngine):
        raise EngineLoadError(
            f"'{path}' does not implement the engine contract "
            "(engine_name, initialize, validate, cleanup)"
        )

    logger.debug("engine_loaded", path=path, engine=engine.engine_name)
    return engine


def load_engines(mapping: Mapping[str, str]) -> dict[PhaseId, AnalysisEngine]:
    """Load one engine per role from a role -> dotted path mapping."""
    return {parse_phase_id(role): load_engine(path) for role, path in mapping.items()}


def clear_cache() -> None:
    _class_cache.clear()
