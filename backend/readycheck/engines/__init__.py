"""Analysis engines — the plugin contract and helpers to load engines by path.

Usage:
    from readycheck.engines import BaseAnalysisEngine

    class SecurityAuditEngine(BaseAnalysisEngine):
        category = Category.SECURITY
        ...
"""

from readycheck.engines.base import AnalysisEngine, BaseAnalysisEngine, EngineContext
from readycheck.engines.loader import load_engine, load_engines

__all__ = [
    "AnalysisEngine",
    "BaseAnalysisEngine",
    "EngineContext",
    "load_engine",
    "load_engines",
]
