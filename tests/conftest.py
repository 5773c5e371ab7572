import pytest

from readycheck.config import get_settings
from readycheck.engines.loader import clear_cache
from readycheck.services.rate_limiter import rate_limiter


# ─── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def _isolate_global_state():
    get_settings.cache_clear()
    clear_cache()
    rate_limiter.reset()
    yield
    get_settings.cache_clear()
    clear_cache()
    rate_limiter.reset()


@pytest.fixture
def journal() -> list:
    """Shared call log: (engine_name, call) tuples in execution order."""
    return []
