"""Application configuration via environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    DEBUG: bool = False
    LOG_LEVEL: str = "info"

    # Run defaults
    DEFAULT_ENABLED_PHASES: str = (
        "static_analysis,database_simulation,security_audit,"
        "performance_analysis,configuration_audit"
    )
    DEFAULT_MAX_CONCURRENT_USERS: int = 150
    DEFAULT_TIMEOUT_MS: int = 1_800_000  # 30 minutes
    DEFAULT_OUTPUT_FORMAT: str = "JSON"
    DEFAULT_LOG_LEVEL: str = "INFO"

    # Engine lifecycle
    ENGINE_INIT_ATTEMPTS: int = 1
    ENGINE_INIT_BACKOFF_SECONDS: float = 0.5

    # Engines used by the API and CLI: role -> "package.module:Class"
    ENGINES: dict[str, str] = {}

    # Output
    RESULTS_DIR: str = "./validation-results"
    MAX_RUN_HISTORY: int = 50

    # Rate Limiting
    RATE_LIMIT_MAX_RUNS: int = 10
    RATE_LIMIT_WINDOW_SECONDS: int = 3600

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
