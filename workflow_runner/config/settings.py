"""
Environment-aware configuration settings for the workflow runner.

Supports dev, test, and prod environments with appropriate defaults.
Only the outer layers (API, demo) read settings; the engine core receives
a plain EngineConfig.
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from workflow_runner.core.models import MAX_RETRIES, MAX_TIMEOUT_MS, EngineConfig


class Environment(str, Enum):
    """Supported deployment environments."""

    DEV = "dev"
    TEST = "test"
    PROD = "prod"


class EngineSettings(BaseSettings):
    """Engine execution defaults."""

    model_config = SettingsConfigDict(env_prefix="ENGINE_")

    default_timeout_ms: int = Field(default=30_000, gt=0, le=MAX_TIMEOUT_MS, description="Per-attempt timeout (ms)")
    default_retries: int = Field(default=3, ge=0, le=MAX_RETRIES, description="Retries when a task sets none")
    max_concurrent_tasks: int = Field(default=10, ge=1, le=100, description="Maximum simultaneously running tasks")
    retry_delay_ms: int = Field(default=100, ge=0, le=10_000, description="Fixed delay between attempts (ms)")
    concurrent: bool = Field(default=False, description="Run independent ready tasks in parallel")

    def to_engine_config(self) -> EngineConfig:
        """Build the plain config struct handed to the engine core."""
        return EngineConfig(
            default_timeout_ms=self.default_timeout_ms,
            default_retries=self.default_retries,
            max_concurrent_tasks=self.max_concurrent_tasks,
            retry_delay_ms=self.retry_delay_ms,
            concurrent=self.concurrent,
        )


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        case_sensitive=False,  # LOG_LEVEL and log_level both work
        extra="ignore",        # Ignore unknown environment variables
    )

    # Application
    app_name: str = Field(default="Workflow Runner")
    environment: Environment = Field(default=Environment.DEV)
    debug: bool = Field(default=False, description="FastAPI debug mode and API docs")
    log_level: str = Field(default="INFO")
    log_events: bool = Field(default=True, description="Log every task lifecycle event")

    # Sub-settings
    engine: EngineSettings = Field(default_factory=EngineSettings)

    @field_validator("environment", mode="before")
    @classmethod
    def validate_environment(cls, v: str | Environment) -> Environment:
        """Validate and convert environment string to enum."""
        if isinstance(v, Environment):
            return v
        return Environment(v.lower())

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == Environment.DEV


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
