"""Configuration management using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

StrategyName = Literal["fast", "balanced", "optimal"]


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CONDUCTOR_",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    log_dir: str | None = Field(
        default=None,
        description="Directory for rotating log files (disabled when unset)",
    )

    # Assignment
    assignment_strategy: StrategyName = Field(
        default="optimal",
        description="Scoring strategy used for the initial assignment pass",
    )
    reassignment_strategy: StrategyName = Field(
        default="optimal",
        description="Scoring strategy used when a task is moved to another worker",
    )
    max_parallel_tasks: int = Field(
        default=5,
        ge=1,
        description="Global ceiling on simultaneously in-flight tasks",
    )
    max_concurrent_per_worker: int = Field(
        default=10,
        ge=1,
        description="Per-worker concurrency cap used by the scoring engine",
    )
    fast_workload_cap: int = Field(
        default=10,
        ge=1,
        description="Workload limit for the fast strategy",
    )
    priority_weight: float = Field(
        default=0.3,
        ge=0.0,
        description="Score bonus added for high-priority tasks",
    )
    historical_performance: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Placeholder performance score until a tracking feed exists",
    )

    # Failure handling
    max_reassignment_attempts: int = Field(
        default=3,
        ge=0,
        description="Reassignment bound per task",
    )
    enable_dynamic_reassignment: bool = Field(
        default=True,
        description="Move tasks off failed workers automatically",
    )
    auto_spawn_workers: bool = Field(
        default=True,
        description="Spawn the workers a decomposition requires",
    )

    # Time budgets (seconds)
    validation_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Time budget for validating a request",
    )
    monitor_timeout: float = Field(
        default=600.0,
        gt=0,
        description="Hard wall-clock limit for execution monitoring",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings instance loaded from environment.

    Example:
        >>> settings = get_settings()
        >>> settings.max_parallel_tasks
        5
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
