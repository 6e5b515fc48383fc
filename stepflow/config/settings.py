"""Engine settings.

Sourced from environment variables prefixed with ``STEPFLOW_`` (and
optionally a ``.env`` file).
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed environment-backed settings for the workflow engine."""

    model_config = SettingsConfigDict(
        env_prefix="STEPFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    default_maximum_jumps: int = Field(
        default=3,
        ge=0,
        description="Jump limit for evaluation steps that do not set maximum_jumps",
    )
    tool_timeout_seconds: Optional[float] = Field(
        default=None,
        gt=0,
        description="Abort tool calls that run longer than this; None waits indefinitely",
    )
    max_workflow_steps: int = Field(
        default=100,
        ge=1,
        description="Upper bound on step executions in a single run_workflow call",
    )
    log_level: str = Field(default="INFO")
    json_logs: bool = Field(default=False)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
