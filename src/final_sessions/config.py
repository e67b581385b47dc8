"""Scheduler configuration loaded from environment variables."""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class SchedulerConfig(BaseSettings):
    """Scheduler configuration loaded from environment variables.

    Settings are loaded from environment variables with sensible defaults.
    For local development, create a .env file in the project root.
    """

    # Supabase REST (PostgREST) settings
    supabase_url: str = Field(
        default="",
        description="Supabase project URL, e.g. https://xyz.supabase.co",
    )
    supabase_key: str = Field(
        default="",
        description="Supabase API key sent as apikey and bearer token",
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for each REST request",
    )
    max_fetch_attempts: int = Field(
        default=3,
        description="Attempts per request before a transient failure is surfaced",
    )
    retry_wait_seconds: float = Field(
        default=1.0,
        description="Fixed wait between retry attempts",
    )

    # Availability checking
    weekday_locale: Literal["id", "en"] = Field(
        default="id",
        description="Language of the day names stored on lecture schedules",
    )
    fetch_failure_policy: Literal["fail_closed", "fail_open"] = Field(
        default="fail_closed",
        description=(
            "What to report when bookings cannot be loaded: no rooms "
            "(fail_closed) or every room (fail_open)"
        ),
    )

    # Logging
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (for production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    model_config = {
        "env_prefix": "",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


_config: SchedulerConfig | None = None


def get_config() -> SchedulerConfig:
    """Get the scheduler configuration singleton.

    Returns:
        SchedulerConfig: Scheduler configuration instance
    """
    global _config
    if _config is None:
        _config = SchedulerConfig()
    return _config


def reset_config() -> None:
    """Drop the cached configuration so the next get_config() re-reads the environment."""
    global _config
    _config = None
