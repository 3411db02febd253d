from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "HR Ops Core"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    database_url: str = "postgresql+asyncpg://hrops:hrops@db:5432/hrops"
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:8000"]
    log_level: str = "INFO"

    # Connection pool (ignored for SQLite)
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_timeout: float = 30.0

    # Governance
    month_close_enabled: bool = True

    # Leave workflow
    leave_approval_levels: int = 1
    leave_allow_half_day: bool = True
    leave_allow_backdated: bool = True
    leave_backdate_limit_days: int = 0  # 0 means no limit
    leave_allow_cancel_after_start: bool = True

    # Timesheet workflow
    timesheet_approval_levels: int = 1
    timesheet_max_hours_per_day: float = 24.0
    timesheet_allow_future_dates: bool = False

    @field_validator("leave_approval_levels", "timesheet_approval_levels")
    @classmethod
    def _validate_levels(cls, value: int) -> int:
        if value not in (1, 2):
            msg = "approval levels must be 1 or 2"
            raise ValueError(msg)
        return value


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
