"""
Dashboard Configuration
Settings for the gym administration dashboard client.
Source: https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DashboardSettings(BaseSettings):
    """
    Dashboard configuration settings.

    Values are read from the environment (prefixed with GYMDESK_) or a .env
    file in the working directory.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_prefix="GYMDESK_",
    )

    # =========================================================================
    # Backend API
    # =========================================================================
    API_BASE_URL: str = Field(
        default="http://127.0.0.1:5000/api",
        description="Base URL of the gym management REST API",
    )
    REQUEST_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        gt=0,
        description="Timeout applied to every API request",
    )

    # =========================================================================
    # Acting Administrator
    # =========================================================================
    ACTING_ADMIN_NAME: str = Field(
        default="Admin",
        description="Name recorded as approver/rejecter on reorder requests",
    )
    DEFAULT_ADMIN_USERNAME: str = Field(
        default="admin",
        description="Username prefilled on the cancellation form",
    )

    # =========================================================================
    # Business Rules
    # =========================================================================
    DEFAULT_REJECTION_REASON: str = Field(
        default="No reason provided",
        description="Reason sent when a reorder request is rejected without one",
    )
    OVERDUE_AFTER_DAYS: int = Field(
        default=35,
        ge=1,
        description="Days since the last payment after which a member is overdue",
    )
    MEMBER_ID_PREFIX: str = Field(
        default="M-",
        description="Prefix stripped from member IDs for numeric sorting",
    )
    REORDER_NUMBER_PREFIX: str = Field(
        default="RO-",
        description="Prefix stripped from reorder request numbers for numeric sorting",
    )

    # =========================================================================
    # Logging
    # =========================================================================
    LOG_LEVEL: str = Field(default="INFO", description="Log level")
    LOG_JSON: bool = Field(default=False, description="Emit JSON log lines")
    LOG_FILE: Optional[str] = Field(default=None, description="Optional log file path")

    # =========================================================================
    # Validators
    # =========================================================================
    @field_validator("API_BASE_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the base URL so paths can be appended with a leading slash."""
        return v.rstrip("/")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


# Singleton instance
_settings: Optional[DashboardSettings] = None


def get_settings() -> DashboardSettings:
    """
    Get cached dashboard settings instance.

    Returns:
        DashboardSettings instance
    """
    global _settings
    if _settings is None:
        _settings = DashboardSettings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
