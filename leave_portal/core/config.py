"""
Configuration management for the leave portal backend
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator, model_validator
from typing import Dict, List, Optional


DEFAULT_STATUTORY_MINIMUMS: Dict[str, int] = {
    # Labour Act, 2003 (Act 651) and Public Service conditions
    "Annual": 21,
    "Maternity": 84,
    "Paternity": 5,
    "Sick": 12,
    "Compassionate": 3,
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    DATABASE_URL: str = Field(default="sqlite:///./leave_portal.db", description="Database URL")
    JWT_SECRET_KEY: str = Field(default="change-me-in-env", description="JWT secret key used to verify bearer tokens")
    JWT_ALGORITHM: str = Field(default="HS256", description="JWT algorithm")
    JWT_EXPIRE_MINUTES: int = Field(default=120, description="JWT token expiration in minutes")

    APP_ENV: str = Field(default="local", description="Application environment: local, staging, prod")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level: DEBUG, INFO, WARNING, ERROR")

    ALLOWED_ORIGINS: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins. Use '*' for local only."
    )

    VERSION: Optional[str] = Field(default=None, description="Application version (git SHA or semver)")

    # Reminder / escalation scheduler
    REMINDER_THRESHOLD_HOURS: int = Field(default=24, description="Age of an active pending step before the approver is reminded")
    REMINDER_DEDUP_HOURS: int = Field(default=12, description="At most one approver reminder per (request, level) in this window")
    HR_REMINDER_THRESHOLD_DAYS: int = Field(default=3, description="Age of a pending request before HR gets an aggregate reminder")
    HR_REMINDER_DEDUP_HOURS: int = Field(default=24, description="At most one HR reminder per request in this window")
    ESCALATION_THRESHOLD_HOURS: Optional[int] = Field(
        default=None,
        description="Auto-skip a pending step after this many hours. Escalation is off unless set."
    )

    # Workflow planner
    EXTENDED_LEAVE_DAYS: int = Field(default=10, description="Requests longer than this need a director-level sign-off")
    ALLOW_DELEGATE_REJECTION: bool = Field(default=False, description="Whether a delegate may reject a delegated step")

    # Policy gate (jurisdiction-specific data, not code)
    STATUTORY_MINIMUMS: Dict[str, int] = Field(default_factory=lambda: dict(DEFAULT_STATUTORY_MINIMUMS))
    STATUTORY_ADVISORY_TYPES: List[str] = Field(default_factory=lambda: ["Sick", "Compassionate"])

    @field_validator("APP_ENV")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Validate APP_ENV"""
        allowed = ["local", "staging", "prod"]
        if v not in allowed:
            raise ValueError(f"APP_ENV must be one of {allowed}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate LOG_LEVEL"""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of {allowed}")
        return v.upper()

    @field_validator("STATUTORY_MINIMUMS")
    @classmethod
    def validate_statutory_minimums(cls, v: Dict[str, int]) -> Dict[str, int]:
        for leave_type, minimum in v.items():
            if minimum < 0:
                raise ValueError(f"Statutory minimum for {leave_type} cannot be negative")
        return v

    @model_validator(mode="after")
    def validate_escalation_threshold(self) -> "Settings":
        if self.ESCALATION_THRESHOLD_HOURS is not None and self.ESCALATION_THRESHOLD_HOURS <= self.REMINDER_THRESHOLD_HOURS:
            raise ValueError("ESCALATION_THRESHOLD_HOURS must be greater than REMINDER_THRESHOLD_HOURS")
        return self

    def validate_production(self) -> None:
        """
        Validate settings for production environment

        Raises:
            ValueError: If production settings are invalid
        """
        if self.APP_ENV == "prod":
            if len(self.JWT_SECRET_KEY) < 32:
                raise ValueError(
                    "JWT_SECRET_KEY must be at least 32 characters in production environment"
                )
            if self.ALLOWED_ORIGINS == "*" or not self.ALLOWED_ORIGINS:
                raise ValueError(
                    "ALLOWED_ORIGINS must be explicitly set (not '*') in production environment"
                )

    def get_allowed_origins_list(self) -> List[str]:
        """
        Get list of allowed CORS origins

        Returns:
            List of allowed origins (or ['*'] for local)
        """
        if self.ALLOWED_ORIGINS == "*":
            return ["*"]
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]


settings = Settings()

if settings.APP_ENV == "prod":
    settings.validate_production()
