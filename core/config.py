"""
Centralized configuration management.
All environment variables and settings are defined here.
"""
from pathlib import Path
from typing import Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="SMS Transaction Reader", alias="APP_NAME")
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Record formatting
    date_format: str = Field(default="%d/%m/%Y", alias="DATE_FORMAT")
    time_format: str = Field(default="%H:%M:%S", alias="TIME_FORMAT")
    preview_length: int = Field(default=100, alias="PREVIEW_LENGTH")

    # Reading
    default_days_back: int = Field(default=30, alias="DEFAULT_DAYS_BACK")
    max_messages: Optional[int] = Field(default=None, alias="MAX_MESSAGES")

    # Storage
    temp_storage_path: str = Field(default="files", alias="STORAGE_PATH")
    database_path: str = Field(default="transactions.db", alias="DATABASE_PATH")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level is one of the standard levels."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v_upper

    @field_validator("port")
    @classmethod
    def validate_port(cls, v):
        """Validate port is in valid range."""
        if not (1 <= v <= 65535):
            raise ValueError("Port must be between 1 and 65535")
        return v

    @field_validator("preview_length")
    @classmethod
    def validate_preview_length(cls, v):
        """Preview must keep at least one character."""
        if v < 1:
            raise ValueError("Preview length must be at least 1")
        return v

    @field_validator("default_days_back")
    @classmethod
    def validate_days_back(cls, v):
        """Validate read window."""
        if v < 1:
            raise ValueError("Default days back must be at least 1")
        if v > 3650:
            raise ValueError("Default days back should not exceed 3650")
        return v

    @field_validator("max_messages")
    @classmethod
    def validate_max_messages(cls, v):
        """Validate optional message cap."""
        if v is not None and v < 1:
            raise ValueError("Max messages must be at least 1 when set")
        return v

    def ensure_directories(self) -> None:
        """Ensure required directories exist."""
        Path(self.temp_storage_path).mkdir(parents=True, exist_ok=True)


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get application settings singleton.

    Returns:
        Settings instance

    Raises:
        ConfigurationError: If an environment value is invalid
    """
    global _settings
    if _settings is None:
        try:
            _settings = Settings()
        except ValidationError as e:
            raise ConfigurationError(
                "Invalid configuration",
                details={"errors": [err["msg"] for err in e.errors()]}
            )
        _settings.ensure_directories()
    return _settings


def reset_settings() -> None:
    """Reset settings singleton (useful for testing)."""
    global _settings
    _settings = None
