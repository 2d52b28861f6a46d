"""
Centralized configuration management.

Every tunable limit of the upload, profiling and recommendation pipeline
lives on one validated `Settings` model, read from environment variables
(a `.env` file is loaded by main.py before the first `get_settings()`).
"""
import os
import logging
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")

# Environment variable for each settings field
ENV_VARS: Dict[str, str] = {
    "max_file_size_mb": "MAX_FILE_SIZE_MB",
    "max_file_rows": "MAX_FILE_ROWS",
    "max_file_columns": "MAX_FILE_COLUMNS",
    "max_cell_size_bytes": "MAX_CELL_SIZE_BYTES",
    "max_request_rows": "MAX_REQUEST_ROWS",
    "max_dataset_rows": "MAX_DATASET_ROWS",
    "max_suggestions": "MAX_SUGGESTIONS",
    "rate_limit_per_minute": "RATE_LIMIT_PER_MINUTE",
    "request_timeout_seconds": "REQUEST_TIMEOUT_SECONDS",
    "allowed_origins": "ALLOWED_ORIGINS",
    "log_level": "LOG_LEVEL",
    "log_format": "LOG_FORMAT",
}


class Settings(BaseModel):
    """Limits and runtime options for the chartkit service."""

    # Uploaded spreadsheets
    max_file_size_mb: int = Field(default=50, ge=1, le=1000, description="Largest accepted upload, in MB")
    max_file_rows: int = Field(default=1000000, ge=1000, description="Most data rows a parsed file may hold")
    max_file_columns: int = Field(default=1000, ge=10, description="Most columns a parsed file may hold")
    max_cell_size_bytes: int = Field(default=100000, ge=1000, description="Largest single cell, in UTF-8 bytes")

    # JSON row payloads (/recommend, /validate, /chart-data)
    max_request_rows: int = Field(default=200000, ge=1000, description="Most rows a JSON request may post")

    # Responses
    max_dataset_rows: int = Field(default=5000, ge=100, le=100000, description="Rows echoed back after an upload")
    max_suggestions: int = Field(default=8, ge=1, le=26, description="Chart suggestions returned by default")

    # Service protection
    rate_limit_per_minute: int = Field(default=10, ge=1, le=1000, description="Uploads per minute per IP")
    request_timeout_seconds: int = Field(default=300, ge=1, le=3600, description="Request timeout in seconds")
    allowed_origins: str = Field(
        default="http://localhost:3000,http://localhost:3001",
        description="Comma-separated list of allowed CORS origins"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Root logging level")
    log_format: str = Field(default="text", description="'text' or 'json'")

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        if v.upper() not in LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {list(LOG_LEVELS)}, got '{v}'")
        return v.upper()

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        if v.lower() not in LOG_FORMATS:
            raise ValueError(f"LOG_FORMAT must be one of {list(LOG_FORMATS)}, got '{v}'")
        return v.lower()

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024

    @property
    def allowed_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from environment variables.

        Unset variables fall back to the field defaults; pydantic coerces
        the string values and enforces the bounds.
        """
        values = {
            field: os.environ[env_var]
            for field, env_var in ENV_VARS.items()
            if os.environ.get(env_var, "").strip()
        }
        return cls(**values)


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Process-wide settings, loaded on first use."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
        logger.info(
            f"Configuration loaded: max upload {_settings.max_file_size_mb}MB, "
            f"{_settings.max_suggestions} suggestions, {_settings.rate_limit_per_minute} uploads/minute"
        )
    return _settings


def reload_settings() -> Settings:
    """Drop the cached settings and read the environment again."""
    global _settings
    _settings = None
    return get_settings()
