"""
Configuration Settings.

This module defines the library configuration using Pydantic's BaseSettings.
It automatically loads all configuration from environment variables and .env file
without explicit dotenv loading.
"""

from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# =====================================================================
# Grouped Configuration Models
# =====================================================================


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", alias="JSON_FIELDS_LOG_LEVEL", description="Library logging level")
    format: str = Field(
        default="detailed", alias="JSON_FIELDS_LOG_FORMAT", description="Log format (simple, detailed, json)"
    )
    file_dir: Optional[str] = Field(
        default=None, alias="JSON_FIELDS_LOG_FILE_DIR", description="Directory for the log file (disabled when unset)"
    )

    model_config = {"populate_by_name": True}


class SerializerConfig(BaseModel):
    """JSON serializer configuration."""

    exclude_none: bool = Field(
        default=False, alias="JSON_FIELDS_EXCLUDE_NONE", description="Drop None-valued fields when serializing"
    )
    use_jsonb: bool = Field(
        default=True, alias="JSON_FIELDS_USE_JSONB", description="Store JSON columns as JSONB on PostgreSQL"
    )

    model_config = {"populate_by_name": True}


# =====================================================================
# Main Settings Class
# =====================================================================


class Settings(BaseSettings):
    """
    Library settings model.

    All properties are automatically bound from environment variables and .env file.
    Pydantic's BaseSettings handles dotenv loading automatically via model_config.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
        populate_by_name=True,
    )

    # =====================================================================
    # Convention Scan
    # =====================================================================
    skip_conventional_entities: bool = Field(
        default=True,
        description="Default for add_json_fields: skip entity types discovered only by convention",
        alias="JSON_FIELDS_SKIP_CONVENTIONAL_ENTITIES",
    )

    # =====================================================================
    # Serializer
    # =====================================================================
    exclude_none: bool = Field(
        default=False,
        description="Drop None-valued fields when serializing JSON columns",
        alias="JSON_FIELDS_EXCLUDE_NONE",
    )
    use_jsonb: bool = Field(
        default=True,
        description="Load JSONB instead of JSON for JSON columns on PostgreSQL",
        alias="JSON_FIELDS_USE_JSONB",
    )

    # =====================================================================
    # Logging
    # =====================================================================
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        alias="JSON_FIELDS_LOG_LEVEL",
    )
    log_format: str = Field(
        default="detailed",
        description="Log format (simple, detailed, json)",
        alias="JSON_FIELDS_LOG_FORMAT",
    )
    log_file_dir: Optional[str] = Field(
        default=None,
        description="Directory for the log file; file logging is disabled when unset",
        alias="JSON_FIELDS_LOG_FILE_DIR",
    )

    # =====================================================================
    # Database Configuration
    # =====================================================================
    database_url: str = Field(
        default="sqlite://",
        description="Connection URL used by the database helpers when none is given",
        alias="JSON_FIELDS_DATABASE_URL",
    )

    # =====================================================================
    # Computed Properties (Grouped Configurations)
    # =====================================================================

    @property
    def logging(self) -> LoggingConfig:
        """Get logging configuration from environment variables."""
        return LoggingConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def serializer(self) -> SerializerConfig:
        """Get serializer configuration from environment variables."""
        return SerializerConfig.model_validate(self.model_dump(by_alias=True))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, loaded once."""
    return Settings()
