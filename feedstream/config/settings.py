"""
FeedStream Configuration System
==============================

Configuration management with environment variables and Pydantic models.
Environment variables (prefix ``FEEDSTREAM_``, nested delimiter ``__``)
override Field defaults.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional
from enum import Enum

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from ..utils.exceptions import ConfigurationError, ErrorCode, ValidationError
from ..utils.validators import validate_feed_urls


class LogLevel(str, Enum):
    """Available log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ProviderSettings(BaseModel):
    """Feed provider and ingestion task configuration."""
    timeout_ms: int = Field(default=10000, ge=100, le=600000, description="Connection timeout in milliseconds")
    read_timeout_ms: Optional[int] = Field(default=None, ge=100, le=600000, description="Socket read timeout in milliseconds")
    perpetual: bool = Field(default=False, description="Suppress entries seen in the previous run of a source")
    published_since: Optional[datetime] = Field(default=None, description="Only publish entries published after this instant")
    queue_size: int = Field(default=500, ge=1, le=100000, description="Capacity of the output queue")
    max_concurrent_sources: int = Field(default=5, ge=1, le=50, description="Concurrent source runs")
    user_agent: str = Field(default="FeedStream/1.0", min_length=1, description="HTTP User-Agent header")

    @field_validator("published_since")
    @classmethod
    def published_since_as_utc(cls, v):
        """Naive thresholds are taken as UTC."""
        if v is None:
            return v
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)


class DedupSettings(BaseModel):
    """Dedup store configuration."""
    max_sources: Optional[int] = Field(default=None, ge=1, description="Evict the least recently committed source beyond this many, None keeps all")


class LoggingSettings(BaseModel):
    """Logging configuration."""
    level: LogLevel = Field(default=LogLevel.INFO, description="Global log level")
    file_path: Optional[str] = Field(default="logs/feedstream.log", description="Log file path")
    max_file_size_mb: int = Field(default=10, ge=1, le=100, description="Max log file size in MB")
    backup_count: int = Field(default=5, ge=1, le=20, description="Number of log backup files")
    structured_logging: bool = Field(default=False, description="Use structured JSON logging")
    console_logging: bool = Field(default=True, description="Enable console logging")


class FeedStreamSettings(BaseSettings):
    """Main application settings."""

    provider: ProviderSettings = Field(default_factory=ProviderSettings)
    dedup: DedupSettings = Field(default_factory=DedupSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    sources: List[str] = Field(default_factory=list, description="Feed URLs to ingest")

    app_name: str = Field(default="FeedStream", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "env_nested_delimiter": "__",
        "env_prefix": "FEEDSTREAM_",
    }

    @field_validator("sources")
    @classmethod
    def validate_sources(cls, v):
        """Reject malformed feed URLs early."""
        try:
            return validate_feed_urls(v)
        except ValidationError as e:
            raise ValueError(str(e)) from e

    def validate_configuration(self) -> None:
        """Validate complete configuration."""
        errors = []

        if self.logging.file_path:
            try:
                log_path = Path(self.logging.file_path)
                log_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                errors.append(f"Invalid log file path: {e}")

        if errors:
            raise ConfigurationError(
                f"Configuration validation failed: {'; '.join(errors)}",
                error_code=ErrorCode.CONFIG_INVALID
            )

    def get_effective_log_level(self) -> str:
        """Get effective log level considering debug mode."""
        if self.debug:
            return "DEBUG"
        return self.logging.level.value


def load_settings() -> FeedStreamSettings:
    """Load settings from environment variables and defaults.

    Returns:
        Loaded and validated settings

    Raises:
        ConfigurationError: If configuration is invalid
    """
    from dotenv import load_dotenv
    load_dotenv()

    try:
        # Precedence: environment, then .env file, then Field defaults
        settings = FeedStreamSettings()
        settings.validate_configuration()
        return settings

    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(
            f"Failed to initialize settings: {e}",
            error_code=ErrorCode.CONFIG_INVALID
        ) from e


# Global settings instance
_settings: Optional[FeedStreamSettings] = None


def get_settings(reload: bool = False) -> FeedStreamSettings:
    """Get global settings instance (singleton pattern).

    Args:
        reload: Force reload of settings

    Returns:
        Global settings instance
    """
    global _settings

    if _settings is None or reload:
        _settings = load_settings()

    return _settings
