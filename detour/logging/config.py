"""Logging settings read from LOG_* and SERVICE_NAME environment variables."""

from enum import StrEnum
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LogLevel(StrEnum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(StrEnum):
    """Output format: ``json`` for log shipping, ``human`` for a terminal."""

    JSON = "json"
    HUMAN = "human"


class LoggingConfig(BaseSettings):
    """How the detour command writes its logs.

    Defaults suit an operator watching a flight from a terminal. Set
    ``LOG_FORMAT=json`` when logs are collected by a shipper.
    """

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    log_level: LogLevel = Field(default=LogLevel.INFO)
    log_format: LogFormat = Field(default=LogFormat.HUMAN)
    service_name: str = Field(default="detour", min_length=1)
    include_timestamp: bool = Field(default=True)
    include_location: bool = Field(default=True)
    use_colors: bool = Field(default=True)


@lru_cache
def get_logging_config() -> LoggingConfig:
    """Get cached logging configuration instance."""
    return LoggingConfig()
