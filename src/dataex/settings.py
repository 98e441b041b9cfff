"""Environment-driven settings for dataex.

Fields
──────
connection_string : Database connection string (``DATAEX_CONNECTION_STRING``)
log_level         : Structlog log level (``DATAEX_LOG_LEVEL``)
json_logs         : Force JSON (true) or console (false) logs; auto when unset

Examples:
    >>> from dataex.settings import DataExSettings
    >>> settings = DataExSettings()          # reads DATAEX_* and .env
    >>> settings.apply_logging()
"""

from __future__ import annotations

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from dataex.logging import configure_logging

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class DataExSettings(BaseSettings):
    """Settings read from ``DATAEX_*`` environment variables and ``.env``."""

    model_config = SettingsConfigDict(
        env_prefix="DATAEX_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    connection_string: SecretStr | None = Field(
        default=None,
        description="mysql:// URL or Server=...;Database=...; string",
    )
    log_level: str = "INFO"
    json_logs: bool | None = None

    @field_validator("log_level")
    @classmethod
    def _check_level(cls, value: str) -> str:
        level = value.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(_LOG_LEVELS)}")
        return level

    def apply_logging(self, service: str = "dataex") -> None:
        """Configure logging from these settings."""
        configure_logging(level=self.log_level, json_format=self.json_logs, service=service)


__all__ = [
    "DataExSettings",
]
