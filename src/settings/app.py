"""Application settings powered by Pydantic BaseSettings."""

import logging
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CXPROXY_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    config_path: Path | None = Field(default=None)
    log_level: str = Field(default="INFO")
    json_logs: bool = Field(default=True)

    @property
    def log_level_number(self) -> int:
        """Return the stdlib logging level for ``log_level``."""
        level = logging.getLevelName(self.log_level.upper())
        return level if isinstance(level, int) else logging.INFO


def get_settings() -> AppSettings:
    """Get a settings instance."""
    return AppSettings()
