"""
Client Settings

Process-wide defaults loaded from environment variables (prefix BQCLIENT_)
or a .env file, using Pydantic Settings.
"""

import logging
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Client settings."""

    model_config = SettingsConfigDict(
        env_prefix="BQCLIENT_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Connection defaults used by the CLI
    driver: str = "bigquery"
    connection_string: Optional[str] = None

    # Paging
    default_page_size: int = Field(default=1000, ge=1)

    # Per-statement timeout in seconds passed through to the backend (None = wait)
    query_timeout: Optional[float] = Field(default=None, gt=0)

    # Logging
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


# Global settings instance
settings = Settings()


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging for command-line use."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format=settings.log_format,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
