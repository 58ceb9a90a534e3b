"""Configuration via environment variables.

Provides type-safe settings loading using pydantic-settings.

Settings are never cached: the store directory in particular must be resolved
again on every capture so tests can point each invocation at a different
store through the process environment.
"""

import tempfile
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

# Name of the environment variable naming the store directory.
ENV_MAIL_STORE_PATH = "TRAPMAIL_STORE"


class Settings(BaseSettings):
    """trapmail settings loaded from environment variables.

    Environment Variables:
        TRAPMAIL_STORE: Store directory (empty/unset: platform temp directory)
        TRAPMAIL_LOG_LEVEL: Logging level (default WARNING)
        TRAPMAIL_LOG_JSON: Emit JSON log lines (default False)
        TRAPMAIL_SMTP_HOST: SMTP capture listener bind address
        TRAPMAIL_SMTP_PORT: SMTP capture listener port
    """

    model_config = SettingsConfigDict(
        env_prefix="TRAPMAIL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    store: Optional[str] = None

    log_level: str = "WARNING"
    log_json: bool = False

    smtp_host: str = "127.0.0.1"
    smtp_port: int = 2525


def get_settings() -> Settings:
    """Load settings from the current environment."""
    return Settings()


def default_store_dir() -> Path:
    """Platform standard temporary directory."""
    return Path(tempfile.gettempdir())


def resolve_store_dir(settings: Optional[Settings] = None) -> Path:
    """Resolve the store directory for one capture or read.

    Args:
        settings: Settings to resolve from; loaded fresh if omitted

    Returns:
        Path: TRAPMAIL_STORE if set and non-empty, else the temp directory
    """
    if settings is None:
        settings = get_settings()
    if settings.store:
        return Path(settings.store)
    return default_store_dir()
